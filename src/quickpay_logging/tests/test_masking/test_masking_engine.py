from types import SimpleNamespace

import pytest

from quickpay_logging.core.masking import (
    DEFAULT_SENSITIVE_FIELDS,
    MASK_MARKER,
    MaskingRule,
    PiiMaskingEngine,
)


@pytest.fixture()
def engine():
    return PiiMaskingEngine()


@pytest.mark.parametrize(
    "value,expected",
    [
        ("", "***"),
        ("a", "***"),
        ("ab", "***"),
        ("abcd", "***"),
        ("abcde", "ab*de"),
        ("abcdef", "ab**ef"),
        ("password123", "pa*******23"),
    ],
)
def test_mask_boundaries(engine, value, expected):
    assert engine.mask(value) == expected


def test_mask_none_is_marker(engine):
    assert engine.mask(None) == MASK_MARKER


def test_mask_non_string_uses_its_string_form(engine):
    assert engine.mask(4111111111111111) == "41************11"


def test_mask_is_idempotent_for_long_values(engine):
    once = engine.mask("4111111111111111")
    assert engine.mask(once) == once


@pytest.mark.parametrize("name", ["PASSWORD", "userPassword", "X-API-KEY", "card_number", "Authorization", "email"])
def test_classify_is_case_insensitive_substring(engine, name):
    assert engine.classify(name)


@pytest.mark.parametrize("name", [None, "", "   ", "amount", "order_id", "region"])
def test_classify_non_sensitive(engine, name):
    assert not engine.classify(name)


def test_mask_if_sensitive(engine):
    assert engine.mask_if_sensitive("password", "hunter2222") == "hu******22"
    assert engine.mask_if_sensitive("amount", "1999") == "1999"


def test_mask_value_if_sensitive_uses_content(engine):
    assert engine.mask_value_if_sensitive("token=abc123") == "to********23"
    assert engine.mask_value_if_sensitive("order-9") == "order-9"
    assert engine.mask_value_if_sensitive(None) is None
    assert engine.mask_value_if_sensitive(42) == 42


def test_disabled_engine_is_a_no_op():
    engine = PiiMaskingEngine(MaskingRule.build(enabled=False))

    assert engine.mask("password123") == "password123"
    assert engine.mask(None) is None
    assert engine.mask_if_sensitive("password", "secret-value") == "secret-value"
    assert engine.mask_value_if_sensitive("token=abc123") == "token=abc123"
    # classification still works; only masking is switched off
    assert engine.classify("password")


def test_additional_names_are_unioned_with_defaults():
    rule = MaskingRule.build([" IBAN ", "", "pin"])

    assert {"iban", "pin"} <= rule.sensitive_field_names
    assert DEFAULT_SENSITIVE_FIELDS <= rule.sensitive_field_names
    assert PiiMaskingEngine(rule).classify("customerIban")


def test_rule_from_settings():
    rule = MaskingRule.from_settings(SimpleNamespace(SENSITIVE_FIELDS=["iban"], PII_MASKING_ENABLED=False))
    assert "iban" in rule.sensitive_field_names
    assert rule.enabled is False
