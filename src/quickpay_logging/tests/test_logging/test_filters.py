# src/quickpay_logging/tests/test_logging/test_filters.py
import logging

from quickpay_logging.core.correlation import TransactionContext, store
from quickpay_logging.core.logging.filters import CorrelationFilter, MaskingFilter


def make_record(msg="hello %s", args=("world",)):
    # name, level, pathname, lineno, msg, args, exc_info
    return logging.LogRecord("test", logging.INFO, __file__, 1, msg, args, None)


def test_correlation_filter_defaults_to_dash():
    rec = make_record()
    f = CorrelationFilter()
    assert f.filter(rec) is True
    assert rec.correlation_id == "-"  # fallback sentinel
    assert rec.ambient == {}


def test_correlation_filter_uses_bound_context():
    store.bind(TransactionContext.of("txn_1_abc", "svc").with_user("u-1"))
    rec = make_record()
    CorrelationFilter().filter(rec)

    assert rec.correlation_id == "txn_1_abc"
    assert rec.ambient["user.id"] == "u-1"


def test_correlation_filter_respects_record_extra():
    store.bind(TransactionContext.of("txn_1_context", "svc"))
    rec = make_record()
    rec.correlation_id = "explicit"
    CorrelationFilter().filter(rec)
    # record.correlation_id keeps the explicit value (respect extra)
    assert rec.correlation_id == "explicit"


def test_correlation_filter_keeps_existing_snapshot():
    rec = make_record()
    rec.ambient = {"correlation.id": "txn_1_producer"}
    store.bind(TransactionContext.of("txn_2_listener", "svc"))
    CorrelationFilter().filter(rec)
    assert rec.correlation_id == "txn_1_producer"


def test_masking_filter_masks_sensitive_extras():
    rec = make_record()
    rec.password = "hunter2222"
    rec.region = "eu"
    assert MaskingFilter().filter(rec) is True
    assert rec.password == "hu******22"
    assert rec.region == "eu"


def test_masking_filter_masks_arguments_by_content():
    rec = make_record("auth header %s for %s", ("token=abc123", "order-9"))
    MaskingFilter().filter(rec)
    assert rec.getMessage() == "auth header to********23 for order-9"


def test_masking_filter_masks_mapping_arguments():
    rec = make_record("user %(email)s ordered %(item)s", ({"email": "jane@example.com", "item": "book"},))
    MaskingFilter().filter(rec)
    assert "jane@example.com" not in rec.getMessage()
    assert rec.getMessage().endswith("ordered book")


def test_masking_filter_masks_labels_mapping():
    rec = make_record()
    rec.labels = {"cardNumber": "4111111111111111", "order": "9"}
    MaskingFilter().filter(rec)
    assert rec.labels == {"cardNumber": "41************11", "order": "9"}


def test_masking_filter_extra_sensitive_fields():
    rec = make_record()
    rec.iban = "DE89370400440532013000"
    MaskingFilter(sensitive_fields=["iban"]).filter(rec)
    assert rec.iban.startswith("DE**")


def test_masking_filter_disabled_leaves_record_alone():
    rec = make_record("auth %s", ("token=abc123",))
    rec.password = "hunter2222"
    MaskingFilter(enabled=False).filter(rec)
    assert rec.password == "hunter2222"
    assert rec.getMessage() == "auth token=abc123"
