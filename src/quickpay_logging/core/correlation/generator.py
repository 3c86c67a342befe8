# src/quickpay_logging/core/correlation/generator.py
"""
Correlation id generator.

Ids look like `txn_1700000000000_Xq3v0cVb9yq2h1kA`:

  - prefix:    caller-chosen label, "txn" by default
  - timestamp: epoch milliseconds, so ids sort roughly by creation time
  - random:    96 bits from the OS CSPRNG (`secrets`), URL-safe base64 without padding

The URL-safe alphabet contains "_", and prefixes may contain "_" too. Parsing
takes the shortest prefix followed by an all-digit segment, so every generated
id still validates.

`secrets` draws from os.urandom, which is safe to call from any number of threads
or tasks without extra locking.
"""

import base64
import re
import secrets
import time

from ...exceptions import InvalidArgument

DEFAULT_PREFIX = "txn"
RANDOM_BYTES = 12  # 96 bits

_ID_RE = re.compile(r"(.+?)_([0-9]+)_(.+)", re.DOTALL)


class CorrelationIdGenerator:
    """Produces unique, roughly time-sortable correlation ids."""

    def __init__(self, default_prefix: str = DEFAULT_PREFIX):
        self.default_prefix = self._check_prefix(default_prefix)

    def generate(self, prefix: str | None = None) -> str:
        """
        Generate a new id.

        Args:
            prefix: overrides the default prefix for this id.

        Raises:
            InvalidArgument: prefix is empty or blank.
        """
        prefix = self.default_prefix if prefix is None else self._check_prefix(prefix)
        timestamp = time.time_ns() // 1_000_000
        random_segment = base64.urlsafe_b64encode(secrets.token_bytes(RANDOM_BYTES)).rstrip(b"=")
        return f"{prefix}_{timestamp}_{random_segment.decode('ascii')}"

    @staticmethod
    def is_valid_format(value: object) -> bool:
        """
        Check the three-part shape `<prefix>_<digits>_<random>`.

        Only the shape is checked; the random segment's provenance is not.
        """
        if not isinstance(value, str) or not value.strip():
            return False
        match = _ID_RE.fullmatch(value)
        return match is not None and bool(match.group(1).strip())

    @staticmethod
    def _check_prefix(prefix: str) -> str:
        if not isinstance(prefix, str) or not prefix.strip():
            raise InvalidArgument("Prefix cannot be empty or blank", fields=["prefix"])
        return prefix


# Shared instance used by TransactionContext.create() and the middleware.
default_generator = CorrelationIdGenerator()


def generate_correlation_id(prefix: str | None = None) -> str:
    return default_generator.generate(prefix)


def is_valid_correlation_id(value: object) -> bool:
    return CorrelationIdGenerator.is_valid_format(value)
