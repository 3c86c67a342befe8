"""
Correlation middleware for FastAPI / Starlette.

Purpose
-------
Give every inbound HTTP request a TransactionContext for exactly the lifetime of the
request, so every log line written while handling it carries the same correlation id:

    NoContext --(usable carrier header, or generated id)--> ContextEstablished
    ContextEstablished --(response, exception, disconnect, cancellation)--> Cleared

Carrier headers are checked in order: the configured header (default
`X-Transaction-ID`), then `X-Correlation-ID`, then `X-Trace-ID`. A value is only used
when it is non-blank, at most 128 characters and printable, so a caller cannot inject
line breaks or control characters into the logs through the header.

Usage
-----
    from fastapi import FastAPI
    from quickpay_logging.core.logging.middleware import CorrelationMiddleware

    app = FastAPI()
    app.add_middleware(CorrelationMiddleware)                 # settings from get_settings()
    app.add_middleware(CorrelationMiddleware, settings=my_settings)

Downstream calls can forward the id with `store.outbound_headers()`.
"""

from __future__ import annotations

import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from ...config.settings import Settings, get_settings
from ..correlation import CorrelationIdGenerator, ContextPropagationStore, TransactionContext
from ..correlation import store as default_store

logger = logging.getLogger(__name__)

FALLBACK_HEADERS = ("X-Correlation-ID", "X-Trace-ID")
MAX_CARRIER_LENGTH = 128


def is_usable_carrier(value: str | None) -> bool:
    """Non-blank, at most 128 characters, printable."""
    if value is None:
        return False
    stripped = value.strip()
    return bool(stripped) and len(stripped) <= MAX_CARRIER_LENGTH and stripped.isprintable()


class CorrelationMiddleware(BaseHTTPMiddleware):
    """
    Starlette / FastAPI middleware that binds a TransactionContext per request.

    Notes:
      - Reads the correlation id from the carrier headers; otherwise generates one
        (prefix CORRELATION_ID_PREFIX) when CORRELATION_GENERATE_IF_MISSING is set,
        or proceeds without a binding.
      - Echoes the id under CORRELATION_HEADER_NAME when CORRELATION_ADD_TO_RESPONSE is set.
      - Always clears the binding on the way out.
      - With CORRELATION_ENABLED=false the middleware is a pass-through.
    """

    def __init__(
        self,
        app,
        settings: Settings | None = None,
        *,
        generator: CorrelationIdGenerator | None = None,
        store: ContextPropagationStore | None = None,
    ):
        super().__init__(app)
        self.settings = settings or get_settings()
        self.generator = generator or CorrelationIdGenerator(self.settings.CORRELATION_ID_PREFIX)
        self.store = store or default_store
        self.carrier_headers = (self.settings.CORRELATION_HEADER_NAME,) + tuple(
            h for h in FALLBACK_HEADERS if h.lower() != self.settings.CORRELATION_HEADER_NAME.lower()
        )

        logger.info(
            "Correlation middleware initialized: enabled=%s header=%s generate_if_missing=%s "
            "add_to_response=%s prefix=%s",
            self.settings.CORRELATION_ENABLED,
            self.settings.CORRELATION_HEADER_NAME,
            self.settings.CORRELATION_GENERATE_IF_MISSING,
            self.settings.CORRELATION_ADD_TO_RESPONSE,
            self.settings.CORRELATION_ID_PREFIX,
        )

    def extract_correlation_id(self, request: Request) -> str | None:
        """First usable carrier value, or None."""
        for header in self.carrier_headers:
            value = request.headers.get(header)
            if is_usable_carrier(value):
                return value.strip()
        return None

    def resolve_correlation_id(self, request: Request) -> str | None:
        correlation_id = self.extract_correlation_id(request)
        if correlation_id is None and self.settings.CORRELATION_GENERATE_IF_MISSING:
            correlation_id = self.generator.generate()
        return correlation_id

    async def dispatch(self, request: Request, call_next):
        """
        Dispatch a request.

        Args:
            request: Starlette Request object.
            call_next: function that executes the next handler in the chain and returns a Response.

        Returns:
            Response: the downstream response, with the correlation header when configured.
        """
        if not self.settings.CORRELATION_ENABLED:
            return await call_next(request)

        try:
            # 1) Carrier header, else generated id, else no binding at all.
            correlation_id = self.resolve_correlation_id(request)

            # 2) Bind before call_next: the downstream task copies this context.
            if correlation_id is not None:
                self.store.bind(TransactionContext.of(correlation_id, self.settings.SERVICE_NAME))
                logger.debug("Transaction context established for %s %s", request.method, request.url.path)

            response = await call_next(request)

            # 3) Echo the id so the caller can correlate too.
            if correlation_id is not None and self.settings.CORRELATION_ADD_TO_RESPONSE:
                response.headers[self.settings.CORRELATION_HEADER_NAME] = correlation_id

            return response
        finally:
            # 4) Cleared on every exit path.
            self.store.clear()
