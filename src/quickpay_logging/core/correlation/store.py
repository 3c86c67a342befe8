# src/quickpay_logging/core/correlation/store.py
"""
Context propagation store.

Binds a TransactionContext to the current logical unit of execution and mirrors its
identifying fields into "ambient metadata", a small key/value map consulted by the
log-record assembler (the MDC equivalent).

Why contextvars
---------------
Both the binding and the ambient map live in `contextvars.ContextVar`s:
  - each asyncio task runs in a copy of the context it was created in, so a bind inside
    one request task is never seen by a concurrently running sibling task;
  - the value follows the logical task across `await` points even when the event loop
    resumes it later;
  - threads start with their own empty context, so thread pools do not leak bindings
    between jobs (use `wrap()` to carry the caller's binding into a worker).

The ambient map is stored as an immutable MappingProxyType and replaced on every write,
so no two contexts ever share a mutable dict.

Ambient keys owned by the store:
  correlation.id   -> TransactionContext.correlation_id
  service.id       -> TransactionContext.service_id
  user.id          -> TransactionContext.user_id (only when set)
  context.<key>    -> each annotation

Keys written with `put_ambient()` by application code are left alone by `clear()`.

Typical use
-----------
    with store.scoped(TransactionContext.create("payments")):
        logger.info("charging card")        # record carries correlation.id

    # or, for a coroutine
    await store.arun_scoped(ctx, handle_job, job)

`scoped()` / `run_scoped()` are the only supported way to nest contexts: they restore
the previous binding on every exit path, including exceptions and task cancellation.
"""

from __future__ import annotations

import contextvars
import functools
from contextlib import contextmanager
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Iterator, Mapping, TypeVar

from .context import TransactionContext

T = TypeVar("T")

CORRELATION_ID_KEY = "correlation.id"
USER_ID_KEY = "user.id"
SERVICE_ID_KEY = "service.id"
ANNOTATION_PREFIX = "context."

DEFAULT_OUTBOUND_HEADER = "X-Transaction-ID"

_EMPTY: Mapping[str, str] = MappingProxyType({})

_context_var: contextvars.ContextVar[TransactionContext | None] = contextvars.ContextVar(
    "quickpay_transaction_context", default=None
)
_ambient_var: contextvars.ContextVar[Mapping[str, str]] = contextvars.ContextVar(
    "quickpay_ambient_metadata", default=_EMPTY
)


def is_owned_key(key: str) -> bool:
    """True for ambient keys that bind()/clear() manage."""
    return key in (CORRELATION_ID_KEY, USER_ID_KEY, SERVICE_ID_KEY) or key.startswith(ANNOTATION_PREFIX)


def project(context: TransactionContext) -> dict[str, str]:
    """Ambient entries derived from a context."""
    projected = {
        CORRELATION_ID_KEY: context.correlation_id,
        SERVICE_ID_KEY: context.service_id,
    }
    if context.user_id is not None:
        projected[USER_ID_KEY] = context.user_id
    for key, value in context.annotations.items():
        projected[ANNOTATION_PREFIX + key] = value
    return projected


class ContextPropagationStore:
    """
    Facade over the module-level context variables.

    Instances hold no state of their own; every instance sees the same binding for the
    current context. A single shared instance, `store`, is exported below.
    """

    # --- binding ---
    def bind(self, context: TransactionContext | None) -> None:
        """Replace the binding for the current context; None behaves like clear()."""
        if context is None:
            self.clear()
            return
        _context_var.set(context)
        _ambient_var.set(MappingProxyType({**self._unowned(), **project(context)}))

    def current(self) -> TransactionContext | None:
        return _context_var.get()

    def correlation_id(self) -> str | None:
        context = _context_var.get()
        return context.correlation_id if context is not None else None

    def clear(self) -> None:
        """Drop the binding and every ambient key the store owns. Safe to call twice."""
        _context_var.set(None)
        _ambient_var.set(MappingProxyType(self._unowned()))

    def create_and_bind(self, service_id: str) -> TransactionContext:
        context = TransactionContext.create(service_id)
        self.bind(context)
        return context

    # --- scoped execution ---
    @contextmanager
    def scoped(self, context: TransactionContext | None) -> Iterator[TransactionContext | None]:
        """
        Install `context` for the duration of the with-block, then restore whatever
        binding and ambient metadata were active before, even when the block raises
        or the surrounding task is cancelled.
        """
        context_token = _context_var.set(_context_var.get())
        ambient_token = _ambient_var.set(_ambient_var.get())
        try:
            self.bind(context)
            yield context
        finally:
            _ambient_var.reset(ambient_token)
            _context_var.reset(context_token)

    def run_scoped(self, context: TransactionContext | None, body: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        with self.scoped(context):
            return body(*args, **kwargs)

    async def arun_scoped(
        self,
        context: TransactionContext | None,
        body: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        with self.scoped(context):
            return await body(*args, **kwargs)

    def wrap(self, fn: Callable[..., T]) -> Callable[..., T]:
        """
        Capture the caller's context so `fn` sees the same binding when it later runs
        on another thread (e.g. `executor.submit(store.wrap(job))`).
        """
        captured = contextvars.copy_context()

        @functools.wraps(fn)
        def runner(*args: Any, **kwargs: Any) -> T:
            return captured.copy().run(fn, *args, **kwargs)

        return runner

    # --- ambient metadata ---
    def ambient(self) -> Mapping[str, str]:
        """Read-only snapshot of the ambient metadata for the current context."""
        return _ambient_var.get()

    def put_ambient(self, key: str, value: str) -> None:
        _ambient_var.set(MappingProxyType({**_ambient_var.get(), key: str(value)}))

    def remove_ambient(self, key: str) -> None:
        current = _ambient_var.get()
        if key in current:
            _ambient_var.set(MappingProxyType({k: v for k, v in current.items() if k != key}))

    # --- propagation to downstream calls ---
    def outbound_headers(self, header_name: str = DEFAULT_OUTBOUND_HEADER) -> dict[str, str]:
        """Headers carrying the bound correlation id to a downstream service ({} if unbound)."""
        correlation_id = self.correlation_id()
        return {header_name: correlation_id} if correlation_id else {}

    @staticmethod
    def _unowned() -> dict[str, str]:
        return {k: v for k, v in _ambient_var.get().items() if not is_owned_key(k)}


store = ContextPropagationStore()


def current_context() -> TransactionContext | None:
    return store.current()


def current_correlation_id() -> str | None:
    return store.correlation_id()
