"""Write interception (PUT handler) registry.

Each path moves through ``unregistered -> registered -> unregistered``; a
second registration for an active path is refused, never replaced.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from pywhatif._constants import SOURCE_LABEL
from pywhatif._logsafe import loggable
from pywhatif.exceptions import WhatIfInterceptError
from pywhatif.host import PutHandler
from pywhatif.injector import ValueInjector
from pywhatif.models import PutResult, WriteInterceptor

_logger = logging.getLogger(__name__)


class WriteInterceptRegistry:
    """Installs and tracks at most one PUT handler per path.

    Parameters
    ----------
    host
        Host exposing ``register_put_handler``. Hosts without it leave the
        registry usable for reads, but every ``register`` raises.
    injector
        Injector that accepted writes are delegated to.
    """

    def __init__(self, host: Any, injector: ValueInjector) -> None:
        self._host = host
        self._injector = injector
        self._interceptors: dict[str, WriteInterceptor] = {}
        self._unregister_fns: dict[str, Callable[[], None]] = {}

    @property
    def available(self) -> bool:
        """Whether the host supports write interception at all."""
        return callable(getattr(self._host, "register_put_handler", None))

    def _build_handler(self) -> PutHandler:
        injector = self._injector

        async def _handler(context: str, put_path: str, value: Any) -> PutResult:
            # put_path comes from the invocation, not the registration, so
            # host-side path aliases still land on the requested path.
            _logger.debug("PUT received for %s (%s): %s", put_path, context, loggable(value))
            try:
                await injector.inject(put_path, value)
            except Exception as exc:
                _logger.debug("PUT for %s failed", put_path, exc_info=True)
                return PutResult.failed(str(exc) or "Unknown error")
            return PutResult.completed()

        return _handler

    def register(self, path: str, *, accept_all_sources: bool = False) -> WriteInterceptor:
        """Install a PUT handler for *path* and return its record.

        When *path* already has a handler the existing record is returned
        unchanged.

        Raises
        ------
        WhatIfInterceptError
            The host lacks write interception or refused the handler.
        """
        existing = self._interceptors.get(path)
        if existing is not None:
            _logger.debug("PUT handler already registered for %s", path)
            return existing

        if not self.available:
            raise WhatIfInterceptError("Host does not support PUT handlers", path=path)

        _logger.debug("Registering PUT handler for %s", path)
        try:
            unregister = self._host.register_put_handler(
                self._injector.context,
                path,
                self._build_handler(),
                None if accept_all_sources else SOURCE_LABEL,
            )
        except Exception as exc:
            raise WhatIfInterceptError(f"Failed to register PUT handler for {path}: {exc}", path=path) from exc

        record = WriteInterceptor(path=path, accept_all_sources=accept_all_sources)
        self._interceptors[path] = record
        self._unregister_fns[path] = unregister
        return record

    def unregister(self, path: str) -> bool:
        """Remove the handler for *path*; ``False`` when none was registered.

        Bookkeeping is cleared even if the host's deregistration raises;
        that error is re-raised as :class:`WhatIfInterceptError`.
        """
        unregister = self._unregister_fns.pop(path, None)
        if unregister is None:
            return False

        _logger.debug("Unregistering PUT handler for %s", path)
        del self._interceptors[path]
        try:
            unregister()
        except Exception as exc:
            raise WhatIfInterceptError(f"Failed to unregister PUT handler for {path}: {exc}", path=path) from exc
        return True

    def list(self) -> list[WriteInterceptor]:
        return list(self._interceptors.values())

    def has(self, path: str) -> bool:
        return path in self._interceptors

    def get(self, path: str) -> WriteInterceptor | None:
        return self._interceptors.get(path)

    def teardown_all(self) -> None:
        """Unregister every handler (plugin shutdown)."""
        for path in list(self._interceptors):
            try:
                self.unregister(path)
            except WhatIfInterceptError:
                _logger.debug("PUT handler teardown failed for %s", path, exc_info=True)
