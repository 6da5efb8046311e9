"""Value injection into the host change bus.

Turns a ``(path, value, source?)`` request into a one-value delta addressed
to the plugin's vessel context and hands it to the host. Also owns the
source-label derivation rule for injected values.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any

from pywhatif._constants import PLUGIN_ID, SOURCE_LABEL, SOURCE_SUFFIX
from pywhatif._logsafe import loggable
from pywhatif._transport import TreeReader
from pywhatif.exceptions import WhatIfError, WhatIfInjectionError
from pywhatif.flatten import source_of
from pywhatif.host import DataTreeHost
from pywhatif.models import Delta, PathMeta

_logger = logging.getLogger(__name__)


def label_with_suffix(source: str | None) -> str:
    """Derive the label for a value injected over one labelled *source*.

    Trailing ``.whatif-helper`` suffixes are stripped before the suffix is
    appended once, so re-injecting over an injected value is idempotent.
    """
    if not source:
        return SOURCE_LABEL
    base = source
    while base.endswith(SOURCE_SUFFIX):
        base = base[: -len(SOURCE_SUFFIX)]
    if not base or base == SOURCE_LABEL:
        return SOURCE_LABEL
    return f"{base}{SOURCE_SUFFIX}"


class ValueInjector:
    """Submits source-labelled deltas for single paths.

    Parameters
    ----------
    host
        Data tree host receiving the deltas.
    context
        Vessel context every delta is addressed to.
    reader
        HTTP reader used for the diagnostic read-back; ``None`` disables it.
    verify_enabled
        Schedule the read-back after each injection.
    verify_delay
        Seconds before the read-back runs.
    """

    def __init__(
        self,
        host: DataTreeHost,
        *,
        context: str,
        reader: TreeReader | None = None,
        verify_enabled: bool = True,
        verify_delay: float = 0.5,
    ) -> None:
        self._host = host
        self._context = context
        self._reader = reader
        self._verify_enabled = verify_enabled and reader is not None
        self._verify_delay = verify_delay
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def context(self) -> str:
        return self._context

    def derive_source_label(self, path: str) -> str:
        """Label for a value injected at *path* without an explicit source."""
        try:
            current = self._host.get_self_path(path)
        except Exception:
            _logger.debug("Could not get original source for %s, using default", path, exc_info=True)
            return SOURCE_LABEL
        return label_with_suffix(source_of(current))

    async def inject(self, path: str, value: Any, source: str | None = None) -> str:
        """Inject *value* at *path* and return the source label used.

        An explicit *source* is used verbatim. The call resolves once the
        host accepted the delta, not once the tree applied it.

        Raises
        ------
        WhatIfInjectionError
            The host change bus raised while accepting the delta.
        """
        label = source if source else self.derive_source_label(path)
        _logger.debug("inject path=%s value=%s source=%s", path, loggable(value), label)
        await self._submit(Delta.single_value(self._context, path, value, label), path)
        if self._verify_enabled:
            self._schedule_verification(path)
        return label

    async def inject_meta(self, path: str, meta: PathMeta) -> None:
        """Publish *meta* for *path* as a metadata delta."""
        await self._submit(Delta.single_meta(self._context, path, meta.to_wire(), SOURCE_LABEL), path)

    async def _submit(self, delta: Delta, path: str) -> None:
        wire = delta.to_wire()
        _logger.debug("Sending delta to %s: %s", self._context, loggable(wire))
        # handle_message is called before the first await so that per-path
        # submission order always equals call order.
        try:
            result = self._host.handle_message(PLUGIN_ID, wire)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            raise WhatIfInjectionError(f"Failed to inject {path}: {exc}", path=path) from exc

    # ------------------------------------------------------------------
    # Diagnostic read-back
    # ------------------------------------------------------------------

    def _schedule_verification(self, path: str) -> None:
        task = asyncio.get_running_loop().create_task(self._verify_later(path))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _verify_later(self, path: str) -> None:
        reader = self._reader
        if reader is None:
            return
        await asyncio.sleep(self._verify_delay)
        try:
            data = await reader.fetch_path(path)
        except WhatIfError as exc:
            _logger.debug("Verification HTTP error for %s: %s", path, exc)
        except Exception:
            _logger.debug("Verification HTTP failed for %s", path, exc_info=True)
        else:
            _logger.debug("Verification HTTP: %s = %s", path, loggable(data))

    @property
    def pending_verifications(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every scheduled read-back to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
