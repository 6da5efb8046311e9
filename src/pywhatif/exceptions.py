"""Custom exception hierarchy for pywhatif."""

from __future__ import annotations


class WhatIfError(Exception):
    """Base exception for all pywhatif errors."""


class WhatIfConfigError(WhatIfError):
    """Invalid or missing configuration."""


class WhatIfPathError(WhatIfError):
    """Path does not follow the dot-separated SignalK path syntax."""

    def __init__(self, message: str, *, path: str = "") -> None:
        self.path = path
        super().__init__(message)


class WhatIfInjectionError(WhatIfError):
    """The host change bus rejected or failed an injected delta."""

    def __init__(self, message: str, *, path: str = "") -> None:
        self.path = path
        super().__init__(message)


class WhatIfInterceptError(WhatIfError):
    """Write interception is unavailable or the host refused the handler.

    Raised when the host exposes no PUT handler mechanism at all, or when
    installing/uninstalling a handler fails inside the host.
    """

    def __init__(self, message: str, *, path: str = "") -> None:
        self.path = path
        super().__init__(message)


class WhatIfTransportError(WhatIfError):
    """HTTP-level failure talking to the server (network, non-200, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class WhatIfMessageError(WhatIfError):
    """Malformed or unknown message received on the live update stream."""
