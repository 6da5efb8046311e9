"""pywhatif - What-if helper for SignalK servers: browse, override and create data paths."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pywhatif")
except PackageNotFoundError:
    __version__ = "0+local"
from pywhatif._constants import PLUGIN_ID, SOURCE_LABEL
from pywhatif.broadcaster import LiveUpdateBroadcaster
from pywhatif.config import WhatIfConfig
from pywhatif.exceptions import (
    WhatIfConfigError,
    WhatIfError,
    WhatIfInjectionError,
    WhatIfInterceptError,
    WhatIfMessageError,
    WhatIfPathError,
    WhatIfTransportError,
)
from pywhatif.host import ChangeFeed, DataTreeHost, MemoryHost, WriteInterceptHost
from pywhatif.injector import ValueInjector, label_with_suffix
from pywhatif.intercept import WriteInterceptRegistry
from pywhatif.models import (
    ChangeEvent,
    PathFilter,
    PathMeta,
    PathSnapshot,
    PutResult,
    PutState,
    UnitInfo,
    WriteInterceptor,
    Zone,
)
from pywhatif.plugin import WhatIfHelper
from pywhatif.registry import PathRegistry
from pywhatif.values import parse_value_input

__all__ = [
    "PLUGIN_ID",
    "SOURCE_LABEL",
    "ChangeEvent",
    "ChangeFeed",
    "DataTreeHost",
    "LiveUpdateBroadcaster",
    "MemoryHost",
    "PathFilter",
    "PathMeta",
    "PathRegistry",
    "PathSnapshot",
    "PutResult",
    "PutState",
    "UnitInfo",
    "ValueInjector",
    "WhatIfConfig",
    "WhatIfConfigError",
    "WhatIfError",
    "WhatIfHelper",
    "WhatIfInjectionError",
    "WhatIfInterceptError",
    "WhatIfMessageError",
    "WhatIfPathError",
    "WhatIfTransportError",
    "WriteInterceptHost",
    "WriteInterceptRegistry",
    "WriteInterceptor",
    "Zone",
    "__version__",
    "label_with_suffix",
    "parse_value_input",
]
