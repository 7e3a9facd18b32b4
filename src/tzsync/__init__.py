"""tzsync - keep the system timezone in step with the network location."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("tzsync")
except PackageNotFoundError:
    __version__ = "0+local"
from tzsync.action import ReconciliationAction
from tzsync.applier import TimezoneApplier
from tzsync.bus import Bus, BusMessage, MatchRule, Subscription
from tzsync.config import TzSyncConfig
from tzsync.exceptions import (
    ApplyError,
    BusCallError,
    BusDisconnectedError,
    BusError,
    DecodeError,
    SubscriptionError,
    TimezoneLookupError,
    TzSyncConfigError,
    TzSyncError,
)
from tzsync.loop import LoopState, ReconciliationLoop
from tzsync.models import (
    BusEvent,
    QualifyingCondition,
    ReconciliationOutcome,
    ReconciliationResult,
)
from tzsync.resolver import TimezoneResolver
from tzsync.watcher import EventStream, SignalWatcher, decode_event, matches

__all__ = [
    "__version__",
    "ApplyError",
    "Bus",
    "BusCallError",
    "BusDisconnectedError",
    "BusError",
    "BusEvent",
    "BusMessage",
    "DecodeError",
    "EventStream",
    "LoopState",
    "MatchRule",
    "QualifyingCondition",
    "ReconciliationAction",
    "ReconciliationLoop",
    "ReconciliationOutcome",
    "ReconciliationResult",
    "SignalWatcher",
    "Subscription",
    "SubscriptionError",
    "TimezoneApplier",
    "TimezoneLookupError",
    "TimezoneResolver",
    "TzSyncConfig",
    "TzSyncConfigError",
    "TzSyncError",
    "decode_event",
    "matches",
]
