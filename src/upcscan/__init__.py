"""UPC scanning core: camera session, lookup client and notifications."""

from .config import AppConfig, CameraFacing, ConfigRepository, DebugOverlay, SessionConfig, SymbolFormat, load_app_config
from .events import ErrorKind, Notification, Severity
from .interfaces import AlreadyOpenError, CameraError
from .lookup import LookupClient, LookupFailure, LookupOutcome, LookupSuccess
from .notifications import LoggingNotificationSink, render_outcome
from .session import ScanSessionController, SessionState

__all__ = [
    "AppConfig",
    "CameraFacing",
    "ConfigRepository",
    "DebugOverlay",
    "SessionConfig",
    "SymbolFormat",
    "load_app_config",
    "ErrorKind",
    "Notification",
    "Severity",
    "AlreadyOpenError",
    "CameraError",
    "LookupClient",
    "LookupFailure",
    "LookupOutcome",
    "LookupSuccess",
    "LoggingNotificationSink",
    "render_outcome",
    "ScanSessionController",
    "SessionState",
]
