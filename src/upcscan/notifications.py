from __future__ import annotations

import logging

from .events import ErrorKind, Notification, Severity
from .lookup import LookupFailure, LookupOutcome, LookupSuccess

logger = logging.getLogger(__name__)

CAMERA_ERROR_TITLE = "Camera Error"
CAMERA_ERROR_DESCRIPTION = "Could not access camera for scanning."
NETWORK_RETRY_HINT = "Could not retrieve UPC information."

_FAILURE_TITLES = {
    ErrorKind.CONFIG: "Lookup Not Configured",
    ErrorKind.HTTP: "Failed to Get UPC Info",
    ErrorKind.NETWORK: "Network Error",
    ErrorKind.PARSE: "Network Error",
}


def render_outcome(outcome: LookupOutcome, duration_ms: int) -> Notification:
    """Build the single user-facing message for a lookup outcome."""

    if isinstance(outcome, LookupSuccess):
        return Notification("UPC Information", outcome.message, Severity.NORMAL, duration_ms)
    return Notification(
        _FAILURE_TITLES[outcome.cause],
        _failure_description(outcome),
        Severity.DESTRUCTIVE,
        duration_ms,
    )


def _failure_description(outcome: LookupFailure) -> str:
    if outcome.cause in {ErrorKind.NETWORK, ErrorKind.PARSE}:
        return f"{NETWORK_RETRY_HINT} {outcome.message or 'Please try again.'}"
    return outcome.message


def camera_error(duration_ms: int) -> Notification:
    return Notification(CAMERA_ERROR_TITLE, CAMERA_ERROR_DESCRIPTION, Severity.DESTRUCTIVE, duration_ms)


class LoggingNotificationSink:
    """Sink for headless use: every notification becomes a log record."""

    def notify(self, title: str, description: str, severity: Severity, duration_ms: int) -> None:
        level = logging.ERROR if severity is Severity.DESTRUCTIVE else logging.INFO
        logger.log(level, "%s: %s", title, description)
