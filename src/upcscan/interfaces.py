from __future__ import annotations

from typing import Any, Callable, Protocol

from .config import SessionConfig
from .events import Severity
from .lookup import LookupOutcome


class CameraError(RuntimeError):
    """Raised when the decode capability cannot acquire the camera."""


class AlreadyOpenError(RuntimeError):
    """Raised when a scan session is opened while another one is live."""


class VideoTarget(Protocol):
    def show_frame(self, frame: Any) -> None:
        """Render a captured frame."""

    def release(self) -> None:
        """Drop any frame currently shown and give the surface back to its owner."""


class DecodeCapability(Protocol):
    async def start(self, config: SessionConfig, target: VideoTarget) -> None:
        """Acquire the camera and begin emitting decoded symbols."""

    def stop(self) -> None:
        """Stop capturing; no symbols are emitted afterwards."""

    def on_detected(self, handler: Callable[[str], None]) -> None:
        """Subscribe the single detection handler."""


class LookupService(Protocol):
    async def lookup(self, symbol: str) -> LookupOutcome:
        """Resolve a symbol to a human readable outcome. Never raises."""


class NotificationSink(Protocol):
    def notify(self, title: str, description: str, severity: Severity, duration_ms: int) -> None:
        """Show a transient message to the user."""
