from __future__ import annotations

import json
import os
import sys
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Tuple

from dotenv import load_dotenv


class CameraFacing(str, Enum):
    ENVIRONMENT = "environment"
    USER = "user"


class SymbolFormat(str, Enum):
    CODE_128 = "code_128_reader"
    EAN = "ean_reader"
    EAN_8 = "ean_8_reader"
    CODE_39 = "code_39_reader"
    CODE_39_VIN = "code_39_vin_reader"
    CODABAR = "codabar_reader"
    UPC = "upc_reader"
    UPC_E = "upc_e_reader"


DEFAULT_FORMATS: Tuple[SymbolFormat, ...] = tuple(SymbolFormat)


@dataclass(frozen=True)
class DebugOverlay:
    draw_bounding_box: bool = True
    show_frequency: bool = False
    draw_scanline: bool = True
    show_pattern: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "DebugOverlay":
        return cls(
            draw_bounding_box=bool(data.get("draw_bounding_box", True)),
            show_frequency=bool(data.get("show_frequency", False)),
            draw_scanline=bool(data.get("draw_scanline", True)),
            show_pattern=bool(data.get("show_pattern", False)),
        )


@dataclass(frozen=True)
class SessionConfig:
    """Capture settings handed to the decode capability when a session opens."""

    width: int = 640
    height: int = 480
    facing: CameraFacing = CameraFacing.ENVIRONMENT
    formats: Tuple[SymbolFormat, ...] = DEFAULT_FORMATS
    locate: bool = True
    num_workers: int = 2
    frequency: float = 10
    debug: DebugOverlay = field(default_factory=DebugOverlay)

    def __post_init__(self) -> None:
        if self.width < 1 or self.height < 1:
            raise ValueError("width and height must be >= 1")
        if not self.formats:
            raise ValueError("at least one symbol format is required")
        if self.num_workers < 1:
            raise ValueError("num_workers must be >= 1")
        if self.frequency <= 0:
            raise ValueError("frequency must be > 0")

    def to_dict(self) -> Dict[str, object]:
        data = asdict(self)
        data["facing"] = self.facing.value
        data["formats"] = [fmt.value for fmt in self.formats]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "SessionConfig":
        formats = data.get("formats")
        return cls(
            width=int(data.get("width", 640)),
            height=int(data.get("height", 480)),
            facing=CameraFacing(data.get("facing", CameraFacing.ENVIRONMENT.value)),
            formats=tuple(SymbolFormat(value) for value in formats) if formats is not None else DEFAULT_FORMATS,
            locate=bool(data.get("locate", True)),
            num_workers=int(data.get("num_workers", 2)),
            frequency=float(data.get("frequency", 10)),
            debug=DebugOverlay.from_dict(data.get("debug", {})),
        )


@dataclass
class AppConfig:
    lookup_url: Optional[str] = None
    request_timeout: float = 10.0
    notification_duration_ms: int = 7000
    camera_index: int = 0
    session: SessionConfig = field(default_factory=SessionConfig)

    def __post_init__(self) -> None:
        if not self.request_timeout > 0:
            raise ValueError("request_timeout must be > 0")
        if self.notification_duration_ms < 1:
            raise ValueError("notification_duration_ms must be >= 1")
        if self.camera_index < 0:
            raise ValueError("camera_index must be >= 0")
        if self.lookup_url is not None:
            self.lookup_url = self.lookup_url.strip() or None

    def to_dict(self) -> Dict[str, object]:
        return {
            "lookup_url": self.lookup_url,
            "request_timeout": self.request_timeout,
            "notification_duration_ms": self.notification_duration_ms,
            "camera_index": self.camera_index,
            "session": self.session.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "AppConfig":
        return cls(
            lookup_url=str(data["lookup_url"]) if data.get("lookup_url") is not None else None,
            request_timeout=float(data.get("request_timeout", 10.0)),
            notification_duration_ms=int(data.get("notification_duration_ms", 7000)),
            camera_index=int(data.get("camera_index", 0)),
            session=SessionConfig.from_dict(data.get("session", {})),
        )


class ConfigRepository:
    """Persists the application configuration to the filesystem."""

    def __init__(self, path: Optional[Path] = None) -> None:
        default_path = Path.home() / ".config" / "upcscan" / "config.json"
        self.path = path or default_path

    def load(self) -> AppConfig:
        if not self.path.exists():
            return AppConfig()
        data = json.loads(self.path.read_text(encoding="utf-8"))
        return AppConfig.from_dict(data)

    def save(self, config: AppConfig) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(config.to_dict(), indent=2)
        self.path.write_text(payload, encoding="utf-8")


LOOKUP_URL_ENV = "UPCSCAN_LOOKUP_URL"
REQUEST_TIMEOUT_ENV = "UPCSCAN_REQUEST_TIMEOUT"
ENV_FILE_NAME = ".env"


def bundled_env_file() -> Optional[Path]:
    """Return the ``.env`` shipped inside a PyInstaller bundle, if any."""

    bundle_dir = getattr(sys, "_MEIPASS", None)
    if not getattr(sys, "frozen", False) or bundle_dir is None:
        return None
    path = Path(bundle_dir) / ENV_FILE_NAME
    return path if path.exists() else None


def load_app_config(repository: Optional[ConfigRepository] = None, env_file: Optional[Path] = None) -> AppConfig:
    """Load the stored configuration and apply deployment overrides from the environment.

    Raises ``ValueError`` when an override is not a valid setting.
    """

    load_dotenv(dotenv_path=env_file or bundled_env_file())
    config = (repository or ConfigRepository()).load()
    overrides: Dict[str, object] = {}
    lookup_url = os.getenv(LOOKUP_URL_ENV)
    if lookup_url:
        overrides["lookup_url"] = lookup_url
    timeout = os.getenv(REQUEST_TIMEOUT_ENV)
    if timeout:
        try:
            overrides["request_timeout"] = float(timeout)
        except ValueError:
            raise ValueError(f"{REQUEST_TIMEOUT_ENV} must be a number of seconds, got {timeout!r}") from None
    # replace() re-runs __post_init__ validation on the overridden values
    return replace(config, **overrides)
