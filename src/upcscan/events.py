from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Severity(str, Enum):
    NORMAL = "normal"
    DESTRUCTIVE = "destructive"


class ErrorKind(str, Enum):
    CAMERA = "camera"
    CONFIG = "config"
    HTTP = "http"
    NETWORK = "network"
    PARSE = "parse"


@dataclass(frozen=True)
class Notification:
    title: str
    description: str
    severity: Severity = Severity.NORMAL
    duration_ms: int = 7000


@dataclass(frozen=True)
class DetectionEvent:
    timestamp: datetime
    symbol: str


@dataclass(frozen=True)
class ErrorEvent:
    timestamp: datetime
    message: str
    kind: ErrorKind


@dataclass(frozen=True)
class StateChangeEvent:
    timestamp: datetime
    state: str


Event = DetectionEvent | ErrorEvent | StateChangeEvent
