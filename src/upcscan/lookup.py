"""HTTP client that resolves a decoded symbol through the lookup webhook."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Optional

import aiohttp

from .events import ErrorKind

logger = logging.getLogger(__name__)

DEFAULT_SUCCESS_MESSAGE = "UPC information retrieved successfully."
NOT_CONFIGURED_MESSAGE = "lookup endpoint not configured"


@dataclass(frozen=True)
class LookupSuccess:
    message: str


@dataclass(frozen=True)
class LookupFailure:
    message: str
    cause: ErrorKind
    status: Optional[int] = None


LookupOutcome = LookupSuccess | LookupFailure


def normalize_message(message: str) -> str:
    """Turn literal ``\\n`` sequences sent by the service into real line breaks."""

    return message.replace("\\n", "\n")


def _message_field(payload: object) -> Optional[str]:
    if isinstance(payload, dict):
        value = payload.get("message")
        if value:
            return str(value)
    return None


class LookupClient:
    """Single-shot lookup of one symbol per call; no retries, no pooled connections."""

    def __init__(self, endpoint: Optional[str], timeout: float = 10.0) -> None:
        self.endpoint = endpoint
        self.timeout = timeout

    async def lookup(self, symbol: str) -> LookupOutcome:
        if not self.endpoint:
            logger.warning("Lookup skipped for %s: endpoint not configured", symbol)
            return LookupFailure(message=NOT_CONFIGURED_MESSAGE, cause=ErrorKind.CONFIG)

        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout)) as session:
                async with session.post(
                    self.endpoint,
                    json={"upc": symbol},
                    headers={"Content-Type": "application/json"},
                ) as response:
                    body = await response.read()
                    if 200 <= response.status < 300:
                        return self._parse_success(body)
                    return self._parse_error(response.status, response.reason, body)
        except asyncio.TimeoutError:
            logger.error("Lookup for %s timed out after %ss", symbol, self.timeout)
            return LookupFailure(message=f"Request timed out after {self.timeout:g}s.", cause=ErrorKind.NETWORK)
        except (aiohttp.ClientError, OSError) as exc:
            logger.error("Lookup for %s failed: %s", symbol, exc)
            return LookupFailure(message=str(exc), cause=ErrorKind.NETWORK)

    @staticmethod
    def _parse_success(body: bytes) -> LookupOutcome:
        try:
            payload = json.loads(body)
        except ValueError as exc:
            logger.error("Lookup returned a malformed body: %s", exc)
            return LookupFailure(message=str(exc), cause=ErrorKind.PARSE)
        message = _message_field(payload) or DEFAULT_SUCCESS_MESSAGE
        return LookupSuccess(message=normalize_message(message))

    @staticmethod
    def _parse_error(status: int, reason: Optional[str], body: bytes) -> LookupOutcome:
        message = f"HTTP {status}: {reason or ''}".rstrip()
        try:
            message = _message_field(json.loads(body)) or message
        except ValueError:
            pass
        logger.warning("Lookup rejected with HTTP %s: %s", status, message)
        return LookupFailure(message=message, cause=ErrorKind.HTTP, status=status)
