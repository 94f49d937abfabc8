"""OpenCV camera capture with pyzbar decoding."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, List, Optional, Sequence, Tuple

import cv2
import numpy as np
from pyzbar.pyzbar import ZBarSymbol, decode

from ..config import DebugOverlay, SessionConfig, SymbolFormat
from ..interfaces import CameraError, VideoTarget

logger = logging.getLogger(__name__)

_ZBAR_SYMBOLS = {
    SymbolFormat.CODE_128: ZBarSymbol.CODE128,
    SymbolFormat.EAN: ZBarSymbol.EAN13,
    SymbolFormat.EAN_8: ZBarSymbol.EAN8,
    SymbolFormat.CODE_39: ZBarSymbol.CODE39,
    SymbolFormat.CODE_39_VIN: ZBarSymbol.CODE39,
    SymbolFormat.CODABAR: ZBarSymbol.CODABAR,
    SymbolFormat.UPC: ZBarSymbol.UPCA,
    SymbolFormat.UPC_E: ZBarSymbol.UPCE,
}

BOX_COLOR = (0, 255, 0)
SCANLINE_COLOR = (0, 0, 255)
TEXT_COLOR = (255, 255, 255)


@dataclass(frozen=True)
class DecodedRegion:
    data: str
    polygon: Tuple[Tuple[int, int], ...]


def zbar_symbols(formats: Sequence[SymbolFormat]) -> List[ZBarSymbol]:
    symbols: List[ZBarSymbol] = []
    for fmt in formats:
        symbol = _ZBAR_SYMBOLS[fmt]
        if symbol not in symbols:
            symbols.append(symbol)
    return symbols


def decode_frame(frame: np.ndarray, symbols: Sequence[ZBarSymbol], locate: bool = True) -> List[DecodedRegion]:
    """Decode barcodes in a BGR or grayscale frame.

    When ``locate`` is off only the central horizontal band is searched.
    """

    gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY) if frame.ndim == 3 else frame
    offset = 0
    if not locate:
        band = max(1, gray.shape[0] // 4)
        offset = (gray.shape[0] - band) // 2
        gray = gray[offset : offset + band]
    regions = []
    for item in decode(gray, symbols=list(symbols)):
        polygon = tuple((int(point.x), int(point.y) + offset) for point in item.polygon)
        regions.append(DecodedRegion(data=item.data.decode("utf-8", errors="replace"), polygon=polygon))
    return regions


def draw_overlay(
    frame: np.ndarray,
    regions: Sequence[DecodedRegion],
    debug: DebugOverlay,
    fps: Optional[float] = None,
) -> np.ndarray:
    height, width = frame.shape[:2]
    if debug.draw_scanline:
        cv2.line(frame, (0, height // 2), (width, height // 2), SCANLINE_COLOR, 2)
    for region in regions:
        if not region.polygon:
            continue
        points = np.array(region.polygon, dtype=np.int32).reshape(-1, 1, 2)
        if debug.draw_bounding_box:
            cv2.polylines(frame, [points], True, BOX_COLOR, 2)
        if debug.show_pattern:
            x, y = region.polygon[0]
            cv2.putText(frame, region.data, (x, max(12, y - 6)), cv2.FONT_HERSHEY_SIMPLEX, 0.5, TEXT_COLOR, 1)
    if debug.show_frequency and fps is not None:
        cv2.putText(frame, f"{fps:.1f} fps", (8, 20), cv2.FONT_HERSHEY_SIMPLEX, 0.5, TEXT_COLOR, 1)
    return frame


class OpenCVDecodeCapability:
    """Decode capability backed by a local camera.

    Frames are read on a capture thread and shown on the target; at the configured
    frequency a frame is handed to a pool of ``num_workers`` decoders. Symbols are
    delivered to the subscribed handler on the event loop that called :meth:`start`.
    """

    def __init__(
        self,
        camera_index: int = 0,
        *,
        device_factory: Callable[[int], Any] = cv2.VideoCapture,
        decoder: Callable[..., List[DecodedRegion]] = decode_frame,
    ) -> None:
        self.camera_index = camera_index
        self._device_factory = device_factory
        self._decoder = decoder
        self._handler: Optional[Callable[[str], None]] = None
        self._thread: Optional[threading.Thread] = None
        self._stopping: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._regions: List[DecodedRegion] = []

    @property
    def running(self) -> bool:
        return self._thread is not None

    def on_detected(self, handler: Callable[[str], None]) -> None:
        self._handler = handler

    async def start(self, config: SessionConfig, target: VideoTarget) -> None:
        if self._thread is not None:
            raise CameraError("Camera capture already running")
        await self.wait_stopped()
        loop = asyncio.get_running_loop()
        device = await loop.run_in_executor(None, self._open_device, config)

        stop_event = threading.Event()
        executor = ThreadPoolExecutor(max_workers=config.num_workers, thread_name_prefix="upcscan-decode")
        thread = threading.Thread(
            target=self._capture_loop,
            args=(device, target, config, loop, executor, stop_event),
            name="upcscan-capture",
            daemon=True,
        )
        self._stop_event = stop_event
        self._executor = executor
        self._regions = []
        self._thread = thread
        thread.start()
        logger.info(
            "Camera %s started at %dx%d (%s facing, %d workers)",
            self.camera_index,
            config.width,
            config.height,
            config.facing.value,
            config.num_workers,
        )

    def stop(self) -> None:
        thread = self._thread
        if thread is None:
            return
        self._stop_event.set()
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
        self._thread = None
        self._executor = None
        self._handler = None
        if thread is not threading.current_thread():
            self._stopping = thread
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                self._join(thread)
            # on the event loop the thread winds down in the background and releases the device itself
        logger.info("Camera %s stopped", self.camera_index)

    async def wait_stopped(self) -> None:
        """Wait until the capture thread of the last session has released its device."""

        thread = self._stopping
        if thread is None:
            return
        if thread.is_alive():
            await asyncio.get_running_loop().run_in_executor(None, self._join, thread)
        if self._stopping is thread:
            self._stopping = None

    @staticmethod
    def _join(thread: threading.Thread) -> None:
        thread.join(timeout=2.0)
        if thread.is_alive():
            logger.warning("Capture thread did not stop within 2s")

    def _open_device(self, config: SessionConfig) -> Any:
        device = self._device_factory(self.camera_index)
        if not device.isOpened():
            device.release()
            raise CameraError(f"Could not open camera {self.camera_index}")
        device.set(cv2.CAP_PROP_FRAME_WIDTH, config.width)
        device.set(cv2.CAP_PROP_FRAME_HEIGHT, config.height)
        return device

    def _capture_loop(
        self,
        device: Any,
        target: VideoTarget,
        config: SessionConfig,
        loop: asyncio.AbstractEventLoop,
        executor: ThreadPoolExecutor,
        stop_event: threading.Event,
    ) -> None:
        symbols = zbar_symbols(config.formats)
        interval = 1.0 / config.frequency
        next_decode = 0.0
        frames = 0
        window_start = time.monotonic()
        fps: Optional[float] = None
        try:
            while not stop_event.is_set():
                ok, frame = device.read()
                if not ok or frame is None:
                    time.sleep(0.05)
                    continue
                now = time.monotonic()
                if now >= next_decode:
                    next_decode = now + interval
                    executor.submit(self._decode, frame.copy(), symbols, config.locate, loop, stop_event)

                frames += 1
                if now - window_start >= 1.0:
                    fps = frames / (now - window_start)
                    frames = 0
                    window_start = now
                if stop_event.is_set():
                    break
                target.show_frame(draw_overlay(frame, self._regions, config.debug, fps))
        except Exception:  # noqa: BLE001 - thread boundary
            logger.exception("Capture loop failed")
        finally:
            device.release()

    def _decode(
        self,
        frame: np.ndarray,
        symbols: Sequence[ZBarSymbol],
        locate: bool,
        loop: asyncio.AbstractEventLoop,
        stop_event: threading.Event,
    ) -> None:
        if stop_event.is_set():
            return
        try:
            regions = self._decoder(frame, symbols, locate)
        except Exception:  # noqa: BLE001 - worker boundary
            logger.exception("Barcode decode failed")
            return
        self._regions = regions
        for region in regions:
            if region.data and not stop_event.is_set() and not loop.is_closed():
                loop.call_soon_threadsafe(partial(self._deliver, region.data, stop_event))

    def _deliver(self, symbol: str, stop_event: threading.Event) -> None:
        handler = self._handler
        if stop_event.is_set() or handler is None:
            return
        logger.debug("Detected symbol %r", symbol)
        handler(symbol)
