"""Qt-based desktop application entry point for upcscan."""

from __future__ import annotations

import asyncio
import logging
import sys
import threading
from typing import Any, Optional

import cv2
from PySide6.QtCore import QObject, Qt, QThread, Signal, Slot
from PySide6.QtGui import QImage, QPixmap
from PySide6.QtWidgets import (
    QApplication,
    QHBoxLayout,
    QLabel,
    QListWidget,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from ..config import AppConfig, load_app_config
from ..events import DetectionEvent, Event, Severity, StateChangeEvent
from ..lookup import LookupClient
from ..platform import OpenCVDecodeCapability
from ..session import ScanSessionController, SessionState

logger = logging.getLogger(__name__)

PLACEHOLDER_TEXT = "Initializing camera..."
IDLE_TEXT = "Position the barcode within the viewfinder.\nThe scanner will automatically detect and scan the code."


class SessionWorker(QObject):
    """Runs one scan session on an asyncio loop inside a worker thread.

    The worker doubles as the video target and the notification sink; both are
    forwarded to the GUI thread through queued signals.
    """

    frame_ready = Signal(QImage)
    released = Signal()
    scanned = Signal(str)
    notification = Signal(str, str, str, int)
    state_changed = Signal(str)
    finished = Signal()

    def __init__(self, config: AppConfig) -> None:
        super().__init__()
        self._config = config
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._controller: Optional[ScanSessionController] = None
        self._close_requested = threading.Event()

    @Slot()
    def run(self) -> None:
        try:
            asyncio.run(self._run())
        except Exception:  # noqa: BLE001 - report and let the thread finish
            logger.exception("Scan session worker failed")
        finally:
            self._loop = None
            self.finished.emit()

    async def _run(self) -> None:
        self._loop = asyncio.get_running_loop()
        controller = ScanSessionController(
            capability=OpenCVDecodeCapability(self._config.camera_index),
            lookup=LookupClient(self._config.lookup_url, timeout=self._config.request_timeout),
            notifier=self,
            notification_duration_ms=self._config.notification_duration_ms,
            event_callback=self._handle_event,
        )
        self._controller = controller
        if self._close_requested.is_set():
            logger.info("Scan cancelled before the camera was opened")
            return
        closed = asyncio.Event()
        await controller.open(self._config.session, self, self.scanned.emit, closed.set)
        if self._close_requested.is_set():
            await controller.close()
        if controller.state != SessionState.IDLE:
            await closed.wait()

    def request_close(self) -> None:
        """Thread-safe close request from the GUI thread.

        A request that arrives before the session loop is running is kept and
        honoured by :meth:`_run`.
        """

        self._close_requested.set()
        loop, controller = self._loop, self._controller
        if loop is None or controller is None or loop.is_closed():
            return
        asyncio.run_coroutine_threadsafe(controller.close(), loop)

    def show_frame(self, frame: Any) -> None:
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        height, width, channels = rgb.shape
        image = QImage(rgb.data, width, height, channels * width, QImage.Format.Format_RGB888)
        self.frame_ready.emit(image.copy())

    def release(self) -> None:
        self.released.emit()

    def notify(self, title: str, description: str, severity: Severity, duration_ms: int) -> None:
        self.notification.emit(title, description, severity.value, duration_ms)

    def _handle_event(self, event: Event) -> None:
        if isinstance(event, StateChangeEvent):
            self.state_changed.emit(event.state)
        elif isinstance(event, DetectionEvent):
            logger.info("Scanned %s", event.symbol)


class MainWindow(QMainWindow):
    """Primary application window."""

    def __init__(self, config: Optional[AppConfig] = None) -> None:
        super().__init__()
        self.setWindowTitle("Scan UPC Code")
        self.resize(720, 640)

        self._config = config or load_app_config()
        self._worker_thread: Optional[QThread] = None
        self._worker: Optional[SessionWorker] = None

        self._build_ui()
        self._reset_controls()

    def _build_ui(self) -> None:
        central = QWidget(self)
        layout = QVBoxLayout(central)

        self.viewport = QLabel(IDLE_TEXT)
        self.viewport.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.viewport.setMinimumSize(self._config.session.width, self._config.session.height)
        self.viewport.setStyleSheet("background-color: #202020; color: #c0c0c0;")
        layout.addWidget(self.viewport, stretch=1)

        control_layout = QHBoxLayout()
        self.scan_button = QPushButton("Scan")
        self.scan_button.clicked.connect(self.start_scan)
        control_layout.addWidget(self.scan_button)

        self.cancel_button = QPushButton("Cancel")
        self.cancel_button.clicked.connect(self.cancel_scan)
        control_layout.addWidget(self.cancel_button)
        layout.addLayout(control_layout)

        self.scanned_list = QListWidget()
        self.scanned_list.setMaximumHeight(120)
        layout.addWidget(self.scanned_list)

        self.setCentralWidget(central)

    def start_scan(self) -> None:
        if self._worker_thread is not None:
            return
        worker = SessionWorker(self._config)
        thread = QThread(self)
        worker.moveToThread(thread)
        thread.started.connect(worker.run)
        worker.finished.connect(thread.quit)
        worker.finished.connect(worker.deleteLater)
        thread.finished.connect(thread.deleteLater)
        worker.frame_ready.connect(self._on_frame)
        worker.released.connect(self._on_released)
        worker.scanned.connect(self._on_scanned)
        worker.notification.connect(self._on_notification)
        worker.state_changed.connect(self._on_state_change)
        thread.finished.connect(self._on_worker_finished)

        self._worker = worker
        self._worker_thread = thread
        self.scan_button.setEnabled(False)
        self.cancel_button.setEnabled(True)
        self.viewport.setText(PLACEHOLDER_TEXT)
        thread.start()

    def cancel_scan(self) -> None:
        if self._worker is not None:
            self._worker.request_close()

    def _on_frame(self, image: QImage) -> None:
        pixmap = QPixmap.fromImage(image).scaled(
            self.viewport.size(), Qt.AspectRatioMode.KeepAspectRatio, Qt.TransformationMode.SmoothTransformation
        )
        self.viewport.setPixmap(pixmap)

    def _on_released(self) -> None:
        self.viewport.clear()
        self.viewport.setText(IDLE_TEXT)

    def _on_scanned(self, code: str) -> None:
        self.scanned_list.insertItem(0, code)

    def _on_notification(self, title: str, description: str, severity: str, duration_ms: int) -> None:
        color = "#c62828" if severity == Severity.DESTRUCTIVE.value else "#2e7d32"
        self.statusBar().setStyleSheet(f"color: {color};")
        text = f"{title}: {description}".replace("\n", " | ")
        self.statusBar().showMessage(text, duration_ms)

    def _on_state_change(self, state: str) -> None:
        if state == SessionState.INITIALIZING.value:
            self.viewport.setText(PLACEHOLDER_TEXT)

    def _on_worker_finished(self) -> None:
        self._worker = None
        self._worker_thread = None
        self._reset_controls()

    def _reset_controls(self) -> None:
        self.scan_button.setEnabled(True)
        self.cancel_button.setEnabled(False)

    def closeEvent(self, event) -> None:  # type: ignore[override]
        if self._worker is not None and self._worker_thread is not None:
            self._worker.request_close()
            self._worker_thread.quit()
            self._worker_thread.wait(2000)
        super().closeEvent(event)


def main() -> None:
    """Launch the GUI application."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = QApplication(sys.argv)
    try:
        config = load_app_config()
    except ValueError as exc:
        logger.error("Invalid configuration: %s", exc)
        QMessageBox.critical(None, "Invalid configuration", str(exc))
        sys.exit(1)
    window = MainWindow(config)
    window.show()
    sys.exit(app.exec())


__all__ = ["main", "MainWindow", "SessionWorker"]
