from __future__ import annotations

import logging
import threading
import time
import unicodedata
from contextlib import suppress
from typing import Any, Callable, Optional

from checkin_app.errors import DeviceError

log = logging.getLogger(__name__)

DEFAULT_FPS = 10
DEFAULT_BOX_SIZE = 250
DEDUP_INTERVAL_SECONDS = 0.8
PREVIEW_INTERVAL_SECONDS = 0.07
PREVIEW_MAX_WIDTH = 480
STOP_TIMEOUT_SECONDS = 1.5
MAX_FAILED_READS_SECONDS = 3.0

MISSING_DEPENDENCIES_MESSAGE = (
    "Missing QR scanner dependencies. Install OpenCV (cv2) and zxing-cpp to enable scanning."
)
OPEN_FAILED_MESSAGE = "Unable to access the camera. Check that it is connected and not used by another app."
FRAMES_LOST_MESSAGE = "The camera stopped delivering frames. Check the connection or camera permissions."


def _decode_symbol_data(raw: bytes | str) -> str:
    if not raw:
        return ""

    if isinstance(raw, str):
        decoded = raw
    else:
        try:
            decoded = raw.decode("utf-8")
        except UnicodeDecodeError:
            decoded = raw.decode("utf-8", errors="ignore")

    normalized = unicodedata.normalize("NFC", decoded)
    return normalized.strip()


def crop_detection_region(frame: Any, box_size: int) -> Any:
    """Return the centred square of ``frame`` that decoding is limited to."""

    height, width = frame.shape[:2]
    size = min(box_size, height, width)
    top = (height - size) // 2
    left = (width - size) // 2
    return frame[top:top + size, left:left + size]


class QRScanner:
    """A single decode loop bound to one camera index.

    The loop runs on a daemon thread. In single-shot mode it stops itself
    before delivering the first decoded payload, so a session reports at most
    one code. The capture device is released on every exit path.
    """

    def __init__(
        self,
        camera_index: int = 0,
        *,
        fps: int = DEFAULT_FPS,
        box_size: int = DEFAULT_BOX_SIZE,
        mirror_preview: bool = False,
        single_shot: bool = True,
        cv2_module: Any = None,
        zxing_module: Any = None,
    ) -> None:
        if fps <= 0:
            raise ValueError("fps must be positive")
        self._camera_index = camera_index
        self._frame_interval = 1.0 / fps
        self._box_size = box_size
        self._mirror_preview = mirror_preview
        self._single_shot = single_shot
        self._cv2 = cv2_module
        self._zxing = zxing_module
        self._running = False
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()

    @property
    def camera_index(self) -> int:
        return self._camera_index

    @property
    def is_running(self) -> bool:
        return self._running

    def start(
        self,
        on_payload: Callable[[str], None],
        *,
        on_error: Optional[Callable[[DeviceError], None]] = None,
        on_frame: Optional[Callable[[Any], None]] = None,
    ) -> bool:
        """Start the background decode loop."""

        previous = self._thread
        if not self._running and previous is not None and previous.is_alive():
            previous.join(timeout=STOP_TIMEOUT_SECONDS)

        error: DeviceError | None = None
        with self._lock:
            if self._running:
                return True

            if self._thread is not None and self._thread.is_alive():
                error = DeviceError("The previous camera session is still shutting down.")
            else:
                try:
                    cv2_module, zxing_module = self._load_modules()
                except ImportError:
                    error = DeviceError(MISSING_DEPENDENCIES_MESSAGE)

            if error is None:
                self._stop_event.clear()

                def _runner() -> None:
                    self._run_loop(on_payload, on_error, on_frame, cv2_module, zxing_module)

                self._thread = threading.Thread(
                    target=_runner,
                    name=f"qr-scanner-{self._camera_index}",
                    daemon=True,
                )
                self._running = True
                self._thread.start()
                return True

        self._report(on_error, error)
        return False

    def stop(self) -> bool:
        """Signal the loop and wait for it; False if it is still running afterwards."""

        with self._lock:
            self._stop_event.set()
            thread = self._thread

        # The loop returns on its own after its callbacks finish.
        if thread is None or thread is threading.current_thread():
            return True

        if thread.is_alive():
            thread.join(timeout=STOP_TIMEOUT_SECONDS)
        if thread.is_alive():
            log.warning("Decode loop for camera %s did not stop within %.1fs", self._camera_index, STOP_TIMEOUT_SECONDS)
            return False

        with self._lock:
            if self._thread is thread:
                self._thread = None
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _load_modules(self) -> tuple[Any, Any]:
        cv2_module = self._cv2
        zxing_module = self._zxing
        if cv2_module is None:
            import cv2 as cv2_module  # type: ignore[import-not-found, no-redef]
        if zxing_module is None:
            import zxingcpp as zxing_module  # type: ignore[import-not-found, no-redef]
        return cv2_module, zxing_module

    @staticmethod
    def _report(on_error: Optional[Callable[[DeviceError], None]], error: DeviceError) -> None:
        log.warning("QR scanner error: %s", error)
        if on_error is None:
            return
        try:
            on_error(error)
        except Exception:
            log.exception("QR scanner error callback failed")

    def _run_loop(
        self,
        on_payload: Callable[[str], None],
        on_error: Optional[Callable[[DeviceError], None]],
        on_frame: Optional[Callable[[Any], None]],
        cv2_module,
        zxing_module,
    ) -> None:
        capture = None
        last_payload: Optional[str] = None
        last_timestamp: float = 0.0
        last_preview: float = 0.0
        failed_since: Optional[float] = None

        try:
            capture = self._open_capture(cv2_module)
            if capture is None:
                self._report(on_error, DeviceError(OPEN_FAILED_MESSAGE))
                return

            while not self._stop_event.is_set():
                started = time.monotonic()
                ok, frame = capture.read()
                if not ok or frame is None:
                    failed_since = failed_since or started
                    if started - failed_since >= MAX_FAILED_READS_SECONDS:
                        self._report(on_error, DeviceError(FRAMES_LOST_MESSAGE))
                        return
                    self._stop_event.wait(self._frame_interval)
                    continue
                failed_since = None

                if on_frame and (started - last_preview) >= PREVIEW_INTERVAL_SECONDS:
                    self._emit_preview(on_frame, frame, cv2_module)
                    last_preview = started

                for payload in self._decode(crop_detection_region(frame, self._box_size), zxing_module):
                    if last_payload == payload and (started - last_timestamp) < DEDUP_INTERVAL_SECONDS:
                        continue

                    last_payload = payload
                    last_timestamp = started

                    if self._single_shot:
                        self._stop_event.set()
                    try:
                        on_payload(payload)
                    except Exception:
                        log.exception("QR payload callback failed")
                    if self._single_shot:
                        return

                elapsed = time.monotonic() - started
                self._stop_event.wait(max(self._frame_interval - elapsed, 0.0))
        finally:
            if capture is not None:
                with suppress(Exception):
                    capture.release()
                log.debug("Released camera %s", self._camera_index)
            with self._lock:
                self._running = False

    def _emit_preview(self, on_frame: Callable[[Any], None], frame: Any, cv2_module) -> None:
        preview_frame = frame
        try:
            if self._mirror_preview:
                preview_frame = cv2_module.flip(preview_frame, 1)
            if PREVIEW_MAX_WIDTH and preview_frame.shape[1] > PREVIEW_MAX_WIDTH:
                scale = PREVIEW_MAX_WIDTH / float(preview_frame.shape[1])
                height = int(preview_frame.shape[0] * scale)
                preview_frame = cv2_module.resize(preview_frame, (PREVIEW_MAX_WIDTH, height))
            on_frame(preview_frame.copy())
        except Exception:
            log.debug("Dropping preview frame", exc_info=True)

    def _decode(self, region: Any, zxing_module) -> list[str]:
        try:
            decoded = zxing_module.read_barcodes(
                region,
                formats=zxing_module.BarcodeFormat.QRCode,
                try_rotate=True,
                try_downscale=True,
                text_mode=zxing_module.TextMode.HRI,
            )
        except Exception:
            # A frame without a readable code is normal noise.
            return []

        payloads: list[str] = []
        for obj in decoded or []:
            if hasattr(obj, "valid") and not obj.valid:
                continue
            if getattr(obj, "error", None):
                continue

            payload = _decode_symbol_data(getattr(obj, "text", ""))
            if not payload:
                payload_bytes = getattr(obj, "bytes", b"") or b""
                if not isinstance(payload_bytes, (bytes, bytearray)):
                    payload_bytes = bytes(payload_bytes)
                payload = _decode_symbol_data(payload_bytes)
            if payload:
                payloads.append(payload)
        return payloads

    def _open_capture(self, cv2_module):
        backend_preferences = [getattr(cv2_module, "CAP_DSHOW", None), getattr(cv2_module, "CAP_ANY", None)]

        for backend in backend_preferences:
            if backend is None:
                capture = cv2_module.VideoCapture(self._camera_index)
            else:
                capture = cv2_module.VideoCapture(self._camera_index, backend)

            if capture.isOpened():
                return capture

            capture.release()

        return None
