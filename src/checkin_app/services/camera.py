from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional, Protocol, Sequence

from checkin_app.errors import CameraPermissionError, DeviceError
from checkin_app.services.qr_scanner import DEFAULT_BOX_SIZE, DEFAULT_FPS, MISSING_DEPENDENCIES_MESSAGE, QRScanner

log = logging.getLogger(__name__)

FRONT_TERMS: tuple[str, ...] = ("front", "face", "user", "selfie")
BACK_TERMS: tuple[str, ...] = ("back", "rear", "environment")
SYSFS_VIDEO_ROOT = Path("/sys/class/video4linux")
DEV_ROOT = Path("/dev")
PERMISSION_DENIED_MESSAGE = "Camera access was denied. Grant access to continue scanning."
STILL_STOPPING_MESSAGE = "The previous camera session is still shutting down. Try again in a moment."


class Facing(str, Enum):
    FRONT = "front"
    BACK = "back"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class CameraDevice:
    index: int
    label: str
    facing: Facing = Facing.UNKNOWN

    @property
    def display_label(self) -> str:
        if self.facing is Facing.UNKNOWN:
            return self.label
        return f"{self.label} ({self.facing.value})"


def classify_facing(label: str | None, orientation_hint: str | None = None) -> Facing:
    hint = (orientation_hint or "").strip().lower()
    if hint in ("user", "front"):
        return Facing.FRONT
    if hint in ("environment", "back", "rear"):
        return Facing.BACK

    text = (label or "").lower()
    # Back terms first: "back facing" would otherwise match "face".
    if any(term in text for term in BACK_TERMS):
        return Facing.BACK
    if any(term in text for term in FRONT_TERMS):
        return Facing.FRONT
    return Facing.UNKNOWN


def pick_default_camera(
    devices: Sequence[CameraDevice],
    preferred_index: int | None = None,
) -> CameraDevice | None:
    if not devices:
        return None
    if preferred_index is not None:
        for device in devices:
            if device.index == preferred_index:
                return device
    for device in devices:
        if device.facing is Facing.BACK:
            return device
    return devices[0]


def _read_device_label(index: int, sysfs_root: Path) -> str:
    name_file = sysfs_root / f"video{index}" / "name"
    try:
        label = name_file.read_text(encoding="utf-8").strip()
    except OSError:
        label = ""
    return label or f"Camera {index}"


def enumerate_cameras(
    cv2_module: Any = None,
    *,
    max_devices: int = 4,
    sysfs_root: Path = SYSFS_VIDEO_ROOT,
    dev_root: Path = DEV_ROOT,
) -> list[CameraDevice]:
    """Probe camera indices and describe the ones that open.

    Raises ``CameraPermissionError`` when nothing opened and at least one
    device node exists that the current user may not read.
    """

    if cv2_module is None:
        try:
            import cv2 as cv2_module  # type: ignore[import-not-found, no-redef]
        except ImportError as exc:
            raise DeviceError(MISSING_DEPENDENCIES_MESSAGE) from exc

    devices: list[CameraDevice] = []
    denied = False

    for index in range(max_devices):
        node = dev_root / f"video{index}"
        if node.exists() and not os.access(node, os.R_OK | os.W_OK):
            denied = True
            continue

        capture = cv2_module.VideoCapture(index)
        try:
            opened = bool(capture.isOpened())
        finally:
            capture.release()

        if opened:
            label = _read_device_label(index, sysfs_root)
            devices.append(CameraDevice(index=index, label=label, facing=classify_facing(label)))

    if not devices and denied:
        raise CameraPermissionError(PERMISSION_DENIED_MESSAGE)

    log.info("Found %d camera(s): %s", len(devices), ", ".join(d.display_label for d in devices) or "none")
    return devices


class CameraState(str, Enum):
    UNINITIALIZED = "uninitialized"
    ENUMERATING = "enumerating"
    PERMISSION_DENIED = "permission_denied"
    NO_CAMERAS = "no_cameras"
    READY = "ready"
    STARTING = "starting"
    SCANNING = "scanning"
    STOPPING = "stopping"
    STOPPED = "stopped"


ACTIVE_STATES = frozenset({CameraState.STARTING, CameraState.SCANNING})


class DecodeLoop(Protocol):
    @property
    def is_running(self) -> bool: ...

    def start(
        self,
        on_payload: Callable[[str], None],
        *,
        on_error: Optional[Callable[[DeviceError], None]] = None,
        on_frame: Optional[Callable[[Any], None]] = None,
    ) -> bool: ...

    def stop(self) -> bool: ...


ScannerFactory = Callable[[CameraDevice], DecodeLoop]


def qr_scanner_factory(*, fps: int = DEFAULT_FPS, box_size: int = DEFAULT_BOX_SIZE) -> ScannerFactory:
    def _factory(device: CameraDevice) -> DecodeLoop:
        return QRScanner(
            device.index,
            fps=fps,
            box_size=box_size,
            mirror_preview=device.facing is Facing.FRONT,
            single_shot=True,
        )

    return _factory


class CameraSessionManager:
    """Owns the camera for one scanning surface.

    State flow::

        UNINITIALIZED -> ENUMERATING -> PERMISSION_DENIED | NO_CAMERAS | READY
        READY -> STARTING -> SCANNING -> STOPPING -> READY | STOPPED

    At most one decode loop exists at a time. Every loop gets a session token;
    callbacks carrying an older token are ignored, and the first payload of a
    session ends it before the caller is notified.
    """

    def __init__(
        self,
        *,
        enumerator: Callable[[], list[CameraDevice]],
        scanner_factory: ScannerFactory,
        on_payload: Callable[[str], None],
        on_error: Callable[[DeviceError], None] | None = None,
        on_state_change: Callable[[CameraState], None] | None = None,
        on_frame: Callable[[Any], None] | None = None,
        request_access: Callable[[], None] | None = None,
        preferred_index: int | None = None,
    ) -> None:
        self._enumerator = enumerator
        self._scanner_factory = scanner_factory
        self._on_payload = on_payload
        self._on_error = on_error
        self._on_state_change = on_state_change
        self._on_frame = on_frame
        self._request_access = request_access
        self._preferred_index = preferred_index

        self._lock = threading.RLock()
        self._state = CameraState.UNINITIALIZED
        self._devices: list[CameraDevice] = []
        self._active: CameraDevice | None = None
        self._scanner: DecodeLoop | None = None
        # A loop whose stop() timed out; no new loop starts while it runs.
        self._lingering: DecodeLoop | None = None
        self._token = 0
        self._delivered = False
        self.last_error: DeviceError | None = None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def state(self) -> CameraState:
        return self._state

    @property
    def devices(self) -> list[CameraDevice]:
        return list(self._devices)

    @property
    def active_camera(self) -> CameraDevice | None:
        return self._active

    @property
    def mirror_preview(self) -> bool:
        return self._active is not None and self._active.facing is Facing.FRONT

    @property
    def is_scanning(self) -> bool:
        return self._state in ACTIVE_STATES

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def mount(self) -> CameraState:
        """Enumerate cameras and pick the default one."""

        with self._lock:
            if self._state in ACTIVE_STATES:
                return self._state
            self.last_error = None
            self._set_state(CameraState.ENUMERATING)

        error: DeviceError | None = None
        try:
            devices = self._enumerator()
        except CameraPermissionError as exc:
            error, devices, target = exc, [], CameraState.PERMISSION_DENIED
        except DeviceError as exc:
            error, devices, target = exc, [], CameraState.NO_CAMERAS
        else:
            target = CameraState.READY if devices else CameraState.NO_CAMERAS

        with self._lock:
            self._devices = list(devices)
            current_index = self._active.index if self._active else self._preferred_index
            self._active = pick_default_camera(self._devices, current_index)
            self.last_error = error
            self._set_state(target)

        if error is not None:
            self._notify_error(error)
        return target

    def retry(self) -> CameraState:
        return self.mount()

    def grant_access(self) -> CameraState:
        if self._request_access is not None:
            try:
                self._request_access()
            except CameraPermissionError as exc:
                with self._lock:
                    self.last_error = exc
                    self._set_state(CameraState.PERMISSION_DENIED)
                self._notify_error(exc)
                return self._state
        return self.mount()

    def start(self) -> bool:
        """Open a decode loop against the active camera."""

        with self._lock:
            if self._state in ACTIVE_STATES:
                return True
            if self._state not in (CameraState.READY, CameraState.STOPPED) or self._active is None:
                return False

            if self._lingering is not None and self._lingering.is_running:
                busy = DeviceError(STILL_STOPPING_MESSAGE)
                self.last_error = busy
            else:
                busy = None
                self._lingering = None
                self._token += 1
                token = self._token
                self._delivered = False
                self.last_error = None
                self._set_state(CameraState.STARTING)
                scanner = self._scanner_factory(self._active)
                self._scanner = scanner

        if busy is not None:
            log.warning("Not starting camera: %s", busy)
            self._notify_error(busy)
            return False

        started = scanner.start(
            lambda payload: self._handle_payload(token, payload),
            on_error=lambda error: self._handle_error(token, error),
            on_frame=(lambda frame: self._handle_frame(token, frame)) if self._on_frame else None,
        )

        with self._lock:
            orphaned = token != self._token and self._scanner is not scanner
        if orphaned and started:
            # Stopped or torn down while the loop was starting.
            self._stop_loop(scanner)

        with self._lock:
            if token != self._token:
                # The session already ended through a payload, an error or a stop.
                return started and not orphaned
            if not started:
                self._scanner = None
                if self._state is CameraState.STARTING:
                    self._set_state(CameraState.READY)
                return False
            if self._state is CameraState.STARTING:
                self._set_state(CameraState.SCANNING)
            return self._state is CameraState.SCANNING

    def stop(self) -> CameraState:
        with self._lock:
            if self._state not in ACTIVE_STATES:
                return self._state
            self._token += 1
        self._release(CameraState.READY)
        return self._state

    def switch_camera(self, index: int) -> bool:
        """Make ``index`` the active camera, restarting the loop if one was running."""

        with self._lock:
            device = next((d for d in self._devices if d.index == index), None)
            if device is None:
                return False
            if self._active is not None and self._active.index == index:
                return True
            was_scanning = self._state in ACTIVE_STATES

        if was_scanning:
            self.stop()

        with self._lock:
            self._active = device

        if was_scanning:
            return self.start()
        return True

    def teardown(self) -> None:
        """Release the camera for good, e.g. when the surface goes away."""

        with self._lock:
            self._token += 1
            if self._scanner is None and self._state not in ACTIVE_STATES:
                self._set_state(CameraState.STOPPED)
                return
        self._release(CameraState.STOPPED)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _release(self, target: CameraState) -> None:
        with self._lock:
            scanner = self._scanner
            self._scanner = None
            self._set_state(CameraState.STOPPING)
        try:
            if scanner is not None:
                self._stop_loop(scanner)
        finally:
            with self._lock:
                self._set_state(target)

    def _stop_loop(self, scanner: DecodeLoop) -> None:
        try:
            stopped = scanner.stop()
        except Exception:
            log.exception("Stopping the decode loop failed")
            stopped = not scanner.is_running
        if not stopped:
            with self._lock:
                self._lingering = scanner

    def _handle_payload(self, token: int, payload: str) -> None:
        with self._lock:
            if token != self._token or self._delivered:
                return
            self._delivered = True
            self._token += 1

        self._release(CameraState.READY)
        log.info("Decoded QR payload %r", payload)
        self._on_payload(payload)

    def _handle_frame(self, token: int, frame: Any) -> None:
        if token != self._token or self._on_frame is None:
            return
        self._on_frame(frame)

    def _handle_error(self, token: int, error: DeviceError) -> None:
        with self._lock:
            if token != self._token:
                return
            self._token += 1
            self.last_error = error

        target = CameraState.PERMISSION_DENIED if isinstance(error, CameraPermissionError) else CameraState.READY
        self._release(target)
        self._notify_error(error)

    def _notify_error(self, error: DeviceError) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(error)
        except Exception:
            log.exception("Camera error callback failed")

    def _set_state(self, state: CameraState) -> None:
        if state is self._state:
            return
        log.debug("Camera session %s -> %s", self._state.value, state.value)
        self._state = state
        if self._on_state_change is not None:
            try:
                self._on_state_change(state)
            except Exception:
                log.exception("Camera state callback failed")
