from types import SimpleNamespace

import pytest

from checkin_app.errors import CameraPermissionError, DeviceError
from checkin_app.services.camera import (
    CameraDevice,
    CameraSessionManager,
    CameraState,
    Facing,
    classify_facing,
    enumerate_cameras,
    pick_default_camera,
)


class FakeLoop:
    def __init__(self, registry, device, *, start_ok=True, stuck=False, before_start=None):
        self.registry = registry
        self.device = device
        self.start_ok = start_ok
        self.stuck = stuck
        self.before_start = before_start
        self.running = False
        self.on_payload = None
        self.on_error = None
        self.on_frame = None

    @property
    def is_running(self):
        return self.running

    def start(self, on_payload, *, on_error=None, on_frame=None):
        if self.before_start is not None:
            self.before_start()
        if not self.start_ok:
            return False
        self.on_payload = on_payload
        self.on_error = on_error
        self.on_frame = on_frame
        self.running = True
        self.registry.active += 1
        self.registry.peak = max(self.registry.peak, self.registry.active)
        return True

    def stop(self):
        if self.stuck:
            return not self.running
        self.finish()
        return True

    def finish(self):
        if self.running:
            self.running = False
            self.registry.active -= 1


class LoopRegistry:
    def __init__(self, *, start_ok=True, stuck=False):
        self.active = 0
        self.peak = 0
        self.loops = []
        self.start_ok = start_ok
        self.stuck = stuck
        self.before_start = None

    def factory(self, device):
        loop = FakeLoop(self, device, start_ok=self.start_ok, stuck=self.stuck, before_start=self.before_start)
        self.loops.append(loop)
        return loop


FRONT = CameraDevice(0, "Integrated Webcam Front", Facing.FRONT)
BACK = CameraDevice(1, "USB Rear Camera", Facing.BACK)


def _manager(devices=(FRONT, BACK), *, registry=None, enumerator=None, **kwargs):
    registry = registry or LoopRegistry()
    payloads, errors, states = [], [], []
    manager = CameraSessionManager(
        enumerator=enumerator or (lambda: list(devices)),
        scanner_factory=registry.factory,
        on_payload=payloads.append,
        on_error=errors.append,
        on_state_change=states.append,
        **kwargs,
    )
    return manager, SimpleNamespace(registry=registry, payloads=payloads, errors=errors, states=states)


@pytest.mark.parametrize(
    ("label", "hint", "expected"),
    [
        ("FaceTime HD Camera", None, Facing.FRONT),
        ("Back Camera", None, Facing.BACK),
        ("back facing camera", None, Facing.BACK),
        ("Logitech C920", None, Facing.UNKNOWN),
        ("Logitech C920", "environment", Facing.BACK),
        ("Rear camera", "user", Facing.FRONT),
    ],
)
def test_classify_facing(label, hint, expected):
    assert classify_facing(label, hint) == expected


def test_pick_default_camera_prefers_back_facing():
    unknown = CameraDevice(2, "Logitech C920")
    assert pick_default_camera([FRONT, unknown, BACK]) == BACK
    assert pick_default_camera([FRONT, unknown]) == FRONT
    assert pick_default_camera([FRONT, BACK], preferred_index=0) == FRONT
    assert pick_default_camera([]) is None


def test_enumerate_cameras_reads_labels(tmp_path):
    sysfs = tmp_path / "sys"
    (sysfs / "video0").mkdir(parents=True)
    (sysfs / "video0" / "name").write_text("Integrated Front Camera\n", encoding="utf-8")
    released = []

    class FakeCapture:
        def __init__(self, index):
            self.index = index

        def isOpened(self):
            return self.index in (0, 2)

        def release(self):
            released.append(self.index)

    cv2_module = SimpleNamespace(VideoCapture=FakeCapture)

    devices = enumerate_cameras(cv2_module, max_devices=3, sysfs_root=sysfs, dev_root=tmp_path / "dev")

    assert [(d.index, d.label, d.facing) for d in devices] == [
        (0, "Integrated Front Camera", Facing.FRONT),
        (2, "Camera 2", Facing.UNKNOWN),
    ]
    assert released == [0, 1, 2]


def test_mount_selects_back_camera():
    manager, _ = _manager()

    assert manager.mount() is CameraState.READY
    assert manager.active_camera == BACK
    assert not manager.mirror_preview


def test_mount_without_cameras():
    manager, seen = _manager(devices=())

    assert manager.mount() is CameraState.NO_CAMERAS
    assert not manager.start()
    assert seen.registry.loops == []


def test_permission_denied_then_granted():
    attempts = []

    def enumerator():
        attempts.append(1)
        if len(attempts) == 1:
            raise CameraPermissionError("Camera access was denied.")
        return [FRONT]

    requested = []
    manager, seen = _manager(enumerator=enumerator, request_access=lambda: requested.append(True))

    assert manager.mount() is CameraState.PERMISSION_DENIED
    assert isinstance(seen.errors[0], CameraPermissionError)
    assert not manager.start()

    assert manager.grant_access() is CameraState.READY
    assert requested == [True]
    assert manager.active_camera == FRONT
    assert manager.mirror_preview


def test_start_and_stop_release_the_loop():
    manager, seen = _manager()
    manager.mount()

    assert manager.start()
    assert manager.state is CameraState.SCANNING
    assert seen.registry.active == 1

    manager.stop()

    assert manager.state is CameraState.READY
    assert seen.registry.active == 0
    assert CameraState.STOPPING in seen.states


def test_start_twice_keeps_single_loop():
    manager, seen = _manager()
    manager.mount()

    manager.start()
    manager.start()

    assert len(seen.registry.loops) == 1
    assert seen.registry.peak == 1


def test_switch_camera_restarts_on_new_device():
    manager, seen = _manager()
    manager.mount()
    manager.start()

    assert manager.switch_camera(FRONT.index)

    assert manager.state is CameraState.SCANNING
    assert manager.active_camera == FRONT
    assert seen.registry.active == 1
    assert seen.registry.peak == 1
    assert [loop.device for loop in seen.registry.loops] == [BACK, FRONT]


def test_switch_camera_ignores_unknown_index():
    manager, _ = _manager()
    manager.mount()

    assert not manager.switch_camera(9)
    assert manager.active_camera == BACK


def test_payload_delivered_once_and_session_ends():
    manager, seen = _manager()
    manager.mount()
    manager.start()
    loop = seen.registry.loops[0]

    loop.on_payload("1001")
    loop.on_payload("1001")
    loop.on_payload("2002")

    assert seen.payloads == ["1001"]
    assert manager.state is CameraState.READY
    assert seen.registry.active == 0


def test_late_payload_from_stopped_session_is_ignored():
    manager, seen = _manager()
    manager.mount()
    manager.start()
    old_loop = seen.registry.loops[0]
    manager.stop()
    manager.start()

    old_loop.on_payload("1001")

    assert seen.payloads == []
    assert manager.state is CameraState.SCANNING


def test_loop_error_releases_session():
    manager, seen = _manager()
    manager.mount()
    manager.start()

    seen.registry.loops[0].on_error(DeviceError("The camera stopped delivering frames."))

    assert manager.state is CameraState.READY
    assert seen.registry.active == 0
    assert str(manager.last_error) == "The camera stopped delivering frames."
    assert len(seen.errors) == 1


def test_failed_start_returns_to_ready():
    manager, seen = _manager(registry=LoopRegistry(start_ok=False))
    manager.mount()

    assert not manager.start()
    assert manager.state is CameraState.READY


def test_teardown_stops_active_loop():
    manager, seen = _manager()
    manager.mount()
    manager.start()

    manager.teardown()

    assert manager.state is CameraState.STOPPED
    assert seen.registry.active == 0

    manager.mount()
    assert manager.start()
    assert seen.registry.active == 1


def test_teardown_while_starting_leaves_no_loop_running():
    registry = LoopRegistry()
    manager, seen = _manager(registry=registry)
    manager.mount()
    registry.before_start = manager.teardown

    assert not manager.start()

    assert manager.state is CameraState.STOPPED
    assert registry.active == 0
    assert not registry.loops[0].running


def test_stop_while_starting_leaves_no_loop_running():
    registry = LoopRegistry()
    manager, seen = _manager(registry=registry)
    manager.mount()
    registry.before_start = manager.stop

    manager.start()

    assert registry.active == 0
    assert not manager.is_scanning


def test_switch_waits_for_loop_that_did_not_stop():
    registry = LoopRegistry(stuck=True)
    manager, seen = _manager(registry=registry)
    manager.mount()
    manager.start()
    stuck_loop = registry.loops[0]

    assert not manager.switch_camera(FRONT.index)

    assert manager.state is CameraState.READY
    assert manager.active_camera == FRONT
    assert registry.active == 1
    assert len(registry.loops) == 1
    assert isinstance(seen.errors[-1], DeviceError)

    stuck_loop.finish()

    assert manager.start()
    assert registry.active == 1
    assert registry.peak == 1
    assert registry.loops[-1].device == FRONT


def test_frames_from_stopped_session_are_dropped():
    frames = []
    manager, seen = _manager(on_frame=frames.append)
    manager.mount()
    manager.start()
    old_loop = seen.registry.loops[0]

    old_loop.on_frame("frame-1")
    manager.stop()
    old_loop.on_frame("frame-2")

    assert frames == ["frame-1"]


def test_no_frame_callback_without_preview_listener():
    manager, seen = _manager()
    manager.mount()
    manager.start()

    assert seen.registry.loops[0].on_frame is None
