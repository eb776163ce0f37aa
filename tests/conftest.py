"""Shared test fixtures for the camera_capture test suite."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import numpy as np
import pytest

from camera_capture.cameras.base import DeviceDescriptor, Frame
from camera_capture.cameras.simulated import SimulatedProvider
from camera_capture.config.schema import AcquisitionConfig
from camera_capture.errors import DeviceUnavailable, FrameTimeout, StreamError


def pytest_collection_modifyitems(
    config: pytest.Config,
    items: list[pytest.Item],
) -> None:
    """Auto-skip tests marked ``hardware`` by default."""
    skip_hw = pytest.mark.skip(reason="requires physical hardware")
    for item in items:
        if "hardware" in item.keywords:
            item.add_marker(skip_hw)


class ScriptedStream:
    """Stream whose wait outcomes follow a script.

    Script entries: ``"frame"``, ``"timeout"`` (returns ``None``),
    ``"raise-timeout"`` (raises ``FrameTimeout``), ``"error"`` (raises
    ``StreamError``) or ``"crash"`` (raises ``RuntimeError``). Waits past
    the end of the script produce frames.
    """

    def __init__(self, calls: list[str], script: list[str]) -> None:
        self.calls = calls
        self.script = script
        self.waits = 0
        self.fail_stop = False

    def start(self) -> None:
        self.calls.append("stream.start")

    def wait_for_frame(self, timeout_ms: int, index: int) -> Frame | None:
        self.calls.append("stream.wait")
        outcome = self.script[self.waits] if self.waits < len(self.script) else "frame"
        self.waits += 1
        if outcome == "timeout":
            return None
        if outcome == "raise-timeout":
            raise FrameTimeout(f"no frame within {timeout_ms} ms")
        if outcome == "error":
            raise StreamError(f"transport lost at wait {index}")
        if outcome == "crash":
            raise RuntimeError("driver crashed")
        return Frame(
            index=index,
            image=np.full((4, 6), index, dtype=np.uint8),
            timestamp=datetime.now(),
        )

    def stop(self) -> None:
        self.calls.append("stream.stop")
        if self.fail_stop:
            raise RuntimeError("stop failed")

    def close(self) -> None:
        self.calls.append("stream.close")


class ScriptedDevice:
    def __init__(self, provider: ScriptedProvider, descriptor: DeviceDescriptor) -> None:
        self.provider = provider
        self.descriptor = descriptor
        self.features: dict[str, Any] = {}
        self.streams: list[ScriptedStream] = []
        self.close_count = 0

    def set_feature(self, name: str, value: Any) -> None:
        self.provider.calls.append(f"set.{name}")
        self.features[name] = value

    def start_acquisition(self) -> None:
        self.provider.calls.append("device.start_acquisition")

    def stop_acquisition(self) -> None:
        self.provider.calls.append("device.stop_acquisition")

    def create_stream(self) -> ScriptedStream:
        self.provider.calls.append("device.create_stream")
        stream = ScriptedStream(self.provider.calls, self.provider.script)
        self.streams.append(stream)
        return stream

    def close(self) -> None:
        self.provider.calls.append("device.close")
        self.close_count += 1


class ScriptedProvider:
    """Provider handing out ``ScriptedDevice`` instances."""

    def __init__(self, num_devices: int = 1, script: list[str] | None = None) -> None:
        self.num_devices = num_devices
        self.script = list(script or [])
        self.calls: list[str] = []
        self.devices: list[ScriptedDevice] = []

    def enumerate(self) -> list[DeviceDescriptor]:
        self.calls.append("provider.enumerate")
        return [
            DeviceDescriptor(index=i, vendor="Test", model="T1", serial_number=f"SN{i}")
            for i in range(self.num_devices)
        ]

    def open(self, descriptor: DeviceDescriptor) -> ScriptedDevice:
        self.calls.append("provider.open")
        if descriptor.index >= self.num_devices:
            raise DeviceUnavailable("gone")
        device = ScriptedDevice(self, descriptor)
        self.devices.append(device)
        return device

    def close(self) -> None:
        self.calls.append("provider.close")


class RecordingConsumer:
    """Consumer that remembers the frames it was given."""

    def __init__(self) -> None:
        self.frames: list[Frame] = []

    @property
    def indices(self) -> list[int]:
        return [f.index for f in self.frames]

    def accept(self, frame: Frame) -> None:
        self.frames.append(frame)


@pytest.fixture
def scripted_provider() -> ScriptedProvider:
    """Return a ScriptedProvider with one camera and an empty script."""
    return ScriptedProvider()


@pytest.fixture
def simulated_provider() -> SimulatedProvider:
    """Return a SimulatedProvider with a small sensor and no frame delay."""
    return SimulatedProvider(sensor_width=64, sensor_height=48)


@pytest.fixture
def small_config() -> AcquisitionConfig:
    """Return an AcquisitionConfig that fits the simulated sensor."""
    return AcquisitionConfig(exposure_us=5000.0, width=64, height=48)


@pytest.fixture
def consumer() -> RecordingConsumer:
    return RecordingConsumer()
