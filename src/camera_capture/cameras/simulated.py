"""Hardware-free camera driver producing synthetic frames.

Mimics a GenICam device closely enough to exercise the acquisition
session end to end: features carry ranges and increments, streams are
exclusive, frames can be dropped or the stream failed on demand. Every
lifecycle call is appended to ``SimulatedProvider.calls``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

import numpy as np

from camera_capture.cameras.base import DeviceDescriptor, Frame
from camera_capture.cameras.genicam import check_feature_range
from camera_capture.errors import ConfigRejected, DeviceUnavailable, StreamError

logger = logging.getLogger(__name__)


@dataclass
class SimulatedNode:
    """A node-map entry with GenICam-style limits."""

    value: Any
    min: float | None = None
    max: float | None = None
    inc: int | None = None
    symbolics: tuple[str, ...] | None = None


def _default_nodes(sensor_width: int, sensor_height: int) -> dict[str, SimulatedNode]:
    return {
        "AcquisitionMode": SimulatedNode(
            "Continuous",
            symbolics=("SingleFrame", "MultiFrame", "Continuous"),
        ),
        "ExposureTime": SimulatedNode(10000.0, min=28.0, max=1e7),
        "Width": SimulatedNode(sensor_width, min=16, max=sensor_width, inc=8),
        "Height": SimulatedNode(sensor_height, min=2, max=sensor_height, inc=2),
    }


class SimulatedStream:
    """Synthetic acquisition stream."""

    def __init__(self, device: SimulatedDevice) -> None:
        self._device = device
        self._running = False
        self._closed = False
        self._seq = 0

    def _record(self, call: str) -> None:
        self._device.provider.calls.append(f"stream.{call}")

    def start(self) -> None:
        self._record("start")
        if not self._device.acquiring:
            raise StreamError("Device acquisition has not been started")
        self._running = True

    def wait_for_frame(self, timeout_ms: int, index: int) -> Frame | None:
        provider = self._device.provider
        if not self._running:
            raise StreamError("Stream is not running")
        seq = self._seq
        self._seq += 1

        if provider.fail_at is not None and seq >= provider.fail_at:
            raise StreamError(f"Simulated stream failure at frame {seq}")

        timeout_s = timeout_ms / 1000.0
        single = self._device.nodes["AcquisitionMode"].value == "SingleFrame"
        if seq in provider.drop_frames or (single and seq > 0):
            time.sleep(min(timeout_s, provider.frame_period_s))
            return None
        if provider.frame_period_s > timeout_s:
            time.sleep(timeout_s)
            return None
        if provider.frame_period_s:
            time.sleep(provider.frame_period_s)

        return Frame(
            index=index,
            image=self._device.render(seq),
            timestamp=datetime.now(),
            device_timestamp_ns=time.monotonic_ns(),
            frame_id=seq,
        )

    def stop(self) -> None:
        self._record("stop")
        self._running = False

    def close(self) -> None:
        if self._closed:
            return
        self._record("close")
        self._closed = True
        self._device.stream_closed()


class SimulatedDevice:
    """Synthetic camera with a GenICam-like node map.

    Attributes:
        descriptor: Identity of the simulated camera.
        provider: Provider that opened the device.
        nodes: Feature name to node mapping.
        acquiring: Whether ``start_acquisition`` is in effect.
    """

    def __init__(self, provider: SimulatedProvider, descriptor: DeviceDescriptor) -> None:
        self.provider = provider
        self.descriptor = descriptor
        self.nodes = _default_nodes(provider.sensor_width, provider.sensor_height)
        self.acquiring = False
        self.closed = False
        self._stream: SimulatedStream | None = None

    def set_feature(self, name: str, value: Any) -> None:
        node = self.nodes.get(name)
        if node is None:
            raise ConfigRejected(name, value, "feature not available")
        if self.acquiring:
            raise ConfigRejected(name, value, "parameters locked while acquiring")
        check_feature_range(name, node, value)
        node.value = value

    def start_acquisition(self) -> None:
        self.provider.calls.append("device.start_acquisition")
        self.acquiring = True

    def stop_acquisition(self) -> None:
        self.provider.calls.append("device.stop_acquisition")
        self.acquiring = False

    def create_stream(self) -> SimulatedStream:
        if self._stream is not None:
            raise StreamError("A stream is already open on this device")
        self.provider.calls.append("device.create_stream")
        self._stream = SimulatedStream(self)
        return self._stream

    def stream_closed(self) -> None:
        self._stream = None

    def close(self) -> None:
        self.provider.calls.append("device.close")
        self.closed = True

    def render(self, seq: int) -> np.ndarray:
        """Return a moving diagonal gradient for frame *seq*."""
        h = int(self.nodes["Height"].value)
        w = int(self.nodes["Width"].value)
        yy, xx = np.mgrid[0:h, 0:w]
        return ((xx + yy + 4 * seq) % 256).astype(np.uint8)


class SimulatedProvider:
    """Provider of simulated cameras.

    Attributes:
        num_devices: Number of cameras reported by ``enumerate``.
        sensor_width: Maximum image width in pixels.
        sensor_height: Maximum image height in pixels.
        frame_period_s: Time between frames; longer than the wait
            timeout means every wait times out.
        drop_frames: Stream sequence numbers that are never delivered.
        fail_at: Stream sequence number at which waits start raising
            ``StreamError``. ``None`` disables failures.
        calls: Ordered record of lifecycle calls.
    """

    def __init__(
        self,
        num_devices: int = 1,
        sensor_width: int = 1920,
        sensor_height: int = 1080,
        frame_period_s: float = 0.0,
        drop_frames: Iterable[int] = (),
        fail_at: int | None = None,
    ) -> None:
        self.num_devices = num_devices
        self.sensor_width = sensor_width
        self.sensor_height = sensor_height
        self.frame_period_s = frame_period_s
        self.drop_frames = frozenset(drop_frames)
        self.fail_at = fail_at
        self.calls: list[str] = []
        self.opened: list[SimulatedDevice] = []

    def enumerate(self) -> list[DeviceDescriptor]:
        self.calls.append("provider.enumerate")
        return [
            DeviceDescriptor(
                index=i,
                vendor="Simulated",
                model="SIM-1",
                serial_number=f"SIM{i:04d}",
            )
            for i in range(self.num_devices)
        ]

    def open(self, descriptor: DeviceDescriptor) -> SimulatedDevice:
        self.calls.append("provider.open")
        if not 0 <= descriptor.index < self.num_devices:
            raise DeviceUnavailable(f"No simulated device {descriptor.index}")
        device = SimulatedDevice(self, descriptor)
        self.opened.append(device)
        logger.debug("Opened %s", descriptor.display_name)
        return device

    def close(self) -> None:
        self.calls.append("provider.close")

    def __enter__(self) -> SimulatedProvider:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
