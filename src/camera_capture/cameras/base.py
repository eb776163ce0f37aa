"""Abstract camera interfaces for hardware acquisition.

Defines the ``DeviceProvider``, ``Device`` and ``Stream`` protocols
that every driver implements, plus the plain data types that cross
them. Use ``create_provider()`` from
:mod:`camera_capture.cameras.factory` to instantiate a driver.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

import numpy as np


@dataclass(frozen=True)
class DeviceDescriptor:
    """Identity of an enumerated camera.

    Attributes:
        index: Position in the provider's enumeration order.
        vendor: Vendor name reported by the transport layer.
        model: Model name reported by the transport layer.
        serial_number: Device serial number.
        name: User-defined or display name.
    """

    index: int
    vendor: str = ""
    model: str = ""
    serial_number: str = ""
    name: str = ""

    @property
    def display_name(self) -> str:
        label = self.name or " ".join(p for p in (self.vendor, self.model) if p)
        if self.serial_number:
            return f"{label} ({self.serial_number})" if label else self.serial_number
        return label or f"device {self.index}"


@dataclass
class Frame:
    """One captured image plus capture metadata.

    Attributes:
        index: Iteration of the acquisition loop that produced the frame.
        image: Image data, ``(H, W)`` for mono or ``(H, W, C)`` for color.
        timestamp: Host wall-clock time at which the frame was received.
        device_timestamp_ns: Device timestamp, if the driver reports one.
        frame_id: Driver-side sequence number, if available.
    """

    index: int
    image: np.ndarray
    timestamp: datetime
    device_timestamp_ns: int | None = None
    frame_id: int | None = None

    @property
    def shape(self) -> tuple[int, ...]:
        return tuple(self.image.shape)


@runtime_checkable
class Stream(Protocol):
    """An active image-acquisition channel on a device."""

    def start(self) -> None:
        """Begin delivering frames."""
        ...

    def wait_for_frame(self, timeout_ms: int, index: int) -> Frame | None:
        """Block for at most *timeout_ms* waiting for the next frame.

        Args:
            timeout_ms: Maximum wait time in milliseconds.
            index: Loop iteration to stamp on the returned frame.

        Returns:
            The frame, or ``None`` if none arrived in time or the
            frame was dropped.

        Raises:
            StreamError: On any failure other than a timeout.
        """
        ...

    def stop(self) -> None:
        """Stop delivering frames."""
        ...

    def close(self) -> None:
        """Release the stream's resources."""
        ...


@runtime_checkable
class Device(Protocol):
    """An opened camera, exclusively owned by one session."""

    @property
    def descriptor(self) -> DeviceDescriptor:
        ...

    def set_feature(self, name: str, value: Any) -> None:
        """Write a node-map feature.

        Raises:
            ConfigRejected: If the value is outside the accepted range
                or the feature is not writable.
        """
        ...

    def start_acquisition(self) -> None:
        """Arm the device for acquisition."""
        ...

    def stop_acquisition(self) -> None:
        """Disarm the device."""
        ...

    def create_stream(self) -> Stream:
        """Open the device's acquisition stream.

        Raises:
            StreamError: If a stream is already open on this device.
        """
        ...

    def close(self) -> None:
        """Release the device."""
        ...


@runtime_checkable
class DeviceProvider(Protocol):
    """Enumerates and opens cameras for one vendor SDK."""

    def enumerate(self) -> list[DeviceDescriptor]:
        """Return the cameras currently visible to the SDK."""
        ...

    def open(self, descriptor: DeviceDescriptor) -> Device:
        """Open the camera described by *descriptor*.

        Raises:
            DeviceUnavailable: If the camera cannot be opened.
        """
        ...

    def close(self) -> None:
        """Shut the SDK down and release all of its resources."""
        ...
