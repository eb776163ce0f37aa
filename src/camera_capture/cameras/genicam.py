"""GenICam/GenTL camera driver via Harvesters.

Requires the ``harvesters`` package and an installed GenTL producer
(e.g., IDS peak, Allied Vision Vimba X or FLIR Spinnaker). The producer
``.cti`` file is passed explicitly or read from ``CAM_CTI_PATH``.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Any, Callable

import numpy as np

from camera_capture.cameras.base import DeviceDescriptor, Frame
from camera_capture.errors import ConfigRejected, DeviceUnavailable, StreamError

logger = logging.getLogger(__name__)

CTI_ENV_VAR = "CAM_CTI_PATH"


def _node_attr(node: object, name: str) -> Any:
    """Read a node property, returning ``None`` if the node lacks it."""
    try:
        return getattr(node, name)
    except Exception:
        logger.debug("Node %s has no readable %s", node, name)
        return None


def check_feature_range(name: str, node: object, value: Any) -> None:
    """Validate *value* against a node's enumeration entries or limits.

    Raises:
        ConfigRejected: If *value* is not an accepted entry, lies outside
            ``[min, max]`` or is off the node's increment grid.
    """
    symbolics = _node_attr(node, "symbolics")
    if symbolics is not None:
        if str(value) not in tuple(symbolics):
            raise ConfigRejected(
                name, value, f"expected one of {', '.join(symbolics)}",
            )
        return

    lo = _node_attr(node, "min")
    hi = _node_attr(node, "max")
    if lo is not None and value < lo:
        raise ConfigRejected(name, value, f"below minimum {lo}")
    if hi is not None and value > hi:
        raise ConfigRejected(name, value, f"above maximum {hi}")

    if isinstance(value, int):
        inc = _node_attr(node, "inc")
        base = lo if lo is not None else 0
        if inc and (value - base) % inc:
            raise ConfigRejected(
                name, value, f"not a multiple of increment {inc}",
            )


def component_to_array(component: object) -> np.ndarray | None:
    """Copy a Harvesters payload component into a standalone array.

    Strips row padding and reshapes multi-channel pixel formats to
    ``(H, W, C)``. Returns ``None`` for an empty component, which the
    producer delivers for incomplete buffers.
    """
    h = int(component.height)
    w = int(component.width)
    data = np.asarray(component.data)
    if h <= 0 or w <= 0 or data.size == 0:
        return None

    channels = int(_node_attr(component, "num_components_per_pixel") or 1)
    stride = data.size // h
    frame = data[:h * stride].reshape(h, stride)[:, :w * channels]
    if channels > 1:
        frame = frame.reshape(h, w, channels)
    # Buffers are re-queued after the fetch, so never alias their memory.
    return np.array(frame, copy=True)


class GenICamStream:
    """Acquisition stream backed by a Harvesters ``ImageAcquirer``."""

    def __init__(
        self,
        acquirer: object,
        on_close: Callable[[], None] | None = None,
    ) -> None:
        self._ia = acquirer
        self._on_close = on_close
        self._running = False
        self._closed = False

    def start(self) -> None:
        """Start the data stream and the device's AcquisitionStart."""
        try:
            self._ia.start()
        except Exception as exc:
            raise StreamError(f"Failed to start stream: {exc}") from exc
        self._running = True

    def wait_for_frame(self, timeout_ms: int, index: int) -> Frame | None:
        """Fetch one buffer, copy it out and re-queue it.

        Args:
            timeout_ms: Maximum wait time in milliseconds.
            index: Loop iteration stamped on the returned frame.

        Returns:
            The frame, or ``None`` on timeout or an empty buffer.
        """
        if not self._running:
            raise StreamError("Stream is not running")
        try:
            buf = self._ia.try_fetch(timeout=timeout_ms / 1000.0)
        except Exception as exc:
            raise StreamError(f"Fetch failed: {exc}") from exc
        if buf is None:
            return None

        try:
            components = buf.payload.components
            image = component_to_array(components[0]) if components else None
            if image is None:
                logger.debug("Frame %d: empty buffer", index)
                return None
            return Frame(
                index=index,
                image=image,
                timestamp=datetime.now(),
                device_timestamp_ns=_node_attr(buf, "timestamp_ns"),
                frame_id=_node_attr(buf, "frame_id"),
            )
        finally:
            buf.queue()

    def stop(self) -> None:
        """Stop the device's acquisition and the data stream."""
        if not self._running:
            return
        self._running = False
        try:
            self._ia.stop()
        except Exception as exc:
            raise StreamError(f"Failed to stop stream: {exc}") from exc

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._on_close is not None:
            self._on_close()


class GenICamDevice:
    """An opened GenICam camera.

    Attributes:
        descriptor: Identity of the opened camera.
    """

    def __init__(self, acquirer: object, descriptor: DeviceDescriptor) -> None:
        self._ia = acquirer
        self.descriptor = descriptor
        self._stream: GenICamStream | None = None
        self._closed = False

    @property
    def node_map(self) -> object:
        return self._ia.remote_device.node_map

    def set_feature(self, name: str, value: Any) -> None:
        node = getattr(self.node_map, name, None)
        if node is None:
            raise ConfigRejected(name, value, "feature not available")
        check_feature_range(name, node, value)
        try:
            node.value = value
        except Exception as exc:
            raise ConfigRejected(name, value, str(exc)) from exc
        logger.debug("Set %s = %r", name, value)

    def start_acquisition(self) -> None:
        """Lock transport-layer parameters for the duration of the run."""
        self._set_optional("TLParamsLocked", 1)

    def stop_acquisition(self) -> None:
        self._set_optional("TLParamsLocked", 0)

    def create_stream(self) -> GenICamStream:
        if self._closed:
            raise StreamError("Device is closed")
        if self._stream is not None:
            raise StreamError("A stream is already open on this device")
        self._stream = GenICamStream(self._ia, on_close=self._stream_closed)
        return self._stream

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._ia.destroy()
        except Exception:
            logger.debug("Failed to destroy acquirer", exc_info=True)

    def _stream_closed(self) -> None:
        self._stream = None

    def _set_optional(self, name: str, value: Any) -> None:
        node = getattr(self.node_map, name, None)
        if node is None:
            return
        try:
            node.value = value
        except Exception:
            logger.debug("Could not set %s to %s", name, value, exc_info=True)


class GenICamProvider:
    """Enumerates and opens cameras through a GenTL producer.

    Attributes:
        cti_path: Path to the GenTL producer ``.cti`` file.
    """

    def __init__(self, cti_path: str | None = None) -> None:
        self.cti_path = cti_path or os.environ.get(CTI_ENV_VAR, "")
        self._h = None

    def _harvester(self) -> object:
        if self._h is not None:
            return self._h
        if not self.cti_path:
            raise DeviceUnavailable(
                f"No GenTL producer given; pass cti_path or set {CTI_ENV_VAR}"
            )

        from harvesters.core import Harvester

        h = Harvester()
        try:
            h.add_file(self.cti_path, check_existence=True)
            h.update()
        except Exception as exc:
            h.reset()
            raise DeviceUnavailable(
                f"Could not load GenTL producer {self.cti_path}: {exc}"
            ) from exc
        self._h = h
        return h

    def enumerate(self) -> list[DeviceDescriptor]:
        devices = []
        for i, info in enumerate(self._harvester().device_info_list):
            props = dict(getattr(info, "property_dict", {}) or {})
            devices.append(DeviceDescriptor(
                index=i,
                vendor=str(props.get("vendor", "")),
                model=str(props.get("model", "")),
                serial_number=str(props.get("serial_number", "")),
                name=str(props.get("user_defined_name", "") or ""),
            ))
        logger.debug("GenTL producer reports %d device(s)", len(devices))
        return devices

    def open(self, descriptor: DeviceDescriptor) -> GenICamDevice:
        try:
            ia = self._harvester().create(descriptor.index)
        except DeviceUnavailable:
            raise
        except Exception as exc:
            raise DeviceUnavailable(
                f"Could not open {descriptor.display_name}: {exc}"
            ) from exc
        return GenICamDevice(ia, descriptor)

    def close(self) -> None:
        """Reset Harvester and unload the GenTL producer."""
        if self._h is None:
            return
        try:
            self._h.reset()
        except Exception:
            logger.debug("Failed to reset Harvester", exc_info=True)
        self._h = None

    def __enter__(self) -> GenICamProvider:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
