"""Bounded, timeout-driven frame acquisition on one camera.

:class:`AcquisitionSession` owns one opened device and, while
:meth:`~AcquisitionSession.run` executes, one stream on it. The state
machine is::

    CLOSED -> OPENED -> CONFIGURED -> STREAMING -> CONFIGURED -> CLOSED

Teardown is scoped: however ``run`` exits, the stream is stopped and
closed first and the device's acquisition stopped second.
"""

from __future__ import annotations

import contextlib
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator

from camera_capture.cameras.base import (
    Device,
    DeviceDescriptor,
    DeviceProvider,
    Frame,
    Stream,
)
from camera_capture.config.schema import AcquisitionConfig, AcquisitionMode
from camera_capture.consumers import FrameConsumer
from camera_capture.errors import (
    CaptureError,
    ConfigRejected,
    ConsumerError,
    DeviceUnavailable,
    FrameTimeout,
    NotConfigured,
    StreamError,
)

logger = logging.getLogger(__name__)


class SessionState(Enum):
    CLOSED = "closed"
    OPENED = "opened"
    CONFIGURED = "configured"
    STREAMING = "streaming"


@dataclass
class SessionResult:
    """Summary of one ``run``.

    Attributes:
        frames_requested: Number of waits requested.
        frames_captured: Waits that produced a frame.
        frames_timed_out: Waits that timed out or saw a dropped frame.
        frames_rejected: Captured frames the consumer failed on.
        elapsed_s: Wall time spent streaming.
    """

    frames_requested: int
    frames_captured: int = 0
    frames_timed_out: int = 0
    frames_rejected: int = 0
    elapsed_s: float = 0.0

    @property
    def fps(self) -> float:
        return self.frames_captured / self.elapsed_s if self.elapsed_s > 0 else 0.0


def select_device(
    devices: list[DeviceDescriptor],
    index: int = 0,
    serial_number: str = "",
) -> DeviceDescriptor:
    """Pick a camera by serial number, or by enumeration index.

    Raises:
        DeviceUnavailable: If no camera matches.
    """
    if not devices:
        raise DeviceUnavailable("No camera found.")
    if serial_number:
        for d in devices:
            if d.serial_number == serial_number:
                return d
        raise DeviceUnavailable(f"No camera with serial number {serial_number!r}")
    if not 0 <= index < len(devices):
        raise DeviceUnavailable(
            f"Camera index {index} out of range; {len(devices)} camera(s) found"
        )
    return devices[index]


class AcquisitionSession:
    """Lifecycle of one camera: open, configure, run, close.

    Usage::

        with AcquisitionSession(provider) as session:
            session.open(config=AcquisitionConfig())
            result = session.run(300, 1000, consumer)

    Attributes:
        provider: Driver used to enumerate and open the camera.
    """

    def __init__(self, provider: DeviceProvider) -> None:
        self.provider = provider
        self._device: Device | None = None
        self._config: AcquisitionConfig | None = None
        self._state = SessionState.CLOSED
        self._teardown_failures: list[str] = []

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def device(self) -> Device | None:
        return self._device

    @property
    def config(self) -> AcquisitionConfig | None:
        return self._config

    def open(
        self,
        descriptor: DeviceDescriptor | None = None,
        config: AcquisitionConfig | None = None,
        index: int = 0,
        serial_number: str = "",
    ) -> Device:
        """Open a camera and optionally configure it.

        Args:
            descriptor: Camera to open. When ``None``, the provider is
                enumerated and the camera picked by *serial_number* or
                *index*.
            config: If given, applied right away via :meth:`configure`.
            index: Enumeration index used when no descriptor is given.
            serial_number: Serial number used when no descriptor is given.

        Returns:
            The opened device.

        Raises:
            DeviceUnavailable: If no camera is found or it cannot be
                opened.
            ConfigRejected: If *config* is rejected. The camera is
                closed again before this propagates.
        """
        if self._state is not SessionState.CLOSED:
            raise CaptureError("Session already has an open device")

        if descriptor is None:
            descriptor = select_device(
                self.provider.enumerate(), index, serial_number,
            )
        try:
            device = self.provider.open(descriptor)
        except CaptureError:
            raise
        except Exception as exc:
            raise DeviceUnavailable(
                f"Could not open {descriptor.display_name}: {exc}"
            ) from exc

        self._device = device
        self._state = SessionState.OPENED
        logger.info("Camera opened: %s", descriptor.display_name)

        if config is not None:
            try:
                self.configure(config)
            except CaptureError:
                self.close()
                raise
        return device

    def configure(self, config: AcquisitionConfig) -> None:
        """Apply *config* to the open device field by field.

        Raises:
            NotConfigured: If no device is open.
            ConfigRejected: Naming the first field the device refuses.
                The session is left ``OPENED``.
        """
        if self._state is SessionState.CLOSED or self._device is None:
            raise NotConfigured("No device is open")
        if self._state is SessionState.STREAMING:
            raise ConfigRejected(
                "acquisition", config, "configuration is locked while streaming",
            )

        self._state = SessionState.OPENED
        self._config = None
        config.validate()
        for field_name, node_name, value in config.features():
            try:
                self._device.set_feature(node_name, value)
            except ConfigRejected as exc:
                raise ConfigRejected(
                    field_name, getattr(config, field_name), exc.reason or str(exc),
                ) from exc
            logger.debug("%s -> %s = %r", field_name, node_name, value)

        self._config = config
        self._state = SessionState.CONFIGURED
        logger.info(
            "Configured %s: mode=%s exposure=%.1fus %dx%d",
            self._device.descriptor.display_name,
            AcquisitionMode(config.mode).value,
            config.exposure_us,
            config.width,
            config.height,
        )

    def run(
        self,
        frame_count: int,
        timeout_ms: int,
        consumer: FrameConsumer,
    ) -> SessionResult:
        """Wait for exactly *frame_count* frames and hand them to *consumer*.

        Timeouts and consumer failures are counted and logged; the loop
        carries on. Any other stream failure aborts the loop and is
        re-raised once teardown has finished.

        Args:
            frame_count: Number of per-frame waits, ``>= 0``.
            timeout_ms: Per-frame wait bound in milliseconds, ``> 0``.
            consumer: Receives each captured frame.

        Returns:
            Counts for the run.

        Raises:
            NotConfigured: If the device is not configured.
            StreamError: If the stream fails, or is already running.
        """
        if frame_count < 0:
            raise ValueError(f"frame_count must be >= 0, got {frame_count}")
        if timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be > 0, got {timeout_ms}")
        if self._state is SessionState.STREAMING:
            raise StreamError("A stream is already running on this device")
        if self._state is not SessionState.CONFIGURED:
            raise NotConfigured(
                f"Cannot run from state {self._state.value}; configure first"
            )

        result = SessionResult(frames_requested=frame_count)
        self._teardown_failures = []
        started = time.monotonic()

        with self._device_acquisition(), self._stream() as stream:
            for i in range(frame_count):
                try:
                    frame = self._wait(stream, timeout_ms, i)
                except StreamError:
                    logger.error(
                        "Stream error at frame %d of %d, aborting", i, frame_count,
                    )
                    raise
                if frame is None:
                    result.frames_timed_out += 1
                    logger.warning("Frame %d: no frame within %d ms", i, timeout_ms)
                    continue

                result.frames_captured += 1
                try:
                    consumer.accept(frame)
                except ConsumerError as exc:
                    result.frames_rejected += 1
                    logger.warning("Frame %d: consumer failed: %s", i, exc)

        result.elapsed_s = time.monotonic() - started
        if self._teardown_failures:
            raise StreamError(
                "Teardown failed: " + "; ".join(self._teardown_failures)
            )

        logger.info(
            "Captured %d/%d frames (%d timed out) in %.2fs",
            result.frames_captured,
            result.frames_requested,
            result.frames_timed_out,
            result.elapsed_s,
        )
        return result

    def close(self) -> None:
        """Release the device. Safe to call more than once."""
        if self._state is SessionState.CLOSED or self._device is None:
            logger.debug("close() on a session that is already closed")
            return

        device, self._device = self._device, None
        self._state = SessionState.CLOSED
        self._config = None
        try:
            device.close()
        except Exception:
            logger.warning("Failed to close device", exc_info=True)
        logger.info("Camera closed: %s", device.descriptor.display_name)

    def __enter__(self) -> AcquisitionSession:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    @staticmethod
    def _wait(stream: Stream, timeout_ms: int, index: int) -> Frame | None:
        try:
            return stream.wait_for_frame(timeout_ms, index)
        except FrameTimeout:
            return None
        except StreamError:
            raise
        except Exception as exc:
            raise StreamError(f"Frame {index}: {exc}") from exc

    def _teardown(self, what: str, fn: Callable[[], None]) -> None:
        try:
            fn()
        except Exception as exc:
            logger.warning("Failed to %s", what, exc_info=True)
            self._teardown_failures.append(f"{what}: {exc}")

    @contextlib.contextmanager
    def _device_acquisition(self) -> Iterator[None]:
        device = self._device
        try:
            device.start_acquisition()
        except CaptureError:
            raise
        except Exception as exc:
            raise StreamError(f"Failed to start acquisition: {exc}") from exc
        try:
            yield
        finally:
            self._teardown("stop device acquisition", device.stop_acquisition)

    @contextlib.contextmanager
    def _stream(self) -> Iterator[Stream]:
        try:
            stream = self._device.create_stream()
        except CaptureError:
            raise
        except Exception as exc:
            raise StreamError(f"Failed to create stream: {exc}") from exc
        try:
            stream.start()
            self._state = SessionState.STREAMING
            yield stream
        finally:
            self._teardown("stop stream", stream.stop)
            self._teardown("close stream", stream.close)
            self._state = SessionState.CONFIGURED
