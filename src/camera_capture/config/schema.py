"""Dataclass configuration schemas for camera capture.

Each concern has its own configuration dataclass. The top-level
``CameraCaptureConfig`` composes them into a single tree that can be
serialized to / deserialized from YAML.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum

from camera_capture.config.paths import default_output_dir
from camera_capture.errors import ConfigRejected


class AcquisitionMode(str, Enum):
    """GenICam ``AcquisitionMode`` entries supported by the session."""

    SINGLE_FRAME = "SingleFrame"
    CONTINUOUS = "Continuous"


@dataclass(frozen=True)
class AcquisitionConfig:
    """Device parameters applied before the stream starts.

    Frozen so a running session cannot have its parameters changed
    underneath it.

    Attributes:
        mode: Acquisition mode written to ``AcquisitionMode``.
        exposure_us: Exposure time in microseconds (``ExposureTime``).
        width: Image width in pixels (``Width``).
        height: Image height in pixels (``Height``).
    """

    mode: AcquisitionMode = AcquisitionMode.CONTINUOUS
    exposure_us: float = 20000.0
    width: int = 1920
    height: int = 1080

    def validate(self) -> None:
        """Check field types and signs independent of any device.

        Raises:
            ConfigRejected: Naming the first invalid field.
        """
        try:
            AcquisitionMode(self.mode)
        except ValueError:
            raise ConfigRejected(
                "mode", self.mode,
                "expected one of "
                + ", ".join(m.value for m in AcquisitionMode),
            ) from None

        exposure = self.exposure_us
        if (
            isinstance(exposure, bool)
            or not isinstance(exposure, (int, float))
            or not math.isfinite(exposure)
            or exposure <= 0
        ):
            raise ConfigRejected(
                "exposure_us", exposure, "must be a positive number",
            )

        for name in ("width", "height"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ConfigRejected(name, value, "must be a positive integer")

    def features(self) -> list[tuple[str, str, object]]:
        """Return ``(field, node_name, value)`` in the order to apply them."""
        return [
            ("mode", "AcquisitionMode", AcquisitionMode(self.mode).value),
            ("exposure_us", "ExposureTime", float(self.exposure_us)),
            ("width", "Width", int(self.width)),
            ("height", "Height", int(self.height)),
        ]


@dataclass(frozen=True)
class CaptureConfig:
    """Acquisition loop bounds.

    Attributes:
        frame_count: Number of frames to wait for.
        timeout_ms: Per-frame wait timeout in milliseconds.
    """

    frame_count: int = 300
    timeout_ms: int = 1000

    def validate(self) -> None:
        """Check both bounds are integers in range.

        Raises:
            ConfigRejected: Naming the first invalid field.
        """
        for name, minimum in (("frame_count", 0), ("timeout_ms", 1)):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigRejected(name, value, "must be an integer")
            if value < minimum:
                raise ConfigRejected(name, value, f"must be >= {minimum}")


@dataclass(frozen=True)
class DeviceConfig:
    """Which driver and which camera to open.

    Attributes:
        camera_type: Driver to use: ``genicam`` or ``simulated``.
        cti_path: GenTL producer file. Empty falls back to the
            ``CAM_CTI_PATH`` environment variable.
        index: Enumeration index of the camera to open.
        serial_number: Serial number of the camera to open. Takes
            precedence over *index* when set.
    """

    camera_type: str = "genicam"
    cti_path: str = ""
    index: int = 0
    serial_number: str = ""


@dataclass(frozen=True)
class OutputConfig:
    """Where captured frames are written.

    Attributes:
        output_dir: Directory receiving one sub-folder per run.
        image_format: File extension understood by ``cv2.imwrite``.
        save_images: Whether to write frames to disk at all.
    """

    output_dir: str = field(default_factory=lambda: str(default_output_dir()))
    image_format: str = "png"
    save_images: bool = True


@dataclass(frozen=True)
class CameraCaptureConfig:
    """Top-level configuration composing all sub-configs.

    Attributes:
        device: Driver and camera selection.
        acquisition: Device parameters.
        capture: Acquisition loop bounds.
        output: Frame output settings.
    """

    device: DeviceConfig = field(default_factory=DeviceConfig)
    acquisition: AcquisitionConfig = field(default_factory=AcquisitionConfig)
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
