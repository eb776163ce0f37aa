"""Provider factory for creating camera drivers by name."""

from __future__ import annotations

from camera_capture.cameras.base import DeviceProvider


def create_provider(camera_type: str, **kwargs: object) -> DeviceProvider:
    """Create a device provider by type name.

    Args:
        camera_type: Driver name, one of ``"genicam"`` or ``"simulated"``.
        **kwargs: Driver-specific arguments, e.g. ``cti_path`` for
            ``"genicam"`` or ``drop_frames`` for ``"simulated"``.

    Returns:
        A ``DeviceProvider``-compatible driver instance.

    Raises:
        ValueError: If *camera_type* is not recognized.
    """
    camera_type = camera_type.lower().strip()

    if camera_type in ("genicam", "gentl", "harvesters", "ids"):
        from camera_capture.cameras.genicam import GenICamProvider
        return GenICamProvider(**kwargs)

    if camera_type in ("simulated", "sim"):
        from camera_capture.cameras.simulated import SimulatedProvider
        return SimulatedProvider(**kwargs)

    raise ValueError(
        f"Unknown camera type: {camera_type!r}. "
        f"Supported: 'genicam', 'simulated'."
    )
