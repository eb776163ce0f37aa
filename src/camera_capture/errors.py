"""Exception hierarchy for camera acquisition.

Only :class:`FrameTimeout` and :class:`ConsumerError` are recovered
inside the acquisition loop. Everything else propagates to the caller
once the stream and device have been torn down.
"""

from __future__ import annotations

from typing import Any


class CaptureError(Exception):
    """Base class for all acquisition errors."""


class DeviceUnavailable(CaptureError):
    """No camera is present, or the selected camera cannot be opened."""


class ConfigRejected(CaptureError):
    """A configuration field is invalid or outside the device's range.

    Attributes:
        field: Name of the offending configuration field.
        value: The rejected value.
        reason: Human-readable explanation.
    """

    def __init__(self, field: str, value: Any, reason: str = "") -> None:
        self.field = field
        self.value = value
        self.reason = reason
        msg = f"{field}={value!r} rejected"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class NotConfigured(CaptureError):
    """An operation was attempted before the device was configured."""


class FrameTimeout(CaptureError):
    """No frame arrived within the per-frame timeout."""


class StreamError(CaptureError):
    """The acquisition stream failed for a reason other than a timeout."""


class ConsumerError(CaptureError):
    """A frame consumer failed to persist or forward a frame."""
