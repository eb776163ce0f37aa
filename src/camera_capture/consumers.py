"""Frame consumers: where captured frames go after acquisition.

A consumer's ``accept`` either succeeds or raises
:class:`~camera_capture.errors.ConsumerError`. The session logs
consumer failures and keeps acquiring.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable, Protocol, runtime_checkable

import cv2

from camera_capture.cameras.base import Frame
from camera_capture.errors import ConsumerError

logger = logging.getLogger(__name__)

RUN_PREFIX = "ProcessVideo"


@runtime_checkable
class FrameConsumer(Protocol):
    """Receives each successfully captured frame."""

    def accept(self, frame: Frame) -> None:
        ...


def run_folder_name(started: datetime) -> str:
    """Return the folder name for a run started at *started*."""
    return f"{RUN_PREFIX}_{started:%Y%m%d_%H%M%S}"


class ImageFileWriter:
    """Write every frame as an image file into a per-run folder.

    Frames land in ``<output_dir>/ProcessVideo_<YYYYmmdd_HHMMSS>/``
    as ``frame_00000.<ext>``, numbered by the frame's loop index.

    Attributes:
        run_dir: Folder receiving this run's images.
        written: Number of files written so far.
    """

    def __init__(
        self,
        output_dir: str | Path,
        image_format: str = "png",
        started: datetime | None = None,
    ) -> None:
        self.image_format = image_format.lstrip(".").lower()
        self.run_dir = Path(output_dir) / run_folder_name(started or datetime.now())
        self.written = 0

    def path_for(self, frame: Frame) -> Path:
        return self.run_dir / f"frame_{frame.index:05d}.{self.image_format}"

    def accept(self, frame: Frame) -> None:
        path = self.path_for(frame)
        try:
            self.run_dir.mkdir(parents=True, exist_ok=True)
            ok = cv2.imwrite(str(path), frame.image)
        except (OSError, cv2.error) as exc:
            raise ConsumerError(f"Could not write {path}: {exc}") from exc
        if not ok:
            raise ConsumerError(f"cv2.imwrite refused {path}")
        self.written += 1
        logger.debug("Wrote %s", path)


class FrameCounter:
    """Count accepted frames and log each one.

    Attributes:
        indices: Loop indices of the frames seen, in arrival order.
    """

    def __init__(self) -> None:
        self.indices: list[int] = []

    @property
    def count(self) -> int:
        return len(self.indices)

    def accept(self, frame: Frame) -> None:
        self.indices.append(frame.index)
        logger.info("Captured frame: %d", frame.index)


class CompositeConsumer:
    """Forward each frame to several consumers in order.

    Every consumer sees every frame even if an earlier one fails; the
    failures are then reported together as one ``ConsumerError``.
    """

    def __init__(self, consumers: Iterable[FrameConsumer]) -> None:
        self.consumers = list(consumers)

    def accept(self, frame: Frame) -> None:
        errors = []
        for consumer in self.consumers:
            try:
                consumer.accept(frame)
            except ConsumerError as exc:
                errors.append(str(exc))
        if errors:
            raise ConsumerError("; ".join(errors))
