"""Tests for camera_capture.consumers."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import cv2
import numpy as np
import pytest

from camera_capture.cameras.base import Frame
from camera_capture.consumers import (
    CompositeConsumer,
    FrameConsumer,
    FrameCounter,
    ImageFileWriter,
    run_folder_name,
)
from camera_capture.errors import ConsumerError


def _frame(index: int = 0, shape: tuple[int, ...] = (8, 10)) -> Frame:
    return Frame(
        index=index,
        image=np.full(shape, 40 + index, dtype=np.uint8),
        timestamp=datetime(2024, 5, 1, 12, 0, 0),
    )


class TestRunFolderName:
    """Tests for run_folder_name."""

    def test_format(self) -> None:
        assert run_folder_name(datetime(2024, 5, 1, 9, 3, 7)) == "ProcessVideo_20240501_090307"


class TestImageFileWriter:
    """Tests for ImageFileWriter."""

    def test_is_consumer(self, tmp_path: Path) -> None:
        assert isinstance(ImageFileWriter(tmp_path), FrameConsumer)

    def test_writes_png(self, tmp_path: Path) -> None:
        writer = ImageFileWriter(tmp_path, started=datetime(2024, 5, 1, 9, 3, 7))
        writer.accept(_frame(3))
        path = tmp_path / "ProcessVideo_20240501_090307" / "frame_00003.png"
        assert path.exists()
        img = cv2.imread(str(path), cv2.IMREAD_GRAYSCALE)
        assert img.shape == (8, 10)
        assert int(img[0, 0]) == 43
        assert writer.written == 1

    def test_format_normalized(self, tmp_path: Path) -> None:
        writer = ImageFileWriter(tmp_path, image_format=".BMP")
        assert writer.path_for(_frame(1)).name == "frame_00001.bmp"

    def test_unwritable_raises_consumer_error(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        writer = ImageFileWriter(blocker)
        with pytest.raises(ConsumerError):
            writer.accept(_frame())
        assert writer.written == 0

    def test_unknown_extension_raises_consumer_error(self, tmp_path: Path) -> None:
        writer = ImageFileWriter(tmp_path, image_format="notanimage")
        with pytest.raises(ConsumerError):
            writer.accept(_frame())


class TestFrameCounter:
    """Tests for FrameCounter."""

    def test_counts_and_logs(self, caplog: pytest.LogCaptureFixture) -> None:
        counter = FrameCounter()
        with caplog.at_level("INFO"):
            counter.accept(_frame(0))
            counter.accept(_frame(2))
        assert counter.count == 2
        assert counter.indices == [0, 2]
        assert "Captured frame: 2" in caplog.text


class TestCompositeConsumer:
    """Tests for CompositeConsumer."""

    def test_fans_out(self) -> None:
        a, b = FrameCounter(), FrameCounter()
        CompositeConsumer([a, b]).accept(_frame(5))
        assert a.indices == b.indices == [5]

    def test_failure_does_not_starve_later_consumers(self) -> None:
        class Failing:
            def accept(self, frame: Frame) -> None:
                raise ConsumerError("disk full")

        counter = FrameCounter()
        with pytest.raises(ConsumerError, match="disk full"):
            CompositeConsumer([Failing(), counter]).accept(_frame())
        assert counter.count == 1
