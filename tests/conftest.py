"""Shared pytest fixtures for deepfake_verdict tests."""

import random
import threading
from typing import List, Optional, Set

import cv2
import numpy as np
import pytest

from deepfake_verdict.classifiers.base import Prediction
from deepfake_verdict.errors import ClassificationError, ClassifierLoadError, FrameExtractionError
from deepfake_verdict.scoring.fallback import DEFAULT_STAGES, FallbackSynthesizer


class FakeVideoSource:
    """In-memory VideoSource producing gradient frames."""

    def __init__(
        self,
        duration: float = 10.0,
        width: int = 64,
        height: int = 48,
        name: str = "clip.mp4",
        fail_at: Optional[int] = None,
        hang_at: Optional[int] = None,
    ):
        self._duration = duration
        self._width = width
        self._height = height
        self._name = name
        self.fail_at = fail_at
        self.hang_at = hang_at
        self.unblock = threading.Event()
        self.captured: List[float] = []
        self.release_count = 0
        self.released = threading.Event()
        self.in_capture = False
        self.released_during_capture = False

    @property
    def name(self):
        return self._name

    @property
    def duration_seconds(self):
        return self._duration

    @property
    def width(self):
        return self._width

    @property
    def height(self):
        return self._height

    def capture_at(self, seconds):
        self.in_capture = True
        try:
            return self._capture(seconds)
        finally:
            self.in_capture = False

    def _capture(self, seconds):
        i = len(self.captured)
        if self.hang_at is not None and i == self.hang_at:
            self.unblock.wait(5.0)
        if self.fail_at is not None and i == self.fail_at:
            raise FrameExtractionError(f"seek failed at {seconds}")
        self.captured.append(seconds)
        frame = np.zeros((self._height, self._width, 3), dtype=np.uint8)
        # horizontal gradient gives the frame some edge energy
        frame[:, :, :] = (np.arange(self._width, dtype=np.uint8) * 4)[None, :, None]
        frame[:, :, 2] = int(seconds * 10) % 256
        return frame

    def release(self):
        if self.in_capture:
            self.released_during_capture = True
        self.release_count += 1
        self.released.set()


class StubClassifier:
    """FrameClassifier with scripted failures."""

    def __init__(
        self,
        fail_load: bool = False,
        fail_frames: Optional[Set[int]] = None,
        fake_probability: Optional[float] = None,
    ):
        self.fail_load = fail_load
        self.fail_frames = fail_frames or set()
        self.fake_probability = fake_probability
        self.load_calls = 0
        self.classified: List[int] = []

    @property
    def name(self):
        return "stub"

    def load(self):
        self.load_calls += 1
        if self.fail_load:
            raise ClassifierLoadError("model unreachable")

    def classify(self, frame):
        if frame.index in self.fail_frames:
            raise ClassificationError(f"frame {frame.index} failed")
        self.classified.append(frame.index)
        return Prediction(
            frame_index=frame.index,
            labels=[("tabby cat", 0.9)],
            fake_probability=self.fake_probability,
            model_name="stub",
        )


class SequenceRandom(random.Random):
    """random.Random whose random() replays fixed values (cycling)."""

    def __init__(self, values):
        super().__init__(0)
        self._values = list(values)
        self._i = 0

    def random(self):
        value = self._values[self._i % len(self._values)]
        self._i += 1
        return value


ZERO_DELAY_STAGES = tuple((p, 0.0) for p, _ in DEFAULT_STAGES)


@pytest.fixture()
def video_source():
    source = FakeVideoSource()
    yield source
    source.unblock.set()


@pytest.fixture()
def rng():
    return random.Random(1234)


@pytest.fixture()
def fallback(rng):
    """Fallback synthesizer without simulated delays."""
    return FallbackSynthesizer(rng, stages=ZERO_DELAY_STAGES)


@pytest.fixture()
def sample_video(tmp_path):
    """A real 10 second, 10 fps MJPG video whose frames encode their index."""
    path = tmp_path / "sample.avi"
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*"MJPG"), 10.0, (64, 48))
    if not writer.isOpened():
        pytest.skip("OpenCV build cannot write MJPG video")
    try:
        for i in range(100):
            frame = np.full((48, 64, 3), (i * 2) % 256, dtype=np.uint8)
            cv2.putText(frame, str(i), (2, 40), cv2.FONT_HERSHEY_SIMPLEX, 1.0, (255, 255, 255), 2)
            writer.write(frame)
    finally:
        writer.release()
    return str(path)
