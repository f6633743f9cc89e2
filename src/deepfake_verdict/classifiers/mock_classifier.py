from __future__ import annotations

from dataclasses import dataclass, field

from ..errors import ClassificationError
from ..video.frames import Frame
from ..video.quality import blur_score_laplacian, mean_brightness
from .base import Prediction
from .registry import register_classifier


@register_classifier("mock")
@dataclass
class MockFrameClassifier:
    """
    Offline classifier built on two frame statistics. Useful for demos and
    tests; it says nothing reliable about manipulation.
    """
    model_name: str = "mock-heuristic"
    min_blur_score: float = 20.0
    _loaded: bool = field(default=False, init=False, repr=False)

    @property
    def name(self) -> str:
        return "mock"

    def load(self) -> None:
        self._loaded = True

    def classify(self, frame: Frame) -> Prediction:
        if not self._loaded:
            raise ClassificationError("MockFrameClassifier.classify() called before load().")
        if frame.image is None or frame.image.size == 0:
            raise ClassificationError(f"Frame {frame.index} is empty.")

        brightness = mean_brightness(frame.image)
        blur = blur_score_laplacian(frame.image)

        # Simple interpretable heuristic:
        # - very smooth frames (little edge energy) are treated as suspicious
        # - very dark or blown-out frames carry no signal
        if blur < self.min_blur_score:
            fake = 0.75
        elif brightness < 20.0 or brightness > 235.0:
            fake = 0.5
        else:
            fake = 0.2

        return Prediction(
            frame_index=frame.index,
            labels=[("real", 1.0 - fake), ("fake", fake)],
            fake_probability=fake,
            model_name=self.model_name,
        )
