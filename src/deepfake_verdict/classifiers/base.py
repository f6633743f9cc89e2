from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Tuple

import cv2

from ..errors import ClassificationError
from ..video.frames import Frame


@dataclass(frozen=True)
class Prediction:
    """
    Classifier output for one frame.

    labels holds (label, score) pairs as the backend reported them.
    fake_probability is set only by backends whose labels mean real/fake.
    """
    frame_index: int
    labels: List[Tuple[str, float]] = field(default_factory=list)
    fake_probability: Optional[float] = None
    model_name: str = ""


class FrameClassifier(Protocol):
    """
    Interface for per-frame classifiers.

    load() is slow and one-time (model download, client setup) and must be
    safe to call twice. It raises ClassifierLoadError.
    classify() is called once per frame and raises ClassificationError.

    Different model providers can implement this interface.
    """

    @property
    def name(self) -> str:
        ...

    def load(self) -> None:
        ...

    def classify(self, frame: Frame) -> Prediction:
        ...


def encode_jpeg(frame: Frame, quality: int = 90) -> bytes:
    encode_params = [int(cv2.IMWRITE_JPEG_QUALITY), int(max(0, min(100, quality)))]
    ok, buf = cv2.imencode(".jpg", frame.image, encode_params)
    if not ok:
        raise ClassificationError(f"Failed to encode frame {frame.index} as JPEG")
    return buf.tobytes()
