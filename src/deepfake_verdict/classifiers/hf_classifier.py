from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

import cv2

from ..errors import ClassificationError, ClassifierLoadError
from ..video.frames import Frame
from .base import Prediction
from .registry import register_classifier

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "google/vit-base-patch16-224"

_FAKE_LABELS = {"fake", "deepfake", "manipulated", "synthetic", "ai", "artificial"}
_REAL_LABELS = {"real", "authentic", "realism", "human", "original"}


def _fake_probability(labels: List[Tuple[str, float]]) -> Optional[float]:
    """
    Read a fake probability out of real/fake style labels.

    Generic ImageNet-style labels carry no such meaning and give None.
    """
    fake = [s for label, s in labels if label.strip().lower() in _FAKE_LABELS]
    if fake:
        return max(0.0, min(1.0, sum(fake)))
    real = [s for label, s in labels if label.strip().lower() in _REAL_LABELS]
    if real:
        return max(0.0, min(1.0, 1.0 - sum(real)))
    return None


@register_classifier("huggingface")
@dataclass
class HuggingFaceFrameClassifier:
    """
    transformers image-classification pipeline.

    The libraries (transformers, torch, pillow) come from the "hf" extra and
    are imported in load(), so a missing install is an ordinary load failure.
    """
    model_name: str = DEFAULT_MODEL
    top_k: int = 5
    device: int = -1
    _pipe: Any = field(default=None, init=False, repr=False)

    @property
    def name(self) -> str:
        return "huggingface"

    def load(self) -> None:
        if self._pipe is not None:
            return
        logger.info("Loading image-classification model %s", self.model_name)
        try:
            from transformers import pipeline

            self._pipe = pipeline("image-classification", model=self.model_name, device=self.device)
        except Exception as e:
            raise ClassifierLoadError(f"Failed to load model '{self.model_name}': {e}") from e

    def classify(self, frame: Frame) -> Prediction:
        if self._pipe is None:
            raise ClassificationError("HuggingFaceFrameClassifier.classify() called before load().")

        from PIL import Image

        rgb = cv2.cvtColor(frame.image, cv2.COLOR_BGR2RGB)
        try:
            raw = self._pipe(Image.fromarray(rgb), top_k=self.top_k)
        except Exception as e:
            raise ClassificationError(f"Inference failed on frame {frame.index}: {e}") from e

        labels = [(str(d["label"]), float(d["score"])) for d in raw or []]
        if not labels:
            raise ClassificationError(f"Model returned no labels for frame {frame.index}.")

        return Prediction(
            frame_index=frame.index,
            labels=labels,
            fake_probability=_fake_probability(labels),
            model_name=self.model_name,
        )
