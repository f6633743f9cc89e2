from __future__ import annotations

import base64
import logging
import os
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Tuple

from dotenv import load_dotenv
from openai import AzureOpenAI, RateLimitError

from ..errors import ClassificationError, ClassifierLoadError
from ..video.frames import Frame
from .base import Prediction, encode_jpeg
from .registry import register_classifier

logger = logging.getLogger(__name__)

FRAME_PROMPT = (
    "You are reviewing a single still frame taken from a video.\n"
    "Decide whether the frame looks like authentic camera footage or like a "
    "synthetically generated or manipulated image (face swap, GAN or diffusion "
    "artifacts, warped edges, inconsistent lighting).\n"
    "Answer in exactly this format:\n"
    "Label: REAL or FAKE\n"
    "Score: <probability between 0 and 1 that the frame is FAKE>"
)

_LABEL_RE = re.compile(r"^\s*Label\s*:\s*(REAL|FAKE)\s*$", re.IGNORECASE | re.MULTILINE)
_SCORE_RE = re.compile(r"^\s*Score\s*:\s*([0-9]*\.?[0-9]+)\s*$", re.IGNORECASE | re.MULTILINE)

_REQUIRED_ENV = (
    "AZURE_OPENAI_ENDPOINT",
    "AZURE_OPENAI_API_KEY",
    "AZURE_OPENAI_DEPLOYMENT_NAME",
    "AZURE_OPENAI_API_VERSION",
)


def parse_frame_answer(raw_text: str) -> Tuple[str, float]:
    """
    Parse the strict answer format:
      Label: REAL|FAKE
      Score: <0..1>

    A missing score is inferred from the label (0.9 for FAKE, 0.1 for REAL).
    Raises ClassificationError if no label is found.
    """
    label_match = _LABEL_RE.search(raw_text or "")
    if not label_match:
        raise ClassificationError(f"Failed to parse model output label: {raw_text!r}")

    label = label_match.group(1).upper()
    score_match = _SCORE_RE.search(raw_text or "")
    if score_match:
        fake = max(0.0, min(1.0, float(score_match.group(1))))
    else:
        fake = 0.9 if label == "FAKE" else 0.1
    return label, fake


@register_classifier("azure")
@dataclass
class AzureVisionFrameClassifier:
    """
    Azure OpenAI vision model asked about one frame at a time.

    Assumes environment variables are set (a .env file is honoured).
    """
    model_name: str = "azure-openai"
    max_attempts: int = 3
    rate_limit_wait: float = 60.0
    sleep: Callable[[float], None] = time.sleep
    _client: Any = field(default=None, init=False, repr=False)
    _deployment: Optional[str] = field(default=None, init=False, repr=False)

    @property
    def name(self) -> str:
        return "azure"

    def load(self) -> None:
        if self._client is not None:
            return

        load_dotenv()
        missing = [k for k in _REQUIRED_ENV if not os.getenv(k)]
        if missing:
            raise ClassifierLoadError(
                "Missing Azure OpenAI environment variables: " + ", ".join(missing)
            )

        self._deployment = os.getenv("AZURE_OPENAI_DEPLOYMENT_NAME")
        try:
            self._client = AzureOpenAI(
                api_key=os.getenv("AZURE_OPENAI_API_KEY"),
                api_version=os.getenv("AZURE_OPENAI_API_VERSION"),
                azure_endpoint=os.getenv("AZURE_OPENAI_ENDPOINT"),
            )
        except Exception as e:
            raise ClassifierLoadError(f"Failed to create Azure OpenAI client: {e}") from e

    @staticmethod
    def _frame_to_data_url(frame: Frame) -> str:
        b64 = base64.b64encode(encode_jpeg(frame)).decode("utf-8")
        return f"data:image/jpeg;base64,{b64}"

    def classify(self, frame: Frame) -> Prediction:
        if self._client is None:
            raise ClassificationError("AzureVisionFrameClassifier.classify() called before load().")

        content = [
            {"type": "text", "text": FRAME_PROMPT},
            {"type": "image_url", "image_url": {"url": self._frame_to_data_url(frame)}},
        ]
        messages = [{"role": "user", "content": content}]

        resp = None
        for attempt in range(self.max_attempts):
            try:
                resp = self._client.chat.completions.create(
                    model=self._deployment,
                    messages=messages,
                    temperature=0.0,
                )
                break
            except RateLimitError as e:
                if attempt == self.max_attempts - 1:
                    raise ClassificationError(f"Rate limited on frame {frame.index}: {e}") from e
                logger.warning(
                    "Azure OpenAI rate limit hit on frame %d. Sleeping %.0fs and retrying...",
                    frame.index,
                    self.rate_limit_wait,
                )
                self.sleep(self.rate_limit_wait)
            except Exception as e:
                raise ClassificationError(f"Azure OpenAI call failed on frame {frame.index}: {e}") from e

        text = resp.choices[0].message.content or ""
        label, fake = parse_frame_answer(text)

        return Prediction(
            frame_index=frame.index,
            labels=[(label, fake if label == "FAKE" else 1.0 - fake)],
            fake_probability=fake,
            model_name=self.model_name,
        )
