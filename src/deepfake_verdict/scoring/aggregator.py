from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Dict, Literal, Optional, Sequence

import numpy as np

from ..classifiers.base import Prediction
from ..errors import AggregationPrecondition
from ..result import FEATURE_KEYS, Verdict, compute_confidence, decide_verdict

logger = logging.getLogger(__name__)

ScoreSource = Literal["classifier", "prior"]

# Each feature is min(100, fake_score * weight).
FEATURE_WEIGHTS: Dict[str, float] = {
    "faceInconsistencies": 120.0,
    "audioVisualSync": 110.0,
    "textureAnomalies": 130.0,
    "unnaturalEyeBlinking": 100.0,
    "unnaturalMovements": 120.0,
}

# Used when no prediction carries a fake probability: real_score ~ U[0.6, 0.9).
PRIOR_REAL_LOW = 0.6
PRIOR_REAL_SPAN = 0.3


@dataclass(frozen=True)
class AggregateScores:
    real_score: float
    fake_score: float
    confidence: float
    verdict: Verdict
    features: Dict[str, float]
    source: ScoreSource


def feature_scores(fake_score: float) -> Dict[str, float]:
    """Project the aggregate fake probability onto the five anomaly indicators."""
    fake_score = max(0.0, min(1.0, fake_score))
    return {key: min(100.0, fake_score * FEATURE_WEIGHTS[key]) for key in FEATURE_KEYS}


def aggregate(predictions: Sequence[Prediction], *, rng: Optional[random.Random] = None) -> AggregateScores:
    """
    Reduce per-frame predictions to scores, confidence, verdict and features.

    Order-insensitive. Raises AggregationPrecondition on an empty input.
    """
    if not predictions:
        raise AggregationPrecondition("Cannot aggregate an empty prediction set.")

    probs = [p.fake_probability for p in predictions if p.fake_probability is not None]
    source: ScoreSource
    if probs:
        fake_score = float(np.clip(np.mean(probs), 0.0, 1.0))
        real_score = 1.0 - fake_score
        source = "classifier"
    else:
        r = rng or random.Random()
        real_score = PRIOR_REAL_LOW + r.random() * PRIOR_REAL_SPAN
        fake_score = 1.0 - real_score
        source = "prior"

    confidence = compute_confidence(real_score, fake_score)
    verdict = decide_verdict(confidence, real_score, fake_score)

    logger.debug(
        "Aggregated %d predictions (%s): real=%.3f fake=%.3f confidence=%.1f verdict=%s",
        len(predictions),
        source,
        real_score,
        fake_score,
        confidence,
        verdict,
    )

    return AggregateScores(
        real_score=real_score,
        fake_score=fake_score,
        confidence=confidence,
        verdict=verdict,
        features=feature_scores(fake_score),
        source=source,
    )
