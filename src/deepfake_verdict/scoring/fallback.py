from __future__ import annotations

import logging
import random
import time
from typing import Callable, Optional, Sequence, Tuple

from ..result import (
    FEATURE_KEYS,
    DetectionResult,
    compute_confidence,
    decide_verdict,
    generate_id,
    now_ms,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]

# (progress reached, delay before the next stage in seconds)
DEFAULT_STAGES: Tuple[Tuple[int, float], ...] = (
    (10, 0.5),
    (30, 0.5),
    (50, 0.8),
    (75, 0.7),
    (95, 0.4),
)

REAL_BUCKET = 0.6
FAKE_BUCKET = 0.9


class FallbackSynthesizer:
    """
    Produces a complete synthetic DetectionResult when the model path cannot.

    Outcome buckets from one uniform draw u:
      u < 0.6        real       real_score ~ U[0.7, 1.0)
      0.6 <= u < 0.9 fake       fake_score ~ U[0.7, 1.0)
      u >= 0.9       uncertain  real_score ~ U[0.4, 0.6)

    Features are drawn independently per key: U[0, 30) for real,
    U[60, 100) otherwise.

    Pass a seeded random.Random for reproducible results and
    sleep=lambda s: None (or stages with zero delays) to skip the simulated
    stage timing.
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        stages: Sequence[Tuple[int, float]] = DEFAULT_STAGES,
    ):
        self.rng = rng or random.Random()
        self.sleep = sleep
        self.stages = tuple(stages)

    def draw_scores(self) -> Tuple[float, float]:
        """Return (real_score, fake_score) from one bucket draw."""
        u = self.rng.random()
        if u < REAL_BUCKET:
            real_score = 0.7 + self.rng.random() * 0.3
            fake_score = 1.0 - real_score
        elif u < FAKE_BUCKET:
            fake_score = 0.7 + self.rng.random() * 0.3
            real_score = 1.0 - fake_score
        else:
            real_score = 0.4 + self.rng.random() * 0.2
            fake_score = 1.0 - real_score
        return real_score, fake_score

    def draw_features(self, verdict: str) -> dict:
        if verdict == "real":
            return {key: self.rng.random() * 30.0 for key in FEATURE_KEYS}
        return {key: 60.0 + self.rng.random() * 40.0 for key in FEATURE_KEYS}

    def synthesize(
        self,
        filename: str,
        *,
        reason: str = "Model prediction failed",
        failed_stage: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
        started_at: Optional[float] = None,
    ) -> DetectionResult:
        """
        Build the synthetic result, reporting progress through the simulated
        stages. started_at is a time.perf_counter() value; when given,
        detection_time covers the whole run rather than this call only.
        """
        start = time.perf_counter() if started_at is None else started_at
        logger.info("Using fallback analysis for %s (%s)", filename, reason)

        for progress, delay in self.stages:
            if on_progress:
                on_progress(progress)
            if delay > 0:
                self.sleep(delay)

        real_score, fake_score = self.draw_scores()
        confidence = compute_confidence(real_score, fake_score)
        verdict = decide_verdict(confidence, real_score, fake_score)
        features = self.draw_features(verdict)

        if on_progress:
            on_progress(100)

        metadata = {"fallbackMode": True, "reason": reason}
        if failed_stage:
            metadata["failedStage"] = failed_stage

        return DetectionResult(
            id=generate_id(),
            filename=filename,
            timestamp=now_ms(),
            real_score=real_score,
            fake_score=fake_score,
            confidence=confidence,
            verdict=verdict,
            features=features,
            # detection_time is always strictly positive
            detection_time=max(time.perf_counter() - start, 1e-6),
            metadata=metadata,
        )
