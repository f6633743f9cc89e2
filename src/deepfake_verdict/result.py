from __future__ import annotations

import copy
import random
import string
import time
import types
from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Mapping, Optional, Tuple

Verdict = Literal["real", "fake", "uncertain"]

VERDICTS: Tuple[str, ...] = ("real", "fake", "uncertain")

FEATURE_KEYS: Tuple[str, ...] = (
    "faceInconsistencies",
    "audioVisualSync",
    "textureAnomalies",
    "unnaturalEyeBlinking",
    "unnaturalMovements",
)

# Below this confidence the verdict is "uncertain" whatever the scores say.
UNCERTAIN_BELOW = 50.0

_ID_ALPHABET = string.digits + string.ascii_lowercase


def compute_confidence(real_score: float, fake_score: float) -> float:
    """Map score separation to [0, 100]: |real - fake| * 200, capped at 100."""
    return min(100.0, abs(real_score - fake_score) * 200.0)


def decide_verdict(confidence: float, real_score: float, fake_score: float) -> Verdict:
    if confidence < UNCERTAIN_BELOW:
        return "uncertain"
    return "real" if real_score > fake_score else "fake"


def generate_id(rng: Optional[random.Random] = None) -> str:
    """Opaque 26-character base-36 identifier."""
    r = rng or random.SystemRandom()
    return "".join(r.choice(_ID_ALPHABET) for _ in range(26))


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class DetectionResult:
    id: str
    filename: str
    timestamp: int
    real_score: float
    fake_score: float
    confidence: float
    verdict: Verdict
    features: Mapping[str, float]
    detection_time: float
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # Read-only copies, detached from the mappings passed in.
        object.__setattr__(self, "features", types.MappingProxyType(copy.deepcopy(dict(self.features))))
        object.__setattr__(self, "metadata", types.MappingProxyType(copy.deepcopy(dict(self.metadata))))

    @property
    def fallback_mode(self) -> bool:
        return bool(self.metadata.get("fallbackMode", False))

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize to the camelCase shape consumed by result stores and displays.
        """
        return {
            "id": self.id,
            "filename": self.filename,
            "timestamp": self.timestamp,
            "realScore": self.real_score,
            "fakeScore": self.fake_score,
            "confidence": self.confidence,
            "verdict": self.verdict,
            "features": dict(self.features),
            "detectionTime": self.detection_time,
            "metadata": copy.deepcopy(dict(self.metadata)),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DetectionResult":
        verdict = data["verdict"]
        if verdict not in VERDICTS:
            raise ValueError(f"Unknown verdict: {verdict!r}")

        real_score = float(data["realScore"])
        fake_score = float(data.get("fakeScore", 1.0 - real_score))
        return cls(
            id=str(data["id"]),
            filename=str(data.get("filename", "")),
            timestamp=int(data["timestamp"]),
            real_score=real_score,
            fake_score=fake_score,
            confidence=float(data["confidence"]),
            verdict=verdict,
            features={k: float(v) for k, v in (data.get("features") or {}).items()},
            detection_time=float(data.get("detectionTime", 0.0)),
            metadata=dict(data.get("metadata") or {}),
        )
