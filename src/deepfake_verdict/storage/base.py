from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Protocol

from ..result import DetectionResult


@dataclass(frozen=True)
class DetectionStats:
    total_analyzed: int
    real_detected: int
    fake_detected: int
    uncertain_detected: int
    average_confidence: float

    def to_dict(self) -> dict:
        return {
            "totalAnalyzed": self.total_analyzed,
            "realDetected": self.real_detected,
            "fakeDetected": self.fake_detected,
            "uncertainDetected": self.uncertain_detected,
            "averageConfidence": self.average_confidence,
        }


def compute_stats(results: Iterable[DetectionResult]) -> DetectionStats:
    results = list(results)
    total = len(results)
    return DetectionStats(
        total_analyzed=total,
        real_detected=sum(1 for r in results if r.verdict == "real"),
        fake_detected=sum(1 for r in results if r.verdict == "fake"),
        uncertain_detected=sum(1 for r in results if r.verdict == "uncertain"),
        average_confidence=(sum(r.confidence for r in results) / total) if total else 0.0,
    )


class ResultSink(Protocol):
    """
    Persistence for DetectionResult values.

    list() returns newest first. owner_id=None means "all owners" when
    reading and "anonymous" when saving.
    """

    def save(self, result: DetectionResult, owner_id: Optional[str] = None) -> str:
        ...

    def list(self, owner_id: Optional[str] = None) -> List[DetectionResult]:
        ...

    def get(self, result_id: str) -> Optional[DetectionResult]:
        ...

    def delete_by_owner(self, owner_id: str) -> int:
        ...

    def clear(self) -> None:
        ...

    def stats(self, owner_id: Optional[str] = None) -> DetectionStats:
        ...
