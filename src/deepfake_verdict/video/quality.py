from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, List, Sequence, Tuple

import cv2
import numpy as np

from .frames import Frame


@dataclass(frozen=True)
class QualityReport:
    ok: bool
    warnings: List[str]
    stats: Dict


def mean_brightness(frame_bgr: np.ndarray) -> float:
    gray = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2GRAY)
    return float(np.mean(gray))


def blur_score_laplacian(frame_bgr: np.ndarray) -> float:
    """
    Higher = sharper (heuristic). Very low values mean blurry.
    """
    gray = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2GRAY)
    return float(cv2.Laplacian(gray, cv2.CV_64F).var())


def summarize_frames(
    frames: Sequence[Frame],
    *,
    min_resolution: Tuple[int, int] = (160, 160),
    brightness_range: Tuple[float, float] = (20.0, 235.0),
    min_blur_score: float = 20.0,
) -> Dict:
    """
    Lightweight quality statistics over already extracted frames.

    These are diagnostics only: they produce warnings, never failures.
    Returns a dict of QualityReport.
    """
    warnings: List[str] = []
    stats: Dict = {"frame_count": len(frames)}

    if not frames:
        return asdict(QualityReport(ok=False, warnings=["No frames to summarize"], stats=stats))

    width, height = frames[0].width, frames[0].height
    stats["width"] = width
    stats["height"] = height
    if width < min_resolution[0] or height < min_resolution[1]:
        warnings.append(f"Low resolution: {width}x{height} < {min_resolution[0]}x{min_resolution[1]}")

    brightness_vals = [mean_brightness(f.image) for f in frames]
    blur_vals = [blur_score_laplacian(f.image) for f in frames]

    stats["brightness_mean"] = float(np.mean(brightness_vals))
    stats["brightness_min"] = float(np.min(brightness_vals))
    stats["brightness_max"] = float(np.max(brightness_vals))
    stats["blur_mean"] = float(np.mean(blur_vals))
    stats["blur_min"] = float(np.min(blur_vals))
    stats["blur_max"] = float(np.max(blur_vals))

    bmean = stats["brightness_mean"]
    if bmean < brightness_range[0]:
        warnings.append(f"Video appears very dark (mean brightness {bmean:.1f})")
    if bmean > brightness_range[1]:
        warnings.append(f"Video appears very bright (mean brightness {bmean:.1f})")

    smean = stats["blur_mean"]
    if smean < min_blur_score:
        warnings.append(f"Video may be blurry (mean blur score {smean:.1f} < {min_blur_score})")

    return asdict(QualityReport(ok=True, warnings=warnings, stats=stats))
