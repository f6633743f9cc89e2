from __future__ import annotations

import logging
import os
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import cv2

from .classifiers.base import FrameClassifier, Prediction
from .classifiers.registry import create_classifier, load_builtin_classifiers
from .errors import (
    AggregationPrecondition,
    ClassificationError,
    ClassifierLoadError,
    FallbackExhausted,
    FrameExtractionError,
    FrameExtractionTimeout,
)
from .result import DetectionResult, generate_id, now_ms
from .scoring.aggregator import aggregate
from .scoring.fallback import FallbackSynthesizer
from .video.frames import DEFAULT_NUM_FRAMES, DEFAULT_TIMEOUT_SECONDS, Frame, extract_frames
from .video.quality import summarize_frames
from .video.reader import OpenCVVideoSource, VideoSource

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]
VideoInput = Union[str, "os.PathLike[str]", VideoSource]


class Stage(str, Enum):
    INIT = "init"
    CLASSIFIER_LOADING = "classifier_loading"
    FRAME_EXTRACTING = "frame_extracting"
    CLASSIFYING = "classifying"
    AGGREGATING = "aggregating"
    FALLBACK = "fallback"
    DONE = "done"


class ProgressReporter:
    """
    Forwards progress to an observer, clamped to [0, 100]. Values that do
    not move progress forward are dropped. Observer exceptions are logged
    and dropped.
    """

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self._callback = callback
        self.last = -1

    def report(self, value: int) -> None:
        value = max(0, min(100, int(value)))
        if value <= self.last:
            return
        self.last = value
        if self._callback is None:
            return
        try:
            self._callback(value)
        except Exception:
            logger.exception("Progress observer raised; ignoring")


@dataclass
class _RunState:
    stage: Stage = Stage.INIT

    def enter(self, stage: Stage) -> None:
        logger.debug("Stage %s -> %s", self.stage.value, stage.value)
        self.stage = stage


def _is_path(video: Any) -> bool:
    return isinstance(video, (str, os.PathLike))


def _display_name(video: VideoInput) -> str:
    if _is_path(video):
        return os.path.basename(os.fspath(video))
    return str(getattr(video, "name", "video"))


def _fallback_reason(error: Exception) -> str:
    if isinstance(error, ClassifierLoadError):
        return f"Classifier failed to load: {error}"
    if isinstance(error, FrameExtractionTimeout):
        return f"Frame extraction timed out: {error}"
    if isinstance(error, FrameExtractionError):
        return f"Frame extraction failed: {error}"
    if isinstance(error, (ClassificationError, AggregationPrecondition)):
        return f"No predictions generated from model: {error}"
    return f"Unexpected error during analysis: {error!r}"


def _classify_one(classifier: FrameClassifier, frame: Frame) -> Optional[Prediction]:
    try:
        return classifier.classify(frame)
    except ClassificationError:
        raise
    except Exception as e:
        raise ClassificationError(f"{type(e).__name__}: {e}") from e


def _classify_frames(
    classifier: FrameClassifier,
    frames: List[Frame],
    progress: ProgressReporter,
) -> Tuple[List[Prediction], List[int]]:
    """Classify frames one by one; a failing frame is skipped, not fatal."""
    predictions: List[Prediction] = []
    failed: List[int] = []
    total = len(frames)

    for i, frame in enumerate(frames):
        try:
            prediction = _classify_one(classifier, frame)
        except ClassificationError as e:
            logger.warning("Error analyzing frame %d: %s", frame.index, e)
            failed.append(frame.index)
        else:
            if prediction is None:
                failed.append(frame.index)
            else:
                predictions.append(prediction)
        progress.report(50 + (i + 1) * 40 // total)

    return predictions, failed


def _frame_quality(frames: List[Frame]) -> Dict[str, Any]:
    try:
        return summarize_frames(frames)
    except (cv2.error, ValueError) as e:
        logger.debug("Frame quality summary skipped: %s", e)
        return {}


def _run_model_path(
    video: VideoInput,
    *,
    classifier: Optional[FrameClassifier],
    classifier_name: str,
    classifier_options: Dict[str, Any],
    filename: str,
    num_frames: int,
    frame_timeout: float,
    rng: random.Random,
    state: _RunState,
    progress: ProgressReporter,
    started: float,
    sources: List[VideoSource],
) -> DetectionResult:
    state.enter(Stage.CLASSIFIER_LOADING)
    if classifier is None:
        load_builtin_classifiers()
        try:
            classifier = create_classifier(classifier_name, **classifier_options)
        except (ValueError, TypeError) as e:
            raise ClassifierLoadError(str(e)) from e
    try:
        classifier.load()
    except Exception as e:
        progress.report(30)
        if isinstance(e, ClassifierLoadError):
            raise
        raise ClassifierLoadError(f"{type(e).__name__}: {e}") from e
    progress.report(30)
    logger.info("Classifier '%s' ready. Extracting video frames...", classifier.name)

    state.enter(Stage.FRAME_EXTRACTING)
    source = OpenCVVideoSource(os.fspath(video)) if _is_path(video) else video
    # extract_frames owns the source from here on; after a timeout its worker
    # may still be inside capture_at and releases the source itself.
    sources.clear()
    frames = extract_frames(source, num_frames, timeout_seconds=frame_timeout)
    if not frames:
        raise FrameExtractionError("No frames extracted from video")
    progress.report(50)

    state.enter(Stage.CLASSIFYING)
    predictions, failed = _classify_frames(classifier, frames, progress)
    if not predictions:
        raise ClassificationError(f"All {len(frames)} frame classifications failed")
    quality = _frame_quality(frames)
    frame_count = len(frames)
    del frames
    progress.report(90)

    state.enter(Stage.AGGREGATING)
    scores = aggregate(predictions, rng=rng)
    progress.report(100)

    return DetectionResult(
        id=generate_id(),
        filename=filename,
        timestamp=now_ms(),
        real_score=scores.real_score,
        fake_score=scores.fake_score,
        confidence=scores.confidence,
        verdict=scores.verdict,
        features=scores.features,
        detection_time=max(time.perf_counter() - started, 1e-6),
        metadata={
            "fallbackMode": False,
            "modelUsed": classifier.name,
            "predictionsCount": len(predictions),
            "framesExtracted": frame_count,
            "failedFrames": len(failed),
            "failedFrameIndices": failed,
            "scoreSource": scores.source,
            "frameQuality": quality.get("stats", {}),
            "qualityWarnings": quality.get("warnings", []),
        },
    )


def analyze_video(
    video: Optional[VideoInput],
    *,
    classifier: Optional[FrameClassifier] = None,
    classifier_name: str = "mock",
    classifier_options: Optional[Dict[str, Any]] = None,
    filename: Optional[str] = None,
    on_progress: Optional[ProgressCallback] = None,
    num_frames: int = DEFAULT_NUM_FRAMES,
    frame_timeout: float = DEFAULT_TIMEOUT_SECONDS,
    rng: Optional[random.Random] = None,
    fallback: Optional[FallbackSynthesizer] = None,
) -> DetectionResult:
    """
    End-to-end analysis:
      classifier load -> frames -> per-frame classification -> aggregation

    Any failure along the way is downgraded to the fallback path, so the
    caller always receives a complete DetectionResult; metadata["fallbackMode"]
    tells the two paths apart.

    Pass a classifier instance, or a registered classifier_name to build a
    fresh one for this run.

    Raises:
        ValueError: no video given at all
        FallbackExhausted: the fallback path itself failed
    """
    if video is None or (_is_path(video) and not os.fspath(video)):
        raise ValueError("No video provided.")

    started = time.perf_counter()
    rng = rng or random.Random()
    fallback = fallback or FallbackSynthesizer(rng)
    display_name = filename or _display_name(video)
    progress = ProgressReporter(on_progress)
    state = _RunState()
    # Sources not yet handed to extract_frames; released below.
    sources: List[VideoSource] = [] if _is_path(video) else [video]

    progress.report(10)
    logger.info("Analyzing %s", display_name)

    try:
        result = _run_model_path(
            video,
            classifier=classifier,
            classifier_name=classifier_name,
            classifier_options=classifier_options or {},
            filename=display_name,
            num_frames=num_frames,
            frame_timeout=frame_timeout,
            rng=rng,
            state=state,
            progress=progress,
            started=started,
            sources=sources,
        )
    except Exception as e:
        reason = _fallback_reason(e)
        failed_stage = state.stage
        logger.warning("Using fallback analysis for %s after %s: %s", display_name, failed_stage.value, reason)
        state.enter(Stage.FALLBACK)
        try:
            result = fallback.synthesize(
                display_name,
                reason=reason,
                failed_stage=failed_stage.value,
                on_progress=progress.report,
                started_at=started,
            )
        except Exception as fe:
            raise FallbackExhausted(f"Fallback analysis failed: {fe}") from fe
    finally:
        for source in sources:
            source.release()

    state.enter(Stage.DONE)
    logger.info(
        "Result for %s: %s (confidence %.1f, fallback=%s, %.2fs)",
        display_name,
        result.verdict,
        result.confidence,
        result.fallback_mode,
        result.detection_time,
    )
    return result
