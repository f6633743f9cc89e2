from __future__ import annotations


class DetectionError(Exception):
    """Base class for every error raised by the detection pipeline."""


class ClassifierLoadError(DetectionError):
    """The frame classifier could not be initialized."""


class FrameExtractionError(DetectionError):
    """Frames could not be read from the video."""


class FrameExtractionTimeout(FrameExtractionError):
    """No frame was produced within the allowed wait."""


class ClassificationError(DetectionError):
    """A single frame could not be classified. Never fatal to a run."""


class AggregationPrecondition(DetectionError):
    """Aggregation was attempted without any prediction."""


class FallbackExhausted(DetectionError):
    """
    Even the synthetic fallback path could not produce a result.

    This is the only error analyze_video() lets through to its caller.
    """
