"""
deepfake-verdict - frame-sampling video authenticity pipeline with a
resilient fallback path.
"""

__version__ = "0.1.0"

from .errors import FallbackExhausted
from .pipeline import analyze_video
from .result import DetectionResult

__all__ = ["analyze_video", "DetectionResult", "FallbackExhausted", "__version__"]
