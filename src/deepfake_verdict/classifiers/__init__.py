from .base import FrameClassifier, Prediction
from .registry import create_classifier, discover_plugins, get_classifier, list_classifiers, register_classifier

__all__ = [
    "FrameClassifier",
    "Prediction",
    "create_classifier",
    "discover_plugins",
    "get_classifier",
    "list_classifiers",
    "register_classifier",
]
