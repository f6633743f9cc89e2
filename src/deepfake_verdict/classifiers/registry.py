import importlib.util
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Type

from .base import FrameClassifier

logger = logging.getLogger(__name__)

_REGISTRY: Dict[str, Type[FrameClassifier]] = {}

def register_classifier(name: str):
    """Decorator to register a frame classifier class."""
    def decorator(cls):
        _REGISTRY[name] = cls
        return cls
    return decorator

def get_classifier(name: str) -> Optional[Type[FrameClassifier]]:
    """Return the classifier class for a given name."""
    return _REGISTRY.get(name)

def list_classifiers() -> List[str]:
    """Return a list of registered classifier names."""
    return sorted(_REGISTRY.keys())

def create_classifier(name: str, **options: Any) -> FrameClassifier:
    """Instantiate a registered classifier. Each run should get its own instance."""
    cls = get_classifier(name)
    if cls is None:
        raise ValueError(
            f"Unknown classifier '{name}'. Available: {', '.join(list_classifiers()) or 'none'}"
        )
    return cls(**options)

def load_builtin_classifiers():
    """Import the bundled classifiers so they register themselves."""
    from . import azure_classifier, hf_classifier, mock_classifier  # noqa: F401

def discover_plugins():
    """
    Load built-in classifiers, then external plugins.
    """
    # 1. Built-ins
    load_builtin_classifiers()

    # 2. plugins/ folder in the working directory
    root_plugins = Path.cwd() / "plugins"
    if root_plugins.exists() and root_plugins.is_dir():
        _load_from_dir(root_plugins)

    # 3. DEEPFAKE_VERDICT_PLUGINS_PATH
    env_path = os.getenv("DEEPFAKE_VERDICT_PLUGINS_PATH")
    if env_path:
        for path_str in env_path.split(os.pathsep):
            path = Path(path_str)
            if path.exists() and path.is_dir():
                _load_from_dir(path)

def _load_from_dir(directory: Path):
    """Load python modules from a directory; a broken plugin is logged and skipped."""
    for file in sorted(directory.glob("*.py")):
        if file.name == "__init__.py":
            continue

        module_name = f"classifier_plugin_{file.stem}"
        try:
            spec = importlib.util.spec_from_file_location(module_name, file)
            if spec and spec.loader:
                module = importlib.util.module_from_spec(spec)
                spec.loader.exec_module(module)
        except Exception as e:
            logger.warning("Failed to load classifier plugin from %s: %s", file, e)
