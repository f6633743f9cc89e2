from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

from .classifiers.hf_classifier import DEFAULT_MODEL
from .video.frames import DEFAULT_NUM_FRAMES, DEFAULT_TIMEOUT_SECONDS

ENV_PREFIX = "DEEPFAKE_VERDICT_"
DEFAULT_STORE_DIR = "~/.deepfake_verdict"


@dataclass(frozen=True)
class Settings:
    classifier: str = "mock"
    num_frames: int = DEFAULT_NUM_FRAMES
    frame_timeout: float = DEFAULT_TIMEOUT_SECONDS
    hf_model: str = DEFAULT_MODEL
    store_backend: str = "json"
    store_path: str = f"{DEFAULT_STORE_DIR}/results.json"
    log_level: str = "INFO"
    fallback_delays: bool = True

    def classifier_options(self) -> dict:
        """Constructor options for the configured classifier."""
        if self.classifier == "huggingface":
            return {"model_name": self.hf_model}
        return {}


def _get(env: Mapping[str, str], name: str) -> Optional[str]:
    value = env.get(ENV_PREFIX + name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = _get(env, name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer (got {raw!r}).") from None
    if value <= 0:
        raise ValueError(f"{ENV_PREFIX}{name} must be positive (got {value}).")
    return value


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = _get(env, name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be a number (got {raw!r}).") from None
    if value <= 0:
        raise ValueError(f"{ENV_PREFIX}{name} must be positive (got {value}).")
    return value


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from DEEPFAKE_VERDICT_* variables.

    With env=None the process environment is used, after loading a .env file
    if one exists. Pass a mapping to read from it alone.
    """
    if env is None:
        load_dotenv()
        env = os.environ

    store_backend = (_get(env, "STORE") or "json").lower()
    default_path = f"{DEFAULT_STORE_DIR}/results.db" if store_backend == "sqlite" else f"{DEFAULT_STORE_DIR}/results.json"

    return Settings(
        classifier=_get(env, "CLASSIFIER") or "mock",
        num_frames=_int(env, "NUM_FRAMES", DEFAULT_NUM_FRAMES),
        frame_timeout=_float(env, "FRAME_TIMEOUT", DEFAULT_TIMEOUT_SECONDS),
        hf_model=_get(env, "HF_MODEL") or DEFAULT_MODEL,
        store_backend=store_backend,
        store_path=_get(env, "STORE_PATH") or default_path,
        log_level=(_get(env, "LOG_LEVEL") or "INFO").upper(),
        fallback_delays=(_get(env, "FALLBACK_DELAYS") or "1").lower() not in {"0", "false", "no", "off"},
    )
