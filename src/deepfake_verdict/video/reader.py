from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from typing import Optional, Protocol, Tuple

import cv2
import numpy as np

from ..errors import FrameExtractionError


@dataclass(frozen=True)
class VideoMeta:
    path: str
    fps: float
    frame_count: int
    width: int
    height: int
    duration_seconds: float


class VideoSource(Protocol):
    """
    Capability the frame sampler decodes from.

    Implementations must support sequential forward seeking. capture_at()
    returns a BGR raster at the source's native resolution. release() must
    be safe to call more than once.
    """

    @property
    def name(self) -> str:
        ...

    @property
    def duration_seconds(self) -> float:
        ...

    @property
    def width(self) -> int:
        ...

    @property
    def height(self) -> int:
        ...

    def capture_at(self, seconds: float) -> np.ndarray:
        ...

    def release(self) -> None:
        ...


def open_video(video_path: str) -> cv2.VideoCapture:
    """
    Open a video file and return a cv2.VideoCapture.

    Raises:
        FileNotFoundError: if path does not exist
        OSError: if OpenCV cannot open the video
    """
    if not os.path.exists(video_path):
        raise FileNotFoundError(f"Video not found: {video_path}")

    cap = cv2.VideoCapture(video_path)
    if not cap.isOpened():
        cap.release()
        raise OSError(f"Failed to open video: {video_path}")

    return cap


def read_video_meta(video_path: str, cap: Optional[cv2.VideoCapture] = None) -> VideoMeta:
    """
    Read basic video metadata (fps, frame_count, width, height, duration).
    If cap is provided, it will be used (and not released here).
    """
    own_cap = False
    if cap is None:
        cap = open_video(video_path)
        own_cap = True

    try:
        fps = float(cap.get(cv2.CAP_PROP_FPS) or 0.0)
        frame_count = int(cap.get(cv2.CAP_PROP_FRAME_COUNT) or 0)
        width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH) or 0)
        height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT) or 0)

        # Some codecs report fps=0; we keep duration as 0 in that case.
        duration_seconds = float(frame_count / fps) if (fps and frame_count) else 0.0

        return VideoMeta(
            path=video_path,
            fps=fps,
            frame_count=frame_count,
            width=width,
            height=height,
            duration_seconds=duration_seconds,
        )
    finally:
        if own_cap:
            cap.release()


def read_frame_at_time(cap: cv2.VideoCapture, seconds: float) -> Tuple[bool, Optional[np.ndarray]]:
    """
    Seek to a position in seconds and read the frame there.

    Returns:
        (ok, frame_bgr)
    """
    cap.set(cv2.CAP_PROP_POS_MSEC, float(seconds) * 1000.0)
    ok, frame = cap.read()
    if not ok:
        return False, None
    return True, frame


class OpenCVVideoSource:
    """VideoSource backed by a file decoded with OpenCV."""

    def __init__(self, video_path: str):
        self._path = os.fspath(video_path)
        self._lock = threading.Lock()
        try:
            self._cap = open_video(self._path)
        except (FileNotFoundError, OSError) as e:
            raise FrameExtractionError(str(e)) from e

        try:
            self._meta = read_video_meta(self._path, cap=self._cap)
        except cv2.error as e:
            self.release()
            raise FrameExtractionError(f"Failed to read video metadata: {e}") from e

    @property
    def name(self) -> str:
        return os.path.basename(self._path)

    @property
    def meta(self) -> VideoMeta:
        return self._meta

    @property
    def duration_seconds(self) -> float:
        return self._meta.duration_seconds

    @property
    def width(self) -> int:
        return self._meta.width

    @property
    def height(self) -> int:
        return self._meta.height

    def capture_at(self, seconds: float) -> np.ndarray:
        cap = self._cap
        if cap is None:
            raise FrameExtractionError(f"Video already released: {self._path}")

        ok, frame = read_frame_at_time(cap, seconds)
        if not ok or frame is None:
            raise FrameExtractionError(f"Failed to read frame at {seconds:.3f}s from {self._path}")
        return frame

    def release(self) -> None:
        with self._lock:
            cap, self._cap = self._cap, None
        if cap is not None:
            cap.release()
