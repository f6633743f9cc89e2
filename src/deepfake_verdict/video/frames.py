from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List

import numpy as np

from ..errors import FrameExtractionError, FrameExtractionTimeout
from .reader import VideoSource

logger = logging.getLogger(__name__)

DEFAULT_NUM_FRAMES = 10
DEFAULT_TIMEOUT_SECONDS = 10.0

_DONE = object()


@dataclass(frozen=True)
class Frame:
    index: int
    timestamp_seconds: float
    image: np.ndarray

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])


def _uniform_timestamps(duration_seconds: float, num_frames: int) -> List[float]:
    """
    Seek positions 0, step, 2*step, ... with step = duration / num_frames.
    Example: duration=10, num_frames=5 -> [0.0, 2.0, 4.0, 6.0, 8.0]
    """
    if duration_seconds <= 0 or num_frames <= 0:
        return []
    step = duration_seconds / num_frames
    return [i * step for i in range(num_frames)]


def _capture_sequence(source: VideoSource, timestamps: List[float], out: queue.Queue, stop: threading.Event) -> None:
    """
    Worker: capture frames in order, pushing each one to out. The final item
    (_DONE or the error) is pushed only after the source is released.
    """
    end: object = _DONE
    try:
        for i, ts in enumerate(timestamps):
            if stop.is_set():
                return
            try:
                image = source.capture_at(ts)
            except FrameExtractionError as e:
                end = e
                return
            except Exception as e:
                end = FrameExtractionError(f"Failed to capture frame {i} at {ts:.3f}s: {e}")
                return

            if image is None:
                end = FrameExtractionError(f"Empty frame {i} at {ts:.3f}s")
                return
            out.put(Frame(index=i, timestamp_seconds=ts, image=image))
    finally:
        try:
            source.release()
        finally:
            out.put(end)


def extract_frames(
    source: VideoSource,
    num_frames: int = DEFAULT_NUM_FRAMES,
    *,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> List[Frame]:
    """
    Extract num_frames evenly time-spaced frames from source, in order.

    Seeking runs on a worker thread so a seek that never completes cannot
    hang the caller: if no frame arrives within timeout_seconds (from the
    start, then from the previous frame) FrameExtractionTimeout is raised.

    The source is released on every exit path. After a timeout the worker
    stops at its next seek and releases the source when the blocked call
    returns.

    Raises:
        ValueError: if num_frames <= 0
        FrameExtractionError: unreadable metadata, non-positive duration,
            or a failed seek/capture
        FrameExtractionTimeout: no frame within the bounded wait
    """
    if num_frames <= 0:
        source.release()
        raise ValueError(f"num_frames must be positive (got {num_frames}).")

    try:
        duration = float(source.duration_seconds)
    except Exception as e:
        source.release()
        raise FrameExtractionError(f"Failed to read video metadata: {e}") from e

    timestamps = _uniform_timestamps(duration, num_frames)
    if not timestamps:
        source.release()
        raise FrameExtractionError(f"Video has no playable duration (duration={duration}).")

    out: queue.Queue = queue.Queue()
    stop = threading.Event()
    frames: List[Frame] = []

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="frame-sampler")
    try:
        executor.submit(_capture_sequence, source, timestamps, out, stop)
        while True:
            try:
                item = out.get(timeout=timeout_seconds)
            except queue.Empty:
                raise FrameExtractionTimeout(
                    f"No frame produced within {timeout_seconds}s "
                    f"({len(frames)}/{num_frames} extracted)."
                ) from None

            if item is _DONE:
                break
            if isinstance(item, Exception):
                raise item
            frames.append(item)
    finally:
        stop.set()
        # Do not join: a blocked seek must not hold the caller past its timeout.
        executor.shutdown(wait=False)

    logger.debug("Extracted %d frames from %s (duration %.2fs)", len(frames), source.name, duration)
    return frames
