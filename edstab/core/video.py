"""
Video capture for the stabilization pipeline.

Wraps cv2.VideoCapture as an iterable source of Frame objects with
monotonically non-decreasing timestamps.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

import cv2

from edstab.core.frame import Frame


@dataclass
class VideoProperties:
    """Properties of a video stream."""
    width: int
    height: int
    fps: float
    frame_count: int
    
    @classmethod
    def from_capture(cls, cap: cv2.VideoCapture) -> "VideoProperties":
        """Create VideoProperties from an OpenCV VideoCapture."""
        return cls(
            width=int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            height=int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            fps=cap.get(cv2.CAP_PROP_FPS),
            frame_count=int(cap.get(cv2.CAP_PROP_FRAME_COUNT)),
        )
    
    @property
    def frame_interval_ns(self) -> int:
        """Nominal spacing between frames, used when the container has no timestamps."""
        return int(round(1e9 / self.fps)) if self.fps > 0 else 0


class VideoReader:
    """
    Frame source backed by an OpenCV capture.
    
    Accepts a file path, a device index or a GStreamer launch string.
    
    Example:
        with VideoReader("input.mp4") as reader:
            for frame in reader:
                process(frame)
    """
    
    def __init__(self, source: str | Path | int, api_preference: int = cv2.CAP_ANY):
        """
        Initialize the video reader.
        
        Args:
            source: Path to a video file, camera index, or pipeline string
            api_preference: OpenCV capture backend (e.g. cv2.CAP_GSTREAMER)
        """
        self.source = source
        self.api_preference = api_preference
        
        self._cap: cv2.VideoCapture | None = None
        self._props: VideoProperties | None = None
        self._last_pts_ns = 0
        self._frames_read = 0
    
    def open(self) -> "VideoReader":
        """Open the capture."""
        if isinstance(self.source, Path) and not self.source.exists():
            raise FileNotFoundError(f"Video file not found: {self.source}")
        
        src = self.source if isinstance(self.source, int) else str(self.source)
        self._cap = cv2.VideoCapture(src, self.api_preference)
        if not self._cap.isOpened():
            self._cap = None
            raise RuntimeError(f"Failed to open video: {self.source}")
        
        self._props = VideoProperties.from_capture(self._cap)
        self._last_pts_ns = 0
        self._frames_read = 0
        return self
    
    def close(self) -> None:
        """Release the capture."""
        if self._cap:
            self._cap.release()
            self._cap = None
    
    @property
    def properties(self) -> VideoProperties:
        """Get video properties."""
        if self._props is None:
            raise RuntimeError("Video not opened. Call open() first.")
        return self._props
    
    def read_frame(self) -> Frame | None:
        """Read the next frame, or None at end of stream."""
        if self._cap is None:
            raise RuntimeError("Video not opened. Call open() first.")
        
        ret, data = self._cap.read()
        if not ret:
            return None
        
        pts_ns = int(self._cap.get(cv2.CAP_PROP_POS_MSEC) * 1_000_000)
        if pts_ns <= 0 and self._frames_read > 0:
            pts_ns = self._frames_read * self.properties.frame_interval_ns
        # Containers occasionally report out-of-order timestamps
        pts_ns = max(pts_ns, self._last_pts_ns)
        
        self._last_pts_ns = pts_ns
        self._frames_read += 1
        return Frame(data, pts_ns=pts_ns)
    
    def __iter__(self) -> Iterator[Frame]:
        """Iterate over frames until the stream ends."""
        if self._cap is None:
            self.open()
        
        while True:
            frame = self.read_frame()
            if frame is None:
                break
            yield frame
    
    def __enter__(self) -> "VideoReader":
        return self.open()
    
    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False


def get_video_properties(path: str | Path) -> VideoProperties:
    """Get properties of a video file without opening a reader."""
    cap = cv2.VideoCapture(str(path))
    if not cap.isOpened():
        raise RuntimeError(f"Failed to open video: {path}")
    try:
        return VideoProperties.from_capture(cap)
    finally:
        cap.release()
