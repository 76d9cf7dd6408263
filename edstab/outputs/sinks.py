"""
Output sinks for cropped frames:
- VideoFileSink: Encoded video file via cv2.VideoWriter
- WindowSink: Live preview window, closed with 'q'
- CSVSink: Per-frame timestamp and crop rectangle
- MemorySink: Keeps frames in a list
"""

import csv
import logging
from pathlib import Path

import cv2

from edstab.core.frame import CroppedFrame
from edstab.outputs.base import BaseSink, OutputSpec

logger = logging.getLogger(__name__)


class VideoFileSink(BaseSink):
    """
    Writes frames to a video file.
    
    The writer is opened on the first frame, using its size.
    
    Options:
        filename: Output path (default: output.mp4)
        fps: Frame rate (default: 30)
        fourcc: Codec four-character code (default: mp4v)
    """
    
    default_type = "video"
    
    def __init__(self, spec: OutputSpec | None = None):
        super().__init__(spec)
        self.path = Path(self.spec.get('filename', 'output.mp4'))
        self.fps = self.spec.get_float('fps', 30.0)
        self.fourcc = self.spec.get('fourcc', 'mp4v')
        self._writer: cv2.VideoWriter | None = None
        self.frames_written = 0
    
    def _open_writer(self, width: int, height: int) -> None:
        fourcc = cv2.VideoWriter_fourcc(*self.fourcc)
        self._writer = cv2.VideoWriter(str(self.path), fourcc, self.fps, (width, height))
        if not self._writer.isOpened():
            self._writer = None
            self._open = False
            raise RuntimeError(f"Failed to open video writer: {self.path}")
        logger.info("Writing %dx%d @ %.2f fps to %s", width, height, self.fps, self.path)
    
    def write(self, frame: CroppedFrame) -> None:
        if self._writer is None:
            h, w = frame.data.shape[:2]
            self._open_writer(w, h)
        self._writer.write(frame.data)
        self.frames_written += 1
    
    def close(self) -> None:
        if self._writer:
            self._writer.release()
            self._writer = None
        super().close()


class WindowSink(BaseSink):
    """
    Shows frames in an OpenCV window.
    
    Options:
        title: Window title (default: edstab)
        wait: Milliseconds passed to cv2.waitKey (default: 1)
    """
    
    default_type = "window"
    
    def __init__(self, spec: OutputSpec | None = None):
        super().__init__(spec)
        self.title = self.spec.get('title', 'edstab')
        self.wait_ms = self.spec.get_int('wait', 1)
        self._shown = False
    
    def write(self, frame: CroppedFrame) -> None:
        cv2.imshow(self.title, frame.data)
        self._shown = True
        key = cv2.waitKey(self.wait_ms) & 0xFF
        if key == ord('q'):
            logger.info("Window closed by user")
            self._open = False
    
    def close(self) -> None:
        if self._shown:
            cv2.destroyWindow(self.title)
            self._shown = False
        super().close()


class CSVSink(BaseSink):
    """
    Logs the crop rectangle of every frame.
    
    Columns: frame, pts_ns, x, y, width, height
    
    Options:
        filename: Output path (default: crops.csv)
    """
    
    default_type = "csv"
    
    def __init__(self, spec: OutputSpec | None = None):
        super().__init__(spec)
        self.path = Path(self.spec.get('filename', 'crops.csv'))
        self._file = open(self.path, 'w', newline='')
        self._writer = csv.writer(self._file)
        self._writer.writerow(['frame', 'pts_ns', 'x', 'y', 'width', 'height'])
        self._count = 0
    
    def write(self, frame: CroppedFrame) -> None:
        x, y, w, h = frame.src_roi
        self._writer.writerow([self._count, frame.pts_ns, x, y, w, h])
        self._count += 1
    
    def close(self) -> None:
        if not self._file.closed:
            self._file.close()
        super().close()


class MemorySink(BaseSink):
    """Collects frames in memory."""
    
    default_type = "memory"
    
    def __init__(self, spec: OutputSpec | None = None):
        super().__init__(spec)
        self.frames: list[CroppedFrame] = []
    
    def write(self, frame: CroppedFrame) -> None:
        self.frames.append(frame)
