"""
Tests for cropping, output sinks and video I/O.
"""

import csv

import cv2
import numpy as np
import pytest

from edstab.core.frame import CroppedFrame, StabilizedFrame
from edstab.core.video import VideoReader, get_video_properties
from edstab.outputs import (
    CSVSink,
    FrameCropper,
    MemorySink,
    OutputSpec,
    SinkManager,
    VideoFileSink,
    WindowSink,
    compute_roi,
)


def stabilized(width=400, height=300, center=(200.0, 150.0), pts_ns=0):
    data = np.arange(width * height * 3, dtype=np.uint32).reshape(height, width, 3)
    return StabilizedFrame((data % 251).astype(np.uint8), center, pts_ns)


class TestComputeRoi:
    """Tests for compute_roi."""
    
    def test_centered(self):
        assert compute_roi((200, 150), 400, 300, 100, 50) == (150, 125, 100, 50)
    
    @pytest.mark.parametrize("center,expected", [
        ((0, 0), (0, 0)),
        ((399, 299), (300, 250)),
        ((10, 290), (0, 250)),
        ((-100, 1000), (0, 250)),
    ])
    def test_shifted_inside(self, center, expected):
        x, y, w, h = compute_roi(center, 400, 300, 100, 50)
        assert (x, y) == expected
        assert (w, h) == (100, 50)
    
    def test_output_larger_than_source(self):
        assert compute_roi((10, 10), 400, 300, 1920, 1080) == (0, 0, 400, 300)


class TestFrameCropper:
    """Tests for FrameCropper."""
    
    def test_crop(self):
        frame = stabilized(center=(100.0, 100.0), pts_ns=42)
        out = FrameCropper(64, 32).crop(frame)
        
        assert out.data.shape == (32, 64, 3)
        assert out.src_roi == (68, 84, 64, 32)
        assert out.pts_ns == 42
        np.testing.assert_array_equal(out.data, frame.data[84:116, 68:132])
    
    def test_crop_is_a_copy(self):
        frame = stabilized()
        out = FrameCropper(10, 10).crop(frame)
        out.data[:] = 0
        assert frame.data.any()
    
    def test_invalid_size(self):
        with pytest.raises(ValueError):
            FrameCropper(0, 1080)


class TestOutputSpec:
    """Tests for OutputSpec parsing."""
    
    def test_type_only(self):
        spec = OutputSpec("Window")
        assert spec.output_type == "window"
        assert spec.options == {}
    
    def test_options(self):
        spec = OutputSpec("video=filename=out.mp4:fps=25:fourcc=avc1")
        assert spec.output_type == "video"
        assert spec.get("filename") == "out.mp4"
        assert spec.get_float("fps") == 25.0
        assert spec.get("FOURCC") == "avc1"
    
    def test_path_with_colon(self):
        spec = OutputSpec("csv=filename=C:\\data\\crops.csv:x=1")
        assert spec.get("filename") == "C:\\data\\crops.csv"
        assert spec.get_int("x") == 1
    
    def test_typed_getters(self):
        spec = OutputSpec("window=wait=abc:fps=12.5")
        assert spec.get_int("wait", 5) == 5
        assert spec.get_float("fps") == 12.5
        assert spec.get_float("missing", 30.0) == 30.0
    
    def test_empty(self):
        with pytest.raises(ValueError):
            OutputSpec("  ")


class TestSinkManager:
    """Tests for SinkManager."""
    
    def test_unknown_type(self):
        with pytest.raises(ValueError, match="Unknown output type"):
            SinkManager().add_output("hologram")
    
    def test_fan_out(self):
        manager = SinkManager()
        a = manager.add_output("memory")
        b = manager.add_output("memory")
        frame = CroppedFrame(np.zeros((4, 4, 3), np.uint8), (0, 0, 4, 4), 1)
        manager.write(frame)
        
        assert len(manager) == 2
        assert a.frames == [frame]
        assert b.frames == [frame]
    
    def test_closed_when_any_sink_closes(self):
        with SinkManager() as manager:
            sink = manager.add_output("memory")
            assert manager.is_open
            sink.close()
            assert not manager.is_open


class TestCSVSink:
    """Tests for CSVSink."""
    
    def test_rows(self, tmp_path):
        path = tmp_path / "crops.csv"
        with CSVSink(OutputSpec(f"csv=filename={path}")) as sink:
            for i in range(3):
                sink.write(CroppedFrame(np.zeros((2, 2, 3), np.uint8),
                                        (i, 2 * i, 2, 2), 1000 * i))
        
        with open(path, newline='') as f:
            rows = list(csv.reader(f))
        assert rows[0] == ['frame', 'pts_ns', 'x', 'y', 'width', 'height']
        assert rows[3] == ['2', '2000', '2', '4', '2', '2']
        assert not sink.is_open


class TestVideoIO:
    """Round trip through VideoFileSink and VideoReader."""
    
    def test_write_and_read(self, tmp_path):
        path = tmp_path / "clip.avi"
        sink = VideoFileSink(OutputSpec(f"video=filename={path}:fps=10:fourcc=MJPG"))
        rng = np.random.default_rng(0)
        for i in range(5):
            data = rng.integers(0, 256, size=(48, 64, 3), dtype=np.uint8)
            sink.write(CroppedFrame(data, (0, 0, 64, 48), i))
        sink.close()
        assert sink.frames_written == 5
        
        props = get_video_properties(path)
        assert (props.width, props.height) == (64, 48)
        assert props.frame_count == 5
        assert props.frame_interval_ns == 100_000_000
        
        with VideoReader(path) as reader:
            frames = list(reader)
        assert len(frames) == 5
        assert frames[0].data.shape == (48, 64, 3)
        pts = [f.pts_ns for f in frames]
        assert pts == sorted(pts)
    
    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            VideoReader(tmp_path / "missing.mp4").open()
    
    def test_read_before_open(self):
        with pytest.raises(RuntimeError):
            VideoReader("unused.mp4").read_frame()


class TestMemorySink:
    
    def test_default_spec(self):
        sink = MemorySink()
        assert sink.spec.output_type == "memory"
        assert sink.is_open


class TestWindowSink:
    """Tests for WindowSink with the HighGUI calls stubbed out."""
    
    @pytest.fixture
    def destroyed(self, monkeypatch):
        calls = []
        monkeypatch.setattr(cv2, "imshow", lambda title, data: None)
        monkeypatch.setattr(cv2, "waitKey", lambda ms: ord('q'))
        monkeypatch.setattr(cv2, "destroyWindow", calls.append)
        return calls
    
    def test_user_close_destroys_window(self, destroyed):
        sink = WindowSink(OutputSpec("window=title=preview"))
        sink.write(CroppedFrame(np.zeros((4, 4, 3), np.uint8), (0, 0, 4, 4), 0))
        assert not sink.is_open
        
        sink.close()
        sink.close()
        assert destroyed == ["preview"]
    
    def test_close_without_frames(self, destroyed):
        sink = WindowSink()
        sink.close()
        assert destroyed == []
        assert not sink.is_open
