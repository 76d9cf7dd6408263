"""
Cropping of stabilized frames around the suggested center.
"""

from edstab.core.frame import CroppedFrame, StabilizedFrame


def compute_roi(
    center: tuple[float, float],
    src_w: int,
    src_h: int,
    out_w: int,
    out_h: int,
) -> tuple[int, int, int, int]:
    """
    Compute a crop rectangle centered on a point.
    
    If the ideal rectangle would leave the source, it is shifted (not
    scaled) to fit. An output larger than the source is clamped to the
    source size.
    
    Args:
        center: Desired (x, y) center in source pixels
        src_w: Source width
        src_h: Source height
        out_w: Requested crop width
        out_h: Requested crop height
        
    Returns:
        (x, y, width, height) inside [0, src_w) x [0, src_h)
    """
    out_w = min(out_w, src_w)
    out_h = min(out_h, src_h)
    
    x = int(center[0]) - out_w // 2
    y = int(center[1]) - out_h // 2
    
    x = max(0, min(x, src_w - out_w))
    y = max(0, min(y, src_h - out_h))
    return (x, y, out_w, out_h)


class FrameCropper:
    """
    Cuts a fixed-size window out of each stabilized frame.
    
    Example:
        >>> cropper = FrameCropper(1920, 1080)
        >>> out = cropper.crop(stabilized)
        >>> out.data.shape[:2]
        (1080, 1920)
    """
    
    def __init__(self, out_w: int = 1920, out_h: int = 1080):
        if out_w < 1 or out_h < 1:
            raise ValueError(f"Crop size must be positive, got {out_w}x{out_h}")
        self.out_w = out_w
        self.out_h = out_h
    
    def crop(self, frame: StabilizedFrame) -> CroppedFrame:
        roi = compute_roi(
            frame.suggested_center,
            frame.width, frame.height,
            self.out_w, self.out_h,
        )
        x, y, w, h = roi
        return CroppedFrame(
            data=frame.data[y:y + h, x:x + w].copy(),
            src_roi=roi,
            pts_ns=frame.pts_ns,
        )
