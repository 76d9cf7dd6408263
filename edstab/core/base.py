"""
Base classes and protocols for the pipeline stages.

This module defines the foundational abstractions that the registration
and output modules build upon.
"""

from abc import ABC, abstractmethod
from typing import Protocol, runtime_checkable

from edstab.core.frame import CroppedFrame, DetectionResult, Frame, StabilizedFrame


class BaseStabilizer(ABC):
    """
    Abstract base class for frame stabilizers.
    
    Stabilizers are fed frames strictly in arrival order, one at a time.
    """
    
    @abstractmethod
    def stabilize(
        self,
        frame: Frame,
        detection: DetectionResult | None = None,
    ) -> StabilizedFrame:
        """
        Stabilize a single frame.
        
        Args:
            frame: Raw frame in arrival order
            detection: Optional detected object center in the raw frame
            
        Returns:
            Stabilized frame with a suggested crop center
            
        Raises:
            InvalidFrameError: If the frame has no usable pixels
        """
        pass
    
    def flush(self) -> list[StabilizedFrame]:
        """Emit any buffered frames at end of stream."""
        return []
    
    def reset(self) -> None:
        """Forget all per-stream state."""
        pass
    
    def __enter__(self):
        """Context manager entry."""
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - ensures flush is called."""
        self.flush()
        return False


class BaseLocator(ABC):
    """Abstract base class for object locators."""
    
    @abstractmethod
    def locate(self, frame: Frame) -> DetectionResult:
        """
        Locate the tracked object in a frame.
        
        Returns:
            DetectionResult; valid is False if nothing was found
            
        Raises:
            InvalidFrameError: If the frame has no usable pixels
        """
        pass
    
    def reset(self) -> None:
        """Forget any temporal smoothing state."""
        pass


@runtime_checkable
class FrameSink(Protocol):
    """Protocol for consumers of cropped output frames."""
    
    def write(self, frame: CroppedFrame) -> None:
        """Consume one output frame."""
        ...
    
    def close(self) -> None:
        """Flush and release resources."""
        ...
    
    @property
    def is_open(self) -> bool:
        """False once the sink can no longer accept frames."""
        ...
