"""
Base classes for output sinks.

This module defines the OutputSpec parser and the BaseSink abstract class
that all sinks implement.
"""

from abc import ABC, abstractmethod
from typing import Any

from edstab.core.frame import CroppedFrame


class OutputSpec:
    """
    Parses output specification strings.
    
    The format is ``type`` or ``type=key=value:key=value``. A value may
    itself contain ':' (e.g. a Windows path); tokens without '=' are
    appended to the previous value.
    
    Example:
        >>> spec = OutputSpec("video=filename=out.mp4:fps=25")
        >>> spec.output_type
        'video'
        >>> spec.get_float('fps')
        25.0
    """
    
    def __init__(self, spec_string: str):
        """
        Parse a specification string.
        
        Raises:
            ValueError: If the spec string is empty
        """
        if not spec_string or not spec_string.strip():
            raise ValueError("Empty output specification")
        
        output_type, _, rest = spec_string.partition('=')
        self.output_type: str = output_type.strip().lower()
        self.options: dict[str, str] = {}
        
        key = None
        for token in rest.split(':') if rest else []:
            if '=' in token:
                key, value = token.split('=', 1)
                key = key.strip().lower()
                self.options[key] = value.strip()
            elif key is not None:
                self.options[key] += ':' + token
    
    def get(self, key: str, default: Any = None) -> Any:
        """Get an option value."""
        return self.options.get(key.lower(), default)
    
    def get_int(self, key: str, default: int = 0) -> int:
        try:
            return int(self.get(key, default))
        except ValueError:
            return default
    
    def get_float(self, key: str, default: float = 0.0) -> float:
        try:
            return float(self.get(key, default))
        except ValueError:
            return default
    
    def __repr__(self) -> str:
        return f"OutputSpec(type={self.output_type}, options={self.options})"


class BaseSink(ABC):
    """
    Abstract base class for consumers of cropped output frames.
    
    Subclasses implement write() and may override close(). A sink reports
    is_open == False once it can no longer accept frames (closed window,
    write error), which stops the pipeline.
    """
    
    default_type = "sink"

    def __init__(self, spec: OutputSpec | None = None):
        self.spec = spec or OutputSpec(self.default_type)
        self._open = True
    
    @abstractmethod
    def write(self, frame: CroppedFrame) -> None:
        """Consume one output frame."""
        pass
    
    def close(self) -> None:
        """Release resources."""
        self._open = False
    
    @property
    def is_open(self) -> bool:
        return self._open
    
    def __enter__(self):
        """Context manager entry."""
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
        return False
