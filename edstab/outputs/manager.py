"""
Sink manager for fanning output frames out to several sinks.
"""

from typing import Type

from edstab.core.frame import CroppedFrame
from edstab.outputs.base import BaseSink, OutputSpec
from edstab.outputs.sinks import CSVSink, MemorySink, VideoFileSink, WindowSink


# Registry of available sink types
SINK_TYPES: dict[str, Type[BaseSink]] = {
    'video': VideoFileSink,
    'window': WindowSink,
    'display': WindowSink,
    'csv': CSVSink,
    'memory': MemorySink,
}


def register_sink_type(name: str, sink_class: Type[BaseSink]) -> None:
    """
    Register a new sink type.
    
    Example:
        >>> class RtspSink(BaseSink):
        ...     ...
        >>> register_sink_type('rtsp', RtspSink)
    """
    SINK_TYPES[name.lower()] = sink_class


class SinkManager:
    """
    Writes every frame to all registered sinks.
    
    The manager stays open only while all of its sinks are open, so closing
    a preview window stops the pipeline.
    
    Example:
        >>> manager = SinkManager()
        >>> manager.add_output("video=filename=out.mp4")
        >>> manager.add_output("window")
        >>> pipeline = Pipeline(reader, stabilizer, cropper, sinks=[manager])
    """
    
    def __init__(self):
        self.sinks: list[BaseSink] = []
    
    def add_output(self, spec_string: str) -> BaseSink:
        """
        Add a sink from a specification string.
        
        Raises:
            ValueError: If the sink type is unknown
        """
        spec = OutputSpec(spec_string)
        
        if spec.output_type not in SINK_TYPES:
            available = list(SINK_TYPES.keys())
            raise ValueError(
                f"Unknown output type: {spec.output_type}. "
                f"Available: {available}"
            )
        
        sink = SINK_TYPES[spec.output_type](spec)
        self.sinks.append(sink)
        return sink
    
    def write(self, frame: CroppedFrame) -> None:
        for sink in self.sinks:
            if sink.is_open:
                sink.write(frame)
    
    def close(self) -> None:
        for sink in self.sinks:
            sink.close()
    
    @property
    def is_open(self) -> bool:
        return all(sink.is_open for sink in self.sinks)
    
    def __len__(self) -> int:
        return len(self.sinks)
    
    def __enter__(self):
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
