"""
Pipeline module - Sequential frame-loop orchestration.
"""

from edstab.pipeline.runner import Pipeline, PipelineStats, build_pipeline

__all__ = [
    "Pipeline",
    "PipelineStats",
    "build_pipeline",
]
