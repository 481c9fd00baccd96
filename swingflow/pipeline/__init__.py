"""Pipeline module for orchestrating video extraction and swing analysis."""

from swingflow.pipeline.orchestrator import (
    PipelineConfig,
    PipelineProgress,
    SwingAnalysisPipeline,
)
from swingflow.utils.parallel import CancellationToken

__all__ = [
    "CancellationToken",
    "PipelineConfig",
    "PipelineProgress",
    "SwingAnalysisPipeline",
]
