"""Pipelines package for end-to-end cue analysis.

Provides:
- AnalysisPipeline: identity -> cache -> classify -> standardize -> reconcile -> commit
"""

from cue_system.pipelines.analysis_pipeline import (
    AnalysisPipeline,
    PipelineOutcome,
    PipelineResult,
    PipelineStats,
)

__all__ = [
    "AnalysisPipeline",
    "PipelineOutcome",
    "PipelineResult",
    "PipelineStats",
]
