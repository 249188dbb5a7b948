"""Pipeline orchestrator module.

Provides signal-gated coordination for the capture pipeline with:
- Stage constants and prerequisite table
- StageCoordinator running stages as concurrent tasks
- PipelineRun summary with per-stage timing and upload outcomes
- Progress callback interface for CLI integration
"""

from capturepipe.orchestrator.pipeline import PipelineRun, StageCoordinator, run_pipeline

__all__ = ["PipelineRun", "StageCoordinator", "run_pipeline"]
