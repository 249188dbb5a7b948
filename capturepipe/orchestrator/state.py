"""Stage constants and transition logic for the pipeline coordinator.

The topology is fixed: a linear chain of generation stages followed by two
upload stages that run concurrently once the manifest stage has finished.
"""

from typing import Dict, Tuple

SYNTHESIZE = "synthesize"
EXTRACT = "extract"
BUILD_MANIFEST = "build_manifest"
UPLOAD_CAPTURES = "upload_captures"
UPLOAD_MANIFEST = "upload_manifest"
COMPLETE = "complete"

# Stages in execution order
PIPELINE_STAGES = {
    SYNTHESIZE: "Generating test video",
    EXTRACT: "Extracting captures",
    BUILD_MANIFEST: "Building manifest",
    UPLOAD_CAPTURES: "Uploading captures",
    UPLOAD_MANIFEST: "Uploading manifest",
    COMPLETE: "Pipeline finished",
}

# Stage each stage waits on before starting
STAGE_PREREQUISITES: Dict[str, str] = {
    EXTRACT: SYNTHESIZE,
    BUILD_MANIFEST: EXTRACT,
    UPLOAD_CAPTURES: BUILD_MANIFEST,
    UPLOAD_MANIFEST: BUILD_MANIFEST,
}

# Linear chain; each one signals its successor on completion
GENERATION_STAGES: Tuple[str, ...] = (SYNTHESIZE, EXTRACT, BUILD_MANIFEST)

# Stages gathered by the join barrier before completion
UPLOAD_STAGES: Tuple[str, ...] = (UPLOAD_CAPTURES, UPLOAD_MANIFEST)


def prerequisite_of(stage: str) -> str | None:
    """Return the stage that must signal before stage may start.

    Raises:
        KeyError: If stage is not a pipeline stage
    """
    if stage not in PIPELINE_STAGES:
        raise KeyError(f"Unknown pipeline stage: {stage}")
    return STAGE_PREREQUISITES.get(stage)


def describe(stage: str) -> str:
    """Human-readable description for progress display."""
    return PIPELINE_STAGES[stage]
