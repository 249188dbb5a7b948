"""Stage coordinator for the capture pipeline.

Runs the four pipeline stages as concurrent asyncio tasks gated by one-shot
completion signals:

    synthesize -> extract -> build_manifest -> {upload_captures, upload_manifest}

Every stage task is scheduled up front and waits on its predecessor's signal
before doing any work. Both upload tasks wait on the manifest-ready signal,
then run side by side on the shared TransferSession. A join barrier collects
the two uploads, after which the coordinator lingers for the configured time
and returns a PipelineRun summary.

A failure inside a generation stage is logged and still releases the next
stage, which proceeds on whatever partial output exists.
"""

import asyncio
import logging
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from capturepipe.config import Settings
from capturepipe.orchestrator.state import (
    BUILD_MANIFEST,
    COMPLETE,
    EXTRACT,
    GENERATION_STAGES,
    SYNTHESIZE,
    UPLOAD_CAPTURES,
    UPLOAD_MANIFEST,
    UPLOAD_STAGES,
    describe,
    prerequisite_of,
)
from capturepipe.pipeline.extract import extract_captures
from capturepipe.pipeline.synthesize import synthesize_artifact
from capturepipe.services.manifest_builder import build_manifest
from capturepipe.services.transfer_session import TransferSession
from capturepipe.services.uploader import UploadOutcome, upload_captures, upload_manifest

logger = logging.getLogger(__name__)


@dataclass
class PipelineRun:
    """Summary of one coordinator run."""

    synthesized: bool = False
    extracted: bool = False
    manifest_path: Optional[Path] = None
    capture_outcomes: List[UploadOutcome] = field(default_factory=list)
    manifest_outcome: Optional[UploadOutcome] = None
    stage_durations: Dict[str, float] = field(default_factory=dict)
    events: List[Tuple[str, str]] = field(default_factory=list)
    total_duration_seconds: float = 0.0

    @property
    def upload_outcomes(self) -> List[UploadOutcome]:
        outcomes = list(self.capture_outcomes)
        if self.manifest_outcome is not None:
            outcomes.append(self.manifest_outcome)
        return outcomes

    @property
    def failed_uploads(self) -> List[UploadOutcome]:
        return [o for o in self.upload_outcomes if not o.succeeded]


class StageCoordinator:
    """Sequences the pipeline stages for one run.

    Args:
        settings: Application settings
        session: Established transfer session shared by both upload stages
        progress_callback: Optional callback for stage descriptions (CLI display)
        runner: subprocess.run-compatible callable for ffmpeg
        sleep: Blocking wait used for upload pacing
    """

    def __init__(
        self,
        settings: Settings,
        session: TransferSession,
        progress_callback: Optional[Callable[[str], None]] = None,
        runner=subprocess.run,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.session = session
        self.progress_callback = progress_callback
        self.runner = runner
        self.sleep = sleep
        self.run_info = PipelineRun()
        self._signals: Dict[str, asyncio.Event] = {}

    async def run(self) -> PipelineRun:
        """Execute all stages and return the run summary."""
        pipeline_start = time.monotonic()
        self.run_info = PipelineRun()
        self._signals = {stage: asyncio.Event() for stage in GENERATION_STAGES}
        stage_work = {
            SYNTHESIZE: self._synthesize,
            EXTRACT: self._extract,
            BUILD_MANIFEST: self._build_manifest,
            UPLOAD_CAPTURES: self._upload_captures,
            UPLOAD_MANIFEST: self._upload_manifest,
        }

        generation = [
            asyncio.create_task(self._run_stage(stage, stage_work[stage]))
            for stage in GENERATION_STAGES
        ]

        # Join barrier over the upload batches
        await asyncio.gather(*(self._run_stage(stage, stage_work[stage]) for stage in UPLOAD_STAGES))
        await asyncio.gather(*generation)

        linger = self.settings.linger
        if linger > 0:
            logger.info(f"Uploads finished; waiting {linger:.0f}s before exit")
            await asyncio.sleep(linger)

        self.run_info.events.append((COMPLETE, "reached"))
        self.run_info.total_duration_seconds = time.monotonic() - pipeline_start
        self._log_summary()
        return self.run_info

    async def _run_stage(self, stage: str, work: Callable[[], Awaitable[None]]) -> None:
        """Wait for the prerequisite signal, run work, then signal completion."""
        prerequisite = prerequisite_of(stage)
        if prerequisite is not None:
            await self._signals[prerequisite].wait()

        step_start = time.monotonic()
        try:
            self.run_info.events.append((stage, "started"))
            logger.info(f"Starting {stage} stage")
            self._report_progress(stage)
            await work()
        except Exception as e:
            logger.error(f"Stage {stage} failed: {type(e).__name__}: {e}", exc_info=True)
        finally:
            step_duration = time.monotonic() - step_start
            self.run_info.stage_durations[stage] = step_duration
            self.run_info.events.append((stage, "finished"))
            logger.info(f"{stage} stage finished in {step_duration:.2f}s")
            signal = self._signals.get(stage)
            if signal is not None:
                signal.set()

    def _report_progress(self, stage: str) -> None:
        if not self.progress_callback:
            return
        try:
            self.progress_callback(f"{describe(stage)}...")
        except Exception as e:
            # Display errors never stop the stage itself
            logger.warning(f"Progress callback failed for {stage}: {e}", exc_info=True)

    async def _synthesize(self) -> None:
        self.run_info.synthesized = await asyncio.to_thread(
            synthesize_artifact, self.settings, self.runner
        )

    async def _extract(self) -> None:
        self.run_info.extracted = await asyncio.to_thread(
            extract_captures, self.settings, self.runner
        )

    async def _build_manifest(self) -> None:
        storage = self.settings.storage
        self.run_info.manifest_path = await asyncio.to_thread(
            build_manifest, storage.capture_dir, storage.manifest_path
        )

    async def _upload_captures(self) -> None:
        self.run_info.capture_outcomes = await asyncio.to_thread(
            upload_captures,
            self.session,
            self.settings.storage.capture_dir,
            self.settings.transfer.upload_dir,
            self.settings.upload_pacing,
            sleep=self.sleep,
        )

    async def _upload_manifest(self) -> None:
        self.run_info.manifest_outcome = await asyncio.to_thread(
            upload_manifest,
            self.session,
            self.run_info.manifest_path,
            self.settings.transfer.upload_dir,
        )

    def _log_summary(self) -> None:
        outcomes = self.run_info.upload_outcomes
        failed = len(self.run_info.failed_uploads)
        logger.info(
            f"Pipeline completed in {self.run_info.total_duration_seconds:.2f}s: "
            f"{len(outcomes) - failed}/{len(outcomes)} uploads succeeded"
        )
        if failed:
            logger.warning(f"{failed} upload(s) failed; see log entries above")


async def run_pipeline(
    settings: Settings,
    session: TransferSession,
    progress_callback: Optional[Callable[[str], None]] = None,
    runner=subprocess.run,
    sleep: Callable[[float], None] = time.sleep,
) -> PipelineRun:
    """Run the full pipeline once with a new StageCoordinator."""
    coordinator = StageCoordinator(
        settings, session, progress_callback=progress_callback, runner=runner, sleep=sleep,
    )
    return await coordinator.run()
