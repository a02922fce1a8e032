"""Pipeline orchestrator: engines, then frame extraction, then OCR."""

import asyncio
import logging
from pathlib import Path
from typing import Dict, FrozenSet, Optional

from frameread.config import NO_FRAMES_NOTICE, PipelineConfig
from frameread.engines import EngineRegistry
from frameread.errors import EngineInitError, ExtractionError, FrameReadError
from frameread.frame_extractor import extract_frames
from frameread.models import PipelineRun, RecognitionResult, RunStage, VideoHandle
from frameread.recognition import RecognitionStage
from frameread.video_input import accept_video, open_video

logger = logging.getLogger(__name__)

TRANSITIONS: Dict[RunStage, FrozenSet[RunStage]] = {
    RunStage.IDLE: frozenset({RunStage.AWAITING_ENGINES}),
    RunStage.AWAITING_ENGINES: frozenset({RunStage.EXTRACTING, RunStage.FAILED}),
    RunStage.EXTRACTING: frozenset({RunStage.RECOGNIZING, RunStage.COMPLETED, RunStage.FAILED}),
    RunStage.RECOGNIZING: frozenset({RunStage.COMPLETED, RunStage.FAILED}),
    RunStage.COMPLETED: frozenset(),
    RunStage.FAILED: frozenset(),
}

STATUS_MESSAGES = {
    RunStage.IDLE: "Ready",
    RunStage.AWAITING_ENGINES: "Waiting for engines...",
    RunStage.EXTRACTING: "Extracting frames...",
    RunStage.RECOGNIZING: "OCR in progress...",
    RunStage.COMPLETED: "Done",
    RunStage.FAILED: "Failed",
}


class PipelineListener:
    """Receives progress of the run currently being observed. Methods are no-ops by default."""

    def stage_changed(self, run: PipelineRun) -> None:
        pass

    def result_added(self, run: PipelineRun, result: RecognitionResult) -> None:
        pass


class FramePipeline:
    """
    Drives a PipelineRun through
    IDLE -> AWAITING_ENGINES -> EXTRACTING -> RECOGNIZING -> COMPLETED,
    or to FAILED on a stage-level error.
    """

    def __init__(
        self,
        registry: EngineRegistry,
        config: Optional[PipelineConfig] = None,
        listener: Optional[PipelineListener] = None,
    ):
        self.registry = registry
        self.config = config or PipelineConfig()
        self.listener = listener or PipelineListener()
        if self.config.frame_interval <= 0:
            raise ValueError(f"frame_interval must be positive, got {self.config.frame_interval}")

    async def run(self, video: VideoHandle) -> PipelineRun:
        """Process ``video`` in a fresh run and return it once terminal."""
        return await self.execute(PipelineRun(video=video))

    async def execute(self, run: PipelineRun) -> PipelineRun:
        """Drive an IDLE run to COMPLETED or FAILED."""
        self._transition(run, RunStage.AWAITING_ENGINES)
        try:
            decoder, _ = await self.registry.wait_ready(self.config.init_timeout)
        except EngineInitError as e:
            return self._fail(run, f"Engines not ready: {e}", e)

        self._transition(run, RunStage.EXTRACTING)
        try:
            frames = await extract_frames(decoder, run.video, self.config.frame_interval)
        except ExtractionError as e:
            run.extraction_error = str(e)
            run.results.clear()
            return self._fail(run, f"Frame extraction failed: {e}", e)

        run.frames = frames
        if not frames:
            logger.info("No frames extracted to perform OCR on.")
            run.notice = NO_FRAMES_NOTICE
            self._transition(run, RunStage.COMPLETED, NO_FRAMES_NOTICE)
            return run

        self._transition(run, RunStage.RECOGNIZING, f"OCR in progress ({len(frames)} frames)...")
        stage = RecognitionStage(
            self.registry.recognizer,
            on_result=lambda result: self._publish_result(run, result),
            acquire_timeout=self.config.init_timeout,
        )
        try:
            await stage.recognize_all(frames, run.results)
        except EngineInitError as e:
            return self._fail(run, f"OCR engine not available: {e}", e)

        if stage.last_error is not None:
            run.error = str(stage.last_error)

        failed = len(run.failed_frames)
        summary = f"Done: {len(run.results)} frames recognized"
        if failed:
            summary += f", {failed} with OCR errors"
        self._transition(run, RunStage.COMPLETED, summary)
        return run

    def _transition(self, run: PipelineRun, stage: RunStage, message: Optional[str] = None) -> None:
        if stage not in TRANSITIONS[run.stage]:
            raise RuntimeError(f"Invalid run transition {run.stage.name} -> {stage.name}")
        run.stage = stage
        run.status_message = message or STATUS_MESSAGES[stage]
        logger.info(f"Run {run.run_id}: {run.status_message}")
        if not run.superseded:
            self.listener.stage_changed(run)

    def _fail(self, run: PipelineRun, message: str, error: FrameReadError) -> PipelineRun:
        logger.error(f"Run {run.run_id} failed: {error}")
        run.error = str(error)
        self._transition(run, RunStage.FAILED, message)
        return run

    def _publish_result(self, run: PipelineRun, result: RecognitionResult) -> None:
        if not run.superseded:
            self.listener.result_added(run, result)


class PipelineSession:
    """
    The caller-facing side of the pipeline: one current video selection at a time.

    Selecting a new video replaces the current run. A replaced run that is
    still processing finishes its in-flight work, but its progress is no
    longer reported and its results are never merged into the new run.
    Runs are serialized so the engines are never driven by two runs at once.
    """

    def __init__(self, pipeline: FramePipeline):
        self.pipeline = pipeline
        self.current: Optional[PipelineRun] = None
        self._lock: Optional[asyncio.Lock] = None

    def select_video(self, name: str, mime_type: Optional[str], data: bytes) -> PipelineRun:
        """
        Select a video blob. The previous selection is dropped even if the new one is rejected.

        Raises:
            InputRejected: If ``mime_type`` is not allow-listed
        """
        self.clear()
        return self._replace(accept_video(name, mime_type, data))

    def select_path(self, path: Path) -> PipelineRun:
        """Select a video file on disk."""
        self.clear()
        return self._replace(open_video(path))

    def _replace(self, video: VideoHandle) -> PipelineRun:
        self.current = PipelineRun(video=video)
        logger.info(f"Selected video: {video.name} ({video.mime_type}, {video.size} bytes)")
        return self.current

    def clear(self) -> None:
        """Drop the current selection."""
        if self.current is not None:
            self.current.superseded = True
            if not self.current.stage.terminal:
                logger.info(f"Run {self.current.run_id} superseded; its results will be discarded")
            self.current = None

    async def process(self) -> PipelineRun:
        """
        Run the pipeline on the current selection.

        Returns:
            The run, in a terminal stage. If it was superseded while waiting
            or processing, it is returned as-is and should be ignored.
        """
        run = self.current
        if run is None:
            raise FrameReadError("No video selected")
        if run.stage is not RunStage.IDLE:
            raise FrameReadError(f"Run {run.run_id} has already been started")

        if self._lock is None:
            self._lock = asyncio.Lock()

        async with self._lock:
            if run.superseded:
                logger.info(f"Skipping superseded run {run.run_id}")
                return run
            await self.pipeline.execute(run)

        if run.superseded:
            logger.info(f"Discarding results of superseded run {run.run_id}")
        return run
