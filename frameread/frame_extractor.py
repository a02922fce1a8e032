"""Frame extraction stage: sample still frames out of a video with the decoding engine."""

import logging
import re
from pathlib import PurePath
from typing import List, Tuple

from frameread.config import DEFAULT_FRAME_INTERVAL, FRAME_FILENAME_PATTERN
from frameread.decoder import DecodingEngine, SampleCommand
from frameread.errors import ExtractionError
from frameread.models import Frame, VideoHandle
from frameread.profiler import profiler

logger = logging.getLogger(__name__)

FRAME_NAME_RE = re.compile(r"^frame_(\d+)\.png$")
STAGED_INPUT_STEM = "input"


def _frame_outputs(names: List[str]) -> List[Tuple[int, str]]:
    """Pick the numbered frame artifacts out of a directory listing, in numeric order."""
    outputs = []
    for name in names:
        match = FRAME_NAME_RE.match(name)
        if match:
            outputs.append((int(match.group(1)), name))
    return sorted(outputs)


def _staged_name(video: VideoHandle) -> str:
    """Storage name for the source video; never collides with a frame artifact."""
    return STAGED_INPUT_STEM + PurePath(video.name).suffix.lower()


async def _discard(engine: DecodingEngine, name: str) -> None:
    try:
        await engine.delete_file(name)
    except Exception as e:
        logger.debug(f"Could not delete {name} from engine storage: {e}")


async def _cleanup(engine: DecodingEngine, staged_name: str) -> None:
    """Best-effort removal of everything a failed run may have left behind."""
    await _discard(engine, staged_name)
    try:
        names = await engine.list_dir()
    except Exception as e:
        logger.debug(f"Could not list engine storage during cleanup: {e}")
        return
    for _, name in _frame_outputs(names):
        await _discard(engine, name)


async def extract_frames(
    engine: DecodingEngine,
    video: VideoHandle,
    interval_seconds: float = DEFAULT_FRAME_INTERVAL,
) -> List[Frame]:
    """
    Sample one frame every ``interval_seconds`` of source video.

    The video is staged in engine-local storage under a fixed internal name
    (so a source called ``frame_001.png`` is never mistaken for output),
    ffmpeg writes numbered PNGs
    next to it, and each PNG is read back and deleted straight away. The
    staged video is removed once every frame has been drained.

    Args:
        engine: A loaded decoding engine
        video: The video to sample
        interval_seconds: Seconds of source video between frames

    Returns:
        Frames indexed 1..N in order. An empty list means ffmpeg produced no
        frames (e.g. a zero-length video); that is not an error.

    Raises:
        ExtractionError: If staging, the ffmpeg command or reading the output
            failed, or the output numbering has a gap
        ValueError: If ``interval_seconds`` is not positive
    """
    if interval_seconds <= 0:
        raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
    if engine is None or not engine.loaded:
        raise ExtractionError("FFmpeg engine is not provided or not loaded.")
    if video is None or video.size == 0:
        raise ExtractionError("No video provided for frame extraction.")

    logger.info(f"Starting frame extraction for {video.name} at {interval_seconds:g}s intervals")
    staged_name = _staged_name(video)
    frames: List[Frame] = []

    with profiler.timed("extract_frames"):
        try:
            await engine.write_file(staged_name, video.data)
            await engine.exec(SampleCommand(staged_name, interval_seconds, FRAME_FILENAME_PATTERN))

            outputs = _frame_outputs(await engine.list_dir())
            for expected, (number, name) in enumerate(outputs, start=1):
                if number != expected:
                    raise ExtractionError(
                        f"Frame numbering gap: expected frame {expected}, found {name}"
                    )
                data = await engine.read_file(name)
                frames.append(Frame(index=number, data=data))
                await engine.delete_file(name)
        except Exception as e:
            logger.error(f"Error during frame extraction: {e}")
            await _cleanup(engine, staged_name)
            if isinstance(e, ExtractionError):
                raise
            raise ExtractionError(str(e) or type(e).__name__) from e

    await _discard(engine, staged_name)
    logger.info(f"Extracted {len(frames)} frames from {video.name}")
    return frames
