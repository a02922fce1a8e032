"""Recognition stage: run every extracted frame through preprocessing and OCR."""

import logging
from typing import Callable, List, Optional, Sequence

from frameread.engines import EngineManager
from frameread.errors import EngineUnavailable, RecognitionFrameError
from frameread.models import Frame, PreprocessedImage, RecognitionResult
from frameread.preprocess import preprocess
from frameread.profiler import profiler

logger = logging.getLogger(__name__)

# Retries of a single frame after replacing a terminated/unavailable engine
MAX_ENGINE_RETRIES = 1

ResultCallback = Callable[[RecognitionResult], None]


class RecognitionStage:
    """
    Sequential OCR over a frame sequence.

    Frames are recognized one at a time in index order; the engine is never
    called concurrently. A failing frame is recorded with the error marker
    and the batch carries on.
    """

    def __init__(
        self,
        manager: EngineManager,
        on_result: Optional[ResultCallback] = None,
        preprocessor: Callable[[bytes], PreprocessedImage] = preprocess,
        acquire_timeout: Optional[float] = None,
    ):
        self.manager = manager
        self.on_result = on_result
        self.preprocessor = preprocessor
        self.acquire_timeout = acquire_timeout
        self.last_error: Optional[RecognitionFrameError] = None

    async def recognize_all(
        self,
        frames: Sequence[Frame],
        results: Optional[List[RecognitionResult]] = None,
    ) -> List[RecognitionResult]:
        """
        Recognize ``frames`` in order.

        Args:
            frames: Frames to recognize
            results: Optional list to append results to as they are produced,
                letting callers watch the batch progress

        Returns:
            Exactly one RecognitionResult per frame, in frame order

        Raises:
            EngineInitError: If the recognition engine cannot be acquired at all
        """
        if results is None:
            results = []

        # Lazily bring the engine up once; failing here fails the stage.
        await self.manager.acquire(self.acquire_timeout)

        total = len(frames)
        for frame in sorted(frames, key=lambda f: f.index):
            logger.info(f"Performing OCR for frame {frame.index}/{total}")
            result = await self._recognize_frame(frame)
            results.append(result)
            if self.on_result is not None:
                self.on_result(result)

        failed = sum(1 for r in results if r.failed)
        logger.info(f"All OCR processing complete ({total - failed}/{total} frames succeeded)")
        return results

    async def _recognize_frame(self, frame: Frame) -> RecognitionResult:
        prepared = self.preprocessor(frame.data)

        retries = 0
        while True:
            try:
                engine = await self.manager.acquire(self.acquire_timeout)
                with profiler.timed("recognize_frame"):
                    text = await engine.recognize(prepared.data)
                return RecognitionResult(frame.index, frame, text, preprocessing=prepared.kind)
            except EngineUnavailable as e:
                if retries >= MAX_ENGINE_RETRIES:
                    return self._failed(frame, prepared, f"OCR engine issue, failed to recover: {e}")
                retries += 1
                logger.warning(f"OCR engine unavailable ({e}), re-establishing it and retrying frame {frame.index}")
                await self.manager.release()
            except Exception as e:
                return self._failed(frame, prepared, str(e) or type(e).__name__)

    def _failed(self, frame: Frame, prepared: PreprocessedImage, reason: str) -> RecognitionResult:
        self.last_error = RecognitionFrameError(frame.index, reason)
        logger.error(str(self.last_error))
        return RecognitionResult.failure(frame, reason, preprocessing=prepared.kind)
