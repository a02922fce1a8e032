"""Lazy, single-instance lifecycle management for the processing engines."""

import asyncio
import functools
import logging
from typing import Any, Awaitable, Callable, Generic, Optional, Tuple, TypeVar

from frameread.config import PipelineConfig
from frameread.decoder import create_decoding_engine
from frameread.errors import EngineInitError, EngineInitTimeout
from frameread.ocr_engine import create_recognition_engine
from frameread.profiler import profiler

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EngineManager(Generic[T]):
    """
    Owns at most one live engine of a given kind.

    The engine is built on first ``acquire()``. Concurrent callers share the
    same in-flight initialization future, so a burst of ``acquire()`` calls
    results in exactly one call to the factory. A failed initialization
    leaves no cached state behind and the next ``acquire()`` starts over.
    """

    def __init__(self, kind: str, factory: Callable[[], Awaitable[T]]):
        self.kind = kind
        self._factory = factory
        self._handle: Optional[T] = None
        self._pending: Optional["asyncio.Future[T]"] = None
        self.init_count = 0

    @property
    def is_ready(self) -> bool:
        return self._handle is not None

    @property
    def is_initializing(self) -> bool:
        return self._pending is not None and not self._pending.done()

    async def acquire(self, timeout: Optional[float] = None) -> T:
        """
        Return the ready engine, initializing it if necessary.

        Args:
            timeout: Maximum seconds to wait for initialization (None waits forever).
                A timeout does not abort the in-flight initialization.

        Raises:
            EngineInitError: If initialization failed
            EngineInitTimeout: If initialization did not finish within ``timeout``
        """
        if self._handle is not None:
            return self._handle

        if self._pending is None:
            self._pending = asyncio.ensure_future(self._initialize())
            self._pending.add_done_callback(_mark_retrieved)
        else:
            logger.debug(f"{self.kind} engine initialization already in progress, waiting for it")

        try:
            return await asyncio.wait_for(asyncio.shield(self._pending), timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Timed out after {timeout:g}s waiting for {self.kind} engine")
            raise EngineInitTimeout(self.kind, timeout) from None

    async def _initialize(self) -> T:
        self.init_count += 1
        logger.info(f"Initializing {self.kind} engine...")
        try:
            with profiler.timed(f"engine_init_{self.kind}"):
                handle = await self._factory()
        except Exception as e:
            logger.error(f"Error initializing {self.kind} engine: {e}")
            raise EngineInitError(self.kind, str(e) or type(e).__name__) from e
        finally:
            self._pending = None

        self._handle = handle
        logger.info(f"{self.kind} engine ready")
        return handle

    async def release(self) -> None:
        """Tear down the engine, if any. Safe to call repeatedly."""
        handle, self._handle = self._handle, None
        if handle is None:
            return

        logger.info(f"Terminating {self.kind} engine...")
        try:
            await handle.terminate()
        except Exception as e:
            logger.warning(f"Error terminating {self.kind} engine: {e}")


def _mark_retrieved(future: "asyncio.Future[Any]") -> None:
    # Waiters may all have timed out; the outcome is still delivered to any
    # later waiter, this only keeps asyncio from reporting it as unretrieved.
    if not future.cancelled():
        future.exception()


class EngineRegistry:
    """The decoding and recognition engine managers used by one pipeline."""

    def __init__(self, decoder_factory: Callable[[], Awaitable[Any]], recognizer_factory: Callable[[], Awaitable[Any]]):
        self.decoder: EngineManager = EngineManager("decoding", decoder_factory)
        self.recognizer: EngineManager = EngineManager("recognition", recognizer_factory)

    @classmethod
    def from_config(cls, config: PipelineConfig) -> "EngineRegistry":
        """Registry backed by ffmpeg and EasyOCR."""
        return cls(
            create_decoding_engine,
            functools.partial(
                create_recognition_engine,
                language=config.language,
                gpu=config.gpu,
                min_confidence=config.min_confidence,
            ),
        )

    @property
    def is_ready(self) -> bool:
        return self.decoder.is_ready and self.recognizer.is_ready

    async def wait_ready(self, timeout: Optional[float] = None) -> Tuple[Any, Any]:
        """
        Acquire both engines concurrently.

        Raises:
            EngineInitError: The first failure among the two engines
        """
        outcomes = await asyncio.gather(
            self.decoder.acquire(timeout),
            self.recognizer.acquire(timeout),
            return_exceptions=True,
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        return outcomes[0], outcomes[1]

    async def shutdown(self) -> None:
        await self.decoder.release()
        await self.recognizer.release()
