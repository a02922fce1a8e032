"""Decoding engine: ffmpeg running against a private staging directory."""

import asyncio
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol

try:
    import ffmpeg
except ImportError:
    ffmpeg = None

from frameread.errors import DecoderCommandError, EngineUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SampleCommand:
    """An ffmpeg sampling run, with files named as they are in engine-local storage."""

    input_name: str
    interval_seconds: float
    output_pattern: str


class DecodingEngine(Protocol):
    """Capabilities the extraction stage relies on."""

    @property
    def loaded(self) -> bool: ...

    async def load(self) -> None: ...

    async def write_file(self, name: str, data: bytes) -> None: ...

    async def exec(self, command: SampleCommand) -> None: ...

    async def list_dir(self) -> List[str]: ...

    async def read_file(self, name: str) -> bytes: ...

    async def delete_file(self, name: str) -> None: ...

    async def terminate(self) -> None: ...


def build_sample_stream(input_path: str, interval_seconds: float, output_path: str):
    """
    Build an ffmpeg-python stream that samples one frame every ``interval_seconds``.

    Returns:
        Output stream ready to run, e.g. ``get_args()`` gives
        ``['-i', 'input.mp4', '-filter_complex', '[0]fps=fps=1/1[s0]', '-map', '[s0]',
        'frame_%03d.png', '-hide_banner', '-nostdin']``
    """
    if ffmpeg is None:
        raise RuntimeError("ffmpeg-python is not installed. Please install it with: pip install ffmpeg-python")

    input_stream = ffmpeg.input(input_path)
    filtered_stream = input_stream.filter('fps', fps=f"1/{interval_seconds:g}")
    return filtered_stream.output(output_path).global_args('-hide_banner', '-nostdin')


class FFmpegEngine:
    """
    ffmpeg wrapped as a decoding engine.

    Engine-local storage is a temporary directory created by ``load()`` and
    removed by ``terminate()``. All blocking work is pushed to a worker
    thread so the event loop stays responsive, but callers are expected to
    await one operation at a time.
    """

    def __init__(self, cmd: str = "ffmpeg"):
        self.cmd = cmd
        self._workdir: Optional[Path] = None

    @property
    def loaded(self) -> bool:
        return self._workdir is not None

    async def load(self) -> None:
        if self.loaded:
            return
        if ffmpeg is None:
            raise RuntimeError("ffmpeg-python is not installed. Please install it with: pip install ffmpeg-python")
        if shutil.which(self.cmd) is None:
            raise RuntimeError(f"{self.cmd} binary not found on PATH")

        self._workdir = Path(tempfile.mkdtemp(prefix="frameread-"))
        logger.info(f"FFmpeg engine loaded (storage: {self._workdir})")

    def _path(self, name: str) -> Path:
        if not self.loaded:
            raise EngineUnavailable("FFmpeg engine is not loaded")
        if not name or Path(name).name != name:
            raise ValueError(f"Invalid storage name: {name!r}")
        return self._workdir / name

    async def write_file(self, name: str, data: bytes) -> None:
        await asyncio.to_thread(self._path(name).write_bytes, data)

    async def read_file(self, name: str) -> bytes:
        return await asyncio.to_thread(self._path(name).read_bytes)

    async def delete_file(self, name: str) -> None:
        await asyncio.to_thread(self._path(name).unlink)

    async def list_dir(self) -> List[str]:
        if not self.loaded:
            raise EngineUnavailable("FFmpeg engine is not loaded")
        return sorted(await asyncio.to_thread(os.listdir, self._workdir))

    async def exec(self, command: SampleCommand) -> None:
        """
        Run an ffmpeg sampling command against engine-local storage.

        Raises:
            DecoderCommandError: If ffmpeg exits with a non-zero status
        """
        stream = build_sample_stream(
            str(self._path(command.input_name)),
            command.interval_seconds,
            str(self._path(command.output_pattern)),
        )
        logger.debug(f"Running: {' '.join(stream.compile(cmd=self.cmd, overwrite_output=True))}")

        process = stream.run_async(cmd=self.cmd, pipe_stdout=True, pipe_stderr=True, overwrite_output=True)
        _, stderr_bytes = await asyncio.to_thread(process.communicate)
        if process.returncode != 0:
            stderr = stderr_bytes.decode("utf8", errors="ignore") if stderr_bytes else ""
            logger.warning(f"FFmpeg exited with code {process.returncode}: {stderr[-200:]}")
            raise DecoderCommandError(process.returncode, stderr)

    async def terminate(self) -> None:
        if self._workdir is None:
            return
        workdir, self._workdir = self._workdir, None
        await asyncio.to_thread(shutil.rmtree, workdir, True)
        logger.info("FFmpeg engine terminated")


async def create_decoding_engine(cmd: str = "ffmpeg") -> FFmpegEngine:
    """Construct and load an FFmpeg engine."""
    engine = FFmpegEngine(cmd)
    await engine.load()
    return engine
