"""Data model shared by the pipeline stages."""

import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from frameread.config import OCR_ERROR_MARKER

_run_ids = itertools.count(1)


@dataclass(frozen=True)
class VideoHandle:
    """A validated, decodable video blob."""

    name: str
    mime_type: str
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class Frame:
    """A still image sampled from the video. Indices start at 1."""

    index: int
    data: bytes = field(repr=False)
    image_format: str = "png"


class PreprocessKind(Enum):
    CONDITIONED = "conditioned"
    ORIGINAL = "original"


@dataclass(frozen=True)
class PreprocessedImage:
    """Image bytes handed to the OCR engine, tagged with how they were made."""

    kind: PreprocessKind
    data: bytes = field(repr=False)
    error: Optional[str] = None

    @property
    def conditioned(self) -> bool:
        return self.kind is PreprocessKind.CONDITIONED


@dataclass(frozen=True)
class RecognitionResult:
    frame_number: int
    frame: Frame
    text: str
    preprocessing: Optional[PreprocessKind] = None
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @classmethod
    def failure(cls, frame: Frame, reason: str, preprocessing: Optional[PreprocessKind] = None) -> "RecognitionResult":
        return cls(frame.index, frame, OCR_ERROR_MARKER, preprocessing=preprocessing, error=reason)


class RunStage(Enum):
    IDLE = "idle"
    AWAITING_ENGINES = "awaiting_engines"
    EXTRACTING = "extracting"
    RECOGNIZING = "recognizing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (RunStage.COMPLETED, RunStage.FAILED)


@dataclass
class PipelineRun:
    """State of one end-to-end pass over a single video selection."""

    video: VideoHandle
    run_id: int = field(default_factory=lambda: next(_run_ids))
    stage: RunStage = RunStage.IDLE
    frames: List[Frame] = field(default_factory=list, repr=False)
    results: List[RecognitionResult] = field(default_factory=list, repr=False)
    status_message: str = "Ready"
    notice: Optional[str] = None
    extraction_error: Optional[str] = None
    error: Optional[str] = None
    superseded: bool = False

    @property
    def failed_frames(self) -> List[int]:
        return [r.frame_number for r in self.results if r.failed]
