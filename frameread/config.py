"""Configuration defaults for FrameRead."""

from dataclasses import dataclass
from typing import Optional

# Input boundary
ALLOWED_MIME_TYPES = ("video/mp4", "video/webm")
INVALID_FILE_TYPE_MESSAGE = "Invalid file type. Please select an MP4 or WebM video."

# Extraction
DEFAULT_FRAME_INTERVAL = 1.0
FRAME_FILENAME_PATTERN = "frame_%03d.png"

# Engines
DEFAULT_INIT_TIMEOUT = 10.0
DEFAULT_OCR_LANGUAGE = "eng"
DEFAULT_MIN_CONFIDENCE = 0.3

# Preprocessing: contrast on a [-1, +1] scale, binarization on [0, 255]
CONTRAST_LEVEL = 0.5
BINARIZE_THRESHOLD = 128
BINARIZE_MAX = 255

# Results
OCR_ERROR_MARKER = "[OCR Error]"
NO_FRAMES_NOTICE = "No frames were extracted."
EXPORT_SEPARATOR = "\n\n---\n\n"
NOTHING_TO_EXPORT_MESSAGE = "No OCR text to export."


@dataclass(frozen=True)
class PipelineConfig:
    """Settings for one pipeline session."""

    frame_interval: float = DEFAULT_FRAME_INTERVAL
    init_timeout: Optional[float] = DEFAULT_INIT_TIMEOUT
    language: str = DEFAULT_OCR_LANGUAGE
    gpu: Optional[bool] = None
    min_confidence: float = DEFAULT_MIN_CONFIDENCE
