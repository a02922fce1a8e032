"""Input boundary: only MP4 and WebM videos get into the pipeline."""

import logging
import mimetypes
from pathlib import Path
from typing import Optional

from frameread.config import ALLOWED_MIME_TYPES, INVALID_FILE_TYPE_MESSAGE
from frameread.errors import InputRejected
from frameread.models import VideoHandle

logger = logging.getLogger(__name__)

# mimetypes does not know webm on every platform
mimetypes.add_type("video/webm", ".webm")


def is_allowed(mime_type: Optional[str]) -> bool:
    return mime_type in ALLOWED_MIME_TYPES


def accept_video(name: str, mime_type: Optional[str], data: bytes) -> VideoHandle:
    """
    Validate a selected file and wrap it in a VideoHandle.

    Raises:
        InputRejected: If the MIME kind is not allow-listed. No handle is created.
    """
    if not is_allowed(mime_type):
        logger.info(f"Rejected {name!r} with type {mime_type!r}")
        raise InputRejected(INVALID_FILE_TYPE_MESSAGE)
    return VideoHandle(name=Path(name).name, mime_type=mime_type, data=data)


def open_video(path: Path) -> VideoHandle:
    """
    Load a video from disk, guessing its MIME kind from the file name.

    The type check happens before the file is read, so rejected files are
    never opened.
    """
    path = Path(path)
    mime_type, _ = mimetypes.guess_type(path.name)
    if not is_allowed(mime_type):
        logger.info(f"Rejected {path.name!r} with type {mime_type!r}")
        raise InputRejected(INVALID_FILE_TYPE_MESSAGE)
    if not path.exists():
        raise FileNotFoundError(f"Video file not found: {path}")
    return VideoHandle(name=path.name, mime_type=mime_type, data=path.read_bytes())
