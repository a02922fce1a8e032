"""Export recognized text as a single concatenated blob."""

import logging
import sys
from pathlib import Path
from typing import Optional, Sequence, TextIO

from frameread.config import EXPORT_SEPARATOR, NOTHING_TO_EXPORT_MESSAGE
from frameread.errors import ExportError
from frameread.models import RecognitionResult

logger = logging.getLogger(__name__)


def format_results(results: Sequence[RecognitionResult]) -> str:
    """
    Join results into one text blob.

    Each result becomes ``Frame N:\\n<text>``; blocks are separated by a
    ``---`` rule. Failed frames keep their error marker.
    """
    ordered = sorted(results, key=lambda r: r.frame_number)
    return EXPORT_SEPARATOR.join(f"Frame {r.frame_number}:\n{r.text}" for r in ordered)


def export_text(
    results: Sequence[RecognitionResult],
    output_file: Optional[Path] = None,
    stream: Optional[TextIO] = None,
) -> str:
    """
    Write the formatted results to ``output_file``, or to ``stream`` (stdout by default).

    Returns:
        The exported text

    Raises:
        ExportError: If there are no results
    """
    if not results:
        raise ExportError(NOTHING_TO_EXPORT_MESSAGE)

    text = format_results(results)
    if output_file is not None:
        output_file = Path(output_file).expanduser()
        output_file.write_text(text + "\n", encoding="utf-8")
        logger.info(f"OCR text for {len(results)} frames written to {output_file}")
    else:
        stream = stream or sys.stdout
        stream.write(text + "\n")
    return text
