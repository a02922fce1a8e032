"""Frame conditioning ahead of OCR: greyscale, contrast boost, binarization."""

import io
import logging
import math
from typing import List

from PIL import Image

from frameread.config import BINARIZE_MAX, BINARIZE_THRESHOLD, CONTRAST_LEVEL
from frameread.models import PreprocessedImage, PreprocessKind
from frameread.profiler import profiler

logger = logging.getLogger(__name__)


def contrast_table(level: float) -> List[int]:
    """
    Lookup table for a contrast adjustment on a [-1, +1] scale.

    Values are stretched about mid-grey (127) by ``(1 + level) / (1 - level)``
    and clamped to [0, 255].
    """
    if not -1.0 < level < 1.0:
        raise ValueError(f"Contrast level must be within (-1, 1), got {level}")
    factor = (level + 1) / (1 - level)
    return [min(255, max(0, math.floor(factor * (value - 127) + 127))) for value in range(256)]


def threshold_table(threshold: int, max_value: int = BINARIZE_MAX) -> List[int]:
    """Values below ``threshold`` become 0, everything else ``max_value``."""
    return [0 if value < threshold else max_value for value in range(256)]


# Rec. 709 luma weights, as an RGB -> L conversion matrix
LUMA_709 = (0.2126, 0.7152, 0.0722, 0)


def to_greyscale(image: Image.Image) -> Image.Image:
    if image.mode in ("1", "L", "LA", "I", "I;16", "F"):
        return image.convert("L")
    return image.convert("RGB").convert("L", matrix=LUMA_709)


def condition_image(
    raw: bytes,
    contrast: float = CONTRAST_LEVEL,
    threshold: int = BINARIZE_THRESHOLD,
) -> bytes:
    """
    Greyscale, boost contrast and binarize an image, returning PNG bytes.

    Raises whatever Pillow raises for undecodable input.
    """
    image = Image.open(io.BytesIO(raw))
    image = to_greyscale(image)
    image = image.point(contrast_table(contrast))
    # Already single-channel, so thresholding works on the grey value directly
    image = image.point(threshold_table(threshold))

    output = io.BytesIO()
    image.save(output, format="PNG")
    return output.getvalue()


def preprocess(raw: bytes) -> PreprocessedImage:
    """
    Condition a frame for recognition.

    Never raises. If conditioning fails the ORIGINAL variant is returned
    carrying ``raw`` unchanged, so OCR still runs (with lower accuracy).
    """
    try:
        with profiler.timed("preprocess"):
            data = condition_image(raw)
    except Exception as e:
        logger.warning(f"Image preprocessing failed, using original image: {e}")
        return PreprocessedImage(PreprocessKind.ORIGINAL, raw, error=str(e) or type(e).__name__)

    return PreprocessedImage(PreprocessKind.CONDITIONED, data)
