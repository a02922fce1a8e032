"""Recognition engine: text extraction from frame images using EasyOCR."""

import asyncio
import io
import logging
import warnings
from typing import List, Optional, Protocol, Tuple

from PIL import Image

try:
    import easyocr
    import numpy as np
    import torch
    has_easyocr = True

    # Suppress PyTorch pin_memory warnings on MPS (Apple Silicon)
    warnings.filterwarnings('ignore', message='.*pin_memory.*', category=UserWarning)
    warnings.filterwarnings('ignore', message='.*not supported on MPS.*', category=UserWarning)
except ImportError:
    easyocr = None
    np = None
    torch = None
    has_easyocr = False

from frameread.config import DEFAULT_MIN_CONFIDENCE, DEFAULT_OCR_LANGUAGE
from frameread.errors import EngineUnavailable

logger = logging.getLogger(__name__)

# Tesseract-style language codes to EasyOCR codes
LANGUAGE_CODES = {
    'eng': 'en',
}


class RecognitionEngine(Protocol):
    """Capabilities the recognition stage relies on."""

    async def load_language(self, code: str) -> None: ...

    async def initialize(self, code: str) -> None: ...

    async def recognize(self, image_bytes: bytes) -> str: ...

    async def terminate(self) -> None: ...


def _detect_gpu(verbose: bool = True) -> bool:
    if torch is not None and torch.cuda.is_available():
        if verbose: logger.info("EasyOCR: Using CUDA (NVIDIA/ROCm GPU)")
        return True
    if torch is not None and hasattr(torch.backends, 'mps') and torch.backends.mps.is_available():
        if verbose: logger.info("EasyOCR: Using MPS (Apple Silicon GPU)")
        return True
    if verbose: logger.info("EasyOCR: Using CPU (No GPU detected)")
    return False


def _process_ocr_results(results, min_confidence: float = DEFAULT_MIN_CONFIDENCE) -> Tuple[str, float]:
    """Turn raw EasyOCR detections into one line per detection and the mean confidence."""
    lines = []
    conf_sum = 0.0

    for _bbox, text, confidence in results:
        if confidence >= min_confidence:
            text_clean = ' '.join(text.split())
            if text_clean:
                lines.append(text_clean)
                conf_sum += confidence

    if lines:
        return '\n'.join(lines), conf_sum / len(lines)
    return '', 0.0


def clear_gpu_memory():
    """Clear GPU memory if using CUDA."""
    if torch is None:
        return
    if torch.cuda.is_available():
        torch.cuda.empty_cache()


class EasyOCREngine:
    """
    EasyOCR reader with an explicit create / load-language / initialize /
    terminate lifecycle.

    Once terminated, ``recognize`` raises EngineUnavailable so callers can
    replace the engine.
    """

    def __init__(self, gpu: Optional[bool] = None, min_confidence: float = DEFAULT_MIN_CONFIDENCE, quantize: bool = True):
        self.gpu = gpu
        self.min_confidence = min_confidence
        self.quantize = quantize
        self.languages: List[str] = []
        self.terminated = False
        self._reader = None

    @property
    def ready(self) -> bool:
        return self._reader is not None and not self.terminated

    async def load_language(self, code: str) -> None:
        if code not in LANGUAGE_CODES:
            raise ValueError(f"Unsupported OCR language: {code}")
        easyocr_code = LANGUAGE_CODES[code]
        if easyocr_code not in self.languages:
            self.languages.append(easyocr_code)

    async def initialize(self, code: str) -> None:
        if not has_easyocr:
            raise RuntimeError("easyocr is not installed. Please install it with: pip install easyocr")
        if LANGUAGE_CODES.get(code) not in self.languages:
            raise RuntimeError(f"Language {code!r} must be loaded before initialize()")
        self._reader = await asyncio.to_thread(self._create_reader)
        self.terminated = False

    def _create_reader(self):
        gpu = _detect_gpu() if self.gpu is None else self.gpu
        try:
            return easyocr.Reader(self.languages, gpu=gpu, quantize=self.quantize, verbose=False)
        except Exception as e:
            # Fallback to CPU if GPU initialization fails
            if not gpu:
                raise
            logger.warning(f"EasyOCR: GPU initialization failed ({e}), falling back to CPU")
            return easyocr.Reader(self.languages, gpu=False, quantize=self.quantize, verbose=False)

    async def recognize(self, image_bytes: bytes) -> str:
        """
        Extract text from PNG/JPEG image bytes.

        Returns:
            Recognized text, one line per detection ('' when nothing was read)

        Raises:
            EngineUnavailable: If the engine was terminated or never initialized
        """
        if self.terminated:
            raise EngineUnavailable("OCR engine has been terminated")
        if self._reader is None:
            raise EngineUnavailable("OCR engine is not initialized")

        image = Image.open(io.BytesIO(image_bytes))
        if image.mode != 'RGB':
            image = image.convert('RGB')

        results = await asyncio.to_thread(self._reader.readtext, np.array(image))
        text, _ = _process_ocr_results(results, self.min_confidence)
        return text

    async def terminate(self) -> None:
        self._reader = None
        self.terminated = True
        clear_gpu_memory()
        logger.info("EasyOCR engine terminated")


async def create_recognition_engine(
    language: str = DEFAULT_OCR_LANGUAGE,
    gpu: Optional[bool] = None,
    min_confidence: float = DEFAULT_MIN_CONFIDENCE,
) -> EasyOCREngine:
    """Create an EasyOCR engine, load ``language`` and initialize it."""
    engine = EasyOCREngine(gpu=gpu, min_confidence=min_confidence)
    await engine.load_language(language)
    await engine.initialize(language)
    return engine
