"""Exception types raised by the frame extraction and OCR pipeline."""


class FrameReadError(Exception):
    """Base class for all pipeline errors."""


class InputRejected(FrameReadError):
    """The selected file is not an allow-listed video type."""


class EngineInitError(FrameReadError):
    """An engine failed to load or initialize."""

    def __init__(self, kind: str, message: str):
        super().__init__(f"{kind} engine failed to initialize: {message}")
        self.kind = kind


class EngineInitTimeout(EngineInitError):
    """Waiting for an in-flight engine initialization took too long."""

    def __init__(self, kind: str, timeout: float):
        super().__init__(kind, f"still initializing after {timeout:g}s")
        self.timeout = timeout


class EngineUnavailable(FrameReadError):
    """The engine reports itself terminated or otherwise unusable."""


class DecoderCommandError(FrameReadError):
    """A decoding engine command exited with a non-zero status."""

    def __init__(self, returncode: int, stderr: str = ""):
        detail = stderr.strip().splitlines()[-1] if stderr.strip() else "no diagnostic output"
        super().__init__(f"ffmpeg exited with code {returncode}: {detail}")
        self.returncode = returncode
        self.stderr = stderr


class ExtractionError(FrameReadError):
    """Frame extraction failed for the whole run."""


class RecognitionFrameError(FrameReadError):
    """OCR failed for a single frame. Recorded inline, never fatal to a run."""

    def __init__(self, frame_number: int, reason: str):
        super().__init__(f"Error during OCR for frame {frame_number}: {reason}")
        self.frame_number = frame_number
        self.reason = reason


class ExportError(FrameReadError):
    """Nothing could be exported."""
