import io
import re

import pytest

from frameread.config import OCR_ERROR_MARKER
from frameread.errors import ExportError
from frameread.export import export_text, format_results
from frameread.models import Frame, RecognitionResult


def _results(texts):
    results = []
    for number, text in enumerate(texts, start=1):
        frame = Frame(index=number, data=b"png")
        if text is None:
            results.append(RecognitionResult.failure(frame, "boom"))
        else:
            results.append(RecognitionResult(number, frame, text))
    return results


def test_format_two_results():
    text = format_results(_results(["Hello", "World"]))
    assert text == "Frame 1:\nHello\n\n---\n\nFrame 2:\nWorld"


def test_every_frame_gets_a_header_in_order():
    results = _results([f"line {i}" for i in range(1, 13)])
    text = format_results(list(reversed(results)))

    headers = [int(n) for n in re.findall(r"^Frame (\d+):$", text, flags=re.MULTILINE)]
    assert headers == list(range(1, 13))


def test_failed_frames_keep_their_marker():
    text = format_results(_results(["one", None, "three"]))
    assert f"Frame 2:\n{OCR_ERROR_MARKER}" in text


def test_export_to_stream():
    stream = io.StringIO()
    exported = export_text(_results(["alpha"]), stream=stream)
    assert exported == "Frame 1:\nalpha"
    assert stream.getvalue() == "Frame 1:\nalpha\n"


def test_export_to_file(tmp_path):
    output = tmp_path / "ocr.txt"
    export_text(_results(["alpha", "beta"]), output_file=output)
    assert output.read_text(encoding="utf-8") == "Frame 1:\nalpha\n\n---\n\nFrame 2:\nbeta\n"


def test_nothing_to_export():
    with pytest.raises(ExportError, match="No OCR text to export"):
        export_text([])
