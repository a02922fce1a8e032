import asyncio

import pytest

from frameread.config import NO_FRAMES_NOTICE, OCR_ERROR_MARKER, PipelineConfig
from frameread.engines import EngineRegistry
from frameread.errors import FrameReadError, InputRejected
from frameread.models import RunStage
from frameread.pipeline import FramePipeline, PipelineListener, PipelineSession
from tests.fakes import FakeDecoder, FakeFactory, FakeRecognizer

MP4 = b"\x00\x00\x00\x18ftypmp42"


class RecordingListener(PipelineListener):
    def __init__(self):
        self.stages = []
        self.results = []

    def stage_changed(self, run):
        self.stages.append((run.run_id, run.stage))

    def result_added(self, run, result):
        self.results.append((run.run_id, result.frame_number, result.text))


def _session(decoder=None, recognizer=None, decoder_factory=None, recognizer_factory=None, config=None):
    listener = RecordingListener()
    registry = EngineRegistry(
        decoder_factory or FakeFactory(decoder or FakeDecoder()),
        recognizer_factory or FakeFactory(recognizer or FakeRecognizer()),
    )
    pipeline = FramePipeline(registry, config or PipelineConfig(init_timeout=1.0), listener)
    return PipelineSession(pipeline), listener


def test_three_frames_with_one_ocr_failure_completes():
    recognizer = FakeRecognizer(outcomes={2: RuntimeError("tesseract crashed")})
    session, listener = _session(recognizer=recognizer)
    session.select_video("clip.mp4", "video/mp4", MP4)

    run = asyncio.run(session.process())

    assert run.stage is RunStage.COMPLETED
    assert [(r.frame_number, r.text) for r in run.results] == [
        (1, "text1"),
        (2, OCR_ERROR_MARKER),
        (3, "text3"),
    ]
    assert [f.index for f in run.frames] == [1, 2, 3]
    assert run.failed_frames == [2]
    assert "frame 2" in run.error
    assert run.extraction_error is None
    assert [stage for _, stage in listener.stages] == [
        RunStage.AWAITING_ENGINES,
        RunStage.EXTRACTING,
        RunStage.RECOGNIZING,
        RunStage.COMPLETED,
    ]
    assert [frame for _, frame, _ in listener.results] == [1, 2, 3]


def test_zero_frames_completes_without_recognition():
    recognizer = FakeRecognizer()
    session, listener = _session(decoder=FakeDecoder(duration=0.0), recognizer=recognizer)
    session.select_video("empty.webm", "video/webm", b"\x1aE\xdf\xa3")

    run = asyncio.run(session.process())

    assert run.stage is RunStage.COMPLETED
    assert run.results == []
    assert run.notice == NO_FRAMES_NOTICE
    assert recognizer.calls == []
    assert [stage for _, stage in listener.stages] == [
        RunStage.AWAITING_ENGINES,
        RunStage.EXTRACTING,
        RunStage.COMPLETED,
    ]


def test_engine_failure_fails_run_before_extraction():
    decoder = FakeDecoder()
    session, listener = _session(
        decoder=decoder,
        recognizer_factory=FakeFactory(errors=[RuntimeError("no model files")]),
    )
    session.select_video("clip.mp4", "video/mp4", MP4)

    run = asyncio.run(session.process())

    assert run.stage is RunStage.FAILED
    assert run.status_message.startswith("Engines not ready")
    assert "no model files" in run.error
    assert decoder.commands == []
    assert listener.stages[-1][1] is RunStage.FAILED


def test_engine_init_timeout_fails_run():
    session, _ = _session(
        decoder_factory=FakeFactory(FakeDecoder(), delay=1.0),
        config=PipelineConfig(init_timeout=0.05),
    )
    session.select_video("clip.mp4", "video/mp4", MP4)

    run = asyncio.run(session.process())

    assert run.stage is RunStage.FAILED
    assert "still initializing" in run.error


def test_extraction_failure_fails_run():
    decoder = FakeDecoder(command_error="moov atom not found")
    recognizer = FakeRecognizer()
    session, _ = _session(decoder=decoder, recognizer=recognizer)
    session.select_video("broken.mp4", "video/mp4", MP4)

    run = asyncio.run(session.process())

    assert run.stage is RunStage.FAILED
    assert "moov atom not found" in run.extraction_error
    assert run.status_message.startswith("Frame extraction failed")
    assert run.results == []
    assert recognizer.calls == []


def test_terminal_run_cannot_be_restarted():
    session, _ = _session()
    session.select_video("clip.mp4", "video/mp4", MP4)

    async def scenario():
        run = await session.process()
        with pytest.raises(FrameReadError):
            await session.process()
        with pytest.raises(RuntimeError):
            await session.pipeline.execute(run)

    asyncio.run(scenario())


def test_rejected_selection_never_reaches_the_pipeline():
    decoder, recognizer = FakeDecoder(), FakeRecognizer()
    session, listener = _session(decoder=decoder, recognizer=recognizer)

    with pytest.raises(InputRejected):
        session.select_video("notes.txt", "text/plain", b"hello")

    assert session.current is None
    with pytest.raises(FrameReadError, match="No video selected"):
        asyncio.run(session.process())
    assert decoder.commands == []
    assert recognizer.calls == []
    assert listener.stages == []


def test_new_selection_discards_in_flight_run():
    listener_holder = {}

    async def scenario():
        gate = asyncio.Event()
        recognizer = FakeRecognizer(gate=gate)
        session, listener = _session(recognizer=recognizer)
        listener_holder["listener"] = listener

        run_a = session.select_video("a.mp4", "video/mp4", MP4)
        task_a = asyncio.ensure_future(session.process())
        for _ in range(1000):
            if recognizer.calls:
                break
            await asyncio.sleep(0)
        assert run_a.stage is RunStage.RECOGNIZING

        run_b = session.select_video("b.webm", "video/webm", b"\x1aE\xdf\xa3")
        gate.set()
        await task_a
        await session.process()
        return session, run_a, run_b, recognizer

    session, run_a, run_b, recognizer = asyncio.run(scenario())
    listener = listener_holder["listener"]

    assert session.current is run_b
    assert run_a.superseded
    assert run_b.stage is RunStage.COMPLETED
    assert [r.frame_number for r in run_b.results] == [1, 2, 3]
    assert [r.text for r in run_b.results] == ["text4", "text5", "text6"]
    # A ran to completion, but nothing of it was reported after the switch
    assert run_a.stage is RunStage.COMPLETED
    assert all(run_id == run_b.run_id for run_id, _, _ in listener.results)
    assert len(listener.results) == 3
    assert recognizer.max_in_flight == 1


def test_invalid_interval_rejected():
    registry = EngineRegistry(FakeFactory(FakeDecoder()), FakeFactory(FakeRecognizer()))
    with pytest.raises(ValueError):
        FramePipeline(registry, PipelineConfig(frame_interval=0))
