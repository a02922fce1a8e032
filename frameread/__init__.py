"""FrameRead - extract frames from a video and OCR the text on each one."""

__version__ = "1.0.0"

from frameread.engines import EngineManager, EngineRegistry
from frameread.export import export_text, format_results
from frameread.frame_extractor import extract_frames
from frameread.models import Frame, PipelineRun, RecognitionResult, RunStage, VideoHandle
from frameread.pipeline import FramePipeline, PipelineSession
from frameread.preprocess import preprocess
from frameread.recognition import RecognitionStage
from frameread.video_input import accept_video, open_video

__all__ = [
    'EngineManager',
    'EngineRegistry',
    'export_text',
    'format_results',
    'extract_frames',
    'Frame',
    'PipelineRun',
    'RecognitionResult',
    'RunStage',
    'VideoHandle',
    'FramePipeline',
    'PipelineSession',
    'preprocess',
    'RecognitionStage',
    'accept_video',
    'open_video',
]
