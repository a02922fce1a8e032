"""Live progress display for a pipeline run using rich."""

import threading
import time
from collections import deque
from typing import List, Optional

from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from frameread.config import OCR_ERROR_MARKER
from frameread.models import PipelineRun, RecognitionResult, RunStage
from frameread.pipeline import PipelineListener

STAGE_STYLES = {
    RunStage.IDLE: "dim",
    RunStage.AWAITING_ENGINES: "yellow",
    RunStage.EXTRACTING: "yellow",
    RunStage.RECOGNIZING: "cyan",
    RunStage.COMPLETED: "green",
    RunStage.FAILED: "red",
}


class RunProgressDisplay(PipelineListener):
    """Shows run status, an activity log and per-frame OCR results."""

    def __init__(self, console: Optional[Console] = None):
        self.lock = threading.Lock()

        # State
        self.video_name: Optional[str] = None
        self.stage = RunStage.IDLE
        self.status = "Waiting..."
        self.frame_count = 0
        self.log: deque = deque(maxlen=100)
        self.results: List[RecognitionResult] = []
        self.error: Optional[str] = None

        # Timing
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None

        # UI
        self.console = console or Console()
        self.running = False
        self.activity_log_max_lines = 8
        self.result_preview_chars = 120
        self.display_thread: Optional[threading.Thread] = None

    def stage_changed(self, run: PipelineRun) -> None:
        with self.lock:
            if run.video.name != self.video_name:
                self.video_name = run.video.name
                self.results = []
                self.start_time = time.time()
                self.end_time = None
            self.stage = run.stage
            self.status = run.status_message
            self.frame_count = len(run.frames)
            self.error = run.error if run.stage is RunStage.FAILED else None
            if run.stage.terminal:
                self.end_time = time.time()
        self.add_log(run.status_message)

    def result_added(self, run: PipelineRun, result: RecognitionResult) -> None:
        with self.lock:
            self.results.append(result)
        if result.failed:
            self.add_log(f"Frame {result.frame_number}: {result.error}")

    def add_log(self, message: str):
        """Add a message to the activity log."""
        with self.lock:
            self.log.append(f"[{time.strftime('%H:%M:%S')}] {message}")

    def _elapsed(self) -> Optional[str]:
        if self.start_time is None:
            return None
        elapsed = (self.end_time or time.time()) - self.start_time
        if elapsed < 60:
            return f"{elapsed:.1f}s"
        return f"{int(elapsed // 60)}m {int(elapsed % 60)}s"

    def _get_status_pane_content(self) -> Panel:
        with self.lock:
            text = Text()
            text.append(" FrameRead ", style="bold green on dark_blue")
            text.append(" (Press Ctrl+C to cancel)\n\n", style="dim")
            text.append("Video: ", style="dim")
            text.append(f"{self.video_name or '-'}\n", style="bright_white")
            text.append("Status: ", style="dim")
            text.append(f"{self.status}\n", style=STAGE_STYLES[self.stage])

            if self.frame_count:
                text.append("Frames: ", style="dim")
                text.append(f"{len(self.results)}/{self.frame_count} recognized", style="bright_white")
            elapsed = self._elapsed()
            if elapsed:
                text.append("  Elapsed: ", style="dim")
                text.append(elapsed, style="bright_white")
            if self.error:
                text.append(f"\n{self.error}", style="red")

            return Panel(text, title="Status", border_style="green")

    def _get_log_pane_content(self) -> Panel:
        with self.lock:
            text = Text()
            messages = list(self.log)[-self.activity_log_max_lines:]
            if messages:
                for msg in reversed(messages):
                    text.append(f"{msg}\n", style="dim")
            else:
                text.append("No activity yet...\n", style="dim")
            return Panel(text, title="Activity Log", border_style="blue")

    def _get_results_pane_content(self) -> Panel:
        with self.lock:
            text = Text()
            if not self.results:
                text.append("No OCR results yet...\n", style="dim")
            for result in self.results:
                text.append(f"Frame {result.frame_number}: ", style="bold")
                if result.text == OCR_ERROR_MARKER:
                    text.append(f"{result.text}\n", style="red")
                    continue
                preview = " ".join(result.text.split()) or "(no text)"
                if len(preview) > self.result_preview_chars:
                    preview = preview[:self.result_preview_chars] + "..."
                text.append(f"{preview}\n", style="bright_white")
            return Panel(text, title="OCR Results", border_style="cyan")

    def _create_layout(self) -> Layout:
        layout = Layout()
        layout.split_column(
            Layout(self._get_status_pane_content(), size=8),
            Layout(self._get_log_pane_content(), size=10),
            Layout(self._get_results_pane_content()),
        )
        return layout

    def start(self):
        """Start rendering in a background thread."""
        def run_display():
            self.running = True
            try:
                with Live(self._create_layout(), refresh_per_second=4, screen=False, console=self.console) as live:
                    while self.running:
                        live.update(self._create_layout())
                        time.sleep(0.25)
                    live.update(self._create_layout())
            finally:
                self.running = False

        self.running = True
        self.display_thread = threading.Thread(target=run_display, daemon=True)
        self.display_thread.start()

    def stop(self):
        """Stop rendering and wait for the final frame to be drawn."""
        self.running = False
        if self.display_thread is not None:
            self.display_thread.join(timeout=2.0)
            self.display_thread = None
