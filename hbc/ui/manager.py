import shlex
import threading
from typing import Dict, Optional
from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    Progress,
    TaskID,
    TaskProgressColumn,
    TextColumn,
)
from hbc.domain.events import (
    AttemptFailed,
    CommandPrepared,
    DirectoryEntered,
    FileSkipped,
    JobCompleted,
    JobFailed,
    JobProgressUpdated,
    JobStarted,
    RunFinished,
    SourceDeleted,
)
from hbc.infrastructure.event_bus import EventBus


def format_mb(size: int) -> str:
    return f"{size / 1024 / 1024:.2f}MB"


class UIManager:
    """Subscribes to EventBus and renders decisions and per-job progress bars."""

    def __init__(self, bus: EventBus, console: Optional[Console] = None, verbose: bool = False):
        self.bus = bus
        self.verbose = verbose
        self.progress = Progress(
            TextColumn("{task.description}", markup=False),
            BarColumn(),
            TaskProgressColumn(),
            TextColumn("[bold red]{task.fields[speed]:>6}"),
            TextColumn("[bold blue]{task.fields[size]:>9}"),
            TextColumn("[bold yellow]{task.fields[bitrate]:>10}"),
            TextColumn("[bold green]{task.fields[time]}"),
            console=console,
            transient=True,
        )
        self._lock = threading.Lock()
        self._tasks: Dict[str, TaskID] = {}
        self._setup_subscriptions()

    @property
    def console(self) -> Console:
        return self.progress.console

    def _setup_subscriptions(self):
        self.bus.subscribe(DirectoryEntered, self.on_directory_entered)
        self.bus.subscribe(FileSkipped, self.on_file_skipped)
        self.bus.subscribe(JobStarted, self.on_job_started)
        self.bus.subscribe(CommandPrepared, self.on_command_prepared)
        self.bus.subscribe(JobProgressUpdated, self.on_job_progress)
        self.bus.subscribe(AttemptFailed, self.on_attempt_failed)
        self.bus.subscribe(JobCompleted, self.on_job_completed)
        self.bus.subscribe(JobFailed, self.on_job_failed)
        self.bus.subscribe(SourceDeleted, self.on_source_deleted)
        self.bus.subscribe(RunFinished, self.on_run_finished)

    def __enter__(self):
        self.progress.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.progress.stop()
        return False

    def on_directory_entered(self, event: DirectoryEntered):
        self.console.print(f"working dir: [bold bright_white]{escape(str(event.directory))}[/]")

    def on_file_skipped(self, event: FileSkipped):
        self.console.print(f"[dim]skip {escape(str(event.path))} ({escape(event.reason)})[/]")

    def on_job_started(self, event: JobStarted):
        media = event.candidate.media
        codec = media.codec if media else "unknown"
        dims = f"{media.width}x{media.height}" if media else "-1x-1"
        self.console.print(
            f"process file [bold bright_white]{escape(str(event.candidate.path))}[/] "
            f"codec: {escape(codec)}, videoSize: {dims}"
        )
        self.console.print(f"output assume at [bold bright_blue]{escape(str(event.decision.output_path))}[/]")
        key = str(event.candidate.path)
        with self._lock:
            if key not in self._tasks:
                self._tasks[key] = self.progress.add_task(
                    event.candidate.path.name, total=100, speed="", size="", bitrate="", time=""
                )

    def on_command_prepared(self, event: CommandPrepared):
        if self.verbose:
            self.console.print(f"ffmpeg command: [bold bright_cyan]{escape(shlex.join(event.command))}[/]")

    def on_job_progress(self, event: JobProgressUpdated):
        snapshot = event.snapshot
        with self._lock:
            task_id = self._tasks.get(str(event.candidate.path))
        if task_id is None:
            return
        self.progress.update(
            task_id,
            completed=snapshot.percent_complete * 100,
            speed=snapshot.speed_str,
            size=snapshot.human_size,
            bitrate=snapshot.bitrate_str,
            time=f"{snapshot.time_human}/{snapshot.duration_human}",
        )

    def on_attempt_failed(self, event: AttemptFailed):
        self.console.print(f"[bold bright_yellow]ffmpeg conversion error[/] {escape(event.candidate.path.name)}")
        self.console.print(f"[bold bright_red]{escape(event.error_message)}[/]")
        if event.will_retry:
            self.console.print(f"retry [bold bright_red]{event.attempt + 1}[/]")
            with self._lock:
                task_id = self._tasks.get(str(event.candidate.path))
            if task_id is not None:
                self.progress.reset(task_id)

    def _remove_task(self, key: str):
        with self._lock:
            task_id = self._tasks.pop(key, None)
        if task_id is not None:
            self.progress.remove_task(task_id)

    def on_job_completed(self, event: JobCompleted):
        self._remove_task(str(event.candidate.path))
        stats = event.stats
        self.console.print(
            "[bright_green]ffmpeg run finish, space saved: "
            f"[bold bright_white]{event.percent_saved:.1f}%[/], "
            f"total input size: [bold bright_red]{format_mb(stats.total_input)}[/], "
            f"total output size: [bold bright_green]{format_mb(stats.total_output)}[/], "
            f"total space saved: [bold bright_white]{stats.percent_saved:.1f}%[/][/]"
        )

    def on_job_failed(self, event: JobFailed):
        self._remove_task(str(event.candidate.path))
        self.console.print(
            f"[bold bright_red]failed {escape(str(event.candidate.path))}: {escape(event.error_message)}[/]"
        )

    def on_source_deleted(self, event: SourceDeleted):
        self.console.print(f"delete origin file [bold bright_red]{escape(str(event.path))}[/]")

    def on_run_finished(self, event: RunFinished):
        stats = event.stats
        status = "interrupted" if event.interrupted else "done"
        self.console.print(
            f"[bold]{status}[/]: converted {stats.files_converted} file(s), "
            f"{format_mb(stats.total_input)} -> {format_mb(stats.total_output)} "
            f"(saved {stats.percent_saved:.1f}%)"
        )
