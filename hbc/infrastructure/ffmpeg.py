import subprocess
import logging
import time
import threading
import queue
from typing import List, Optional
from hbc.config.models import GeneralConfig
from hbc.domain.errors import EncodeFailure
from hbc.domain.events import CommandPrepared, JobProgressUpdated
from hbc.domain.models import AttemptStatus, ConversionDecision, EncodeAttempt, FileCandidate
from hbc.infrastructure.event_bus import EventBus
from hbc.infrastructure.telemetry import TelemetryParser

READER_JOIN_TIMEOUT_S = 2.0

class FFmpegAdapter:
    """Runs a single ffmpeg conversion and turns its output into progress events."""

    def __init__(self, config: GeneralConfig, event_bus: EventBus, executable: str = "ffmpeg"):
        self.config = config
        self.event_bus = event_bus
        self.executable = executable
        self.logger = logging.getLogger(__name__)

    def build_command(self, candidate: FileCandidate, decision: ConversionDecision) -> List[str]:
        """Constructs the ffmpeg command line arguments."""
        if decision.output_path is None:
            raise ValueError(f"No output path decided for {candidate.path}")
        config = self.config
        cmd = [
            self.executable,
            "-y",  # A retry rewrites the partial output of the attempt before it
        ]
        if config.hwaccel:
            cmd.extend(["-hwaccel", config.hwaccel])
        cmd.extend(["-i", str(candidate.path)])

        # Resolution cap
        cmd.extend(decision.video_filter_args)

        cmd.extend([
            "-c:v", config.video_encoder,
            "-preset", config.preset,
            "-crf", str(config.crf),
        ])
        if config.codec_tag:
            cmd.extend(["-tag:v", config.codec_tag])
        cmd.extend(["-c:a", decision.audio_mode.value])
        cmd.append(str(decision.output_path))
        return cmd

    def encode(
        self,
        candidate: FileCandidate,
        decision: ConversionDecision,
        attempt: int = 0,
        shutdown_event: Optional[threading.Event] = None,
    ) -> EncodeAttempt:
        """Executes one conversion attempt.

        Returns a SUCCESS or INTERRUPTED attempt; raises EncodeFailure when
        ffmpeg exits with a non-zero code.
        """
        filename = candidate.path.name
        start_time = time.monotonic()
        cmd = self.build_command(candidate, decision)

        self.logger.info(f"FFMPEG_START: {filename} (attempt {attempt + 1}/{self.config.max_attempts})")
        self.logger.debug(f"FFMPEG_CMD: {' '.join(cmd)}")
        self.event_bus.publish(CommandPrepared(candidate=candidate, decision=decision, command=cmd))

        parser = TelemetryParser()

        if shutdown_event and shutdown_event.is_set():
            self.logger.info(f"FFMPEG_INTERRUPTED: {filename} (shutdown before start)")
            return EncodeAttempt(
                index=attempt,
                status=AttemptStatus.INTERRUPTED,
                error_message="Interrupted by user (Ctrl+C)",
                snapshot=parser.snapshot,
            )

        process = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,
            universal_newlines=True,  # also splits ffmpeg's \r-terminated status lines
            errors="replace",
            bufsize=1
        )

        output_queue: "queue.Queue[Optional[str]]" = queue.Queue()

        def _reader():
            if not process.stdout:
                output_queue.put(None)
                return
            for line in process.stdout:
                output_queue.put(line)
            output_queue.put(None)

        reader_thread = threading.Thread(target=_reader, daemon=True)
        reader_thread.start()

        last_lines: List[str] = []
        try:
            while True:
                if shutdown_event and shutdown_event.is_set():
                    self.logger.info(f"FFMPEG_INTERRUPTED: {filename} (shutdown signal)")
                    self._terminate(process)
                    return EncodeAttempt(
                        index=attempt,
                        status=AttemptStatus.INTERRUPTED,
                        error_message="Interrupted by user (Ctrl+C)",
                        snapshot=parser.snapshot,
                    )

                try:
                    line = output_queue.get(timeout=0.1)
                except queue.Empty:
                    if process.poll() is not None:
                        break
                    continue

                if line is None:
                    break

                line = line.rstrip()
                if line:
                    last_lines = (last_lines + [line])[-5:]
                snapshot = parser.feed(line)
                if snapshot is not None:
                    self.event_bus.publish(
                        JobProgressUpdated(candidate=candidate, decision=decision, snapshot=snapshot)
                    )

            process.wait()
        except KeyboardInterrupt:
            self.logger.info(f"FFMPEG_INTERRUPTED: {filename} (KeyboardInterrupt)")
            self._terminate(process)
            raise
        finally:
            self._close_output(process, reader_thread)

        elapsed = time.monotonic() - start_time
        if process.returncode != 0:
            tail = " | ".join(last_lines[-2:])
            self.logger.info(
                f"FFMPEG_END: {filename} status=failed code={process.returncode} elapsed={elapsed:.2f}s"
            )
            raise EncodeFailure(
                f"ffmpeg exited with code {process.returncode}" + (f": {tail}" if tail else ""),
                returncode=process.returncode,
            )

        self.logger.info(f"FFMPEG_END: {filename} status=completed elapsed={elapsed:.2f}s")
        return EncodeAttempt(index=attempt, status=AttemptStatus.SUCCESS, snapshot=parser.snapshot)

    def _close_output(self, process: subprocess.Popen, reader_thread: threading.Thread) -> None:
        # stdout reaches EOF once ffmpeg has exited
        reader_thread.join(timeout=READER_JOIN_TIMEOUT_S)
        if reader_thread.is_alive():
            # A child still holds the pipe; closing it now would block on the reader
            self.logger.warning("FFMPEG_READER: output reader still running, pipe left open")
            return
        if process.stdout:
            process.stdout.close()

    @staticmethod
    def _terminate(process: subprocess.Popen) -> None:
        process.terminate()
        try:
            process.wait(timeout=3)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()
