import typer
from pathlib import Path
from typing import Optional
from pydantic import ValidationError

from hbc.config.loader import load_config
from hbc.config.models import AppConfig, GeneralConfig
from hbc.domain.errors import RootPathError
from hbc.infrastructure.logging import setup_logging
from hbc.infrastructure.event_bus import EventBus
from hbc.infrastructure.ffprobe import FFprobeAdapter
from hbc.infrastructure.ffmpeg import FFmpegAdapter
from hbc.infrastructure.housekeeping import HousekeepingService
from hbc.pipeline.orchestrator import Orchestrator
from hbc.ui.manager import UIManager

DEFAULT_CONFIG_PATH = Path("conf/hbc.yaml")

app = typer.Typer(help="HBC (HEVC Batch Conversion) - convert a video tree to x265 in place")

@app.command()
def convert(
    input_dir: Path = typer.Argument(Path("."), help="Root directory to convert (default: current directory)"),
    config_path: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Path to YAML config"),
    reverse: bool = typer.Option(False, "--reverse", "-r", help="Visit entries in reverse sorted order"),
    audio_reencode: bool = typer.Option(False, "--audio-reencode", help="Always re-encode audio to AAC"),
    preset: Optional[str] = typer.Option(None, "--preset", help="x265 preset (e.g. fast, medium, slow)"),
    crf: Optional[int] = typer.Option(None, "--crf", help="Override quality factor (0-51)"),
    max_height: Optional[int] = typer.Option(None, "--max-height", help="Downscale videos taller than this"),
    threads: Optional[int] = typer.Option(None, "--threads", "-t", help="Concurrent conversions (clamped to 1-10)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Echo ffmpeg commands"),
    log_path: Optional[Path] = typer.Option(None, "--log-path", help="Path to log file (overrides config)"),
    clean_locks: bool = typer.Option(False, "--clean-locks", help="Remove leftover .lock files before the run"),
    debug: bool = typer.Option(False, "--debug/--no-debug", help="Enable verbose debug logging"),
):
    """Convert every non-HEVC video under INPUT_DIR, deleting originals after verified success."""
    # Windows shells leave a trailing quote on quoted paths ending with a backslash
    input_dir = Path(str(input_dir).rstrip('"')).resolve()

    try:
        if config_path.exists() or config_path != DEFAULT_CONFIG_PATH:
            config = load_config(config_path)
        else:
            config = AppConfig()

        # Apply CLI overrides; rebuilding the model re-runs validation
        overrides = {}
        if reverse: overrides["reverse"] = True
        if audio_reencode: overrides["force_audio_reencode"] = True
        if preset is not None: overrides["preset"] = preset
        if crf is not None: overrides["crf"] = crf
        if max_height is not None: overrides["max_height"] = max_height
        if threads is not None: overrides["threads"] = threads
        if verbose: overrides["verbose"] = True
        if log_path is not None: overrides["log_path"] = str(log_path)
        if debug: overrides["debug"] = True
        if overrides:
            config = AppConfig(general=GeneralConfig(**{**config.general.model_dump(), **overrides}))
    except (FileNotFoundError, ValidationError) as exc:
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    if not input_dir.is_dir():
        typer.secho(f"Error: input directory {input_dir} does not exist", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    general = config.general
    logger = setup_logging(Path(general.log_path), debug=general.debug)
    logger.info(f"HBC started: input_dir={input_dir}")
    logger.info(
        f"Config: threads={general.threads}, preset={general.preset}, crf={general.crf}, "
        f"max_height={general.max_height}, reverse={general.reverse}, "
        f"audio_reencode={general.force_audio_reencode}"
    )

    if clean_locks:
        removed = HousekeepingService().cleanup_stale_locks(input_dir)
        typer.secho(f"Removed {removed} stale lock file(s)", fg=typer.colors.YELLOW)

    bus = EventBus()
    ui_manager = UIManager(bus, verbose=general.verbose)
    orchestrator = Orchestrator(
        config=config,
        event_bus=bus,
        ffprobe_adapter=FFprobeAdapter(),
        ffmpeg_adapter=FFmpegAdapter(general, event_bus=bus),
    )

    try:
        with ui_manager:
            orchestrator.run(input_dir)

    except KeyboardInterrupt:
        # Orchestrator already stopped encoders and released the latest lock
        typer.secho("\nConversion stopped by user (Ctrl+C)", fg=typer.colors.YELLOW)
        raise typer.Exit(code=130)

    except RootPathError as e:
        logger.error(str(e))
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

if __name__ == "__main__":
    app()
