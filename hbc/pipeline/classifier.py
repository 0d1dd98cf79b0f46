import logging
from pathlib import Path
from typing import List
from hbc.config.models import GeneralConfig
from hbc.domain.errors import ProbeFailure
from hbc.domain.models import AudioMode, ConversionDecision, FileCandidate, MediaInfo, TaskOutcome
from hbc.infrastructure.ffprobe import FFprobeAdapter
from hbc.infrastructure.lock import is_claimed
from hbc.pipeline.naming import derive_output_path, is_converted_name


def output_taken(path: Path) -> bool:
    """Existing files and names claimed by a running conversion are never written."""
    return path.exists() or is_claimed(path)


class MediaClassifier:
    """Decides whether a file gets converted, and how.

    Unknown media (probe failure, no codec) is always skipped: a file we
    cannot identify is never converted and therefore never deleted.
    """

    def __init__(self, config: GeneralConfig, ffprobe_adapter: FFprobeAdapter):
        self.config = config
        self.ffprobe_adapter = ffprobe_adapter
        self.logger = logging.getLogger(__name__)

    def classify(self, candidate: FileCandidate) -> ConversionDecision:
        """Probes the candidate (filling ``candidate.media``) and returns the decision.

        Raises UnsafeOutputPath when no distinct output name exists.
        """
        path = candidate.path
        if is_converted_name(path, self.config.output_extension):
            return ConversionDecision(
                should_convert=False,
                reason="already converted (output name)",
                skip_outcome=TaskOutcome.SKIPPED_CONVERTED_NAME,
            )

        try:
            media = self.ffprobe_adapter.get_media_info(path)
        except ProbeFailure as e:
            self.logger.warning(f"PROBE_FAIL: {path.name} - {e}")
            media = None

        if media is None:
            return ConversionDecision(
                should_convert=False,
                reason="unknown codec",
                skip_outcome=TaskOutcome.SKIPPED_UNKNOWN,
            )

        candidate.media = media
        if media.codec == self.config.target_codec:
            return ConversionDecision(
                should_convert=False,
                reason=f"already {media.codec}",
                skip_outcome=TaskOutcome.SKIPPED_TARGET_CODEC,
            )

        return ConversionDecision(
            should_convert=True,
            reason=f"codec {media.codec}",
            output_path=derive_output_path(path, self.config.output_extension, is_taken=output_taken),
            audio_mode=self._audio_mode(media),
            video_filter_args=self._video_filter_args(media),
        )

    def _audio_mode(self, media: MediaInfo) -> AudioMode:
        if self.config.force_audio_reencode:
            return AudioMode.REENCODE
        if any(codec in self.config.reencode_audio_codecs for codec in media.stream_codecs):
            return AudioMode.REENCODE
        return AudioMode.COPY

    def _video_filter_args(self, media: MediaInfo) -> List[str]:
        max_height = self.config.max_height
        if max_height and media.height > max_height:
            return ["-vf", f"scale=-2:{max_height}"]
        return []
