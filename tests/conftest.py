import pytest
import yaml
from pathlib import Path
from typing import Dict, Optional
from hbc.config.models import AppConfig
from hbc.domain.errors import EncodeFailure, ProbeFailure
from hbc.domain.models import AttemptStatus, EncodeAttempt, MediaInfo, ProgressSnapshot
from hbc.infrastructure.event_bus import EventBus

# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def sample_config():
    """Returns a sample AppConfig object for testing (no retry backoff)."""
    return AppConfig(
        general={
            "threads": 2,
            "preset": "fast",
            "crf": 25,
            "retry_backoff_s": 0.0,
            "log_path": "hbc-test.log",
        }
    )

@pytest.fixture
def config_yaml_path(tmp_path):
    """Creates a temporary YAML config file."""
    conf_dir = tmp_path / "conf"
    conf_dir.mkdir()
    conf_file = conf_dir / "hbc.yaml"

    content = {
        'general': {
            'threads': 4,
            'preset': 'medium',
            'crf': 28,
            'max_height': 720,
            'reverse': True,
            'extensions': ['avi', 'MKV'],
        }
    }

    with open(conf_file, 'w') as f:
        yaml.dump(content, f)

    return conf_file

# ============================================================================
# EventBus Fixtures
# ============================================================================

@pytest.fixture
def event_bus():
    """Returns a fresh EventBus instance."""
    return EventBus()

@pytest.fixture
def recorded_events(event_bus):
    """Records every published event on `event_bus`, in order."""
    events = []
    original_publish = event_bus.publish

    def publish(event):
        events.append(event)
        original_publish(event)

    event_bus.publish = publish
    return events

# ============================================================================
# Fake external tools
# ============================================================================

class FakeProber:
    """Stands in for FFprobeAdapter; codecs keyed by file name."""

    def __init__(self, codecs: Dict[str, Optional[str]], heights: Optional[Dict[str, int]] = None):
        self.codecs = codecs
        self.heights = heights or {}
        self.calls = []

    def get_media_info(self, path: Path):
        self.calls.append(path)
        codec = self.codecs.get(path.name)
        if codec is None:
            raise ProbeFailure(f"cannot probe {path}")
        return MediaInfo(
            codec=codec,
            width=1920,
            height=self.heights.get(path.name, 1080),
            stream_codecs=[codec, "aac"],
        )


class FakeEncoder:
    """Stands in for FFmpegAdapter: writes `output_sizes[name]` bytes, or fails.

    With `stamp=True` the output holds `from:<source name>` instead, so tests
    can tell which source produced which file.
    """

    def __init__(self, output_sizes: Optional[Dict[str, int]] = None, fail_times: Optional[Dict[str, int]] = None,
                 stamp: bool = False):
        self.output_sizes = output_sizes or {}
        self.fail_times = fail_times or {}
        self.stamp = stamp
        self.calls = []
        self.decisions = []

    def encode(self, candidate, decision, attempt=0, shutdown_event=None):
        self.calls.append((candidate.path, attempt))
        self.decisions.append((candidate.path, decision))
        name = candidate.path.name
        if self.fail_times.get(name, 0) > attempt:
            decision.output_path.write_bytes(b"partial")
            raise EncodeFailure("ffmpeg exited with code 1", returncode=1)
        if self.stamp:
            decision.output_path.write_bytes(f"from:{name}".encode())
        else:
            decision.output_path.write_bytes(b"x" * self.output_sizes.get(name, 10))
        return EncodeAttempt(index=attempt, status=AttemptStatus.SUCCESS, snapshot=ProgressSnapshot())


@pytest.fixture
def fake_prober_factory():
    return FakeProber


@pytest.fixture
def fake_encoder_factory():
    return FakeEncoder

# ============================================================================
# Marker registration
# ============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
