"""Orchestrator runs where files are locked, encoders fail or the user interrupts."""
import pytest
from pathlib import Path
from hbc.domain.events import AttemptFailed, JobFailed, RunFinished
from hbc.domain.models import TaskOutcome
from hbc.infrastructure.lock import lock_path_for
from hbc.pipeline.orchestrator import Orchestrator

pytestmark = pytest.mark.integration


def video(path: Path, size: int = 1000) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"v" * size)
    return path


def test_locked_file_is_skipped_and_lock_kept(tmp_path, sample_config, event_bus,
                                              fake_prober_factory, fake_encoder_factory):
    source = video(tmp_path / "a.avi")
    lock_file = lock_path_for(source)
    lock_file.touch()
    encoder = fake_encoder_factory()

    orchestrator = Orchestrator(sample_config, event_bus, fake_prober_factory({"a.avi": "mpeg4"}), encoder)
    orchestrator.run(tmp_path)

    assert encoder.calls == []
    assert source.exists()
    assert lock_file.exists()
    assert not (tmp_path / "a.mp4").exists()
    assert orchestrator.outcome_counts == {TaskOutcome.SKIPPED_LOCKED: 1}


def test_retry_exhaustion_leaves_source_only(tmp_path, sample_config, event_bus, recorded_events,
                                             fake_prober_factory, fake_encoder_factory):
    source = video(tmp_path / "a.avi")
    encoder = fake_encoder_factory(fail_times={"a.avi": 3})

    orchestrator = Orchestrator(sample_config, event_bus, fake_prober_factory({"a.avi": "mpeg4"}), encoder)
    stats = orchestrator.run(tmp_path)

    assert [attempt for _, attempt in encoder.calls] == [0, 1, 2]
    assert sorted(p.name for p in tmp_path.iterdir()) == ["a.avi"]
    assert source.read_bytes() == b"v" * 1000
    assert stats.files_converted == 0
    assert orchestrator.outcome_counts == {TaskOutcome.FAILED: 1}
    assert len([e for e in recorded_events if isinstance(e, AttemptFailed)]) == 3
    assert len([e for e in recorded_events if isinstance(e, JobFailed)]) == 1


def test_one_failure_does_not_stop_siblings(tmp_path, sample_config, event_bus,
                                            fake_prober_factory, fake_encoder_factory):
    for name in ["a.avi", "b.avi", "c.avi"]:
        video(tmp_path / name)
    prober = fake_prober_factory({"a.avi": "mpeg4", "b.avi": "mpeg4", "c.avi": "mpeg4"})
    encoder = fake_encoder_factory(fail_times={"b.avi": 3})

    orchestrator = Orchestrator(sample_config, event_bus, prober, encoder)
    stats = orchestrator.run(tmp_path)

    assert stats.files_converted == 2
    assert orchestrator.outcome_counts == {TaskOutcome.CONVERTED: 2, TaskOutcome.FAILED: 1}
    assert sorted(p.name for p in tmp_path.iterdir()) == ["a.mp4", "b.avi", "c.mp4"]


def test_unprobeable_file_is_left_alone(tmp_path, sample_config, event_bus,
                                        fake_prober_factory, fake_encoder_factory):
    source = video(tmp_path / "broken.avi")
    encoder = fake_encoder_factory()

    orchestrator = Orchestrator(sample_config, event_bus, fake_prober_factory({"broken.avi": None}), encoder)
    orchestrator.run(tmp_path)

    assert source.exists()
    assert encoder.calls == []
    assert orchestrator.outcome_counts == {TaskOutcome.SKIPPED_UNKNOWN: 1}


def test_interrupt_releases_lock_and_keeps_source(tmp_path, sample_config, event_bus, recorded_events,
                                                  fake_prober_factory):
    source = video(tmp_path / "a.avi")

    class InterruptingEncoder:
        def encode(self, candidate, decision, attempt=0, shutdown_event=None):
            decision.output_path.write_bytes(b"partial")
            raise KeyboardInterrupt

    orchestrator = Orchestrator(sample_config, event_bus, fake_prober_factory({"a.avi": "mpeg4"}),
                                InterruptingEncoder())
    with pytest.raises(KeyboardInterrupt):
        orchestrator.run(tmp_path)

    assert orchestrator.shutdown_event.is_set()
    assert source.exists()
    assert not lock_path_for(source).exists()
    finished = [e for e in recorded_events if isinstance(e, RunFinished)]
    assert len(finished) == 1
    assert finished[0].interrupted is True
