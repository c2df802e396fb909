from pathlib import Path
from types import SimpleNamespace

import aim

from transfer_classifier_pipeline.classifier_trainer import tracking
from transfer_classifier_pipeline.classifier_trainer.config import PipelineConfig
from transfer_classifier_pipeline.classifier_trainer.tracking import AimEpochTracker
from transfer_classifier_pipeline.lib import EpochMetrics, EvaluationMetrics

CONFIG = PipelineConfig.model_validate(
    {"model_information": {"name": "pets", "version": "0.1.0"}}
)

EPOCHS = [
    EpochMetrics(
        epoch=1, train_loss=0.9, train_accuracy=0.5, validation_loss=1.1, validation_accuracy=0.4
    ),
    EpochMetrics(
        epoch=2, train_loss=0.6, train_accuracy=0.7, validation_loss=0.8, validation_accuracy=0.6
    ),
]

EVALUATION = EvaluationMetrics(
    macro_accuracy=0.5,
    micro_accuracy=0.75,
    log_loss=0.3,
    per_class_log_loss=[0.2, 0.4],
    confusion_matrix=[[1, 1], [0, 2]],
)


class RecordingRun:
    def __init__(self, repo=None, experiment=None):
        self.repo = SimpleNamespace(path=repo)
        self.experiment = experiment
        self.values = {}
        self.tracked = []
        self.closed = False

    def __setitem__(self, key, value):
        self.values[key] = value

    def track(self, value, name=None, epoch=None, context=None):
        self.tracked.append((name, context["subset"], epoch, value))

    def close(self):
        self.closed = True


def test_tracks_train_and_validation_per_epoch(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr(tracking.aim, "Run", RecordingRun)

    tracker = AimEpochTracker(CONFIG, repo=str(tmp_path))
    for metrics in EPOCHS:
        tracker(metrics)
    tracker.track_evaluation(EVALUATION)
    tracker.close()

    run = tracker.aim_run
    assert run.experiment == "pets_v0.1.0"
    assert run.values["hparams"]["seed"] == 1
    assert run.tracked == [
        ("epoch_loss", "train", 1, 0.9),
        ("epoch_accuracy", "train", 1, 0.5),
        ("epoch_loss", "val", 1, 1.1),
        ("epoch_accuracy", "val", 1, 0.4),
        ("epoch_loss", "train", 2, 0.6),
        ("epoch_accuracy", "train", 2, 0.7),
        ("epoch_loss", "val", 2, 0.8),
        ("epoch_accuracy", "val", 2, 0.6),
        ("macro_accuracy", "test", None, 0.5),
        ("micro_accuracy", "test", None, 0.75),
        ("log_loss", "test", None, 0.3),
    ]
    assert run.closed


def test_experiment_name_override(monkeypatch) -> None:
    monkeypatch.setattr(tracking.aim, "Run", RecordingRun)
    config = PipelineConfig.model_validate({"tracking": {"experiment": "sweep"}})

    tracker = AimEpochTracker(config)

    assert tracker.aim_run.experiment == "sweep"


def test_writes_to_an_aim_repository(tmp_path: Path) -> None:
    tracker = AimEpochTracker(CONFIG, repo=str(tmp_path))
    for metrics in EPOCHS:
        tracker(metrics)
    tracker.track_evaluation(EVALUATION)
    tracker.close()

    assert (tmp_path / ".aim").is_dir()
    runs = list(aim.Repo.from_path(str(tmp_path)).iter_runs())
    assert len(runs) == 1
    assert runs[0]["hparams"]["model_information"]["name"] == "pets"
