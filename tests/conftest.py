import json
import os
from pathlib import Path
from typing import Dict, List, Optional, Sequence

os.environ.setdefault("MPLBACKEND", "Agg")

import numpy as np
import pytest

from transfer_classifier_pipeline.classifier_trainer.config import (
    Architecture,
    TrainerOptions,
)
from transfer_classifier_pipeline.classifier_trainer.trainer import TrainingOrchestrator
from transfer_classifier_pipeline.dataset_builder import DatasetAssembler, Splitter, scan
from transfer_classifier_pipeline.lib import Dataset, DatasetSplit, EpochMetrics


class FakeScorer:
    """Deterministic scorer: one-hot on the key memorised for known bytes, uniform otherwise."""

    def __init__(self, key_by_bytes: Dict[bytes, int], num_classes: int):
        self.key_by_bytes = key_by_bytes
        self.num_classes = num_classes

    def score(self, images: Sequence[bytes]) -> np.ndarray:
        scores = np.full((len(images), self.num_classes), 1.0 / self.num_classes)
        for row, image in enumerate(images):
            if image in self.key_by_bytes:
                scores[row] = 0.0
                scores[row, self.key_by_bytes[image]] = 1.0
        return scores

    def save(self, path: str) -> None:
        with open(path, "w") as f:
            json.dump({image.decode(): key for image, key in self.key_by_bytes.items()}, f)


class FakeBackboneTrainer:
    """Memorises train and validation samples, reporting made-up metrics every epoch."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.fit_calls: List[int] = []

    def fit(self, train_set: DatasetSplit, options: TrainerOptions, num_classes: int) -> FakeScorer:
        self.fit_calls.append(num_classes)
        if self.error is not None:
            raise self.error

        for epoch in range(1, options.num_epochs + 1):
            if options.metrics_callback is not None:
                options.metrics_callback(
                    EpochMetrics(
                        epoch=epoch,
                        train_loss=1.0 / epoch,
                        train_accuracy=1.0 - 1.0 / (epoch + 1),
                        validation_loss=1.0 / epoch,
                        validation_accuracy=1.0 - 1.0 / (epoch + 1),
                    )
                )

        key_by_bytes = {
            item.image_bytes: item.label_key
            for item in train_set.items + options.validation_set.items
        }
        return FakeScorer(key_by_bytes, num_classes)


def write_image(path: Path, content: Optional[bytes] = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content if content is not None else path.name.encode())
    return path


@pytest.fixture
def image_tree(tmp_path: Path) -> Path:
    """Two class folders (cat, dog) with five images each; bytes are unique per file."""
    root = tmp_path / "images"
    for label in ["cat", "dog"]:
        for index in range(5):
            suffix = ".jpg" if index % 2 == 0 else ".png"
            write_image(root / label / f"{label}{index}{suffix}", f"{label}-{index}".encode())
    return root


@pytest.fixture
def dataset(image_tree: Path) -> Dataset:
    assembled = DatasetAssembler(seed=1, show_progress=False).assemble(scan(image_tree))
    train, test = Splitter(seed=1).split(assembled, test_fraction=0.2)
    return Dataset(train=train, test=test, label_mapping=assembled.label_mapping)


@pytest.fixture
def fake_trainer_factory():
    return FakeBackboneTrainer


@pytest.fixture
def make_options():
    def _make_options(validation_set: DatasetSplit, **overrides) -> TrainerOptions:
        values = dict(
            architecture=Architecture.MOBILENET_V2,
            num_epochs=3,
            batch_size=4,
            learning_rate=0.01,
            validation_set=validation_set,
            metrics_callback=None,
        )
        values.update(overrides)
        return TrainerOptions(**values)

    return _make_options


@pytest.fixture
def fitted_pipeline(dataset: Dataset, make_options):
    orchestrator = TrainingOrchestrator(FakeBackboneTrainer())
    return orchestrator.train(
        dataset.train, make_options(dataset.test), dataset.label_mapping
    )
