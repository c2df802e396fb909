import json

import pytest

from transfer_classifier_pipeline.classifier_trainer.config import Architecture, TrainerOptions
from transfer_classifier_pipeline.classifier_trainer.pipeline import FittedPipeline
from transfer_classifier_pipeline.classifier_trainer.trainer import TrainingOrchestrator
from transfer_classifier_pipeline.lib import (
    ConfigError,
    Dataset,
    DatasetSplit,
    DependencyError,
    LabeledSample,
    TrainingError,
)


def test_callback_runs_once_per_epoch_in_order(dataset: Dataset, fake_trainer_factory, make_options) -> None:
    seen = []
    options = make_options(dataset.test, num_epochs=4, metrics_callback=seen.append)

    TrainingOrchestrator(fake_trainer_factory()).train(
        dataset.train, options, dataset.label_mapping
    )

    assert [metrics.epoch for metrics in seen] == [1, 2, 3, 4]


def test_pipeline_outputs_string_labels(dataset: Dataset, fitted_pipeline: FittedPipeline) -> None:
    for item in dataset.train.items + dataset.test.items:
        scores, label = fitted_pipeline.predict(item.image_bytes)
        assert label == item.label
        assert len(scores) == len(dataset.label_mapping)


def test_pipeline_carries_both_label_maps(dataset: Dataset, fitted_pipeline: FittedPipeline) -> None:
    assert fitted_pipeline.label_mapping == dataset.label_mapping
    assert fitted_pipeline.label_names == dataset.label_names
    for label, key in dataset.label_mapping.items():
        assert fitted_pipeline.output_stage(key) == label


def test_trainer_receives_number_of_classes(dataset: Dataset, fake_trainer_factory, make_options) -> None:
    trainer = fake_trainer_factory()

    TrainingOrchestrator(trainer).train(
        dataset.train, make_options(dataset.test), dataset.label_mapping
    )

    assert trainer.fit_calls == [2]


def test_empty_train_set(dataset: Dataset, fake_trainer_factory, make_options) -> None:
    with pytest.raises(ConfigError):
        TrainingOrchestrator(fake_trainer_factory()).train(
            DatasetSplit(items=[]), make_options(dataset.test), dataset.label_mapping
        )


def test_label_keys_must_match_mapping(dataset: Dataset, fake_trainer_factory, make_options) -> None:
    swapped = {label: 1 - key for label, key in dataset.label_mapping.items()}

    with pytest.raises(ConfigError):
        TrainingOrchestrator(fake_trainer_factory()).train(
            dataset.train, make_options(dataset.test), swapped
        )


def test_dependency_error_propagates(dataset: Dataset, fake_trainer_factory, make_options) -> None:
    trainer = fake_trainer_factory(error=DependencyError("weights unavailable"))

    with pytest.raises(DependencyError):
        TrainingOrchestrator(trainer).train(
            dataset.train, make_options(dataset.test), dataset.label_mapping
        )


def test_runtime_failure_becomes_training_error(dataset: Dataset, fake_trainer_factory, make_options) -> None:
    trainer = fake_trainer_factory(error=RuntimeError("CUDA out of memory"))

    with pytest.raises(TrainingError) as excinfo:
        TrainingOrchestrator(trainer).train(
            dataset.train, make_options(dataset.test), dataset.label_mapping
        )

    assert isinstance(excinfo.value.__cause__, RuntimeError)


def test_training_error_propagates(dataset: Dataset, fake_trainer_factory, make_options) -> None:
    trainer = fake_trainer_factory(error=TrainingError("Training diverged: non-finite loss nan"))

    with pytest.raises(TrainingError, match="diverged"):
        TrainingOrchestrator(trainer).train(
            dataset.train, make_options(dataset.test), dataset.label_mapping
        )


@pytest.mark.parametrize(
    "field, value",
    [("num_epochs", 0), ("batch_size", 0), ("learning_rate", 0.0)],
)
def test_invalid_trainer_options(field: str, value) -> None:
    values = dict(
        architecture=Architecture.MOBILENET_V2,
        num_epochs=1,
        batch_size=1,
        learning_rate=0.01,
        validation_set=DatasetSplit(items=[]),
    )
    values[field] = value

    with pytest.raises(ConfigError):
        TrainerOptions(**values)


def test_pipeline_save(fitted_pipeline: FittedPipeline, tmp_path) -> None:
    fitted_pipeline.save(str(tmp_path / "model"))

    saved = json.loads((tmp_path / "model" / "label_mapping.json").read_text())
    assert saved == fitted_pipeline.label_mapping
    assert (tmp_path / "model" / "model.pth").exists()


def test_pipeline_rejects_scorer_with_other_class_count(fitted_pipeline: FittedPipeline) -> None:
    with pytest.raises(ConfigError):
        FittedPipeline(
            scorer=fitted_pipeline.scorer,
            label_mapping={"cat": 0, "dog": 1, "bird": 2},
            output_stage=fitted_pipeline.output_stage,
        )


def test_unlabeled_samples_do_not_reach_the_trainer(fake_trainer_factory, make_options) -> None:
    train = DatasetSplit(
        items=[
            LabeledSample(image_path="/x/a.jpg", label="a", label_key=0, image_bytes=b"a"),
            LabeledSample(image_path="/x/b.jpg", label="b", label_key=1, image_bytes=b"b"),
        ]
    )
    trainer = fake_trainer_factory()

    with pytest.raises(ConfigError):
        TrainingOrchestrator(trainer).train(train, make_options(DatasetSplit(items=[])), {"a": 0})

    assert trainer.fit_calls == []


def test_class_distribution_counts_labels_without_image_bytes(
    dataset: Dataset, fake_trainer_factory, monkeypatch
) -> None:
    def no_frame(self):
        raise AssertionError("distribution should not build the full sample frame")

    monkeypatch.setattr(DatasetSplit, "to_frame", no_frame)

    distribution = TrainingOrchestrator(fake_trainer_factory())._get_dataset_split_distribution(
        dataset.train
    )

    expected = {}
    for item in dataset.train.items:
        expected[item.label] = expected.get(item.label, 0) + 1
    assert distribution == expected
    assert sum(distribution.values()) == len(dataset.train)
