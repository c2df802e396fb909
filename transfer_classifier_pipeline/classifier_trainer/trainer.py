from typing import Dict

from transfer_classifier_pipeline.lib import (
    setup_logger,
    pandas,
    ConfigError,
    DatasetSplit,
    TrainingError,
)

from .config import TrainerOptions
from .pipeline import BackboneTrainer, FittedPipeline, KeyToLabelStage

logger = setup_logger(__name__)


class TrainingOrchestrator:
    """
    Drives the backbone trainer and assembles the fitted pipeline.

    The orchestrator owns the stage order (label keys as training target,
    backbone fit, key -> label output stage); the numerical work belongs to
    the backbone trainer.
    """

    def __init__(self, backbone_trainer: BackboneTrainer):
        self.backbone_trainer = backbone_trainer

    def _check_label_keys(
        self, split: DatasetSplit, label_mapping: Dict[str, int], split_name: str
    ) -> None:
        for item in split.items:
            if label_mapping.get(item.label) != item.label_key:
                raise ConfigError(
                    f"{split_name} sample {item.image_path} has label '{item.label}' with key "
                    f"{item.label_key}, but the label mapping gives {label_mapping.get(item.label)}"
                )

    def _get_dataset_split_distribution(self, split: DatasetSplit) -> Dict[str, int]:
        """Get the distribution of classes in the dataset split."""

        total_count = len(split)
        labels = pandas.from_records(
            [{"label": item.label} for item in split.items], columns=["label"]
        )
        distribution = pandas.value_counts(labels, "label")

        num_classes = len(distribution)
        ideal_percentage = 100 / num_classes if num_classes > 0 else 0

        imbalanced_classes = [
            label
            for label, count in distribution.items()
            if abs(count / total_count * 100 - ideal_percentage) > 5
        ]

        if imbalanced_classes:
            logger.warning(
                f"Class imbalance detected: {len(imbalanced_classes)} out of {num_classes} classes deviate from ideal representation by >5%."
            )
            logger.warning(
                f"Ideal class distribution would be {ideal_percentage:.1f}% per class."
            )
            for label in imbalanced_classes:
                current_pct = distribution[label] / total_count * 100
                logger.warning(
                    f"Class '{label}' has {distribution[label]} samples ({current_pct:.1f}%), "
                    f"deviating by {abs(current_pct - ideal_percentage):.1f}% from ideal."
                )

        return distribution

    def train(
        self,
        train_set: DatasetSplit,
        options: TrainerOptions,
        label_mapping: Dict[str, int],
    ) -> FittedPipeline:
        """
        Fit the backbone on train_set and return the fitted pipeline.

        Blocks until every epoch has run; options.metrics_callback is called
        after each one.

        Raises:
            ConfigError: empty train set or labels inconsistent with label_mapping
            DependencyError: the backbone could not be loaded
            TrainingError: the fit failed or diverged
        """
        if len(train_set) == 0:
            raise ConfigError("Cannot train on an empty dataset")
        if not label_mapping:
            raise ConfigError("Label mapping is empty")

        self._check_label_keys(train_set, label_mapping, "Train")
        self._check_label_keys(options.validation_set, label_mapping, "Validation")

        num_classes = len(label_mapping)
        logger.info(
            f"Training {options.architecture.value} on {len(train_set)} items "
            f"({len(options.validation_set)} validation items, {num_classes} classes)"
        )
        self._get_dataset_split_distribution(train_set)

        # DependencyError and TrainingError propagate as they are
        try:
            scorer = self.backbone_trainer.fit(train_set, options, num_classes)
        except RuntimeError as e:
            raise TrainingError(f"Training failed: {e}") from e

        pipeline = FittedPipeline(
            scorer=scorer,
            label_mapping=dict(label_mapping),
            output_stage=KeyToLabelStage.from_label_mapping(label_mapping),
        )
        logger.info("Training completed successfully.")
        return pipeline
