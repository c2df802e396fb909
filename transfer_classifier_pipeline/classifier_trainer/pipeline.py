import json
import os
from dataclasses import dataclass
from typing import Dict, List, Protocol, Sequence, Tuple

import numpy as np

from transfer_classifier_pipeline.dataset_builder.builder import invert_label_mapping
from transfer_classifier_pipeline.lib import (
    setup_logger,
    ConfigError,
    DatasetSplit,
)

from .config import TrainerOptions

logger = setup_logger(__name__)


class ImageScorer(Protocol):
    """A trained model: image bytes in, one score per class out (label-key order)."""

    num_classes: int

    def score(self, images: Sequence[bytes]) -> np.ndarray: ...

    def save(self, path: str) -> None: ...


class BackboneTrainer(Protocol):
    """Fits a pretrained backbone to a labeled training split."""

    def fit(
        self, train_set: DatasetSplit, options: TrainerOptions, num_classes: int
    ) -> ImageScorer: ...


@dataclass(frozen=True)
class Prediction:
    """Output of the fitted pipeline for a single image."""

    scores: List[float]
    predicted_key: int
    predicted_label: str


@dataclass(frozen=True)
class KeyToLabelStage:
    """Final pipeline stage: maps predicted label keys back to label strings."""

    key_to_label: Dict[int, str]

    @classmethod
    def from_label_mapping(cls, label_mapping: Dict[str, int]) -> "KeyToLabelStage":
        return cls(key_to_label=invert_label_mapping(label_mapping))

    def __call__(self, key: int) -> str:
        return self.key_to_label[key]


@dataclass(frozen=True)
class FittedPipeline:
    """
    A trained backbone plus its label mapping stages.

    label_mapping is the label -> key map built when the dataset was assembled,
    output_stage the key -> label map appended after training. Read-only; safe
    to share between the evaluator and the predictor.
    """

    scorer: ImageScorer
    label_mapping: Dict[str, int]
    output_stage: KeyToLabelStage

    def __post_init__(self) -> None:
        if len(self.label_mapping) != self.scorer.num_classes:
            raise ConfigError(
                f"Scorer outputs {self.scorer.num_classes} classes but the label mapping has {len(self.label_mapping)}"
            )

    @property
    def num_classes(self) -> int:
        return len(self.label_mapping)

    @property
    def label_names(self) -> List[str]:
        """Labels ordered by key."""
        return [self.output_stage(key) for key in range(self.num_classes)]

    def score(self, images: Sequence[bytes]) -> np.ndarray:
        """Raw scores, shape (len(images), num_classes)."""
        scores = np.asarray(self.scorer.score(images), dtype=np.float64)
        if scores.shape != (len(images), self.num_classes):
            raise ValueError(
                f"Scorer returned shape {scores.shape}, expected {(len(images), self.num_classes)}"
            )
        return scores

    def transform(self, images: Sequence[bytes]) -> List[Prediction]:
        """Run images through every stage, keeping input order."""
        predictions = []
        for row in self.score(images):
            # argmax picks the lowest key on ties
            key = int(np.argmax(row))
            predictions.append(
                Prediction(
                    scores=[float(score) for score in row],
                    predicted_key=key,
                    predicted_label=self.output_stage(key),
                )
            )
        return predictions

    def predict(self, image_bytes: bytes) -> Tuple[List[float], str]:
        """Single-image inference: (scores, predicted label)."""
        prediction = self.transform([image_bytes])[0]
        return prediction.scores, prediction.predicted_label

    def save(self, output_dir: str) -> None:
        """Write the label mapping and the backbone weights to output_dir."""
        os.makedirs(output_dir, exist_ok=True)

        mapping_path = os.path.join(output_dir, "label_mapping.json")
        with open(mapping_path, "w") as f:
            json.dump(self.label_mapping, f, indent=2)

        self.scorer.save(os.path.join(output_dir, "model.pth"))
        logger.info(f"Pipeline saved to {output_dir}")
