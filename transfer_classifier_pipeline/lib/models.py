from enum import Enum
from typing import Dict, List

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field

from transfer_classifier_pipeline.lib.pandas import pandas


class ImageFormat(str, Enum):
    """Accepted image file extensions. Matching is case-sensitive."""

    JPG = ".jpg"
    PNG = ".png"

    @classmethod
    def matches(cls, filename: str) -> bool:
        return any(filename.endswith(member.value) for member in cls)


class ImageRecord(BaseModel):
    """A discovered image file and the label derived from its location or name."""

    model_config = ConfigDict(frozen=True)

    image_path: str
    label: str


class LabeledSample(BaseModel):
    """An image loaded into memory with its label and dense label key."""

    model_config = ConfigDict(frozen=True)

    image_path: str
    label: str
    label_key: int = Field(..., ge=0)
    image_bytes: bytes = Field(..., repr=False)


class DatasetSplit(BaseModel):
    """Represents a dataset split (train or test)."""

    items: List[LabeledSample]

    def __len__(self) -> int:
        return len(self.items)

    @property
    def image_paths(self) -> List[str]:
        return [item.image_path for item in self.items]

    @property
    def label_keys(self) -> List[int]:
        return [item.label_key for item in self.items]

    def to_frame(self) -> pd.DataFrame:
        """Tabular view of the split, one row per sample."""
        return pandas.from_records(
            [item.model_dump() for item in self.items],
            columns=["image_path", "label", "label_key", "image_bytes"],
        )


class AssembledDataset(DatasetSplit):
    """The full shuffled dataset together with the label mapping built before shuffling."""

    # {label: key}, keys dense and 0-based in first-seen order
    label_mapping: Dict[str, int]


class Dataset(BaseModel):
    """Represents a split dataset: disjoint train and test views sharing one label mapping."""

    train: DatasetSplit
    test: DatasetSplit
    label_mapping: Dict[str, int]

    @property
    def label_names(self) -> List[str]:
        """Labels ordered by key."""
        return sorted(self.label_mapping, key=lambda label: self.label_mapping[label])



class EpochMetrics(BaseModel):
    """Metrics reported to the per-epoch callback."""

    model_config = ConfigDict(frozen=True)

    epoch: int
    train_loss: float
    train_accuracy: float
    validation_loss: float
    validation_accuracy: float

    def __str__(self) -> str:
        return (
            f"Epoch {self.epoch} | "
            f"Train loss: {self.train_loss:.4f}, acc: {self.train_accuracy:.4f} | "
            f"Val loss: {self.validation_loss:.4f}, acc: {self.validation_accuracy:.4f}"
        )


class EvaluationMetrics(BaseModel):
    """Multiclass metrics of a fitted pipeline over a test split."""

    model_config = ConfigDict(frozen=True)

    macro_accuracy: float = Field(..., ge=0, le=1)
    micro_accuracy: float = Field(..., ge=0, le=1)
    log_loss: float = Field(..., ge=0)
    # One value per class, ordered by label key
    per_class_log_loss: List[float]
    confusion_matrix: List[List[int]] = Field(default_factory=list)


class InMemoryImage(BaseModel):
    """An image read from disk for prediction."""

    model_config = ConfigDict(frozen=True)

    image_bytes: bytes = Field(..., repr=False)
    image_file_name: str


class PredictionRecord(BaseModel):
    """Scores and predicted label for one image."""

    model_config = ConfigDict(frozen=True)

    image_file_name: str
    # One score per class, ordered by label key
    scores: List[float]
    predicted_label: str
