from dataclasses import dataclass
from enum import Enum
import re
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from transfer_classifier_pipeline.dataset_builder.config import DatasetConfig
from transfer_classifier_pipeline.lib import ConfigError, DatasetSplit, EpochMetrics


class Architecture(str, Enum):
    """Pretrained backbone to fine-tune."""

    MOBILENET_V2 = "mobilenet_v2"
    RESNET50 = "resnet50"
    RESNET101 = "resnet101"


DEFAULT_LEARNING_RATE = 0.01
DEFAULT_BATCH_SIZE = 10
DEFAULT_NUM_EPOCHS = 50
DEFAULT_SEED = 1


class ModelInformation(BaseModel):
    """Information about the model to train."""

    name: str = Field("image_classifier", description="Name of the model")
    description: str = Field("", description="Description of the model")
    version: str = Field("1.0.0", description="Version of the model")

    @field_validator("version")
    def validate_version(cls, v: str) -> str:
        """Validate the version of the model."""
        if not re.match(r"^\d+\.\d+\.\d+$", v):
            raise ValueError("Version must be in the semver format x.x.x")
        return v


class Hyperparameters(BaseModel):
    """Hyperparameters for the training process."""

    learning_rate: float = Field(
        DEFAULT_LEARNING_RATE,
        description="Learning rate for the model",
        gt=0,
    )
    batch_size: int = Field(
        DEFAULT_BATCH_SIZE, description="Batch size for training", ge=1
    )
    num_epochs: int = Field(
        DEFAULT_NUM_EPOCHS, description="Number of epochs to train", ge=1
    )


class TrackingConfig(BaseModel):
    """Experiment tracking with Aim."""

    enabled: bool = Field(True, description="Track per-epoch metrics with Aim")
    experiment: Optional[str] = Field(
        None, description="Aim experiment name (defaults to <name>_v<version>)"
    )


class PipelineConfig(BaseModel):
    """Configuration for a full scan, train, evaluate and predict run."""

    model_config = ConfigDict(protected_namespaces=())

    seed: int = Field(DEFAULT_SEED, description="Random seed for reproducibility")
    dataset: DatasetConfig = Field(
        default_factory=DatasetConfig, description="Dataset construction settings"
    )
    model_information: ModelInformation = Field(
        default_factory=ModelInformation, description="Information about the model to train"
    )
    architecture: Architecture = Field(
        Architecture.MOBILENET_V2, description="Pretrained backbone to fine-tune"
    )
    hyperparameters: Hyperparameters = Field(
        default_factory=Hyperparameters,
        description="Hyperparameters for the training process",
    )
    tracking: TrackingConfig = Field(
        default_factory=TrackingConfig, description="Experiment tracking settings"
    )

    def trainer_options(
        self,
        validation_set: DatasetSplit,
        metrics_callback: Optional[Callable[[EpochMetrics], None]] = None,
    ) -> "TrainerOptions":
        return TrainerOptions(
            architecture=self.architecture,
            num_epochs=self.hyperparameters.num_epochs,
            batch_size=self.hyperparameters.batch_size,
            learning_rate=self.hyperparameters.learning_rate,
            validation_set=validation_set,
            metrics_callback=metrics_callback,
        )


@dataclass(frozen=True)
class TrainerOptions:
    """Everything the backbone trainer needs for one fit. Consumed once."""

    architecture: Architecture
    num_epochs: int
    batch_size: int
    learning_rate: float
    validation_set: DatasetSplit
    # Called synchronously after every epoch, in epoch order
    metrics_callback: Optional[Callable[[EpochMetrics], None]] = None

    def __post_init__(self) -> None:
        if self.num_epochs < 1:
            raise ConfigError(f"num_epochs must be at least 1, got {self.num_epochs}")
        if self.batch_size < 1:
            raise ConfigError(f"batch_size must be at least 1, got {self.batch_size}")
        if not self.learning_rate > 0:
            raise ConfigError(
                f"learning_rate must be positive, got {self.learning_rate}"
            )
