"""
Utility library for the transfer-learning classifier pipeline.

This module provides common utilities used across the pipeline components.
"""

from .logger import setup_logger, set_level
from .errors import (
    PipelineError,
    NotFoundError,
    ImageIOError,
    DependencyError,
    TrainingError,
    ConfigError,
)
from .pandas import pandas
from .config import load_config, read_config_file
from .models import (
    ImageFormat,
    ImageRecord,
    LabeledSample,
    DatasetSplit,
    AssembledDataset,
    Dataset,
    EpochMetrics,
    EvaluationMetrics,
    InMemoryImage,
    PredictionRecord,
)

__all__ = [
    "setup_logger",
    "set_level",
    "PipelineError",
    "NotFoundError",
    "ImageIOError",
    "DependencyError",
    "TrainingError",
    "ConfigError",
    "pandas",
    "load_config",
    "read_config_file",
    "ImageFormat",
    "ImageRecord",
    "LabeledSample",
    "DatasetSplit",
    "AssembledDataset",
    "Dataset",
    "EpochMetrics",
    "EvaluationMetrics",
    "InMemoryImage",
    "PredictionRecord",
]
