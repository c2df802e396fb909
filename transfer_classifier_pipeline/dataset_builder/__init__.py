"""
Dataset Construction Component for the Transfer-Learning Classifier Pipeline.

This module provides functionality for:
- Cataloging images and deriving labels from folder names or file name prefixes
- Mapping labels to dense keys and loading image bytes into memory
- Shuffling and splitting the dataset into train and test sets with a fixed seed
- Saving the dataset splits and label mapping to disk
"""

from .catalog import scan, label_from_filename
from .builder import DatasetAssembler, DatasetBuilder, invert_label_mapping
from .split import Splitter
from .config import DatasetConfig, LabelSourceType

__all__ = [
    "scan",
    "label_from_filename",
    "DatasetAssembler",
    "DatasetBuilder",
    "invert_label_mapping",
    "Splitter",
    "DatasetConfig",
    "LabelSourceType",
]
