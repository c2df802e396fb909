import json
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union
from itertools import islice

import numpy as np
from tqdm import tqdm

from transfer_classifier_pipeline.lib import (
    setup_logger,
    AssembledDataset,
    ConfigError,
    Dataset,
    ImageIOError,
    ImageRecord,
    LabeledSample,
)

from .catalog import scan
from .config import DatasetConfig
from .split import Splitter

logger = setup_logger(__name__)


def invert_label_mapping(label_mapping: Dict[str, int]) -> Dict[int, str]:
    """Build the key -> label map from a label -> key map."""
    inverse = {key: label for label, key in label_mapping.items()}
    if len(inverse) != len(label_mapping):
        raise ConfigError(f"Label mapping is not one-to-one: {label_mapping}")
    return inverse


class DatasetAssembler:
    """Turns catalog records into a shuffled, in-memory labeled dataset."""

    def __init__(self, seed: int, show_progress: bool = True):
        self.seed = seed
        self.show_progress = show_progress

    def build_label_key_map(self, records: Iterable[ImageRecord]) -> Dict[str, int]:
        """Assign dense 0-based keys to labels in the order they are first seen."""
        mapping: Dict[str, int] = {}
        for record in records:
            if record.label not in mapping:
                mapping[record.label] = len(mapping)
        return mapping

    def _read_bytes(self, image_path: str) -> bytes:
        try:
            return Path(image_path).read_bytes()
        except OSError as e:
            raise ImageIOError(image_path, e.strerror or str(e)) from e

    def assemble(self, records: Iterable[ImageRecord]) -> AssembledDataset:
        """
        Shuffle the records and load every image into memory.

        The label mapping is computed on the unshuffled records, so it only
        depends on the catalog order. Any unreadable file aborts the assembly.
        """
        records = list(records)
        if not records:
            raise ConfigError("Cannot assemble an empty dataset")

        label_mapping = self.build_label_key_map(records)
        logger.info(f"Label Mapping: {label_mapping}")

        order = np.random.default_rng(self.seed).permutation(len(records))

        items: List[LabeledSample] = []
        for index in tqdm(
            order, desc="Loading images", disable=not self.show_progress
        ):
            record = records[index]
            items.append(
                LabeledSample(
                    image_path=record.image_path,
                    label=record.label,
                    label_key=label_mapping[record.label],
                    image_bytes=self._read_bytes(record.image_path),
                )
            )

        logger.info(f"Loaded {len(items)} images for {len(label_mapping)} classes")
        return AssembledDataset(items=items, label_mapping=label_mapping)


class DatasetBuilder:
    """Builds a train/test dataset from an image folder based on configuration."""

    def __init__(self, config: DatasetConfig, seed: int, show_progress: bool = True):
        self.config = config
        self.seed = seed
        self.assembler = DatasetAssembler(seed, show_progress=show_progress)
        self.splitter = Splitter(seed)

    def build(
        self, image_root: Union[str, Path], limit: Optional[int] = None
    ) -> Dataset:
        """
        Scan, assemble and split the images under image_root.

        Args:
            image_root: Path to the root directory containing images
            limit: Optional cap on the number of catalog records (overrides config.limit)

        Returns:
            A Dataset with disjoint train and test splits
        """
        logger.info("Starting to build dataset.")

        records: Iterable[ImageRecord] = scan(
            image_root,
            use_folder_name_as_label=self.config.label_source.use_folder_name_as_label,
        )

        limit = limit if limit is not None else self.config.limit
        if limit is not None:
            logger.info(f"Limiting to {limit} images")
            records = islice(records, limit)

        assembled = self.assembler.assemble(records)
        train_split, test_split = self.splitter.split(
            assembled, test_fraction=self.config.test_fraction
        )

        logger.info("Dataset built successfully.")
        return Dataset(
            train=train_split,
            test=test_split,
            label_mapping=assembled.label_mapping,
        )

    def save(self, dataset: Dataset, output_dir: Union[str, Path]) -> None:
        """
        Save a dataset to disk in JSONL format. Image bytes are not written,
        each line references its file through image_path.

        Args:
            dataset: The dataset to save
            output_dir: Directory to save the dataset to
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        summary = {
            "seed": self.seed,
            "label_source": self.config.label_source.value,
            "train_size": len(dataset.train),
            "test_size": len(dataset.test),
            "classes": dataset.label_names,
        }
        with open(output_dir / "summary.json", "w") as f:
            json.dump(summary, f, indent=2)

        for split_name in ["train", "test"]:
            split_data = getattr(dataset, split_name)
            split_path = output_dir / f"{split_name}.jsonl"

            with open(split_path, "w") as f:
                for item in split_data.items:
                    f.write(json.dumps(item.model_dump(exclude={"image_bytes"})) + "\n")

        mapping_path = output_dir / "label_mapping.json"
        with open(mapping_path, "w") as f:
            json.dump(dataset.label_mapping, f, indent=2)

        logger.info(f"Dataset saved to {output_dir}")
