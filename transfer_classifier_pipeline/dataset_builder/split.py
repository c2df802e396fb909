from typing import Tuple

from sklearn.model_selection import train_test_split

from transfer_classifier_pipeline.lib import (
    setup_logger,
    ConfigError,
    DatasetSplit,
)

from .config import DEFAULT_TEST_FRACTION

logger = setup_logger(__name__)


class Splitter:
    """Partitions a dataset into train and test splits, reproducibly for a given seed."""

    def __init__(self, seed: int):
        self.seed = seed

    def test_size(self, num_items: int, test_fraction: float) -> int:
        """Number of items that go to the test split."""
        if not 0 < test_fraction < 1:
            raise ConfigError(
                f"test_fraction must be between 0 and 1 (exclusive), got {test_fraction}"
            )

        test_size = int(round(test_fraction * num_items))
        if test_size < 1 or test_size >= num_items:
            raise ConfigError(
                f"test_fraction {test_fraction} leaves an empty split for a dataset of {num_items} items"
            )
        return test_size

    def split(
        self, dataset: DatasetSplit, test_fraction: float = DEFAULT_TEST_FRACTION
    ) -> Tuple[DatasetSplit, DatasetSplit]:
        """
        Split the dataset into two disjoint parts that together cover it.

        Args:
            dataset: The (already shuffled) dataset
            test_fraction: Ratio of the test split; the test split gets round(test_fraction * N) items

        Returns:
            Tuple of (train_split, test_split)
        """
        items = dataset.items
        test_size = self.test_size(len(items), test_fraction)

        idx_train, idx_test = train_test_split(
            range(len(items)), test_size=test_size, random_state=self.seed
        )

        train_split = DatasetSplit(items=[items[i] for i in idx_train])
        test_split = DatasetSplit(items=[items[i] for i in idx_test])

        logger.info(
            f"Split {len(items)} items into {len(train_split)} train and {len(test_split)} test items"
        )
        return train_split, test_split
