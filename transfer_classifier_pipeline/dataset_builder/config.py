from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

DEFAULT_TEST_FRACTION = 0.2


class LabelSourceType(str, Enum):
    """Defines how to derive labels from the image files."""

    FOLDER_NAME = "folder_name"  # Name of the image's parent directory
    FILENAME_PREFIX = "filename_prefix"  # Leading letters of the file name

    @property
    def use_folder_name_as_label(self) -> bool:
        return self == LabelSourceType.FOLDER_NAME


class DatasetConfig(BaseModel):
    """Main configuration for dataset construction."""

    label_source: LabelSourceType = Field(
        LabelSourceType.FOLDER_NAME, description="How to derive labels from the images"
    )
    test_fraction: float = Field(
        DEFAULT_TEST_FRACTION,
        description="Fraction of the shuffled dataset held out for testing",
        gt=0,
        lt=1,
    )
    limit: Optional[int] = Field(
        None, description="Limit the number of files to process", ge=1
    )
