from pathlib import Path
from typing import Iterator, Union

from transfer_classifier_pipeline.lib import (
    setup_logger,
    ImageFormat,
    ImageRecord,
    NotFoundError,
)

logger = setup_logger(__name__)


def label_from_filename(filename: str) -> str:
    """
    Derive a label from a file name: the leading run of letters.

    "dog123.png" -> "dog", "cat.jpg" -> "cat".
    """
    for index, char in enumerate(filename):
        if not char.isalpha():
            return filename[:index]
    return filename


def scan(
    root_folder: Union[str, Path], use_folder_name_as_label: bool = True
) -> Iterator[ImageRecord]:
    """
    Catalog the images under root_folder.

    Args:
        root_folder: Directory searched recursively
        use_folder_name_as_label: Label each image with its parent directory name,
            otherwise with the letter prefix of its file name

    Returns:
        A lazy iterator of ImageRecord, in sorted path order. File contents are never opened.

    Raises:
        NotFoundError: root_folder does not exist or is not a directory
    """
    root = Path(root_folder)
    if not root.exists():
        raise NotFoundError(f"Image folder {root} does not exist")
    if not root.is_dir():
        raise NotFoundError(f"Image folder {root} is not a directory")

    logger.debug(
        f"Scanning {root} (labels from {'folder names' if use_folder_name_as_label else 'file names'})"
    )
    return _iter_records(root, use_folder_name_as_label)


def _iter_records(root: Path, use_folder_name_as_label: bool) -> Iterator[ImageRecord]:
    for image_path in sorted(root.rglob("*")):
        if not image_path.is_file() or not ImageFormat.matches(image_path.name):
            continue

        if use_folder_name_as_label:
            label = image_path.parent.name
        else:
            label = label_from_filename(image_path.name)

        yield ImageRecord(image_path=str(image_path), label=label)
