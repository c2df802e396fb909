from pathlib import Path
from typing import List, Sequence, Union

from transfer_classifier_pipeline.lib import (
    setup_logger,
    ImageIOError,
    InMemoryImage,
    NotFoundError,
    PredictionRecord,
)

from .pipeline import FittedPipeline

logger = setup_logger(__name__)


def load_images_from_directory(folder: Union[str, Path]) -> List[InMemoryImage]:
    """
    Read every file directly inside folder (not recursive) into memory, sorted by name.

    Raises:
        NotFoundError: folder does not exist or is not a directory
        ImageIOError: a file could not be read
    """
    folder = Path(folder)
    if not folder.is_dir():
        raise NotFoundError(f"Prediction folder {folder} does not exist")

    images: List[InMemoryImage] = []
    for image_path in sorted(p for p in folder.iterdir() if p.is_file()):
        try:
            image_bytes = image_path.read_bytes()
        except OSError as e:
            raise ImageIOError(str(image_path), e.strerror or str(e)) from e
        images.append(InMemoryImage(image_bytes=image_bytes, image_file_name=image_path.name))

    logger.info(f"Loaded {len(images)} images to predict from {folder}")
    return images


class BatchPredictor:
    """Runs inference through a fitted pipeline, one record per image, in input order."""

    def __init__(self, pipeline: FittedPipeline, batch_size: int = 32):
        self.pipeline = pipeline
        self.batch_size = batch_size

    def predict(self, image: InMemoryImage) -> PredictionRecord:
        scores, label = self.pipeline.predict(image.image_bytes)
        return PredictionRecord(
            image_file_name=image.image_file_name, scores=scores, predicted_label=label
        )

    def predict_all(self, images: Sequence[InMemoryImage]) -> List[PredictionRecord]:
        records: List[PredictionRecord] = []
        for start in range(0, len(images), self.batch_size):
            batch = images[start : start + self.batch_size]
            predictions = self.pipeline.transform([image.image_bytes for image in batch])
            records.extend(
                PredictionRecord(
                    image_file_name=image.image_file_name,
                    scores=prediction.scores,
                    predicted_label=prediction.predicted_label,
                )
                for image, prediction in zip(batch, predictions)
            )
        return records


def format_prediction(record: PredictionRecord) -> str:
    return (
        f"Image Filename : [{record.image_file_name}], "
        f"Scores : [{','.join(str(score) for score in record.scores)}], "
        f"Predicted Label : {record.predicted_label}"
    )
