import logging
import os
from typing import Optional

import typer

from transfer_classifier_pipeline.dataset_builder.builder import DatasetBuilder
from transfer_classifier_pipeline.lib import (
    setup_logger,
    set_level,
    load_config,
    EpochMetrics,
    PipelineError,
)

from .backbone import TorchBackboneTrainer
from .config import PipelineConfig
from .evaluator import Evaluator, format_metrics, save_confusion_matrix
from .predictor import BatchPredictor, format_prediction, load_images_from_directory
from .tracking import AimEpochTracker
from .trainer import TrainingOrchestrator

app = typer.Typer(help="Image Classifier Training Component")

logger = setup_logger(__name__)


@app.command()
def run(
    config_file: str = typer.Argument(
        ..., help="Path to the pipeline configuration file (YAML/JSON)"
    ),
    image_dir: str = typer.Argument(..., help="Path to the labeled image directory"),
    predict_dir: Optional[str] = typer.Option(
        None, help="Directory of images to predict (defaults to IMAGE_DIR)"
    ),
    output_dir: str = typer.Option(
        "./tmp/output/models", help="Path to save the trained pipeline"
    ),
    device: Optional[str] = typer.Option(None, help="Torch device, e.g. cpu or cuda"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
):
    """
    Scan and split the images, fine-tune the backbone, evaluate it and predict a folder of images.
    """
    if verbose:
        set_level(logging.DEBUG)

    tracker: Optional[AimEpochTracker] = None
    try:
        config = load_config(config_file, PipelineConfig)

        # Dataset
        builder = DatasetBuilder(config.dataset, seed=config.seed)
        dataset = builder.build(image_root=image_dir)

        # Training
        if config.tracking.enabled:
            tracker = AimEpochTracker(config)

        def on_epoch_metrics(metrics: EpochMetrics) -> None:
            typer.echo(str(metrics))
            if tracker is not None:
                tracker(metrics)

        options = config.trainer_options(
            validation_set=dataset.test, metrics_callback=on_epoch_metrics
        )
        orchestrator = TrainingOrchestrator(
            TorchBackboneTrainer(seed=config.seed, device=device)
        )
        typer.echo("Training model...")
        pipeline = orchestrator.train(dataset.train, options, dataset.label_mapping)

        model_dir = os.path.join(
            output_dir,
            config.model_information.name,
            config.model_information.version,
        )
        pipeline.save(model_dir)

        # Evaluation
        metrics = Evaluator().evaluate(pipeline, dataset.test)
        typer.echo(format_metrics(metrics))
        if tracker is not None:
            tracker.track_evaluation(metrics)
        save_confusion_matrix(
            metrics,
            pipeline.label_names,
            os.path.join(model_dir, "confusion_matrix.png"),
        )

        # Prediction
        images = load_images_from_directory(predict_dir or image_dir)
        for record in BatchPredictor(pipeline).predict_all(images):
            typer.echo(format_prediction(record))

        logger.info("Run completed successfully.")
    except PipelineError as e:
        logger.critical(e, exc_info=True)
        raise typer.Exit(code=1)
    finally:
        if tracker is not None:
            tracker.close()


if __name__ == "__main__":
    app()
