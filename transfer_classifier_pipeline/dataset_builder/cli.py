import logging
from typing import Optional

import typer

from transfer_classifier_pipeline.lib import (
    setup_logger,
    set_level,
    load_config,
    PipelineError,
)

from .builder import DatasetBuilder
from .config import DatasetConfig, LabelSourceType

app = typer.Typer(help="Dataset Construction Component")

logger = setup_logger(__name__)


@app.command()
def build(
    image_dir: str = typer.Argument(..., help="Path to the root image directory"),
    output_dir: str = typer.Argument(..., help="Path to save the output dataset"),
    config_file: Optional[str] = typer.Option(
        None, help="Path to a dataset configuration file (YAML/JSON)"
    ),
    folder_labels: Optional[bool] = typer.Option(
        None,
        "--folder-labels/--filename-labels",
        help="Label images by parent folder name or by file name prefix",
    ),
    test_fraction: Optional[float] = typer.Option(
        None, help="Fraction of the dataset held out for testing"
    ),
    random_state: int = typer.Option(1, help="Random seed for reproducibility"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
):
    """
    Build a dataset by labeling images, shuffling them and splitting into train/test sets.
    """
    if verbose:
        set_level(logging.DEBUG)

    try:
        config = (
            load_config(config_file, DatasetConfig) if config_file else DatasetConfig()
        )

        # Command line options take precedence over the configuration file
        overrides = {}
        if folder_labels is not None:
            overrides["label_source"] = (
                LabelSourceType.FOLDER_NAME
                if folder_labels
                else LabelSourceType.FILENAME_PREFIX
            )
        if test_fraction is not None:
            overrides["test_fraction"] = test_fraction
        if overrides:
            config = DatasetConfig.model_validate(
                {**config.model_dump(), **overrides}
            )

        builder = DatasetBuilder(config, seed=random_state)
        dataset = builder.build(image_root=image_dir)
        builder.save(dataset, output_dir)

        typer.echo(f"Dataset successfully built and saved to {output_dir}")
        typer.echo(f"  - Classes: {', '.join(dataset.label_names)}")
        typer.echo(f"  - Train set: {len(dataset.train)} images")
        typer.echo(f"  - Test set: {len(dataset.test)} images")

    except (PipelineError, ValueError) as e:
        logger.critical(e, exc_info=True)
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
