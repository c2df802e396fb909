import json
from typing import Optional

import aim

from transfer_classifier_pipeline.lib import setup_logger, EpochMetrics, EvaluationMetrics

from .config import PipelineConfig

logger = setup_logger(__name__)


class AimEpochTracker:
    """
    Per-epoch metrics callback that tracks to an Aim run.

    Pass an instance as TrainerOptions.metrics_callback, then close() it when the run ends.
    """

    def __init__(self, config: PipelineConfig, repo: Optional[str] = None):
        experiment = config.tracking.experiment or (
            f"{config.model_information.name}_v{config.model_information.version}"
        )
        self.aim_run = aim.Run(repo=repo, experiment=experiment)
        # Sanitize config for Aim (it might not like Pydantic models directly)
        self.aim_run["hparams"] = json.loads(config.model_dump_json())

        logger.info(
            f"Aim run initialized. Check UI or logs at: {self.aim_run.repo.path}"
        )

    def __call__(self, metrics: EpochMetrics) -> None:
        for subset, loss, accuracy in (
            ("train", metrics.train_loss, metrics.train_accuracy),
            ("val", metrics.validation_loss, metrics.validation_accuracy),
        ):
            self.aim_run.track(
                loss, name="epoch_loss", epoch=metrics.epoch, context={"subset": subset}
            )
            self.aim_run.track(
                accuracy,
                name="epoch_accuracy",
                epoch=metrics.epoch,
                context={"subset": subset},
            )

    def track_evaluation(self, metrics: EvaluationMetrics) -> None:
        context = {"subset": "test"}
        self.aim_run.track(metrics.macro_accuracy, name="macro_accuracy", context=context)
        self.aim_run.track(metrics.micro_accuracy, name="micro_accuracy", context=context)
        self.aim_run.track(metrics.log_loss, name="log_loss", context=context)

    def close(self) -> None:
        self.aim_run.close()
