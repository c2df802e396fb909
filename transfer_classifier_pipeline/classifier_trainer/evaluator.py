from typing import List

import numpy as np
import pandas as pd
from sklearn.metrics import accuracy_score, confusion_matrix, log_loss, recall_score
import seaborn as sns
import matplotlib.pyplot as plt

from transfer_classifier_pipeline.lib import (
    setup_logger,
    ConfigError,
    DatasetSplit,
    EvaluationMetrics,
)

from .pipeline import FittedPipeline

logger = setup_logger(__name__)


class Evaluator:
    """Computes multiclass metrics of a fitted pipeline on a labeled split."""

    def evaluate(self, pipeline: FittedPipeline, test_set: DatasetSplit) -> EvaluationMetrics:
        if len(test_set) == 0:
            raise ConfigError("Cannot evaluate on an empty test set")

        logger.info(f"Evaluating on {len(test_set)} test items...")
        labels = list(range(pipeline.num_classes))

        y_true = np.asarray(test_set.label_keys)
        scores = pipeline.score([item.image_bytes for item in test_set.items])
        # Normalise rows so log_loss sees proper probability distributions
        probabilities = scores / scores.sum(axis=1, keepdims=True)
        y_pred = probabilities.argmax(axis=1)

        micro_accuracy = float(accuracy_score(y_true, y_pred))
        # Mean per-class accuracy over the classes present in the test set
        macro_accuracy = float(
            recall_score(
                y_true,
                y_pred,
                labels=sorted(set(y_true.tolist())),
                average="macro",
                zero_division=0,
            )
        )
        overall_log_loss = float(log_loss(y_true, probabilities, labels=labels))

        per_class_log_loss: List[float] = []
        for key in labels:
            mask = y_true == key
            if not mask.any():
                per_class_log_loss.append(0.0)
                continue
            per_class_log_loss.append(
                float(log_loss(y_true[mask], probabilities[mask], labels=labels))
            )

        cm = confusion_matrix(y_true, y_pred, labels=labels)

        metrics = EvaluationMetrics(
            macro_accuracy=macro_accuracy,
            micro_accuracy=micro_accuracy,
            log_loss=max(overall_log_loss, 0.0),
            per_class_log_loss=per_class_log_loss,
            confusion_matrix=cm.tolist(),
        )
        logger.info(
            f"Test macro accuracy: {metrics.macro_accuracy:.4f}, "
            f"micro accuracy: {metrics.micro_accuracy:.4f}, log-loss: {metrics.log_loss:.4f}"
        )
        return metrics


def format_metrics(metrics: EvaluationMetrics) -> str:
    """Human-readable metrics block; per-class lines are numbered from 1."""
    lines = [
        "*" * 60,
        "* Metrics for transfer-learning multi-class classification model",
        "*" + "-" * 59,
        f" AccuracyMacro = {metrics.macro_accuracy:.4f}, a value between 0 and 1, the closer to 1, the better",
        f" AccuracyMicro = {metrics.micro_accuracy:.4f}, a value between 0 and 1, the closer to 1, the better",
        f" LogLoss = {metrics.log_loss:.4f}, the closer to 0, the better",
    ]
    for index, class_log_loss in enumerate(metrics.per_class_log_loss, start=1):
        lines.append(
            f" LogLoss for class {index} = {class_log_loss:.4f}, the closer to 0, the better"
        )
    lines.append("*" * 60)
    return "\n".join(lines)


def save_confusion_matrix(
    metrics: EvaluationMetrics, label_names: List[str], output_path: str
) -> None:
    """Render the confusion matrix as a heatmap image."""
    cm_df = pd.DataFrame(metrics.confusion_matrix, index=label_names, columns=label_names)

    plt.figure(figsize=(10, 7))
    sns.heatmap(cm_df, annot=True, fmt="d", cmap="Blues")
    plt.title("Confusion Matrix")
    plt.ylabel("Actual")
    plt.xlabel("Predicted")
    plt.savefig(output_path)
    plt.close()
    logger.info(f"Confusion matrix saved to {output_path}")
