import math
from typing import Callable, Dict, Optional, Sequence, Tuple

import numpy as np
import torch
from torch.utils.data import DataLoader
from tqdm import tqdm

from transfer_classifier_pipeline.lib import (
    setup_logger,
    DatasetSplit,
    EpochMetrics,
    TrainingError,
)

from .config import TrainerOptions
from .dataset import ImageBytesDataset
from .model import build_backbone

logger = setup_logger(__name__)


def _freeze_batch_norm_statistics(model: torch.nn.Module) -> None:
    """Put batch norm layers with no trainable parameters back in eval mode."""
    for module in model.modules():
        if not isinstance(module, torch.nn.modules.batchnorm._BatchNorm):
            continue
        if not any(parameter.requires_grad for parameter in module.parameters()):
            module.eval()


class TorchImageScorer:
    """Scores images with a fine-tuned torchvision backbone."""

    def __init__(
        self,
        model: torch.nn.Module,
        transform: Callable[..., torch.Tensor],
        num_classes: int,
        device: torch.device,
        batch_size: int = 32,
    ):
        self.model = model
        self.transform = transform
        self.num_classes = num_classes
        self.device = device
        self.batch_size = batch_size

    def score(self, images: Sequence[bytes]) -> np.ndarray:
        """Softmax scores, shape (len(images), num_classes), rows in input order."""
        if len(images) == 0:
            return np.zeros((0, self.num_classes), dtype=np.float32)

        loader = DataLoader(
            ImageBytesDataset(images, self.transform),
            batch_size=self.batch_size,
            shuffle=False,
        )

        self.model.eval()
        batches = []
        with torch.no_grad():
            for features, _ in loader:
                logits = self.model(features.to(self.device))
                batches.append(torch.softmax(logits, dim=1).cpu().numpy())
        return np.concatenate(batches, axis=0)

    def save(self, path: str) -> None:
        """Saves the model state dictionary."""
        torch.save(self.model.state_dict(), path)
        logger.info(f"Model saved to {path}")


class TorchBackboneTrainer:
    """
    Fine-tunes a pretrained torchvision backbone.

    Only the replaced classification head is optimized; validation runs after
    every epoch and its metrics go to options.metrics_callback.
    """

    def __init__(
        self,
        seed: int,
        device: Optional[str] = None,
        num_workers: int = 0,
        show_progress: bool = True,
    ):
        self.seed = seed
        self.num_workers = num_workers
        self.show_progress = show_progress

        # Set device
        self.device = torch.device(
            device or ("cuda" if torch.cuda.is_available() else "cpu")
        )
        logger.info(f"Using device: {self.device}")

        self.criterion = torch.nn.CrossEntropyLoss()

    def _seed(self) -> None:
        # Set seeds for reproducibility
        torch.manual_seed(self.seed)
        np.random.seed(self.seed)
        if torch.cuda.is_available():
            torch.cuda.manual_seed_all(self.seed)

    def _calculate_metrics(
        self, logits: torch.Tensor, labels: torch.Tensor
    ) -> Dict[str, float]:
        """Calculates loss and accuracy."""
        loss = self.criterion(logits, labels).item()

        preds = torch.argmax(logits, dim=1)
        accuracy = (preds == labels).float().mean().item()

        return {"loss": loss, "accuracy": accuracy}

    def _run_epoch(
        self,
        model: torch.nn.Module,
        optimizer: Optional[torch.optim.Optimizer],
        loader: DataLoader[Tuple[torch.Tensor, torch.Tensor]],
    ) -> Dict[str, float]:
        """Runs a single epoch of training (with an optimizer) or validation (without)."""
        is_training = optimizer is not None
        if is_training:
            model.train()
            _freeze_batch_norm_statistics(model)
            context = torch.enable_grad()
        else:
            model.eval()
            context = torch.no_grad()

        epoch_loss = 0.0
        epoch_accuracy = 0.0
        num_batches = len(loader)

        logger.debug(
            f"Running {'Train' if is_training else 'Eval'} on {num_batches} batches"
        )

        pbar = tqdm(
            loader,
            desc=f"{'Train' if is_training else 'Eval'}",
            leave=False,
            disable=not self.show_progress,
        )
        with context:
            for features, labels in pbar:
                features, labels = features.to(self.device), labels.to(self.device)

                if is_training:
                    optimizer.zero_grad()

                # Forward pass
                logits = model(features)
                loss = self.criterion(logits, labels)

                if not math.isfinite(loss.item()):
                    raise TrainingError(
                        f"Training diverged: non-finite loss {loss.item()}"
                    )

                if is_training:
                    loss.backward()
                    optimizer.step()

                batch_metrics = self._calculate_metrics(logits, labels)
                epoch_loss += batch_metrics["loss"]
                epoch_accuracy += batch_metrics["accuracy"]

                pbar.set_postfix(
                    {
                        "loss": f"{batch_metrics['loss']:.4f}",
                        "acc": f"{batch_metrics['accuracy']:.4f}",
                    }
                )

        return {
            "loss": epoch_loss / num_batches,
            "accuracy": epoch_accuracy / num_batches,
        }

    def fit(
        self, train_set: DatasetSplit, options: TrainerOptions, num_classes: int
    ) -> TorchImageScorer:
        """Runs the main training loop and returns a scorer for the trained model."""
        self._seed()

        model, transform = build_backbone(options.architecture, num_classes)
        model.to(self.device)

        train_loader = DataLoader(
            ImageBytesDataset.from_split(train_set, transform),
            batch_size=options.batch_size,
            shuffle=True,
            num_workers=self.num_workers,
        )
        val_loader = (
            DataLoader(
                ImageBytesDataset.from_split(options.validation_set, transform),
                batch_size=options.batch_size,
                shuffle=False,
                num_workers=self.num_workers,
            )
            if len(options.validation_set) > 0
            else None
        )
        if val_loader is None:
            logger.warning("No validation set given, validation metrics will be NaN.")

        optimizer = torch.optim.AdamW(
            [p for p in model.parameters() if p.requires_grad],
            lr=options.learning_rate,
        )

        logger.info("Starting training...")
        total_epochs = options.num_epochs
        for epoch in range(total_epochs):
            logger.info(f"--- Epoch {epoch+1}/{total_epochs} ---")

            train_metrics = self._run_epoch(model, optimizer, train_loader)
            if val_loader is not None:
                val_metrics = self._run_epoch(model, None, val_loader)
            else:
                val_metrics = {"loss": float("nan"), "accuracy": float("nan")}

            metrics = EpochMetrics(
                epoch=epoch + 1,
                train_loss=train_metrics["loss"],
                train_accuracy=train_metrics["accuracy"],
                validation_loss=val_metrics["loss"],
                validation_accuracy=val_metrics["accuracy"],
            )
            logger.debug(str(metrics))
            if options.metrics_callback is not None:
                options.metrics_callback(metrics)

        logger.info("Training finished.")
        return TorchImageScorer(
            model,
            transform,
            num_classes=num_classes,
            device=self.device,
            batch_size=options.batch_size,
        )
