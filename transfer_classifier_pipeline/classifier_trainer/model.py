from typing import Callable, Tuple
from urllib.error import URLError

import torch
import torch.nn as nn
from torchvision import models

from transfer_classifier_pipeline.lib import setup_logger, DependencyError

from .config import Architecture

logger = setup_logger(__name__)


def _replace_head(model: nn.Module, architecture: Architecture, num_classes: int) -> nn.Module:
    """Swap the ImageNet classification layer for a fresh one with num_classes outputs."""
    if architecture == Architecture.MOBILENET_V2:
        # classifier = Sequential(Dropout, Linear)
        in_features = model.classifier[-1].in_features
        model.classifier[-1] = nn.Linear(in_features, num_classes)
        return model.classifier

    in_features = model.fc.in_features
    model.fc = nn.Linear(in_features, num_classes)
    return model.fc


def build_backbone(
    architecture: Architecture, num_classes: int
) -> Tuple[nn.Module, Callable[..., torch.Tensor]]:
    """
    Load a pretrained backbone and prepare it for transfer learning.

    The pretrained layers are frozen; only the new classification head is trained.

    Returns:
        The model and the preprocessing transform that matches its weights.

    Raises:
        DependencyError: the architecture or its pretrained weights are unavailable
    """
    if num_classes <= 0:
        raise ValueError("num_classes must be greater than 0")

    try:
        weights = models.get_model_weights(architecture.value).DEFAULT
        model = models.get_model(architecture.value, weights=weights)
    except (URLError, OSError, RuntimeError, ValueError) as e:
        raise DependencyError(
            f"Pretrained weights for {architecture.value} are unavailable: {e}"
        ) from e

    for parameter in model.parameters():
        parameter.requires_grad = False

    head = _replace_head(model, architecture, num_classes)
    for parameter in head.parameters():
        parameter.requires_grad = True

    logger.info(
        f"{architecture.value} initialized with {weights} weights and {num_classes} classes"
    )
    return model, weights.transforms()
