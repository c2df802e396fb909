import io
from typing import Callable, Optional, Sequence, Tuple

import torch
from PIL import Image, UnidentifiedImageError
from torch.utils.data import Dataset as TorchDataset

from transfer_classifier_pipeline.lib import DatasetSplit, ImageIOError


def decode_image(
    image_bytes: bytes, transform: Callable[..., torch.Tensor], name: str = "<bytes>"
) -> torch.Tensor:
    """Decode raw image bytes to an RGB tensor prepared for the backbone."""
    try:
        image = Image.open(io.BytesIO(image_bytes)).convert("RGB")
    except (UnidentifiedImageError, OSError) as e:
        raise ImageIOError(name, str(e)) from e
    return transform(image)


class ImageBytesDataset(TorchDataset[Tuple[torch.Tensor, torch.Tensor]]):
    """PyTorch Dataset over in-memory image bytes and their label keys."""

    def __init__(
        self,
        images: Sequence[bytes],
        transform: Callable[..., torch.Tensor],
        label_keys: Optional[Sequence[int]] = None,
        names: Optional[Sequence[str]] = None,
    ):
        self.images = images
        self.transform = transform
        # Inference-only datasets carry no labels; -1 is never a valid key
        self.label_keys = label_keys if label_keys is not None else [-1] * len(images)
        self.names = names

    @classmethod
    def from_split(
        cls, split: DatasetSplit, transform: Callable[..., torch.Tensor]
    ) -> "ImageBytesDataset":
        return cls(
            images=[item.image_bytes for item in split.items],
            transform=transform,
            label_keys=split.label_keys,
            names=split.image_paths,
        )

    def __len__(self) -> int:
        return len(self.images)

    def __getitem__(self, idx: int) -> Tuple[torch.Tensor, torch.Tensor]:
        name = self.names[idx] if self.names is not None else f"image #{idx}"
        image_tensor = decode_image(self.images[idx], self.transform, name=name)
        label_tensor = torch.tensor(
            self.label_keys[idx], dtype=torch.long
        )  # CrossEntropyLoss expects long
        return image_tensor, label_tensor
