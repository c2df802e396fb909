"""
Error taxonomy for the pipeline.

Every error aborts the run; nothing here is retried or downgraded.
"""


class PipelineError(Exception):
    """Base class for all pipeline failures."""


class NotFoundError(PipelineError, FileNotFoundError):
    """An image root, class folder or prediction folder does not exist."""


class ImageIOError(PipelineError, OSError):
    """An image file could not be read or decoded."""

    def __init__(self, path: str, reason: str = ""):
        self.path = path
        message = f"Could not read image {path}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class DependencyError(PipelineError):
    """A backbone architecture or its pretrained weights are unavailable."""


class TrainingError(PipelineError):
    """Fitting the backbone failed or diverged."""


class ConfigError(PipelineError, ValueError):
    """Invalid configuration: split fraction, epochs, empty dataset, bad config file."""
