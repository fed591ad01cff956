"""
BaseDetector: Abstract base class for forgery detectors.
Defines the contract the worker consumes; the algorithm behind it is free.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from PIL import Image

from .utils import DetectionOutcome


class DetectionError(Exception):
    """Raised when a detector cannot produce an outcome for an image."""
    pass


class MissingGridUnavailable(DetectionError):
    """The secondary missing-grid pass has nothing to report on.

    The job is failed rather than answered with forged regions alone.
    """
    pass


class BaseDetector(ABC):
    """
    Abstract detector.  Subclasses implement `analyze`, which must be
    deterministic for a fixed image and must not mutate it.
    """

    name = "base"

    @abstractmethod
    def analyze(self, image: Image.Image) -> DetectionOutcome:
        """
        Inspect a decoded image and report forged regions, missing-grid
        regions and whether it was cropped.

        Raises:
            DetectionError: if analysis is impossible for this image.
        """
        ...
