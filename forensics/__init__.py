"""
forensics — Image-side code of the forgery worker.

Modules
-------
detector    ``BaseDetector`` contract and detection errors.
zero        ``ZeroDetector``: JPEG grid-origin voting on DCT zeros,
            forged-region and missing-grid-region detection.
annotate    ``render()``: outlines regions, writes the summary text and
            classifies the image as clean / cropped / edited / editcrop.
utils       Value types (``Region``, ``DetectionOutcome``), base64 and
            raster decoding, PNG encoding, rectangle drawing.

Usage
-----
    from forensics import ZeroDetector, render

    outcome = ZeroDetector().analyze(image)
    annotation = render(image, outcome, encoded_image)
"""

__all__ = [
    "Annotation",
    "BaseDetector",
    "DetectionError",
    "DetectionOutcome",
    "MissingGridUnavailable",
    "Point",
    "Region",
    "ZeroDetector",
    "render",
]

from .annotate import Annotation, render
from .detector import BaseDetector, DetectionError, MissingGridUnavailable
from .utils import DetectionOutcome, Point, Region
from .zero import ZeroDetector
