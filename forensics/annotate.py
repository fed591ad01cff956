"""
forensics.annotate — Turns a detector outcome into the worker's answer.

The decision table:

=================  ===========  =================================  ==========
regions found      cropped      image returned                     result
=================  ===========  =================================  ==========
yes                no           annotated copy, PNG                ``edited``
yes                yes          annotated copy, PNG                ``editcrop``
no                 yes          original bytes, untouched          ``cropped``
no                 no           original bytes, untouched          ``clean``
=================  ===========  =================================  ==========

Regions are the forged regions followed by the missing-grid regions.  Each
one is outlined in opaque red and listed on its own line of the summary
text.  Images without findings are passed through as received so that no
lossy re-encoding is introduced.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from PIL import Image

from .utils import DetectionOutcome, HIGHLIGHT_RGBA, Region, draw_hollow_rect, encode_png_b64

CLEAN = "clean"
CROPPED = "cropped"
EDITED = "edited"
EDITCROP = "editcrop"

VALID_RESULTS = {CLEAN, CROPPED, EDITED, EDITCROP}


@dataclass(frozen=True)
class Annotation:
    """Rendered answer for one image."""

    result: str             # one of VALID_RESULTS
    text: str               # one "Forged region: ..." line per region
    encoded_image: str      # base64 image to send back
    region_count: int = 0


def region_line(region: Region) -> str:
    return f"Forged region: {region.describe()}\n"


def render(image: Image.Image, outcome: DetectionOutcome, encoded_image: str) -> Annotation:
    """Classify the outcome and produce the image and text to report.

    Parameters
    ----------
    image : PIL.Image.Image
        The decoded input image.  It is not modified.
    outcome : DetectionOutcome
        What the detector found.
    encoded_image : str
        The base64 text the image was decoded from, returned verbatim when
        there is nothing to draw.

    Raises
    ------
    ValueError
        If a region falls outside the image.
    """
    regions = outcome.all_regions()

    if regions:
        canvas = np.array(image.convert("RGBA"), dtype=np.uint8)
        for region in regions:
            draw_hollow_rect(canvas, region, HIGHLIGHT_RGBA)
        text = "".join(region_line(r) for r in regions)
        result = EDITCROP if outcome.is_cropped else EDITED
        return Annotation(result, text, encode_png_b64(canvas), len(regions))

    if outcome.is_cropped:
        return Annotation(CROPPED, "", encoded_image)
    return Annotation(CLEAN, "", encoded_image)
