"""Tests for the annotator decision table and rectangle drawing."""

import base64
import io

import numpy as np
import pytest
from PIL import Image

from forensics.annotate import CLEAN, CROPPED, EDITCROP, EDITED, render
from forensics.utils import DetectionOutcome, Region, draw_hollow_rect

RED = [255, 0, 0, 255]
GREY = [120, 130, 140]


def _make_image(w: int = 80, h: int = 64) -> Image.Image:
    arr = np.zeros((h, w, 3), dtype=np.uint8)
    arr[...] = GREY
    return Image.fromarray(arr)


def _encode(img: Image.Image) -> str:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode("ascii")


def _decode(encoded: str) -> np.ndarray:
    img = Image.open(io.BytesIO(base64.b64decode(encoded)))
    return np.array(img)


def test_clean_passes_original_bytes_through():
    img = _make_image()
    encoded = _encode(img)
    ann = render(img, DetectionOutcome(), encoded)
    assert ann.result == CLEAN
    assert ann.text == ""
    assert ann.encoded_image == encoded


def test_cropped_without_regions_passes_original_bytes_through():
    img = _make_image()
    encoded = _encode(img)
    ann = render(img, DetectionOutcome(is_cropped=True), encoded)
    assert ann.result == CROPPED
    assert ann.text == ""
    assert ann.encoded_image == encoded


def test_passthrough_does_not_reencode_jpeg():
    img = _make_image()
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=70)
    encoded = base64.b64encode(buf.getvalue()).decode("ascii")
    ann = render(Image.open(io.BytesIO(buf.getvalue())), DetectionOutcome(), encoded)
    assert ann.encoded_image == encoded


def test_single_forged_region_is_edited_with_red_border():
    img = _make_image()
    outcome = DetectionOutcome(forged_regions=(Region.from_bounds(10, 10, 50, 50),))
    ann = render(img, outcome, _encode(img))

    assert ann.result == EDITED
    assert ann.text == "Forged region: from (10, 10) to (50, 50)\n"
    assert ann.region_count == 1

    out = _decode(ann.encoded_image)
    assert out.shape == (64, 80, 4)
    for x in range(10, 51):
        assert out[10, x].tolist() == RED
        assert out[50, x].tolist() == RED
    for y in range(10, 51):
        assert out[y, 10].tolist() == RED
        assert out[y, 50].tolist() == RED
    # interior and exterior untouched
    assert (out[11:50, 11:50] == GREY + [255]).all()
    assert out[9, 10].tolist() == GREY + [255]
    assert out[51, 51].tolist() == GREY + [255]


def test_regions_with_crop_is_editcrop():
    img = _make_image()
    outcome = DetectionOutcome(
        missing_grid_regions=(Region.from_bounds(0, 0, 7, 7),),
        is_cropped=True,
    )
    ann = render(img, outcome, _encode(img))
    assert ann.result == EDITCROP


def test_missing_grid_only_is_edited():
    img = _make_image()
    outcome = DetectionOutcome(missing_grid_regions=(Region.from_bounds(2, 3, 4, 5),))
    ann = render(img, outcome, _encode(img))
    assert ann.result == EDITED
    assert ann.text == "Forged region: from (2, 3) to (4, 5)\n"


def test_text_lists_forged_then_missing_grid_in_order():
    img = _make_image()
    outcome = DetectionOutcome(
        forged_regions=(Region.from_bounds(30, 30, 40, 40), Region.from_bounds(1, 1, 5, 5)),
        missing_grid_regions=(Region.from_bounds(60, 2, 70, 9),),
    )
    ann = render(img, outcome, _encode(img))
    assert ann.text.splitlines() == [
        "Forged region: from (30, 30) to (40, 40)",
        "Forged region: from (1, 1) to (5, 5)",
        "Forged region: from (60, 2) to (70, 9)",
    ]
    assert ann.region_count == 3


def test_output_is_png():
    img = _make_image()
    outcome = DetectionOutcome(forged_regions=(Region.from_bounds(0, 0, 79, 63),))
    ann = render(img, outcome, _encode(img))
    raw = base64.b64decode(ann.encoded_image)
    assert raw.startswith(b"\x89PNG\r\n\x1a\n")
    out = _decode(ann.encoded_image)
    assert out[0, 0].tolist() == RED
    assert out[63, 79].tolist() == RED


def test_input_image_not_modified():
    img = _make_image()
    before = np.array(img).copy()
    render(img, DetectionOutcome(forged_regions=(Region.from_bounds(5, 5, 20, 20),)), _encode(img))
    assert (np.array(img) == before).all()


def test_region_outside_image_raises():
    img = _make_image(w=20, h=20)
    outcome = DetectionOutcome(forged_regions=(Region.from_bounds(5, 5, 25, 10),))
    with pytest.raises(ValueError, match="outside"):
        render(img, outcome, _encode(img))


def test_draw_hollow_rect_single_pixel():
    canvas = np.zeros((10, 10, 4), dtype=np.uint8)
    draw_hollow_rect(canvas, Region.from_bounds(3, 4, 3, 4))
    assert canvas[4, 3].tolist() == RED
    assert int(canvas.sum()) == sum(RED)


def test_overlapping_regions_all_borders_drawn():
    canvas = np.zeros((30, 30, 4), dtype=np.uint8)
    draw_hollow_rect(canvas, Region.from_bounds(0, 0, 20, 20))
    draw_hollow_rect(canvas, Region.from_bounds(10, 10, 29, 29), (0, 255, 0, 255))
    # later draw wins where the outlines cross
    assert canvas[10, 20].tolist() == [0, 255, 0, 255]
    assert canvas[0, 0].tolist() == RED
    assert canvas[29, 29].tolist() == [0, 255, 0, 255]


def test_region_rejects_inverted_bounds():
    with pytest.raises(ValueError, match="start exceeds end"):
        Region.from_bounds(10, 10, 5, 20)
