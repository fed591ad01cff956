"""
JPEG grid-origin forgery detection based on counting zero DCT coefficients.

Algorithm
---------
**Votes**
    1. Convert the image to floating-point luminance
       ``Y = 0.299 R + 0.587 G + 0.114 B``.
    2. For every 8x8 window position compute the orthonormal 2-D DCT-II
       and count the coefficients with ``|c| < 0.5``.  A window aligned
       with the JPEG grid the image was compressed on has many more of
       these than a misaligned one.
    3. Every pixel votes for the grid origin ``(x mod 8, y mod 8)`` of the
       covering window with the most zeros.  Ties, or a maximum of zero,
       cast no vote.

**Main grid**
    The most voted grid among those whose vote count is meaningful under
    an a-contrario binomial model (one chance in 64 per pixel).  The image
    is reported cropped when the main grid origin is not ``(0, 0)``.

**Forged regions**
    8-connected groups of pixels voting for the same non-main grid, kept
    when their Number of False Alarms over all possible rectangles is
    below one.

**Missing-grid regions**
    The image is recompressed at a very high JPEG quality and votes are
    recomputed.  Groups of pixels that now vote for ``(0, 0)`` but did not
    vote for the main grid before were never compressed on that grid.
    Without a main grid this pass has nothing to compare against and the
    detector raises :class:`MissingGridUnavailable`.

Dependencies: cv2, numpy, scipy, forensics.utils
"""

from __future__ import annotations

import logging
import math
from typing import List, Optional

import cv2
import numpy as np
from numpy.lib.stride_tricks import sliding_window_view
from PIL import Image
from scipy.stats import binom

from .detector import BaseDetector, DetectionError, MissingGridUnavailable
from .utils import DetectionOutcome, Region, pil_jpeg_roundtrip

logger = logging.getLogger(__name__)

BLOCK = 8
N_GRIDS = BLOCK * BLOCK
GRID_P = 1.0 / N_GRIDS
NO_VOTE = -1
ROW_CHUNK = 16          # rows of windows processed per vectorised step
_LN10 = math.log(10.0)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _dct_matrix(n: int = BLOCK) -> np.ndarray:
    """Orthonormal DCT-II basis, rows are frequencies."""
    k = np.arange(n)[:, None]
    i = np.arange(n)[None, :]
    mat = np.cos(np.pi * (2 * i + 1) * k / (2 * n)) * math.sqrt(2.0 / n)
    mat[0, :] = math.sqrt(1.0 / n)
    return mat


_DCT = _dct_matrix()


def _log10_tail(k, n, p: float = GRID_P) -> np.ndarray:
    """``log10 P[Binom(n, p) >= k]``, vectorised over *k* and *n*."""
    k = np.asarray(k, dtype=np.float64)
    return binom.logsf(k - 1, n, p) / _LN10


def luminance(rgb: np.ndarray) -> np.ndarray:
    """ITU-R BT.601 luminance of an ``(H, W, 3)`` array, as float64."""
    rgb = rgb.astype(np.float64)
    return 0.299 * rgb[..., 0] + 0.587 * rgb[..., 1] + 0.114 * rgb[..., 2]


def count_dct_zeros(lum: np.ndarray) -> np.ndarray:
    """Number of near-zero DCT coefficients for every 8x8 window.

    Parameters
    ----------
    lum : np.ndarray
        Luminance array of shape ``(H, W)``.

    Returns
    -------
    np.ndarray
        ``int16`` array of shape ``(H - 7, W - 7)``; entry ``[y, x]`` is for
        the window whose top-left pixel is ``(x, y)``.
    """
    h, w = lum.shape
    out = np.zeros((h - BLOCK + 1, w - BLOCK + 1), dtype=np.int16)
    for y0 in range(0, out.shape[0], ROW_CHUNK):
        y1 = min(y0 + ROW_CHUNK, out.shape[0])
        windows = sliding_window_view(lum[y0:y1 + BLOCK - 1], (BLOCK, BLOCK))
        coefs = _DCT @ windows @ _DCT.T
        out[y0:y1] = (np.abs(coefs) < 0.5).sum(axis=(-2, -1))
    return out


def vote_grids(zeros: np.ndarray, height: int, width: int) -> np.ndarray:
    """Per-pixel grid votes from a window zero-count map.

    Returns
    -------
    np.ndarray
        ``int8`` array of shape ``(height, width)`` holding the voted grid
        index ``gx + 8 * gy`` or ``NO_VOTE``.
    """
    # padded[r + 7, c + 7] holds the window whose top-left pixel is (c, r),
    # so the 8x8 view at (i, j) lists every window covering pixel (j, i).
    padded = np.zeros((height + BLOCK - 1, width + BLOCK - 1), dtype=np.int16)
    padded[BLOCK - 1:BLOCK - 1 + zeros.shape[0], BLOCK - 1:BLOCK - 1 + zeros.shape[1]] = zeros

    votes = np.full((height, width), NO_VOTE, dtype=np.int8)
    cols = np.arange(width)[None, :]
    for y0 in range(0, height, ROW_CHUNK):
        y1 = min(y0 + ROW_CHUNK, height)
        win = sliding_window_view(padded[y0:y1 + BLOCK - 1], (BLOCK, BLOCK))
        win = win.reshape(y1 - y0, width, N_GRIDS)

        best = win.argmax(axis=-1)
        top = np.take_along_axis(win, best[..., None], axis=-1)[..., 0]
        unique = (win == top[..., None]).sum(axis=-1) == 1

        dy, dx = np.divmod(best, BLOCK)
        rows = np.arange(y0, y1)[:, None]
        gx = (cols - (BLOCK - 1) + dx) % BLOCK
        gy = (rows - (BLOCK - 1) + dy) % BLOCK
        votes[y0:y1] = np.where(unique & (top > 0), gx + BLOCK * gy, NO_VOTE)
    return votes


def find_main_grid(votes: np.ndarray) -> Optional[int]:
    """Most voted grid among the meaningful ones, or ``None``."""
    cast = votes[votes >= 0].astype(np.int64).ravel()
    counts = np.bincount(cast, minlength=N_GRIDS)
    log_nfa = math.log10(N_GRIDS) + _log10_tail(counts, votes.size)
    meaningful = (log_nfa < 0.0) & (counts > 0)
    if not meaningful.any():
        return None
    return int(np.argmax(np.where(meaningful, counts, -1)))


def meaningful_regions(mask: np.ndarray, log10_tests: float) -> List[Region]:
    """Bounding boxes of the 8-connected groups in *mask* with NFA < 1.

    A group of ``k`` pixels whose bounding box covers ``n`` pixels has
    ``NFA = tests * P[Binom(n, 1/64) >= k]``.
    """
    num, _, stats, _ = cv2.connectedComponentsWithStats(
        mask.astype(np.uint8), connectivity=8
    )
    if num <= 1:
        return []

    stats = stats[1:]
    x = stats[:, cv2.CC_STAT_LEFT]
    y = stats[:, cv2.CC_STAT_TOP]
    w = stats[:, cv2.CC_STAT_WIDTH]
    h = stats[:, cv2.CC_STAT_HEIGHT]
    area = stats[:, cv2.CC_STAT_AREA]

    log_nfa = log10_tests + _log10_tail(area, w * h)
    return [
        Region.from_bounds(x[i], y[i], x[i] + w[i] - 1, y[i] + h[i] - 1)
        for i in np.flatnonzero(log_nfa < 0.0)
    ]


# ---------------------------------------------------------------------------
# Detector
# ---------------------------------------------------------------------------

class ZeroDetector(BaseDetector):
    """
    JPEG grid detector.

    Usage:
        detector = ZeroDetector()
        outcome = detector.analyze(Image.open("photo.jpg"))
        outcome.forged_regions, outcome.is_cropped
    """

    name = "zero"

    def __init__(self, recompress_quality: int = 99):
        self.recompress_quality = recompress_quality

    def analyze(self, image: Image.Image) -> DetectionOutcome:
        rgb = np.asarray(image.convert("RGB"), dtype=np.uint8)
        height, width = rgb.shape[:2]
        if height < BLOCK or width < BLOCK:
            raise DetectionError(
                f"image is {width}x{height}, smaller than one {BLOCK}x{BLOCK} block"
            )

        votes = self.grid_votes(rgb)
        main = find_main_grid(votes)
        logger.debug("Main grid: %s", "none" if main is None else divmod(main, BLOCK)[::-1])

        log10_tests = math.log10(N_GRIDS) + 1.5 * math.log10(height * width)
        forged = self._forged_regions(votes, main, log10_tests)

        missing = self._missing_grid_regions(rgb, votes, main, log10_tests)
        if missing is None:
            raise MissingGridUnavailable(
                "no missing grid analysis available: the image shows no main JPEG grid"
            )

        return DetectionOutcome(
            forged_regions=tuple(forged),
            missing_grid_regions=tuple(missing),
            is_cropped=main is not None and main != 0,
        )

    @staticmethod
    def grid_votes(rgb: np.ndarray) -> np.ndarray:
        lum = luminance(rgb)
        return vote_grids(count_dct_zeros(lum), *lum.shape)

    def _forged_regions(
        self, votes: np.ndarray, main: Optional[int], log10_tests: float,
    ) -> List[Region]:
        regions: List[Region] = []
        for grid in range(N_GRIDS):
            if grid == main:
                continue
            mask = votes == grid
            if mask.any():
                regions.extend(meaningful_regions(mask, log10_tests))
        return regions

    def _missing_grid_regions(
        self,
        rgb: np.ndarray,
        votes: np.ndarray,
        main: Optional[int],
        log10_tests: float,
    ) -> Optional[List[Region]]:
        if main is None:
            return None
        recompressed = pil_jpeg_roundtrip(rgb, self.recompress_quality)
        votes_after = self.grid_votes(recompressed)
        mask = (votes_after == 0) & (votes != main)
        return meaningful_regions(mask, log10_tests)
