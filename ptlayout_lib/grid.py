"""
ptlayout_lib/grid.py: Contains the GridDetector, a projection-profile detector
for page-wide whitespace gutters.
"""
import logging
import math

import numpy as np
from scipy.signal import find_peaks

from .models import GridAnalysis, GridLine, Rect

log = logging.getLogger("ptlayout.grid")


class GridDetector:
    """
    Projects fragment coverage onto each page axis and reports the centres of
    blank runs that cut across the whole page.

    Args:
        empty_threshold (float): Max fraction of the page extent a bin may
            have covered and still count as blank.
        min_gutter_multiplier (float): Minimum gutter length, in line heights.
    """

    def __init__(self, empty_threshold: float = 0.02, min_gutter_multiplier: float = 1.5):
        self.empty_threshold = empty_threshold
        self.min_gutter_multiplier = min_gutter_multiplier

    def detect(self, rects: list[Rect], page: Rect, line_height: float) -> GridAnalysis:
        if not rects or page.width <= 0 or page.height <= 0 or line_height <= 0:
            return GridAnalysis()

        resolution = max(1.0, line_height / 4)
        min_length = line_height * self.min_gutter_multiplier
        horizontal = self._lines(
            [(r.top, r.bottom, r.width) for r in rects],
            page.top,
            page.height,
            page.width,
            resolution,
            min_length,
        )
        vertical = self._lines(
            [(r.left, r.right, r.height) for r in rects],
            page.left,
            page.width,
            page.height,
            resolution,
            min_length,
        )
        log.debug("Grid: %d horizontal, %d vertical line(s)", len(horizontal), len(vertical))
        return GridAnalysis(horizontal_lines=horizontal, vertical_lines=vertical)

    def coverage_profile(self, spans, origin, length, cross, resolution) -> np.ndarray:
        """Fraction of the cross-axis covered by fragments, per bin."""
        bins = max(1, int(math.ceil(length / resolution)))
        profile = np.zeros(bins, dtype=float)
        for start, end, size in spans:
            i0 = int(math.floor((start - origin) / resolution))
            i1 = int(math.ceil((end - origin) / resolution))
            i0, i1 = max(0, i0), min(bins, i1)
            if i1 > i0:
                profile[i0:i1] += size / cross
        return profile

    def _lines(self, spans, origin, length, cross, resolution, min_length) -> list[GridLine]:
        coverage = self.coverage_profile(spans, origin, length, cross, resolution)
        blank = coverage <= self.empty_threshold
        content = np.flatnonzero(~blank)
        if content.size < 2:
            return []

        # Each interior blank bin carries the length of the blank run it belongs to.
        run_length = np.zeros_like(coverage)
        start = None
        for i in range(content[0], content[-1] + 1):
            if blank[i]:
                if start is None:
                    start = i
            elif start is not None:
                run_length[start:i] = (i - start) * resolution
                start = None

        peaks, props = find_peaks(run_length, height=min_length, plateau_size=1)
        lines = []
        for idx, left, right in zip(peaks, props["left_edges"], props["right_edges"]):
            centre = origin + (left + right + 1) / 2 * resolution
            evidence = 1.0 - float(np.mean(coverage[left : right + 1])) / max(
                self.empty_threshold, 1e-9
            )
            lines.append(
                GridLine(
                    position=centre,
                    extent=float(run_length[idx]),
                    strength=max(0.0, min(1.0, evidence)),
                )
            )
        return lines
