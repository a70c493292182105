"""
ptlayout_lib/gaps.py: Contains the GapDetector, which finds vertical whitespace
strips (column gutters) and horizontal whitespace bands on a page.
"""
import logging

from .geometry import clamp01, median, stdev
from .models import GapAnalysis, HorizontalBand, Rect, VerticalStrip

log = logging.getLogger("ptlayout.gaps")


class GapDetector:
    """
    Sweeps the page in horizontal slices, inverts the occupied x-intervals of
    each slice into gaps, and clusters gaps that line up across slices into
    vertical strips with a confidence score.
    """

    MIN_STRIP_CONFIDENCE = 0.6
    MAX_COLUMNS = 6
    MIN_GAP_WIDTH = 2.0
    BAND_STEP_FACTOR = 0.75
    MIN_STRIP_HEIGHT_FACTOR = 1.5
    CENTER_X_TOL_FACTOR = 0.5
    COVERAGE_WEIGHT = 0.5
    WIDTH_STABILITY_WEIGHT = 0.25
    CENTER_STABILITY_WEIGHT = 0.25
    STRIP_MERGE_TOL = 3.0
    BAND_MIN_HEIGHT_FACTOR = 1.5
    DEFAULT_LINE_HEIGHT = 15.0

    def __init__(self, min_confidence: float = MIN_STRIP_CONFIDENCE):
        self.min_confidence = min_confidence

    def detect(self, rects: list[Rect], page: Rect) -> GapAnalysis:
        """Runs gap analysis for one page of normalized fragment rects."""
        if not rects:
            return GapAnalysis()

        line_height = self.estimate_line_height(rects)
        slices = self._sweep(rects, page, line_height)
        strips = self._strips_from_slices(slices, line_height)
        bands = self._bands_from_slices(slices, page, line_height)

        boundaries = sorted(
            s.center for s in strips if s.confidence >= self.min_confidence
        )
        columns = self.columns_from_boundaries(boundaries, page)
        log.debug(
            "lh=%.1f slices=%d strips=%d bands=%d",
            line_height,
            len(slices),
            len(strips),
            len(bands),
        )
        return GapAnalysis(
            line_height=line_height,
            strips=strips,
            bands=bands,
            boundaries=boundaries,
            columns=columns,
        )

    def estimate_line_height(self, rects) -> float:
        """Median fragment height, ignoring heights of 3 units or less."""
        heights = [r.height for r in rects if r.height > 3]
        return median(heights, default=self.DEFAULT_LINE_HEIGHT)

    # --- Sweep ---
    def _sweep(self, rects, page: Rect, line_height: float) -> list[dict]:
        """Returns one {y1, y2, gaps, empty} record per horizontal slice."""
        step = max(6.0, line_height * self.BAND_STEP_FACTOR)
        ordered = sorted(rects, key=lambda r: r.top)
        slices = []
        active = []
        cursor = 0
        y = page.top
        while y < page.bottom:
            y1, y2 = y, min(page.bottom, y + step)
            while cursor < len(ordered) and ordered[cursor].top < y2:
                active.append(ordered[cursor])
                cursor += 1
            active = [r for r in active if r.bottom > y1]
            hits = [r for r in active if r.top < y2]

            if not hits:
                gaps = [(page.left, page.right)]
            else:
                gaps = self._invert(self._merge_intervals(hits), page)
            slices.append({"y1": y1, "y2": y2, "gaps": gaps, "empty": not hits})
            y += step
        return slices

    @staticmethod
    def _merge_intervals(rects) -> list[list[float]]:
        merged = []
        for r in sorted(rects, key=lambda r: r.left):
            if not merged or r.left > merged[-1][1]:
                merged.append([r.left, r.right])
            else:
                merged[-1][1] = max(merged[-1][1], r.right)
        return merged

    def _invert(self, occupied, page: Rect) -> list[tuple[float, float]]:
        gaps = []
        cursor = page.left
        for left, right in occupied:
            if left - cursor >= self.MIN_GAP_WIDTH:
                gaps.append((cursor, left))
            cursor = max(cursor, right)
        if page.right - cursor >= self.MIN_GAP_WIDTH:
            gaps.append((cursor, page.right))
        return gaps

    # --- Vertical strips ---
    def _strips_from_slices(self, slices, line_height: float) -> list[VerticalStrip]:
        x_tol = max(4.0, line_height * self.CENTER_X_TOL_FACTOR)
        clusters = []
        for sl in slices:
            for left, right in sl["gaps"]:
                width = right - left
                if width < self.MIN_GAP_WIDTH:
                    continue
                center = (left + right) / 2
                for c in clusters:
                    if abs(center - c["centers"][-1]) <= x_tol:
                        break
                else:
                    c = {k: [] for k in ("centers", "widths", "lefts", "rights", "y1s", "y2s")}
                    clusters.append(c)
                c["centers"].append(center)
                c["widths"].append(width)
                c["lefts"].append(left)
                c["rights"].append(right)
                c["y1s"].append(sl["y1"])
                c["y2s"].append(sl["y2"])

        min_height = line_height * self.MIN_STRIP_HEIGHT_FACTOR
        total = len(slices)
        strips = []
        for c in clusters:
            top, bottom = min(c["y1s"]), max(c["y2s"])
            if bottom - top < min_height:
                continue
            coverage = len({round(y) for y in c["y1s"]}) / total
            width_norm = stdev(c["widths"]) / max(1.0, median(c["widths"]))
            center_norm = stdev(c["centers"]) / max(1.0, median(c["centers"]))
            confidence = clamp01(
                self.COVERAGE_WEIGHT * coverage
                + self.WIDTH_STABILITY_WEIGHT * (1 - clamp01(width_norm))
                + self.CENTER_STABILITY_WEIGHT * (1 - clamp01(center_norm))
            )
            if confidence >= self.min_confidence:
                strips.append(
                    VerticalStrip(
                        left=median(c["lefts"]),
                        right=median(c["rights"]),
                        top=top,
                        bottom=bottom,
                        confidence=confidence,
                    )
                )
        return self.merge_similar_strips(strips)

    def merge_similar_strips(self, strips) -> list[VerticalStrip]:
        """Merges strips whose centers nearly coincide and which overlap vertically."""
        if not strips:
            return []
        ordered = sorted(strips, key=lambda s: s.center)
        out = []
        cur = ordered[0]
        for s in ordered[1:]:
            close = abs(cur.center - s.center) <= self.STRIP_MERGE_TOL
            overlaps = min(cur.bottom, s.bottom) - max(cur.top, s.top) > 0
            if close and overlaps:
                cur = VerticalStrip(
                    left=min(cur.left, s.left),
                    right=max(cur.right, s.right),
                    top=min(cur.top, s.top),
                    bottom=max(cur.bottom, s.bottom),
                    confidence=max(cur.confidence, s.confidence),
                )
            else:
                out.append(cur)
                cur = s
        out.append(cur)
        return out

    # --- Horizontal bands ---
    def _bands_from_slices(self, slices, page: Rect, line_height: float):
        """Runs of empty slices with content above and below become bands."""
        min_height = line_height * self.BAND_MIN_HEIGHT_FACTOR
        occupied = [i for i, sl in enumerate(slices) if not sl["empty"]]
        if len(occupied) < 2:
            return []
        first, last = occupied[0], occupied[-1]

        bands = []
        run_start = None
        for i in range(first, last + 1):
            if slices[i]["empty"]:
                if run_start is None:
                    run_start = i
                continue
            if run_start is not None:
                y, bottom = slices[run_start]["y1"], slices[i - 1]["y2"]
                height = bottom - y
                if height >= min_height:
                    confidence = clamp01(0.5 + 0.5 * (height - min_height) / min_height)
                    bands.append(
                        HorizontalBand(
                            y=y,
                            height=height,
                            left=page.left,
                            right=page.right,
                            confidence=confidence,
                        )
                    )
                run_start = None
        return bands

    def columns_from_boundaries(self, boundaries, page: Rect) -> list[tuple[float, float]]:
        """Splits the page horizontally at the given x positions."""
        if not boundaries:
            return [(page.left, page.right)]
        cols = []
        prev = page.left
        for x in sorted(boundaries):
            x = max(page.left, min(page.right, x))
            if x > prev:
                cols.append((prev, x))
                prev = x
        if prev < page.right:
            cols.append((prev, page.right))
        return cols[: self.MAX_COLUMNS]
