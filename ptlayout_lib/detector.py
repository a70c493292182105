"""
ptlayout_lib/detector.py: Contains the LayoutDetector, which drives the full
layout reconstruction pipeline for one page.
"""
import logging
import re
import time
from dataclasses import dataclass, field

from .config import LayoutConfig
from .gaps import GapDetector
from .geometry import bbox_of, median, reading_key
from .grid import GridDetector
from .merger import ParagraphMerger
from .models import (
    ColumnReport,
    HorizontalBand,
    LayoutResult,
    LayoutSegment,
    Paragraph,
    Rect,
    VerticalStrip,
)
from .regions import segment_vertical_layouts
from .snapshot import build_snapshot

log = logging.getLogger("ptlayout.layout")

GRID_BAND_CONFIDENCE = 0.95
HYPHEN_TAIL_RE = re.compile(r"[\u00AD-]$")


@dataclass
class PageContext:
    """Everything the merge stages need to know about one page."""

    snapshot: dict
    page: Rect
    line_height: float
    strips: list[VerticalStrip] = field(default_factory=list)
    bands: list[HorizontalBand] = field(default_factory=list)
    regions: list[LayoutSegment] = field(default_factory=list)


class LayoutDetector:
    """
    Reconstructs reading-order paragraphs and column structure from the
    positioned text fragments of a single page.

    Args:
        config (LayoutConfig): Tunables; defaults are used when omitted.
    """

    def __init__(self, config: LayoutConfig = None):
        self.config = config or LayoutConfig()
        self.gap_detector = GapDetector()
        self.grid_detector = GridDetector()
        self.merger = ParagraphMerger(self.config)

    def detect_layout(self, raw_fragments, page_rect: Rect, scale: float = 1.0) -> LayoutResult:
        """Runs the whole pipeline; never raises on degenerate input."""
        start = time.monotonic()
        scale = scale if scale and scale > 0 else 1.0
        if page_rect is None:
            log.debug("No page rect given; returning empty result.")
            return LayoutResult()
        page = page_rect.scaled(scale)
        snapshot = build_snapshot(raw_fragments, scale)
        if not snapshot:
            return LayoutResult(
                regions=[LayoutSegment(page.top, page.bottom, page.left, page.right, 1)],
                column_report=ColumnReport(columns=0),
            )

        paragraphs = self.merger.group_initial(snapshot)
        ctx = self.analyze_page(snapshot, page, paragraphs)
        paragraphs = self.refine(paragraphs, ctx)

        band_regions = self.per_band_column_regions(ctx.strips, page, ctx.bands)
        paragraphs = [self.order_fragments(p, snapshot, band_regions) for p in paragraphs]
        paragraphs = self.order_paragraphs(paragraphs, ctx)
        paragraphs = self.merger.deduplicate(paragraphs)
        runs = self.merger.stitch_inline_runs(paragraphs, snapshot)

        result = LayoutResult(
            paragraphs=[self._to_paragraph(p, r, snapshot) for p, r in zip(paragraphs, runs)],
            column_report=self.analyze_columns(paragraphs, snapshot, page, ctx.bands),
            regions=ctx.regions,
            strips=ctx.strips,
            bands=ctx.bands,
            line_height=ctx.line_height,
            fragments=snapshot,
        )
        if self.config.debug_validation:
            self.validate(result, snapshot)
        log.info(
            "Layout: %d fragment(s) -> %d paragraph(s), %d column(s) in %.1fms",
            len(snapshot),
            len(result.paragraphs),
            result.column_report.columns,
            (time.monotonic() - start) * 1000,
        )
        return result

    # --- Page analysis ---
    def analyze_page(self, snapshot, page: Rect, paragraphs) -> PageContext:
        """Computes line height, strips, bands and regions for the page."""
        cfg = self.config
        rects = [f.rect for f in snapshot.values()]
        line_height = self.estimate_line_height(paragraphs, snapshot, page)
        gaps = self.gap_detector.detect(rects, page)
        grid = self.grid_detector.detect(rects, page, line_height)

        grid_height = line_height * cfg.band_merge_gap_line_height_multiplier
        grid_bands = [
            HorizontalBand(
                y=line.position - grid_height / 2,
                height=grid_height,
                left=page.left,
                right=page.right,
                confidence=GRID_BAND_CONFIDENCE,
            )
            for line in grid.horizontal_lines
        ]
        strips = sorted(
            (
                s
                for s in gaps.strips
                if s.confidence >= cfg.min_strip_confidence and s.width >= cfg.min_strip_width_px
            ),
            key=lambda s: s.center,
        )
        raw_bands = [b for b in gaps.bands if b.confidence >= cfg.min_band_confidence]
        bands = self.build_layout_bands(raw_bands + grid_bands, strips, page, line_height)
        regions = segment_vertical_layouts(rects, page, gaps.line_height)

        log.debug(
            "lh=%.2f strips kept=%d filtered=%d bands=%d grid=%d regions=%d",
            line_height,
            len(strips),
            len(gaps.strips) - len(strips),
            len(bands),
            len(grid_bands),
            len(regions),
        )
        return PageContext(snapshot, page, line_height, strips, bands, regions)

    def refine(self, paragraphs, ctx: PageContext) -> list[list]:
        """Runs the split / merge / nested / stacked stages to convergence."""
        m, s, cfg = self.merger, ctx.snapshot, self.config
        width = ctx.page.width
        paragraphs = m.split_by_regions(paragraphs, s, ctx.regions)
        paragraphs = m.split_by_strips(paragraphs, s, ctx.strips, ctx.line_height, width)
        paragraphs = m.merge_columns(
            paragraphs, s, ctx.line_height, ctx.strips, ctx.bands, width, ctx.regions
        )
        for iteration in range(cfg.max_iter_merges):
            paragraphs, changed = m.merge_nested_once(
                paragraphs, s, ctx.strips, ctx.bands, width, ctx.regions
            )
            if not changed:
                break
            log.debug("Nested merge iteration %d changed the grouping", iteration + 1)
            paragraphs = m.split_by_strips(paragraphs, s, ctx.strips, ctx.line_height, width)
            paragraphs = m.merge_columns(
                paragraphs, s, ctx.line_height, ctx.strips, ctx.bands, width, ctx.regions
            )
        return m.merge_stacked(
            paragraphs, s, ctx.line_height, ctx.strips, ctx.bands, width, ctx.regions
        )

    def estimate_line_height(self, paragraphs, snapshot, page: Rect) -> float:
        """Line pitch from trimmed intra-paragraph gaps, floored by font size."""
        cfg = self.config
        gaps = []
        for para in paragraphs:
            if len(para) < 2:
                continue
            rects = sorted((snapshot[f].rect for f in para), key=lambda r: r.top)
            for prev, cur in zip(rects, rects[1:]):
                gap = cur.top - prev.bottom
                if 0 < gap < page.height * cfg.max_gap_fraction_of_page_height:
                    gaps.append(gap)

        from_gaps = 0.0
        if len(gaps) >= cfg.min_gaps_for_trim:
            gaps.sort()
            trim = int(len(gaps) * cfg.trim_percent)
            trimmed = gaps[trim : len(gaps) - trim]
            if trimmed:
                from_gaps = sum(trimmed) / len(trimmed) * cfg.line_height_from_avg_multiplier

        sizes = [f.font_size for f in snapshot.values() if f.font_size > 0]
        if not sizes:
            return 16.0
        med = median(sizes)
        floor = med * cfg.line_height_multiplier * cfg.floor_multiplier
        return max(from_gaps, floor) or med * cfg.line_height_multiplier

    def build_layout_bands(self, bands, strips, page: Rect, line_height: float) -> list[HorizontalBand]:
        """Adds bands implied by strip extents and coalesces adjacent bands."""
        cfg = self.config
        out = list(bands)
        if strips:
            min_top = min(s.top for s in strips)
            max_bottom = max(s.bottom for s in strips)
            margin = line_height * cfg.band_top_bottom_threshold_multiplier
            if min_top > page.top + margin:
                out.append(
                    HorizontalBand(
                        page.top, min_top - page.top, page.left, page.right, cfg.inferred_band_confidence
                    )
                )
            if max_bottom < page.bottom - margin:
                out.append(
                    HorizontalBand(
                        max_bottom,
                        page.bottom - max_bottom,
                        page.left,
                        page.right,
                        cfg.inferred_band_confidence,
                    )
                )

        join_gap = max(cfg.band_merge_gap_px, line_height * cfg.band_merge_gap_line_height_multiplier)
        merged = []
        for band in sorted(out, key=lambda b: b.y):
            if merged and band.y <= merged[-1].bottom + join_gap:
                last = merged[-1]
                merged[-1] = HorizontalBand(
                    y=last.y,
                    height=max(last.bottom, band.bottom) - last.y,
                    left=min(last.left, band.left),
                    right=max(last.right, band.right),
                    confidence=max(last.confidence, band.confidence),
                )
            else:
                merged.append(band)
        return merged

    # --- Ordering ---
    def column_regions(self, strips, page: Rect) -> list[tuple[float, float]]:
        """Splits the page at strip centres into column x-ranges."""
        if not strips:
            return [(page.left, page.right)]
        xs = [page.left]
        for s in sorted(strips, key=lambda s: s.center):
            if s.center > xs[-1]:
                xs.append(s.center)
        xs.append(page.right)
        return [
            (left, right)
            for left, right in zip(xs, xs[1:])
            if right - left > self.config.min_region_width
        ]

    def _strips_in_range(self, strips, top: float, bottom: float) -> list:
        kept = []
        for s in strips:
            y_overlap = min(bottom, s.bottom) - max(top, s.top)
            frac = y_overlap / max(1.0, s.height, bottom - top)
            if y_overlap > 0 and frac >= self.config.min_overlap_frac_for_band:
                kept.append(s)
        return kept

    def per_band_column_regions(self, strips, page: Rect, bands) -> list[tuple]:
        """Returns (top, bottom, column regions) for every band."""
        if not bands:
            return [(page.top, page.bottom, self.column_regions(strips, page))]
        return [
            (b.y, b.bottom, self.column_regions(self._strips_in_range(strips, b.y, b.bottom), page))
            for b in bands
        ]

    def order_fragments(self, fids, snapshot, band_regions) -> list:
        """Orders a paragraph's fragments band by band, then column by column."""
        if not fids:
            return fids
        buckets = [[] for _ in band_regions]
        for fid in fids:
            r = snapshot[fid].rect
            best, best_overlap = -1, 0.0
            for i, (top, bottom, _) in enumerate(band_regions):
                y_overlap = min(r.bottom, bottom) - max(r.top, top)
                if y_overlap <= 0:
                    continue
                overlap = y_overlap / max(1.0, r.height, bottom - top)
                if overlap > best_overlap:
                    best, best_overlap = i, overlap
            if best < 0:
                best = min(
                    range(len(band_regions)),
                    key=lambda i: abs(r.center_y - (band_regions[i][0] + band_regions[i][1]) / 2),
                )
            buckets[best].append(fid)

        ordered = []
        for bucket, (_, _, regions) in zip(buckets, band_regions):
            if not bucket:
                continue
            cols = self._bucket_by_column(bucket, snapshot, regions)
            if sum(1 for c in cols if c) <= 1:
                ordered.extend(_by_position(bucket, snapshot))
                continue
            for col in cols:
                ordered.extend(_by_position(col, snapshot))
        return ordered or fids

    @staticmethod
    def _column_index(x: float, regions) -> int:
        for i, (left, right) in enumerate(regions):
            if left <= x < right:
                return i
        return 0 if x < regions[0][0] else len(regions) - 1

    def _bucket_by_column(self, fids, snapshot, regions) -> list[list]:
        regions = regions or [(float("-inf"), float("inf"))]
        cols = [[] for _ in regions]
        for fid in fids:
            cols[self._column_index(snapshot[fid].rect.center_x, regions)].append(fid)
        return cols

    def order_paragraphs(self, paragraphs, ctx: PageContext) -> list[list]:
        """Puts paragraphs into reading order.

        The page is cut into horizontal slabs at band centres. Within a slab,
        paragraphs that straddle a column boundary act as full-width breaks;
        between breaks, paragraphs are read column by column.
        """
        snapshot = ctx.snapshot
        cuts = sorted(b.center for b in ctx.bands)
        edges = [ctx.page.top] + cuts + [ctx.page.bottom]
        slabs = [[] for _ in range(len(edges) - 1)]
        for para in paragraphs:
            anchor = snapshot[para[0]].rect.center_y
            index = 0
            for i, cut in enumerate(cuts):
                if anchor >= cut:
                    index = i + 1
            slabs[index].append(para)

        ordered = []
        for slab, top, bottom in zip(slabs, edges, edges[1:]):
            if not slab:
                continue
            regions = self.column_regions(self._strips_in_range(ctx.strips, top, bottom), ctx.page)
            ordered.extend(self._order_slab(slab, snapshot, regions, ctx.line_height))
        return ordered

    def _order_slab(self, slab, snapshot, regions, line_height) -> list[list]:
        by_top = sorted(slab, key=lambda p: _para_key(p, snapshot))
        if len(regions) <= 1:
            return by_top
        inner = [left for left, _ in regions[1:]]
        ordered, group = [], []
        for para in by_top:
            box = bbox_of(snapshot[f].rect for f in para)
            spans = any(box.left < x - line_height and box.right > x + line_height for x in inner)
            if spans:
                ordered.extend(self._order_group(group, snapshot, regions))
                ordered.append(para)
                group = []
            else:
                group.append(para)
        ordered.extend(self._order_group(group, snapshot, regions))
        return ordered

    def _order_group(self, group, snapshot, regions) -> list[list]:
        def key(p):
            box = bbox_of(snapshot[f].rect for f in p)
            return (self._column_index(box.center_x, regions),) + _para_key(p, snapshot)

        return sorted(group, key=key)

    # --- Reporting ---
    def analyze_columns(self, paragraphs, snapshot, page: Rect, bands=()) -> ColumnReport:
        """Column diagnostics from left-edge clustering."""
        cfg = self.config
        fids = [f for p in paragraphs for f in p]
        horizontal = [b.center for b in bands]
        if len(fids) < 2:
            return ColumnReport(
                columns=1,
                edge_columns=[(page.left, page.right)],
                horizontal_gaps=horizontal,
            )
        heights = [snapshot[f].rect.height for f in fids]
        avg = sum(heights) / len(heights)
        threshold = avg * cfg.column_threshold_line_height_multiplier if avg > 0 else cfg.column_threshold_fallback

        columns = []
        for fid in sorted(fids, key=lambda f: snapshot[f].rect.left):
            rect = snapshot[fid].rect
            if columns and abs(rect.left - columns[-1][-1].left) < threshold:
                columns[-1].append(rect)
            else:
                columns.append([rect])
        boxes = [bbox_of(col) for col in columns]
        spans = [(b.left, b.right) for b in boxes]
        return ColumnReport(
            columns=len(boxes),
            edge_columns=[spans[0], spans[-1]],
            gap_columns=spans[1:-1],
            vertical_gaps=[(boxes[i].left + boxes[i - 1].right) / 2 for i in range(1, len(boxes))],
            horizontal_gaps=horizontal,
        )

    def validate(self, result: LayoutResult, snapshot) -> bool:
        """Checks that every fragment appears in exactly one paragraph."""
        seen = [f for p in result.paragraphs for f in p.fragment_ids]
        duplicates = len(seen) - len(set(seen))
        missing = set(snapshot) - set(seen)
        unknown = set(seen) - set(snapshot)
        ok = not (duplicates or missing or unknown)
        if ok:
            log.debug("Validation passed for %d fragment(s).", len(seen))
        else:
            log.warning(
                "Validation failed: %d duplicate(s), %d missing, %d unknown fragment(s).",
                duplicates,
                len(missing),
                len(unknown),
            )
        return ok

    def _to_paragraph(self, fids, runs, snapshot) -> Paragraph:
        return Paragraph(
            fragment_ids=list(fids),
            bbox=bbox_of(snapshot[f].rect for f in fids),
            text=join_runs(runs, snapshot),
            runs=runs,
        )


def _para_key(fids, snapshot):
    return reading_key(snapshot[fids[0]].rect)


def _by_position(fids, snapshot):
    return sorted(fids, key=lambda f: reading_key(snapshot[f].rect))


def join_runs(runs, snapshot) -> str:
    """Joins runs with spaces, re-joining words hyphenated across lines."""
    text = ""
    prev_last = None
    for run in runs:
        piece = "".join(snapshot[f].text for f in run).strip()
        if not piece:
            continue
        if not text:
            text = piece
        elif HYPHEN_TAIL_RE.search(text) and snapshot[run[0]].rect.top > snapshot[prev_last].rect.top:
            text = text[:-1] + piece
        else:
            text = f"{text} {piece}"
        prev_last = run[-1]
    return text
