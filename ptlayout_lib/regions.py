"""
ptlayout_lib/regions.py: Splits a page into vertical regions that each have a
consistent column structure (e.g. full-width header, two-column body, footer).
"""
import logging
from dataclasses import dataclass

from .models import LayoutSegment, Rect

log = logging.getLogger("ptlayout.regions")


@dataclass(frozen=True)
class RegionOptions:
    """Thresholds, all expressed as multiples of the line height."""

    column_gap_multiplier: float = 2.0
    shift_multiplier: float = 4.0
    min_segment_height_multiplier: float = 2.0
    sample_step_multiplier: float = 0.5
    buffer_multiplier: float = 0.5


@dataclass
class _Sample:
    y: float
    cols: int
    left: float
    right: float


def _full_page(page: Rect) -> list[LayoutSegment]:
    return [LayoutSegment(page.top, page.bottom, page.left, page.right, 1)]


def segment_vertical_layouts(
    rects: list[Rect],
    page: Rect,
    line_height: float,
    options: RegionOptions = RegionOptions(),
) -> list[LayoutSegment]:
    """Returns the page's vertical layout segments, top to bottom.

    Always returns at least one segment; degenerate input yields a single
    full-page, one-column segment.
    """
    if page is None:
        return [LayoutSegment(0, 0, 0, 0, 1)]
    if not rects or line_height <= 0 or page.height <= 0:
        return _full_page(page)

    samples = _sample_profile(sorted(rects, key=lambda r: r.top), page, line_height, options)
    if not samples:
        return _full_page(page)

    runs = _split_runs(samples, line_height, options)
    segments = _runs_to_segments(runs, page)
    segments = _consolidate(segments, line_height, options)
    if not segments:
        log.debug("All segments too short; using full page.")
        return _full_page(page)

    final = []
    for seg in segments:
        buffer = min(line_height * options.buffer_multiplier, seg.height * 0.1)
        final.append(
            LayoutSegment(
                top=max(page.top, seg.top - buffer),
                bottom=min(page.bottom, seg.bottom + buffer),
                left=seg.left,
                right=seg.right,
                columns=seg.columns,
            )
        )
    log.debug("Regions: %s", ", ".join(f"{s.top:.0f}-{s.bottom:.0f}x{s.columns}" for s in final))
    return final


def _sample_profile(sorted_rects, page: Rect, line_height: float, options) -> list[_Sample]:
    """Samples column count and horizontal extent at regular y positions."""
    step = max(5.0, line_height * options.sample_step_multiplier)
    threshold = line_height * options.column_gap_multiplier
    samples = []
    active = []
    index = 0
    y = page.top
    while y < page.bottom:
        active = [r for r in active if r.bottom >= y]
        while index < len(sorted_rects) and sorted_rects[index].top <= y:
            if sorted_rects[index].bottom >= y:
                active.append(sorted_rects[index])
            index += 1
        if active:
            samples.append(
                _Sample(
                    y=y,
                    cols=count_columns(active, threshold),
                    left=min(r.left for r in active),
                    right=max(r.right for r in active),
                )
            )
        y += step
    return samples


def count_columns(rects, gap_threshold: float) -> int:
    """Clusters left edges; an edge farther than `gap_threshold` from its
    nearest cluster starts a new one."""
    if not rects:
        return 0
    lefts = sorted(r.left for r in rects)
    clusters = [lefts[0]]
    for left in lefts[1:]:
        nearest = min(clusters, key=lambda c: abs(c - left))
        if abs(left - nearest) > gap_threshold:
            clusters.append(left)
    return len(clusters)


def _split_runs(samples, line_height: float, options) -> list[list[_Sample]]:
    shift = options.shift_multiplier * line_height
    runs = [[samples[0]]]
    anchor = samples[0]
    for s in samples[1:]:
        changed = (
            s.cols != anchor.cols
            or abs(s.left - anchor.left) > shift
            or abs(s.right - anchor.right) > shift
        )
        if changed:
            runs.append([s])
            anchor = s
        else:
            runs[-1].append(s)
    return runs


def _runs_to_segments(runs, page: Rect) -> list[LayoutSegment]:
    """Places each boundary midway between two consecutive runs."""
    segments = []
    for i, run in enumerate(runs):
        top = page.top if i == 0 else (runs[i - 1][-1].y + run[0].y) / 2
        bottom = page.bottom if i == len(runs) - 1 else (run[-1].y + runs[i + 1][0].y) / 2
        segments.append(
            LayoutSegment(
                top=top,
                bottom=bottom,
                left=min(s.left for s in run),
                right=max(s.right for s in run),
                columns=run[0].cols,
            )
        )
    return segments


def _widen(seg: LayoutSegment, other: LayoutSegment, columns: int) -> LayoutSegment:
    return LayoutSegment(
        top=min(seg.top, other.top),
        bottom=max(seg.bottom, other.bottom),
        left=min(seg.left, other.left),
        right=max(seg.right, other.right),
        columns=columns,
    )


def _consolidate(segments, line_height: float, options) -> list[LayoutSegment]:
    min_height = options.min_segment_height_multiplier * line_height

    # Short segments are noise: fold them into the previous (or next) neighbour.
    absorbed = []
    pending = None
    for seg in segments:
        if pending is not None:
            seg = _widen(seg, pending, seg.columns)
            pending = None
        if seg.height < min_height:
            if absorbed:
                absorbed[-1] = _widen(absorbed[-1], seg, absorbed[-1].columns)
            else:
                pending = seg
            continue
        absorbed.append(seg)
    if pending is not None:
        absorbed.append(pending)

    merged = []
    for seg in absorbed:
        if merged and merged[-1].columns == seg.columns:
            merged[-1] = _widen(merged[-1], seg, seg.columns)
        else:
            merged.append(seg)

    return [s for s in merged if s.height >= min_height]
