"""
ptlayout_lib/policy.py: Merge policies used by the ParagraphMerger.

The geometric policy honours styles, column strips, horizontal bands and
region transitions. The linear policy ignores all of them and lets vertical
proximity alone decide, for pages whose geometry is known to be misleading.
"""
import math

from .config import LayoutConfig
from .models import Fragment, LayoutSegment, Rect


def colour_distance(a, b) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1], a[2] - b[2])


class MergePolicy:
    """Interface for the layout-aware predicates of the merger."""

    name = "base"
    splits_columns = True

    def __init__(self, config: LayoutConfig):
        self.config = config

    def styles_match(self, a: Fragment, b: Fragment) -> bool:
        raise NotImplementedError

    def same_column(self, a: Rect, b: Rect, strips) -> bool:
        raise NotImplementedError

    def band_between(self, a: Rect, b: Rect, bands) -> bool:
        raise NotImplementedError

    def crosses_region(self, a: Rect, b: Rect, regions) -> bool:
        raise NotImplementedError

    def alignment_ok(self, aligned: bool, overlap_strong: bool = False) -> bool:
        raise NotImplementedError


class LinearPolicy(MergePolicy):
    name = "linear"
    splits_columns = False

    def styles_match(self, a, b):
        return True

    def same_column(self, a, b, strips):
        return True

    def band_between(self, a, b, bands):
        return False

    def crosses_region(self, a, b, regions):
        return False

    def alignment_ok(self, aligned, overlap_strong=False):
        return True


class GeometricPolicy(MergePolicy):
    name = "geometric"

    def styles_match(self, a, b):
        sa, sb = a.style, b.style
        if sa.family != sb.family or abs(sa.size - sb.size) > 1.0:
            return False
        if colour_distance(sa.color_rgb, sb.color_rgb) >= 10:
            return False
        if a.is_math or b.is_math:
            return sa.style == sb.style and sa.weight == sb.weight
        if abs(sa.weight - sb.weight) > self.config.max_weight_diff:
            return False
        return self.config.allow_mixed_style or sa.style == sb.style

    def same_column(self, a, b, strips):
        """True unless confident strips cover enough of the gap between a and b."""
        overlap = a.horizontal_overlap(b)
        if not strips:
            return (
                overlap > min(a.width, b.width) * 0.3
                and abs(a.center_x - b.center_x) < max(a.width, b.width) * 3
            )

        y_top, y_bot = min(a.top, b.top), max(a.bottom, b.bottom)
        if y_bot - y_top <= 0:
            return True
        if overlap > min(a.width, b.width) * 0.3:
            return True

        left, right = (a, b) if a.left < b.left else (b, a)
        gap_left, gap_right = left.right, right.left
        gap = gap_right - gap_left
        if gap <= 0:
            return True

        cfg = self.config
        min_cover = max(3.0, gap * 0.1)
        covered = 0.0
        for s in strips:
            if s.confidence < cfg.min_strip_confidence_split:
                continue
            if s.width < cfg.split_min_strip_width_px or s.height <= 0:
                continue
            y_overlap = min(y_bot, s.bottom) - max(y_top, s.top)
            if y_overlap / s.height < cfg.min_strip_overlap_frac:
                continue
            in_gap = max(0.0, min(s.right, gap_right) - max(s.left, gap_left))
            if in_gap >= min_cover:
                covered += in_gap
        return covered / gap < cfg.same_column_coverage_ratio

    def band_between(self, a, b, bands):
        if not bands:
            return False
        top = min(a.bottom, b.bottom)
        bottom = max(a.top, b.top)
        for band in bands:
            if band.confidence < 0.6:
                continue
            if band.y > top and band.bottom < bottom:
                return True
        return False

    def crosses_region(self, a, b, regions: list[LayoutSegment]):
        """True when a and b sit in regions with different column counts."""
        if not self.config.respect_region_transitions or not regions or len(regions) < 2:
            return False
        ra, rb = _region_of(a, regions), _region_of(b, regions)
        if ra is None or rb is None or ra is rb:
            return False
        return ra.columns != rb.columns

    def alignment_ok(self, aligned, overlap_strong=False):
        return aligned or overlap_strong


def _region_of(rect: Rect, regions):
    cy = rect.center_y
    for region in regions:
        if region.top <= cy <= region.bottom:
            return region
    return min(regions, key=lambda r: abs((r.top + r.bottom) / 2 - cy))


def select_policy(config: LayoutConfig) -> MergePolicy:
    return LinearPolicy(config) if config.force_linear_merge else GeometricPolicy(config)
