"""
ptlayout_lib/merger.py: Contains the ParagraphMerger, the multi-stage state
machine that turns normalized fragments into paragraphs.

Paragraphs are plain lists of fragment ids; geometry and style are always
looked up in the invocation-scoped snapshot passed to each stage.
"""
import logging
import re

from .config import LayoutConfig
from .geometry import bbox_of, reading_key
from .models import Rect
from .policy import select_policy

log = logging.getLogger("ptlayout.merge")

HYPHEN_END_RE = re.compile(r"[\u00AD-]$")
MATH_OPERATOR_RE = re.compile(r"[=+\-−×÷√∫∑≠≤≥≈±∞]")
MIN_SPLIT_STRIP_HEIGHT = 12.0
MIN_SPLIT_STRIP_WIDTH_FRACTION = 0.003


class _ParaInfo:
    """Per-paragraph view used by the pairwise passes."""

    __slots__ = ("fids", "bbox", "lead", "is_math", "text")

    def __init__(self, fids, snapshot, lead=None):
        self.fids = fids
        self.bbox = bbox_of(snapshot[f].rect for f in fids)
        self.lead = lead if lead is not None else snapshot[fids[0]]
        self.is_math = any(snapshot[f].is_math for f in fids)
        self.text = "".join(snapshot[f].text for f in fids)


def _reading_sorted(fids, snapshot):
    return sorted(fids, key=lambda f: reading_key(snapshot[f].rect))


class ParagraphMerger:
    """
    Implements the paragraph-building stages. The merge policy (geometric or
    linear) is chosen once from the config and every layout-aware predicate
    is delegated to it.
    """

    def __init__(self, config: LayoutConfig = None):
        self.config = config or LayoutConfig()
        self.policy = select_policy(self.config)
        log.debug("Paragraph merger using %s policy", self.policy.name)

    # --- Stage 1 ---
    def group_initial(self, snapshot: dict) -> list[list]:
        """Groups fragments in (top, left) order into initial paragraphs."""
        cfg = self.config
        ordered = _reading_sorted(snapshot, snapshot)
        paragraphs = []
        current = []
        for fid in ordered:
            if not current:
                current.append(fid)
                continue
            cur, prev = snapshot[fid], snapshot[current[-1]]
            if self._continues(prev, cur, cfg):
                current.append(fid)
            else:
                paragraphs.append(current)
                current = [fid]
        if current:
            paragraphs.append(current)
        log.debug("Initial grouping: %d fragment(s) -> %d paragraph(s)", len(ordered), len(paragraphs))
        return paragraphs

    def _continues(self, prev, cur, cfg) -> bool:
        if not self.policy.styles_match(cur, prev):
            return False
        math = cur.is_math or prev.is_math
        max_f = max(cur.font_size, prev.font_size)
        min_f = min(cur.font_size, prev.font_size)
        pr, cr = prev.rect, cur.rect

        base_tol = min_f * (cfg.initial_merge_baseline_tol_math if math else cfg.initial_merge_baseline_tol)
        same_baseline = abs(cr.bottom - pr.bottom) < base_tol
        kern_tol = min_f * (cfg.initial_merge_kern_tol_math if math else cfg.initial_merge_kern_tol)
        dx = cr.left - pr.right
        if cur.is_rtl or prev.is_rtl:
            inline_kern = same_baseline and -kern_tol < dx <= 0
        else:
            inline_kern = same_baseline and 0 <= dx < kern_tol
        if inline_kern:
            return True

        hyphen = (
            bool(HYPHEN_END_RE.search(prev.text.strip()))
            and cr.top > pr.top
            and abs(cr.left - pr.left) < cur.font_size * cfg.hyphen_continuation_tol
        )
        if hyphen:
            return True

        align_tol = min_f * (cfg.initial_merge_align_tol_math if math else cfg.initial_merge_align_tol)
        aligned = abs(cr.left - pr.left) < align_tol or abs(cr.right - pr.right) < align_tol
        vertical_tol = min(
            max_f * cfg.line_height_multiplier * cfg.initial_merge_vertical_gap_multiplier,
            max_f * cfg.initial_merge_vertical_gap_max_multiplier,
        )
        return cr.top - pr.bottom <= vertical_tol and self.policy.alignment_ok(aligned)

    def split_by_regions(self, paragraphs, snapshot, regions) -> list[list]:
        """Breaks paragraphs between consecutive fragments in regions of different column counts."""
        out = []
        for para in paragraphs:
            part = [para[0]] if para else []
            for prev, cur in zip(para, para[1:]):
                if self.policy.crosses_region(snapshot[prev].rect, snapshot[cur].rect, regions):
                    log.debug("Region transition between fragments %r and %r", prev, cur)
                    out.append(part)
                    part = []
                part.append(cur)
            if part:
                out.append(part)
        return out

    # --- Stage 2 ---
    def filter_strips(self, strips, page_width: float) -> list:
        """Keeps strips that are wide, tall and confident enough to split on."""
        cfg = self.config
        kept = []
        for s in strips or []:
            if s.width < page_width * MIN_SPLIT_STRIP_WIDTH_FRACTION:
                continue
            if s.height < MIN_SPLIT_STRIP_HEIGHT:
                continue
            if s.confidence >= cfg.min_strip_confidence_split and s.width >= cfg.split_min_strip_width_px:
                kept.append(s)
        return kept

    def split_by_strips(self, paragraphs, snapshot, strips, line_height, page_width) -> list[list]:
        """Splits paragraphs whose lines show a column-sized horizontal gap."""
        if not self.policy.splits_columns:
            return paragraphs
        usable = self.filter_strips(strips, page_width)
        if not usable:
            return paragraphs
        out = []
        for para in paragraphs:
            parts = self._split_paragraph(para, snapshot, line_height)
            if len(parts) > 1:
                log.debug("Split paragraph of %d fragment(s) into %d", len(para), len(parts))
            out.extend(parts)
        return out

    def _split_paragraph(self, para, snapshot, line_height) -> list[list]:
        if not para:
            return [para]
        cfg = self.config
        ordered = _reading_sorted(para, snapshot)
        boundaries = []
        line = []
        line_top = None
        for fid in ordered:
            rect = snapshot[fid].rect
            if line_top is None or abs(rect.top - line_top) > line_height * cfg.split_line_height_tol:
                if len(line) > 1:
                    boundaries.extend(self._line_boundaries(line))
                line_top = rect.top
                line = [rect]
            else:
                line.append(rect)
        if len(line) > 1:
            boundaries.extend(self._line_boundaries(line))
        if not boundaries:
            return [para]

        boundaries.sort()
        unique = [boundaries[0]]
        for b in boundaries[1:]:
            if b - unique[-1] > line_height * cfg.split_boundary_dedup_tol:
                unique.append(b)

        bbox = bbox_of(snapshot[f].rect for f in para)
        edges = [bbox.left] + unique + [bbox.right]
        regions = list(zip(edges[:-1], edges[1:]))
        buckets = [[] for _ in regions]
        for fid in ordered:
            cx = snapshot[fid].rect.center_x
            index = next(
                (i for i, (left, right) in enumerate(regions) if left <= cx < right),
                0 if cx < regions[0][0] else len(regions) - 1,
            )
            buckets[index].append(fid)
        groups = [b for b in buckets if b]
        return groups if len(groups) > 1 else [para]

    def _line_boundaries(self, rects) -> list[float]:
        cfg = self.config
        found = []
        rects = sorted(rects, key=lambda r: r.left)
        for prev, curr in zip(rects, rects[1:]):
            gap = curr.left - prev.right
            font_size = min(prev.height, curr.height) * 0.8
            if gap > font_size * cfg.split_column_gap_tol and gap > font_size * cfg.split_inter_word_gap_tol:
                found.append((prev.right + curr.left) / 2)
        return found

    # --- Shared pairwise checks ---
    def _compatible(self, a: Rect, b: Rect, strips, bands, regions) -> bool:
        return (
            self.policy.same_column(a, b, strips)
            and not self.policy.band_between(a, b, bands)
            and not self.policy.crosses_region(a, b, regions)
        )

    def _stack_ok(self, a: Rect, b: Rect, align_tol, overlap_frac, threshold) -> bool:
        gap = b.top - a.bottom
        min_width = max(1.0, min(a.width, b.width))
        overlap_strong = a.horizontal_overlap(b) > overlap_frac * min_width
        aligned = abs(a.left - b.left) < align_tol or abs(a.right - b.right) < align_tol
        return gap <= threshold and self.policy.alignment_ok(aligned, overlap_strong)

    # --- Stage 3 ---
    def merge_columns(
        self, paragraphs, snapshot, line_height, strips=(), bands=(), page_width=0.0, regions=()
    ) -> list[list]:
        """Greedy merge of vertically stacked paragraphs in the same column."""
        cfg = self.config
        usable = self.filter_strips(strips, page_width)
        merged = []
        used = set()
        for i, para in enumerate(paragraphs):
            if i in used:
                continue
            used.add(i)
            current = list(para)
            lead = snapshot[current[0]]
            bbox = bbox_of(snapshot[f].rect for f in current)
            for j in range(i + 1, len(paragraphs)):
                if j in used:
                    continue
                nxt = paragraphs[j]
                nxt_lead = snapshot[nxt[0]]
                if not self.policy.styles_match(lead, nxt_lead):
                    continue
                nxt_bbox = bbox_of(snapshot[f].rect for f in nxt)
                if not self._compatible(bbox, nxt_bbox, usable, bands, regions):
                    continue
                threshold = min(
                    line_height * cfg.general_merge_vertical_gap_multiplier,
                    max(lead.font_size, nxt_lead.font_size) * cfg.general_merge_vertical_gap_max_multiplier,
                )
                align_tol = lead.font_size * cfg.general_merge_align_tol
                if self._stack_ok(bbox, nxt_bbox, align_tol, cfg.general_merge_overlap_frac, threshold):
                    current.extend(nxt)
                    used.add(j)
                    bbox = bbox.union(nxt_bbox)
            merged.append(current)
        return merged

    # --- Stage 4 ---
    def merge_nested_once(
        self, paragraphs, snapshot, strips=(), bands=(), page_width=0.0, regions=()
    ) -> tuple[list[list], bool]:
        """One pass of containment / heavy-overlap / math merging.

        Each paragraph merges with at most one partner per pass; the caller
        repeats the pass until nothing changes.
        """
        if not paragraphs:
            return paragraphs, False
        cfg = self.config
        usable = self.filter_strips(strips, page_width)
        infos = [_ParaInfo(list(p), snapshot) for p in paragraphs]
        used = set()
        out = []
        changed = False
        for i, base in enumerate(infos):
            if i in used:
                continue
            used.add(i)
            for j, cand in enumerate(infos):
                if j in used:
                    continue
                if not self.policy.styles_match(base.lead, cand.lead):
                    continue
                if not self._compatible(base.bbox, cand.bbox, usable, bands, regions):
                    continue
                if not self._nested(base, cand, usable, cfg):
                    continue
                keep, add = (base, cand) if base.bbox.area >= cand.bbox.area else (cand, base)
                combined = _reading_sorted(keep.fids + add.fids, snapshot)
                base = _ParaInfo(combined, snapshot, lead=keep.lead)
                used.add(j)
                changed = True
                break
            out.append(base.fids)
        if changed:
            log.debug("Nested pass: %d -> %d paragraph(s)", len(paragraphs), len(out))
        return out, changed

    def _nested(self, a: _ParaInfo, b: _ParaInfo, strips, cfg) -> bool:
        if a.bbox.contains(b.bbox, tol=1) or b.bbox.contains(a.bbox, tol=1):
            return True
        smaller = min(a.bbox.area, b.bbox.area) or 1.0
        if a.bbox.intersection_area(b.bbox) / smaller > cfg.nested_merge_overlap_frac:
            return True
        return (a.is_math or b.is_math) and self._math_candidate(a, b, strips, cfg)

    def _math_candidate(self, a: _ParaInfo, b: _ParaInfo, strips, cfg) -> bool:
        font_size = max(a.lead.font_size, b.lead.font_size) or 12.0
        near_vertically = abs(a.bbox.top - b.bbox.top) < font_size * cfg.math_merge_baseline_tol
        near_horizontally = abs(a.bbox.left - b.bbox.left) < font_size * cfg.math_merge_horiz_tol
        if not self.policy.same_column(a.bbox, b.bbox, strips):
            return False
        if MATH_OPERATOR_RE.search(a.text) or MATH_OPERATOR_RE.search(b.text):
            return near_vertically and near_horizontally
        centred = abs(a.bbox.center_x - b.bbox.center_x) < font_size * cfg.math_merge_center_tol
        return near_vertically and centred

    # --- Stage 5 ---
    def merge_stacked(
        self, paragraphs, snapshot, line_height, strips=(), bands=(), page_width=0.0, regions=()
    ) -> list[list]:
        """Repeats the stacked same-column merge until a fixed point."""
        if not paragraphs:
            return paragraphs
        cfg = self.config
        usable = self.filter_strips(strips, page_width)
        infos = sorted(
            (_ParaInfo(list(p), snapshot) for p in paragraphs),
            key=lambda p: (p.bbox.top, p.bbox.left),
        )
        passes = 0
        while True:
            passes += 1
            changed = False
            used = set()
            out = []
            for i, base in enumerate(infos):
                if i in used:
                    continue
                used.add(i)
                for j in range(i + 1, len(infos)):
                    if j in used:
                        continue
                    cand = infos[j]
                    if not self.policy.styles_match(base.lead, cand.lead):
                        continue
                    if not self._compatible(base.bbox, cand.bbox, usable, bands, regions):
                        continue
                    if cand.bbox.top - base.bbox.bottom < 0:
                        continue
                    min_f = min(base.lead.font_size, cand.lead.font_size)
                    max_f = max(base.lead.font_size, cand.lead.font_size)
                    align_tol = max(1.0, min_f * cfg.stacked_merge_align_tol)
                    threshold = min(
                        line_height * cfg.stacked_merge_vertical_gap_multiplier,
                        max_f * cfg.stacked_merge_vertical_gap_max_multiplier,
                    )
                    if self._stack_ok(base.bbox, cand.bbox, align_tol, cfg.stacked_merge_overlap_frac, threshold):
                        combined = _reading_sorted(base.fids + cand.fids, snapshot)
                        base = _ParaInfo(combined, snapshot, lead=base.lead)
                        used.add(j)
                        changed = True
                out.append(base)
            if not changed:
                log.debug("Stacked merge converged after %d pass(es)", passes)
                return [p.fids for p in out]
            infos = sorted(out, key=lambda p: (p.bbox.top, p.bbox.left))

    # --- Stage 6 ---
    def stitch_runs(self, fids, snapshot) -> list[tuple]:
        """Groups consecutive same-baseline, touching, same-style fragments."""
        if not fids:
            return []
        cfg = self.config
        runs = [[fids[0]]]
        for prev_id, cur_id in zip(fids, fids[1:]):
            prev, cur = snapshot[prev_id], snapshot[cur_id]
            math = prev.is_math or cur.is_math
            min_f = min(prev.font_size, cur.font_size)
            base_tol = min_f * (cfg.stitch_baseline_tol_math if math else cfg.stitch_baseline_tol)
            kern_tol = min_f * (cfg.stitch_kern_tol_math if math else cfg.stitch_kern_tol)
            dx = cur.rect.left - prev.rect.right
            if (
                self.policy.styles_match(prev, cur)
                and abs(prev.rect.bottom - cur.rect.bottom) < base_tol
                and 0 <= dx < kern_tol
            ):
                runs[-1].append(cur_id)
            else:
                runs.append([cur_id])
        return [tuple(run) for run in runs]

    def stitch_inline_runs(self, paragraphs, snapshot) -> list[list[tuple]]:
        """Stitches every paragraph; the result is parallel to `paragraphs`."""
        return [self.stitch_runs(p, snapshot) for p in paragraphs]

    # --- Stage 7 ---
    @staticmethod
    def deduplicate(paragraphs) -> list[list]:
        """Keeps each fragment id once (first occurrence); drops empty paragraphs."""
        seen = set()
        out = []
        duplicates = 0
        for para in paragraphs:
            unique = []
            for fid in para:
                if fid in seen:
                    duplicates += 1
                    continue
                seen.add(fid)
                unique.append(fid)
            if unique:
                out.append(unique)
        if duplicates:
            log.warning("Removed %d duplicated fragment reference(s).", duplicates)
        return out
