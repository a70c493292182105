"""
ptlayout_lib/geometry.py: Small numeric and rectangle helpers.
"""
import statistics

from .models import Rect


def median(values, default=0.0):
    values = list(values)
    return statistics.median(values) if values else default


def stdev(values):
    """Sample standard deviation; 0 for fewer than two values."""
    values = list(values)
    return statistics.stdev(values) if len(values) > 1 else 0.0


def clamp01(value):
    return max(0.0, min(1.0, value))


def bbox_of(rects) -> Rect:
    """Bounding box of the given rects, or a zero rect when there are none."""
    rects = list(rects)
    if not rects:
        return Rect(0, 0, 0, 0)
    return Rect(
        min(r.left for r in rects),
        min(r.top for r in rects),
        max(r.right for r in rects),
        max(r.bottom for r in rects),
    )


def reading_key(rect: Rect):
    """Sort key for top-to-bottom, left-to-right order."""
    return (rect.top, rect.left)
