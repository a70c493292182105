from ptlayout_lib.models import LayoutSegment, Rect
from ptlayout_lib.regions import count_columns, segment_vertical_layouts

PAGE = Rect(0, 0, 600, 800)


def _full_width(tops):
    return [Rect(50, t, 550, t + 12) for t in tops]


def _two_columns(tops):
    rects = []
    for t in tops:
        rects.append(Rect(50, t, 280, t + 12))
        rects.append(Rect(320, t, 550, t + 12))
    return rects


def test_header_two_column_body_footer():
    rects = (
        _full_width(range(50, 141, 18))
        + _two_columns(range(200, 453, 18))
        + _full_width(range(540, 631, 18))
    )
    segments = segment_vertical_layouts(rects, PAGE, 15.0)

    assert [s.columns for s in segments] == [1, 2, 1]
    assert segments[0].top == PAGE.top
    assert segments[-1].bottom == PAGE.bottom
    assert all(a.top < b.top for a, b in zip(segments, segments[1:]))
    # Boundaries fall in the whitespace between the blocks (plus a small buffer).
    assert 150 < segments[0].bottom < 200
    assert 460 < segments[1].bottom < 540


def test_short_blip_is_absorbed():
    rects = (
        _full_width(range(50, 213, 18))
        + _two_columns([230])
        + _full_width(range(248, 411, 18))
    )
    segments = segment_vertical_layouts(rects, PAGE, 15.0)

    assert len(segments) == 1
    assert segments[0].columns == 1


def test_empty_input_yields_full_page():
    assert segment_vertical_layouts([], PAGE, 15.0) == [LayoutSegment(0, 800, 0, 600, 1)]
    assert segment_vertical_layouts([Rect(0, 0, 10, 10)], PAGE, 0) == [
        LayoutSegment(0, 800, 0, 600, 1)
    ]
    assert segment_vertical_layouts([], None, 15.0) == [LayoutSegment(0, 0, 0, 0, 1)]


def test_count_columns():
    rects = [Rect(10, 0, 100, 10), Rect(12, 0, 100, 10), Rect(200, 0, 300, 10)]
    assert count_columns(rects, 30) == 2
    assert count_columns([], 30) == 0
