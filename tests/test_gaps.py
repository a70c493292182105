from ptlayout_lib.gaps import GapDetector
from ptlayout_lib.models import GapAnalysis, Rect, VerticalStrip


def _two_column_rects():
    rects = []
    for i in range(15):
        top = 50 + i * 18
        rects.append(Rect(50, top, 280, top + 12))
        rects.append(Rect(320, top, 550, top + 12))
    return rects


def test_detects_column_gutter(page):
    analysis = GapDetector().detect(_two_column_rects(), page)

    assert analysis.line_height == 12
    gutter = [s for s in analysis.strips if 280 <= s.center <= 320]
    assert len(gutter) == 1
    assert gutter[0].left == 280 and gutter[0].right == 320
    assert 300 in analysis.boundaries
    assert all(0.0 <= s.confidence <= 1.0 for s in analysis.strips)


def test_detects_horizontal_band_between_blocks(page):
    rects = [Rect(50, 50 + i * 18, 550, 62 + i * 18) for i in range(5)]
    rects += [Rect(50, 200 + i * 18, 550, 212 + i * 18) for i in range(5)]

    analysis = GapDetector().detect(rects, page)

    assert len(analysis.bands) == 1
    band = analysis.bands[0]
    assert 134 <= band.y and band.bottom <= 200
    assert band.height >= 18
    assert 0.5 <= band.confidence <= 1.0
    assert (band.left, band.right) == (0, 600)


def test_single_block_has_no_bands(page):
    rects = [Rect(50, 50 + i * 18, 550, 62 + i * 18) for i in range(10)]
    assert GapDetector().detect(rects, page).bands == []


def test_empty_page_returns_default_analysis(page):
    assert GapDetector().detect([], page) == GapAnalysis()


def test_columns_from_boundaries(page):
    detector = GapDetector()
    assert detector.columns_from_boundaries([], page) == [(0, 600)]
    assert detector.columns_from_boundaries([300], page) == [(0, 300), (300, 600)]
    assert detector.columns_from_boundaries([-50, 300, 900], page) == [(0, 300), (300, 600)]

    wide = Rect(0, 0, 1000, 400)
    cols = detector.columns_from_boundaries([100 * i for i in range(1, 10)], wide)
    assert len(cols) == GapDetector.MAX_COLUMNS


def test_merge_similar_strips():
    strips = [
        VerticalStrip(280, 320, 0, 200, 0.7),
        VerticalStrip(282, 322, 100, 300, 0.9),
        VerticalStrip(500, 520, 0, 300, 0.8),
    ]
    merged = GapDetector().merge_similar_strips(strips)

    assert len(merged) == 2
    assert merged[0] == VerticalStrip(280, 322, 0, 300, 0.9)
    assert merged[1] == strips[2]
