from dataclasses import replace

import pytest

from ptlayout_lib.config import LayoutConfig
from ptlayout_lib.detector import LayoutDetector, join_runs
from ptlayout_lib.models import HorizontalBand, LayoutSegment, Rect, VerticalStrip
from ptlayout_lib.snapshot import build_snapshot


@pytest.fixture
def detector():
    return LayoutDetector(LayoutConfig())


@pytest.fixture
def headed_page(make_fragment, two_column_fragments):
    header = make_fragment("H", 50, 40, 550, 56, "A page wide heading", font_size=16)
    return [header] + two_column_fragments


def _groups(paragraphs):
    return {frozenset(p) for p in paragraphs}


def test_empty_input(detector, page):
    result = detector.detect_layout([], page)
    assert result.paragraphs == []
    assert result.regions == [LayoutSegment(0, 400, 0, 600, 1)]
    assert result.column_report.columns == 0


def test_missing_page_rect(detector, two_column_fragments):
    result = detector.detect_layout(two_column_fragments, None)
    assert result.paragraphs == []
    assert result.fragments == {}


def test_two_columns_read_left_then_right(detector, page, two_column_fragments):
    result = detector.detect_layout(two_column_fragments, page)

    assert [p.fragment_ids for p in result.paragraphs] == [
        [f"L{i}" for i in range(12)],
        [f"R{i}" for i in range(12)],
    ]
    assert result.column_report.columns == 2
    assert result.paragraphs[0].text.startswith("left line 0 left line 1")


def test_heading_precedes_columns(detector, page, headed_page):
    result = detector.detect_layout(headed_page, page)

    ids = [p.fragment_ids for p in result.paragraphs]
    assert ids[0] == ["H"]
    assert ids[1] == [f"L{i}" for i in range(12)]
    assert ids[2] == [f"R{i}" for i in range(12)]
    assert result.bands, "the gap under the heading should be reported as a band"


def test_every_fragment_appears_exactly_once(detector, page, headed_page):
    result = detector.detect_layout(headed_page, page)

    seen = [f for p in result.paragraphs for f in p.fragment_ids]
    assert len(seen) == len(set(seen))
    assert set(seen) == set(result.fragments)
    assert detector.validate(result, result.fragments)


def test_confidences_are_bounded(detector, page, headed_page):
    result = detector.detect_layout(headed_page, page)
    for item in result.strips + result.bands:
        assert 0.0 <= item.confidence <= 1.0


def test_refine_is_idempotent(detector, page, headed_page):
    snapshot = build_snapshot(headed_page)
    initial = detector.merger.group_initial(snapshot)
    ctx = detector.analyze_page(snapshot, page, initial)

    first = detector.refine(initial, ctx)
    second = detector.refine(first, ctx)
    assert _groups(first) == _groups(second)


def test_scale_does_not_change_grouping(detector, page, two_column_fragments):
    scaled = [
        replace(
            f,
            rect=Rect(f.rect.left * 2, f.rect.top * 2, f.rect.right * 2, f.rect.bottom * 2),
            font_size=f.font_size * 2,
        )
        for f in two_column_fragments
    ]
    plain = detector.detect_layout(two_column_fragments, page)
    doubled = detector.detect_layout(scaled, Rect(0, 0, 1200, 800), scale=2.0)

    assert [p.fragment_ids for p in doubled.paragraphs] == [p.fragment_ids for p in plain.paragraphs]
    assert doubled.line_height == pytest.approx(plain.line_height)


def test_force_linear_produces_single_paragraph(page, two_column_fragments):
    detector = LayoutDetector(LayoutConfig(force_linear_merge=True))
    result = detector.detect_layout(two_column_fragments, page)

    assert len(result.paragraphs) == 1
    assert set(result.paragraphs[0].fragment_ids) == {f.fid for f in two_column_fragments}


def test_hyphenated_words_are_rejoined(detector, page, make_fragment):
    raws = [
        make_fragment(0, 50, 100, 300, 110, "infor-"),
        make_fragment(1, 52, 140, 300, 150, "mation continues"),
    ]
    result = detector.detect_layout(raws, page)

    assert len(result.paragraphs) == 1
    assert result.paragraphs[0].text == "information continues"


def test_join_runs_on_same_line_keeps_hyphen(make_fragment):
    snapshot = build_snapshot(
        [
            make_fragment(0, 50, 100, 90, 110, "well-"),
            make_fragment(1, 100, 100, 140, 110, "known"),
        ]
    )
    assert join_runs([(0,), (1,)], snapshot) == "well- known"


def test_column_regions(detector, page):
    strips = [VerticalStrip(280, 320, 0, 400, 0.9), VerticalStrip(299, 301, 0, 400, 0.9)]
    assert detector.column_regions([], page) == [(0, 600)]
    assert detector.column_regions(strips, page) == [(0, 300), (300, 600)]


def test_build_layout_bands_adds_inferred_and_coalesces(detector, page):
    strips = [VerticalStrip(280, 320, 100, 300, 0.9)]
    bands = [
        HorizontalBand(150, 10, 0, 600, 0.7),
        HorizontalBand(161, 10, 0, 600, 0.9),
    ]
    out = detector.build_layout_bands(bands, strips, page, 15.0)

    assert [(b.y, b.bottom) for b in out] == [(0, 100), (150, 171), (300, 400)]
    assert out[0].confidence == LayoutConfig().inferred_band_confidence
    assert out[1].confidence == 0.9


def test_estimate_line_height_uses_font_floor(detector, page, make_fragment):
    snapshot = build_snapshot([make_fragment(0, 50, 100, 300, 110)])
    assert detector.estimate_line_height([[0]], snapshot, page) == pytest.approx(12.8)


def test_debug_validation_logs_nothing_on_clean_result(page, two_column_fragments, caplog):
    detector = LayoutDetector(LayoutConfig(debug_validation=True))
    detector.detect_layout(two_column_fragments, page)
    assert "Validation failed" not in caplog.text


@pytest.fixture
def header_body_footer(make_fragment):
    """Full-width header (y 0-50), two-column body (y 60-700), full-width footer (y 710-800)."""
    raws = [make_fragment(f"H{i}", 10, 18 * i, 590, 18 * i + 12, f"header line {i}") for i in range(3)]
    for i in range(35):
        top = 60 + 18 * i
        raws.append(make_fragment(f"L{i}", 10, top, 270, top + 12, f"left body {i}"))
        raws.append(make_fragment(f"R{i}", 330, top, 590, top + 12, f"right body {i}"))
    raws += [make_fragment(f"F{i}", 10, 710 + 18 * i, 590, 722 + 18 * i, f"footer line {i}") for i in range(5)]
    return raws


def test_header_does_not_absorb_first_column_line(detector, header_body_footer):
    result = detector.detect_layout(header_body_footer, Rect(0, 0, 600, 800))

    assert [r.columns for r in result.regions] == [1, 2, 1]
    assert result.paragraphs[0].fragment_ids == ["H0", "H1", "H2"]
    for para in result.paragraphs:
        assert len({fid[0] for fid in para.fragment_ids}) == 1, para.fragment_ids
    assert detector.validate(result, result.fragments)


def test_side_by_side_fragments_stay_apart(detector, make_fragment):
    raws = [make_fragment(0, 10, 100, 270, 112, "left text"), make_fragment(1, 330, 100, 590, 112, "right text")]
    result = detector.detect_layout(raws, Rect(0, 0, 600, 400))

    assert sorted(p.fragment_ids for p in result.paragraphs) == [[0], [1]]


@pytest.mark.parametrize("confidence", [0.6, 0.9])
def test_side_by_side_fragments_split_by_gutter_strip(detector, make_fragment, confidence):
    raws = [make_fragment(0, 10, 100, 270, 112, "left text"), make_fragment(1, 330, 100, 590, 112, "right text")]
    snapshot = build_snapshot(raws)
    initial = detector.merger.group_initial(snapshot)
    ctx = detector.analyze_page(snapshot, Rect(0, 0, 600, 400), initial)
    ctx = replace(ctx, strips=[VerticalStrip(280, 320, 0, 400, confidence)], bands=[], regions=[])

    assert _groups(detector.refine(initial, ctx)) == {frozenset([0]), frozenset([1])}
