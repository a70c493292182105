import pytest

from ptlayout_lib.models import MathContext, RawFragment, Rect
from ptlayout_lib.snapshot import build_snapshot, normalize_weight, parse_color


@pytest.mark.parametrize(
    "colour, expected",
    [
        ("rgb(10, 20, 30)", (10, 20, 30)),
        ("rgba(1,2,3,0.5)", (1, 2, 3)),
        ("#fff", (255, 255, 255)),
        ("#102030", (16, 32, 48)),
        ((1.2, 2, 3), (1, 2, 3)),
        ("not a colour", (0, 0, 0)),
        (None, (0, 0, 0)),
    ],
)
def test_parse_color(colour, expected):
    assert parse_color(colour) == expected


@pytest.mark.parametrize(
    "weight, expected",
    [
        ("bold", 700),
        ("600", 600),
        (500, 500),
        ("normal", 400),
        (None, 400),
        (True, 400),
        ("1000", 900),
        ("-5", 100),
        (50.0, 100),
    ],
)
def test_normalize_weight(weight, expected):
    assert normalize_weight(weight) == expected


def test_build_snapshot_scales_geometry_and_font_size():
    raw = RawFragment(rect=Rect(20, 40, 120, 60), text="Hi", font_family="Times", font_size=24)
    snapshot = build_snapshot([raw], scale=2.0)

    frag = snapshot[0]
    assert frag.rect == Rect(10, 20, 60, 30)
    assert frag.font_size == 12
    assert frag.style.weight == 400
    assert frag.style.color_rgb == (0, 0, 0)


def test_build_snapshot_drops_empty_geometry_and_keeps_input_index():
    raws = [
        RawFragment(rect=Rect(0, 0, 10, 10), text="a"),
        RawFragment(rect=Rect(5, 5, 5, 10), text="zero width"),
        RawFragment(rect=Rect(0, 20, 10, 30), text="c"),
    ]
    snapshot = build_snapshot(raws)
    assert list(snapshot) == [0, 2]
    assert snapshot[0].font_size == 12.0


def test_build_snapshot_keeps_first_duplicate_id(caplog):
    raws = [
        RawFragment(rect=Rect(0, 0, 10, 10), text="first", fid="x"),
        RawFragment(rect=Rect(0, 20, 10, 30), text="second", fid="x"),
    ]
    snapshot = build_snapshot(raws)
    assert len(snapshot) == 1
    assert snapshot["x"].text == "first"
    assert "Duplicate fragment id" in caplog.text


def test_math_detection():
    raws = [
        RawFragment(rect=Rect(0, 0, 10, 10), text="x = y"),
        RawFragment(rect=Rect(0, 20, 10, 30), text="α"),
        RawFragment(rect=Rect(0, 40, 10, 50), text="plain words"),
        RawFragment(rect=Rect(0, 60, 10, 70), text="f", font_family="CambriaMath"),
    ]
    snapshot = build_snapshot(raws)
    assert snapshot[0].is_math and snapshot[0].math_context == MathContext.EQUATION
    assert snapshot[1].is_math and snapshot[1].math_context == MathContext.INLINE
    assert not snapshot[2].is_math and snapshot[2].math_context == MathContext.NONE
    assert snapshot[3].is_math


def test_build_snapshot_handles_empty_input():
    assert build_snapshot([]) == {}
    assert build_snapshot(None) == {}
