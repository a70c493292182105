import pytest

from ptlayout_lib.models import RawFragment, Rect


@pytest.fixture
def make_fragment():
    """Factory for RawFragments with a fixed default font."""

    def _make(fid, left, top, right, bottom, text="lorem ipsum", **kwargs):
        kwargs.setdefault("font_family", "Times")
        kwargs.setdefault("font_size", 10)
        return RawFragment(rect=Rect(left, top, right, bottom), text=text, fid=fid, **kwargs)

    return _make


@pytest.fixture
def page():
    return Rect(0, 0, 600, 400)


@pytest.fixture
def two_column_fragments(make_fragment):
    """Twelve lines in each of two columns (x 50-280 and 320-550), 18 units apart."""
    fragments = []
    for i in range(12):
        top = 100 + i * 18
        fragments.append(make_fragment(f"L{i}", 50, top, 280, top + 12, f"left line {i}"))
        fragments.append(make_fragment(f"R{i}", 320, top, 550, top + 12, f"right line {i}"))
    return fragments
