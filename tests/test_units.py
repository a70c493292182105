from ptlayout_lib.geometry import bbox_of
from ptlayout_lib.models import Paragraph
from ptlayout_lib.snapshot import build_snapshot
from ptlayout_lib.units import build_translation_units, fragments_to_text


def _paragraph(fids, snapshot):
    return Paragraph(fragment_ids=list(fids), bbox=bbox_of(snapshot[f].rect for f in fids))


def test_fragments_to_text_breaks_lines(make_fragment):
    snapshot = build_snapshot(
        [
            make_fragment(0, 85, 100, 120, 110, "world"),
            make_fragment(1, 50, 100, 80, 110, "Hello"),
            make_fragment(2, 50, 114, 120, 124, "again today"),
        ]
    )
    assert fragments_to_text([0, 1, 2], snapshot) == "Hello world\nagain today"


def test_units_keep_paragraph_index_and_drop_short_text(make_fragment):
    snapshot = build_snapshot(
        [
            make_fragment(0, 50, 100, 80, 110, "Hi"),
            make_fragment(1, 50, 200, 300, 210, "A proper paragraph."),
        ]
    )
    units = build_translation_units(
        [_paragraph([0], snapshot), _paragraph([1], snapshot)], snapshot
    )

    assert [u.unit_id for u in units] == ["para-1"]
    assert units[0].text == "A proper paragraph."
    assert units[0].fragment_ids == (1,)


def test_long_paragraph_is_split_into_sentences(make_fragment):
    snapshot = build_snapshot(
        [
            make_fragment(0, 50, 100, 300, 110, "First sentence."),
            make_fragment(1, 50, 114, 300, 124, "Second sentence here!"),
            make_fragment(2, 50, 128, 300, 138, "tail words"),
        ]
    )
    units = build_translation_units([_paragraph([0, 1, 2], snapshot)], snapshot, max_chars=20)

    assert [u.unit_id for u in units] == ["para-0-sent-0", "para-0-sent-1", "para-0-sent-2"]
    assert [u.text for u in units] == ["First sentence.", "Second sentence here!", "tail words"]
    assert all(u.paragraph_id == "para-0" for u in units)


def test_keep_style_marks_bold_and_italic(make_fragment):
    snapshot = build_snapshot(
        [
            make_fragment(0, 50, 100, 80, 110, "Bold", font_weight="bold"),
            make_fragment(1, 85, 100, 120, 110, "slanted", font_style="italic"),
            make_fragment(2, 125, 100, 160, 110, "both", font_weight=700, font_style="italic"),
            make_fragment(3, 165, 100, 200, 110, "plain"),
        ]
    )
    text = fragments_to_text([0, 1, 2, 3], snapshot, keep_style=True)
    assert text == "**Bold** *slanted* ***both*** plain"
    assert fragments_to_text([0, 1, 2, 3], snapshot) == "Bold slanted both plain"
