"""
ptlayout_lib/units.py: Builds translation units from detected paragraphs.

A unit is the text that is sent to a translator in one piece, together with
the fragment ids it came from so the translation can be placed back.
"""
import logging
import re
from dataclasses import dataclass

from .models import Paragraph

log = logging.getLogger("ptlayout.units")

DEFAULT_MAX_CHARS = 7500
DEFAULT_MIN_CHARS = 5
SENTENCE_END_RE = re.compile(r"[.?!]\s*$")
LINE_KEY_TOLERANCE = 5.0


@dataclass(frozen=True)
class TranslationUnit:
    unit_id: str
    paragraph_id: str
    text: str
    fragment_ids: tuple


def _styled(fragment, keep_style: bool) -> str:
    text = fragment.text.strip()
    if not keep_style or not text:
        return text
    bold = fragment.style.weight >= 700
    italic = fragment.style.style in ("italic", "oblique")
    if bold and italic:
        return f"***{text}***"
    if bold:
        return f"**{text}**"
    if italic:
        return f"*{text}*"
    return text


def fragments_to_text(fids, snapshot, keep_style: bool = False) -> str:
    """Lays fragments out line by line: spaces within a line, newlines between."""
    lines = {}
    for fid in fids:
        lines.setdefault(round(snapshot[fid].rect.top), []).append(fid)
    out = []
    for key in sorted(lines):
        ordered = sorted(lines[key], key=lambda f: snapshot[f].rect.left)
        words = [_styled(snapshot[f], keep_style) for f in ordered]
        line = " ".join(w for w in words if w)
        if line:
            out.append(line)
    return "\n".join(out)


def _sentences(fids, snapshot) -> list[list]:
    def key(f):
        r = snapshot[f].rect
        return (round(r.top / LINE_KEY_TOLERANCE), r.left)

    groups, current = [], []
    for fid in sorted(fids, key=key):
        current.append(fid)
        if SENTENCE_END_RE.search(snapshot[fid].text.strip()):
            groups.append(current)
            current = []
    if current:
        groups.append(current)
    return groups


def build_translation_units(
    paragraphs: list[Paragraph],
    snapshot: dict,
    max_chars: int = DEFAULT_MAX_CHARS,
    min_chars: int = DEFAULT_MIN_CHARS,
    keep_style: bool = False,
) -> list[TranslationUnit]:
    """Turns paragraphs into translation units.

    Paragraphs whose text fits in `max_chars` become one unit `para-N`;
    longer ones are split at sentence-ending fragments into units
    `para-N-sent-M`. Units of `min_chars` characters or fewer are dropped.
    """
    units = []
    for index, para in enumerate(paragraphs):
        if not para.fragment_ids:
            continue
        para_id = f"para-{index}"
        text = fragments_to_text(para.fragment_ids, snapshot, keep_style)
        if len(text) <= max_chars:
            if len(text) > min_chars:
                units.append(TranslationUnit(para_id, para_id, text, tuple(para.fragment_ids)))
            continue

        log.debug("Paragraph %d is too long (%d chars); splitting into sentences.", index, len(text))
        for n, group in enumerate(_sentences(para.fragment_ids, snapshot)):
            sentence = fragments_to_text(group, snapshot, keep_style)
            if len(sentence) > min_chars:
                units.append(
                    TranslationUnit(f"{para_id}-sent-{n}", para_id, sentence, tuple(group))
                )
    log.info("Built %d translation unit(s) from %d paragraph(s).", len(units), len(paragraphs))
    return units
