"""
ptlayout_lib/pdf_source.py: pdfminer adapter that turns PDF pages into the raw
fragment records consumed by the layout engine.

Each LTTextLine is cut into runs of characters that share font, size and fill
colour; every run becomes one RawFragment in top-down page coordinates.
"""
import logging
import os
import re

from pdfminer.high_level import extract_pages
from pdfminer.layout import LTChar, LTTextLine

from .models import RawFragment, Rect

log = logging.getLogger("ptlayout.pdf")

SUBSET_PREFIX_RE = re.compile(r"^[A-Z]{6}\+")
BOLD_RE = re.compile(r"bold|black|heavy|semibold|demi", re.IGNORECASE)
ITALIC_RE = re.compile(r"italic|oblique", re.IGNORECASE)
STYLE_SUFFIX_RE = re.compile(
    r"[-,]?(bold|black|heavy|semibold|demi|italic|oblique|regular|roman|medium|mt|ps)+$",
    re.IGNORECASE,
)
RUN_GAP_FACTOR = 0.6


def parse_page_selection(pages_str: str) -> set | None:
    """Parses '1,3,5-7' into a set of page numbers; 'all' means every page.

    Raises ValueError on malformed input.
    """
    if not pages_str or pages_str.lower() == "all":
        return None
    pages = set()
    for p in pages_str.split(","):
        part = p.strip()
        try:
            if "-" in part:
                s, e = map(int, part.split("-"))
                pages.update(range(s, e + 1))
            else:
                pages.add(int(part))
        except ValueError as e:
            raise ValueError(f"Invalid page selection: {pages_str}") from e
    return pages


def find_elements_by_type(obj, t):
    """Recursively finds all layout elements of a specific type."""
    found = []
    if isinstance(obj, t):
        found.append(obj)
    if hasattr(obj, "_objs"):
        for child in obj:
            found.extend(find_elements_by_type(child, t))
    return found


def font_traits(fontname: str) -> tuple[str, str, str]:
    """Returns (family, weight, style) guessed from a PDF font name."""
    name = SUBSET_PREFIX_RE.sub("", fontname or "")
    weight = "bold" if BOLD_RE.search(name) else "normal"
    style = "italic" if ITALIC_RE.search(name) else "normal"
    family = STYLE_SUFFIX_RE.sub("", name) or name
    return family, weight, style


def colour_string(char) -> str:
    """Converts a character's non-stroking colour to an rgb() string."""
    state = getattr(char, "graphicstate", None)
    colour = getattr(state, "ncolor", None) if state is not None else None
    if colour is None:
        return "rgb(0, 0, 0)"
    if isinstance(colour, (int, float)):
        values = (colour, colour, colour)
    elif isinstance(colour, (tuple, list)) and len(colour) == 3:
        values = colour
    elif isinstance(colour, (tuple, list)) and len(colour) == 4:
        c, m, y, k = colour
        values = ((1 - c) * (1 - k), (1 - m) * (1 - k), (1 - y) * (1 - k))
    elif isinstance(colour, (tuple, list)) and len(colour) == 1:
        values = (colour[0],) * 3
    else:
        return "rgb(0, 0, 0)"
    try:
        r, g, b = (int(round(max(0.0, min(1.0, float(v))) * 255)) for v in values)
    except (TypeError, ValueError):
        return "rgb(0, 0, 0)"
    return f"rgb({r}, {g}, {b})"


def _run_key(char):
    return (char.fontname, round(char.size, 1), colour_string(char))


def _line_runs(line) -> list[list]:
    """Splits a text line into runs of same-font, adjacent characters."""
    runs = []
    current = []
    for char in line:
        if not isinstance(char, LTChar):
            continue
        if current:
            prev = current[-1]
            gap = char.x0 - prev.x1
            if _run_key(char) != _run_key(prev) or gap > prev.size * RUN_GAP_FACTOR:
                runs.append(current)
                current = []
        current.append(char)
    if current:
        runs.append(current)
    return runs


def layout_to_fragments(layout, start_id: int = 0) -> tuple[list[RawFragment], Rect]:
    """Converts one pdfminer LTPage into raw fragments and its page rect."""
    page_height = layout.height
    fragments = []
    lines = sorted(find_elements_by_type(layout, LTTextLine), key=lambda x: (-x.y1, x.x0))
    for line in lines:
        for run in _line_runs(line):
            chars = [c for c in run if c.get_text().strip()]
            text = "".join(c.get_text() for c in run).strip()
            if not chars or not text:
                continue
            family, weight, style = font_traits(chars[0].fontname)
            fragments.append(
                RawFragment(
                    rect=Rect(
                        min(c.x0 for c in chars),
                        page_height - max(c.y1 for c in chars),
                        max(c.x1 for c in chars),
                        page_height - min(c.y0 for c in chars),
                    ),
                    text=text,
                    font_family=family,
                    font_size=chars[0].size,
                    font_weight=weight,
                    font_style=style,
                    color=colour_string(chars[0]),
                    fid=start_id + len(fragments),
                )
            )
    return fragments, Rect(0, 0, layout.width, layout.height)


def iter_page_fragments(pdf_path: str, pages: set | None = None):
    """Yields (page_number, fragments, page_rect) for the selected pages."""
    if not os.path.exists(pdf_path):
        raise FileNotFoundError(f"PDF file not found: {pdf_path}")
    selected = sorted(pages) if pages else None
    page_numbers = [p - 1 for p in selected] if selected else None
    # pdfminer numbers the pages it processes sequentially, so map them back.
    for index, layout in enumerate(extract_pages(pdf_path, page_numbers=page_numbers)):
        number = selected[index] if selected else index + 1
        fragments, page_rect = layout_to_fragments(layout)
        log.info("Page %d: %d fragment(s) extracted.", number, len(fragments))
        yield number, fragments, page_rect


def extract_page_fragments(pdf_path: str, page_number: int) -> tuple[list[RawFragment], Rect]:
    """Returns the raw fragments and page rect of one (1-based) page."""
    for _, fragments, page_rect in iter_page_fragments(pdf_path, {page_number}):
        return fragments, page_rect
    raise ValueError(f"Page {page_number} not found in {pdf_path}")
