"""
ptlayout_lib/snapshot.py: Normalizes raw fragments into immutable Fragment records.

The snapshot is the only place where device units, loose color strings and
CSS-like weights are interpreted; everything downstream works on the
normalized map returned by `build_snapshot`.
"""
import logging
import re

from .models import Fragment, FragmentStyle, MathContext, RawFragment

log = logging.getLogger("ptlayout.snapshot")

DEFAULT_FONT_SIZE = 12.0

MATH_FONT_RE = re.compile(r"math|cambria|stix|asana|euler|latin modern", re.IGNORECASE)
MATH_CHAR_RE = re.compile(
    r"[=+\-−×÷√∫∑∏∞Δαβγδθλμρστφψω±≤≥≠≈≡%‰∀∃∈∋∩∪⊂⊃⊆⊇⊕⊗⊥⇒⇔→←↑↓↔∴≅⊢⊨]"
    r"|[\u0370-\u03FF\u2070-\u209F]"
)
RGB_RE = re.compile(r"rgba?\(\s*(\d+)[,\s]+(\d+)[,\s]+(\d+)", re.IGNORECASE)
HEX_RE = re.compile(r"^#(?:[0-9a-f]{3}){1,2}$", re.IGNORECASE)


def parse_color(color) -> tuple[int, int, int]:
    """Parses rgb()/rgba()/#rgb/#rrggbb strings or RGB triples; black otherwise."""
    if isinstance(color, (tuple, list)) and len(color) >= 3:
        try:
            return tuple(int(round(float(c))) for c in color[:3])
        except (TypeError, ValueError):
            return (0, 0, 0)
    if not isinstance(color, str) or not color:
        return (0, 0, 0)
    m = RGB_RE.search(color)
    if m:
        return (int(m.group(1)), int(m.group(2)), int(m.group(3)))
    hex_str = color.strip().lower()
    if HEX_RE.match(hex_str):
        if len(hex_str) == 4:
            return tuple(int(ch * 2, 16) for ch in hex_str[1:])
        return (int(hex_str[1:3], 16), int(hex_str[3:5], 16), int(hex_str[5:7], 16))
    return (0, 0, 0)


def _clamp_weight(value) -> int:
    return min(900, max(100, int(value)))


def normalize_weight(weight) -> int:
    """Maps a CSS-like font weight to 100-900; unknown values become 400."""
    if isinstance(weight, bool):
        return 400
    if isinstance(weight, (int, float)):
        return _clamp_weight(weight)
    text = str(weight or "").strip().lower()
    m = re.match(r"^[+-]?\d+", text)
    if m:
        return _clamp_weight(m.group(0))
    if text == "bold":
        return 700
    return 400


def is_math_font(font_family: str) -> bool:
    return bool(MATH_FONT_RE.search(font_family or ""))


def is_math_text(text: str, font_family: str) -> bool:
    if not text:
        return False
    if is_math_font(font_family):
        return True
    return bool(MATH_CHAR_RE.search(text))


def math_context(text: str, font_family: str) -> MathContext:
    if is_math_text(text, font_family):
        if "=" in text or "∑" in text:
            return MathContext.EQUATION
        return MathContext.INLINE
    return MathContext.NONE


def style_signature(family, size, weight, style, rgb) -> str:
    rounded = round(size * 2) / 2
    return "|".join(
        [family, f"{rounded:.1f}", str(weight), style, f"{rgb[0]},{rgb[1]},{rgb[2]}"]
    )


def build_snapshot(raw_fragments: list[RawFragment], scale: float = 1.0) -> dict:
    """Builds the invocation-scoped fid -> Fragment map.

    Geometry and font size are divided by `scale`. Fragments whose scaled
    rect has non-positive width or height are dropped. Fragments without an
    explicit `fid` are keyed by their input index.
    """
    scale = scale if scale and scale > 0 else 1.0
    snapshot = {}
    dropped = 0
    for index, raw in enumerate(raw_fragments or []):
        rect = raw.rect.scaled(scale)
        if rect.width <= 0 or rect.height <= 0:
            dropped += 1
            continue
        fid = raw.fid if raw.fid is not None else index
        if fid in snapshot:
            log.warning("Duplicate fragment id %r; keeping the first occurrence.", fid)
            continue
        size = (raw.font_size if raw.font_size and raw.font_size > 0 else DEFAULT_FONT_SIZE)
        size /= scale
        weight = normalize_weight(raw.font_weight)
        rgb = parse_color(raw.color)
        family = raw.font_family or ""
        font_style = raw.font_style or "normal"
        text = raw.text or ""
        style = FragmentStyle(
            family=family,
            size=size,
            weight=weight,
            style=font_style,
            color_rgb=rgb,
            direction=(raw.direction or "ltr").lower(),
            signature=style_signature(family, size, weight, font_style, rgb),
        )
        snapshot[fid] = Fragment(
            fid=fid,
            rect=rect,
            text=text,
            style=style,
            is_math=is_math_text(text, family),
            math_context=math_context(text, family),
        )

    if dropped:
        log.debug("Dropped %d fragment(s) with empty geometry.", dropped)
    log.debug("Snapshot built with %d fragment(s).", len(snapshot))
    return snapshot
