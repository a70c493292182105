"""
ptlayout_lib/models.py: Data models shared by the layout reconstruction engine.

Coordinates are logical page units with the origin at the top-left corner and
y growing downwards.
"""
from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class Rect:
    """An axis-aligned rectangle in top-down page coordinates."""

    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def center_x(self) -> float:
        return (self.left + self.right) / 2

    @property
    def center_y(self) -> float:
        return (self.top + self.bottom) / 2

    @property
    def area(self) -> float:
        return max(0.0, self.width) * max(0.0, self.height)

    def scaled(self, factor: float) -> "Rect":
        """Returns this rect with every coordinate divided by `factor`."""
        return Rect(
            self.left / factor,
            self.top / factor,
            self.right / factor,
            self.bottom / factor,
        )

    def union(self, other: "Rect") -> "Rect":
        return Rect(
            min(self.left, other.left),
            min(self.top, other.top),
            max(self.right, other.right),
            max(self.bottom, other.bottom),
        )

    def contains(self, other: "Rect", tol: float = 0.0) -> bool:
        return (
            other.left >= self.left - tol
            and other.right <= self.right + tol
            and other.top >= self.top - tol
            and other.bottom <= self.bottom + tol
        )

    def intersection_area(self, other: "Rect") -> float:
        w = min(self.right, other.right) - max(self.left, other.left)
        h = min(self.bottom, other.bottom) - max(self.top, other.top)
        return w * h if w > 0 and h > 0 else 0.0

    def horizontal_overlap(self, other: "Rect") -> float:
        return max(0.0, min(self.right, other.right) - max(self.left, other.left))


class MathContext(str, Enum):
    EQUATION = "equation"
    INLINE = "inline"
    NONE = "none"


@dataclass(frozen=True)
class RawFragment:
    """A positioned text fragment as delivered by the rendering layer.

    `rect` and `font_size` are in device pixels; weight and color keep whatever
    loose representation the source used (e.g. "bold", "700", "#333",
    "rgb(0, 0, 0)" or an RGB triple).
    """

    rect: Rect
    text: str
    font_family: str = ""
    font_size: float | None = None
    font_weight: str | int = "normal"
    font_style: str = "normal"
    color: str | tuple = "rgb(0, 0, 0)"
    direction: str = "ltr"
    fid: int | str | None = None


@dataclass(frozen=True)
class FragmentStyle:
    family: str
    size: float
    weight: int
    style: str
    color_rgb: tuple[int, int, int]
    direction: str = "ltr"
    signature: str = ""


@dataclass(frozen=True)
class Fragment:
    """A normalized fragment, immutable for the rest of the pipeline."""

    fid: int | str
    rect: Rect
    text: str
    style: FragmentStyle
    is_math: bool = False
    math_context: MathContext = MathContext.NONE

    @property
    def font_size(self) -> float:
        return self.style.size

    @property
    def is_rtl(self) -> bool:
        return self.style.direction == "rtl"


@dataclass(frozen=True)
class VerticalStrip:
    """A vertical whitespace channel separating columns."""

    left: float
    right: float
    top: float
    bottom: float
    confidence: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def center(self) -> float:
        return (self.left + self.right) / 2


@dataclass(frozen=True)
class HorizontalBand:
    """A horizontal whitespace separator (or page-wide gutter)."""

    y: float
    height: float
    left: float
    right: float
    confidence: float

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> float:
        return self.y + self.height / 2


@dataclass(frozen=True)
class LayoutSegment:
    """A vertical slice of the page with a consistent column count."""

    top: float
    bottom: float
    left: float
    right: float
    columns: int = 1

    @property
    def height(self) -> float:
        return self.bottom - self.top


@dataclass(frozen=True)
class GridLine:
    position: float
    extent: float
    strength: float


@dataclass
class GridAnalysis:
    horizontal_lines: list[GridLine] = field(default_factory=list)
    vertical_lines: list[GridLine] = field(default_factory=list)


@dataclass
class GapAnalysis:
    """Everything the gap detector found on one page."""

    line_height: float = 15.0
    strips: list[VerticalStrip] = field(default_factory=list)
    bands: list[HorizontalBand] = field(default_factory=list)
    boundaries: list[float] = field(default_factory=list)
    columns: list[tuple[float, float]] = field(default_factory=list)


@dataclass
class Paragraph:
    """An ordered group of fragments returned to the caller."""

    fragment_ids: list
    bbox: Rect
    text: str = ""
    runs: list[tuple] = field(default_factory=list)


@dataclass
class ColumnReport:
    """Column diagnostics; informational only."""

    columns: int = 1
    edge_columns: list[tuple[float, float]] = field(default_factory=list)
    gap_columns: list[tuple[float, float]] = field(default_factory=list)
    vertical_gaps: list[float] = field(default_factory=list)
    horizontal_gaps: list[float] = field(default_factory=list)


@dataclass
class LayoutResult:
    paragraphs: list[Paragraph] = field(default_factory=list)
    column_report: ColumnReport = field(default_factory=ColumnReport)
    regions: list[LayoutSegment] = field(default_factory=list)
    strips: list[VerticalStrip] = field(default_factory=list)
    bands: list[HorizontalBand] = field(default_factory=list)
    line_height: float = 15.0
    fragments: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Plain-data view used for JSON output."""
        return {
            "line_height": round(self.line_height, 2),
            "columns": self.column_report.columns,
            "vertical_gaps": [round(x, 2) for x in self.column_report.vertical_gaps],
            "horizontal_gaps": [
                round(y, 2) for y in self.column_report.horizontal_gaps
            ],
            "regions": [
                {"top": round(r.top, 2), "bottom": round(r.bottom, 2), "columns": r.columns}
                for r in self.regions
            ],
            "paragraphs": [
                {
                    "fragment_ids": list(p.fragment_ids),
                    "runs": [list(run) for run in p.runs],
                    "bbox": [
                        round(p.bbox.left, 2),
                        round(p.bbox.top, 2),
                        round(p.bbox.right, 2),
                        round(p.bbox.bottom, 2),
                    ],
                    "text": p.text,
                }
                for p in self.paragraphs
            ],
        }
