"""
ptlayout_lib/renderer.py: ASCII art view of a LayoutResult, for debugging.
"""
import string

from .models import LayoutResult, Rect

PARAGRAPH_MARKS = string.ascii_lowercase + string.digits


class ASCIIRenderer:
    """Renders paragraphs, strips, bands and region edges onto a text canvas.

    Each paragraph is filled with its own mark (a, b, c, ...), strips are drawn
    as '|', bands as '-', and region boundaries as '=' in the left margin.

    Args:
        width (int): The width of the ASCII canvas.
        height (int): The height of the ASCII canvas.
    """

    def __init__(self, width=80, height=50):
        self.width = width
        self.height = height

    def render(self, result: LayoutResult, page: Rect) -> str:
        canvas = [["." for _ in range(self.width)] for _ in range(self.height)]
        if page.width <= 0 or page.height <= 0:
            return "\n".join("".join(row) for row in canvas) + "\n"

        for band in result.bands:
            self._fill(canvas, page, Rect(band.left, band.y, band.right, band.bottom), "-")
        for i, para in enumerate(result.paragraphs):
            self._fill(canvas, page, para.bbox, PARAGRAPH_MARKS[i % len(PARAGRAPH_MARKS)])
        for strip in result.strips:
            col = self._col(page, strip.center)
            r0, r1 = self._row(page, strip.top), self._row(page, strip.bottom)
            for r in range(max(0, r0), min(self.height, r1 + 1)):
                if 0 <= col < self.width:
                    canvas[r][col] = "|"
        for region in result.regions[1:]:
            r = self._row(page, region.top)
            if 0 <= r < self.height:
                canvas[r][0] = "="
        return "\n".join("".join(row) for row in canvas) + "\n"

    def _col(self, page: Rect, x: float) -> int:
        return int((x - page.left) / page.width * self.width)

    def _row(self, page: Rect, y: float) -> int:
        return int((y - page.top) / page.height * self.height)

    def _fill(self, canvas, page: Rect, bbox: Rect, char: str):
        """Fills a region of the canvas with a character."""
        sc, ec = self._col(page, bbox.left), self._col(page, bbox.right)
        sr, er = self._row(page, bbox.top), self._row(page, bbox.bottom)
        for r in range(max(0, sr), min(self.height, er + 1)):
            for c in range(max(0, sc), min(self.width, ec + 1)):
                canvas[r][c] = char
