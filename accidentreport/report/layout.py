from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Iterable

from reportlab.lib import colors
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfgen.canvas import Canvas

from .fonts import EmbeddedFontSet
from .segmentation import TextRun, segment


logger = logging.getLogger(__name__)

PAGE_WIDTH = 595
PAGE_HEIGHT = 842
PAGE_SIZE = (PAGE_WIDTH, PAGE_HEIGHT)

FIRST_PAGE_TOP = PAGE_HEIGHT - 50
CONTINUATION_TOP = PAGE_HEIGHT - 80
HEADER_CLEARANCE = 50
BOTTOM_MARGIN = 120
LEFT_MARGIN = 50
WRAP_LINE_PITCH = 20

BLACK = colors.Color(0, 0, 0)
DARK_GREY = colors.Color(0.3, 0.3, 0.3)
GREY = colors.Color(0.5, 0.5, 0.5)
RULE_GREY = colors.Color(0.8, 0.8, 0.8)

_WRAP_TOKEN = re.compile(r'\s+|\S+')


def format_us_date(dt: datetime) -> str:
    return f'{dt.month}/{dt.day}/{dt.year}'


def format_thai_date(dt: datetime) -> str:
    # Buddhist era
    return f'{dt.day}/{dt.month}/{dt.year + 543}'


def format_us_datetime(dt: datetime) -> str:
    hour = dt.hour % 12 or 12
    meridiem = 'AM' if dt.hour < 12 else 'PM'
    return f'{format_us_date(dt)}, {hour}:{dt.minute:02d}:{dt.second:02d} {meridiem}'


def format_thai_datetime(dt: datetime) -> str:
    return f'{format_thai_date(dt)} {dt.hour:02d}:{dt.minute:02d}:{dt.second:02d}'


def wrap_text(text: str, font_name: str, size: float, max_width: float) -> list[str]:
    """Greedy word wrap; words wider than the line are broken by character."""
    lines: list[str] = []
    current = ''

    def _width(value: str) -> float:
        return pdfmetrics.stringWidth(value, font_name, size)

    for token in _WRAP_TOKEN.findall(text):
        candidate = current + token
        if _width(candidate) <= max_width:
            current = candidate
            continue
        if token.isspace():
            if current:
                lines.append(current.rstrip())
            current = ''
            continue
        if current.strip():
            lines.append(current.rstrip())
        current = ''
        for char in token:
            if current and _width(current + char) > max_width:
                lines.append(current)
                current = char
            else:
                current += char

    if current.strip():
        lines.append(current.rstrip())
    return lines


class LayoutCursor:
    """Write position over a growing sequence of A4 pages.

    Every drawing call goes through ``ensure_space`` first; a block that would end
    below ``BOTTOM_MARGIN`` closes the page with a footer and opens a new one with
    a header.
    """

    def __init__(
        self,
        canvas: Canvas,
        fonts: EmbeddedFontSet,
        *,
        report_id: str,
        brand_name: str,
        generated_at: datetime,
    ) -> None:
        self.canvas = canvas
        self.fonts = fonts
        self.report_id = report_id
        self.brand_name = brand_name
        self.generated_at = generated_at
        self.width = PAGE_WIDTH
        self.height = PAGE_HEIGHT
        self.y: float = FIRST_PAGE_TOP
        self.page_number = 1

    def ensure_space(self, required_height: float) -> bool:
        """Break to a new page if ``required_height`` does not fit; return True on a break."""
        if self.y - required_height >= BOTTOM_MARGIN:
            return False
        self.draw_footer()
        self.canvas.showPage()
        self.page_number += 1
        self.y = CONTINUATION_TOP
        self.draw_header()
        self.y -= HEADER_CLEARANCE
        logger.debug('Report %s: page break to page %s', self.report_id, self.page_number)
        return True

    def move_down(self, amount: float) -> None:
        self.y -= amount

    def draw_text(
        self,
        text: str,
        *,
        x: float,
        size: float,
        font: str | None = None,
        color=BLACK,
        y: float | None = None,
    ) -> float:
        """Draw one line in a single font and return the x position after it."""
        font_name = font or self.fonts.latin
        self.canvas.setFillColor(color)
        self.canvas.setFont(font_name, size)
        self.canvas.drawString(x, self.y if y is None else y, text)
        return x + pdfmetrics.stringWidth(text, font_name, size)

    def draw_runs(
        self,
        runs: Iterable[TextRun],
        *,
        x: float,
        size: float,
        color=BLACK,
    ) -> float:
        """Draw script runs side by side on the current line, each in its own font."""
        cursor_x = x
        for run in runs:
            cursor_x = self.draw_text(
                run.text,
                x=cursor_x,
                size=size,
                font=self.fonts.for_role(run.font_role),
                color=color,
            )
        return cursor_x

    def draw_mixed(self, text: str, *, x: float, size: float, color=BLACK) -> float:
        return self.draw_runs(segment(text), x=x, size=size, color=color)

    def draw_wrapped(
        self,
        text: str,
        *,
        x: float,
        max_width: float,
        size: float,
        font: str | None = None,
        color=BLACK,
        line_pitch: float = WRAP_LINE_PITCH,
    ) -> None:
        font_name = font or self.fonts.latin
        for paragraph in text.splitlines() or ['']:
            for line in wrap_text(paragraph, font_name, size, max_width):
                self.ensure_space(line_pitch + 5)
                self.draw_text(line, x=x, size=size, font=font_name, color=color)
                self.move_down(line_pitch)

    def draw_image(self, image, *, x: float, width: float, height: float) -> None:
        self.canvas.drawImage(image, x, self.y - height, width=width, height=height, mask='auto')

    def draw_rule(self, y: float) -> None:
        self.canvas.setStrokeColor(RULE_GREY)
        self.canvas.setLineWidth(1)
        self.canvas.line(LEFT_MARGIN, y, self.width - LEFT_MARGIN, y)

    def draw_header(self) -> None:
        bold = self.fonts.bold
        latin = self.fonts.latin
        right = self.width
        self.draw_text(f'ACCIDENT REPORT {self.report_id}', x=LEFT_MARGIN, y=800, size=14, font=bold)
        self.draw_text(f'Page {self.page_number}', x=right - 100, y=800, size=12, font=bold, color=GREY)
        self.draw_text(f'รายงานอุบัติเหตุ {self.report_id}', x=LEFT_MARGIN, y=785, size=12, font=latin, color=DARK_GREY)
        self.draw_text(f'หน้า {self.page_number}', x=right - 80, y=785, size=10, font=latin, color=GREY)
        self.draw_rule(770)

    def draw_footer(self) -> None:
        latin = self.fonts.latin
        right = self.width
        self.draw_rule(60)
        self.draw_text(f'Generated by {self.brand_name}', x=LEFT_MARGIN, y=45, size=10, font=latin, color=GREY)
        self.draw_text(f'สร้างโดย {self.brand_name}', x=LEFT_MARGIN, y=30, size=10, font=latin, color=GREY)
        self.draw_text(format_us_date(self.generated_at), x=right - 150, y=45, size=10, font=latin, color=GREY)
        self.draw_text(format_thai_date(self.generated_at), x=right - 150, y=30, size=10, font=latin, color=GREY)

    def finish(self) -> None:
        self.draw_footer()
        self.canvas.showPage()
