"""PDF export for the revision timetable (fpdf2)."""

from datetime import date, timedelta
from pathlib import Path

from models.schedule import Schedule, ScheduleEntry

from export.helpers import (
    COLORS, DAY_NAMES, entry_color, format_entry, group_by_week, hex_to_rgb,
    today_str, week_label,
)


def _pdf_safe(text: str) -> str:
    """Replaces characters the fpdf2 built-in fonts (latin-1) cannot render."""
    return (
        text
        .replace("—", " - ")   # em dash
        .replace("–", "-")      # en dash
        .replace("→", "->")     # arrow
        .replace("⚠", "!")      # warning sign
        .replace("★", "*")      # star
    )


# ─── A4 landscape dimensions ──────────────────────────────────────────────────
# Landscape A4: 297 × 210 mm
# Usable width (margin 10 left+right): 277 mm
# Columns: 7 × day (39.5) = 276.5 mm

_DAY_W = 39.5
_ROW_HEADER_H = 7     # mm
_MIN_BLOCK_H = 9      # mm, entry block
_BREAK_BLOCK_H = 4    # mm
_FONT_HEADER = 8      # pt
_FONT_CONTENT = 6     # pt
_LINE_H = 3.0         # mm per line at 6pt
_TOP = 22.0
_BOTTOM = 192.0


class _SchedulePdf:
    """Thin wrapper around fpdf.FPDF for timetable pages."""

    def __init__(self, title: str):
        from fpdf import FPDF

        class _Pdf(FPDF):
            def __init__(inner, doc_title):
                super().__init__(orientation="L", unit="mm", format="A4")
                inner._doc_title = doc_title
                inner._page_title = ""
                inner.alias_nb_pages()
                inner.set_auto_page_break(auto=False)
                inner.set_margins(left=10, top=22, right=10)

            def header(inner):
                inner.set_font("Helvetica", "B", 11)
                inner.set_xy(10, 8)
                inner.cell(130, 7, _pdf_safe(inner._doc_title), border=0, align="L")
                inner.cell(0, 7, _pdf_safe(inner._page_title), border=0, align="R")
                inner.ln(0)
                inner.set_draw_color(150, 150, 150)
                inner.line(10, 18, inner.w - 10, 18)

            def footer(inner):
                inner.set_y(-14)
                inner.set_font("Helvetica", "I", 7)
                inner.cell(
                    0, 8,
                    f"{today_str()}  |  Page {inner.page_no()}/{{nb}}",
                    border=0, align="C",
                )

        self._pdf = _Pdf(title)

    def set_page_title(self, title: str) -> None:
        self._pdf._page_title = title

    def add_page(self) -> None:
        self._pdf.add_page()

    def save(self, path: Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self._pdf.output(str(path))

    # ─── Cell drawing ─────────────────────────────────────────────────────────

    def draw_cell(
        self,
        x: float, y: float,
        w: float, h: float,
        text: str = "",
        bg_hex: str | None = None,
        bold: bool = False,
        font_size: int = _FONT_CONTENT,
        text_color: tuple[int, int, int] = (0, 0, 0),
        align: str = "L",
        max_lines: int = 3,
    ) -> None:
        """Draws a cell with background, border and up to `max_lines` of text."""
        pdf = self._pdf

        if bg_hex:
            r, g, b = hex_to_rgb(bg_hex)
            pdf.set_fill_color(r, g, b)
            pdf.rect(x, y, w, h, style="F")

        pdf.set_draw_color(180, 180, 180)
        pdf.rect(x, y, w, h, style="D")

        if text:
            pdf.set_font("Helvetica", "B" if bold else "", font_size)
            pdf.set_text_color(*text_color)

            lines = [ln for ln in _pdf_safe(text).split("\n") if ln][:max_lines]
            y_text = y + max(0.5, (h - len(lines) * _LINE_H) / 2)
            for line in lines:
                pdf.set_xy(x + 0.5, y_text)
                pdf.cell(w - 1, _LINE_H, line[:34], border=0, align=align)
                y_text += _LINE_H

            pdf.set_text_color(0, 0, 0)

    def draw_header_row(self, x: float, y: float, labels: list[str]) -> float:
        """Draws the day header row and returns the y position after it."""
        cx = x
        for label in labels:
            self.draw_cell(
                cx, y, _DAY_W, _ROW_HEADER_H, label,
                bg_hex=COLORS["header"],
                bold=True,
                font_size=_FONT_HEADER,
                text_color=(255, 255, 255),
                align="C",
            )
            cx += _DAY_W
        return y + _ROW_HEADER_H


class PdfExporter:
    """Exports a Schedule to a PDF with one landscape page per ISO week."""

    def __init__(self, schedule: Schedule, title: str = "Revision timetable"):
        self.schedule = schedule
        self.title = title
        self._table_x = 10.0

    def export(self, output_path: Path) -> None:
        pdf = _SchedulePdf(self.title)
        weeks = group_by_week(self.schedule)
        if not weeks:
            pdf.set_page_title("no entries")
            pdf.add_page()
        for monday, days in weeks.items():
            minutes = sum(
                e.duration or 0 for entries in days.values() for e in entries if not e.is_break
            )
            pdf.set_page_title(
                f"{week_label(monday)} | {monday.isoformat()} - "
                f"{(monday + timedelta(days=6)).isoformat()} | {minutes} min"
            )
            pdf.add_page()
            self._draw_week(pdf, monday, days)
        pdf.save(output_path)

    def _draw_week(self, pdf: _SchedulePdf, monday: date,
                   days: dict[date, list[ScheduleEntry]]) -> None:
        """Day columns with one block per entry, stacked in start-time order."""
        week = [monday + timedelta(days=i) for i in range(7)]
        labels = [f"{DAY_NAMES[i]} {d.strftime('%d.%m')}" for i, d in enumerate(week)]
        y0 = pdf.draw_header_row(self._table_x, _TOP, labels)

        for col, day in enumerate(week):
            x = self._table_x + col * _DAY_W
            y = y0
            entries = days.get(day, [])
            for i, entry in enumerate(entries):
                h = _BREAK_BLOCK_H if entry.is_break else _MIN_BLOCK_H
                if y + h > _BOTTOM:
                    # Column full: note how many entries did not fit
                    pdf.draw_cell(x, y, _DAY_W, _BREAK_BLOCK_H,
                                  f"+{len(entries) - i} more", align="C")
                    break
                pdf.draw_cell(
                    x, y, _DAY_W, h, format_entry(entry),
                    bg_hex=entry_color(entry),
                    max_lines=1 if entry.is_break else 2,
                )
                y += h
