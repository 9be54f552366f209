"""Excel export for the revision timetable (openpyxl)."""

from datetime import date, timedelta
from pathlib import Path
from typing import Optional

from models.schedule import Schedule, ScheduleEntry
from planner.validator import RejectionLedger

from export.helpers import (
    COLORS, DAY_NAMES, TYPE_LABELS, end_clock, entry_color, format_entry,
    group_by_week, minutes_by_type, today_str, week_label,
)


class ExcelExporter:
    """Exports a Schedule to an Excel file: overview, one sheet per ISO week, removed entries."""

    # Column widths (Excel units)
    COL_DAY_W = 30

    # Row heights (points)
    ROW_HEADER_H = 22
    ROW_ENTRY_H = 42
    ROW_BREAK_H = 14

    def __init__(self, schedule: Schedule, ledger: Optional[RejectionLedger] = None,
                 title: str = "Revision timetable"):
        self.schedule = schedule
        self.ledger = ledger
        self.title = title

    # ─── Public API ───────────────────────────────────────────────────────────

    def export(self, output_path: Path) -> None:
        """Writes the workbook with all sheets."""
        from openpyxl import Workbook
        wb = Workbook()
        wb.remove(wb.active)   # drop the default empty sheet

        self._sheet_overview(wb)
        for monday, days in group_by_week(self.schedule).items():
            self._sheet_week(wb, monday, days)
        if self.ledger is not None and (self.ledger.rejections or self.ledger.overlaps):
            self._sheet_removed(wb)

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        wb.save(output_path)

    # ─── Style helpers ────────────────────────────────────────────────────────

    def _fill(self, hex_color: str):
        from openpyxl.styles import PatternFill
        return PatternFill(start_color=hex_color, end_color=hex_color, fill_type="solid")

    def _align(self, wrap: bool = True, horizontal: str = "left"):
        from openpyxl.styles import Alignment
        return Alignment(wrap_text=wrap, horizontal=horizontal, vertical="top")

    def _thin_border(self):
        from openpyxl.styles import Border, Side
        s = Side(border_style="thin", color="BBBBBB")
        return Border(left=s, right=s, top=s, bottom=s)

    def _header_row(self, ws, row: int, headers: list[str]) -> None:
        from openpyxl.styles import Font
        fill = self._fill(COLORS["header"])
        border = self._thin_border()
        for col, text in enumerate(headers, 1):
            c = ws.cell(row=row, column=col, value=text)
            c.fill = fill
            c.font = Font(bold=True, color="FFFFFF", size=10)
            c.alignment = self._align(wrap=False, horizontal="center")
            c.border = border
        ws.row_dimensions[row].height = self.ROW_HEADER_H

    # ─── Sheet: overview ──────────────────────────────────────────────────────

    def _sheet_overview(self, wb) -> None:
        """Title block, minutes per entry type, then one row per entry."""
        from openpyxl.styles import Font
        ws = wb.create_sheet(title="Overview", index=0)
        border = self._thin_border()

        row = 1
        ws.cell(row=row, column=1, value=self.title).font = Font(bold=True, size=14)
        row += 1
        ws.cell(row=row, column=1, value=f"Created: {today_str()}")
        dates = self.schedule.dates()
        if dates:
            ws.cell(row=row, column=3, value=f"{dates[0].isoformat()} → {dates[-1].isoformat()}")
        ws.cell(row=row, column=5, value=f"Entries: {self.schedule.entry_count}")
        row += 1
        if self.ledger is not None:
            ws.cell(row=row, column=1, value="Validation").font = Font(bold=True)
            ws.cell(row=row, column=3, value=self.ledger.summary().message)
            row += 1
        row += 1

        totals = minutes_by_type([e for _, e in self.schedule.iter_entries()])
        for entry_type, label in TYPE_LABELS.items():
            if entry_type not in totals:
                continue
            ws.cell(row=row, column=1, value=label).font = Font(bold=True)
            c = ws.cell(row=row, column=3, value=f"{totals[entry_type]} min")
            c.fill = self._fill(COLORS[entry_type.value])
            row += 1
        row += 1

        headers = ["Date", "Start", "End", "Subject", "Topic", "Type", "Notes"]
        self._header_row(ws, row, headers)
        first = row
        row += 1
        for values, (_, entry) in zip(entry_rows(self.schedule), self.schedule.iter_entries()):
            for col, value in enumerate(values, 1):
                c = ws.cell(row=row, column=col, value=value)
                c.border = border
            if entry.overlap_warning:
                ws.cell(row=row, column=5).fill = self._fill(COLORS["overlap"])
            row += 1
        ws.auto_filter.ref = f"A{first}:G{max(first, row - 1)}"

        for col, width in zip("ABCDEFG", (12, 7, 7, 18, 32, 14, 50)):
            ws.column_dimensions[col].width = width

    # ─── Sheet: week ──────────────────────────────────────────────────────────

    def _sheet_week(self, wb, monday: date, days: dict[date, list[ScheduleEntry]]) -> None:
        """Seven day columns; each entry is one cell, stacked in start-time order."""
        from openpyxl.styles import Font
        from openpyxl.utils import get_column_letter

        ws = wb.create_sheet(title=week_label(monday)[:31])
        week = [monday + timedelta(days=i) for i in range(7)]
        self._header_row(ws, 1, [f"{DAY_NAMES[i]} {d.strftime('%d.%m')}" for i, d in enumerate(week)])

        border = self._thin_border()
        depth = max((len(days.get(d, [])) for d in week), default=0)
        for col, day in enumerate(week, 1):
            ws.column_dimensions[get_column_letter(col)].width = self.COL_DAY_W
            for i, entry in enumerate(days.get(day, [])):
                row = i + 2
                c = ws.cell(row=row, column=col, value=format_entry(entry, with_notes=True))
                c.fill = self._fill(entry_color(entry))
                c.alignment = self._align()
                c.border = border
                c.font = Font(size=8, italic=entry.is_break)

        for row in range(2, depth + 2):
            is_break_row = all(
                not days.get(d) or len(days[d]) < row - 1 or days[d][row - 2].is_break
                for d in week
            )
            ws.row_dimensions[row].height = self.ROW_BREAK_H if is_break_row else self.ROW_ENTRY_H

    # ─── Sheet: removed ───────────────────────────────────────────────────────

    def _sheet_removed(self, wb) -> None:
        ws = wb.create_sheet(title="Removed")
        border = self._thin_border()
        self._header_row(ws, 1, ["Date", "Code", "Topic", "Reason"])

        row = 2
        records = [(r, False) for r in self.ledger.rejections]
        records += [(r, True) for r in self.ledger.overlaps]
        for rec, is_overlap in records:
            values = [rec.day, rec.code.value, rec.topic, rec.reason]
            for col, value in enumerate(values, 1):
                c = ws.cell(row=row, column=col, value=value)
                c.border = border
                c.alignment = self._align()
            if is_overlap:
                ws.cell(row=row, column=2).fill = self._fill(COLORS["overlap"])
            row += 1

        ws.column_dimensions["A"].width = 12
        ws.column_dimensions["B"].width = 24
        ws.column_dimensions["C"].width = 30
        ws.column_dimensions["D"].width = 60


def entry_rows(schedule: Schedule) -> list[list]:
    """Flat rows (date, start, end, subject, topic, type, notes) for tabular exports."""
    rows = []
    for day, e in schedule.iter_entries():
        rows.append([
            day.isoformat(), e.time or "", end_clock(e), e.subject, e.topic,
            TYPE_LABELS.get(e.type, e.type.value), e.notes or "",
        ])
    return rows
