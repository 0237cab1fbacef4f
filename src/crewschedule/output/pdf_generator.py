"""PDF generation for weekly schedules.

This module creates printable PDF schedules showing:
- Every shift of the week, grouped by day, with cleaners and hours
- Status colours and double-booking markers
- A summary page with statistics, hours per cleaner and conflicts
"""

from io import BytesIO
from pathlib import Path
from typing import Optional, Union

from crewschedule.domain.models import (
    Conflict,
    ScheduleStats,
    ShiftEntry,
    ShiftStatus,
    parse_week_id,
)
from crewschedule.scheduling.conflicts import ConflictScanner
from crewschedule.scheduling.stats import StatsAggregator
from crewschedule.scheduling.store import sort_entries

# Color definitions (RGB tuples, 0-1 scale)
COLORS = {
    ShiftStatus.SCHEDULED: (0.4, 0.6, 0.85),  # Blue
    ShiftStatus.IN_PROGRESS: (0.95, 0.7, 0.3),  # Orange
    ShiftStatus.COMPLETED: (0.4, 0.7, 0.4),  # Green
    ShiftStatus.CANCELLED: (0.7, 0.7, 0.7),  # Gray
    "conflict": (0.9, 0.3, 0.3),  # Red
    "day_band": (0.93, 0.93, 0.97),  # Light blue-gray
}


class PDFGenerator:
    """Generates printable PDF week schedules.

    Example:
        >>> generator = PDFGenerator()
        >>> generator.generate("2024-01-01", store.get_week_schedule("2024-01-01"), "week.pdf")
    """

    def __init__(
        self,
        page_width: float = 792,  # Letter landscape width (11")
        page_height: float = 612,  # Letter landscape height (8.5")
        margin: float = 36,  # 0.5 inch margins
        stats_aggregator: Optional[StatsAggregator] = None,
        conflict_scanner: Optional[ConflictScanner] = None,
    ):
        self.page_width = page_width
        self.page_height = page_height
        self.margin = margin
        self.conflict_scanner = conflict_scanner or ConflictScanner()
        self.stats_aggregator = stats_aggregator or StatsAggregator(
            conflict_scanner=self.conflict_scanner
        )

    def generate(
        self,
        week_id: str,
        entries: list[ShiftEntry],
        output_path: Union[str, Path],
        include_summary: bool = True,
    ) -> None:
        """Generate PDF schedule and save to file.

        Args:
            week_id: Week being rendered.
            entries: Entries of the week.
            output_path: Path to save the PDF.
            include_summary: Whether to include the summary page.
        """
        try:
            from reportlab.lib.pagesizes import letter, landscape
            from reportlab.pdfgen import canvas
        except ImportError:
            raise ImportError(
                "reportlab is required for PDF generation. "
                "Install with: pip install reportlab"
            )

        c = canvas.Canvas(str(output_path), pagesize=landscape(letter))
        self._draw_document(c, week_id, entries, include_summary)
        c.save()

    def generate_to_buffer(
        self,
        week_id: str,
        entries: list[ShiftEntry],
        include_summary: bool = True,
    ) -> BytesIO:
        """Generate PDF and return as bytes buffer.

        Args:
            week_id: Week being rendered.
            entries: Entries of the week.
            include_summary: Whether to include the summary page.

        Returns:
            BytesIO buffer containing PDF data.
        """
        try:
            from reportlab.lib.pagesizes import letter, landscape
            from reportlab.pdfgen import canvas
        except ImportError:
            raise ImportError(
                "reportlab is required for PDF generation. "
                "Install with: pip install reportlab"
            )

        buffer = BytesIO()
        c = canvas.Canvas(buffer, pagesize=landscape(letter))
        self._draw_document(c, week_id, entries, include_summary)
        c.save()
        buffer.seek(0)
        return buffer

    def _draw_document(
        self,
        c,
        week_id: str,
        entries: list[ShiftEntry],
        include_summary: bool,
    ) -> None:
        conflicts = self.conflict_scanner.detect_conflicts(entries)
        self._draw_schedule_pages(c, week_id, sort_entries(entries), conflicts)
        if include_summary:
            stats = self.stats_aggregator.calculate_schedule_stats(entries)
            self._draw_summary_page(c, week_id, stats, conflicts)

    def _draw_schedule_pages(
        self,
        c,
        week_id: str,
        entries: list[ShiftEntry],
        conflicts: list[Conflict],
    ) -> None:
        """Draw the shift listing, paginated."""
        conflicted = {e.id for conflict in conflicts for e in conflict.entries}

        row_height = 22
        header_height = 60
        footer_height = 40
        usable_height = self.page_height - 2 * self.margin - header_height - footer_height
        rows_per_page = max(1, int(usable_height / row_height))

        total_pages = max(1, (len(entries) + rows_per_page - 1) // rows_per_page)
        for page_index in range(total_pages):
            page_entries = entries[page_index * rows_per_page : (page_index + 1) * rows_per_page]

            self._draw_header(c, week_id, len(entries))
            y = self.page_height - self.margin - header_height
            self._draw_column_headers(c, y)

            if not page_entries:
                c.setFont("Helvetica-Oblique", 10)
                c.drawString(self.margin, y - row_height, "No shifts scheduled this week.")

            previous_day = None
            for entry in page_entries:
                y -= row_height
                self._draw_entry_row(
                    c,
                    entry,
                    y,
                    row_height - 4,
                    show_day=entry.day != previous_day,
                    has_conflict=entry.id in conflicted,
                )
                previous_day = entry.day

            self._draw_legend(c, self.margin, self.margin + 10)

            c.setFont("Helvetica", 9)
            c.drawCentredString(
                self.page_width / 2,
                self.margin - 10,
                f"Page {page_index + 1} of {total_pages}",
            )
            c.showPage()

    def _draw_header(self, c, week_id: str, entry_count: int) -> None:
        """Draw page header with week and title."""
        monday = parse_week_id(week_id)
        c.setFont("Helvetica-Bold", 16)
        c.drawString(
            self.margin,
            self.page_height - self.margin - 20,
            f"Weekly Schedule - Week of {monday.strftime('%A, %B %d, %Y')}",
        )

        c.setFont("Helvetica", 10)
        c.drawString(
            self.margin,
            self.page_height - self.margin - 35,
            f"Total Shifts: {entry_count}",
        )

    def _column_positions(self) -> dict[str, float]:
        x = self.margin
        return {
            "day": x,
            "time": x + 80,
            "client": x + 170,
            "cleaners": x + 400,
            "hours": x + 590,
            "status": x + 640,
        }

    def _draw_column_headers(self, c, y: float) -> None:
        cols = self._column_positions()
        c.setFont("Helvetica-Bold", 9)
        c.setFillColorRGB(0, 0, 0)
        c.drawString(cols["day"], y, "Day")
        c.drawString(cols["time"], y, "Time")
        c.drawString(cols["client"], y, "Client / Building")
        c.drawString(cols["cleaners"], y, "Cleaners")
        c.drawRightString(cols["hours"] + 30, y, "Hours")
        c.drawString(cols["status"], y, "Status")
        c.setStrokeColorRGB(0.5, 0.5, 0.5)
        c.line(self.margin, y - 4, self.page_width - self.margin, y - 4)

    def _draw_entry_row(
        self,
        c,
        entry: ShiftEntry,
        y: float,
        height: float,
        show_day: bool,
        has_conflict: bool,
    ) -> None:
        """Draw a single shift row."""
        cols = self._column_positions()
        text_y = y + height / 2 - 3

        if show_day:
            c.setFillColorRGB(*COLORS["day_band"])
            c.rect(self.margin, y, self.page_width - 2 * self.margin, height, fill=1, stroke=0)

        c.setFillColorRGB(0, 0, 0)
        if show_day:
            c.setFont("Helvetica-Bold", 9)
            c.drawString(cols["day"], text_y, entry.day.label)

        c.setFont("Helvetica", 9)
        if entry.start_time:
            c.drawString(cols["time"], text_y, f"{entry.start_time}-{entry.end_time}")
        else:
            c.drawString(cols["time"], text_y, "--")

        c.drawString(cols["client"], text_y, f"{entry.client_name} / {entry.building_name}"[:42])
        c.drawString(cols["cleaners"], text_y, ", ".join(entry.cleaner_names)[:34])
        c.drawRightString(cols["hours"] + 30, text_y, f"{entry.hours:.1f}")

        # Status chip
        c.setFillColorRGB(*COLORS.get(entry.status, (0.5, 0.5, 0.5)))
        c.rect(cols["status"], y + 2, 70, height - 4, fill=1, stroke=0)
        c.setFillColorRGB(0, 0, 0)
        c.setFont("Helvetica", 7)
        c.drawCentredString(cols["status"] + 35, text_y + 1, entry.status.value)

        if has_conflict:
            c.setFillColorRGB(*COLORS["conflict"])
            c.setFont("Helvetica-Bold", 9)
            c.drawString(cols["status"] + 75, text_y, "!")
            c.setFillColorRGB(0, 0, 0)

    def _draw_legend(self, c, x: float, y: float) -> None:
        """Draw legend for colors."""
        c.setFont("Helvetica-Bold", 8)
        c.setFillColorRGB(0, 0, 0)
        c.drawString(x, y, "Legend:")

        items = [
            (ShiftStatus.SCHEDULED, "Scheduled"),
            (ShiftStatus.IN_PROGRESS, "In progress"),
            (ShiftStatus.COMPLETED, "Completed"),
            (ShiftStatus.CANCELLED, "Cancelled"),
            ("conflict", "! Double booked"),
        ]

        c.setFont("Helvetica", 7)
        current_x = x + 45

        for key, label in items:
            c.setFillColorRGB(*COLORS.get(key, (0.5, 0.5, 0.5)))
            c.rect(current_x, y - 2, 12, 10, fill=1, stroke=1)
            c.setFillColorRGB(0, 0, 0)
            c.drawString(current_x + 15, y, label)
            current_x += 80

    def _draw_summary_page(
        self,
        c,
        week_id: str,
        stats: ScheduleStats,
        conflicts: list[Conflict],
    ) -> None:
        """Draw summary page with statistics and conflicts."""
        monday = parse_week_id(week_id)
        c.setFont("Helvetica-Bold", 16)
        c.setFillColorRGB(0, 0, 0)
        c.drawString(
            self.margin,
            self.page_height - self.margin - 20,
            f"Week Summary - {monday.strftime('%B %d, %Y')}",
        )

        y = self.page_height - self.margin - 60

        c.setFont("Helvetica-Bold", 12)
        c.drawString(self.margin, y, "Overview")
        y -= 20

        c.setFont("Helvetica", 10)
        lines = [
            f"Total Shifts: {stats.total_entries}",
            f"Total Hours: {stats.total_hours:.1f}",
            f"Completed: {stats.completed_entries}   Pending: {stats.pending_entries}",
            f"Utilization: {stats.utilization_rate:.1f}%",
            f"Average Hours per Cleaner: {stats.average_hours_per_cleaner:.1f}",
            f"Payroll: ${stats.total_payroll:,.2f} "
            f"(hourly ${stats.total_hourly_amount:,.2f}, flat ${stats.total_flat_rate_amount:,.2f})",
            f"Overtime: {stats.overtime_hours:.1f}h (${stats.overtime_amount:,.2f})",
        ]
        for line in lines:
            c.drawString(self.margin + 20, y, line)
            y -= 15

        y -= 20
        c.setFont("Helvetica-Bold", 12)
        c.drawString(self.margin, y, "Hours per Cleaner")
        y -= 10
        self._draw_hours_chart(c, stats.hours_per_cleaner, self.margin + 80, y - 150, 300, 140)

        # Conflicts listed to the right of the chart
        x = self.margin + 420
        cy = self.page_height - self.margin - 60
        c.setFont("Helvetica-Bold", 12)
        c.setFillColorRGB(0, 0, 0)
        c.drawString(x, cy, f"Conflicts ({len(conflicts)})")
        cy -= 18
        c.setFont("Helvetica", 9)
        if not conflicts:
            c.drawString(x + 10, cy, "No double bookings.")
        for conflict in conflicts[:25]:
            c.drawString(x + 10, cy, f"[{conflict.severity.value}] {conflict.description}"[:60])
            cy -= 13
        if len(conflicts) > 25:
            c.drawString(x + 10, cy, f"... and {len(conflicts) - 25} more")

        c.showPage()

    def _draw_hours_chart(
        self,
        c,
        hours_per_cleaner: dict[str, float],
        x: float,
        y: float,
        width: float,
        height: float,
    ) -> None:
        """Draw a horizontal bar chart of hours per cleaner."""
        if not hours_per_cleaner:
            return

        ranked = sorted(hours_per_cleaner.items(), key=lambda kv: (-kv[1], kv[0]))[:12]
        max_hours = max(h for _, h in ranked) or 1
        bar_height = height / len(ranked)

        c.setStrokeColorRGB(0, 0, 0)
        c.setLineWidth(1)
        c.line(x, y, x, y + height)

        c.setFont("Helvetica", 7)
        for i, (name, hours) in enumerate(ranked):
            bar_y = y + height - (i + 1) * bar_height
            bar_w = (hours / max_hours) * width
            c.setFillColorRGB(0.4, 0.6, 0.8)
            c.rect(x, bar_y + 1, bar_w, bar_height - 2, fill=1, stroke=0)
            c.setFillColorRGB(0, 0, 0)
            c.drawRightString(x - 5, bar_y + bar_height / 2 - 2, name[:14])
            c.drawString(x + bar_w + 4, bar_y + bar_height / 2 - 2, f"{hours:.1f}h")
