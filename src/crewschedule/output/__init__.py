"""Output generation for week schedules (PDF, text)."""

from crewschedule.output.pdf_generator import PDFGenerator
from crewschedule.output.report_generator import ReportGenerator

__all__ = [
    "PDFGenerator",
    "ReportGenerator",
]
