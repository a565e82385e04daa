# dataio/exports.py
import logging
import time
from dataclasses import dataclass
from datetime import date
from typing import Optional, Tuple

from errors import ReportlyError
from report_assembler import ReportDesign, render_report
from usage_limits import UsageLimits

logger = logging.getLogger(__name__)

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@dataclass(frozen=True)
class ReportExport:
    file_name: str
    data: bytes
    recorded: bool      # False when the usage counter could not be written
    design: ReportDesign

    def is_current(self, design: ReportDesign) -> bool:
        """True while ``design`` is still the one this workbook was built from."""
        return self.design == design


def report_filename(today: Optional[date] = None) -> str:
    return f"report_{(today or date.today()).isoformat()}.xlsx"


def export_report_excel(design: ReportDesign, today: Optional[date] = None) -> Tuple[str, bytes]:
    """
    Render the report in memory. Return (filename, xlsx bytes); nothing is
    written to disk or uploaded.
    """
    return report_filename(today), render_report(design)


def generate_report(design: ReportDesign, limits: UsageLimits,
                    template_id: Optional[int] = None, today: Optional[date] = None) -> ReportExport:
    """
    Check the monthly cap, render, then count the generation.
    A limit or render failure raises; a failed count only marks the export unrecorded.
    """
    limits.ensure_can_generate()
    t0 = time.perf_counter()
    file_name, data = export_report_excel(design, today)
    try:
        limits.record_generation(file_name, len(data), template_id=template_id,
                                 duration_ms=int((time.perf_counter() - t0) * 1000))
    except ReportlyError as exc:
        logger.warning("Generated %s but could not record it: %s", file_name, exc)
        return ReportExport(file_name, data, recorded=False, design=design)
    return ReportExport(file_name, data, recorded=True, design=design)
