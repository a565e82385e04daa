# report_assembler.py: lays out a branded single-sheet report and serializes it to .xlsx

import io
import logging
import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.drawing.image import Image as SheetImage
from openpyxl.styles import Border, Font, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table, TableStyleInfo
from PIL import Image as PILImage

from errors import ImageDecodeError, NoDataError, ValidationError
from storage.records import DEFAULT_TABLE_THEME, TABLE_THEMES, DesignLayout

logger = logging.getLogger(__name__)

SHEET_TITLE = "Report"
TABLE_NAME = "DataTable"
ROW_HEIGHT_PX = 20          # rows reserved for a logo = ceil(height / 20) + 1
HEADER_GAP = 2              # header row + one blank row
TABLE_GAP = 2               # blank rows between table and footer

_THIN = Side(style="thin")
THIN_BORDER = Border(left=_THIN, right=_THIN, top=_THIN, bottom=_THIN)

# ---------- Inputs ----------

@dataclass(frozen=True)
class LogoImage:
    data: bytes
    name: str
    width: int
    height: int
    source_url: Optional[str] = None     # set when the bytes came from object storage


def decode_logo(data: bytes, name: str = "logo.png", source_url: Optional[str] = None) -> LogoImage:
    """Decode image bytes (Pillow) to learn the pixel size."""
    width, height = _image_size(data)
    return LogoImage(data=data, name=name, width=width, height=height, source_url=source_url)


def _image_size(data: bytes) -> Tuple[int, int]:
    try:
        with PILImage.open(io.BytesIO(data)) as img:
            img.load()
            return img.size
    except (OSError, ValueError, PILImage.DecompressionBombError) as exc:
        raise ImageDecodeError(f"Could not read the logo image: {exc}") from exc


@dataclass
class ReportDesign:
    """Working state of one report: data preview plus branding options."""
    preview_table: Optional[List[List[Any]]] = None     # first row is the header
    header_text: str = ""
    footer_text: str = ""
    logo: Optional[LogoImage] = None
    table_theme: str = DEFAULT_TABLE_THEME
    show_borders: bool = False
    auto_fit_columns: bool = False

    def layout(self) -> DesignLayout:
        return DesignLayout(
            header_text=self.header_text,
            footer_text=self.footer_text,
            table_theme=self.table_theme,
            show_borders=self.show_borders,
            auto_fit_columns=self.auto_fit_columns,
        )

    def with_layout(self, layout: DesignLayout) -> "ReportDesign":
        return replace(
            self,
            header_text=layout.header_text,
            footer_text=layout.footer_text,
            table_theme=layout.table_theme,
            show_borders=layout.show_borders,
            auto_fit_columns=layout.auto_fit_columns,
        )


@dataclass
class AssemblyLayout:
    """Where each block of the report ended up (1-based rows)."""
    logo_rows: int = 0
    header_row: Optional[int] = None
    table_ref: str = ""
    table_first_row: int = 0
    table_last_row: int = 0
    footer_row: Optional[int] = None
    cursor: int = 1
    column_widths: Dict[str, int] = field(default_factory=dict)
    merged_ranges: List[str] = field(default_factory=list)

# ---------- Helpers ----------

def column_names(header: Sequence[Any]) -> List[str]:
    """Table column names: blanks become ``Column N``; repeats get a suffix (Excel needs unique names)."""
    names: List[str] = []
    seen = set()
    for i, value in enumerate(header):
        name = "" if value is None else ILLEGAL_CHARACTERS_RE.sub("", str(value)).strip()
        if not name:
            name = f"Column {i + 1}"
        base, n = name, 2
        while name.lower() in seen:
            name = f"{base} ({n})"
            n += 1
        seen.add(name.lower())
        names.append(name)
    return names


def longest_line(value: Any) -> int:
    text = "" if value is None else str(value)
    return max(len(line) for line in text.split("\n"))


def autofit_width(longest: int) -> int:
    """ceil(1.2 * longest) + 2, in integers so exact multiples do not round up."""
    return (longest * 12 + 9) // 10 + 2


def column_widths(rows: Sequence[Sequence[Any]], ncols: int) -> List[int]:
    widths = []
    for col in range(ncols):
        longest = 0
        for row in rows:
            if col < len(row):
                longest = max(longest, longest_line(row[col]))
        widths.append(autofit_width(longest))
    return widths


def _cell_value(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float)):
        if isinstance(value, float) and math.isnan(value):
            return None
        return value
    if hasattr(value, "isoformat"):     # date / datetime / Timestamp
        return value
    return ILLEGAL_CHARACTERS_RE.sub("", str(value))


def _write_text(ws, row: int, col: int, value: Any):
    cell = ws.cell(row=row, column=col, value=_cell_value(value))
    if isinstance(cell.value, str) and cell.value.startswith("="):
        cell.data_type = "s"    # uploaded text, never a formula
    return cell


def _merge(ws, layout: AssemblyLayout, row: int, ncols: int) -> None:
    if ncols > 1:
        ref = f"A{row}:{get_column_letter(ncols)}{row}"
        ws.merge_cells(ref)
        layout.merged_ranges.append(ref)

# ---------- Assembly ----------

def assemble_workbook(design: ReportDesign) -> Tuple[Workbook, AssemblyLayout]:
    """
    Fixed layout, top to bottom:
    logo (A1, ceil(h/20)+1 rows) -> header (bold 16, merged, +2) ->
    styled table (+len(preview)+2) -> footer (italic 12, merged).
    """
    table = design.preview_table
    if not table or not table[0]:
        raise NoDataError("No data to generate report.")
    if design.table_theme not in TABLE_THEMES:
        raise ValidationError(f"Unknown table theme {design.table_theme!r}.")

    # decode before touching the workbook so a bad logo leaves nothing behind
    logo_size = _image_size(design.logo.data) if design.logo else None

    header = list(table[0])
    data_rows = [list(r) for r in table[1:]]
    ncols = len(header)
    names = column_names(header)

    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE
    layout = AssemblyLayout()
    cursor = 1

    if design.logo:
        width, height = logo_size
        img = SheetImage(io.BytesIO(design.logo.data))
        img.width, img.height = width, height
        ws.add_image(img, f"A{cursor}")
        layout.logo_rows = math.ceil(height / ROW_HEIGHT_PX) + 1
        cursor += layout.logo_rows

    if design.header_text:
        cell = _write_text(ws, cursor, 1, design.header_text)
        cell.font = Font(bold=True, size=16)
        _merge(ws, layout, cursor, ncols)
        layout.header_row = cursor
        cursor += HEADER_GAP

    # table: header row + data rows
    first = cursor
    for c, name in enumerate(names, start=1):
        _write_text(ws, first, c, name)
    for r, row in enumerate(data_rows, start=first + 1):
        for c in range(ncols):
            _write_text(ws, r, c + 1, row[c] if c < len(row) else None)

    last = first + len(table) - 1
    # Excel tables need at least one body row
    ref = f"A{first}:{get_column_letter(ncols)}{max(last, first + 1)}"
    tab = Table(displayName=TABLE_NAME, ref=ref)
    tab.tableStyleInfo = TableStyleInfo(
        name=design.table_theme,
        showFirstColumn=False,
        showLastColumn=False,
        showRowStripes=True,
        showColumnStripes=False,
    )
    ws.add_table(tab)
    layout.table_ref, layout.table_first_row, layout.table_last_row = ref, first, last

    if design.show_borders:
        for r in range(first, last + 1):
            for c in range(1, ncols + 1):
                ws.cell(row=r, column=c).border = THIN_BORDER

    if design.auto_fit_columns:
        for c, width in enumerate(column_widths(table, ncols), start=1):
            letter = get_column_letter(c)
            ws.column_dimensions[letter].width = width
            layout.column_widths[letter] = width

    cursor += len(table) + TABLE_GAP

    if design.footer_text:
        cell = _write_text(ws, cursor, 1, design.footer_text)
        cell.font = Font(italic=True, size=12)
        _merge(ws, layout, cursor, ncols)
        layout.footer_row = cursor

    layout.cursor = cursor
    logger.debug("Assembled report: table %s, cursor %s", ref, cursor)
    return wb, layout


def render_report(design: ReportDesign) -> bytes:
    wb, _ = assemble_workbook(design)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()
