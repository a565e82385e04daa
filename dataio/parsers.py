# dataio/parsers.py
import logging
import math
import re
from typing import Any, List, Optional

import pandas as pd

from report_assembler import LogoImage, decode_logo

logger = logging.getLogger(__name__)

UNSUPPORTED_FILE = [["Unsupported file type."]]
_UNNAMED = re.compile(r"^Unnamed: \d+$")

# ---------- File reader ----------

def _plain(value: Any) -> Any:
    """numpy/pandas scalar -> plain Python value; NaN/NaT -> None."""
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        return value.tz_localize(None).to_pydatetime() if value.tzinfo else value.to_pydatetime()
    if hasattr(value, "item") and not isinstance(value, (str, bytes)):
        value = value.item()
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


def _header_name(col: Any) -> Optional[Any]:
    # pandas names blank header cells "Unnamed: N"
    if isinstance(col, str) and _UNNAMED.match(col):
        return None
    return _plain(col)


def dataframe_to_rows(df: pd.DataFrame) -> List[List[Any]]:
    """DataFrame -> [header, *rows] with plain Python cell values."""
    rows = [[_header_name(c) for c in df.columns]]
    for rec in df.itertuples(index=False, name=None):
        rows.append([_plain(v) for v in rec])
    return rows


def read_preview_table(name: str, file) -> List[List[Any]]:
    """
    Read an uploaded CSV/XLSX (first sheet) into a header-first list of rows.
    Other extensions give a one-cell "Unsupported file type." table.
    """
    ext = (name or "").rsplit(".", 1)[-1].lower() if "." in (name or "") else ""
    if ext == "csv":
        df = pd.read_csv(file)
    elif ext == "xlsx":
        df = pd.read_excel(file, sheet_name=0, engine="openpyxl")
    else:
        logger.info("Unsupported upload %r", name)
        return [list(r) for r in UNSUPPORTED_FILE]
    logger.info("Read %s: %d rows x %d columns", name, len(df), len(df.columns))
    return dataframe_to_rows(df)

# ---------- Form helpers ----------

def parse_tags(text: str) -> List[str]:
    """'a, b, ,a' -> ['a', 'b']"""
    out: List[str] = []
    for t in (text or "").split(","):
        t = t.strip()
        if t and t not in out:
            out.append(t)
    return out


def read_logo(name: str, data: bytes) -> LogoImage:
    return decode_logo(data, name=name or "logo.png")
