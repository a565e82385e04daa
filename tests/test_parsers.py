import io

import pytest
from openpyxl import Workbook

from dataio.parsers import UNSUPPORTED_FILE, parse_tags, read_logo, read_preview_table
from errors import ImageDecodeError


def test_csv_is_header_first_with_plain_values():
    rows = read_preview_table("data.csv", io.BytesIO(b"name,qty,price\nx,1,2.5\ny,2,\n"))
    assert rows == [["name", "qty", "price"], ["x", 1, 2.5], ["y", 2, None]]
    assert type(rows[1][1]) is int
    assert type(rows[1][2]) is float


def test_blank_csv_header_becomes_none():
    rows = read_preview_table("DATA.CSV", io.BytesIO(b",qty\nx,1\n"))
    assert rows[0] == [None, "qty"]


def test_xlsx_first_sheet():
    wb = Workbook()
    ws = wb.active
    ws.append(["Region", "Sales"])
    ws.append(["North", 10])
    wb.create_sheet("Other").append(["ignored"])
    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    assert read_preview_table("report.xlsx", buf) == [["Region", "Sales"], ["North", 10]]


@pytest.mark.parametrize("name", ["notes.txt", "archive", "old.xls"])
def test_unsupported_extension_is_a_sentinel_table(name):
    rows = read_preview_table(name, io.BytesIO(b"whatever"))
    assert rows == UNSUPPORTED_FILE == [["Unsupported file type."]]
    rows[0][0] = "mutated"
    assert UNSUPPORTED_FILE == [["Unsupported file type."]]


def test_parse_tags():
    assert parse_tags("a, b, ,a") == ["a", "b"]
    assert parse_tags("") == []


def test_read_logo(png_bytes):
    logo = read_logo("brand.png", png_bytes)
    assert (logo.width, logo.height, logo.name) == (100, 45, "brand.png")
    with pytest.raises(ImageDecodeError):
        read_logo("brand.png", b"nope")
