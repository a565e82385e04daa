from datetime import date

import pytest

from dataio.exports import generate_report
from errors import LimitExceededError, PersistenceError
from report_assembler import ReportDesign
from usage_limits import UsageLimits


@pytest.fixture
def usage(ctx):
    return ctx.usage_store()


@pytest.fixture
def limits(ctx, usage):
    return UsageLimits(usage, ctx.script_store(), free_monthly_reports=2, free_scripts=2)


DESIGN = ReportDesign(preview_table=[["a", "b"], [1, 2]], header_text="Acme")


def test_generation_is_counted(limits):
    export = generate_report(DESIGN, limits, today=date(2026, 10, 19))
    assert export.file_name == "report_2026-10-19.xlsx"
    assert export.data.startswith(b"PK")
    assert export.recorded
    assert limits.report_usage().current == 1


def test_failed_count_still_returns_the_workbook(limits, usage, monkeypatch):
    def boom(**kwargs):
        raise PersistenceError("Could not record report generation.")

    monkeypatch.setattr(usage, "insert_generation", boom)
    export = generate_report(DESIGN, limits)
    assert export.data.startswith(b"PK")
    assert not export.recorded
    assert limits.report_usage().current == 0


def test_limit_blocks_before_rendering(limits, monkeypatch):
    for i in range(2):
        generate_report(DESIGN, limits)

    def render(*args, **kwargs):
        raise AssertionError("rendered past the limit")

    monkeypatch.setattr("dataio.exports.export_report_excel", render)
    with pytest.raises(LimitExceededError):
        generate_report(DESIGN, limits)


def test_export_goes_stale_when_the_design_changes(limits):
    export = generate_report(DESIGN, limits)
    assert export.is_current(ReportDesign(preview_table=[["a", "b"], [1, 2]], header_text="Acme"))
    assert not export.is_current(ReportDesign(preview_table=[["a", "b"], [1, 2]], header_text="Other"))
    assert not export.is_current(ReportDesign(preview_table=[["a", "b"], [1, 3]], header_text="Acme"))
