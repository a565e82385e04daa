from datetime import datetime

import pytest
from sqlalchemy import update

from errors import LimitExceededError
from storage.models import ReportGeneration, User
from usage_limits import UsageInfo, UsageLimits, month_start


@pytest.fixture
def limits(ctx):
    return UsageLimits(ctx.usage_store(), ctx.script_store(), free_monthly_reports=3, free_scripts=2)


def _set_plan(ctx, tier):
    sess = ctx.session_factory()
    sess.execute(update(User).where(User.id == ctx.user_id).values(plan_tier=tier))
    sess.commit()
    sess.close()


def test_month_start():
    assert month_start(datetime(2026, 10, 19, 13, 5, 7, 99)) == datetime(2026, 10, 1)


def test_usage_info_math():
    info = UsageInfo(current=3, limit=10)
    assert (info.remaining, info.percent_used, info.has_reached_limit) == (7, 30, False)
    unlimited = UsageInfo(current=50, limit=None)
    assert unlimited.is_unlimited and unlimited.remaining is None and unlimited.percent_used is None
    assert not unlimited.has_reached_limit


def test_free_plan_is_capped(limits):
    for i in range(3):
        limits.ensure_can_generate()
        limits.record_generation(f"report_{i}.xlsx", 4096)
    assert limits.report_usage().current == 3
    with pytest.raises(LimitExceededError) as err:
        limits.ensure_can_generate()
    assert "upgrade" in err.value.upgrade_message.lower()


def test_previous_months_do_not_count(ctx, limits):
    for i in range(3):
        limits.record_generation(f"old_{i}.xlsx", 100)
    sess = ctx.session_factory()
    sess.execute(update(ReportGeneration).values(generated_at=datetime(2020, 1, 15)))
    sess.commit()
    sess.close()
    assert limits.ensure_can_generate().current == 0


def test_paid_plans_are_unlimited(ctx, limits):
    _set_plan(ctx, "professional")
    for i in range(5):
        limits.record_generation(f"r{i}.xlsx", 100)
    info = limits.ensure_can_generate()
    assert info.is_unlimited and info.current == 5
    assert limits.script_limit() is None


def test_recorded_generation_details(ctx, limits):
    limits.record_generation("report_2026-10-19.xlsx", 5000, duration_ms=12)
    sess = ctx.session_factory()
    row = sess.query(ReportGeneration).one()
    sess.close()
    assert (row.file_name, row.file_size_kb, row.generation_duration_ms, row.export_type) == (
        "report_2026-10-19.xlsx", 5, 12, "excel",
    )


def test_script_usage_counts_titles_not_versions(ctx, limits):
    from script_versions import SaveMode, VersionManager
    manager = VersionManager(ctx.script_store(), script_limit=limits.script_limit())
    script = manager.create_script(title="A", description="d", content="SELECT 1")
    manager.save(manager.begin_edit(script), description="v2", category="", tags=[],
                 content="SELECT 2", mode=SaveMode.NEW_VERSION)
    assert limits.script_usage().current == 1
    manager.create_script(title="B", description="d", content="SELECT 1")
    assert limits.script_usage().has_reached_limit
    with pytest.raises(LimitExceededError):
        manager.create_script(title="C", description="d", content="SELECT 1")
