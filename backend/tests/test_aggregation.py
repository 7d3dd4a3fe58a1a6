from datetime import date, datetime
from decimal import Decimal
from types import SimpleNamespace

import pytest

from conftest import add_log
from protrack.models import ShiftTarget
from protrack.services.aggregation import (
    load_daily_rollup,
    load_monthly_rollup,
    operator_shift_output,
    rollup_daily,
    rollup_monthly,
)


def _log(created_at, *, shift="MORNING", tonnage="10", trucks=1, user="op-1", platform="BIG_BAG", category="EXPORT"):
    return SimpleNamespace(
        created_at=created_at,
        shift=shift,
        total_tonnage=Decimal(tonnage),
        truck_count=trucks,
        user_id=user,
        platform=platform,
        category=category,
    )


def test_daily_rollup_uses_industrial_day():
    rows = rollup_daily(
        [
            _log(datetime(2024, 6, 2, 5, 30), shift="NIGHT", tonnage="20"),
            _log(datetime(2024, 6, 2, 6, 1), tonnage="30"),
        ]
    )
    assert [(row.period, row.total_tonnage) for row in rows] == [
        ("2024-06-01", Decimal("20")),
        ("2024-06-02", Decimal("30")),
    ]
    assert rows[0].night_tonnage == Decimal("20")


def test_evening_folds_into_afternoon():
    rows = rollup_daily(
        [
            _log(datetime(2024, 6, 2, 15, 0), shift="AFTERNOON", tonnage="11"),
            _log(datetime(2024, 6, 2, 19, 0), shift="EVENING", tonnage="4"),
        ]
    )
    (row,) = rows
    assert row.afternoon_tonnage == Decimal("15")
    assert row.morning_tonnage == Decimal("0")
    assert row.night_tonnage == Decimal("0")
    assert row.total_tonnage == Decimal("15")


def test_rollup_keys_and_distinct_operators():
    rows = rollup_daily(
        [
            _log(datetime(2024, 6, 2, 8), user="a", trucks=2),
            _log(datetime(2024, 6, 2, 9), user="a", trucks=1),
            _log(datetime(2024, 6, 2, 10), user="b", trucks=1),
            _log(datetime(2024, 6, 2, 10), user="c", category="LOCAL"),
            _log(datetime(2024, 6, 2, 10), user="d", platform="50KG"),
        ]
    )
    keyed = {(row.period, row.platform, row.category): row for row in rows}
    export = keyed[("2024-06-02", "BIG_BAG", "EXPORT")]
    assert export.operator_count == 2
    assert export.total_trucks == 4
    assert export.log_count == 3
    assert keyed[("2024-06-02", "BIG_BAG", "LOCAL")].operator_count == 1
    assert keyed[("2024-06-02", "50KG", "EXPORT")].operator_count == 1


def test_monthly_rollup_month_comes_from_shifted_date():
    rows = rollup_monthly(
        [
            _log(datetime(2024, 7, 1, 5, 0), tonnage="5"),
            _log(datetime(2024, 7, 1, 6, 0), tonnage="7"),
        ]
    )
    assert [(row.period, row.total_tonnage) for row in rows] == [
        ("2024-06", Decimal("5")),
        ("2024-07", Decimal("7")),
    ]


def test_rollup_is_recomputable():
    logs = [_log(datetime(2024, 6, 2, 8), tonnage="1.5"), _log(datetime(2024, 6, 3, 2), tonnage="2.25")]
    first = [(r.period, r.total_tonnage) for r in rollup_daily(logs)]
    second = [(r.period, r.total_tonnage) for r in rollup_daily(logs)]
    assert first == second


@pytest.mark.anyio
async def test_daily_loader_respects_window_and_platform(session, operator_50kg, admin_ctx):
    await add_log(session, created_at=datetime(2024, 6, 1, 5, 59), tonnage="1")  # May 31
    await add_log(session, created_at=datetime(2024, 6, 1, 6, 0), tonnage="2")
    await add_log(session, created_at=datetime(2024, 6, 3, 5, 0), tonnage="3")  # June 2
    await add_log(session, created_at=datetime(2024, 6, 3, 6, 0), tonnage="4")  # June 3
    await add_log(session, created_at=datetime(2024, 6, 1, 12, 0), tonnage="10", platform="50KG")

    rows = await load_daily_rollup(session, admin_ctx, date(2024, 6, 1), date(2024, 6, 2))
    assert sorted((r.period, r.platform, r.total_tonnage) for r in rows) == [
        ("2024-06-01", "50KG", Decimal("10")),
        ("2024-06-01", "BIG_BAG", Decimal("2")),
        ("2024-06-02", "BIG_BAG", Decimal("3")),
    ]

    scoped = await load_daily_rollup(session, operator_50kg, date(2024, 6, 1), date(2024, 6, 2))
    assert [(r.period, r.platform) for r in scoped] == [("2024-06-01", "50KG")]

    filtered = await load_daily_rollup(
        session, admin_ctx, date(2024, 6, 1), date(2024, 6, 2), platform="BIG_BAG"
    )
    assert {r.platform for r in filtered} == {"BIG_BAG"}


@pytest.mark.anyio
async def test_monthly_loader_covers_the_year(session, admin_ctx):
    await add_log(session, created_at=datetime(2024, 1, 1, 5, 0), tonnage="1")  # 2023-12-31
    await add_log(session, created_at=datetime(2024, 3, 10, 8, 0), tonnage="2")
    await add_log(session, created_at=datetime(2025, 1, 1, 5, 0), tonnage="3")  # 2024-12-31

    rows = await load_monthly_rollup(session, admin_ctx, 2024)
    assert [(r.period, r.total_tonnage) for r in rows] == [
        ("2024-03", Decimal("2")),
        ("2024-12", Decimal("3")),
    ]


@pytest.mark.anyio
async def test_shift_output_counts_current_industrial_day(session, operator_big_bag):
    session.add(ShiftTarget(platform="BIG_BAG", shift="AFTERNOON", target_trucks=20))
    await session.commit()
    await add_log(session, created_at=datetime(2024, 6, 2, 5, 0), trucks=3, tonnage="66")
    await add_log(session, created_at=datetime(2024, 6, 2, 7, 0), trucks=2, tonnage="44")
    await add_log(session, created_at=datetime(2024, 6, 3, 5, 0), trucks=1, tonnage="22")
    await add_log(session, created_at=datetime(2024, 6, 2, 8, 0), trucks=9, tonnage="198", user_id="someone-else")

    output = await operator_shift_output(session, operator_big_bag, now=datetime(2024, 6, 2, 15, 0))

    assert output.production_date == date(2024, 6, 2)
    assert output.shift == "AFTERNOON"
    assert output.trucks == 3
    assert output.tonnage == Decimal("66")
    assert output.target_trucks == 20
    assert output.progress_percent == 15
    assert output.window_start == datetime(2024, 6, 2, 6, 0)


@pytest.mark.anyio
async def test_shift_output_falls_back_to_default_target(session, admin_ctx):
    await add_log(session, created_at=datetime(2024, 6, 2, 7, 0), trucks=30, user_id=admin_ctx.user_id)

    output = await operator_shift_output(session, admin_ctx, now=datetime(2024, 6, 2, 9, 0))

    assert output.target_trucks == 25
    assert output.progress_percent == 100
