from datetime import date, datetime
from decimal import Decimal

import pytest

from conftest import add_log, add_program
from protrack.services.execution_status import (
    ExecutionRow,
    ExecutionStatus,
    build_board,
    classify_execution,
    load_day_activity,
    load_execution_board,
)


@pytest.mark.parametrize(
    "planned, actual, status, progress",
    [
        (100, 0, ExecutionStatus.PENDING, 0),
        (100, 97, ExecutionStatus.IN_PROGRESS, 97),
        (100, 99, ExecutionStatus.COMPLETED, 99),
        (100, 98, ExecutionStatus.COMPLETED, 98),
        (100, 100, ExecutionStatus.COMPLETED, 100),
        (100, 101, ExecutionStatus.OVERBOOKED, 100),
        (100, 250, ExecutionStatus.OVERBOOKED, 100),
    ],
)
def test_classification(planned, actual, status, progress):
    snapshot = classify_execution(planned, actual)
    assert snapshot.status == status
    assert snapshot.progress_percent == progress


def test_overbooking_by_a_fraction_beats_completed():
    snapshot = classify_execution(Decimal("264.000"), Decimal("264.001"))
    assert snapshot.progress_percent == 100
    assert snapshot.status == ExecutionStatus.OVERBOOKED


def test_rounding_into_tolerance_band():
    # 97.5% rounds half-up to 98
    assert classify_execution(Decimal("200"), Decimal("195")).status == ExecutionStatus.COMPLETED
    assert classify_execution(Decimal("200"), Decimal("194.9")).status == ExecutionStatus.IN_PROGRESS


def test_tolerance_is_configurable():
    assert classify_execution(100, 96, tolerance_pct=95).status == ExecutionStatus.COMPLETED


def test_dossier_without_plan():
    assert classify_execution(0, 0).status == ExecutionStatus.PENDING
    assert classify_execution(0, 5).status == ExecutionStatus.OVERBOOKED


def _row(file_number, planned, actual):
    snapshot = classify_execution(planned, actual)
    return ExecutionRow(
        file_number=file_number,
        destination=None,
        shipping_line=None,
        platform_section="BIG_BAG",
        planned_quantity=Decimal(planned),
        actual_quantity=Decimal(actual),
        actual_trucks=0,
        remaining_count=0,
        stored_status="IN_PROGRESS",
        progress_percent=snapshot.progress_percent,
        status=snapshot.status,
    )


def test_board_sorted_by_attention_priority_with_kpis():
    board = build_board(
        [
            _row("D-DONE", 100, 100),
            _row("D-NEW", 100, 0),
            _row("D-OVER", 100, 120),
            _row("D-LOAD", 100, 40),
        ]
    )
    assert [row.file_number for row in board.rows] == ["D-OVER", "D-LOAD", "D-NEW", "D-DONE"]
    assert board.total_planned == Decimal(400)
    assert board.total_executed == Decimal(260)
    assert board.global_progress == 65
    assert board.status_counts == {
        "PENDING": 1,
        "IN_PROGRESS": 1,
        "COMPLETED": 1,
        "OVERBOOKED": 1,
    }


@pytest.mark.anyio
async def test_board_loader_scopes_filters_and_searches(session, operator_50kg, admin_ctx):
    await add_program(session, "BB-1", quantity="100", destination="Dakar")
    await add_program(session, "BB-2", quantity="100", destination="Abidjan")
    await add_program(session, "KG-1", quantity="50", platform="50KG", destination="Dakar")
    await add_log(session, created_at=datetime(2024, 6, 2, 8), trucks=4, tonnage="120", file_number="BB-1")
    await add_log(session, created_at=datetime(2024, 6, 2, 9), trucks=2, tonnage="25", file_number="KG-1", platform="50KG")

    board = await load_execution_board(session, admin_ctx)
    assert [(row.file_number, row.status) for row in board.rows] == [
        ("BB-1", ExecutionStatus.OVERBOOKED),
        ("KG-1", ExecutionStatus.IN_PROGRESS),
        ("BB-2", ExecutionStatus.PENDING),
    ]
    assert board.rows[0].actual_trucks == 4
    assert board.rows[0].progress_percent == 100

    scoped = await load_execution_board(session, operator_50kg)
    assert [row.file_number for row in scoped.rows] == ["KG-1"]

    pending = await load_execution_board(session, admin_ctx, status=ExecutionStatus.PENDING)
    assert [row.file_number for row in pending.rows] == ["BB-2"]

    dakar = await load_execution_board(session, admin_ctx, search="dakar", platform="BIG_BAG")
    assert [row.file_number for row in dakar.rows] == ["BB-1"]


@pytest.mark.anyio
async def test_day_activity_counts_one_industrial_day(session, admin_ctx):
    await add_program(session, "BB-1", count=10)
    await add_program(session, "BB-DONE", count=0, status="COMPLETED")
    await add_log(session, created_at=datetime(2024, 6, 2, 5, 0), trucks=1, file_number="BB-1")
    await add_log(session, created_at=datetime(2024, 6, 2, 7, 0), trucks=2, file_number="BB-1")
    await add_log(session, created_at=datetime(2024, 6, 3, 5, 59), trucks=3, file_number="BB-1")

    rows = await load_day_activity(session, admin_ctx, date(2024, 6, 2))

    assert [(r.file_number, r.trucks_today, r.trucks_total, r.remaining_count) for r in rows] == [
        ("BB-1", 5, 6, 10)
    ]
