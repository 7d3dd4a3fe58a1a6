from datetime import datetime

import pytest

from conftest import add_program
from protrack.core.errors import CrossPlatformAccessDenied, DossierNotFound
from protrack.services.access import RequestContext
from protrack.services.dossier_lookup import (
    get_dossier,
    lookup_dossiers,
    project_for_dossier,
    project_remaining,
)


def test_projection_flags():
    snapshot = project_remaining(12, 5, threshold=5)
    assert snapshot.projected == 7
    assert not snapshot.low_stock
    assert not snapshot.overbooking

    low = project_remaining(3, 1, threshold=5)
    assert low.low_stock
    assert not low.overbooking

    over = project_remaining(3, 4, threshold=5)
    assert over.projected == -1
    assert over.overbooking


def test_projection_low_stock_excludes_empty_and_negative():
    assert not project_remaining(0, 0).low_stock
    assert not project_remaining(-2, 0).low_stock
    assert project_remaining(-2, 0).overbooking
    assert project_remaining(0, 1).overbooking


def test_projection_records_snapshot_time():
    taken = datetime(2024, 6, 2, 9, 15)
    assert project_remaining(5, 1, taken_at=taken).snapshot_taken_at == taken


def test_context_partitioning():
    both = RequestContext("u", "operator", "BOTH")
    admin = RequestContext("a", "admin", "50KG")
    single = RequestContext("s", "operator", "50KG")
    assert both.platform_filter is None
    assert admin.platform_filter is None
    assert single.platform_filter == "50KG"
    assert single.can_access("50KG")
    assert not single.can_access("BIG_BAG")


@pytest.mark.anyio
async def test_lookup_is_case_insensitive_partial_with_exact_first(session, operator_big_bag):
    await add_program(session, "EXP-1001")
    await add_program(session, "exp-10")
    await add_program(session, "LOC-77")

    results = await lookup_dossiers(session, "Exp-10", operator_big_bag)

    assert [p.file_number for p in results] == ["exp-10", "EXP-1001"]


@pytest.mark.anyio
async def test_cross_platform_denial_names_owner(session, operator_50kg):
    await add_program(session, "BB-555", platform="BIG_BAG")

    with pytest.raises(CrossPlatformAccessDenied) as excinfo:
        await lookup_dossiers(session, "bb-555", operator_50kg)

    assert excinfo.value.owning_platform == "BIG_BAG"
    assert excinfo.value.status_code == 403
    assert "BIG_BAG" in excinfo.value.message


@pytest.mark.anyio
async def test_admin_and_both_see_every_platform(session, admin_ctx):
    await add_program(session, "BB-556", platform="BIG_BAG")
    await add_program(session, "KG-556", platform="50KG")

    both = RequestContext("op-both", "operator", "BOTH")
    assert len(await lookup_dossiers(session, "556", admin_ctx)) == 2
    assert len(await lookup_dossiers(session, "556", both)) == 2


@pytest.mark.anyio
async def test_own_platform_hit_hides_foreign_ones(session, operator_50kg):
    await add_program(session, "MIX-1", platform="BIG_BAG")
    await add_program(session, "MIX-2", platform="50KG")

    results = await lookup_dossiers(session, "mix", operator_50kg)
    assert [p.file_number for p in results] == ["MIX-2"]


@pytest.mark.anyio
async def test_unknown_dossier_is_not_found(session, operator_50kg):
    await add_program(session, "BB-557", platform="BIG_BAG")
    with pytest.raises(DossierNotFound):
        await lookup_dossiers(session, "ZZZ", operator_50kg)
    with pytest.raises(DossierNotFound):
        await lookup_dossiers(session, "   ", operator_50kg)


@pytest.mark.anyio
async def test_search_term_wildcards_are_literal(session, admin_ctx):
    await add_program(session, "A_B-1")
    await add_program(session, "AXB-2")

    results = await lookup_dossiers(session, "a_b", admin_ctx)
    assert [p.file_number for p in results] == ["A_B-1"]


@pytest.mark.anyio
async def test_projection_for_dossier_reads_fresh_ledger(session, operator_big_bag, operator_50kg):
    await add_program(session, "BB-558", count=4, platform="BIG_BAG")

    program, snapshot = await project_for_dossier(session, "BB-558", 6, operator_big_bag)
    assert program.file_number == "BB-558"
    assert snapshot.stock == 4
    assert snapshot.projected == -2
    assert snapshot.low_stock
    assert snapshot.overbooking

    with pytest.raises(CrossPlatformAccessDenied):
        await get_dossier(session, "BB-558", operator_50kg)
