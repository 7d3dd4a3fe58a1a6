from datetime import datetime

import pytest
from fastapi import HTTPException
from starlette.requests import Request

from protrack.core.idempotency import (
    IdempotencyClaimState,
    claim_idempotency_key,
    complete_idempotency_key,
    fingerprint_payload,
    require_idempotency_key,
)
from protrack.core.optimistic_lock import _ensure_expected_timestamp


def _request(headers: dict[str, str]) -> Request:
    raw = [(key.lower().encode(), value.encode()) for key, value in headers.items()]
    return Request({"type": "http", "method": "POST", "path": "/", "headers": raw})


def test_unedited_log_needs_no_expected_timestamp():
    _ensure_expected_timestamp(None, None)


def test_matching_timestamp_ignores_sub_seconds():
    _ensure_expected_timestamp(
        datetime(2024, 6, 2, 8, 15, 30, 123456), datetime(2024, 6, 2, 8, 15, 30)
    )


@pytest.mark.parametrize(
    "current, expected",
    [
        (datetime(2024, 6, 2, 8, 15, 30), datetime(2024, 6, 2, 8, 15, 29)),
        (datetime(2024, 6, 2, 8, 15, 30), None),
        (None, datetime(2024, 6, 2, 8, 15, 30)),
    ],
)
def test_stale_edit_is_rejected(current, expected):
    with pytest.raises(HTTPException) as ctx:
        _ensure_expected_timestamp(current, expected)
    assert ctx.value.status_code == 409


def test_idempotency_key_header_is_required():
    with pytest.raises(HTTPException) as ctx:
        require_idempotency_key(_request({}))
    assert ctx.value.status_code == 400

    with pytest.raises(HTTPException):
        require_idempotency_key(_request({"Idempotency-Key": "x" * 129}))

    assert require_idempotency_key(_request({"Idempotency-Key": "  abc-1 "})) == "abc-1"


def test_fingerprint_ignores_key_order():
    assert fingerprint_payload({"a": 1, "b": "2"}) == fingerprint_payload({"b": "2", "a": 1})
    assert fingerprint_payload({"a": 1}) != fingerprint_payload({"a": 2})


@pytest.mark.anyio
async def test_claim_replays_after_completion(session_factory):
    async with session_factory() as session:
        async with session.begin():
            claim = await claim_idempotency_key(
                session, idempotency_key="k-1", resource="production_log", fingerprint="f"
            )
            assert claim.state == IdempotencyClaimState.NEW
            await complete_idempotency_key(session, idempotency_key="k-1", resource_id="log-1")

    async with session_factory() as session:
        async with session.begin():
            claim = await claim_idempotency_key(
                session, idempotency_key="k-1", resource="production_log", fingerprint="f"
            )
    assert claim.state == IdempotencyClaimState.REPLAY
    assert claim.record.resource_id == "log-1"


@pytest.mark.anyio
async def test_claim_in_progress_and_reused_with_other_payload(session_factory):
    async with session_factory() as session:
        async with session.begin():
            await claim_idempotency_key(
                session, idempotency_key="k-2", resource="production_log", fingerprint="f"
            )

    async with session_factory() as session:
        async with session.begin():
            claim = await claim_idempotency_key(
                session, idempotency_key="k-2", resource="production_log", fingerprint="f"
            )
        assert claim.state == IdempotencyClaimState.IN_PROGRESS
        assert claim.retry_after >= 1

    async with session_factory() as session:
        with pytest.raises(HTTPException) as ctx:
            async with session.begin():
                await claim_idempotency_key(
                    session, idempotency_key="k-2", resource="production_log", fingerprint="other"
                )
    assert ctx.value.status_code == 422
