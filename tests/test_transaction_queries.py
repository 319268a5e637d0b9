"""Tests for transaction reporting and the expiry sweep."""

from datetime import UTC, datetime, timedelta

import pytest

from photo_unlock.domain.transactions import TransactionRecord, TransactionStatus
from photo_unlock.errors import AuthorizationError, NotFoundError, ValidationError
from photo_unlock.services.transactions import TransactionQueryService

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def _record(  # noqa: PLR0913
    transaction_id: str,
    status: TransactionStatus,
    amount: float = 100,
    amount_paid: float | None = None,
    user_id: str = "buyer-1",
    age_hours: int = 0,
) -> TransactionRecord:
    return TransactionRecord(
        transaction_id=transaction_id,
        user_id=user_id,
        phone_number="254712345678",
        amount=amount,
        photo_ids=["p1"],
        status=status,
        created_at=NOW - timedelta(hours=age_hours),
        amount_paid=amount_paid,
    )


def _service(transaction_repository, *records):  # type: ignore[no-untyped-def]
    for record in records:
        transaction_repository.create_transaction(record)
    return TransactionQueryService(transaction_repository)


def test_get_transaction_checks_owner(transaction_repository) -> None:
    service = _service(
        transaction_repository, _record("TXN_1", TransactionStatus.PENDING)
    )

    assert service.get_transaction("TXN_1", user_id="buyer-1").transaction_id == "TXN_1"
    with pytest.raises(AuthorizationError):
        service.get_transaction("TXN_1", user_id="intruder")
    with pytest.raises(NotFoundError):
        service.get_transaction("TXN_missing")


def test_list_transactions_paginates_and_filters(transaction_repository) -> None:
    service = _service(
        transaction_repository,
        *[
            _record(f"TXN_{i}", TransactionStatus.COMPLETED, age_hours=i)
            for i in range(3)
        ],
        _record("TXN_failed", TransactionStatus.FAILED, age_hours=10),
        _record("TXN_other", TransactionStatus.COMPLETED, user_id="other"),
    )

    first = service.list_transactions("buyer-1", page=1, limit=2)
    second = service.list_transactions("buyer-1", page=2, limit=2)
    failed = service.list_transactions("buyer-1", status=TransactionStatus.FAILED)

    assert [r.transaction_id for r in first.items] == ["TXN_0", "TXN_1"]
    assert first.total == 4
    assert first.has_more is True
    assert [r.transaction_id for r in second.items] == ["TXN_2", "TXN_failed"]
    assert second.has_more is False
    assert [r.transaction_id for r in failed.items] == ["TXN_failed"]


@pytest.mark.parametrize(("page", "limit"), [(0, 10), (1, 0), (1, 101)])
def test_list_transactions_rejects_bad_paging(
    transaction_repository, page: int, limit: int
) -> None:
    service = _service(transaction_repository)

    with pytest.raises(ValidationError):
        service.list_transactions("buyer-1", page=page, limit=limit)


def test_summary_aggregates_in_memory(transaction_repository) -> None:
    service = _service(
        transaction_repository,
        _record("TXN_a", TransactionStatus.COMPLETED, amount=100, amount_paid=100),
        _record("TXN_b", TransactionStatus.COMPLETED, amount=50, age_hours=1),
        _record("TXN_c", TransactionStatus.FAILED, age_hours=2),
        _record("TXN_d", TransactionStatus.PENDING, age_hours=3),
        _record("TXN_e", TransactionStatus.INITIATED, age_hours=4),
        _record("TXN_f", TransactionStatus.FAILED, age_hours=5),
    )

    summary = service.get_summary("buyer-1")

    assert summary.total_transactions == 6
    assert summary.counts == {
        "initiated": 1,
        "pending": 1,
        "completed": 2,
        "failed": 2,
    }
    assert summary.total_amount_paid == 150
    assert summary.average_transaction_amount == 75
    assert summary.success_rate == 33.33
    assert summary.last_transaction_date == NOW
    assert len(summary.recent_transactions) == 5
    assert summary.recent_transactions[0].transaction_id == "TXN_a"


def test_summary_of_no_transactions(transaction_repository) -> None:
    summary = _service(transaction_repository).get_summary("nobody")

    assert summary.total_transactions == 0
    assert summary.success_rate == 0.0
    assert summary.average_transaction_amount == 0.0
    assert summary.last_transaction_date is None


def test_expire_stale_fails_old_open_transactions(transaction_repository) -> None:
    service = _service(
        transaction_repository,
        _record("TXN_old", TransactionStatus.PENDING, age_hours=30),
        _record("TXN_old_init", TransactionStatus.INITIATED, age_hours=25),
        _record("TXN_fresh", TransactionStatus.PENDING, age_hours=1),
        _record("TXN_done", TransactionStatus.COMPLETED, age_hours=48),
    )

    expired = service.expire_stale(now=NOW)

    assert expired == 2
    old = transaction_repository.get_transaction("TXN_old")
    assert old.status is TransactionStatus.FAILED
    assert old.error_message == "Transaction expired"
    fresh = transaction_repository.get_transaction("TXN_fresh")
    assert fresh.status is TransactionStatus.PENDING
    done = transaction_repository.get_transaction("TXN_done")
    assert done.status is TransactionStatus.COMPLETED
