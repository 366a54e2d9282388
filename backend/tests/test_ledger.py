from __future__ import annotations

from datetime import datetime, timedelta, timezone

from factory_inventory.services.ledger_service import (
    CONSUMPTION,
    PURCHASE,
    STARTING_BALANCE_ID,
    AllocationEntry,
    UsageEntry,
    classify_allocation,
    classify_usage,
    format_date,
    reconstruct_ledger,
)

SYSTEM = "System"
DAY0 = datetime(2024, 3, 4, 12, 0, tzinfo=timezone.utc)
DAY1 = DAY0 + timedelta(days=1)
DAY2 = DAY0 + timedelta(days=2)
DAY3 = DAY0 + timedelta(days=3)


def _usage(id_: int, qty: float, at: datetime, user: str = "alice", **kw) -> UsageEntry:
    return UsageEntry(id=id_, quantity=qty, date=at, username=user, **kw)


def _alloc(id_: int, qty: float, at: datetime, batch_number: str | None = "BATCH-042") -> AllocationEntry:
    return AllocationEntry(id=id_, quantity=qty, created_at=at, batch_date=at, batch_number=batch_number)


def _net(txs) -> float:
    return sum((t.inflow or 0) - (t.outflow or 0) for t in txs)


def test_empty_history_has_no_starting_balance():
    assert reconstruct_ledger([], [], current_stock=42, system_actor=SYSTEM) == []


def test_worked_example():
    txs = reconstruct_ledger(
        [_usage(1, -30, DAY1, user=SYSTEM), _usage(2, 10, DAY2)],
        [],
        current_stock=100,
        system_actor=SYSTEM,
    )
    assert [t.id for t in txs] == ["consumption-2", "addition-1", STARTING_BALANCE_ID]
    assert [t.stock for t in txs] == [100, 110, 80]
    assert txs[2].date == DAY0
    assert txs[2].notes == "Starting balance"
    assert txs[2].category == PURCHASE
    assert txs[2].inflow is None and txs[2].outflow is None


def test_worked_example_with_batch_allocation():
    txs = reconstruct_ledger(
        [_usage(2, 10, DAY2)],
        [_alloc(1, 30, DAY1)],
        current_stock=100,
        system_actor=SYSTEM,
    )
    assert [t.id for t in txs] == ["consumption-2", "purchase-1", STARTING_BALANCE_ID]
    assert [t.stock for t in txs] == [100, 110, 80]
    assert txs[1].inflow == 30
    assert txs[2].date == DAY0


def test_single_inflow():
    txs = reconstruct_ledger([], [_alloc(7, 20, DAY1)], current_stock=50, system_actor=SYSTEM)
    assert txs[0].stock == 50
    assert txs[-1].id == STARTING_BALANCE_ID
    assert txs[-1].stock == 30


def test_no_starting_balance_when_history_starts_at_zero():
    txs = reconstruct_ledger([], [_alloc(1, 50, DAY1)], current_stock=50, system_actor=SYSTEM)
    assert [t.id for t in txs] == ["purchase-1"]


def test_sorted_newest_first_and_reconciles():
    usage = [
        _usage(1, 5, DAY3),
        _usage(2, -12.5, DAY1, user=SYSTEM, bill_number="77"),
        _usage(3, 3.25, DAY2),
    ]
    allocations = [_alloc(4, 8, DAY2 + timedelta(hours=1))]
    txs = reconstruct_ledger(usage, allocations, current_stock=60, system_actor=SYSTEM)

    dates = [t.date for t in txs]
    assert dates == sorted(dates, reverse=True)

    start = txs[-1]
    assert start.id == STARTING_BALANCE_ID
    assert start.stock + _net(txs[:-1]) == 60


def test_direct_addition_and_consumption_classification():
    addition = classify_usage(_usage(1, -10, DAY1, user=SYSTEM), system_actor=SYSTEM)
    assert addition.category == PURCHASE
    assert addition.inflow == 10
    assert addition.outflow is None
    assert addition.reference == "Direct Addition"

    billed = classify_usage(_usage(2, -10, DAY1, user=SYSTEM, bill_number="INV-9"), system_actor=SYSTEM)
    assert billed.reference == "Bill #INV-9"
    assert billed.bill_number == "INV-9"

    consumed = classify_usage(_usage(3, 10, DAY1, batch_number="B17"), system_actor=SYSTEM)
    assert consumed.category == CONSUMPTION
    assert consumed.outflow == 10
    assert consumed.inflow is None
    assert consumed.reference == "B-B17"


def test_negative_quantity_by_a_person_is_not_an_addition():
    t = classify_usage(_usage(1, -4, DAY1, user="bob"), system_actor=SYSTEM)
    assert t.category == CONSUMPTION
    assert t.id == "consumption-1"


def test_allocation_reference_and_notes():
    t = classify_allocation(_alloc(9, 2, DAY1, batch_number="BATCH-042"))
    assert t.id == "purchase-9"
    assert t.reference == "INV042"
    assert t.notes == "Added for batch BATCH-042"

    assert classify_allocation(_alloc(10, 2, DAY1, batch_number=None)).reference == "-"


def test_allocation_without_batch_date_uses_created_at():
    row = AllocationEntry(id=1, quantity=1, created_at=DAY2, batch_date=None, batch_number="X1")
    assert classify_allocation(row).date == DAY2


def test_date_window_keeps_balances_of_full_history():
    usage = [_usage(2, 10, DAY2), _usage(3, 5, DAY3)]
    allocations = [_alloc(1, 30, DAY1)]

    txs = reconstruct_ledger(
        usage,
        allocations,
        current_stock=100,
        system_actor=SYSTEM,
        date_from=DAY2,
        date_to=DAY2,
    )
    # both bounds inclusive
    assert [t.id for t in txs] == ["consumption-2", STARTING_BALANCE_ID]
    assert txs[0].stock == 105
    assert txs[1].stock == 115
    assert txs[1].date == DAY1


def test_naive_dates_are_treated_as_utc():
    naive = DAY1.replace(tzinfo=None)
    txs = reconstruct_ledger([_usage(1, 1, naive)], [], current_stock=5, system_actor=SYSTEM)
    assert txs[0].date == DAY1


def test_formatted_date():
    assert format_date(datetime(2024, 3, 5)) == "05 Mar 24"
    txs = reconstruct_ledger([_usage(1, 1, DAY1)], [], current_stock=5, system_actor=SYSTEM)
    assert txs[0].formatted_date == "05 Mar 24"
    assert txs[1].formatted_date == "04 Mar 24"
