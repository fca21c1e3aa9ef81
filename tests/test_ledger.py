from __future__ import annotations

from datetime import date

import pytest

from acopiapp.errors import PaymentValidationError, ValidationError
from acopiapp.services.ledger import (
    allocate_lump_payment,
    build_consolidated_ledger,
    cancel_account,
    compute_client_debt,
    ledger_final_balance,
    outstanding_sales,
    record_payment,
    resolve_range_start,
)

TODAY = date(2024, 3, 15)


def test_record_payment_appends_dated_today(make_sale) -> None:
    sale = make_sale(date(2024, 1, 1), 100.0)
    payment = record_payment(sale, 40.0, today=TODAY)
    assert payment.date == TODAY
    assert sale.payments == [payment]
    assert sale.balance == 60.0


def test_record_payment_rejects_overpayment_without_mutation(make_sale) -> None:
    sale = make_sale(date(2024, 1, 1), 100.0, payments=[(date(2024, 1, 1), 80.0)])
    before = list(sale.payments)
    with pytest.raises(PaymentValidationError):
        record_payment(sale, 20.01, today=TODAY)
    assert sale.payments == before


@pytest.mark.parametrize("amount", [0.0, -5.0])
def test_record_payment_rejects_non_positive(make_sale, amount) -> None:
    sale = make_sale(date(2024, 1, 1), 100.0)
    with pytest.raises(PaymentValidationError):
        record_payment(sale, amount, today=TODAY)
    assert sale.payments == []


def test_record_payment_accepts_exact_balance(make_sale) -> None:
    sale = make_sale(date(2024, 1, 1), 100.0, payments=[(date(2024, 1, 1), 25.0)])
    record_payment(sale, 75.0, today=TODAY)
    assert sale.is_settled
    assert sale.balance == 0.0


def test_client_debt_ignores_settled_and_overpaid(make_sale) -> None:
    sales = [
        make_sale(date(2024, 1, 1), 100.0, payments=[(date(2024, 1, 1), 30.0)]),
        make_sale(date(2024, 1, 2), 50.0, payments=[(date(2024, 1, 2), 50.0)]),
        make_sale(date(2024, 1, 3), 20.0, payments=[(date(2024, 1, 3), 35.0)]),
    ]
    assert compute_client_debt(sales) == 70.0
    assert compute_client_debt([]) == 0.0


def test_allocation_is_oldest_first(make_sale) -> None:
    jan10 = make_sale(date(2024, 1, 10), 20.0)
    jan1 = make_sale(date(2024, 1, 1), 50.0)
    jan5 = make_sale(date(2024, 1, 5), 30.0)
    sales = [jan10, jan1, jan5]

    touched = allocate_lump_payment(sales, 60.0, today=TODAY)

    assert touched == [jan1, jan5]
    assert jan1.balance == 0.0
    assert jan1.payments[-1].amount == 50.0
    assert jan5.payments[-1].amount == 10.0
    assert jan5.balance == 20.0
    assert jan10.payments == []
    assert all(p.date == TODAY for p in jan1.payments + jan5.payments)


def test_allocation_conserves_amount(make_sale) -> None:
    sales = [
        make_sale(date(2024, 1, 3), 33.3, payments=[(date(2024, 1, 3), 3.3)]),
        make_sale(date(2024, 1, 1), 12.75),
        make_sale(date(2024, 2, 1), 99.99),
        make_sale(date(2024, 2, 2), 10.0, payments=[(date(2024, 2, 2), 10.0)]),
    ]
    before = compute_client_debt(sales)
    allocate_lump_payment(sales, 101.1, today=TODAY)
    after = compute_client_debt(sales)
    assert before - after == pytest.approx(101.1)
    assert all(s.balance >= -1e-9 for s in sales)


def test_allocation_of_full_debt_settles_everything(make_sale) -> None:
    sales = [make_sale(date(2024, 1, d), 10.1 * d) for d in range(1, 6)]
    allocate_lump_payment(sales, compute_client_debt(sales), today=TODAY)
    assert compute_client_debt(sales) == pytest.approx(0.0)


def test_allocation_ties_keep_list_order(make_sale) -> None:
    first = make_sale(date(2024, 1, 1), 40.0)
    second = make_sale(date(2024, 1, 1), 40.0)
    allocate_lump_payment([first, second], 50.0, today=TODAY)
    assert first.balance == 0.0
    assert second.balance == 30.0


def test_allocation_rejects_more_than_debt(make_sale) -> None:
    sales = [make_sale(date(2024, 1, 1), 50.0), make_sale(date(2024, 1, 2), 30.0)]
    with pytest.raises(PaymentValidationError):
        allocate_lump_payment(sales, 80.5, today=TODAY)
    assert all(s.payments == [] for s in sales)


def test_allocation_rejects_non_positive(make_sale) -> None:
    sales = [make_sale(date(2024, 1, 1), 50.0)]
    with pytest.raises(PaymentValidationError):
        allocate_lump_payment(sales, 0, today=TODAY)


NON_FINITE = [float("nan"), float("inf"), float("-inf")]


@pytest.mark.parametrize("amount", NON_FINITE)
def test_record_payment_rejects_non_finite(make_sale, amount) -> None:
    sale = make_sale(date(2024, 1, 1), 100.0)
    with pytest.raises(PaymentValidationError):
        record_payment(sale, amount, today=TODAY)
    assert sale.payments == []
    assert sale.balance == 100.0


@pytest.mark.parametrize("amount", NON_FINITE)
def test_allocation_rejects_non_finite(make_sale, amount) -> None:
    sales = [make_sale(date(2024, 1, 1), 50.0), make_sale(date(2024, 1, 2), 30.0)]
    with pytest.raises(PaymentValidationError):
        allocate_lump_payment(sales, amount, today=TODAY)
    assert all(s.payments == [] for s in sales)
    assert compute_client_debt(sales) == 80.0


def test_outstanding_sales_sorted_and_filtered(make_sale) -> None:
    paid = make_sale(date(2024, 1, 1), 10.0, payments=[(date(2024, 1, 1), 10.0)])
    late = make_sale(date(2024, 2, 1), 10.0)
    early = make_sale(date(2024, 1, 15), 10.0)
    assert outstanding_sales([paid, late, early]) == [early, late]


def test_cancel_account_respects_cutoff(make_sale) -> None:
    before_cut = make_sale(date(2024, 1, 1), 100.0, payments=[(date(2024, 1, 1), 40.0)])
    on_cut = make_sale(date(2024, 2, 1), 70.0)
    after_cut = make_sale(date(2024, 2, 2), 50.0)
    settled = make_sale(date(2024, 1, 5), 10.0, payments=[(date(2024, 1, 5), 10.0)])
    other_client = make_sale(date(2024, 1, 1), 80.0, client_id="c2")
    sales = [before_cut, on_cut, after_cut, settled, other_client]

    touched = cancel_account(sales, "c1", date(2024, 2, 1), today=TODAY)

    assert touched == [before_cut, on_cut]
    assert before_cut.balance == 0.0
    assert before_cut.payments[-1].amount == 60.0
    assert before_cut.payments[-1].date == date(2024, 2, 1)
    assert on_cut.balance == 0.0
    assert after_cut.payments == []
    assert len(settled.payments) == 1
    assert other_client.payments == []


def test_cancel_account_rejects_future_cutoff(make_sale) -> None:
    sales = [make_sale(date(2024, 1, 1), 100.0)]
    with pytest.raises(ValidationError):
        cancel_account(sales, "c1", date(2024, 3, 16), today=TODAY)
    assert sales[0].payments == []


def test_no_negative_balances_after_mixed_operations(make_sale) -> None:
    sales = [
        make_sale(date(2024, 1, 1), 120.0),
        make_sale(date(2024, 1, 8), 75.5, payments=[(date(2024, 1, 8), 5.5)]),
        make_sale(date(2024, 2, 20), 300.0),
    ]
    record_payment(sales[1], 70.0, today=TODAY)
    allocate_lump_payment(sales, 150.0, today=TODAY)
    cancel_account(sales, "c1", date(2024, 1, 31), today=TODAY)
    allocate_lump_payment(sales, compute_client_debt(sales), today=TODAY)
    assert all(s.balance >= -1e-9 for s in sales)


def test_ledger_expands_sales_and_payments(make_sale) -> None:
    sale = make_sale(
        date(2024, 1, 1), 100.0,
        payments=[(date(2024, 1, 1), 30.0), (date(2024, 1, 10), 20.0)],
        quantity=2, unit="baldes",
    )
    rows = build_consolidated_ledger([sale])
    assert [(r.date, r.description, r.debit, r.credit, r.balance) for r in rows] == [
        (date(2024, 1, 1), "Venta (2 baldes)", 100.0, 30.0, 70.0),
        (date(2024, 1, 10), "Abono", 0.0, 20.0, 50.0),
    ]


def test_ledger_same_day_sale_precedes_payment(make_sale) -> None:
    old = make_sale(date(2024, 1, 1), 50.0, payments=[(date(2024, 1, 5), 50.0)])
    new = make_sale(date(2024, 1, 5), 200.0)
    rows = build_consolidated_ledger([old, new])
    assert [r.description for r in rows] == ["Venta (1 unidades)", "Venta (1 unidades)", "Abono"]
    assert [r.debit for r in rows] == [50.0, 200.0, 0.0]
    assert rows[-1].balance == 200.0


def test_ledger_reconciles_with_client_debt(make_sale) -> None:
    sales = [
        make_sale(date(2024, 1, 1), 200.0, payments=[(date(2024, 1, 1), 50.0)]),
        make_sale(date(2024, 1, 7), 150.0, payments=[(date(2024, 1, 20), 70.0)]),
        make_sale(date(2024, 2, 1), 150.0),
    ]
    rows = build_consolidated_ledger(sales)
    assert ledger_final_balance(rows) == 380.0
    assert ledger_final_balance(rows) == compute_client_debt(sales)


def test_ledger_with_range_start_folds_opening_balance(make_sale) -> None:
    sales = [
        make_sale(date(2024, 1, 1), 100.0, payments=[(date(2024, 1, 1), 20.0), (date(2024, 1, 10), 30.0)]),
        make_sale(date(2024, 2, 10), 50.0),
    ]
    rows = build_consolidated_ledger(sales, range_start=date(2024, 2, 1))

    assert rows[0].is_opening_balance
    assert rows[0].date == date(2024, 2, 1)
    assert rows[0].description == "Saldo Anterior"
    assert rows[0].balance == 50.0
    assert [(r.description, r.balance) for r in rows[1:]] == [("Venta (1 unidades)", 100.0)]
    assert ledger_final_balance(rows) == ledger_final_balance(build_consolidated_ledger(sales))


def test_ledger_range_with_only_history_keeps_opening_row(make_sale) -> None:
    sales = [make_sale(date(2024, 1, 1), 100.0)]
    rows = build_consolidated_ledger(sales, range_start=date(2024, 3, 1))
    assert len(rows) == 1
    assert rows[0].is_opening_balance
    assert rows[0].balance == 100.0


def test_ledger_range_without_activity_is_empty(make_sale) -> None:
    settled = make_sale(date(2024, 1, 1), 100.0, payments=[(date(2024, 1, 1), 100.0)])
    assert build_consolidated_ledger([settled], range_start=date(2024, 3, 1)) == []
    assert build_consolidated_ledger([]) == []


@pytest.mark.parametrize(
    "preset, today, expected",
    [
        ("all", date(2024, 3, 31), None),
        ("lastWeek", date(2024, 3, 31), date(2024, 3, 24)),
        ("lastMonth", date(2024, 3, 31), date(2024, 2, 29)),
        ("last6Months", date(2024, 3, 31), date(2023, 9, 30)),
        ("lastYear", date(2024, 2, 29), date(2023, 2, 28)),
    ],
)
def test_resolve_range_start(preset, today, expected) -> None:
    assert resolve_range_start(preset, today=today) == expected


def test_resolve_range_start_unknown_preset() -> None:
    with pytest.raises(ValidationError):
        resolve_range_start("lastDecade", today=TODAY)


def test_ledger_description_never_uses_exponent_notation(make_sale) -> None:
    big = make_sale(date(2024, 1, 1), 1234567.0, quantity=1234567)
    fractional = make_sale(date(2024, 1, 2), 5.0, quantity=2.5)
    rows = build_consolidated_ledger([big, fractional])
    assert [r.description for r in rows] == ["Venta (1234567 unidades)", "Venta (2.5 unidades)"]
