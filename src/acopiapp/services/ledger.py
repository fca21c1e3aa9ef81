"""Motor de cuentas por cobrar de clientes.

Funciones puras sobre listas de :class:`~acopiapp.records.Sale`. La única
mutación permitida es agregar pagos a las ventas recibidas, y solo después de
validar todas las precondiciones: una operación se aplica completa o no se
aplica.
"""

from __future__ import annotations

import calendar
import logging
import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Iterable, Optional

from ..errors import PaymentValidationError, ValidationError
from ..records import Payment, Sale, format_quantity

logger = logging.getLogger(__name__)

EPSILON = 1e-9  # tolerancia para comparar montos en punto flotante

OPENING_BALANCE_LABEL = "Saldo Anterior"
PAYMENT_LABEL = "Abono"

RANGE_PRESETS = ("all", "lastWeek", "lastMonth", "last6Months", "lastYear")


@dataclass(frozen=True, slots=True)
class LedgerRow:
    date: date
    description: str
    debit: float
    credit: float
    balance: float
    is_opening_balance: bool = False


def _today(today: Optional[date]) -> date:
    return today or date.today()


def _check_amount(amount: float) -> None:
    # NaN e infinito no cumplen ninguna comparación; se rechazan aparte
    if not math.isfinite(amount) or amount <= 0:
        raise PaymentValidationError("El monto debe ser un número positivo.")


def sales_for_client(sales: Iterable[Sale], client_id: str) -> list[Sale]:
    return [s for s in sales if s.client_id == client_id]


def outstanding_sales(sales: Iterable[Sale]) -> list[Sale]:
    """Ventas con saldo pendiente, de la más antigua a la más reciente.

    ``sorted`` es estable: ventas de la misma fecha conservan el orden de la lista.
    """
    return sorted((s for s in sales if s.balance > 0), key=lambda s: s.date)


def compute_client_debt(sales: Iterable[Sale]) -> float:
    """Deuda total: suma de saldos positivos (ventas pagadas o con sobrepago aportan 0)."""
    return sum(max(0.0, s.balance) for s in sales)


def record_payment(sale: Sale, amount: float, today: Optional[date] = None) -> Payment:
    """Registrar un abono a una venta puntual.

    Rechaza montos no positivos o mayores al saldo sin modificar la venta.
    """
    _check_amount(amount)
    current = sale.balance
    if amount > current + EPSILON:
        raise PaymentValidationError(
            f"El pago no puede exceder el saldo de S/. {max(current, 0.0):,.2f}"
        )
    payment = Payment(date=_today(today), amount=amount)
    sale.payments.append(payment)
    logger.info("Pago de %.2f registrado para la venta %s", amount, sale.id)
    return payment


def allocate_lump_payment(sales: list[Sale], amount: float, today: Optional[date] = None) -> list[Sale]:
    """Aplicar un abono único a la deuda de un cliente, deudas más antiguas primero.

    Reglas:
    1) Se consideran solo ventas con saldo > 0.
    2) Orden ascendente por fecha; empates por orden en la lista.
    3) A cada venta se le abona ``min(restante, saldo)`` hasta agotar el monto.

    Devuelve las ventas que recibieron un pago. La asignación no es reversible.
    """
    _check_amount(amount)
    total_debt = compute_client_debt(sales)
    if amount > total_debt + EPSILON:
        raise PaymentValidationError(
            f"El pago no puede exceder la deuda total de S/. {total_debt:,.2f}"
        )

    pay_date = _today(today)
    remaining = amount
    touched: list[Sale] = []
    for sale in outstanding_sales(sales):
        if remaining <= 0:
            break
        applied = min(remaining, sale.balance)
        if applied > 0:
            sale.payments.append(Payment(date=pay_date, amount=applied))
            remaining -= applied
            touched.append(sale)
    logger.info("Abono de %.2f distribuido en %d venta(s)", amount, len(touched))
    return touched


def cancel_account(
    sales: list[Sale],
    client_id: str,
    cutoff_date: date,
    today: Optional[date] = None,
) -> list[Sale]:
    """Saldar todas las deudas de un cliente hasta la fecha de corte (inclusive).

    Cada venta pendiente recibe un pago por exactamente su saldo, fechado en la
    fecha de corte. Las ventas posteriores al corte o ya pagadas no se tocan.
    El pago se guarda igual que un abono real (ver DESIGN.md).
    """
    if cutoff_date > _today(today):
        raise ValidationError("La fecha de corte no puede ser futura.")

    touched: list[Sale] = []
    for sale in sales:
        if sale.client_id != client_id or sale.date > cutoff_date:
            continue
        pending = sale.balance
        if pending > 0:
            sale.payments.append(Payment(date=cutoff_date, amount=pending))
            touched.append(sale)
    logger.info(
        "Cuenta del cliente %s cancelada hasta %s: %d venta(s) saldadas",
        client_id, cutoff_date.isoformat(), len(touched),
    )
    return touched


def _transactions(sales: Iterable[Sale]) -> list[tuple[date, str, float, float]]:
    rows: list[tuple[date, str, float, float]] = []
    for sale in sales:
        # El pago del mismo día de la venta se muestra como su abono inicial
        initial = sum(p.amount for p in sale.payments if p.date == sale.date)
        rows.append((sale.date, f"Venta ({format_quantity(sale.quantity)} {sale.unit})", sale.total_amount, initial))
        for p in sale.payments:
            if p.date != sale.date:
                rows.append((p.date, PAYMENT_LABEL, 0.0, p.amount))
    # Mismo día: cargos mayores primero, así la venta precede a sus abonos
    rows.sort(key=lambda t: (t[0], -t[2]))
    return rows


def build_consolidated_ledger(sales: Iterable[Sale], range_start: Optional[date] = None) -> list[LedgerRow]:
    """Estado de cuenta cronológico con saldo acumulado.

    Con ``range_start`` las transacciones anteriores se resumen en una fila
    "Saldo Anterior" fechada en el inicio del rango.
    """
    transactions = _transactions(sales)

    if range_start is None:
        running = 0.0
        result: list[LedgerRow] = []
        for tx_date, desc, debit, credit in transactions:
            running += debit - credit
            result.append(LedgerRow(tx_date, desc, debit, credit, running))
        return result

    opening = 0.0
    in_range: list[tuple[date, str, float, float]] = []
    for tx in transactions:
        if tx[0] < range_start:
            opening += tx[2] - tx[3]
        else:
            in_range.append(tx)

    if opening == 0 and not in_range:
        return []

    result = [LedgerRow(range_start, OPENING_BALANCE_LABEL, 0.0, 0.0, opening, is_opening_balance=True)]
    running = opening
    for tx_date, desc, debit, credit in in_range:
        running += debit - credit
        result.append(LedgerRow(tx_date, desc, debit, credit, running))
    return result


def ledger_final_balance(rows: list[LedgerRow]) -> float:
    return rows[-1].balance if rows else 0.0


def _sub_months(d: date, months: int) -> date:
    total = d.year * 12 + (d.month - 1) - months
    year, month = divmod(total, 12)
    month += 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


_PRESET_RESOLVERS: dict[str, Callable[[date], date]] = {
    "lastWeek": lambda d: d - timedelta(days=7),
    "lastMonth": lambda d: _sub_months(d, 1),
    "last6Months": lambda d: _sub_months(d, 6),
    "lastYear": lambda d: _sub_months(d, 12),
}


def resolve_range_start(preset: str, today: Optional[date] = None) -> Optional[date]:
    """Fecha de inicio para los filtros del estado de cuenta ("all" devuelve None)."""
    if preset == "all":
        return None
    try:
        resolver = _PRESET_RESOLVERS[preset]
    except KeyError as exc:
        raise ValidationError(f"Rango desconocido: {preset}") from exc
    return resolver(_today(today))


__all__ = [
    "EPSILON",
    "LedgerRow",
    "RANGE_PRESETS",
    "allocate_lump_payment",
    "build_consolidated_ledger",
    "cancel_account",
    "compute_client_debt",
    "ledger_final_balance",
    "outstanding_sales",
    "record_payment",
    "resolve_range_start",
    "sales_for_client",
]
