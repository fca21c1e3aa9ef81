"""Acopio y producción: entregas de proveedores, índice de transformación,
stock de leche entera y reporte semanal.

Funciones puras sobre las listas de registros; no modifican nada.
"""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Optional

from ..errors import ValidationError
from ..records import Client, Delivery, Production, Provider, Sale, WholeMilkReplenishment

logger = logging.getLogger(__name__)

LITERS_PER_WHOLE_MILK_KILO = 10  # 1 kg de leche entera en polvo rinde 10 L
KILOS_PER_SACO = 25
LOW_STOCK_KILOS = 5

STATISTICS_RANGES = ("week", "month", "year", "all")


@dataclass(frozen=True, slots=True)
class ProviderTotal:
    name: str
    quantity: float


@dataclass(frozen=True, slots=True)
class ProviderSettlement:
    name: str
    quantity: float
    price: float

    @property
    def total_to_pay(self) -> float:
        return self.quantity * self.price


@dataclass(frozen=True, slots=True)
class ClientWeekSummary:
    name: str
    total_bought: float
    total_paid: float

    @property
    def debt(self) -> float:
        return self.total_bought - self.total_paid


@dataclass(frozen=True, slots=True)
class WholeMilkStock:
    sacos: float

    @property
    def kilos(self) -> float:
        return self.sacos * KILOS_PER_SACO

    @property
    def is_low(self) -> bool:
        return self.kilos <= LOW_STOCK_KILOS


@dataclass(frozen=True, slots=True)
class WeeklyReport:
    week_start: date
    week_end: date
    total_raw_material: float
    total_units_produced: float
    avg_transformation_index: float
    top_provider: Optional[ProviderTotal]
    top_client: Optional[tuple[str, float]]
    current_week_sales: float
    previous_week_sales: float
    stock: WholeMilkStock
    whole_milk_kilos_used: float
    latest_milk_price: float
    provider_settlements: list[ProviderSettlement] = field(default_factory=list)
    client_summaries: list[ClientWeekSummary] = field(default_factory=list)
    production: list[Production] = field(default_factory=list)

    @property
    def sales_trend_percentage(self) -> Optional[float]:
        """Variación respecto a la semana anterior; None si no hubo ventas previas."""
        if self.previous_week_sales <= 0:
            return None
        return (self.current_week_sales - self.previous_week_sales) / self.previous_week_sales * 100

    @property
    def replenish_cost(self) -> float:
        """Costo de reponer la leche entera usada en la semana."""
        return self.whole_milk_kilos_used / KILOS_PER_SACO * self.latest_milk_price


def week_bounds(day: date) -> tuple[date, date]:
    """Semana de domingo a sábado que contiene ``day``."""
    start = day - timedelta(days=(day.weekday() + 1) % 7)
    return start, start + timedelta(days=6)


def _within(d: date, start: date, end: date) -> bool:
    return start <= d <= end


def daily_totals(deliveries: Iterable[Delivery]) -> dict[date, float]:
    """Litros recibidos por día, en orden cronológico."""
    totals: dict[date, float] = {}
    for d in deliveries:
        totals[d.date] = totals.get(d.date, 0.0) + d.quantity
    return dict(sorted(totals.items()))


def provider_totals(deliveries: Iterable[Delivery]) -> list[ProviderTotal]:
    """Litros por proveedor, ordenados por nombre."""
    totals: dict[str, float] = {}
    for d in deliveries:
        totals[d.provider_name] = totals.get(d.provider_name, 0.0) + d.quantity
    return [ProviderTotal(name, qty) for name, qty in sorted(totals.items(), key=lambda kv: kv[0].casefold())]


def raw_material_for_day(deliveries: Iterable[Delivery], day: date) -> float:
    return sum(d.quantity for d in deliveries if d.date == day)


def transformation_index(produced_units: float, raw_material_liters: float, whole_milk_kilos: float = 0.0) -> float:
    """Unidades producidas por cada 100 L de materia prima ajustada.

    La leche entera suma ``kilos * 10`` litros. Sin materia prima el índice es 0.
    """
    total = raw_material_liters + whole_milk_kilos * LITERS_PER_WHOLE_MILK_KILO
    if total <= 0 or produced_units <= 0:
        return 0.0
    return produced_units / total * 100


def whole_milk_stock(
    replenishments: Iterable[WholeMilkReplenishment],
    production: Iterable[Production],
) -> WholeMilkStock:
    replenished = sum(r.quantity_sacos for r in replenishments)
    used_kilos = sum(p.whole_milk_kilos for p in production)
    return WholeMilkStock(sacos=replenished - used_kilos / KILOS_PER_SACO)


def provider_settlements(providers: Iterable[Provider], deliveries: Iterable[Delivery]) -> list[ProviderSettlement]:
    """Monto a pagar a cada proveedor registrado por los litros entregados.

    Entregas de nombres que ya no están registrados no se liquidan.
    """
    quantities: dict[str, float] = {}
    prices: dict[str, float] = {}
    for p in providers:
        quantities.setdefault(p.name, 0.0)
        prices.setdefault(p.name, p.price)
    for d in deliveries:
        if d.provider_name in quantities:
            quantities[d.provider_name] += d.quantity
    return [ProviderSettlement(name, qty, prices[name]) for name, qty in quantities.items() if qty > 0]


def client_week_summaries(clients: Iterable[Client], sales: Iterable[Sale]) -> list[ClientWeekSummary]:
    bought: dict[str, float] = {}
    paid: dict[str, float] = {}
    names: dict[str, str] = {}
    for c in clients:
        names[c.id] = c.name
        bought[c.id] = 0.0
        paid[c.id] = 0.0
    for s in sales:
        if s.client_id in names:
            bought[s.client_id] += s.total_amount
            paid[s.client_id] += s.paid_amount
    return [ClientWeekSummary(names[cid], bought[cid], paid[cid]) for cid in names if bought[cid] > 0]


def build_weekly_report(
    day: date,
    *,
    providers: list[Provider],
    deliveries: list[Delivery],
    production: list[Production],
    clients: list[Client],
    sales: list[Sale],
    replenishments: list[WholeMilkReplenishment],
) -> WeeklyReport:
    """Resumen de la semana (domingo a sábado) que contiene ``day``."""
    start, end = week_bounds(day)
    prev_start, prev_end = start - timedelta(days=7), end - timedelta(days=7)

    week_deliveries = [d for d in deliveries if _within(d.date, start, end)]
    week_production = sorted((p for p in production if _within(p.date, start, end)), key=lambda p: p.date)
    week_sales = [s for s in sales if _within(s.date, start, end)]
    prev_sales = [s for s in sales if _within(s.date, prev_start, prev_end)]

    by_provider: dict[str, float] = {}
    for d in week_deliveries:
        by_provider[d.provider_name] = by_provider.get(d.provider_name, 0.0) + d.quantity
    top_provider = None
    if by_provider:
        name = max(by_provider, key=lambda n: by_provider[n])
        top_provider = ProviderTotal(name, by_provider[name])

    client_names = {c.id: c.name for c in clients}
    by_client: dict[str, float] = {}
    for s in week_sales:
        name = client_names.get(s.client_id, s.client_name)
        by_client[name] = by_client.get(name, 0.0) + s.total_amount
    top_client = None
    if by_client:
        name = max(by_client, key=lambda n: by_client[n])
        top_client = (name, by_client[name])

    # Índices en 0 corresponden a días sin materia prima y no entran al promedio
    indices = [p.transformation_index for p in week_production if p.transformation_index != 0]
    avg_index = sum(indices) / len(indices) if indices else 0.0

    latest = max(replenishments, key=lambda r: r.date, default=None)

    report = WeeklyReport(
        week_start=start,
        week_end=end,
        total_raw_material=sum(d.quantity for d in week_deliveries),
        total_units_produced=sum(p.produced_units for p in week_production),
        avg_transformation_index=avg_index,
        top_provider=top_provider,
        top_client=top_client,
        current_week_sales=sum(s.total_amount for s in week_sales),
        previous_week_sales=sum(s.total_amount for s in prev_sales),
        stock=whole_milk_stock(replenishments, production),
        whole_milk_kilos_used=sum(p.whole_milk_kilos for p in week_production),
        latest_milk_price=latest.price_per_saco if latest else 0.0,
        provider_settlements=provider_settlements(providers, week_deliveries),
        client_summaries=client_week_summaries(clients, week_sales),
        production=week_production,
    )
    logger.info("Reporte semanal generado para %s - %s", start.isoformat(), end.isoformat())
    return report


def statistics_interval(
    range_name: str,
    today: date,
    deliveries: Iterable[Delivery] = (),
) -> Optional[tuple[date, date]]:
    """Intervalo de la gráfica de entregas. ``all`` abarca las fechas existentes."""
    if range_name == "week":
        return week_bounds(today)
    if range_name == "month":
        last = calendar.monthrange(today.year, today.month)[1]
        return today.replace(day=1), today.replace(day=last)
    if range_name == "year":
        return date(today.year, 1, 1), date(today.year, 12, 31)
    if range_name == "all":
        dates = [d.date for d in deliveries]
        return (min(dates), max(dates)) if dates else None
    raise ValidationError(f"Rango desconocido: {range_name}")


def delivery_series(
    deliveries: Iterable[Delivery],
    provider_name: str,
    start: date,
    end: date,
    *,
    by_month: bool = False,
) -> list[tuple[date, float]]:
    """Litros entregados por un proveedor, por día o por mes (primer día del mes).

    Los periodos sin entregas aparecen con 0.
    """
    buckets: dict[date, float] = {}
    cursor = start.replace(day=1) if by_month else start
    while cursor <= end:
        buckets[cursor] = 0.0
        if by_month:
            cursor = date(cursor.year + cursor.month // 12, cursor.month % 12 + 1, 1)
        else:
            cursor += timedelta(days=1)

    for d in deliveries:
        if d.provider_name != provider_name or not _within(d.date, start, end):
            continue
        key = d.date.replace(day=1) if by_month else d.date
        buckets[key] += d.quantity
    return list(buckets.items())


__all__ = [
    "KILOS_PER_SACO",
    "LITERS_PER_WHOLE_MILK_KILO",
    "LOW_STOCK_KILOS",
    "STATISTICS_RANGES",
    "ClientWeekSummary",
    "ProviderSettlement",
    "ProviderTotal",
    "WeeklyReport",
    "WholeMilkStock",
    "build_weekly_report",
    "client_week_summaries",
    "daily_totals",
    "delivery_series",
    "provider_settlements",
    "provider_totals",
    "raw_material_for_day",
    "statistics_interval",
    "transformation_index",
    "week_bounds",
    "whole_milk_stock",
]
