"""Interfaz de línea de comandos para clientes, ventas, cuentas por cobrar y acopio."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from datetime import date

from .backup import export_backup, restore_backup
from .db import make_engine, make_session_factory
from .errors import ValidationError
from .receipts import (
    export_sales_history_pdf,
    export_statement_pdf,
    export_weekly_report_pdf,
    format_day,
    format_money,
    statement_table_data,
    weekly_report_title,
    weekly_summary_lines,
)
from .records import UNITS, Client, Provider, format_quantity
from .services.ledger import RANGE_PRESETS, resolve_range_start
from .services.supply import STATISTICS_RANGES
from .storage import BlobStorage
from .store import SalesStore
from .supply_store import SupplyStore

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    level = os.getenv("ACOPIAPP_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(asctime)s - %(levelname)s - %(message)s',
    )


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"fecha inválida (use YYYY-MM-DD): {value}") from exc


def find_client(store: SalesStore, ref: str) -> Client:
    """Buscar un cliente por ID o por nombre exacto (sin distinguir mayúsculas)."""
    for client in store.clients:
        if client.id == ref:
            return client
    matches = [c for c in store.clients if c.name.casefold() == ref.strip().casefold()]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        raise ValidationError(f"Hay {len(matches)} clientes llamados '{ref}'; use el ID.")
    raise ValidationError(f"Cliente no encontrado: {ref}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="acopiapp", description="Acopio de leche, producción, ventas y cuentas por cobrar")
    parser.add_argument("--db", help="Ruta SQLite o URL de base de datos (por defecto DATABASE_URL o ./data/acopiapp.db)")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("clients", help="Listar clientes con su deuda")

    p = sub.add_parser("add-client", help="Agregar un cliente")
    p.add_argument("name")
    p.add_argument("--address", required=True)
    p.add_argument("--phone", required=True)

    p = sub.add_parser("add-sale", help="Registrar una venta")
    p.add_argument("client")
    p.add_argument("--price", type=float, required=True)
    p.add_argument("--quantity", type=float, required=True)
    p.add_argument("--unit", choices=UNITS, default="baldes")
    p.add_argument("--date", type=_parse_date, default=None)
    p.add_argument("--down-payment", type=float, default=0.0)

    p = sub.add_parser("sales", help="Historial de ventas de un cliente")
    p.add_argument("client")
    p.add_argument("--all", action="store_true", help="Incluir ventas pagadas")

    sub.add_parser("debt", help="Resumen de deudas por cliente")

    p = sub.add_parser("pay", help="Abonar a una venta puntual")
    p.add_argument("sale_id")
    p.add_argument("amount", type=float)

    p = sub.add_parser("pay-debt", help="Abonar a la deuda total (más antiguas primero)")
    p.add_argument("client")
    p.add_argument("amount", type=float)

    p = sub.add_parser("cancel-account", help="Saldar todas las deudas hasta una fecha de corte")
    p.add_argument("client")
    p.add_argument("--cutoff", type=_parse_date, default=None)

    p = sub.add_parser("statement", help="Estado de cuenta consolidado")
    p.add_argument("client")
    p.add_argument("--range", choices=RANGE_PRESETS, default="all")
    p.add_argument("--pdf", nargs="?", const="", default=None, help="Exportar a PDF (ruta opcional)")

    p = sub.add_parser("history-pdf", help="Exportar el historial de ventas a PDF")
    p.add_argument("client")
    p.add_argument("--all", action="store_true")
    p.add_argument("--output")

    sub.add_parser("providers", help="Listar proveedores")

    p = sub.add_parser("add-provider", help="Agregar un proveedor")
    p.add_argument("name")
    p.add_argument("--address", required=True)
    p.add_argument("--phone", required=True)
    p.add_argument("--price", type=float, required=True, help="Precio por litro")

    p = sub.add_parser("delete-provider", help="Eliminar un proveedor (sus entregas se conservan)")
    p.add_argument("provider")

    p = sub.add_parser("deliver", help="Registrar una entrega de leche")
    p.add_argument("provider")
    p.add_argument("quantity", type=float)
    p.add_argument("--date", type=_parse_date, default=None)

    sub.add_parser("deliveries", help="Entregas con totales por día y por proveedor")

    p = sub.add_parser("delete-delivery", help="Eliminar una entrega")
    p.add_argument("delivery_id")

    p = sub.add_parser("production", help="Registrar la producción del día")
    p.add_argument("--units", type=float, required=True)
    p.add_argument("--whole-milk-kilos", type=float, default=None)
    p.add_argument("--date", type=_parse_date, default=None)

    p = sub.add_parser("replenish", help="Registrar una reposición de leche entera")
    p.add_argument("--sacos", type=float, required=True)
    p.add_argument("--price", type=float, required=True, help="Precio por saco")
    p.add_argument("--date", type=_parse_date, default=None)

    sub.add_parser("stock", help="Stock de leche entera")

    p = sub.add_parser("weekly-report", help="Reporte de la semana (domingo a sábado)")
    p.add_argument("--date", type=_parse_date, default=None, help="Cualquier día de la semana")
    p.add_argument("--pdf", nargs="?", const="", default=None, help="Exportar a PDF (ruta opcional)")

    p = sub.add_parser("stats", help="Entregas de un proveedor por periodo")
    p.add_argument("provider")
    p.add_argument("--range", choices=STATISTICS_RANGES, default="month")

    p = sub.add_parser("backup", help="Exportar un respaldo JSON")
    p.add_argument("--output")

    p = sub.add_parser("restore", help="Restaurar desde un respaldo JSON")
    p.add_argument("path")

    return parser


STATEMENT_HEADER = ("Fecha", "Descripción", "Cargo", "Abono", "Saldo")
STATEMENT_ROW = "{:<18} {:<22} {:>14} {:>14} {:>14}"

SUPPLY_COMMANDS = {
    "providers", "add-provider", "delete-provider", "deliver", "deliveries", "delete-delivery",
    "production", "replenish", "stock", "weekly-report", "stats",
}


def find_provider(store: SupplyStore, ref: str) -> Provider:
    for provider in store.providers:
        if provider.id == ref:
            return provider
    provider = store.find_provider_by_name(ref)
    if provider is None:
        raise ValidationError(f"Proveedor no encontrado: {ref}")
    return provider


def _print_sales(sales) -> None:
    for s in sales:
        print(f"{s.id}  {format_day(s.date):<18} {format_quantity(s.quantity)} {s.unit:<9} "
              f"total {format_money(s.total_amount):>14}  abono {format_money(s.paid_amount):>14}  "
              f"saldo {format_money(s.balance):>14}")


def run(args: argparse.Namespace, storage: BlobStorage) -> int:
    if args.command == "backup":
        path = export_backup(storage, args.output)
        print(f"Respaldo escrito en {path}")
        return 0
    if args.command == "restore":
        counts = restore_backup(storage, args.path)
        print("Respaldo restaurado: " + ", ".join(f"{k}={v}" for k, v in counts.items()))
        return 0

    if args.command in SUPPLY_COMMANDS:
        return run_supply(args, storage)

    store = SalesStore.load(storage)

    if args.command == "clients":
        for c in store.list_clients():
            print(f"{c.id}  {c.name:<30} {c.phone:<15} deuda {format_money(store.client_debt(c.id))}")
    elif args.command == "add-client":
        client = store.add_client(args.name, args.address, args.phone)
        print(f"Cliente agregado: {client.name} ({client.id})")
    elif args.command == "add-sale":
        client = find_client(store, args.client)
        sale = store.add_sale(client.id, args.date or store.today(), args.price, args.quantity,
                              args.unit, args.down_payment)
        print(f"Venta registrada: {sale.id} por {format_money(sale.total_amount)}")
    elif args.command == "sales":
        client = find_client(store, args.client)
        _print_sales(store.client_sales_view(client.id, include_paid=args.all))
        print(f"Deuda total: {format_money(store.client_debt(client.id))}")
    elif args.command == "debt":
        for _, name, amount in store.debt_summary():
            print(f"{name:<30} {format_money(amount):>14}")
    elif args.command == "pay":
        payment = store.record_payment(args.sale_id, args.amount)
        print(f"Pago registrado: {format_money(payment.amount)}")
    elif args.command == "pay-debt":
        client = find_client(store, args.client)
        touched = store.pay_client_debt(client.id, args.amount)
        print(f"Se abonó {format_money(args.amount)} a {len(touched)} venta(s) de {client.name}.")
    elif args.command == "cancel-account":
        client = find_client(store, args.client)
        cutoff = args.cutoff or store.today()
        touched = store.cancel_account(client.id, cutoff)
        print(f"{len(touched)} venta(s) de {client.name} saldadas hasta el {format_day(cutoff)}.")
    elif args.command == "statement":
        client = find_client(store, args.client)
        rows = store.consolidated_ledger(client.id, resolve_range_start(args.range, store.today()))
        print(STATEMENT_ROW.format(*STATEMENT_HEADER))
        for cells in statement_table_data(rows):
            print(STATEMENT_ROW.format(*cells))
        if args.pdf is not None:
            path = export_statement_pdf(client.name, rows, args.pdf or None)
            print(f"PDF escrito en {path}")
    elif args.command == "history-pdf":
        client = find_client(store, args.client)
        sales = store.client_sales_view(client.id, include_paid=args.all)
        if not sales:
            raise ValidationError("No hay ventas en la vista actual para exportar.")
        path = export_sales_history_pdf(client.name, sales, store.client_debt(client.id), args.output)
        print(f"PDF escrito en {path}")
    return 0


def run_supply(args: argparse.Namespace, storage: BlobStorage) -> int:
    store = SupplyStore.load(storage)

    if args.command == "providers":
        for p in store.list_providers():
            print(f"{p.id}  {p.name:<30} {p.phone:<15} {format_money(p.price):>12} / L")
    elif args.command == "add-provider":
        provider = store.add_provider(args.name, args.address, args.phone, args.price)
        print(f"Proveedor agregado: {provider.name} ({provider.id})")
    elif args.command == "delete-provider":
        provider = find_provider(store, args.provider)
        store.delete_provider(provider.id)
        print(f"Proveedor eliminado: {provider.name}")
    elif args.command == "deliver":
        delivery = store.add_delivery(args.provider, args.date or store.today(), args.quantity)
        print(f"Entrega registrada: {delivery.provider_name} {format_quantity(delivery.quantity)} L "
              f"el {format_day(delivery.date)} ({delivery.id})")
    elif args.command == "deliveries":
        for d in store.deliveries:
            print(f"{d.id}  {format_day(d.date):<18} {d.provider_name:<30} {format_quantity(d.quantity):>10} L")
        print("Totales por día:")
        for day, total in store.daily_totals().items():
            print(f"  {format_day(day):<18} {format_quantity(total):>10} L")
        print("Totales por proveedor:")
        for t in store.provider_totals():
            print(f"  {t.name:<30} {format_quantity(t.quantity):>10} L")
    elif args.command == "delete-delivery":
        if not store.delete_delivery(args.delivery_id):
            raise ValidationError(f"Entrega no encontrada: {args.delivery_id}")
        print("Entrega eliminada.")
    elif args.command == "production":
        record = store.record_production(args.date or store.today(), args.units, args.whole_milk_kilos)
        print(f"Producción del {format_day(record.date)}: {format_quantity(record.produced_units)} unidades, "
              f"materia prima {record.raw_material_liters:.2f} L, índice {record.transformation_index:.2f}%")
    elif args.command == "replenish":
        record = store.add_replenishment(args.date or store.today(), args.sacos, args.price)
        print(f"Reposición registrada: {format_quantity(record.quantity_sacos)} saco(s) a {format_money(record.price_per_saco)}")
    elif args.command == "stock":
        stock = store.whole_milk_stock()
        print(f"Stock de leche entera: {stock.sacos:.2f} sacos ({stock.kilos:.2f} kg)")
        if stock.is_low:
            print("Alerta de stock bajo: es hora de reabastecer.")
    elif args.command == "weekly-report":
        sales_store = SalesStore.load(storage)
        report = store.weekly_report(args.date or store.today(), clients=sales_store.clients, sales=sales_store.sales)
        print(weekly_report_title(report))
        for line in weekly_summary_lines(report):
            print(line)
        for s in report.provider_settlements:
            print(f"  {s.name:<30} {s.quantity:>10.2f} L  {format_money(s.total_to_pay):>14}")
        if args.pdf is not None:
            path = export_weekly_report_pdf(report, args.pdf or None)
            print(f"PDF escrito en {path}")
    elif args.command == "stats":
        provider = find_provider(store, args.provider)
        for period, total in store.delivery_series(provider.name, args.range):
            label = period.strftime("%m/%Y") if args.range in ("year", "all") else format_day(period)
            print(f"{label:<18} {format_quantity(total):>10} L")
    return 0


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    args = build_parser().parse_args(argv)
    engine = make_engine(args.db)
    storage = BlobStorage(make_session_factory(engine))
    try:
        return run(args, storage)
    except ValidationError as exc:
        logger.warning("Operación rechazada: %s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        engine.dispose()


if __name__ == "__main__":  # pragma: no cover - manual invocation
    sys.exit(main())
