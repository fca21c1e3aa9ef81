"""Almacén de clientes y ventas.

``SalesStore`` es el dueño de las listas canónicas. La persistencia se inyecta
(cualquier objeto con ``save(key, records)``, normalmente
:class:`~acopiapp.storage.BlobStorage`) y se invoca después de cada mutación
exitosa. Sin persistencia el almacén trabaja solo en memoria.
"""

from __future__ import annotations

import logging
import math
from datetime import date
from typing import Callable, Optional

from .errors import NotFoundError, SaleValidationError, ValidationError
from .records import UNITS, Client, Payment, Sale, compute_total_amount, new_id
from .services import ledger
from .storage import CLIENTS_KEY, SALES_KEY

logger = logging.getLogger(__name__)

# Límites de los formularios de clientes y proveedores
CLIENT_FIELD_LIMITS = {"name": 100, "address": 200, "phone": 20}


def clean_contact_fields(name: str, address: str, phone: str) -> dict[str, str]:
    values = {"name": name.strip(), "address": address.strip(), "phone": phone.strip()}
    for key, value in values.items():
        if not value:
            raise ValidationError(f"El campo {key} es obligatorio.")
        if len(value) > CLIENT_FIELD_LIMITS[key]:
            raise ValidationError(f"El campo {key} debe tener {CLIENT_FIELD_LIMITS[key]} caracteres o menos.")
    return values


class SalesStore:
    def __init__(
        self,
        clients: list[Client] | None = None,
        sales: list[Sale] | None = None,
        *,
        persistence=None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.clients: list[Client] = list(clients or [])
        self.sales: list[Sale] = list(sales or [])
        self._persistence = persistence
        self._today = today

    @classmethod
    def load(cls, storage, *, today: Callable[[], date] = date.today) -> "SalesStore":
        """Leer ambas listas del almacenamiento (validadas en el borde)."""
        store = cls(storage.load_clients(), storage.load_sales(), persistence=storage, today=today)
        logger.info("Datos cargados: %d cliente(s), %d venta(s)", len(store.clients), len(store.sales))
        return store

    def today(self) -> date:
        return self._today()

    # --- Persistencia ---

    def _save_clients(self) -> None:
        if self._persistence is not None:
            self._persistence.save(CLIENTS_KEY, self.clients)

    def _save_sales(self) -> None:
        if self._persistence is not None:
            self._persistence.save(SALES_KEY, self.sales)

    # --- Clientes ---

    def list_clients(self) -> list[Client]:
        return list(self.clients)

    def get_client(self, client_id: str) -> Client:
        for client in self.clients:
            if client.id == client_id:
                return client
        raise NotFoundError(f"Cliente {client_id} no encontrado")

    def add_client(self, name: str, address: str, phone: str) -> Client:
        client = Client(id=new_id(), **clean_contact_fields(name, address, phone))
        self.clients.append(client)
        self._save_clients()
        logger.info("Cliente agregado: %s", client.name)
        return client

    def update_client(self, client_id: str, *, name: str, address: str, phone: str) -> Client:
        client = self.get_client(client_id)
        values = clean_contact_fields(name, address, phone)
        client.name = values["name"]
        client.address = values["address"]
        client.phone = values["phone"]
        self._save_clients()
        logger.info("Cliente actualizado: %s", client.name)
        return client

    def delete_client(self, client_id: str) -> bool:
        """Eliminar un cliente. Sus ventas se conservan con el nombre copiado."""
        before = len(self.clients)
        self.clients = [c for c in self.clients if c.id != client_id]
        if len(self.clients) == before:
            return False
        self._save_clients()
        logger.info("Cliente %s eliminado", client_id)
        return True

    # --- Ventas ---

    def list_sales(self) -> list[Sale]:
        """Todas las ventas, de la más reciente a la más antigua."""
        return sorted(self.sales, key=lambda s: s.date, reverse=True)

    def get_sale(self, sale_id: str) -> Sale:
        for sale in self.sales:
            if sale.id == sale_id:
                return sale
        raise NotFoundError(f"Venta {sale_id} no encontrada")

    def sales_for_client(self, client_id: str) -> list[Sale]:
        return ledger.sales_for_client(self.sales, client_id)

    def client_sales_view(self, client_id: str, include_paid: bool = False) -> list[Sale]:
        """Historial de ventas del cliente (más recientes primero); por defecto solo pendientes."""
        rows = sorted(self.sales_for_client(client_id), key=lambda s: s.date, reverse=True)
        if include_paid:
            return rows
        return [s for s in rows if s.balance > 0]

    def add_sale(
        self,
        client_id: str,
        sale_date: date,
        price: float,
        quantity: float,
        unit: str,
        down_payment: float = 0.0,
    ) -> Sale:
        client = self.get_client(client_id)
        if not all(math.isfinite(v) for v in (price, quantity, down_payment or 0.0)):
            raise SaleValidationError("Precio, cantidad y abono deben ser números válidos.")
        if price <= 0:
            raise SaleValidationError("El precio debe ser mayor que cero.")
        if quantity <= 0:
            raise SaleValidationError("La cantidad debe ser un número positivo.")
        if unit not in UNITS:
            raise SaleValidationError("Debe seleccionar una unidad.")
        if sale_date > self.today():
            raise SaleValidationError("La fecha de la venta no puede ser futura.")
        down = down_payment or 0.0
        if down < 0:
            raise SaleValidationError("El abono no puede ser negativo.")
        total = compute_total_amount(price, quantity, unit)
        if down > total:
            raise SaleValidationError("El abono no puede ser mayor que el monto total de la venta.")

        sale = Sale(
            id=new_id(),
            date=sale_date,
            client_id=client.id,
            client_name=client.name,
            price=price,
            quantity=quantity,
            unit=unit,
            total_amount=total,
            payments=[Payment(date=sale_date, amount=down)] if down > 0 else [],
        )
        self.sales.append(sale)
        self._save_sales()
        logger.info("Venta registrada para %s por %.2f", client.name, total)
        return sale

    def delete_sale(self, sale_id: str) -> bool:
        before = len(self.sales)
        self.sales = [s for s in self.sales if s.id != sale_id]
        if len(self.sales) == before:
            return False
        self._save_sales()
        logger.info("Venta %s eliminada", sale_id)
        return True

    # --- Cuentas por cobrar ---

    def record_payment(self, sale_id: str, amount: float) -> Payment:
        sale = self.get_sale(sale_id)
        payment = ledger.record_payment(sale, amount, today=self.today())
        self._save_sales()
        return payment

    def client_debt(self, client_id: str) -> float:
        return ledger.compute_client_debt(self.sales_for_client(client_id))

    def pay_client_debt(self, client_id: str, amount: float) -> list[Sale]:
        touched = ledger.allocate_lump_payment(self.sales_for_client(client_id), amount, today=self.today())
        self._save_sales()
        return touched

    def cancel_account(self, client_id: str, cutoff_date: date) -> list[Sale]:
        touched = ledger.cancel_account(self.sales, client_id, cutoff_date, today=self.today())
        if touched:
            self._save_sales()
        return touched

    def consolidated_ledger(self, client_id: str, range_start: Optional[date] = None) -> list[ledger.LedgerRow]:
        return ledger.build_consolidated_ledger(self.sales_for_client(client_id), range_start)

    def debt_summary(self) -> list[tuple[str, str, float]]:
        """(client_id, nombre, deuda) de clientes con deuda, de mayor a menor."""
        names = {c.id: c.name for c in self.clients}
        totals: dict[str, float] = {}
        for sale in self.sales:
            pending = max(0.0, sale.balance)
            if pending > 0:
                totals[sale.client_id] = totals.get(sale.client_id, 0.0) + pending
                names.setdefault(sale.client_id, sale.client_name)
        rows = [(cid, names[cid], amount) for cid, amount in totals.items()]
        rows.sort(key=lambda r: r[2], reverse=True)
        return rows
