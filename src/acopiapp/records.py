from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Literal

Unit = Literal["baldes", "unidades"]

UNITS: tuple[str, ...] = ("baldes", "unidades")
BALDE_FACTOR = 100  # 1 balde = 100 unidades base


def new_id() -> str:
    return str(uuid.uuid4())


def unit_factor(unit: str) -> int:
    return BALDE_FACTOR if unit == "baldes" else 1


def compute_total_amount(price: float, quantity: float, unit: str) -> float:
    """Monto total de una venta; los baldes se normalizan a 100 unidades."""
    return price * quantity * unit_factor(unit)


def format_quantity(quantity: float) -> str:
    """Cantidad sin notación exponencial: 1234567 -> "1234567", 2.5 -> "2.5"."""
    if float(quantity).is_integer():
        return str(int(quantity))
    return f"{quantity:.10g}"


@dataclass(frozen=True, slots=True)
class Payment:
    date: date
    amount: float

    def to_dict(self) -> dict:
        return {"date": self.date.isoformat(), "amount": self.amount}


@dataclass(slots=True)
class Client:
    id: str
    name: str
    address: str = ""
    phone: str = ""

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "address": self.address, "phone": self.phone}


@dataclass(slots=True)
class Sale:
    """Venta a un cliente. Solo se modifica agregando pagos."""

    id: str
    date: date
    client_id: str
    client_name: str  # copia del nombre al momento de la venta
    price: float
    quantity: float
    unit: Unit
    total_amount: float
    payments: list[Payment] = field(default_factory=list)

    @property
    def paid_amount(self) -> float:
        return sum(p.amount for p in self.payments)

    @property
    def balance(self) -> float:
        return self.total_amount - self.paid_amount

    @property
    def is_settled(self) -> bool:
        return self.balance <= 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "clientId": self.client_id,
            "clientName": self.client_name,
            "price": self.price,
            "quantity": self.quantity,
            "unit": self.unit,
            "totalAmount": self.total_amount,
            "payments": [p.to_dict() for p in self.payments],
        }


@dataclass(slots=True)
class Provider:
    id: str
    name: str
    address: str
    phone: str
    price: float  # precio por litro al que se le compra

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "address": self.address, "phone": self.phone, "price": self.price}


@dataclass(slots=True)
class Delivery:
    """Entrega de leche de un proveedor (litros)."""

    id: str
    provider_name: str
    date: date
    quantity: float

    def to_dict(self) -> dict:
        return {"id": self.id, "providerName": self.provider_name, "date": self.date.isoformat(), "quantity": self.quantity}


@dataclass(slots=True)
class Production:
    """Producción de un día. Se guarda la materia prima base del momento del registro."""

    id: str
    date: date
    produced_units: float
    whole_milk_kilos: float
    raw_material_liters: float
    transformation_index: float

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "producedUnits": self.produced_units,
            "wholeMilkKilos": self.whole_milk_kilos,
            "rawMaterialLiters": self.raw_material_liters,
            "transformationIndex": self.transformation_index,
        }


@dataclass(slots=True)
class WholeMilkReplenishment:
    id: str
    date: date
    quantity_sacos: float
    price_per_saco: float

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "quantitySacos": self.quantity_sacos,
            "pricePerSaco": self.price_per_saco,
        }


def paid_amount(sale: Sale) -> float:
    return sale.paid_amount


def balance(sale: Sale) -> float:
    return sale.balance


def is_settled(sale: Sale) -> bool:
    return sale.is_settled


__all__ = [
    "BALDE_FACTOR",
    "Client",
    "Delivery",
    "Payment",
    "Production",
    "Provider",
    "Sale",
    "UNITS",
    "Unit",
    "WholeMilkReplenishment",
    "balance",
    "compute_total_amount",
    "format_quantity",
    "is_settled",
    "new_id",
    "paid_amount",
    "unit_factor",
]
