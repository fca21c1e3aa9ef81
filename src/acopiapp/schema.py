"""Modelos de intercambio para los datos persistidos o importados.

Cada arreglo JSON se valida con un modelo pydantic (claves camelCase, como se
guardan) y se convierte a su dataclass. Los registros inválidos se rechazan,
nunca se completan con valores por defecto. La única migración admitida es la
del formato antiguo de ventas, que guardaba ``downPayment`` en lugar de la
lista ``payments``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Annotated, Any, Generic, Literal, TypeVar

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, TypeAdapter, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from .errors import SchemaError
from .records import Client, Delivery, Payment, Production, Provider, Sale, WholeMilkReplenishment

logger = logging.getLogger(__name__)

T = TypeVar("T")


def parse_iso_date(value: Any) -> date:
    """Fecha ``YYYY-MM-DD``. Un sufijo de hora ISO (``T...``) se descarta."""
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError("se esperaba una fecha YYYY-MM-DD")
    text = value[:10] if value[10:11] == "T" else value
    if len(text) != 10:
        raise ValueError(f"fecha inválida {value!r}")
    try:
        return date.fromisoformat(text)
    except ValueError:
        raise ValueError(f"fecha inválida {value!r}") from None


def _finite_number(value: Any) -> Any:
    # bool es subclase de int; no es un monto válido
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("se esperaba un número")
    if not math.isfinite(value):
        raise ValueError("el número debe ser finito")
    return value


IsoDate = Annotated[date, BeforeValidator(parse_iso_date)]
Number = Annotated[float, BeforeValidator(_finite_number)]
Amount = Annotated[float, BeforeValidator(_finite_number), Field(ge=0)]
NonEmptyStr = Annotated[str, Field(min_length=1)]


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        allow_inf_nan=False,
        extra="ignore",
    )


class PaymentModel(WireModel):
    date: IsoDate
    amount: Amount

    def to_record(self) -> Payment:
        return Payment(date=self.date, amount=self.amount)


class ClientModel(WireModel):
    id: NonEmptyStr
    name: NonEmptyStr
    address: str
    phone: str

    def to_record(self) -> Client:
        return Client(id=self.id, name=self.name, address=self.address, phone=self.phone)


class SaleModel(WireModel):
    id: NonEmptyStr
    date: IsoDate
    client_id: NonEmptyStr
    client_name: str
    price: Amount
    quantity: Amount
    unit: Literal["baldes", "unidades"]
    total_amount: Amount
    payments: list[PaymentModel]

    @model_validator(mode="before")
    @classmethod
    def migrate_down_payment(cls, data: Any) -> Any:
        """Convierte ``downPayment`` en un pago con la fecha de la venta."""
        if not isinstance(data, dict) or "payments" in data or "downPayment" not in data:
            return data
        migrated = {k: v for k, v in data.items() if k != "downPayment"}
        down = data["downPayment"]
        migrated["payments"] = [] if down == 0 else [{"date": data.get("date"), "amount": down}]
        logger.info("Venta %s migrada desde el formato con downPayment", data.get("id"))
        return migrated

    def to_record(self) -> Sale:
        return Sale(
            id=self.id,
            date=self.date,
            client_id=self.client_id,
            client_name=self.client_name,
            price=self.price,
            quantity=self.quantity,
            unit=self.unit,
            total_amount=self.total_amount,
            payments=[p.to_record() for p in self.payments],
        )


class ProviderModel(WireModel):
    id: NonEmptyStr
    name: NonEmptyStr
    address: str
    phone: str
    price: Amount

    def to_record(self) -> Provider:
        return Provider(id=self.id, name=self.name, address=self.address, phone=self.phone, price=self.price)


class DeliveryModel(WireModel):
    id: NonEmptyStr
    provider_name: NonEmptyStr
    date: IsoDate
    quantity: Amount

    def to_record(self) -> Delivery:
        return Delivery(id=self.id, provider_name=self.provider_name, date=self.date, quantity=self.quantity)


class ProductionModel(WireModel):
    id: NonEmptyStr
    date: IsoDate
    produced_units: Amount
    whole_milk_kilos: Amount = 0.0
    raw_material_liters: Amount = 0.0
    transformation_index: Number = 0.0

    def to_record(self) -> Production:
        return Production(
            id=self.id,
            date=self.date,
            produced_units=self.produced_units,
            whole_milk_kilos=self.whole_milk_kilos,
            raw_material_liters=self.raw_material_liters,
            transformation_index=self.transformation_index,
        )


class ReplenishmentModel(WireModel):
    id: NonEmptyStr
    date: IsoDate
    quantity_sacos: Amount
    price_per_saco: Amount

    def to_record(self) -> WholeMilkReplenishment:
        return WholeMilkReplenishment(
            id=self.id, date=self.date, quantity_sacos=self.quantity_sacos, price_per_saco=self.price_per_saco
        )


@dataclass(slots=True)
class ParseResult(Generic[T]):
    records: list[T] = field(default_factory=list)
    errors: list[SchemaError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def _describe(exc: PydanticValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"])
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)


def _parse_one(model: type[WireModel], raw: Any, path: str):
    try:
        return model.model_validate(raw).to_record()
    except PydanticValidationError as exc:
        raise SchemaError(_describe(exc), path=path) from exc


def parse_payment(raw: Any, path: str = "payment") -> Payment:
    return _parse_one(PaymentModel, raw, path)


def parse_client(raw: Any, path: str = "client") -> Client:
    return _parse_one(ClientModel, raw, path)


def parse_sale(raw: Any, path: str = "sale") -> Sale:
    return _parse_one(SaleModel, raw, path)


_LIST_ADAPTERS: dict[type[WireModel], TypeAdapter] = {
    model: TypeAdapter(list[model])
    for model in (ClientModel, SaleModel, ProviderModel, DeliveryModel, ProductionModel, ReplenishmentModel)
}


def _parse_list(data: Any, model: type[WireModel], name: str, *, strict: bool) -> ParseResult:
    """Validar un arreglo completo.

    En modo estricto (restauración de respaldos) el primer error aborta todo.
    En modo tolerante (carga del almacenamiento) los registros inválidos se
    descartan y se informan en ``errors``.
    """
    if not isinstance(data, list):
        raise SchemaError("se esperaba una lista", path=name)

    if strict:
        try:
            models = _LIST_ADAPTERS[model].validate_python(data)
        except PydanticValidationError as exc:
            loc = exc.errors()[0]["loc"]
            path = f"{name}[{loc[0]}]" if loc and isinstance(loc[0], int) else name
            raise SchemaError(_describe(exc), path=path) from exc
        return ParseResult(records=[m.to_record() for m in models])

    result: ParseResult = ParseResult()
    for idx, raw in enumerate(data):
        try:
            result.records.append(_parse_one(model, raw, f"{name}[{idx}]"))
        except SchemaError as exc:
            logger.warning("Registro rechazado: %s", exc)
            result.errors.append(exc)
    return result


def parse_clients(data: Any, *, strict: bool = False) -> ParseResult[Client]:
    return _parse_list(data, ClientModel, "clients", strict=strict)


def parse_sales(data: Any, *, strict: bool = False) -> ParseResult[Sale]:
    return _parse_list(data, SaleModel, "sales", strict=strict)


def parse_providers(data: Any, *, strict: bool = False) -> ParseResult[Provider]:
    return _parse_list(data, ProviderModel, "providers", strict=strict)


def parse_deliveries(data: Any, *, strict: bool = False) -> ParseResult[Delivery]:
    return _parse_list(data, DeliveryModel, "deliveries", strict=strict)


def parse_production(data: Any, *, strict: bool = False) -> ParseResult[Production]:
    return _parse_list(data, ProductionModel, "production", strict=strict)


def parse_replenishments(data: Any, *, strict: bool = False) -> ParseResult[WholeMilkReplenishment]:
    return _parse_list(data, ReplenishmentModel, "replenishments", strict=strict)


__all__ = [
    "ClientModel",
    "DeliveryModel",
    "ParseResult",
    "PaymentModel",
    "ProductionModel",
    "ProviderModel",
    "ReplenishmentModel",
    "SaleModel",
    "parse_client",
    "parse_clients",
    "parse_deliveries",
    "parse_iso_date",
    "parse_payment",
    "parse_production",
    "parse_providers",
    "parse_replenishments",
    "parse_sale",
    "parse_sales",
]
