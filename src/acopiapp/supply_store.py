"""Almacén del lado de acopio: proveedores, entregas, producción y leche entera.

Mismo esquema que :class:`~acopiapp.store.SalesStore`: listas canónicas en
memoria, persistencia inyectada y guardado después de cada mutación exitosa.
"""

from __future__ import annotations

import logging
import math
from datetime import date
from typing import Callable, Optional

from .errors import NotFoundError, SupplyValidationError
from .records import Client, Delivery, Production, Provider, Sale, WholeMilkReplenishment, new_id
from .services import supply
from .storage import DELIVERIES_KEY, PRODUCTION_KEY, PROVIDERS_KEY, REPLENISHMENTS_KEY
from .store import clean_contact_fields

logger = logging.getLogger(__name__)

MIN_DELIVERY_DATE = date(2000, 1, 1)


def _require_positive(value: float, message: str) -> None:
    if not math.isfinite(value) or value <= 0:
        raise SupplyValidationError(message)


class SupplyStore:
    def __init__(
        self,
        providers: list[Provider] | None = None,
        deliveries: list[Delivery] | None = None,
        production: list[Production] | None = None,
        replenishments: list[WholeMilkReplenishment] | None = None,
        *,
        persistence=None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.providers: list[Provider] = list(providers or [])
        self.deliveries: list[Delivery] = list(deliveries or [])
        self.production: list[Production] = list(production or [])
        self.replenishments: list[WholeMilkReplenishment] = list(replenishments or [])
        self._persistence = persistence
        self._today = today

    @classmethod
    def load(cls, storage, *, today: Callable[[], date] = date.today) -> "SupplyStore":
        store = cls(
            storage.load_providers(),
            storage.load_deliveries(),
            storage.load_production(),
            storage.load_replenishments(),
            persistence=storage,
            today=today,
        )
        logger.info(
            "Acopio cargado: %d proveedor(es), %d entrega(s), %d registro(s) de producción",
            len(store.providers), len(store.deliveries), len(store.production),
        )
        return store

    def today(self) -> date:
        return self._today()

    def _save(self, key: str, records: list) -> None:
        if self._persistence is not None:
            self._persistence.save(key, records)

    def _check_not_future(self, d: date, what: str) -> None:
        if d > self.today():
            raise SupplyValidationError(f"La fecha de {what} no puede ser futura.")

    # --- Proveedores ---

    def list_providers(self) -> list[Provider]:
        return list(self.providers)

    def get_provider(self, provider_id: str) -> Provider:
        for provider in self.providers:
            if provider.id == provider_id:
                return provider
        raise NotFoundError(f"Proveedor {provider_id} no encontrado")

    def find_provider_by_name(self, name: str) -> Optional[Provider]:
        wanted = name.strip().casefold()
        for provider in self.providers:
            if provider.name.casefold() == wanted:
                return provider
        return None

    def _clean_provider(self, name: str, address: str, phone: str, price: float, *, exclude_id: str = "") -> dict:
        values = clean_contact_fields(name, address, phone)
        _require_positive(price, "El precio debe ser mayor que cero.")
        # Las entregas se vinculan por nombre: no puede repetirse
        other = self.find_provider_by_name(values["name"])
        if other is not None and other.id != exclude_id:
            raise SupplyValidationError(f"Ya existe un proveedor llamado {other.name}.")
        return {**values, "price": price}

    def add_provider(self, name: str, address: str, phone: str, price: float) -> Provider:
        provider = Provider(id=new_id(), **self._clean_provider(name, address, phone, price))
        self.providers.append(provider)
        self._save(PROVIDERS_KEY, self.providers)
        logger.info("Proveedor agregado: %s", provider.name)
        return provider

    def update_provider(self, provider_id: str, *, name: str, address: str, phone: str, price: float) -> Provider:
        """Actualizar un proveedor. Un cambio de nombre se propaga a sus entregas."""
        provider = self.get_provider(provider_id)
        values = self._clean_provider(name, address, phone, price, exclude_id=provider_id)
        old_name = provider.name
        provider.name = values["name"]
        provider.address = values["address"]
        provider.phone = values["phone"]
        provider.price = values["price"]
        self._save(PROVIDERS_KEY, self.providers)
        if provider.name != old_name:
            renamed = 0
            for d in self.deliveries:
                if d.provider_name == old_name:
                    d.provider_name = provider.name
                    renamed += 1
            if renamed:
                self._save(DELIVERIES_KEY, self.deliveries)
        logger.info("Proveedor actualizado: %s", provider.name)
        return provider

    def delete_provider(self, provider_id: str) -> bool:
        """Eliminar un proveedor; sus entregas se conservan."""
        before = len(self.providers)
        self.providers = [p for p in self.providers if p.id != provider_id]
        if len(self.providers) == before:
            return False
        self._save(PROVIDERS_KEY, self.providers)
        logger.info("Proveedor %s eliminado", provider_id)
        return True

    # --- Entregas ---

    def add_delivery(self, provider_name: str, delivery_date: date, quantity: float) -> Delivery:
        provider = self.find_provider_by_name(provider_name)
        if provider is None:
            raise NotFoundError(f"Proveedor no encontrado: {provider_name}")
        _require_positive(quantity, "La cantidad debe ser un número positivo.")
        self._check_not_future(delivery_date, "entrega")
        if delivery_date < MIN_DELIVERY_DATE:
            raise SupplyValidationError("La fecha de entrega es demasiado antigua.")

        delivery = Delivery(id=new_id(), provider_name=provider.name, date=delivery_date, quantity=quantity)
        # Las entregas más recientes se registran al inicio
        self.deliveries.insert(0, delivery)
        self._save(DELIVERIES_KEY, self.deliveries)
        logger.info(
            "Entrega de %s el %s por %s unidades registrada",
            provider.name, delivery_date.isoformat(), quantity,
        )
        return delivery

    def delete_delivery(self, delivery_id: str) -> bool:
        before = len(self.deliveries)
        self.deliveries = [d for d in self.deliveries if d.id != delivery_id]
        if len(self.deliveries) == before:
            return False
        self._save(DELIVERIES_KEY, self.deliveries)
        logger.info("Entrega %s eliminada", delivery_id)
        return True

    def daily_totals(self) -> dict[date, float]:
        return supply.daily_totals(self.deliveries)

    def provider_totals(self) -> list[supply.ProviderTotal]:
        return supply.provider_totals(self.deliveries)

    def delivery_series(self, provider_name: str, range_name: str) -> list[tuple[date, float]]:
        """Serie para la gráfica de estadísticas de un proveedor."""
        own = [d for d in self.deliveries if d.provider_name == provider_name]
        interval = supply.statistics_interval(range_name, self.today(), own)
        if interval is None:
            return []
        start, end = interval
        return supply.delivery_series(own, provider_name, start, end, by_month=range_name in ("year", "all"))

    # --- Producción ---

    def record_production(
        self,
        production_date: date,
        produced_units: float,
        whole_milk_kilos: Optional[float] = None,
    ) -> Production:
        """Registrar la producción de un día; reemplaza el registro previo de esa fecha.

        La materia prima base es el total de entregas del día al momento del
        registro y se guarda junto con el índice calculado.
        """
        if not math.isfinite(produced_units) or produced_units < 1:
            raise SupplyValidationError("Debe registrar al menos una unidad.")
        if whole_milk_kilos is not None:
            _require_positive(whole_milk_kilos, "Debe ingresar los kilos de leche entera si selecciona la opción.")
        self._check_not_future(production_date, "producción")

        kilos = whole_milk_kilos or 0.0
        raw = supply.raw_material_for_day(self.deliveries, production_date)
        record = Production(
            id=new_id(),
            date=production_date,
            produced_units=produced_units,
            whole_milk_kilos=kilos,
            raw_material_liters=raw,
            transformation_index=supply.transformation_index(produced_units, raw, kilos),
        )
        others = [p for p in self.production if p.date != production_date]
        self.production = sorted(others + [record], key=lambda p: p.date, reverse=True)
        self._save(PRODUCTION_KEY, self.production)
        logger.info(
            "Producción del %s registrada: %s unidades, índice %.2f%%",
            production_date.isoformat(), produced_units, record.transformation_index,
        )
        return record

    # --- Leche entera ---

    def add_replenishment(self, replenish_date: date, quantity_sacos: float, price_per_saco: float) -> WholeMilkReplenishment:
        _require_positive(quantity_sacos, "La cantidad de sacos debe ser un número positivo.")
        if not math.isfinite(price_per_saco) or price_per_saco < 0:
            raise SupplyValidationError("El precio por saco no puede ser negativo.")
        self._check_not_future(replenish_date, "reposición")
        record = WholeMilkReplenishment(
            id=new_id(), date=replenish_date, quantity_sacos=quantity_sacos, price_per_saco=price_per_saco
        )
        self.replenishments.append(record)
        self._save(REPLENISHMENTS_KEY, self.replenishments)
        logger.info("Reposición de %s saco(s) de leche entera registrada", quantity_sacos)
        return record

    def whole_milk_stock(self) -> supply.WholeMilkStock:
        stock = supply.whole_milk_stock(self.replenishments, self.production)
        if stock.is_low:
            logger.warning("Stock bajo de leche entera: %.2f kg", stock.kilos)
        return stock

    # --- Reporte ---

    def weekly_report(self, day: date, *, clients: list[Client], sales: list[Sale]) -> supply.WeeklyReport:
        return supply.build_weekly_report(
            day,
            providers=self.providers,
            deliveries=self.deliveries,
            production=self.production,
            clients=clients,
            sales=sales,
            replenishments=self.replenishments,
        )


__all__ = ["MIN_DELIVERY_DATE", "SupplyStore"]
