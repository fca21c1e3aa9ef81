"""Persistencia de listas completas como blobs JSON bajo claves con nombre.

Cada escritura reemplaza el blob completo (la última escritura gana). Un blob
corrupto se registra en el log, se borra y se sustituye por una lista vacía.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Optional

from sqlalchemy.orm import sessionmaker

from .errors import SchemaError
from .records import Client, Delivery, Production, Provider, Sale, WholeMilkReplenishment
from .repository import delete_storage_value, get_storage_value, list_storage_keys, set_storage_value
from .schema import (
    parse_clients,
    parse_deliveries,
    parse_production,
    parse_providers,
    parse_replenishments,
    parse_sales,
)

logger = logging.getLogger(__name__)

CLIENTS_KEY = "dailySupplyTrackerClients"
SALES_KEY = "dailySupplyTrackerSales"
PROVIDERS_KEY = "dailySupplyTrackerProviders"
DELIVERIES_KEY = "dailySupplyTrackerDeliveries"
PRODUCTION_KEY = "dailySupplyTrackerProduction"
REPLENISHMENTS_KEY = "dailySupplyTrackerWholeMilkReplenishments"

# Claves incluidas en los respaldos
EXPECTED_KEYS: tuple[str, ...] = (
    CLIENTS_KEY,
    SALES_KEY,
    PROVIDERS_KEY,
    DELIVERIES_KEY,
    PRODUCTION_KEY,
    REPLENISHMENTS_KEY,
)


class BlobStorage:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    # --- JSON crudo ---

    def load_json(self, key: str) -> Optional[Any]:
        with self._session_factory() as session:
            raw = get_storage_value(session, key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.error("Falló al parsear %s desde el almacenamiento: %s", key, exc)
            self.clear(key)
            return None

    def save_json(self, key: str, data: Any) -> None:
        payload = json.dumps(data, ensure_ascii=False, allow_nan=False)
        with self._session_factory() as session:
            set_storage_value(session, key, payload)
        logger.debug("Clave %s guardada (%d bytes)", key, len(payload))

    def save(self, key: str, records: Iterable[Any]) -> None:
        self.save_json(key, [r.to_dict() for r in records])

    def clear(self, key: str) -> bool:
        with self._session_factory() as session:
            return delete_storage_value(session, key)

    def keys(self) -> list[str]:
        with self._session_factory() as session:
            return list_storage_keys(session)

    # --- Registros tipados ---

    def _load_records(self, key: str, parser) -> list:
        data = self.load_json(key)
        if data is None:
            return []
        try:
            result = parser(data)
        except SchemaError as exc:
            logger.error("Contenido inesperado en %s, se descarta: %s", key, exc)
            self.clear(key)
            return []
        if result.errors:
            logger.warning(
                "%d registro(s) inválido(s) en %s serán descartados en el próximo guardado",
                len(result.errors), key,
            )
        return result.records

    def load_clients(self) -> list[Client]:
        return self._load_records(CLIENTS_KEY, parse_clients)

    def load_sales(self) -> list[Sale]:
        return self._load_records(SALES_KEY, parse_sales)

    def save_clients(self, clients: Iterable[Client]) -> None:
        self.save(CLIENTS_KEY, clients)

    def save_sales(self, sales: Iterable[Sale]) -> None:
        self.save(SALES_KEY, sales)

    def load_providers(self) -> list[Provider]:
        return self._load_records(PROVIDERS_KEY, parse_providers)

    def load_deliveries(self) -> list[Delivery]:
        return self._load_records(DELIVERIES_KEY, parse_deliveries)

    def load_production(self) -> list[Production]:
        return self._load_records(PRODUCTION_KEY, parse_production)

    def load_replenishments(self) -> list[WholeMilkReplenishment]:
        return self._load_records(REPLENISHMENTS_KEY, parse_replenishments)


__all__ = [
    "BlobStorage",
    "CLIENTS_KEY",
    "DELIVERIES_KEY",
    "EXPECTED_KEYS",
    "PRODUCTION_KEY",
    "PROVIDERS_KEY",
    "REPLENISHMENTS_KEY",
    "SALES_KEY",
]
