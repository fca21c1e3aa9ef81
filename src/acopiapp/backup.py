"""Respaldo y restauración de todos los datos en un único documento JSON.

La restauración valida primero que el documento tenga todas las claves
esperadas y que cada lista pase el validador de esquema; solo entonces
sobrescribe el almacenamiento. Si algo falla no se modifica nada.
"""

from __future__ import annotations

import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Optional

from .db import get_data_dir
from .errors import BackupFormatError, SchemaError
from .schema import (
    parse_clients,
    parse_deliveries,
    parse_production,
    parse_providers,
    parse_replenishments,
    parse_sales,
)
from .storage import (
    CLIENTS_KEY,
    DELIVERIES_KEY,
    EXPECTED_KEYS,
    PRODUCTION_KEY,
    PROVIDERS_KEY,
    REPLENISHMENTS_KEY,
    SALES_KEY,
    BlobStorage,
)

logger = logging.getLogger(__name__)

_VALIDATORS = {
    CLIENTS_KEY: parse_clients,
    SALES_KEY: parse_sales,
    PROVIDERS_KEY: parse_providers,
    DELIVERIES_KEY: parse_deliveries,
    PRODUCTION_KEY: parse_production,
    REPLENISHMENTS_KEY: parse_replenishments,
}


def default_backup_path(today: Optional[date] = None) -> Path:
    d = today or date.today()
    return get_data_dir() / f"acopiapp_backup_{d.isoformat()}.json"


def build_backup(storage: BlobStorage) -> dict[str, Any]:
    """Documento con cada clave esperada (lista vacía si aún no existe)."""
    doc: dict[str, Any] = {}
    for key in EXPECTED_KEYS:
        data = storage.load_json(key)
        doc[key] = data if isinstance(data, list) else []
    return doc


def export_backup(storage: BlobStorage, path: Path | str | None = None) -> Path:
    out = Path(path) if path else default_backup_path()
    out.parent.mkdir(parents=True, exist_ok=True)
    doc = build_backup(storage)
    out.write_text(json.dumps(doc, ensure_ascii=False, indent=2), encoding="utf-8")
    logger.info("Respaldo exportado a %s", out)
    return out


def validate_backup(doc: Any) -> dict[str, list]:
    """Verificar la forma del documento; devuelve las listas por clave."""
    if not isinstance(doc, dict):
        raise BackupFormatError("El archivo de respaldo no contiene un objeto JSON.")
    missing = [k for k in EXPECTED_KEYS if k not in doc]
    if missing:
        raise BackupFormatError(f"El archivo de respaldo no es válido: faltan las claves {', '.join(missing)}.")
    for key in EXPECTED_KEYS:
        try:
            _VALIDATORS[key](doc[key], strict=True)
        except SchemaError as exc:
            raise BackupFormatError(f"Datos inválidos en {key}: {exc}") from exc
    return {k: doc[k] for k in EXPECTED_KEYS}


def load_backup_file(path: Path | str) -> Any:
    p = Path(path)
    if not p.exists():
        raise BackupFormatError(f"Archivo de respaldo no encontrado: {p}")
    try:
        return json.loads(p.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise BackupFormatError(f"El archivo de respaldo no es JSON válido: {exc}") from exc


def restore_backup(storage: BlobStorage, source: Path | str | dict) -> dict[str, int]:
    """Restaurar desde un archivo o un documento ya cargado.

    Devuelve la cantidad de registros restaurados por clave.
    """
    doc = source if isinstance(source, dict) else load_backup_file(source)
    lists = validate_backup(doc)
    for key, data in lists.items():
        storage.save_json(key, data)
    counts = {k: len(v) for k, v in lists.items()}
    logger.info("Respaldo restaurado: %s", counts)
    return counts
