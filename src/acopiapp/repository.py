from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from .models import StorageEntry


# --- Almacenamiento clave/valor ---

def get_storage_value(session: Session, key: str, default_value: Optional[str] = None) -> Optional[str]:
    """Obtener el JSON crudo guardado bajo una clave."""
    try:
        entry = session.query(StorageEntry).filter(StorageEntry.key == key).first()
        return entry.value if entry else default_value
    except Exception:
        session.rollback()
        raise


def set_storage_value(session: Session, key: str, value: str) -> StorageEntry:
    """Sobrescribir (o crear) el valor de una clave."""
    try:
        entry = session.query(StorageEntry).filter(StorageEntry.key == key).first()
        if entry:
            entry.value = value
        else:
            entry = StorageEntry(key=key, value=value)
            session.add(entry)
        session.commit()
        session.refresh(entry)
        return entry
    except Exception:
        session.rollback()
        raise


def delete_storage_value(session: Session, key: str) -> bool:
    try:
        obj = session.query(StorageEntry).filter(StorageEntry.key == key).first()
        if not obj:
            return False
        session.delete(obj)
        session.commit()
        return True
    except Exception:
        session.rollback()
        raise


def list_storage_keys(session: Session) -> list[str]:
    try:
        return [k for (k,) in session.query(StorageEntry.key).order_by(StorageEntry.key.asc()).all()]
    except Exception:
        session.rollback()
        raise
