from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base declarativa común para todos los modelos."""
    pass


class StorageEntry(Base):
    """Almacenamiento clave/valor: cada clave guarda un arreglo JSON completo."""

    __tablename__ = "storage_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)  # p.ej. dailySupplyTrackerSales
    value: Mapped[str] = mapped_column(Text, nullable=False)  # JSON serializado
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:  # pragma: no cover
        return f"StorageEntry(id={self.id!r}, key={self.key!r}, size={len(self.value or '')!r})"
