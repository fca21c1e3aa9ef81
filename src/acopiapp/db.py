from __future__ import annotations

from pathlib import Path
import os
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker
from dotenv import load_dotenv

from .models import Base

# Cargar variables desde .env si existe
load_dotenv()


def get_data_dir() -> Path:
    """Devuelve la carpeta de datos persistente.
    - Por defecto: ./data
    - Se puede forzar con la variable ACOPIAPP_DATA_DIR
    """
    override = os.getenv("ACOPIAPP_DATA_DIR")
    d = Path(override).expanduser() if override else Path.cwd() / "data"
    d.mkdir(parents=True, exist_ok=True)
    return d


def get_default_db_path() -> Path:
    return get_data_dir() / "acopiapp.db"


def make_engine(db_path: Path | str | None = None):
    """Crear un engine de SQLAlchemy.

    Prioridad de conexión:
    1) Si se pasa ``db_path`` (ruta SQLite o URL completa), respetar ese destino.
    2) Si existe la variable de entorno ``DATABASE_URL``, usarla.
    3) Usar SQLite local por defecto en ``./data/acopiapp.db``.
    """

    if db_path is not None:
        s = str(db_path)
        if s in {":memory:", "sqlite:///:memory:", "sqlite+pysqlite:///:memory:"}:
            # Base de datos en memoria: StaticPool para que todas las conexiones
            # compartan el mismo contexto durante las pruebas.
            return create_engine(
                "sqlite+pysqlite:///:memory:",
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        if "://" in s:
            return create_engine(s, pool_pre_ping=True)
        return create_engine(f"sqlite:///{s}", connect_args={"check_same_thread": False})

    env_url = os.getenv("DATABASE_URL")
    if env_url:
        return make_engine(env_url)

    url = f"sqlite:///{get_default_db_path()}"
    return create_engine(url, connect_args={"check_same_thread": False})


def make_session_factory(engine=None):
    engine = engine or make_engine()
    # ACOPIAPP_SKIP_CREATE_ALL=1 omite la creación de tablas (esquema gestionado aparte)
    skip_create = os.getenv("ACOPIAPP_SKIP_CREATE_ALL", "0").lower() in ("1", "true", "yes")
    if not skip_create:
        Base.metadata.create_all(bind=engine)
    # expire_on_commit=False evita errores de "not bound to a Session" tras el commit
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
