# Asegurar que `src` esté en sys.path para importar `acopiapp` sin instalar el paquete.
import os
import sys
from datetime import date

SRC = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src'))
if SRC not in sys.path:
    sys.path.insert(0, SRC)

import pytest
from acopiapp.db import make_engine, make_session_factory
from acopiapp.records import Payment, Sale, new_id
from acopiapp.storage import BlobStorage
from acopiapp.store import SalesStore

TODAY = date(2024, 3, 15)


@pytest.fixture(autouse=True)
def isolated_data_dir(tmp_path, monkeypatch):
    # Exportaciones y respaldos por defecto van a una carpeta temporal
    monkeypatch.setenv("ACOPIAPP_DATA_DIR", str(tmp_path / "data"))
    return tmp_path / "data"


@pytest.fixture
def engine():
    return make_engine(":memory:")


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def storage(session_factory):
    return BlobStorage(session_factory)


@pytest.fixture
def store(storage):
    return SalesStore(persistence=storage, today=lambda: TODAY)


@pytest.fixture
def make_sale():
    """Construye una venta de prueba con pagos (fecha, monto)."""

    def _make(sale_date, total, payments=(), client_id="c1", client_name="Ana", quantity=1, unit="unidades"):
        return Sale(
            id=new_id(),
            date=sale_date,
            client_id=client_id,
            client_name=client_name,
            price=total / quantity,
            quantity=quantity,
            unit=unit,
            total_amount=total,
            payments=[Payment(d, a) for d, a in payments],
        )

    return _make
