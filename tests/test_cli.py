from __future__ import annotations

import pytest

from acopiapp.__main__ import main


@pytest.fixture
def cli(tmp_path):
    db = str(tmp_path / "cli.db")

    def _run(*args: str) -> int:
        return main(["--db", db, *args])

    return _run


def test_client_sale_and_statement_flow(cli, capsys) -> None:
    assert cli("add-client", "Ana Pérez", "--address", "Jr. Lima 123", "--phone", "987") == 0
    assert cli("add-sale", "ana pérez", "--price", "1.5", "--quantity", "2", "--unit", "baldes",
               "--date", "2024-01-01", "--down-payment", "100") == 0
    assert cli("pay-debt", "Ana Pérez", "50") == 0
    capsys.readouterr()

    assert cli("statement", "Ana Pérez") == 0
    lines = capsys.readouterr().out.splitlines()
    header, body = lines[0], lines[1:]
    assert header.split() == ["Fecha", "Descripción", "Cargo", "Abono", "Saldo"]
    assert any("Venta (2 baldes)" in line for line in body)
    # El abono inicial se registra con la fecha de la venta; el de hoy va en su propia fila
    payment_rows = [line for line in body if "Abono" in line]
    assert len(payment_rows) == 1
    assert "S/. 50.00" in payment_rows[0]
    assert body[-1].rstrip().endswith("S/. 150.00")

    assert cli("debt") == 0
    assert "S/. 150.00" in capsys.readouterr().out


def test_pay_debt_over_balance_is_rejected(cli, capsys) -> None:
    cli("add-client", "Luis", "--address", "Av. Sol", "--phone", "111")
    cli("add-sale", "Luis", "--price", "1", "--quantity", "1", "--date", "2024-01-01")
    capsys.readouterr()

    assert cli("pay-debt", "Luis", "150") == 1
    assert "Error:" in capsys.readouterr().err

    assert cli("pay-debt", "Luis", "100") == 0
    capsys.readouterr()
    assert cli("debt") == 0
    assert "Luis" not in capsys.readouterr().out


@pytest.mark.parametrize("amount", ["nan", "inf"])
def test_non_finite_payment_is_rejected(cli, capsys, amount) -> None:
    cli("add-client", "Luis", "--address", "Av. Sol", "--phone", "111")
    cli("add-sale", "Luis", "--price", "1", "--quantity", "1", "--date", "2024-01-01")
    capsys.readouterr()

    assert cli("pay-debt", "Luis", amount) == 1
    assert "Error:" in capsys.readouterr().err
    assert cli("debt") == 0
    assert "S/. 100.00" in capsys.readouterr().out


def test_unknown_client_returns_error(cli, capsys) -> None:
    assert cli("sales", "Nadie") == 1
    assert "Cliente no encontrado" in capsys.readouterr().err


def test_backup_and_restore_between_databases(cli, tmp_path, capsys) -> None:
    cli("add-client", "Ana", "--address", "x", "--phone", "1")
    cli("add-provider", "Juan", "--address", "Chacra 4", "--phone", "2", "--price", "1.2")
    backup = tmp_path / "respaldo.json"
    assert cli("backup", "--output", str(backup)) == 0
    assert backup.exists()

    other = str(tmp_path / "otra.db")
    assert main(["--db", other, "restore", str(backup)]) == 0
    capsys.readouterr()
    assert main(["--db", other, "clients"]) == 0
    assert "Ana" in capsys.readouterr().out
    assert main(["--db", other, "providers"]) == 0
    assert "Juan" in capsys.readouterr().out


def test_statement_pdf_export(cli, tmp_path, capsys) -> None:
    cli("add-client", "Ana", "--address", "x", "--phone", "1")
    cli("add-sale", "Ana", "--price", "2", "--quantity", "3", "--unit", "unidades", "--date", "2024-01-01")
    out = tmp_path / "estado.pdf"
    assert cli("statement", "Ana", "--pdf", str(out)) == 0
    assert out.read_bytes().startswith(b"%PDF")


def test_delivery_production_and_weekly_report(cli, tmp_path, capsys) -> None:
    assert cli("add-provider", "Juan Quispe", "--address", "Chacra 4", "--phone", "555", "--price", "1.2") == 0
    assert cli("deliver", "juan quispe", "100") == 0
    assert cli("production", "--units", "50") == 0
    out = capsys.readouterr().out
    assert "materia prima 100.00 L" in out
    assert "índice 50.00%" in out

    assert cli("deliveries") == 0
    out = capsys.readouterr().out
    assert "Totales por proveedor:" in out
    assert "Juan Quispe" in out

    pdf = tmp_path / "semana.pdf"
    assert cli("weekly-report", "--pdf", str(pdf)) == 0
    out = capsys.readouterr().out
    assert out.startswith("Semana del ")
    assert "Juan Quispe fue el proveedor más destacado con 100.00 L." in out
    assert "S/. 120.00" in out
    assert pdf.read_bytes().startswith(b"%PDF")


def test_delivery_for_unknown_provider_is_rejected(cli, capsys) -> None:
    assert cli("deliver", "Nadie", "10") == 1
    assert "Proveedor no encontrado" in capsys.readouterr().err


def test_replenish_and_stock_alert(cli, capsys) -> None:
    assert cli("replenish", "--sacos", "0.1", "--price", "180") == 0
    capsys.readouterr()
    assert cli("stock") == 0
    out = capsys.readouterr().out
    assert "0.10 sacos (2.50 kg)" in out
    assert "Alerta de stock bajo" in out
