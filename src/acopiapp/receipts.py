from __future__ import annotations

import re
from datetime import date
from pathlib import Path
from typing import Iterable
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_LEFT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .db import get_data_dir
from .records import Sale, format_quantity
from .services.ledger import LedgerRow, ledger_final_balance
from .services.supply import LITERS_PER_WHOLE_MILK_KILO, WeeklyReport

_WEEKDAYS = ("lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo")


def _exports_dir() -> Path:
    d = get_data_dir() / "exports"
    d.mkdir(parents=True, exist_ok=True)
    return d


def format_money(value: float) -> str:
    return f"S/. {value:,.2f}"


def format_day(d: date) -> str:
    """Fecha corta con día de la semana, p. ej. 'Lunes, 05/01'."""
    return f"{_WEEKDAYS[d.weekday()].capitalize()}, {d.strftime('%d/%m')}"


def _safe_name(name: str) -> str:
    return re.sub(r"\s", "_", name.strip()) or "cliente"


def statement_table_data(rows: Iterable[LedgerRow]) -> list[list[str]]:
    """Filas de texto del estado de cuenta (sin encabezado ni pie)."""
    data: list[list[str]] = []
    for r in rows:
        if r.is_opening_balance:
            data.append([format_day(r.date), r.description, "", "", format_money(r.balance)])
            continue
        data.append([
            format_day(r.date),
            r.description,
            format_money(r.debit) if r.debit > 0 else "-",
            format_money(r.credit) if r.credit > 0 else "-",
            format_money(r.balance),
        ])
    return data


def sales_history_table_data(sales: Iterable[Sale]) -> list[list[str]]:
    data: list[list[str]] = []
    for s in sales:
        data.append([
            format_day(s.date),
            f"{format_quantity(s.quantity)} {s.unit}",
            format_money(s.price),
            format_money(s.total_amount),
            format_money(s.paid_amount),
            format_money(s.balance),
        ])
    return data


def _doc(out: Path) -> SimpleDocTemplate:
    return SimpleDocTemplate(str(out), pagesize=A4,
                             rightMargin=1.2*cm, leftMargin=1.2*cm,
                             topMargin=1.5*cm, bottomMargin=1.5*cm)


def _styles() -> tuple[ParagraphStyle, ParagraphStyle, ParagraphStyle]:
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        'StatementTitle',
        parent=styles['Normal'],
        fontSize=18,
        leading=22,
        spaceAfter=12,
        alignment=TA_LEFT,
        fontName='Helvetica-Bold',
    )
    section_style = ParagraphStyle(
        'SectionTitle',
        parent=styles['Normal'],
        fontSize=12,
        leading=15,
        spaceBefore=10,
        spaceAfter=6,
        fontName='Helvetica-Bold',
    )
    return title_style, section_style, styles['Normal']


def _table(header: list[str], body: list[list[str]], footer: list[str] | None,
           col_widths: list[float], numeric_from: int) -> Table:
    rows = [header] + body + ([footer] if footer else [])
    table = Table(rows, colWidths=col_widths, repeatRows=1)
    style = [
        # Encabezado
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#2980b9')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        # Montos a la derecha
        ('ALIGN', (numeric_from, 1), (-1, -1), 'RIGHT'),
    ]
    if footer:
        style += [
            ('ROWBACKGROUNDS', (0, 1), (-1, -2), [colors.white, colors.HexColor('#f5f5f5')]),
            # Pie con totales
            ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
            ('ALIGN', (0, -1), (-1, -1), 'RIGHT'),
            ('LINEABOVE', (0, -1), (-1, -1), 1, colors.black),
            ('GRID', (0, 0), (-1, -2), 0.25, colors.grey),
        ]
    else:
        style += [
            ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#f5f5f5')]),
            ('GRID', (0, 0), (-1, -1), 0.25, colors.grey),
        ]
    table.setStyle(TableStyle(style))
    return table


def _build_pdf(out: Path, title: str, header: list[str], body: list[list[str]], footer: list[str],
               col_widths: list[float], numeric_from: int) -> Path:
    title_style, _, _ = _styles()
    table = _table(header, body, footer, col_widths, numeric_from)
    _doc(out).build([Paragraph(escape(title), title_style), Spacer(1, 6), table])
    return out


def export_statement_pdf(client_name: str, rows: list[LedgerRow], out_path: Path | str | None = None) -> Path:
    """Estado de cuenta consolidado en PDF. Devuelve la ruta del archivo creado."""
    out = Path(out_path) if out_path else (_exports_dir() / f"consolidado_{_safe_name(client_name)}.pdf")
    final_balance = ledger_final_balance(rows)
    return _build_pdf(
        out,
        title=f"Estado de Cuenta Consolidado - {client_name}",
        header=['Fecha', 'Descripción', 'Cargo', 'Abono', 'Saldo'],
        body=statement_table_data(rows),
        footer=['', '', '', 'Saldo Final:', format_money(final_balance)],
        col_widths=[3.6*cm, 5.0*cm, 3.0*cm, 3.0*cm, 3.4*cm],
        numeric_from=2,
    )


def export_sales_history_pdf(client_name: str, sales: list[Sale], total_debt: float,
                             out_path: Path | str | None = None) -> Path:
    """Historial de ventas del cliente en PDF con la deuda total al pie."""
    out = Path(out_path) if out_path else (_exports_dir() / f"historial_ventas_{_safe_name(client_name)}.pdf")
    return _build_pdf(
        out,
        title=f"Historial de Ventas - {client_name}",
        header=['Fecha', 'Cantidad', 'Precio Unit.', 'Monto Total', 'Abono', 'Saldo'],
        body=sales_history_table_data(sales),
        footer=['', '', '', '', 'Deuda Total:', format_money(total_debt)],
        col_widths=[3.4*cm, 3.0*cm, 2.8*cm, 3.0*cm, 2.8*cm, 3.0*cm],
        numeric_from=2,
    )


def weekly_report_title(report: WeeklyReport) -> str:
    return f"Semana del {report.week_start.strftime('%d/%m/%y')} al {report.week_end.strftime('%d/%m/%y')}"


def weekly_summary_lines(report: WeeklyReport) -> list[str]:
    """Resumen en texto del reporte semanal (mismo contenido en PDF y consola)."""
    lines = [
        f"La semana se recibieron {report.total_raw_material:.2f} L de materia prima y se produjeron "
        f"{format_quantity(report.total_units_produced)} unidades, con un índice de transformación "
        f"promedio de {report.avg_transformation_index:.2f}%.",
    ]
    if report.top_provider:
        lines.append(f"{report.top_provider.name} fue el proveedor más destacado con {report.top_provider.quantity:.2f} L.")
    if report.top_client:
        name, total = report.top_client
        lines.append(f"{name} fue el cliente principal con {format_money(total)} en ventas.")
    lines.append(f"Quedan {report.stock.sacos:.2f} sacos de leche entera ({report.stock.kilos:.2f} kg).")
    trend = report.sales_trend_percentage
    if trend is None:
        lines.append("No hay datos de ventas de la semana anterior para comparar.")
    else:
        verb = "aumentaron" if trend >= 0 else "disminuyeron"
        lines.append(f"Las ventas {verb} un {abs(trend):.2f}% con respecto a la semana anterior.")
    return lines


def export_weekly_report_pdf(report: WeeklyReport, out_path: Path | str | None = None) -> Path:
    """Reporte semanal imprimible: pagos a proveedores, producción y clientes."""
    out = Path(out_path) if out_path else (
        _exports_dir() / f"reporte_semanal_{report.week_start.isoformat()}.pdf"
    )
    title_style, section_style, normal = _styles()
    story = [Paragraph(escape(f"Reporte Semanal - {weekly_report_title(report)}"), title_style)]
    story += [Paragraph(escape(line), normal) for line in weekly_summary_lines(report)]

    if report.provider_settlements:
        total = sum(p.total_to_pay for p in report.provider_settlements)
        story += [
            Paragraph("Pagos a Proveedores", section_style),
            _table(
                ['Proveedor', 'Litros', 'Precio', 'Total a Pagar'],
                [[p.name, f"{p.quantity:,.2f}", format_money(p.price), format_money(p.total_to_pay)]
                 for p in report.provider_settlements],
                ['', '', 'Total:', format_money(total)],
                [6.0*cm, 3.6*cm, 3.6*cm, 4.2*cm],
                numeric_from=1,
            ),
        ]

    if report.production:
        story += [
            Paragraph("Producción", section_style),
            _table(
                ['Fecha', 'Materia Prima', 'Leche Entera', 'Unidades', 'Índice'],
                [[
                    format_day(p.date),
                    f"{p.raw_material_liters + p.whole_milk_kilos * LITERS_PER_WHOLE_MILK_KILO:,.2f} L",
                    f"{p.whole_milk_kilos:,.2f} kg",
                    format_quantity(p.produced_units),
                    f"{p.transformation_index:.2f}%",
                ] for p in report.production],
                None,
                [3.6*cm, 3.6*cm, 3.4*cm, 3.0*cm, 3.0*cm],
                numeric_from=1,
            ),
        ]

    if report.client_summaries:
        story += [
            Paragraph("Resumen de Clientes", section_style),
            _table(
                ['Cliente', 'Comprado', 'Pagado', 'Deuda'],
                [[c.name, format_money(c.total_bought), format_money(c.total_paid), format_money(c.debt)]
                 for c in report.client_summaries],
                None,
                [6.0*cm, 3.8*cm, 3.8*cm, 3.8*cm],
                numeric_from=1,
            ),
        ]

    _doc(out).build(story)
    return out
