"""Geração dos PDFs (relatório mensal e fechamento de caixa) com reportlab."""

from io import BytesIO
from typing import Iterable, Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ..config import settings
from ..models import CashBox
from .catalog import order_service_types
from .dates import format_date_br, local_now
from .money import format_currency
from .monthly_summary import MonthlySummary
from .totals import CashBoxTotals

HEADER_STYLE = [
    ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
    ("GRID", (0, 0), (-1, -1), 0.5, colors.black),
    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
    ("FONTSIZE", (0, 0), (-1, -1), 8),
]


def _table(data: list, numeric_from: int = 1, total_row: bool = False) -> Table:
    table = Table(data, repeatRows=1, hAlign="LEFT")
    style = HEADER_STYLE + [("ALIGN", (numeric_from, 1), (-1, -1), "RIGHT")]
    if total_row:
        style += [
            ("BACKGROUND", (0, -1), (-1, -1), colors.whitesmoke),
            ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
        ]
    table.setStyle(TableStyle(style))
    return table


def _render(story: list, pagesize) -> bytes:
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=pagesize,
        topMargin=1 * cm,
        bottomMargin=1 * cm,
        leftMargin=1.5 * cm,
        rightMargin=1.5 * cm,
    )
    doc.build(story)
    pdf = buffer.getvalue()
    buffer.close()
    return pdf


def build_monthly_report_pdf(
    rows: Iterable[MonthlySummary],
    total: MonthlySummary,
    store_name: Optional[str] = None,
    period: Optional[str] = None,
) -> bytes:
    """Relatório mensal consolidado (uma linha por mês + total do período)."""
    styles = getSampleStyleSheet()
    story = [
        Paragraph(f"<b>{settings.company_name} - Relatório mensal</b>", styles["Title"]),
        Paragraph(f"Loja: {store_name or 'Todas as lojas'}", styles["Normal"]),
    ]
    if period:
        story.append(Paragraph(f"Período: {period}", styles["Normal"]))
    story.append(Paragraph(f"Emissão: {local_now().strftime('%d/%m/%Y %H:%M')}", styles["Normal"]))
    story.append(Spacer(1, 12))

    header = ["Mês", "Bruto", "PIX", "Cartão", "Desp. variáveis", "Líquido", "Desp. fixas", "Resultado", "Retornos"]

    def line(row: MonthlySummary) -> list:
        return [
            row.month_label,
            format_currency(row.gross),
            format_currency(row.pix),
            format_currency(row.cartao),
            format_currency(row.expenses_variable),
            format_currency(row.net),
            format_currency(row.fixed_expenses),
            format_currency(row.net_after_fixed),
            str(row.return_quantity),
        ]

    data = [header] + [line(row) for row in rows] + [line(total)]
    story.append(_table(data, total_row=True))

    return _render(story, landscape(A4))


def build_cash_box_pdf(
    cash_box: CashBox,
    totals: CashBoxTotals,
    store_name: str,
    vistoriador_name: str,
) -> bytes:
    """Comprovante de fechamento de um caixa diário."""
    styles = getSampleStyleSheet()
    story = [
        Paragraph(f"<b>{settings.company_name} - Fechamento de caixa</b>", styles["Title"]),
        Paragraph(f"<b>Loja:</b> {store_name}", styles["Normal"]),
        Paragraph(f"<b>Data:</b> {format_date_br(cash_box.date)}", styles["Normal"]),
        Paragraph(f"<b>Vistoriador:</b> {vistoriador_name}", styles["Normal"]),
    ]
    if cash_box.note:
        story.append(Paragraph(f"<b>Observação:</b> {cash_box.note}", styles["Normal"]))
    story.append(Spacer(1, 12))

    services_by_type = {service.service_type_id: service for service in cash_box.services}
    service_types = order_service_types(
        service.service_type for service in cash_box.services if service.service_type is not None
    )
    if service_types:
        story.append(Paragraph("<b>Serviços</b>", styles["Heading2"]))
        data = [["Serviço", "Qtd", "Preço", "Total"]]
        for service_type in service_types:
            service = services_by_type[service_type.id]
            data.append([
                service_type.name,
                str(service.quantity),
                format_currency(service.unit_price_cents),
                format_currency(service.total_cents),
            ])
        story.append(_table(data))
        story.append(Spacer(1, 12))

    if cash_box.expenses:
        story.append(Paragraph("<b>Despesas</b>", styles["Heading2"]))
        data = [["Descrição", "Valor"]]
        data += [[expense.title, format_currency(expense.amount_cents)] for expense in cash_box.expenses]
        story.append(_table(data))
        story.append(Spacer(1, 12))

    story.append(Paragraph("<b>Resumo</b>", styles["Heading2"]))
    summary = [
        ["Item", "Valor"],
        ["Bruto", format_currency(totals.gross)],
        ["PIX", format_currency(totals.pix)],
        ["Cartão", format_currency(totals.cartao)],
        ["Despesas", format_currency(totals.expenses_total)],
        ["Líquido", format_currency(totals.net)],
        ["Dinheiro em caixa", format_currency(totals.cash)],
    ]
    if totals.return_quantity:
        summary.append(["Retornos", str(totals.return_quantity)])
    story.append(_table(summary, total_row=True))

    return _render(story, A4)
