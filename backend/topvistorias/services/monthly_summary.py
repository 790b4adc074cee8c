"""Consolidação mensal de caixas e despesas fixas."""

from dataclasses import dataclass
from typing import Iterable, Optional

from .dates import month_key, month_label
from .totals import totals_for_cash_box

PERIOD_TOTAL_LABEL = "Total do período"


@dataclass
class MonthlySummary:
    """Linha do resumo mensal, em centavos."""
    month_key: str
    month_label: str
    gross: int = 0
    pix: int = 0
    cartao: int = 0
    expenses_variable: int = 0
    net: int = 0
    fixed_expenses: int = 0
    net_after_fixed: int = 0
    return_quantity: int = 0
    cash_box_count: int = 0


def summarize_cash_boxes(
    cash_boxes: Iterable,
    fixed_expenses: Iterable,
    store_id: Optional[str] = None,
) -> list[MonthlySummary]:
    """
    Agrupa caixas e despesas fixas por mês (yyyy-MM).

    Meses presentes em qualquer uma das entradas geram linha própria; o lado
    ausente fica zerado. Ordenado do mês mais recente para o mais antigo.
    """
    summary: dict[str, MonthlySummary] = {}

    def row_for(date_value) -> MonthlySummary:
        key = month_key(date_value)
        if key not in summary:
            summary[key] = MonthlySummary(month_key=key, month_label=month_label(date_value))
        return summary[key]

    for box in cash_boxes:
        if store_id and box.store_id != store_id:
            continue

        totals = totals_for_cash_box(box)
        row = row_for(box.date)
        row.gross += totals.gross
        row.pix += totals.pix
        row.cartao += totals.cartao
        row.expenses_variable += totals.expenses_total
        row.net += totals.net
        row.return_quantity += totals.return_quantity
        row.cash_box_count += 1

    for expense in fixed_expenses:
        if store_id and expense.store_id != store_id:
            continue
        row_for(expense.month_year).fixed_expenses += expense.amount_cents or 0

    for row in summary.values():
        row.net_after_fixed = row.net - row.fixed_expenses

    return sorted(summary.values(), key=lambda row: row.month_key, reverse=True)


def summarize_totals(summaries: Iterable[MonthlySummary]) -> MonthlySummary:
    """Soma as linhas mensais em um total do período."""
    total = MonthlySummary(month_key="", month_label=PERIOD_TOTAL_LABEL)
    for row in summaries:
        total.gross += row.gross
        total.pix += row.pix
        total.cartao += row.cartao
        total.expenses_variable += row.expenses_variable
        total.net += row.net
        total.fixed_expenses += row.fixed_expenses
        total.net_after_fixed += row.net_after_fixed
        total.return_quantity += row.return_quantity
        total.cash_box_count += row.cash_box_count
    return total
