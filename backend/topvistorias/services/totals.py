"""
Cálculo dos totais de um caixa.

Regras:
1. Serviços cujo tipo não está no catálogo são ignorados
2. Bruto soma quantidade x preço apenas dos serviços que contam no faturamento
3. Serviços de retorno (counts_in_gross = False) só contam quantidade
4. Dinheiro em caixa = bruto - despesas - a receber - eletrônicos (pode ficar negativo)
"""

import logging
from dataclasses import dataclass
from typing import Iterable

from ..models import CashBox, PaymentMethod

logger = logging.getLogger(__name__)


@dataclass
class CashBoxTotals:
    """Resumo financeiro de um caixa, em centavos."""
    gross: int = 0
    electronic_total: int = 0
    net: int = 0
    cash: int = 0
    expenses_total: int = 0
    receivables_total: int = 0
    pix: int = 0
    cartao: int = 0
    return_quantity: int = 0


def _sum_by_method(electronic_entries: Iterable, method: str) -> int:
    return sum(
        entry.amount_cents or 0
        for entry in electronic_entries
        if entry.method == method
    )


def calculate_cash_box_totals(
    services: Iterable,
    electronic_entries: Iterable,
    expenses: Iterable,
    receivables: Iterable,
    service_types: Iterable,
) -> CashBoxTotals:
    """Calcula os totais de um caixa a partir das linhas lançadas."""
    service_type_by_id = {service_type.id: service_type for service_type in service_types}

    gross = 0
    return_quantity = 0

    for service in services:
        service_type = service_type_by_id.get(service.service_type_id)
        if service_type is None:
            logger.warning(f"Tipo de serviço desconhecido ignorado no total: {service.service_type_id}")
            continue

        quantity = service.quantity or 0
        if service_type.counts_in_gross:
            gross += quantity * (service.unit_price_cents or 0)
        elif quantity > 0:
            return_quantity += quantity

    electronic_entries = list(electronic_entries)
    pix = _sum_by_method(electronic_entries, PaymentMethod.PIX.value)
    cartao = _sum_by_method(electronic_entries, PaymentMethod.CARTAO.value)
    electronic_total = pix + cartao

    expenses_total = sum(expense.amount_cents or 0 for expense in expenses)
    receivables_total = sum(receivable.original_amount_cents or 0 for receivable in receivables)

    return CashBoxTotals(
        gross=gross,
        electronic_total=electronic_total,
        net=gross - expenses_total,
        cash=gross - expenses_total - receivables_total - electronic_total,
        expenses_total=expenses_total,
        receivables_total=receivables_total,
        pix=pix,
        cartao=cartao,
        return_quantity=return_quantity,
    )


def totals_for_cash_box(cash_box: CashBox, receivables: Iterable = ()) -> CashBoxTotals:
    """
    Totais de um caixa persistido.

    Recebíveis vivem fora do caixa: só entram quando informados, como os
    capturados no mesmo formulário que criou ou editou o caixa.
    """
    service_types = [
        service.service_type
        for service in cash_box.services
        if service.service_type is not None
    ]
    return calculate_cash_box_totals(
        services=cash_box.services,
        electronic_entries=cash_box.electronic_entries,
        expenses=cash_box.expenses,
        receivables=receivables,
        service_types=service_types,
    )
