"""
Métricas do período para o painel administrativo.

Agregações puras (sem banco): ranking de serviços e lojas, desempenho por mês
e despesas agrupadas pelo título digitado.

Despesas são agrupadas pelo título aparado, não pelo id: "Gasolina" lançada em
caixas e lojas diferentes cai no mesmo grupo.
"""

import unicodedata
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .dates import month_key, month_label

SERVICE_FALLBACK_NAME = "Serviço"
STORE_FALLBACK_NAME = "Loja"
VARIABLE_EXPENSE_FALLBACK = "Despesa variável"
FIXED_EXPENSE_FALLBACK = "Despesa fixa"
MANY_STORES_LABEL = "Diversas lojas"
MANY_PERIODS_LABEL = "Múltiplos períodos"
RANKING_SIZE = 3


@dataclass
class ServiceAggregate:
    id: str
    name: str
    code: Optional[str] = None
    quantity: int = 0
    value_cents: int = 0
    avg_value_cents: int = 0


@dataclass
class StoreAggregate:
    store_id: str
    name: str
    value_cents: int = 0
    quantity: int = 0


@dataclass
class ExpenseAggregate:
    id: str
    name: str
    total_cents: int = 0
    occurrences: int = 0
    store_name: Optional[str] = None
    month_label: Optional[str] = None


@dataclass
class PeriodPerformance:
    month_key: str
    label: str
    service_cents: int = 0
    variable_cents: int = 0
    fixed_cents: int = 0
    net_cents: int = 0
    service_quantity: int = 0


@dataclass
class Metrics:
    total_quantity: int = 0
    total_value_cents: int = 0
    avg_ticket_cents: int = 0
    services: list[ServiceAggregate] = field(default_factory=list)
    top_by_quantity: Optional[ServiceAggregate] = None
    top_by_value: Optional[ServiceAggregate] = None
    store_ranking: list[StoreAggregate] = field(default_factory=list)
    variable_expenses_total_cents: int = 0
    fixed_expenses_total_cents: int = 0
    net_result_cents: int = 0
    variable_expenses_top: list[ExpenseAggregate] = field(default_factory=list)
    fixed_expenses_top: list[ExpenseAggregate] = field(default_factory=list)
    monthly_performance: list[PeriodPerformance] = field(default_factory=list)
    best_period: Optional[PeriodPerformance] = None
    worst_period: Optional[PeriodPerformance] = None
    top_periods: list[PeriodPerformance] = field(default_factory=list)
    bottom_periods: list[PeriodPerformance] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "Metrics":
        return cls()


def _round_div(value: int, divisor: int) -> int:
    # Math.round: meio arredonda para cima
    if divisor <= 0:
        return 0
    return int((value * 2 + divisor) // (divisor * 2))


def _add_expense(buckets: dict, key: str, amount: int, store_name: str, label: str) -> None:
    bucket = buckets.get(key)
    if bucket is None:
        bucket = ExpenseAggregate(id=key, name=key, store_name=store_name, month_label=label)
        buckets[key] = bucket

    bucket.total_cents += amount
    bucket.occurrences += 1
    if bucket.store_name != store_name:
        bucket.store_name = MANY_STORES_LABEL
    if bucket.month_label != label:
        bucket.month_label = MANY_PERIODS_LABEL


def aggregate_metrics(
    cash_boxes: Iterable,
    fixed_expenses: Iterable,
    variable_expenses: Iterable,
    service_types: Iterable,
    store_names: dict[str, str],
) -> Metrics:
    """
    Calcula as métricas do período.

    Args:
        cash_boxes: caixas com suas linhas de serviço
        fixed_expenses: despesas mensais (month_year, store_id, title, amount_cents)
        variable_expenses: despesas de caixa com o caixa carregado (expense.cash_box)
        service_types: catálogo para nome/código dos serviços
        store_names: {store_id: nome}
    """
    cash_boxes = list(cash_boxes or [])
    fixed_expenses = list(fixed_expenses or [])
    variable_expenses = list(variable_expenses or [])
    if not cash_boxes and not fixed_expenses and not variable_expenses:
        return Metrics.empty()

    service_type_by_id = {service_type.id: service_type for service_type in service_types or []}
    store_names = store_names or {}

    services: dict[str, ServiceAggregate] = {}
    stores: dict[str, StoreAggregate] = {}
    months: dict[str, PeriodPerformance] = {}
    variable_buckets: dict[str, ExpenseAggregate] = {}
    fixed_buckets: dict[str, ExpenseAggregate] = {}

    def month_for(date_value) -> PeriodPerformance:
        key = month_key(date_value)
        if key not in months:
            months[key] = PeriodPerformance(month_key=key, label=month_label(date_value))
        return months[key]

    for box in cash_boxes:
        month = month_for(box.date)

        for line in box.services or []:
            quantity = line.quantity or 0
            if quantity <= 0:
                continue

            service_type = service_type_by_id.get(line.service_type_id) or getattr(line, "service_type", None)
            service_id = line.service_type_id or line.id
            if line.total_cents is not None:
                total = line.total_cents
            else:
                total = (line.unit_price_cents or 0) * quantity

            aggregate = services.get(service_id)
            if aggregate is None:
                aggregate = ServiceAggregate(
                    id=service_id,
                    name=(service_type.name if service_type else None) or SERVICE_FALLBACK_NAME,
                    code=service_type.code if service_type else None,
                )
                services[service_id] = aggregate
            aggregate.quantity += quantity
            aggregate.value_cents += total
            aggregate.avg_value_cents = _round_div(aggregate.value_cents, aggregate.quantity)

            if box.store_id:
                store = stores.get(box.store_id)
                if store is None:
                    store = StoreAggregate(
                        store_id=box.store_id,
                        name=store_names.get(box.store_id, STORE_FALLBACK_NAME),
                    )
                    stores[box.store_id] = store
                store.value_cents += total
                store.quantity += quantity

            month.service_cents += total
            month.service_quantity += quantity

    variable_total = 0
    for expense in variable_expenses:
        amount = expense.amount_cents or 0
        if amount <= 0:
            continue
        variable_total += amount

        box = expense.cash_box
        month = month_for(box.date)
        month.variable_cents += amount

        _add_expense(
            variable_buckets,
            (expense.title or "").strip() or VARIABLE_EXPENSE_FALLBACK,
            amount,
            store_names.get(box.store_id, STORE_FALLBACK_NAME),
            month.label,
        )

    fixed_total = 0
    for expense in fixed_expenses:
        amount = expense.amount_cents or 0
        if amount <= 0:
            continue
        fixed_total += amount

        month = month_for(expense.month_year)
        month.fixed_cents += amount

        _add_expense(
            fixed_buckets,
            (expense.title or "").strip() or FIXED_EXPENSE_FALLBACK,
            amount,
            store_names.get(expense.store_id, STORE_FALLBACK_NAME),
            month.label,
        )

    service_list = sorted(services.values(), key=lambda item: item.value_cents, reverse=True)
    total_value = sum(item.value_cents for item in service_list)
    total_quantity = sum(item.quantity for item in service_list)

    for month in months.values():
        month.net_cents = month.service_cents - month.variable_cents - month.fixed_cents
    performance = sorted(months.values(), key=lambda item: item.net_cents, reverse=True)

    return Metrics(
        total_quantity=total_quantity,
        total_value_cents=total_value,
        avg_ticket_cents=_round_div(total_value, total_quantity),
        services=service_list,
        top_by_quantity=max(service_list, key=lambda item: item.quantity) if service_list else None,
        top_by_value=service_list[0] if service_list else None,
        store_ranking=sorted(stores.values(), key=lambda item: item.value_cents, reverse=True),
        variable_expenses_total_cents=variable_total,
        fixed_expenses_total_cents=fixed_total,
        net_result_cents=total_value - variable_total - fixed_total,
        variable_expenses_top=sorted(variable_buckets.values(), key=lambda item: item.total_cents, reverse=True),
        fixed_expenses_top=sorted(fixed_buckets.values(), key=lambda item: item.total_cents, reverse=True),
        monthly_performance=performance,
        best_period=performance[0] if performance else None,
        worst_period=performance[-1] if performance else None,
        top_periods=performance[:RANKING_SIZE],
        bottom_periods=list(reversed(performance))[:RANKING_SIZE],
    )


def normalize_text(value: str) -> str:
    """Remove acentos e caixa: 'Energia Elétrica' -> 'energia eletrica'."""
    decomposed = unicodedata.normalize("NFD", value or "")
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).lower()


def matches_search(search: str, *targets: Optional[str]) -> bool:
    """Todos os termos da busca precisam aparecer em pelo menos um dos campos."""
    tokens = normalize_text(search).split()
    if not tokens:
        return True
    return any(
        target and all(token in normalize_text(target) for token in tokens)
        for target in targets
    )


def filter_expense_aggregates(aggregates: list[ExpenseAggregate], search: Optional[str]) -> list[ExpenseAggregate]:
    if not (search or "").strip():
        return aggregates
    return [
        item for item in aggregates
        if matches_search(search, item.name, item.store_name, item.month_label)
    ]
