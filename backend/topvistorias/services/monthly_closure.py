"""
Serviço de fechamento mensal manual.

Um fechamento manual é um caixa "virtual" que representa o mês inteiro de uma
loja quando o movimento diário não foi lançado. Ele é identificado pela nota
"Fechamento manual yyyy-MM" e datado em um domingo determinístico do mês.

Fluxo de gravação:
1. Resolve o catálogo e o preço unitário de cada serviço
2. Descarta serviços sem quantidade e despesas sem título ou valor
3. Calcula a data do caixa (domingo do mês)
4. Atualiza o caixa existente ou cria um novo
5. Substitui todos os serviços e despesas do caixa

Os passos 4 e 5 rodam em uma única transação: qualquer falha desfaz tudo.
"""

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session, selectinload

from ..models import (
    CashBox,
    CashBoxExpense,
    CashBoxService,
    ExpenseSource,
    MonthlyExpense,
    ServiceType,
)
from .catalog import get_service_default_price, list_service_types
from .dates import month_bounds, parse_month

logger = logging.getLogger(__name__)

CLOSURE_NOTE_PREFIX = "Fechamento manual "
SUNDAY = 6


class ClosureNotFoundError(LookupError):
    """Fechamento mensal inexistente."""


@dataclass
class ClosureServiceEntry:
    service_type_id: str
    quantity: int
    unit_price_cents: int


@dataclass
class ClosureExpenseEntry:
    title: str
    amount_cents: int
    id: Optional[str] = None
    source: str = ExpenseSource.AVULSA.value


@dataclass
class MonthlyClosureData:
    """Estado do fechamento de uma loja/mês."""
    cash_box_id: Optional[str]
    month: str
    services: list[ClosureServiceEntry] = field(default_factory=list)
    expenses: list[ClosureExpenseEntry] = field(default_factory=list)
    default_expenses: list[ClosureExpenseEntry] = field(default_factory=list)
    service_catalog: list[ServiceType] = field(default_factory=list)

    @property
    def uses_default_expenses(self) -> bool:
        """Pré-preenche com as despesas fixas apenas em meses ainda não salvos."""
        return (
            self.cash_box_id is None
            and len(self.default_expenses) > 0
            and len(self.expenses) == 0
        )

    @property
    def effective_expenses(self) -> list[ClosureExpenseEntry]:
        return self.default_expenses if self.uses_default_expenses else self.expenses


def closure_note(month: str) -> str:
    return f"{CLOSURE_NOTE_PREFIX}{month}"


def is_closure_note(note: Optional[str]) -> bool:
    return bool(note) and note.startswith(CLOSURE_NOTE_PREFIX)


def month_sundays(year: int, month: int) -> list[date]:
    _, last_day = calendar.monthrange(year, month)
    return [
        date(year, month, day)
        for day in range(1, last_day + 1)
        if date(year, month, day).weekday() == SUNDAY
    ]


def select_closure_date(year: int, month: int) -> date:
    """Domingo do mês escolhido de forma determinística para (ano, mês)."""
    sundays = month_sundays(year, month)
    return sundays[(year * 31 + month * 17) % len(sundays)]


class MonthlyClosureService:
    """Leitura, gravação e exclusão do fechamento mensal manual."""

    def __init__(self, db: Session):
        self.db = db

    def _find_closure(self, store_id: str, month: str) -> Optional[CashBox]:
        start, end = month_bounds(month)
        return (
            self.db.query(CashBox)
            .options(selectinload(CashBox.services), selectinload(CashBox.expenses))
            .filter(
                CashBox.store_id == store_id,
                CashBox.note == closure_note(month),
                CashBox.date >= start,
                CashBox.date <= end,
            )
            .first()
        )

    def _fixed_expenses(self, store_id: str, month: str) -> list[MonthlyExpense]:
        start, end = month_bounds(month)
        return (
            self.db.query(MonthlyExpense)
            .filter(
                MonthlyExpense.store_id == store_id,
                MonthlyExpense.source == ExpenseSource.FIXA.value,
                MonthlyExpense.month_year >= start,
                MonthlyExpense.month_year <= end,
            )
            .order_by(MonthlyExpense.title)
            .all()
        )

    def fetch(self, store_id: str, month: str) -> MonthlyClosureData:
        """Carrega o fechamento salvo (ou vazio) com as despesas fixas para pré-preenchimento."""
        parse_month(month)

        catalog = list_service_types(self.db)
        default_expenses = [
            ClosureExpenseEntry(
                id=expense.id,
                title=expense.title,
                amount_cents=expense.amount_cents,
                source=expense.source,
            )
            for expense in self._fixed_expenses(store_id, month)
        ]

        cash_box = self._find_closure(store_id, month)
        if cash_box is None:
            return MonthlyClosureData(
                cash_box_id=None,
                month=month,
                default_expenses=default_expenses,
                service_catalog=catalog,
            )

        return MonthlyClosureData(
            cash_box_id=cash_box.id,
            month=month,
            services=[
                ClosureServiceEntry(
                    service_type_id=service.service_type_id,
                    quantity=service.quantity,
                    unit_price_cents=service.unit_price_cents,
                )
                for service in cash_box.services
            ],
            expenses=[
                ClosureExpenseEntry(id=expense.id, title=expense.title, amount_cents=expense.amount_cents)
                for expense in cash_box.expenses
            ],
            default_expenses=default_expenses,
            service_catalog=catalog,
        )

    def _build_service_rows(self, services) -> list[CashBoxService]:
        catalog = {service_type.id: service_type for service_type in self.db.query(ServiceType).all()}

        rows = []
        for entry in services:
            service_type = catalog.get(entry.service_type_id)
            if service_type is None:
                logger.warning(f"Fechamento mensal: tipo de serviço ignorado (não existe no catálogo): {entry.service_type_id}")
                continue
            if (entry.quantity or 0) <= 0:
                continue

            unit_price = entry.unit_price_cents
            if unit_price is None:
                unit_price = get_service_default_price(service_type)

            rows.append(
                CashBoxService(
                    service_type_id=service_type.id,
                    unit_price_cents=unit_price,
                    quantity=entry.quantity,
                )
            )
        return rows

    @staticmethod
    def _build_expense_rows(expenses) -> list[CashBoxExpense]:
        return [
            CashBoxExpense(title=expense.title.strip(), amount_cents=expense.amount_cents)
            for expense in expenses
            if (expense.title or "").strip() and (expense.amount_cents or 0) > 0
        ]

    def _replace_children(
        self,
        cash_box: CashBox,
        services: list[CashBoxService],
        expenses: list[CashBoxExpense],
    ) -> None:
        # delete-orphan remove as linhas antigas no flush
        cash_box.services = services
        cash_box.expenses = expenses
        self.db.flush()

    def upsert(self, payload) -> str:
        """
        Grava o fechamento mensal de uma loja e devolve o id do caixa.

        - **payload.store_id**: loja
        - **payload.month**: mês no formato yyyy-MM
        - **payload.user_id**: responsável pelo caixa
        - **payload.services**: [{service_type_id, quantity, unit_price_cents?}]
        - **payload.expenses**: [{title, amount_cents}]
        """
        first_day = parse_month(payload.month)
        note = closure_note(payload.month)

        services = self._build_service_rows(payload.services)
        expenses = self._build_expense_rows(payload.expenses)
        closure_date = select_closure_date(first_day.year, first_day.month)

        created = False
        try:
            cash_box = self._find_closure(payload.store_id, payload.month)
            if cash_box is None:
                cash_box = CashBox(
                    store_id=payload.store_id,
                    date=closure_date,
                    vistoriador_id=payload.user_id,
                    note=note,
                )
                self.db.add(cash_box)
                created = True
            else:
                cash_box.date = closure_date
                cash_box.vistoriador_id = payload.user_id
                cash_box.note = note
            self.db.flush()

            self._replace_children(cash_box, services, expenses)
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception(
                f"Falha ao salvar fechamento {payload.month} da loja {payload.store_id} "
                f"({'novo' if created else 'existente'}); transação desfeita"
            )
            raise

        logger.info(
            f"Fechamento mensal salvo: loja={payload.store_id} mês={payload.month} "
            f"caixa={cash_box.id} serviços={len(services)} despesas={len(expenses)}"
        )
        return cash_box.id

    def delete(self, cash_box_id: str) -> None:
        """Exclui o fechamento (serviços e despesas vão junto), reabrindo o mês."""
        cash_box = self.db.get(CashBox, cash_box_id)
        if cash_box is None or not is_closure_note(cash_box.note):
            raise ClosureNotFoundError(f"Fechamento mensal não encontrado: {cash_box_id}")

        self.db.delete(cash_box)
        self.db.commit()
        logger.info(f"Fechamento mensal excluído: {cash_box_id}")
