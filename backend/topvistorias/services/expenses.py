"""Despesas fixas mensais e despesas variáveis de caixa."""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ..models import CashBox, CashBoxExpense, ExpenseSource, MonthlyExpense

logger = logging.getLogger(__name__)


class ExpenseNotFoundError(LookupError):
    """Despesa inexistente."""


# =============================================================================
# DESPESAS FIXAS
# =============================================================================

def list_fixed_expenses(
    db: Session,
    start: Optional[date] = None,
    end: Optional[date] = None,
    store_id: Optional[str] = None,
) -> list[MonthlyExpense]:
    query = db.query(MonthlyExpense).filter(MonthlyExpense.source == ExpenseSource.FIXA.value)
    if start:
        query = query.filter(MonthlyExpense.month_year >= start.replace(day=1))
    if end:
        query = query.filter(MonthlyExpense.month_year <= end)
    if store_id:
        query = query.filter(MonthlyExpense.store_id == store_id)
    return query.order_by(MonthlyExpense.month_year.desc(), MonthlyExpense.title).all()


def save_fixed_expense(db: Session, data, user_id: str) -> MonthlyExpense:
    """Cria a despesa fixa ou atualiza a existente quando `data.id` vem preenchido."""
    if data.id:
        expense = db.get(MonthlyExpense, data.id)
        if expense is None or expense.source != ExpenseSource.FIXA.value:
            raise ExpenseNotFoundError(f"Despesa fixa não encontrada: {data.id}")
    else:
        expense = MonthlyExpense(source=ExpenseSource.FIXA.value, created_by_user_id=user_id)
        db.add(expense)

    expense.store_id = data.store_id
    expense.month_year = data.month_year
    expense.title = data.title
    expense.amount_cents = data.amount_cents
    db.commit()
    db.refresh(expense)

    logger.info(f"Despesa fixa salva: {expense.id} loja={expense.store_id} mês={expense.month_year:%Y-%m}")
    return expense


def delete_fixed_expense(db: Session, expense_id: str) -> None:
    expense = db.get(MonthlyExpense, expense_id)
    if expense is None or expense.source != ExpenseSource.FIXA.value:
        raise ExpenseNotFoundError(f"Despesa fixa não encontrada: {expense_id}")
    db.delete(expense)
    db.commit()
    logger.info(f"Despesa fixa excluída: {expense_id}")


# =============================================================================
# DESPESAS VARIÁVEIS
# =============================================================================

def list_variable_expenses(
    db: Session,
    start: Optional[date] = None,
    end: Optional[date] = None,
    store_id: Optional[str] = None,
    vistoriador_id: Optional[str] = None,
) -> list[CashBoxExpense]:
    """Despesas lançadas nos caixas do período, com o caixa carregado."""
    query = (
        db.query(CashBoxExpense)
        .join(CashBox, CashBoxExpense.cash_box_id == CashBox.id)
        .options(joinedload(CashBoxExpense.cash_box))
    )
    if start:
        query = query.filter(CashBox.date >= start)
    if end:
        query = query.filter(CashBox.date <= end)
    if store_id:
        query = query.filter(CashBox.store_id == store_id)
    if vistoriador_id:
        query = query.filter(CashBox.vistoriador_id == vistoriador_id)
    return query.order_by(CashBox.date.desc(), CashBoxExpense.title).all()


def get_variable_expense(db: Session, expense_id: str) -> CashBoxExpense:
    expense = db.get(CashBoxExpense, expense_id)
    if expense is None:
        raise ExpenseNotFoundError(f"Despesa variável não encontrada: {expense_id}")
    return expense


def create_variable_expense(db: Session, cash_box: CashBox, title: str, amount_cents: int) -> CashBoxExpense:
    expense = CashBoxExpense(cash_box_id=cash_box.id, title=title.strip(), amount_cents=amount_cents)
    db.add(expense)
    db.commit()
    db.refresh(expense)
    logger.info(f"Despesa variável criada: {expense.id} caixa={cash_box.id}")
    return expense


def update_variable_expense(db: Session, expense: CashBoxExpense, data) -> CashBoxExpense:
    if data.title is not None:
        expense.title = data.title.strip()
    if data.amount_cents is not None:
        expense.amount_cents = data.amount_cents
    db.commit()
    db.refresh(expense)
    return expense


def delete_variable_expense(db: Session, expense: CashBoxExpense) -> None:
    expense_id = expense.id
    db.delete(expense)
    db.commit()
    logger.info(f"Despesa variável excluída: {expense_id}")
