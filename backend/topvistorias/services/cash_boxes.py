"""
Serviço de caixas diários.

Cada gravação (criação ou edição) roda em uma transação: o caixa, suas linhas
e os recebíveis capturados no formulário entram juntos ou nada entra.
"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session, selectinload

from ..config import settings
from ..models import (
    CashBox,
    CashBoxElectronicEntry,
    CashBoxExpense,
    CashBoxService,
    Receivable,
    ReceivableStatus,
    ServiceType,
)
from .dates import today

logger = logging.getLogger(__name__)


class CashBoxNotFoundError(LookupError):
    """Caixa inexistente."""


def _service_rows(services) -> list[CashBoxService]:
    return [
        CashBoxService(
            service_type_id=item.service_type_id,
            unit_price_cents=item.unit_price_cents,
            quantity=item.quantity,
        )
        for item in services
        if item.quantity > 0
    ]


def _electronic_rows(entries) -> list[CashBoxElectronicEntry]:
    return [
        CashBoxElectronicEntry(method=entry.method.value, amount_cents=entry.amount_cents)
        for entry in entries
        if entry.amount_cents > 0
    ]


def _expense_rows(expenses) -> list[CashBoxExpense]:
    return [
        CashBoxExpense(title=expense.title.strip(), amount_cents=expense.amount_cents)
        for expense in expenses
        if expense.title.strip() and expense.amount_cents > 0
    ]


def _receivable_rows(receivables, store_id: str, user_id: str) -> list[Receivable]:
    return [
        Receivable(
            store_id=store_id,
            created_by_user_id=user_id,
            customer_name=item.customer_name,
            plate=item.plate,
            service_type_id=item.service_type_id,
            original_amount_cents=item.original_amount_cents,
            due_date=item.due_date or today(),
            status=ReceivableStatus.ABERTO.value,
        )
        for item in receivables
    ]


def unknown_service_type_ids(db: Session, data) -> set[str]:
    """Tipos de serviço do formulário (serviços e recebíveis) que não existem no catálogo."""
    requested = {item.service_type_id for item in data.services if item.quantity > 0}
    requested.update(item.service_type_id for item in data.receivables if item.service_type_id)
    if not requested:
        return set()

    known = {
        service_type_id
        for (service_type_id,) in db.query(ServiceType.id).filter(ServiceType.id.in_(requested)).all()
    }
    return requested - known


def _with_relations(query):
    return query.options(
        selectinload(CashBox.services).selectinload(CashBoxService.service_type),
        selectinload(CashBox.electronic_entries),
        selectinload(CashBox.expenses),
    )


def create_cash_box(db: Session, data, store_id: str, vistoriador_id: str) -> CashBox:
    """Cria o caixa do dia com serviços, entradas eletrônicas, despesas e recebíveis."""
    cash_box = CashBox(
        store_id=store_id,
        date=data.date,
        vistoriador_id=vistoriador_id,
        note=data.note,
        services=_service_rows(data.services),
        electronic_entries=_electronic_rows(data.electronic_entries),
        expenses=_expense_rows(data.expenses),
    )
    receivables = _receivable_rows(data.receivables, store_id, vistoriador_id)

    try:
        db.add(cash_box)
        db.add_all(receivables)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception(f"Falha ao criar caixa {data.date} da loja {store_id}")
        raise

    logger.info(
        f"Caixa criado: {cash_box.id} loja={store_id} data={data.date} "
        f"recebíveis={len(receivables)}"
    )
    return get_cash_box(db, cash_box.id)


def update_cash_box(db: Session, cash_box: CashBox, data, vistoriador_id: str) -> CashBox:
    """Atualiza o caixa substituindo todas as linhas; recebíveis novos são acrescentados."""
    try:
        cash_box.date = data.date
        cash_box.note = data.note
        cash_box.vistoriador_id = vistoriador_id

        # Remove as linhas antigas antes de inserir (uq por método eletrônico)
        cash_box.services = []
        cash_box.electronic_entries = []
        cash_box.expenses = []
        db.flush()

        cash_box.services = _service_rows(data.services)
        cash_box.electronic_entries = _electronic_rows(data.electronic_entries)
        cash_box.expenses = _expense_rows(data.expenses)
        db.add_all(_receivable_rows(data.receivables, cash_box.store_id, vistoriador_id))
        db.commit()
    except Exception:
        db.rollback()
        logger.exception(f"Falha ao atualizar caixa {cash_box.id}")
        raise

    logger.info(f"Caixa atualizado: {cash_box.id}")
    return get_cash_box(db, cash_box.id)


def delete_cash_box(db: Session, cash_box: CashBox) -> None:
    """Exclui o caixa e suas linhas."""
    cash_box_id = cash_box.id
    db.delete(cash_box)
    db.commit()
    logger.info(f"Caixa excluído: {cash_box_id}")


def get_cash_box(db: Session, cash_box_id: str) -> CashBox:
    """Busca um caixa com serviços, entradas e despesas carregados."""
    cash_box = _with_relations(db.query(CashBox)).filter(CashBox.id == cash_box_id).first()
    if cash_box is None:
        raise CashBoxNotFoundError(f"Caixa não encontrado: {cash_box_id}")
    return cash_box


def list_cash_boxes(
    db: Session,
    start: Optional[date] = None,
    end: Optional[date] = None,
    store_id: Optional[str] = None,
    vistoriador_id: Optional[str] = None,
    limit: Optional[int] = None,
) -> list[CashBox]:
    """Lista caixas do período, mais recentes primeiro."""
    query = _with_relations(db.query(CashBox))

    if start:
        query = query.filter(CashBox.date >= start)
    if end:
        query = query.filter(CashBox.date <= end)
    if store_id:
        query = query.filter(CashBox.store_id == store_id)
    if vistoriador_id:
        query = query.filter(CashBox.vistoriador_id == vistoriador_id)

    query = query.order_by(CashBox.date.desc(), CashBox.created_at.desc())
    if limit is None:
        limit = settings.cash_box_query_limit
    if limit:
        query = query.limit(limit)
    return query.all()
