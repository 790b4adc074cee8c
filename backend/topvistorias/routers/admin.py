"""Router administrativo: relatórios, métricas, fechamento mensal e despesas."""

import dataclasses
import logging
from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.exc import IntegrityError

from ..config import settings
from ..database import DbSession
from ..models import CashBox, ServiceType, Store, User
from ..schemas import (
    FixedExpenseIn,
    MonthlyClosureOut,
    MonthlyClosureRequest,
    MonthlyClosureSaved,
    MonthlyExpenseOut,
    MonthlySummaryOut,
    SummaryResponse,
    VariableExpenseCreate,
    VariableExpenseOut,
    VariableExpenseUpdate,
)
from ..services.auth import AuditService
from ..services.cash_boxes import list_cash_boxes
from ..services.dates import InvalidMonthError, format_date_br, today
from ..services.expenses import (
    ExpenseNotFoundError,
    create_variable_expense,
    delete_fixed_expense,
    delete_variable_expense,
    get_variable_expense,
    list_fixed_expenses,
    list_variable_expenses,
    save_fixed_expense,
    update_variable_expense,
)
from ..services.metrics import Metrics, aggregate_metrics, filter_expense_aggregates
from ..services.monthly_closure import ClosureNotFoundError, MonthlyClosureService
from ..services.monthly_summary import summarize_cash_boxes, summarize_totals
from ..services.reports import build_monthly_report_pdf
from .auth import client_ip, require_admin

logger = logging.getLogger(__name__)

router = APIRouter()
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

METRICS_DEFAULT_DAYS = 30


def _period_text(start: Optional[date], end: Optional[date]) -> str:
    return f"{format_date_br(start) if start else 'Início'} a {format_date_br(end) if end else 'Hoje'}"


def _store_names(db) -> dict[str, str]:
    return {store_id: name for store_id, name in db.query(Store.id, Store.name).all()}


def _summary(db, start, end, store_id):
    cash_boxes = list_cash_boxes(db, start=start, end=end, store_id=store_id, limit=0)
    fixed_expenses = list_fixed_expenses(db, start=start, end=end, store_id=store_id)
    rows = summarize_cash_boxes(cash_boxes, fixed_expenses, store_id=store_id)
    return rows, summarize_totals(rows)


# =============================================================================
# RELATÓRIOS
# =============================================================================

@router.get("/summary", response_model=SummaryResponse)
def get_summary(
    db: DbSession,
    start: Optional[date] = None,
    end: Optional[date] = None,
    store_id: Optional[str] = None,
    user: User = Depends(require_admin),
):
    """
    Resumo mensal consolidado.

    - **start**/**end**: período (yyyy-MM-dd); sem filtro = todo o histórico
    - **store_id**: loja (vazio = todas)
    """
    rows, total = _summary(db, start, end, store_id)
    return SummaryResponse(
        rows=[MonthlySummaryOut.model_validate(row) for row in rows],
        total=MonthlySummaryOut.model_validate(total),
    )


@router.get("/summary/pdf")
@limiter.limit("10/minute")
def get_summary_pdf(
    request: Request,
    db: DbSession,
    start: Optional[date] = None,
    end: Optional[date] = None,
    store_id: Optional[str] = None,
    user: User = Depends(require_admin),
):
    """Exporta o resumo mensal em PDF."""
    rows, total = _summary(db, start, end, store_id)
    store = db.get(Store, store_id) if store_id else None

    pdf = build_monthly_report_pdf(
        rows,
        total,
        store_name=store.name if store else None,
        period=_period_text(start, end),
    )
    return Response(
        pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": "inline; filename=relatorio_mensal.pdf"},
    )


@router.get("/metrics", response_model=Metrics)
def get_metrics(
    db: DbSession,
    start: Optional[date] = None,
    end: Optional[date] = None,
    store_id: Optional[str] = None,
    expense_search: Optional[str] = Query(None, description="Filtra os grupos de despesas"),
    user: User = Depends(require_admin),
):
    """
    Métricas do período (padrão: últimos 30 dias).

    - **expense_search**: busca sem acento/caixa em nome, loja e mês das despesas
    """
    end = end or today()
    start = start or end - timedelta(days=METRICS_DEFAULT_DAYS - 1)

    metrics = aggregate_metrics(
        cash_boxes=list_cash_boxes(db, start=start, end=end, store_id=store_id, limit=0),
        fixed_expenses=list_fixed_expenses(db, start=start, end=end, store_id=store_id),
        variable_expenses=list_variable_expenses(db, start=start, end=end, store_id=store_id),
        service_types=db.query(ServiceType).all(),
        store_names=_store_names(db),
    )

    if expense_search:
        metrics = dataclasses.replace(
            metrics,
            variable_expenses_top=filter_expense_aggregates(metrics.variable_expenses_top, expense_search),
            fixed_expenses_top=filter_expense_aggregates(metrics.fixed_expenses_top, expense_search),
        )
    return metrics


# =============================================================================
# FECHAMENTO MENSAL
# =============================================================================

@router.get("/monthly-closure", response_model=MonthlyClosureOut)
def get_monthly_closure(
    db: DbSession,
    store_id: str,
    month: str = Query(..., description="Mês no formato yyyy-MM"),
    user: User = Depends(require_admin),
):
    """Fechamento salvo da loja/mês, com as despesas fixas para pré-preenchimento."""
    try:
        data = MonthlyClosureService(db).fetch(store_id, month)
    except InvalidMonthError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return MonthlyClosureOut.model_validate(data)


@router.put("/monthly-closure", response_model=MonthlyClosureSaved)
@limiter.limit("30/minute")
def put_monthly_closure(
    request: Request,
    payload: MonthlyClosureRequest,
    db: DbSession,
    user: User = Depends(require_admin),
):
    """
    Grava o fechamento mensal (substitui todos os serviços e despesas).

    - **services**: [{service_type_id, quantity, unit_price_cents?}] (quantidade 0 é descartada)
    - **expenses**: [{title, amount_cents}] (título vazio ou valor 0 é descartado)
    """
    if not db.get(Store, payload.store_id):
        raise HTTPException(status_code=404, detail="Loja não encontrada")

    owner_id = payload.user_id or user.id
    if not db.get(User, owner_id):
        raise HTTPException(status_code=404, detail="Responsável não encontrado")

    try:
        cash_box_id = MonthlyClosureService(db).upsert(payload.model_copy(update={"user_id": owner_id}))
    except InvalidMonthError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except IntegrityError:
        raise HTTPException(status_code=409, detail="O responsável já tem um caixa no domingo reservado ao fechamento")

    AuditService(db).log(
        action="monthly_closure_saved",
        entity="cash_box",
        entity_id=cash_box_id,
        actor_user_id=user.id,
        payload={"store_id": payload.store_id, "month": payload.month},
        ip_address=client_ip(request),
    )
    return MonthlyClosureSaved(cash_box_id=cash_box_id, month=payload.month, store_id=payload.store_id)


@router.delete("/monthly-closure/{cash_box_id}", status_code=204)
def delete_monthly_closure(request: Request, cash_box_id: str, db: DbSession, user: User = Depends(require_admin)):
    """Exclui o fechamento mensal."""
    try:
        MonthlyClosureService(db).delete(cash_box_id)
    except ClosureNotFoundError:
        raise HTTPException(status_code=404, detail="Fechamento mensal não encontrado")

    AuditService(db).log(
        action="monthly_closure_deleted",
        entity="cash_box",
        entity_id=cash_box_id,
        actor_user_id=user.id,
        ip_address=client_ip(request),
    )
    return Response(status_code=204)


# =============================================================================
# DESPESAS FIXAS
# =============================================================================

@router.get("/fixed-expenses", response_model=list[MonthlyExpenseOut])
def get_fixed_expenses(
    db: DbSession,
    start: Optional[date] = None,
    end: Optional[date] = None,
    store_id: Optional[str] = None,
    user: User = Depends(require_admin),
):
    return list_fixed_expenses(db, start=start, end=end, store_id=store_id)


@router.post("/fixed-expenses", response_model=MonthlyExpenseOut)
def post_fixed_expense(payload: FixedExpenseIn, db: DbSession, user: User = Depends(require_admin)):
    """Cria ou atualiza (quando `id` é informado) uma despesa fixa."""
    if not db.get(Store, payload.store_id):
        raise HTTPException(status_code=404, detail="Loja não encontrada")
    try:
        return save_fixed_expense(db, payload, user_id=user.id)
    except ExpenseNotFoundError:
        raise HTTPException(status_code=404, detail="Despesa fixa não encontrada")


@router.delete("/fixed-expenses/{expense_id}", status_code=204)
def remove_fixed_expense(expense_id: str, db: DbSession, user: User = Depends(require_admin)):
    try:
        delete_fixed_expense(db, expense_id)
    except ExpenseNotFoundError:
        raise HTTPException(status_code=404, detail="Despesa fixa não encontrada")
    return Response(status_code=204)


# =============================================================================
# DESPESAS VARIÁVEIS
# =============================================================================

def _variable_out(expense) -> VariableExpenseOut:
    return VariableExpenseOut(
        id=expense.id,
        cash_box_id=expense.cash_box_id,
        title=expense.title,
        amount_cents=expense.amount_cents,
        date=expense.cash_box.date,
        store_id=expense.cash_box.store_id,
        vistoriador_id=expense.cash_box.vistoriador_id,
    )


@router.get("/variable-expenses", response_model=list[VariableExpenseOut])
def get_variable_expenses(
    db: DbSession,
    start: Optional[date] = None,
    end: Optional[date] = None,
    store_id: Optional[str] = None,
    vistoriador_id: Optional[str] = None,
    user: User = Depends(require_admin),
):
    expenses = list_variable_expenses(db, start=start, end=end, store_id=store_id, vistoriador_id=vistoriador_id)
    return [_variable_out(expense) for expense in expenses]


@router.post("/variable-expenses", response_model=VariableExpenseOut, status_code=201)
def post_variable_expense(payload: VariableExpenseCreate, db: DbSession, user: User = Depends(require_admin)):
    cash_box = db.get(CashBox, payload.cash_box_id)
    if not cash_box:
        raise HTTPException(status_code=404, detail="Caixa não encontrado")
    return _variable_out(create_variable_expense(db, cash_box, payload.title, payload.amount_cents))


@router.put("/variable-expenses/{expense_id}", response_model=VariableExpenseOut)
def put_variable_expense(
    expense_id: str,
    payload: VariableExpenseUpdate,
    db: DbSession,
    user: User = Depends(require_admin),
):
    try:
        expense = get_variable_expense(db, expense_id)
    except ExpenseNotFoundError:
        raise HTTPException(status_code=404, detail="Despesa variável não encontrada")
    return _variable_out(update_variable_expense(db, expense, payload))


@router.delete("/variable-expenses/{expense_id}", status_code=204)
def remove_variable_expense(expense_id: str, db: DbSession, user: User = Depends(require_admin)):
    try:
        expense = get_variable_expense(db, expense_id)
    except ExpenseNotFoundError:
        raise HTTPException(status_code=404, detail="Despesa variável não encontrada")
    delete_variable_expense(db, expense)
    return Response(status_code=204)
