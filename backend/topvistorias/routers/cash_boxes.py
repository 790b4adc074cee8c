"""Router para caixas diários."""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.exc import IntegrityError

from ..config import settings
from ..database import DbSession
from ..models import CashBox, Store, User
from ..schemas import CashBoxListItem, CashBoxOut, CashBoxPayload, CashBoxSaved, CashBoxTotalsOut
from ..services.auth import AuditService
from ..services.cash_boxes import (
    CashBoxNotFoundError,
    create_cash_box,
    delete_cash_box,
    get_cash_box,
    list_cash_boxes,
    unknown_service_type_ids,
    update_cash_box,
)
from ..services.reports import build_cash_box_pdf
from ..services.totals import totals_for_cash_box
from .auth import client_ip, get_current_user, resolve_store_id

logger = logging.getLogger(__name__)

router = APIRouter()
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)


def load_cash_box(db, cash_box_id: str, user: User) -> CashBox:
    """Busca o caixa respeitando o escopo de loja do usuário."""
    try:
        cash_box = get_cash_box(db, cash_box_id)
    except CashBoxNotFoundError:
        raise HTTPException(status_code=404, detail="Caixa não encontrado")

    if not user.is_admin and cash_box.store_id != user.store_id:
        raise HTTPException(status_code=404, detail="Caixa não encontrado")
    return cash_box


def resolve_owner(user: User, payload: CashBoxPayload) -> tuple[str, str]:
    """Loja e responsável do caixa: admin escolhe, vistoriador usa os próprios."""
    if user.is_admin:
        store_id = payload.store_id or user.store_id
        if not store_id:
            raise HTTPException(status_code=422, detail="Informe a loja do caixa")
        return store_id, payload.vistoriador_id or user.id

    if not user.store_id:
        raise HTTPException(status_code=403, detail="Usuário sem loja vinculada")
    return resolve_store_id(user, payload.store_id), user.id


def check_service_types(db, payload: CashBoxPayload) -> None:
    unknown = unknown_service_type_ids(db, payload)
    if unknown:
        raise HTTPException(
            status_code=422,
            detail=f"Tipo de serviço inexistente: {', '.join(sorted(unknown))}",
        )


def saved_response(cash_box: CashBox, payload: CashBoxPayload) -> CashBoxSaved:
    """Caixa gravado com o dinheiro em caixa já descontando os recebíveis do formulário."""
    totals = totals_for_cash_box(cash_box, receivables=payload.receivables)
    return CashBoxSaved(
        **CashBoxOut.model_validate(cash_box).model_dump(),
        totals=CashBoxTotalsOut.model_validate(totals),
    )


@router.get("", response_model=list[CashBoxListItem])
def get_cash_boxes(
    db: DbSession,
    start: Optional[date] = None,
    end: Optional[date] = None,
    store_id: Optional[str] = None,
    vistoriador_id: Optional[str] = None,
    user: User = Depends(get_current_user),
):
    """
    Lista caixas do período com os totais calculados.

    - **start**/**end**: intervalo de datas (yyyy-MM-dd)
    - **store_id**: loja (vistoriador fica restrito à própria)
    - **vistoriador_id**: responsável
    """
    cash_boxes = list_cash_boxes(
        db,
        start=start,
        end=end,
        store_id=resolve_store_id(user, store_id),
        vistoriador_id=vistoriador_id,
    )
    return [
        CashBoxListItem(
            id=box.id,
            store_id=box.store_id,
            date=box.date,
            vistoriador_id=box.vistoriador_id,
            note=box.note,
            created_at=box.created_at,
            totals=CashBoxTotalsOut.model_validate(totals_for_cash_box(box)),
        )
        for box in cash_boxes
    ]


@router.post("", response_model=CashBoxSaved, status_code=201)
@limiter.limit("30/minute")
def post_cash_box(request: Request, payload: CashBoxPayload, db: DbSession, user: User = Depends(get_current_user)):
    """Registra o caixa do dia."""
    store_id, owner_id = resolve_owner(user, payload)
    if not db.get(Store, store_id):
        raise HTTPException(status_code=404, detail="Loja não encontrada")
    check_service_types(db, payload)

    try:
        cash_box = create_cash_box(db, payload, store_id=store_id, vistoriador_id=owner_id)
    except IntegrityError:
        raise HTTPException(status_code=409, detail="Já existe caixa deste responsável nesta data")

    AuditService(db).log(
        action="cash_box_created",
        entity="cash_box",
        entity_id=cash_box.id,
        actor_user_id=user.id,
        ip_address=client_ip(request),
    )
    return saved_response(cash_box, payload)


@router.get("/{cash_box_id}", response_model=CashBoxOut)
def get_one(cash_box_id: str, db: DbSession, user: User = Depends(get_current_user)):
    return load_cash_box(db, cash_box_id, user)


@router.get("/{cash_box_id}/totals", response_model=CashBoxTotalsOut)
def get_totals(cash_box_id: str, db: DbSession, user: User = Depends(get_current_user)):
    """Totais do caixa (bruto, líquido, dinheiro, eletrônicos)."""
    return totals_for_cash_box(load_cash_box(db, cash_box_id, user))


@router.get("/{cash_box_id}/pdf")
def get_pdf(cash_box_id: str, db: DbSession, user: User = Depends(get_current_user)):
    """PDF do fechamento do caixa."""
    cash_box = load_cash_box(db, cash_box_id, user)
    pdf = build_cash_box_pdf(
        cash_box,
        totals_for_cash_box(cash_box),
        store_name=cash_box.store.name,
        vistoriador_name=cash_box.vistoriador.name,
    )
    return Response(
        pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f"inline; filename=caixa_{cash_box.date:%Y-%m-%d}.pdf"},
    )


@router.put("/{cash_box_id}", response_model=CashBoxSaved)
@limiter.limit("30/minute")
def put_cash_box(
    request: Request,
    cash_box_id: str,
    payload: CashBoxPayload,
    db: DbSession,
    user: User = Depends(get_current_user),
):
    """Edita o caixa substituindo serviços, entradas e despesas."""
    cash_box = load_cash_box(db, cash_box_id, user)
    owner_id = payload.vistoriador_id if user.is_admin and payload.vistoriador_id else cash_box.vistoriador_id
    if not user.is_admin:
        owner_id = user.id
    check_service_types(db, payload)

    try:
        cash_box = update_cash_box(db, cash_box, payload, vistoriador_id=owner_id)
    except IntegrityError:
        raise HTTPException(status_code=409, detail="Já existe caixa deste responsável nesta data")

    AuditService(db).log(
        action="cash_box_updated",
        entity="cash_box",
        entity_id=cash_box.id,
        actor_user_id=user.id,
        ip_address=client_ip(request),
    )
    return saved_response(cash_box, payload)


@router.delete("/{cash_box_id}", status_code=204)
def remove_cash_box(request: Request, cash_box_id: str, db: DbSession, user: User = Depends(get_current_user)):
    """Exclui o caixa e todas as suas linhas."""
    cash_box = load_cash_box(db, cash_box_id, user)
    delete_cash_box(db, cash_box)

    AuditService(db).log(
        action="cash_box_deleted",
        entity="cash_box",
        entity_id=cash_box_id,
        actor_user_id=user.id,
        ip_address=client_ip(request),
    )
    return Response(status_code=204)
