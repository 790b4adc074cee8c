"""Router para valores a receber."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from ..config import settings
from ..database import DbSession
from ..models import ReceivableStatus, User
from ..schemas import ReceivableOut, ReceivablePaymentIn, ReceivableUpdate
from ..services.auth import AuditService
from ..services.receivables import (
    ReceivableNotFoundError,
    ReceivableService,
    ReceivableStatusError,
)
from .auth import client_ip, get_current_user, require_admin, resolve_store_id

logger = logging.getLogger(__name__)

router = APIRouter()
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)


def load_receivable(service: ReceivableService, receivable_id: str, user: User):
    try:
        receivable = service.get(receivable_id)
    except ReceivableNotFoundError:
        raise HTTPException(status_code=404, detail="Recebível não encontrado")

    if not user.is_admin and receivable.store_id != user.store_id:
        raise HTTPException(status_code=404, detail="Recebível não encontrado")
    return receivable


@router.get("", response_model=list[ReceivableOut])
def list_receivables(
    db: DbSession,
    store_id: Optional[str] = None,
    status: Optional[ReceivableStatus] = None,
    user: User = Depends(get_current_user),
):
    """
    Lista recebíveis.

    - **store_id**: loja (vistoriador fica restrito à própria)
    - **status**: aberto, pago_pendente_baixa ou baixado (padrão: todos menos baixado)
    """
    return ReceivableService(db).list_receivables(store_id=resolve_store_id(user, store_id), status=status)


@router.put("/{receivable_id}", response_model=ReceivableOut)
def edit_receivable(receivable_id: str, payload: ReceivableUpdate, db: DbSession, user: User = Depends(get_current_user)):
    """Edita cliente, placa, valor, vencimento ou serviço."""
    service = ReceivableService(db)
    receivable = load_receivable(service, receivable_id, user)
    return service.update(receivable, payload)


@router.post("/{receivable_id}/payments", response_model=ReceivableOut)
@limiter.limit("30/minute")
def register_payment(
    request: Request,
    receivable_id: str,
    payload: ReceivablePaymentIn,
    db: DbSession,
    user: User = Depends(get_current_user),
):
    """Registra o pagamento e deixa o recebível aguardando baixa."""
    service = ReceivableService(db)
    receivable = load_receivable(service, receivable_id, user)

    try:
        receivable = service.register_payment(receivable, payload, user_id=user.id)
    except ReceivableStatusError as e:
        raise HTTPException(status_code=409, detail=str(e))

    AuditService(db).log(
        action="receivable_paid",
        entity="receivable",
        entity_id=receivable.id,
        actor_user_id=user.id,
        payload={"amount_cents": payload.amount_cents},
        ip_address=client_ip(request),
    )
    return receivable


@router.post("/{receivable_id}/settle", response_model=ReceivableOut)
def settle(request: Request, receivable_id: str, db: DbSession, user: User = Depends(require_admin)):
    """Baixa do recebível já pago (conferência do admin)."""
    service = ReceivableService(db)
    receivable = load_receivable(service, receivable_id, user)

    try:
        receivable = service.confirm_settlement(receivable)
    except ReceivableStatusError as e:
        raise HTTPException(status_code=409, detail=str(e))

    AuditService(db).log(
        action="receivable_settled",
        entity="receivable",
        entity_id=receivable.id,
        actor_user_id=user.id,
        ip_address=client_ip(request),
    )
    return receivable
