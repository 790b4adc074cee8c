"""
Serviço de recebíveis.

Ciclo de vida:
    aberto -> pago_pendente_baixa (pagamento registrado)
    pago_pendente_baixa -> baixado (conferência do admin)
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session, selectinload

from ..models import Receivable, ReceivablePayment, ReceivableStatus
from .dates import today

logger = logging.getLogger(__name__)


class ReceivableNotFoundError(LookupError):
    """Recebível inexistente."""


class ReceivableStatusError(Exception):
    """Transição de status não permitida."""


EDITABLE_FIELDS = ("customer_name", "plate", "service_type_id", "original_amount_cents", "due_date")


class ReceivableService:
    """Consultas e transições de recebíveis."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, receivable_id: str) -> Receivable:
        receivable = (
            self.db.query(Receivable)
            .options(selectinload(Receivable.payments))
            .filter(Receivable.id == receivable_id)
            .first()
        )
        if receivable is None:
            raise ReceivableNotFoundError(f"Recebível não encontrado: {receivable_id}")
        return receivable

    def list_receivables(
        self,
        store_id: Optional[str] = None,
        status: Optional[ReceivableStatus] = None,
    ) -> list[Receivable]:
        """Lista recebíveis; sem filtro de status os já baixados ficam de fora."""
        query = self.db.query(Receivable).options(selectinload(Receivable.payments))
        if store_id:
            query = query.filter(Receivable.store_id == store_id)
        if status:
            query = query.filter(Receivable.status == status.value)
        else:
            query = query.filter(Receivable.status != ReceivableStatus.BAIXADO.value)
        return query.order_by(Receivable.due_date.asc(), Receivable.created_at.asc()).all()

    def update(self, receivable: Receivable, data) -> Receivable:
        for field_name, value in data.model_dump(exclude_unset=True).items():
            if field_name in EDITABLE_FIELDS:
                setattr(receivable, field_name, value)
        self.db.commit()
        self.db.refresh(receivable)
        return receivable

    def register_payment(self, receivable: Receivable, data, user_id: str) -> Receivable:
        """Registra o pagamento e envia o recebível para conferência."""
        if receivable.status != ReceivableStatus.ABERTO.value:
            raise ReceivableStatusError(
                f"Pagamento só pode ser registrado em recebível aberto (status atual: {receivable.status})"
            )

        try:
            receivable.payments.append(
                ReceivablePayment(
                    paid_on=data.paid_on or today(),
                    amount_cents=data.amount_cents,
                    method=data.method.value if data.method else None,
                    recorded_by_user_id=user_id,
                )
            )
            receivable.status = ReceivableStatus.PAGO_PENDENTE_BAIXA.value
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception(f"Falha ao registrar pagamento do recebível {receivable.id}")
            raise

        logger.info(f"Pagamento registrado: recebível={receivable.id} valor={data.amount_cents}")
        return self.get(receivable.id)

    def confirm_settlement(self, receivable: Receivable) -> Receivable:
        """Baixa do recebível pago (somente admin)."""
        if receivable.status != ReceivableStatus.PAGO_PENDENTE_BAIXA.value:
            raise ReceivableStatusError(
                f"Baixa só é possível após o pagamento (status atual: {receivable.status})"
            )

        receivable.status = ReceivableStatus.BAIXADO.value
        self.db.commit()
        logger.info(f"Recebível baixado: {receivable.id}")
        return self.get(receivable.id)
