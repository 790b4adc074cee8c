"""Models SQLAlchemy para o TOP Vistorias."""

import uuid
from datetime import UTC, datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship, validates

from .database import Base


def utc_now() -> datetime:
    """Retorna datetime atual em UTC."""
    return datetime.now(UTC)


def new_uuid() -> str:
    """Gera um identificador UUID4 em formato texto."""
    return str(uuid.uuid4())


# =============================================================================
# ENUMS
# =============================================================================

class UserRole(str, PyEnum):
    """Papéis de acesso."""
    ADMIN = "admin"
    VISTORIADOR = "vistoriador"


class PaymentMethod(str, PyEnum):
    """Métodos de pagamento eletrônico."""
    PIX = "pix"
    CARTAO = "cartao"


class ReceivableStatus(str, PyEnum):
    """Ciclo de vida de um recebível."""
    ABERTO = "aberto"                            # Em aberto
    PAGO_PENDENTE_BAIXA = "pago_pendente_baixa"  # Pago, aguardando conferência
    BAIXADO = "baixado"                          # Conferido e encerrado


class ExpenseSource(str, PyEnum):
    """Origem de uma despesa mensal."""
    FIXA = "fixa"
    AVULSA = "avulsa"


# =============================================================================
# LOJAS E USUÁRIOS
# =============================================================================

class Store(Base):
    """Modelo para lojas (unidades de vistoria)."""

    __tablename__ = "stores"

    id = Column(String(36), primary_key=True, default=new_uuid)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utc_now)

    # Relationships
    users = relationship("User", back_populates="store")
    cash_boxes = relationship("CashBox", back_populates="store")


class User(Base):
    """Modelo para usuários do sistema (admin ou vistoriador)."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_uuid)
    store_id = Column(String(36), ForeignKey("stores.id", ondelete="SET NULL"), nullable=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.VISTORIADOR.value)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utc_now)
    last_login = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    store = relationship("Store", back_populates="users")
    sessions = relationship("UserSession", back_populates="user", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_users_email_active", "email", "is_active"),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


class UserSession(Base):
    """Modelo para sessões de usuário (tokens de refresh)."""

    __tablename__ = "user_sessions"

    id = Column(String(36), primary_key=True, default=new_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    refresh_token_hash = Column(String(255), nullable=False, unique=True)
    device_info = Column(String(255), nullable=True)
    ip_address = Column(String(45), nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), default=utc_now)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    last_used_at = Column(DateTime(timezone=True), default=utc_now)

    # Relationships
    user = relationship("User", back_populates="sessions")

    __table_args__ = (
        Index("ix_sessions_user_active", "user_id", "is_active"),
    )


class AuditLog(Base):
    """Modelo para logs de auditoria."""

    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=new_uuid)
    actor_user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    action = Column(String(100), nullable=False, index=True)  # login, monthly_closure_saved, etc.
    entity = Column(String(50), nullable=False)  # cash_box, receivable, user...
    entity_id = Column(String(36), nullable=True)
    payload = Column(Text, nullable=True)  # JSON com detalhes adicionais
    ip_address = Column(String(45), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, index=True)

    __table_args__ = (
        Index("ix_audit_actor_created", "actor_user_id", "created_at"),
    )


# =============================================================================
# CATÁLOGO DE SERVIÇOS
# =============================================================================

class ServiceType(Base):
    """Tipo de serviço de vistoria."""

    __tablename__ = "service_types"

    id = Column(String(36), primary_key=True, default=new_uuid)
    code = Column(String(60), unique=True, nullable=False, index=True)  # CARRO, MOTO, REV_RETORNO...
    name = Column(String(120), nullable=False)
    default_price_cents = Column(Integer, nullable=False, default=0)
    counts_in_gross = Column(Boolean, nullable=False, default=True)  # False = retorno (não fatura)
    created_at = Column(DateTime(timezone=True), default=utc_now)

    __table_args__ = (
        CheckConstraint("default_price_cents >= 0", name="ck_service_types_price_non_negative"),
    )


# =============================================================================
# CAIXAS
# =============================================================================

class CashBox(Base):
    """Fechamento de caixa (diário ou fechamento manual do mês)."""

    __tablename__ = "cash_boxes"

    id = Column(String(36), primary_key=True, default=new_uuid)
    store_id = Column(String(36), ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    vistoriador_id = Column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now)

    # Relationships
    store = relationship("Store", back_populates="cash_boxes")
    vistoriador = relationship("User")
    services = relationship(
        "CashBoxService", back_populates="cash_box", cascade="all, delete-orphan"
    )
    electronic_entries = relationship(
        "CashBoxElectronicEntry", back_populates="cash_box", cascade="all, delete-orphan"
    )
    expenses = relationship(
        "CashBoxExpense", back_populates="cash_box", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("store_id", "date", "vistoriador_id", name="uq_cash_boxes_store_date_owner"),
        Index("ix_cash_boxes_store_date", "store_id", "date"),
    )


class CashBoxService(Base):
    """Linha de serviço de um caixa."""

    __tablename__ = "cash_box_services"

    id = Column(String(36), primary_key=True, default=new_uuid)
    cash_box_id = Column(String(36), ForeignKey("cash_boxes.id", ondelete="CASCADE"), nullable=False, index=True)
    service_type_id = Column(String(36), ForeignKey("service_types.id", ondelete="RESTRICT"), nullable=False)
    unit_price_cents = Column(Integer, nullable=False, default=0)
    quantity = Column(Integer, nullable=False, default=0)
    total_cents = Column(Integer, nullable=False, default=0)  # quantity * unit_price_cents
    created_at = Column(DateTime(timezone=True), default=utc_now)

    # Relationships
    cash_box = relationship("CashBox", back_populates="services")
    service_type = relationship("ServiceType")

    @validates("unit_price_cents", "quantity")
    def _sync_total(self, key, value):
        value = value or 0
        price = value if key == "unit_price_cents" else (self.unit_price_cents or 0)
        quantity = value if key == "quantity" else (self.quantity or 0)
        self.total_cents = price * quantity
        return value


class CashBoxElectronicEntry(Base):
    """Entrada eletrônica (pix/cartão) de um caixa."""

    __tablename__ = "cash_box_electronic_entries"

    id = Column(String(36), primary_key=True, default=new_uuid)
    cash_box_id = Column(String(36), ForeignKey("cash_boxes.id", ondelete="CASCADE"), nullable=False, index=True)
    method = Column(String(10), nullable=False)  # pix|cartao
    amount_cents = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utc_now)

    # Relationships
    cash_box = relationship("CashBox", back_populates="electronic_entries")

    __table_args__ = (
        UniqueConstraint("cash_box_id", "method", name="uq_electronic_entries_box_method"),
    )


class CashBoxExpense(Base):
    """Despesa variável lançada em um caixa."""

    __tablename__ = "cash_box_expenses"

    id = Column(String(36), primary_key=True, default=new_uuid)
    cash_box_id = Column(String(36), ForeignKey("cash_boxes.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    amount_cents = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utc_now)

    # Relationships
    cash_box = relationship("CashBox", back_populates="expenses")


# =============================================================================
# DESPESAS MENSAIS
# =============================================================================

class MonthlyExpense(Base):
    """Despesa mensal da loja (fixa ou avulsa), independente de caixa."""

    __tablename__ = "monthly_expenses"

    id = Column(String(36), primary_key=True, default=new_uuid)
    store_id = Column(String(36), ForeignKey("stores.id", ondelete="CASCADE"), nullable=False)
    month_year = Column(Date, nullable=False)  # Sempre o dia 1 do mês
    title = Column(String(200), nullable=False)
    amount_cents = Column(Integer, nullable=False, default=0)
    source = Column(String(10), nullable=False, default=ExpenseSource.FIXA.value)
    created_by_user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now)

    # Relationships
    store = relationship("Store")

    __table_args__ = (
        Index("ix_monthly_expenses_store_month", "store_id", "month_year"),
    )


# =============================================================================
# RECEBÍVEIS
# =============================================================================

class Receivable(Base):
    """Valor a receber de um cliente."""

    __tablename__ = "receivables"

    id = Column(String(36), primary_key=True, default=new_uuid)
    store_id = Column(String(36), ForeignKey("stores.id", ondelete="CASCADE"), nullable=False)
    created_by_user_id = Column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    customer_name = Column(String(200), nullable=False)
    plate = Column(String(20), nullable=True)
    service_type_id = Column(String(36), ForeignKey("service_types.id", ondelete="SET NULL"), nullable=True)
    original_amount_cents = Column(Integer, nullable=True)
    due_date = Column(Date, nullable=True)
    status = Column(String(30), nullable=False, default=ReceivableStatus.ABERTO.value)
    created_at = Column(DateTime(timezone=True), default=utc_now)

    # Relationships
    store = relationship("Store")
    service_type = relationship("ServiceType")
    payments = relationship(
        "ReceivablePayment",
        back_populates="receivable",
        cascade="all, delete-orphan",
        order_by="ReceivablePayment.created_at.desc()",
    )

    __table_args__ = (
        Index("ix_receivables_store_status", "store_id", "status"),
    )


class ReceivablePayment(Base):
    """Pagamento registrado para um recebível (histórico somente inclusão)."""

    __tablename__ = "receivable_payments"

    id = Column(String(36), primary_key=True, default=new_uuid)
    receivable_id = Column(String(36), ForeignKey("receivables.id", ondelete="CASCADE"), nullable=False, index=True)
    paid_on = Column(Date, nullable=False)
    amount_cents = Column(Integer, nullable=False)
    method = Column(String(10), nullable=True)
    recorded_by_user_id = Column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now)

    # Relationships
    receivable = relationship("Receivable", back_populates="payments")
