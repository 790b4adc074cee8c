"""Schemas Pydantic para validação e serialização."""

import re
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from .models import ExpenseSource, PaymentMethod, ReceivableStatus, UserRole
from .services.dates import first_of_month

MONTH_REGEX = r"^\d{4}-\d{2}$"


# === Lojas, usuários e catálogo ===


class StoreBase(BaseModel):
    """Schema base para loja."""

    name: str = Field(..., min_length=1, max_length=255)


class StoreCreate(StoreBase):
    """Schema para criar loja."""


class StoreUpdate(BaseModel):
    """Schema para atualizar loja."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    is_active: Optional[bool] = None


class StoreOut(StoreBase):
    """Schema de saída para loja."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    is_active: bool


class UserOut(BaseModel):
    """Schema de saída para usuário."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str
    role: UserRole
    store_id: Optional[str] = None
    is_active: bool


class UserCreate(BaseModel):
    """Schema para criação de usuário."""

    email: EmailStr
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=2)
    role: UserRole = UserRole.VISTORIADOR
    store_id: Optional[str] = None

    @model_validator(mode="after")
    def validate_store(self) -> "UserCreate":
        """Vistoriador sempre pertence a uma loja."""
        if self.role == UserRole.VISTORIADOR and not self.store_id:
            raise ValueError("Vistoriador precisa de store_id")
        return self


class ServiceTypeOut(BaseModel):
    """Schema de saída para tipo de serviço."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    code: str
    name: str
    default_price_cents: int
    counts_in_gross: bool


# === Caixa diário ===


class CashBoxServiceIn(BaseModel):
    service_type_id: str
    quantity: int = Field(default=0, ge=0)
    unit_price_cents: int = Field(default=0, ge=0)


class ElectronicEntryIn(BaseModel):
    method: PaymentMethod
    amount_cents: int = Field(default=0, ge=0)


class CashBoxExpenseIn(BaseModel):
    title: str = Field(default="", max_length=200)
    amount_cents: int = Field(default=0, ge=0)


class ReceivableIn(BaseModel):
    """Valor a receber capturado junto com o caixa."""

    customer_name: str = Field(..., min_length=1, max_length=200)
    plate: Optional[str] = Field(None, max_length=20)
    service_type_id: Optional[str] = None
    original_amount_cents: Optional[int] = Field(None, ge=0)
    due_date: Optional[date] = None

    @field_validator("customer_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Nome do cliente é obrigatório")
        return v

    @field_validator("plate")
    @classmethod
    def normalize_plate(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = re.sub(r"[^A-Za-z0-9]", "", v).upper()
        return v or None


class CashBoxPayload(BaseModel):
    """Formulário do caixa diário."""

    date: date
    note: str = Field(..., max_length=2000)
    store_id: Optional[str] = Field(None, description="Somente admin: loja do caixa")
    vistoriador_id: Optional[str] = Field(None, description="Somente admin: responsável pelo caixa")
    services: list[CashBoxServiceIn] = Field(default_factory=list)
    electronic_entries: list[ElectronicEntryIn] = Field(default_factory=list)
    expenses: list[CashBoxExpenseIn] = Field(default_factory=list)
    receivables: list[ReceivableIn] = Field(default_factory=list)

    @field_validator("note")
    @classmethod
    def validate_note(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Observação é obrigatória")
        return v

    @model_validator(mode="after")
    def validate_electronic_methods(self) -> "CashBoxPayload":
        """Um lançamento por método (pix, cartão)."""
        methods = [entry.method for entry in self.electronic_entries]
        if len(methods) != len(set(methods)):
            raise ValueError("Cada método eletrônico pode aparecer uma única vez")
        return self


class CashBoxServiceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    service_type_id: str
    unit_price_cents: int
    quantity: int
    total_cents: int


class ElectronicEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    method: PaymentMethod
    amount_cents: int


class CashBoxExpenseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    amount_cents: int


class CashBoxTotalsOut(BaseModel):
    """Totais de um caixa, em centavos."""

    model_config = ConfigDict(from_attributes=True)

    gross: int
    electronic_total: int
    net: int
    cash: int
    expenses_total: int
    receivables_total: int
    pix: int
    cartao: int
    return_quantity: int


class CashBoxSummary(BaseModel):
    """Item da listagem de caixas."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    store_id: str
    date: date
    vistoriador_id: str
    note: Optional[str] = None
    created_at: Optional[datetime] = None


class CashBoxListItem(CashBoxSummary):
    totals: CashBoxTotalsOut


class CashBoxOut(CashBoxSummary):
    """Caixa completo com suas linhas."""

    services: list[CashBoxServiceOut] = []
    electronic_entries: list[ElectronicEntryOut] = []
    expenses: list[CashBoxExpenseOut] = []


class CashBoxSaved(CashBoxOut):
    """Caixa gravado, com os totais do formulário (inclui os recebíveis capturados)."""

    totals: CashBoxTotalsOut


# === Recebíveis ===


class ReceivableUpdate(BaseModel):
    """Edição de um recebível."""

    customer_name: Optional[str] = Field(None, min_length=1, max_length=200)
    plate: Optional[str] = Field(None, max_length=20)
    service_type_id: Optional[str] = None
    original_amount_cents: Optional[int] = Field(None, ge=0)
    due_date: Optional[date] = None

    @field_validator("customer_name")
    @classmethod
    def validate_customer_name(cls, v: Optional[str]) -> str:
        """Campo pode ser omitido, mas não apagado."""
        v = (v or "").strip()
        if not v:
            raise ValueError("Nome do cliente é obrigatório")
        return v


class ReceivablePaymentIn(BaseModel):
    """Registro de pagamento."""

    paid_on: Optional[date] = None
    amount_cents: int = Field(..., gt=0)
    method: Optional[PaymentMethod] = None


class ReceivablePaymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    paid_on: date
    amount_cents: int
    method: Optional[PaymentMethod] = None
    recorded_by_user_id: str
    created_at: Optional[datetime] = None


class ReceivableOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    store_id: str
    created_by_user_id: str
    customer_name: str
    plate: Optional[str] = None
    service_type_id: Optional[str] = None
    original_amount_cents: Optional[int] = None
    due_date: Optional[date] = None
    status: ReceivableStatus
    created_at: Optional[datetime] = None
    payments: list[ReceivablePaymentOut] = []


# === Despesas ===


class FixedExpenseIn(BaseModel):
    """Despesa fixa mensal (criação ou edição quando id é informado)."""

    id: Optional[str] = None
    store_id: str
    month_year: date
    title: str = Field(..., min_length=1, max_length=200)
    amount_cents: int = Field(..., ge=0)

    @field_validator("month_year", mode="before")
    @classmethod
    def normalize_month(cls, v):
        """Aceita 'yyyy-MM' ou data; grava sempre o dia 1."""
        return first_of_month(v)

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Título é obrigatório")
        return v


class MonthlyExpenseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    store_id: str
    month_year: date
    title: str
    amount_cents: int
    source: ExpenseSource
    created_by_user_id: Optional[str] = None


class VariableExpenseCreate(BaseModel):
    cash_box_id: str
    title: str = Field(..., min_length=1, max_length=200)
    amount_cents: int = Field(..., gt=0)


class VariableExpenseUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    amount_cents: Optional[int] = Field(None, gt=0)


class VariableExpenseOut(BaseModel):
    """Despesa de caixa com os dados do caixa de origem."""

    id: str
    cash_box_id: str
    title: str
    amount_cents: int
    date: date
    store_id: str
    vistoriador_id: str


# === Relatórios ===


class MonthlySummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    month_key: str
    month_label: str
    gross: int
    pix: int
    cartao: int
    expenses_variable: int
    net: int
    fixed_expenses: int
    net_after_fixed: int
    return_quantity: int
    cash_box_count: int


class SummaryResponse(BaseModel):
    rows: list[MonthlySummaryOut]
    total: MonthlySummaryOut


# === Fechamento mensal ===


class ClosureServiceIn(BaseModel):
    service_type_id: str
    quantity: int = 0
    unit_price_cents: Optional[int] = Field(None, ge=0, description="Sobrescreve o preço padrão do catálogo")


class ClosureExpenseIn(BaseModel):
    title: str = ""
    amount_cents: int = 0


class MonthlyClosureRequest(BaseModel):
    """Gravação do fechamento mensal de uma loja."""

    store_id: str
    month: str = Field(..., pattern=MONTH_REGEX)
    user_id: Optional[str] = Field(None, description="Responsável; padrão é o admin autenticado")
    services: list[ClosureServiceIn] = Field(default_factory=list)
    expenses: list[ClosureExpenseIn] = Field(default_factory=list)


class ClosureServiceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    service_type_id: str
    quantity: int
    unit_price_cents: int


class ClosureExpenseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    title: str
    amount_cents: int
    source: ExpenseSource


class MonthlyClosureOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    cash_box_id: Optional[str] = None
    month: str
    services: list[ClosureServiceOut]
    expenses: list[ClosureExpenseOut]
    default_expenses: list[ClosureExpenseOut]
    service_catalog: list[ServiceTypeOut]
    uses_default_expenses: bool
    effective_expenses: list[ClosureExpenseOut]


class MonthlyClosureSaved(BaseModel):
    cash_box_id: str
    month: str
    store_id: str


# === Health ===


class HealthResponse(BaseModel):
    """Response do health check."""

    status: str
    db: bool
