"""Utilitários de datas e meses no fuso de São Paulo."""

import re
from datetime import date, datetime

import pytz
from dateutil.relativedelta import relativedelta

from ..config import settings

MONTH_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")

MONTH_NAMES = [
    "janeiro",
    "fevereiro",
    "março",
    "abril",
    "maio",
    "junho",
    "julho",
    "agosto",
    "setembro",
    "outubro",
    "novembro",
    "dezembro",
]


class InvalidMonthError(ValueError):
    """Mês fora do formato yyyy-MM."""


def local_now() -> datetime:
    """Datetime atual no fuso configurado."""
    return datetime.now(pytz.timezone(settings.timezone))


def today() -> date:
    """Data de hoje no fuso configurado."""
    return local_now().date()


def to_date(value) -> date:
    """Aceita date, datetime ou texto ISO ('yyyy-MM-dd' ou 'yyyy-MM')."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value)
    if MONTH_PATTERN.match(text):
        return parse_month(text)
    return date.fromisoformat(text[:10])


def parse_month(month: str) -> date:
    """Converte 'yyyy-MM' no primeiro dia do mês."""
    match = MONTH_PATTERN.match(month or "")
    if not match:
        raise InvalidMonthError(f"Mês inválido: {month!r} (esperado yyyy-MM)")
    year, month_number = int(match.group(1)), int(match.group(2))
    if not 1 <= month_number <= 12:
        raise InvalidMonthError(f"Mês inválido: {month!r}")
    return date(year, month_number, 1)


def first_of_month(value) -> date:
    return to_date(value).replace(day=1)


def month_bounds(month: str) -> tuple[date, date]:
    """Primeiro e último dia do mês 'yyyy-MM'."""
    start = parse_month(month)
    end = start + relativedelta(months=1) - relativedelta(days=1)
    return start, end


def month_key(value) -> str:
    """Chave ordenável do mês: 'yyyy-MM'."""
    return to_date(value).strftime("%Y-%m")


def month_label(value) -> str:
    """Rótulo do mês em português: 'janeiro de 2024'."""
    d = to_date(value)
    return f"{MONTH_NAMES[d.month - 1]} de {d.year}"


def format_date_br(value) -> str:
    return to_date(value).strftime("%d/%m/%Y")
