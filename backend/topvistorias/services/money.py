"""Conversão e formatação de valores monetários (centavos <-> Real)."""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CURRENCY_SYMBOL = "R$"

_CURRENCY_NOISE = re.compile(r"R\$|\s")


def cents_to_reais(cents: int) -> Decimal:
    """Converte centavos para reais."""
    return (Decimal(cents) / 100).quantize(Decimal("0.01"))


def reais_to_cents(reais) -> int:
    """Converte reais (float, str ou Decimal) para centavos inteiros."""
    value = Decimal(str(reais))
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_currency(cents: int) -> str:
    """Formata centavos no padrão brasileiro: 123456 -> 'R$ 1.234,56'."""
    sign = "-" if cents < 0 else ""
    reais, centavos = divmod(abs(int(cents)), 100)
    inteiro = f"{reais:,}".replace(",", ".")
    return f"{sign}{CURRENCY_SYMBOL} {inteiro},{centavos:02d}"


def parse_currency(formatted_value: str) -> int:
    """
    Converte texto monetário brasileiro em centavos.

    Aceita 'R$ 1.234,56', '1234,56', '-R$ 10,00'. Texto vazio ou inválido vira 0.
    """
    cleaned = _CURRENCY_NOISE.sub("", formatted_value or "")
    negative = cleaned.startswith("-")
    cleaned = cleaned.lstrip("-").replace(".", "").replace(",", ".")
    if not cleaned:
        return 0

    try:
        cents = reais_to_cents(Decimal(cleaned))
    except InvalidOperation:
        return 0
    return -cents if negative else cents
