"""Testes para valores monetários e utilitários de mês."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from topvistorias.services.dates import (
    InvalidMonthError,
    first_of_month,
    format_date_br,
    month_bounds,
    month_key,
    month_label,
    parse_month,
    to_date,
)
from topvistorias.services.money import (
    cents_to_reais,
    format_currency,
    parse_currency,
    reais_to_cents,
)


class TestMoney:
    """Testes de conversão monetária."""

    def test_format_currency(self):
        assert format_currency(0) == "R$ 0,00"
        assert format_currency(5) == "R$ 0,05"
        assert format_currency(12000) == "R$ 120,00"
        assert format_currency(123456) == "R$ 1.234,56"
        assert format_currency(123456789) == "R$ 1.234.567,89"
        assert format_currency(-8000) == "-R$ 80,00"

    def test_parse_currency(self):
        assert parse_currency("R$ 1.234,56") == 123456
        assert parse_currency("1234,56") == 123456
        assert parse_currency("R$ 0,05") == 5
        assert parse_currency("-R$ 10,00") == -1000
        assert parse_currency("120") == 12000

    def test_parse_currency_invalid_is_zero(self):
        assert parse_currency("") == 0
        assert parse_currency(None) == 0
        assert parse_currency("abc") == 0
        assert parse_currency("R$") == 0

    def test_format_then_parse(self):
        for cents in (0, 1, 99, 100, 12000, 123456, 98765432, -4550):
            assert parse_currency(format_currency(cents)) == cents

    def test_reais_conversion(self):
        assert cents_to_reais(12345) == Decimal("123.45")
        assert reais_to_cents("123.45") == 12345
        assert reais_to_cents(0.1 + 0.2) == 30
        assert reais_to_cents(Decimal("10.005")) == 1001


class TestMonths:
    """Testes de mês yyyy-MM."""

    def test_parse_month(self):
        assert parse_month("2024-02") == date(2024, 2, 1)

    @pytest.mark.parametrize("value", ["2024-13", "2024-00", "2024-1", "01/2024", "", None])
    def test_parse_month_invalid(self, value):
        with pytest.raises(InvalidMonthError):
            parse_month(value)

    def test_month_bounds(self):
        assert month_bounds("2024-02") == (date(2024, 2, 1), date(2024, 2, 29))
        assert month_bounds("2023-12") == (date(2023, 12, 1), date(2023, 12, 31))

    def test_labels(self):
        assert month_key(date(2024, 3, 17)) == "2024-03"
        assert month_label(date(2024, 3, 17)) == "março de 2024"
        assert month_label("2024-12") == "dezembro de 2024"
        assert format_date_br(date(2024, 3, 7)) == "07/03/2024"

    def test_to_date(self):
        assert to_date(datetime(2024, 5, 6, 13, 0)) == date(2024, 5, 6)
        assert to_date("2024-05-06") == date(2024, 5, 6)
        assert to_date("2024-05-06T10:00:00") == date(2024, 5, 6)
        assert first_of_month("2024-05-20") == date(2024, 5, 1)
