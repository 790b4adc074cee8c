"""Catálogo de tipos de serviço: ordem de exibição, preços padrão e seed."""

import logging
from typing import Iterable

from sqlalchemy.orm import Session

from ..models import ServiceType

logger = logging.getLogger(__name__)

SERVICE_CODE_ORDER = [
    "CARRO",
    "MOTO",
    "CAMINHONETE",
    "CAMINHAO",
    "PESQUISA",
    "CAUTELAR_MOTO",
    "CAUTELAR_CARRO",
    "CAUTELAR_CAMINHAO_CAMINHONETE",
    "REVISTORIA_MULTA",
    "REV_RETORNO",
]

# Pesquisa parte de R$ 60,00 enquanto o banco não tiver preço padrão
SERVICE_PRICE_FALLBACKS = {
    "PESQUISA": 6000,
}

# (code, name, default_price_cents, counts_in_gross)
DEFAULT_SERVICE_TYPES = [
    ("CARRO", "Carro", 12000, True),
    ("MOTO", "Moto", 10000, True),
    ("CAMINHONETE", "Caminhonete", 14000, True),
    ("CAMINHAO", "Caminhão", 18000, True),
    ("PESQUISA", "Pesquisa", 0, True),
    ("CAUTELAR_CARRO", "Cautelar Carro", 22000, True),
    ("CAUTELAR_MOTO", "Cautelar Moto", 16000, True),
    ("CAUTELAR_CAMINHAO_CAMINHONETE", "Cautelar Caminhão/Caminhonete", 24000, True),
    ("REVISTORIA_MULTA", "Revistoria Multa", 20000, True),
    ("REV_RETORNO", "Revistoria Retorno", 0, False),
]


def get_service_default_price(service_type) -> int:
    """Preço padrão do serviço, com fallback por código quando o catálogo está zerado."""
    default_price = service_type.default_price_cents or 0
    if default_price > 0:
        return default_price
    return SERVICE_PRICE_FALLBACKS.get(service_type.code, 0)


def order_service_types(service_types: Iterable) -> list:
    """
    Ordena o catálogo para exibição.

    Códigos conhecidos seguem SERVICE_CODE_ORDER; os demais vêm depois, na ordem
    recebida. Códigos duplicados mantêm a primeira ocorrência.
    """
    by_code = {}
    for service_type in service_types or []:
        by_code.setdefault(service_type.code, service_type)

    primary = [by_code[code] for code in SERVICE_CODE_ORDER if code in by_code]
    extras = [st for code, st in by_code.items() if code not in SERVICE_CODE_ORDER]
    return primary + extras


def list_service_types(db: Session) -> list[ServiceType]:
    """Catálogo completo, já ordenado para exibição."""
    return order_service_types(db.query(ServiceType).order_by(ServiceType.name).all())


def seed_service_types(db: Session) -> int:
    """Insere os tipos de serviço padrão que ainda não existem. Retorna quantos criou."""
    existing = {code for (code,) in db.query(ServiceType.code).all()}
    created = 0
    for code, name, price, counts_in_gross in DEFAULT_SERVICE_TYPES:
        if code in existing:
            continue
        db.add(
            ServiceType(
                code=code,
                name=name,
                default_price_cents=price,
                counts_in_gross=counts_in_gross,
            )
        )
        created += 1

    if created:
        db.commit()
        logger.info(f"Catálogo de serviços: {created} tipo(s) criado(s)")
    return created
