"""Router para lojas e catálogo de serviços."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from ..config import settings
from ..database import DbSession
from ..models import Store, User
from ..schemas import ServiceTypeOut, StoreCreate, StoreOut, StoreUpdate
from ..services.catalog import list_service_types
from .auth import get_current_user, require_admin

logger = logging.getLogger(__name__)

router = APIRouter()
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)


@router.get("/stores", response_model=list[StoreOut])
def list_stores(db: DbSession, include_inactive: bool = False, user: User = Depends(get_current_user)):
    """Lista lojas ativas (vistoriador vê apenas a própria)."""
    query = db.query(Store)
    if not include_inactive:
        query = query.filter(Store.is_active == True)  # noqa: E712
    if not user.is_admin:
        query = query.filter(Store.id == user.store_id)
    return query.order_by(Store.name).all()


@router.post("/stores", response_model=StoreOut, status_code=201)
@limiter.limit("30/minute")
def create_store(request: Request, payload: StoreCreate, db: DbSession, user: User = Depends(require_admin)):
    """Cria uma nova loja."""
    name = payload.name.strip()
    if db.query(Store).filter(Store.name == name).first():
        raise HTTPException(status_code=409, detail=f"Loja {name} já existe")

    store = Store(name=name)
    db.add(store)
    db.commit()
    db.refresh(store)

    logger.info(f"Loja criada: {store.id} - {store.name}")
    return store


@router.put("/stores/{store_id}", response_model=StoreOut)
def update_store(store_id: str, payload: StoreUpdate, db: DbSession, user: User = Depends(require_admin)):
    """Atualiza nome ou situação da loja."""
    store = db.get(Store, store_id)
    if not store:
        raise HTTPException(status_code=404, detail="Loja não encontrada")

    update_data = payload.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(store, field, value.strip() if isinstance(value, str) else value)

    db.commit()
    db.refresh(store)
    logger.info(f"Loja atualizada: {store.id}")
    return store


@router.get("/service-types", response_model=list[ServiceTypeOut])
def get_service_types(db: DbSession, user: User = Depends(get_current_user)):
    """Catálogo de serviços na ordem de exibição."""
    return list_service_types(db)
