"""Router para autenticação e gerenciamento de usuários."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, EmailStr, Field
from slowapi import Limiter
from slowapi.util import get_remote_address

from ..config import settings
from ..database import DbSession
from ..models import Store, User
from ..schemas import UserCreate, UserOut
from ..services.auth import (
    AuditService,
    AuthService,
    create_initial_admin,
    decode_token,
)

logger = logging.getLogger(__name__)
router = APIRouter()
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)
security = HTTPBearer(auto_error=False)


# =============================================================================
# SCHEMAS
# =============================================================================

class LoginRequest(BaseModel):
    """Schema para login."""
    email: EmailStr
    password: str = Field(..., min_length=6)


class TokenResponse(BaseModel):
    """Schema de resposta com tokens."""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class LoginResponse(TokenResponse):
    """Schema de resposta do login."""
    user: UserOut


class RefreshRequest(BaseModel):
    """Schema para refresh e logout."""
    refresh_token: str


class SetupRequest(BaseModel):
    """Schema para setup inicial."""
    email: EmailStr
    password: str = Field(..., min_length=8)
    name: str = Field(..., min_length=2)


def client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


# =============================================================================
# DEPENDÊNCIAS
# =============================================================================

def get_current_user(
    db: DbSession,
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> User:
    """Obtém o usuário atual a partir do token JWT."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token de autenticação não fornecido",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_token(credentials.credentials)
    if not payload or payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token inválido ou expirado",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = AuthService(db).get_user_by_id(payload.get("sub"))
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Usuário não encontrado ou inativo",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    """Permite apenas administradores."""
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Acesso restrito ao administrador")
    return user


def resolve_store_id(user: User, requested_store_id: Optional[str]) -> Optional[str]:
    """
    Loja efetiva de uma consulta.

    Admin pode escolher qualquer loja (ou nenhuma = todas); vistoriador fica
    sempre restrito à própria loja.
    """
    if user.is_admin:
        return requested_store_id
    if requested_store_id and requested_store_id != user.store_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Acesso negado a esta loja")
    return user.store_id


# =============================================================================
# ENDPOINTS DE AUTENTICAÇÃO
# =============================================================================

@router.post("/login", response_model=LoginResponse)
@limiter.limit("10/minute")
def login(request: Request, data: LoginRequest, db: DbSession):
    """Autentica um usuário e retorna tokens."""
    auth_service = AuthService(db)
    audit_service = AuditService(db)

    user = auth_service.authenticate(data.email, data.password)
    if not user:
        audit_service.log(
            action="login_failed",
            entity="user",
            payload={"email": data.email},
            ip_address=client_ip(request),
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Email ou senha incorretos",
        )

    access_token, refresh_token = auth_service.create_session(
        user=user,
        device_info=request.headers.get("user-agent"),
        ip_address=client_ip(request),
    )
    audit_service.log(
        action="login",
        entity="user",
        entity_id=user.id,
        actor_user_id=user.id,
        ip_address=client_ip(request),
    )

    return LoginResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        user=UserOut.model_validate(user),
    )


@router.post("/refresh", response_model=TokenResponse)
@limiter.limit("30/minute")
def refresh_token(request: Request, data: RefreshRequest, db: DbSession):
    """Renova os tokens usando o refresh token."""
    result = AuthService(db).refresh_session(data.refresh_token)
    if not result:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Refresh token inválido ou expirado",
        )

    access_token, new_refresh_token = result
    return TokenResponse(access_token=access_token, refresh_token=new_refresh_token)


@router.post("/logout")
def logout(request: Request, data: RefreshRequest, db: DbSession):
    """Encerra a sessão do refresh token."""
    if AuthService(db).logout(data.refresh_token):
        AuditService(db).log(action="logout", entity="user_session", ip_address=client_ip(request))
    return {"message": "Logout realizado"}


@router.get("/me", response_model=UserOut)
def get_me(user: User = Depends(get_current_user)):
    """Retorna os dados do usuário autenticado."""
    return user


@router.post("/setup", response_model=UserOut, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
def setup(request: Request, data: SetupRequest, db: DbSession):
    """Cria o primeiro administrador (só funciona com o banco sem usuários)."""
    user = create_initial_admin(db, data.email, data.password, data.name)
    if not user:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Setup já realizado")

    AuditService(db).log(
        action="setup",
        entity="user",
        entity_id=user.id,
        actor_user_id=user.id,
        ip_address=client_ip(request),
    )
    return user


# =============================================================================
# ENDPOINTS DE GERENCIAMENTO DE USUÁRIOS
# =============================================================================

@router.get("/users", response_model=List[UserOut])
def list_users(
    db: DbSession,
    store_id: Optional[str] = None,
    current_user: User = Depends(require_admin),
):
    """Lista usuários ativos, opcionalmente de uma loja."""
    query = db.query(User).filter(User.is_active == True)  # noqa: E712
    if store_id:
        query = query.filter(User.store_id == store_id)
    return query.order_by(User.name).all()


@router.post("/users", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(
    request: Request,
    data: UserCreate,
    db: DbSession,
    current_user: User = Depends(require_admin),
):
    """Cria um novo usuário (admin ou vistoriador)."""
    if db.query(User).filter(User.email == data.email.lower()).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email já cadastrado")

    if data.store_id and not db.get(Store, data.store_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Loja não encontrada")

    user = AuthService(db).create_user(
        email=data.email,
        password=data.password,
        name=data.name,
        role=data.role.value,
        store_id=data.store_id,
    )

    AuditService(db).log(
        action="user_created",
        entity="user",
        entity_id=user.id,
        actor_user_id=current_user.id,
        ip_address=client_ip(request),
    )
    return user
