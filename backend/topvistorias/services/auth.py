"""Serviço de autenticação e auditoria."""

import hashlib
import json
import logging
import secrets
from datetime import UTC, datetime, timedelta
from typing import Optional

import bcrypt
import jwt
from sqlalchemy.orm import Session

from ..config import settings
from ..models import AuditLog, User, UserRole, UserSession

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"


# =============================================================================
# FUNÇÕES DE HASH
# =============================================================================

def hash_password(password: str) -> str:
    """Gera hash bcrypt da senha."""
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(password.encode(), salt).decode()


def verify_password(password: str, password_hash: str) -> bool:
    """Verifica se a senha corresponde ao hash."""
    return bcrypt.checkpw(password.encode(), password_hash.encode())


def hash_token(token: str) -> str:
    """Gera hash SHA-256 de um token."""
    return hashlib.sha256(token.encode()).hexdigest()


def generate_token() -> str:
    """Gera um token aleatório seguro."""
    return secrets.token_urlsafe(32)


# =============================================================================
# FUNÇÕES JWT
# =============================================================================

def create_access_token(user: User) -> str:
    """Cria um access token JWT com papel e loja do usuário."""
    now = datetime.now(UTC)
    payload = {
        "sub": user.id,
        "role": user.role,
        "store_id": user.store_id,
        "type": "access",
        "exp": now + timedelta(minutes=settings.access_token_expire_minutes),
        "iat": now,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=JWT_ALGORITHM)


def create_refresh_token(user_id: str, session_id: str, secret: str) -> str:
    """Cria um refresh token JWT amarrado a uma sessão."""
    now = datetime.now(UTC)
    payload = {
        "sub": user_id,
        "session_id": session_id,
        "secret": secret,
        "type": "refresh",
        "exp": now + timedelta(days=settings.refresh_token_expire_days),
        "iat": now,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Decodifica e valida um token JWT."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def _as_utc(value: datetime) -> datetime:
    # SQLite devolve datetimes sem fuso
    return value if value.tzinfo else value.replace(tzinfo=UTC)


# =============================================================================
# SERVIÇO DE AUTENTICAÇÃO
# =============================================================================

class AuthService:
    """Serviço para operações de autenticação."""

    def __init__(self, db: Session):
        self.db = db

    def authenticate(self, email: str, password: str) -> Optional[User]:
        """Autentica um usuário por email e senha."""
        user = self.db.query(User).filter(
            User.email == email.lower(),
            User.is_active == True,  # noqa: E712
        ).first()

        if not user or not verify_password(password, user.password_hash):
            return None
        return user

    def create_session(
        self,
        user: User,
        device_info: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> tuple[str, str]:
        """
        Cria uma nova sessão para o usuário.

        Retorna: (access_token, refresh_token)
        """
        secret = generate_token()
        session = UserSession(
            user_id=user.id,
            refresh_token_hash=hash_token(secret),
            device_info=device_info,
            ip_address=ip_address,
            expires_at=datetime.now(UTC) + timedelta(days=settings.refresh_token_expire_days),
        )
        self.db.add(session)
        self.db.flush()

        user.last_login = datetime.now(UTC)

        access_token = create_access_token(user)
        refresh_token = create_refresh_token(user.id, session.id, secret)
        self.db.commit()

        return access_token, refresh_token

    def refresh_session(self, refresh_token: str) -> Optional[tuple[str, str]]:
        """
        Renova uma sessão usando o refresh token (rotação do segredo).

        Retorna: (new_access_token, new_refresh_token) ou None se inválido
        """
        payload = decode_token(refresh_token)
        if not payload or payload.get("type") != "refresh":
            return None

        session = self.db.query(UserSession).filter(
            UserSession.id == payload.get("session_id"),
            UserSession.user_id == payload.get("sub"),
            UserSession.is_active == True,  # noqa: E712
        ).first()

        if not session or _as_utc(session.expires_at) < datetime.now(UTC):
            return None
        if session.refresh_token_hash != hash_token(payload.get("secret", "")):
            return None

        user = self.db.get(User, session.user_id)
        if not user or not user.is_active:
            return None

        secret = generate_token()
        session.refresh_token_hash = hash_token(secret)
        session.last_used_at = datetime.now(UTC)
        session.expires_at = datetime.now(UTC) + timedelta(days=settings.refresh_token_expire_days)

        access_token = create_access_token(user)
        new_refresh_token = create_refresh_token(user.id, session.id, secret)
        self.db.commit()

        return access_token, new_refresh_token

    def logout(self, refresh_token: str) -> bool:
        """Invalida a sessão do refresh token informado."""
        payload = decode_token(refresh_token)
        if not payload or payload.get("type") != "refresh":
            return False

        session = self.db.query(UserSession).filter(
            UserSession.id == payload.get("session_id"),
            UserSession.user_id == payload.get("sub"),
        ).first()
        if not session:
            return False

        session.is_active = False
        self.db.commit()
        return True

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        """Busca usuário ativo por ID."""
        return self.db.query(User).filter(
            User.id == user_id,
            User.is_active == True,  # noqa: E712
        ).first()

    def create_user(
        self,
        email: str,
        password: str,
        name: str,
        role: str = UserRole.VISTORIADOR.value,
        store_id: Optional[str] = None,
    ) -> User:
        """Cria um novo usuário."""
        user = User(
            email=email.lower(),
            password_hash=hash_password(password),
            name=name,
            role=role,
            store_id=store_id,
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"Usuário criado: {user.email} ({user.role})")
        return user


# =============================================================================
# SERVIÇO DE AUDITORIA
# =============================================================================

class AuditService:
    """Serviço para logs de auditoria."""

    def __init__(self, db: Session):
        self.db = db

    def log(
        self,
        action: str,
        entity: str,
        entity_id: Optional[str] = None,
        actor_user_id: Optional[str] = None,
        payload: Optional[dict] = None,
        ip_address: Optional[str] = None,
    ) -> AuditLog:
        """Registra uma ação no log de auditoria."""
        log = AuditLog(
            actor_user_id=actor_user_id,
            action=action,
            entity=entity,
            entity_id=entity_id,
            payload=json.dumps(payload, default=str, ensure_ascii=False) if payload else None,
            ip_address=ip_address,
        )
        self.db.add(log)
        self.db.commit()
        return log


# =============================================================================
# SEED DE DADOS INICIAIS
# =============================================================================

def create_initial_admin(db: Session, email: str, password: str, name: str) -> Optional[User]:
    """Cria o primeiro administrador. Retorna None se já existir algum usuário."""
    if db.query(User).first():
        return None

    user = User(
        email=email.lower(),
        password_hash=hash_password(password),
        name=name,
        role=UserRole.ADMIN.value,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Administrador inicial criado: {user.email}")
    return user
