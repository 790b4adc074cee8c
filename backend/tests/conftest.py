"""Configuração de fixtures para testes."""

import os

# Precisa vir antes de importar a aplicação (settings é lido no import)
os.environ["ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from topvistorias.database import Base, get_db
from topvistorias.main import app
from topvistorias.models import ServiceType, Store, User, UserRole
from topvistorias.services.auth import create_access_token, hash_password
from topvistorias.services.catalog import seed_service_types


# Banco de dados em memória para testes
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """Cria uma sessão de banco de dados para testes."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    """Cria um cliente de teste com banco de dados isolado."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def service_types(db_session):
    """Catálogo padrão indexado por código."""
    seed_service_types(db_session)
    return {st.code: st for st in db_session.query(ServiceType).all()}


@pytest.fixture
def store(db_session):
    store = Store(name="Loja Centro")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture
def other_store(db_session):
    store = Store(name="Loja Norte")
    db_session.add(store)
    db_session.commit()
    return store


def make_user(db_session, email, role, store_id=None, name="Usuário Teste", password="senha123"):
    user = User(
        email=email,
        name=name,
        password_hash=hash_password(password),
        role=role.value,
        store_id=store_id,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def admin(db_session):
    return make_user(db_session, "admin@topvistorias.com.br", UserRole.ADMIN, name="Admin")


@pytest.fixture
def vistoriador(db_session, store):
    return make_user(db_session, "joao@topvistorias.com.br", UserRole.VISTORIADOR, store.id, name="João")


@pytest.fixture
def other_vistoriador(db_session, other_store):
    return make_user(db_session, "maria@topvistorias.com.br", UserRole.VISTORIADOR, other_store.id, name="Maria")


def bearer(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture
def admin_headers(admin):
    return bearer(admin)


@pytest.fixture
def vistoriador_headers(vistoriador):
    return bearer(vistoriador)


@pytest.fixture
def other_vistoriador_headers(other_vistoriador):
    return bearer(other_vistoriador)
