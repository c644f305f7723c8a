"""
Fixtures partagées pour tous les tests.
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Base de données de test en mémoire SQLite
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

# Créer un moteur SQLite en mémoire pour les tests
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Importer Base et tous les modèles après avoir créé le moteur de test
from src.models.db import Base
from src.models.auth_models import User
from src.models_permit import Permit
from src.models_audit import AuditLog  # noqa: F401


@pytest.fixture(scope="function")
def db():
    """
    Crée une nouvelle base de données pour chaque test.
    La base est créée au début et supprimée à la fin pour garantir l'isolation.
    """
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.rollback()  # Annuler toute transaction en cours
        db.close()
        # Nettoyer toutes les tables après le test
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db, monkeypatch):
    """
    Crée un client de test FastAPI avec une base de données isolée.
    Remplace SessionLocal, engine et get_db pour utiliser notre base de test.
    """
    from src.models import db as models_db
    monkeypatch.setattr(models_db, "SessionLocal", TestingSessionLocal)
    monkeypatch.setattr(models_db, "engine", engine)

    from main import app
    from src.db import get_db as original_get_db

    def override_get_db():
        """
        Override de get_db qui utilise notre session de test.
        """
        try:
            yield db
        finally:
            # Ne pas fermer la session ici, elle sera fermée dans la fixture db
            pass

    app.dependency_overrides[original_get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    """Fabrique d'utilisateurs persistés."""
    counter = {"n": 0}

    def _make(username=None, full_name=None):
        counter["n"] += 1
        user = User(
            username=username or f"user{counter['n']}",
            full_name=full_name,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def user(make_user):
    return make_user(username="mmueller", full_name="Max Müller")


@pytest.fixture
def make_permit(db):
    """Fabrique de permis persistés (champs surchargés via kwargs)."""
    counter = {"n": 0}

    def _make(**fields):
        counter["n"] += 1
        values = {
            "permit_id": f"HT-2025-{counter['n']:03d}",
            "type": "hot_work",
            "status": "pending",
            "location": "Halle 3",
        }
        values.update(fields)
        permit = Permit(**values)
        db.add(permit)
        db.commit()
        db.refresh(permit)
        return permit

    return _make


@pytest.fixture
def permit(make_permit):
    return make_permit()
