from .models import db as models_db


def get_db():
    """Dependency for getting database session."""
    db = models_db.SessionLocal()
    try:
        yield db
    finally:
        db.close()
