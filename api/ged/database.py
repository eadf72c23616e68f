import threading

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import settings

Base = declarative_base()

# SQLite en mémoire = une seule connexion DBAPI pour toutes les sessions.
# Le ROLLBACK émis quand une session rend la connexion effacerait la
# transaction en cours d'une autre : les écritures du registre et les
# fermetures de session passent donc une par une sous ce verrou.
write_lock = threading.RLock()


def make_engine(url: str) -> Engine:
    """
    SQLite en mémoire : une seule connexion partagée (StaticPool), sinon
    chaque session verrait une base vide.
    """
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url, pool_pre_ping=True)


engine = make_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def close_session(db: Session) -> None:
    """Ferme la session sans couper une écriture en cours ailleurs."""
    with write_lock:
        db.close()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        close_session(db)
