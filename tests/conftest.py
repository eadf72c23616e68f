"""Fixtures pytest : base en mémoire, agents du système, fabrique de documents."""
import itertools
from datetime import datetime

import pytest
from sqlalchemy.orm import sessionmaker

from ged.database import Base, make_engine
from ged.enums import Category, Confidentiality, DocStatus
from ged.models import Document, User
from ged.seed import seed_reference_data


@pytest.fixture(scope="function")
def db_session():
    """Session DB en mémoire, avec les agents et les services de référence."""
    engine = make_engine("sqlite://")
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    session = Session()
    seed_reference_data(session, with_documents=False)

    yield session

    session.close()
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def maire(db_session) -> User:
    return db_session.get(User, "1")


@pytest.fixture
def admin(db_session) -> User:
    return db_session.get(User, "2")


@pytest.fixture
def secretaire(db_session) -> User:
    return db_session.get(User, "3")


_counter = itertools.count(1)


@pytest.fixture
def make_doc():
    """Fabrique de documents non persistés (pour les fonctions pures)."""

    def _make(**overrides) -> Document:
        n = next(_counter)
        values = dict(
            id=f"DOC-TEST-{n:03d}",
            title=f"Document {n}",
            description="",
            category=Category.AUTRE,
            service="Direction Générale",
            sender="Secrétariat Général",
            received_at=datetime(2024, 1, 8, 10, 0),
            status=DocStatus.RECU,
            confidentiality=Confidentiality.PUBLIC,
            summary=None,
            tags=[],
            scanned_by="Amadou Fall",
            last_viewed_at=None,
            view_count=0,
        )
        values.update(overrides)
        return Document(**values)

    return _make


@pytest.fixture
def add_doc(db_session, make_doc):
    """Même fabrique, mais le document est inséré et committé."""

    def _add(**overrides) -> Document:
        doc = make_doc(**overrides)
        db_session.add(doc)
        db_session.commit()
        return doc

    return _add
