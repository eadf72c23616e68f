# api/ged/models.py
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, Enum, event

from .database import Base
from .enums import Role, DocStatus, Confidentiality, Category, LogAction
from .exceptions import AppendOnlyViolation


def now_ms() -> datetime:
    # horodatages à la milliseconde : la fin de journée des filtres est 23:59:59.999
    now = datetime.now()
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def _enum(enum_cls, length: int = 30):
    # Stocke le nom du membre (ASCII), relit l'enum Python
    return Enum(enum_cls, native_enum=False, length=length, validate_strings=True)


class User(Base):
    """Agent de la mairie. Le rôle est choisi par l'utilisateur (pas d'authentification)."""
    __tablename__ = "users"

    id = Column(String(40), primary_key=True)
    name = Column(String(255), nullable=False)
    role = Column(_enum(Role), nullable=False)
    avatar = Column(String(512), nullable=True)


class Document(Base):
    __tablename__ = "documents"

    # Ordre d'insertion : départage les documents reçus à la même milliseconde
    seq = Column(Integer, primary_key=True, autoincrement=True)

    # SAND-123456 pour les enregistrements, libre pour les documents initiaux
    id = Column(String(40), unique=True, index=True, nullable=False)

    title = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    category = Column(_enum(Category), nullable=False, default=Category.AUTRE, index=True)
    service = Column(String(160), nullable=False, index=True)
    sender = Column(String(255), nullable=False)
    received_at = Column(DateTime, nullable=False, default=now_ms, index=True)
    status = Column(_enum(DocStatus), nullable=False, default=DocStatus.RECU, index=True)
    confidentiality = Column(_enum(Confidentiality), nullable=False, index=True)
    summary = Column(Text, nullable=True)
    tags = Column(JSON, nullable=False, default=list)

    # Bloc "metadata" de la fiche
    scanned_by = Column(String(255), nullable=False)
    last_viewed_at = Column(DateTime, nullable=True)
    view_count = Column(Integer, nullable=False, default=0)


class ActivityLog(Base):
    """
    Journal indélébile des actions sur les documents.
    On garde une COPIE de l'agent (id / nom / rôle) et du document (id / titre)
    au moment de l'action : pas de clé étrangère, pas de relation.
    """
    __tablename__ = "activity_logs"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(60), unique=True, index=True, nullable=False)

    user_id = Column(String(40), nullable=False, index=True)
    user_name = Column(String(255), nullable=False)
    user_role = Column(_enum(Role), nullable=False)

    action = Column(_enum(LogAction, length=20), nullable=False, index=True)
    doc_id = Column(String(40), nullable=False, index=True)
    doc_title = Column(String(255), nullable=False)

    timestamp = Column(DateTime, nullable=False, default=datetime.now, index=True)


@event.listens_for(ActivityLog, "before_update")
def _refuse_log_update(mapper, connection, target):
    raise AppendOnlyViolation(f"Entrée de journal non modifiable : {target.id}")


@event.listens_for(ActivityLog, "before_delete")
def _refuse_log_delete(mapper, connection, target):
    raise AppendOnlyViolation(f"Entrée de journal non supprimable : {target.id}")
