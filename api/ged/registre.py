# api/ged/registre.py
"""
Le registre : propriétaire de la collection de documents et du journal.

Toutes les écritures passent par ici, chacune dans UNE transaction :
  - consult  : +1 vue (UPDATE atomique) + entrée CONSULTATION
  - register : nouveau document + entrée ENREGISTREMENT
  - sign     : passage à VALIDE + entrée MODIFICATION
Soit tout est écrit, soit rien.
"""
import logging
import time
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from .config import Settings, settings as default_settings
from .enums import Category, Confidentiality, DocStatus, LogAction
from .exceptions import (
    ActionNotPermitted,
    DocumentNotFound,
    InvalidFieldValue,
    InvalidStatusTransition,
    MissingRequiredField,
    RegistreError,
)
from .extraction import MetadataExtractor, NullExtractor, extract_metadata, resolve_category
from .filters import filter_documents, start_of_day
from .ledger import entries, record
from .database import write_lock
from .models import ActivityLog, Document, User, now_ms
from .policy import (
    can_open_cabinet,
    can_read_journal,
    can_register,
    can_sign,
    intake_confidentiality_levels,
    is_visible,
)
from .schemas import (
    ActivityLogOut,
    CategoryCount,
    DashboardOut,
    ExtractionResult,
    FilterCriteria,
    RegistrationForm,
)

logger = logging.getLogger(__name__)

# Statuts à partir desquels le Maire peut signer
SIGNABLE_STATUSES = (DocStatus.RECU, DocStatus.EN_COURS)
RECENT_ACTIVITY_SIZE = 6


def build_document(
    *,
    doc_id: str,
    actor,
    form: RegistrationForm,
    enrichment: Optional[ExtractionResult],
    received_at: datetime,
    config: Settings = default_settings,
) -> Document:
    """
    Construit la fiche à partir du formulaire et de l'extraction (si présente).
    Replis : titre saisi puis DEFAULT_TITLE, catégorie Autre, DEFAULT_SERVICE,
    aucun tag, pas de résumé.
    """
    e = enrichment or ExtractionResult()
    return Document(
        id=doc_id,
        title=e.title or form.title or config.DEFAULT_TITLE,
        description=form.description or config.DEFAULT_DESCRIPTION,
        category=resolve_category(e.category),
        service=e.service or config.DEFAULT_SERVICE,
        sender=actor.name,
        received_at=received_at,
        status=DocStatus.RECU,
        confidentiality=form.confidentiality,
        summary=e.summary,
        tags=list(e.tags),
        scanned_by=actor.name,
        last_viewed_at=None,
        view_count=0,
    )


class Registre:
    def __init__(
        self,
        db: Session,
        extractor: Optional[MetadataExtractor] = None,
        config: Optional[Settings] = None,
    ):
        self.db = db
        self.extractor = extractor or NullExtractor()
        self.config = config or default_settings

    # ---------- Lecture ----------

    def users(self) -> List[User]:
        return list(self.db.execute(select(User).order_by(User.id)).scalars().all())

    def get_user(self, user_id: str) -> Optional[User]:
        return self.db.get(User, user_id)

    def documents(self) -> List[Document]:
        """Toute la collection, plus récents d'abord."""
        stmt = select(Document).order_by(Document.received_at.desc(), Document.seq.desc())
        return list(self.db.execute(stmt).scalars().all())

    def _find(self, doc_id: str) -> Optional[Document]:
        return self.db.execute(select(Document).where(Document.id == doc_id)).scalar_one_or_none()

    def get_visible(self, role, doc_id: str) -> Document:
        doc = self._find(doc_id)
        if doc is None or not is_visible(role, doc):
            raise DocumentNotFound(doc_id)
        return doc

    def search(self, role, criteria: Optional[FilterCriteria] = None) -> List[Document]:
        return filter_documents(self.documents(), role, criteria)

    def cabinet(self, role) -> List[Document]:
        """Cabinet du Maire : uniquement les documents strictement privés."""
        if not can_open_cabinet(role):
            raise ActionNotPermitted(role.value, "ouvrir le Cabinet du Maire")
        return self.search(role, FilterCriteria(confidentiality=Confidentiality.STRICTEMENT_PRIVE))

    def journal(self, role, **filters) -> List[ActivityLog]:
        if not can_read_journal(role):
            raise ActionNotPermitted(role.value, "consulter le journal d'audit")
        return entries(self.db, **filters)

    # ---------- Consultation ----------

    def consult(self, actor, doc_id: str) -> Document:
        doc = self.get_visible(actor.role, doc_id)
        now = now_ms()
        with write_lock:
            try:
                # incrément côté SQL : deux consultations simultanées ne perdent rien
                self.db.execute(
                    update(Document)
                    .where(Document.seq == doc.seq)
                    .values(view_count=Document.view_count + 1, last_viewed_at=now)
                )
                record(
                    self.db,
                    actor=actor,
                    action=LogAction.CONSULTATION,
                    doc_id=doc.id,
                    doc_title=doc.title,
                    timestamp=now,
                )
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
            self.db.refresh(doc)
        logger.debug("Consultation de %s par %s (%d vues)", doc.id, actor.name, doc.view_count)
        return doc

    # ---------- Enregistrement ----------

    def _check_registration(self, actor, form: RegistrationForm) -> None:
        if not can_register(actor.role):
            raise ActionNotPermitted(actor.role.value, "enregistrer un document")
        if form.confidentiality is None:
            raise MissingRequiredField("confidentiality")
        if form.confidentiality not in intake_confidentiality_levels():
            raise InvalidFieldValue("confidentiality", form.confidentiality.value)

    def _new_doc_id(self) -> str:
        """
        SAND- + 6 derniers chiffres de l'horodatage (ms) ; en cas de collision
        on avance de 1 jusqu'à trouver un numéro libre.
        """
        n = (time.time_ns() // 1_000_000) % 1_000_000
        for _ in range(1_000_000):
            candidate = f"SAND-{n:06d}"
            if self._find(candidate) is None:
                return candidate
            n = (n + 1) % 1_000_000
        raise RegistreError("Plus aucun numéro SAND- disponible")

    async def register(self, actor, form: RegistrationForm) -> Tuple[Document, ActivityLog]:
        """
        Numérisation express :
          1. validation (avant tout appel externe)
          2. extraction des métadonnées (bornée, jamais bloquante en cas d'échec)
          3. construction de la fiche avec les replis
          4. insertion + entrée ENREGISTREMENT, commit unique
        """
        self._check_registration(actor, form)

        enrichment = await extract_metadata(
            self.extractor,
            text=form.description,
            image=form.image,
            timeout=self.config.EXTRACTION_TIMEOUT_SECONDS,
        )

        with write_lock:
            try:
                doc = build_document(
                    doc_id=self._new_doc_id(),
                    actor=actor,
                    form=form,
                    enrichment=enrichment,
                    received_at=now_ms(),
                    config=self.config,
                )
                self.db.add(doc)
                self.db.flush()
                log = record(
                    self.db,
                    actor=actor,
                    action=LogAction.ENREGISTREMENT,
                    doc_id=doc.id,
                    doc_title=doc.title,
                )
                self.db.commit()
            except Exception:
                self.db.rollback()
                logger.exception("Enregistrement annulé pour %s", actor.name)
                raise

        logger.info(
            "Document %s enregistré par %s (%s, enrichi=%s)",
            doc.id, actor.name, doc.confidentiality.value, enrichment is not None,
        )
        return doc, log

    # ---------- Signature ----------

    def sign(self, actor, doc_id: str) -> Document:
        """Signature numérique du Maire : RECU / EN_COURS -> VALIDE."""
        if not can_sign(actor.role):
            raise ActionNotPermitted(actor.role.value, "signer un document")
        doc = self.get_visible(actor.role, doc_id)
        with write_lock:
            try:
                result = self.db.execute(
                    update(Document)
                    .where(Document.seq == doc.seq, Document.status.in_(SIGNABLE_STATUSES))
                    .values(status=DocStatus.VALIDE)
                )
                if result.rowcount == 0:
                    self.db.rollback()
                    self.db.refresh(doc)
                    raise InvalidStatusTransition(doc.id, doc.status.value)
                record(
                    self.db,
                    actor=actor,
                    action=LogAction.MODIFICATION,
                    doc_id=doc.id,
                    doc_title=doc.title,
                )
                self.db.commit()
            except InvalidStatusTransition:
                raise
            except Exception:
                self.db.rollback()
                raise
            self.db.refresh(doc)
        logger.info("Document %s signé par %s", doc.id, actor.name)
        return doc

    # ---------- Tableau de bord ----------

    def dashboard(self, role, now: Optional[datetime] = None) -> DashboardOut:
        """Chiffres calculés sur les seuls documents visibles par le rôle."""
        now = now or datetime.now()
        visible = self.search(role)
        visible_ids = {d.id for d in visible}

        visible_logs = [log for log in entries(self.db) if log.doc_id in visible_ids]
        midnight = start_of_day(now.date())

        return DashboardOut(
            total_documents=len(visible),
            awaiting_signature=sum(1 for d in visible if d.status == DocStatus.RECU),
            flow_today=sum(1 for log in visible_logs if log.timestamp >= midnight),
            categories=[
                CategoryCount(category=c, count=sum(1 for d in visible if d.category == c))
                for c in Category
            ],
            recent_activity=[
                ActivityLogOut.model_validate(log) for log in visible_logs[:RECENT_ACTIVITY_SIZE]
            ],
        )
