# api/ged/schemas.py
from datetime import date, datetime
from typing import Optional, Literal, List, Union

from pydantic import BaseModel, Field, field_validator

from .enums import Role, DocStatus, Confidentiality, Category, LogAction, ALL


# ========== Utilisateurs ==========

class UserOut(BaseModel):
    id: str
    name: str
    role: Role
    avatar: Optional[str] = None

    class Config:
        from_attributes = True


class SwitchUserIn(BaseModel):
    """Payload de POST /session/utilisateur."""
    user_id: str


# ========== Documents ==========

class DocumentMetadataOut(BaseModel):
    scanned_by: str
    last_viewed_at: Optional[datetime] = None
    view_count: int = 0


class DocumentOut(BaseModel):
    id: str
    title: str
    description: str
    category: Category
    service: str
    sender: str
    received_at: datetime
    status: DocStatus
    confidentiality: Confidentiality
    summary: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    metadata: DocumentMetadataOut

    @classmethod
    def from_document(cls, doc) -> "DocumentOut":
        # Les colonnes scanned_by / last_viewed_at / view_count sont regroupées
        # dans "metadata" (Base.metadata empêche from_attributes ici)
        return cls(
            id=doc.id,
            title=doc.title,
            description=doc.description,
            category=doc.category,
            service=doc.service,
            sender=doc.sender,
            received_at=doc.received_at,
            status=doc.status,
            confidentiality=doc.confidentiality,
            summary=doc.summary,
            tags=list(doc.tags or []),
            metadata=DocumentMetadataOut(
                scanned_by=doc.scanned_by,
                last_viewed_at=doc.last_viewed_at,
                view_count=doc.view_count,
            ),
        )


class DocumentListOut(BaseModel):
    """Vue filtrée + compteur pour le texte "N document(s) trouvé(s)"."""
    count: int
    documents: List[DocumentOut]


# ========== Filtres ==========

class FilterCriteria(BaseModel):
    """
    Critères de la recherche avancée. `FilterCriteria()` = filtres réinitialisés.
    """
    text_query: str = ""
    category: Union[Category, Literal["All"]] = ALL
    confidentiality: Union[Confidentiality, Literal["All"]] = ALL
    sender_or_service: str = ""
    date_start: Optional[date] = None
    date_end: Optional[date] = None

    @field_validator("text_query", "sender_or_service", mode="before")
    @classmethod
    def _none_as_empty(cls, v):
        return "" if v is None else v

    def is_active(self) -> bool:
        """Un filtre structuré est-il posé ? (la recherche texte ne compte pas)"""
        return (
            self.category != ALL
            or self.confidentiality != ALL
            or bool(self.sender_or_service)
            or self.date_start is not None
            or self.date_end is not None
        )


# ========== Enregistrement ==========

class ImagePayload(BaseModel):
    data: bytes
    mime_type: str = "image/jpeg"


class RegistrationForm(BaseModel):
    """
    Formulaire de numérisation express.
    confidentiality est obligatoire mais reste Optional ici : l'absence est
    signalée par MissingRequiredField, pas par une erreur de parsing.
    """
    description: Optional[str] = None
    title: Optional[str] = None
    confidentiality: Optional[Confidentiality] = None
    image: Optional[ImagePayload] = None

    @field_validator("description", "title", mode="before")
    @classmethod
    def _blank_as_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class ExtractionResult(BaseModel):
    """
    Réponse (non fiable) du service d'extraction. Tous les champs sont
    optionnels ; `category` est une chaîne libre à recadrer sur Category.
    """
    title: Optional[str] = None
    summary: Optional[str] = None
    category: Optional[str] = None
    service: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    @field_validator("title", "summary", "category", "service", mode="before")
    @classmethod
    def _clean_text(cls, v):
        if v is None:
            return None
        if not isinstance(v, str):
            v = str(v)
        v = v.strip()
        return v or None

    @field_validator("tags", mode="before")
    @classmethod
    def _clean_tags(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            v = v.split(",")
        out: List[str] = []
        for t in v:
            t = str(t).strip()
            if t and t not in out:
                out.append(t)
        return out


# ========== Journal ==========

class ActivityLogOut(BaseModel):
    id: str
    user_id: str
    user_name: str
    user_role: Role
    action: LogAction
    doc_id: str
    doc_title: str
    timestamp: datetime

    class Config:
        from_attributes = True


class RegistrationOut(BaseModel):
    """Réponse de POST /documents : la fiche créée et sa trace au journal."""
    document: DocumentOut
    log: ActivityLogOut


# ========== Tableau de bord ==========

class CategoryCount(BaseModel):
    category: Category
    count: int


class DashboardOut(BaseModel):
    total_documents: int
    awaiting_signature: int
    flow_today: int
    categories: List[CategoryCount]
    recent_activity: List[ActivityLogOut]


# ========== Référentiels / divers ==========

class RefOut(BaseModel):
    id: int
    name: str
