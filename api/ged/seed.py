# api/ged/seed.py
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from .enums import Role, DocStatus, Confidentiality, Category
from .models import User, Document, now_ms
from .models_refs import Service

SYSTEM_USERS = [
    {
        "id": "1",
        "name": "M. le Maire Serigne Diop",
        "role": Role.MAIRE,
        "avatar": "https://images.unsplash.com/photo-1507003211169-0a1dd7228f2d?w=200&h=200&fit=crop",
    },
    {
        "id": "2",
        "name": "Fatou Ndiaye (Admin)",
        "role": Role.ADMINISTRATEUR,
        "avatar": "https://images.unsplash.com/photo-1494790108377-be9c29b29330?w=200&h=200&fit=crop",
    },
    {
        "id": "3",
        "name": "Amadou Fall (Secrétariat)",
        "role": Role.SECRETAIRE,
        "avatar": "https://images.unsplash.com/photo-1500648767791-00dcc994a43e?w=200&h=200&fit=crop",
    },
]

# L'utilisateur actif par défaut quand la session n'en a pas encore choisi
DEFAULT_USER_ID = "1"

MUNICIPAL_SERVICES = [
    "Conseil Municipal",
    "Secrétariat Général",
    "Direction Générale",
    "Urbanisme",
    "Domaines et Foncier",
    "État Civil",
    "Trésorerie",
    "Ressources Humaines",
    "Services Techniques",
]


def initial_documents(now: datetime):
    return [
        dict(
            id="DOC-2024-001",
            title="Délibération n°12 - Extension Zone Industrielle",
            description="Vote pour l extension de la zone franche de Sandiara.",
            category=Category.DELIBERATION,
            service="Conseil Municipal",
            sender="Secrétariat Général",
            received_at=now - timedelta(days=1),
            status=DocStatus.VALIDE,
            confidentiality=Confidentiality.PUBLIC,
            tags=["Industrie", "Emploi"],
            summary="Document stratégique actant l extension de 50 hectares.",
            scanned_by="Amadou Fall",
            view_count=45,
        ),
    ]


def seed_reference_data(db: Session, with_documents: bool = True) -> None:
    """Idempotent : ne remplit que les tables vides."""
    if db.query(User).count() == 0:
        db.add_all([User(**u) for u in SYSTEM_USERS])
    if db.query(Service).count() == 0:
        db.add_all([Service(name=name) for name in MUNICIPAL_SERVICES])
    if with_documents and db.query(Document).count() == 0:
        db.add_all([Document(**d) for d in initial_documents(now_ms())])
    db.commit()
