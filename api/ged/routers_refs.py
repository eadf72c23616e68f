# api/ged/routers_refs.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .database import get_db
from .enums import Category, Confidentiality
from .models import User
from .models_refs import Service
from .policy import selectable_confidentiality_levels, intake_confidentiality_levels
from .schemas import RefOut
from .session import get_current_user

router = APIRouter(prefix="/refs", tags=["refs"])


@router.get("/categories", response_model=list[Category])
def list_categories():
    return list(Category)


@router.get("/services", response_model=list[RefOut])
def list_services(db: Session = Depends(get_db)):
    rows = db.query(Service).order_by(Service.name.asc()).all()
    return [{"id": r.id, "name": r.name} for r in rows]


@router.get("/confidentialites", response_model=list[Confidentiality])
def list_filter_levels(user: User = Depends(get_current_user)):
    """Niveaux proposés dans la recherche avancée pour le rôle courant."""
    return selectable_confidentiality_levels(user.role)


@router.get("/confidentialites-enregistrement", response_model=list[Confidentiality])
def list_intake_levels():
    return intake_confidentiality_levels()
