# api/ged/routers_documents.py
from typing import Optional, List
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, UploadFile, File, Form
from pydantic import ValidationError

from .enums import Confidentiality
from .exceptions import RegistreError, InvalidFieldValue
from .models import User
from .registre import Registre
from .schemas import DocumentOut, DocumentListOut, FilterCriteria, RegistrationForm, RegistrationOut, ActivityLogOut
from .session import get_current_user, get_registre, http_error
from .utils import read_image_validated

router = APIRouter(prefix="/documents", tags=["documents"])


# =====================================================
# 1) GED MUNICIPALE : VUE FILTRÉE
#    GET /documents?q=...&category=... etc.
# =====================================================
@router.get("", response_model=DocumentListOut)
def list_documents(
    q: Optional[str] = Query(default=None, description="Recherche dans le titre ou la description"),
    category: str = Query(default="All"),
    confidentiality: str = Query(default="All"),
    sender: Optional[str] = Query(default=None, description="Expéditeur ou service"),
    date_start: Optional[date] = None,
    date_end: Optional[date] = None,
    user: User = Depends(get_current_user),
    registre: Registre = Depends(get_registre),
):
    """
    Documents visibles par le rôle courant, filtrés.
    Plus récents d'abord. Un niveau de confidentialité que le rôle ne peut
    pas sélectionner donne une liste vide.
    """
    try:
        criteria = FilterCriteria(
            text_query=q,
            category=category,
            confidentiality=confidentiality,
            sender_or_service=sender,
            date_start=date_start,
            date_end=date_end,
        )
    except ValidationError as e:
        fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err.get("loc"))
        raise HTTPException(status_code=422, detail=f"Filtres invalides : {fields}")

    docs = registre.search(user.role, criteria)
    return DocumentListOut(
        count=len(docs),
        documents=[DocumentOut.from_document(d) for d in docs],
    )


# =====================================================
# 2) CABINET DU MAIRE
#    GET /documents/cabinet
# =====================================================
@router.get("/cabinet", response_model=List[DocumentOut])
def list_cabinet(
    user: User = Depends(get_current_user),
    registre: Registre = Depends(get_registre),
):
    try:
        docs = registre.cabinet(user.role)
    except RegistreError as e:
        raise http_error(e)
    return [DocumentOut.from_document(d) for d in docs]


# =====================================================
# 3) CONSULTATION D'UN DOCUMENT (tracée)
#    GET /documents/{doc_id}
# =====================================================
@router.get("/{doc_id}", response_model=DocumentOut)
def consult_document(
    doc_id: str,
    user: User = Depends(get_current_user),
    registre: Registre = Depends(get_registre),
):
    """
    Ouvre la fiche : +1 vue et une entrée CONSULTATION au journal.
    404 si le document n'existe pas OU n'est pas visible pour ce rôle.
    """
    try:
        doc = registre.consult(user, doc_id)
    except RegistreError as e:
        raise http_error(e)
    return DocumentOut.from_document(doc)


# =====================================================
# 4) NUMÉRISATION EXPRESS (Secrétariat)
#    POST /documents
# =====================================================
@router.post("", response_model=RegistrationOut, status_code=201)
async def register_document(
    description: Optional[str] = Form(None),
    title: Optional[str] = Form(None),
    confidentiality: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    user: User = Depends(get_current_user),
    registre: Registre = Depends(get_registre),
):
    """
    Enregistrement automatique :
    - lit et valide le scan (optionnel)
    - l'IA propose titre / résumé / catégorie / service / tags
    - en cas d'échec de l'IA, on enregistre quand même avec les valeurs par défaut
    """
    try:
        level = Confidentiality(confidentiality) if confidentiality else None
    except ValueError:
        raise http_error(InvalidFieldValue("confidentiality", confidentiality))

    payload = await read_image_validated(image)
    form = RegistrationForm(
        description=description,
        title=title,
        confidentiality=level,
        image=payload,
    )

    try:
        doc, log = await registre.register(user, form)
    except RegistreError as e:
        raise http_error(e)

    return RegistrationOut(
        document=DocumentOut.from_document(doc),
        log=ActivityLogOut.model_validate(log),
    )


# =====================================================
# 5) SIGNATURE NUMÉRIQUE (Maire)
#    POST /documents/{doc_id}/signature
# =====================================================
@router.post("/{doc_id}/signature", response_model=DocumentOut)
def sign_document(
    doc_id: str,
    user: User = Depends(get_current_user),
    registre: Registre = Depends(get_registre),
):
    try:
        doc = registre.sign(user, doc_id)
    except RegistreError as e:
        raise http_error(e)
    return DocumentOut.from_document(doc)
