# api/ged/routers_journal.py
from typing import Optional, List

from fastapi import APIRouter, Depends, Query

from .enums import LogAction
from .exceptions import RegistreError
from .models import User
from .registre import Registre
from .schemas import ActivityLogOut
from .session import get_current_user, get_registre, http_error

router = APIRouter(prefix="/journal", tags=["journal"])


# ---------- Registre indélébile de traçabilité (Administrateur) ----------

@router.get("", response_model=List[ActivityLogOut])
def list_journal(
    user_name: Optional[str] = Query(default=None, alias="user"),
    action: Optional[LogAction] = Query(default=None),
    doc_id: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    size: int = Query(default=50, ge=1, le=200),
    user: User = Depends(get_current_user),
    registre: Registre = Depends(get_registre),
):
    """
    Consultation du journal : qui a enregistré / consulté / signé quel
    document, et quand. Plus récent d'abord.
    Filtres possibles :
      - user : nom (partiel) de l'agent
      - action : ENREGISTREMENT / CONSULTATION / MODIFICATION
      - doc_id : document concerné
    Réservé aux administrateurs.
    """
    try:
        logs = registre.journal(
            user.role,
            user=user_name,
            action=action,
            doc_id=doc_id,
            page=page,
            size=size,
        )
    except RegistreError as e:
        raise http_error(e)
    return [ActivityLogOut.model_validate(log) for log in logs]
