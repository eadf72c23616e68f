# api/ged/session.py
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from .database import get_db
from .exceptions import (
    RegistreError,
    MissingRequiredField,
    InvalidFieldValue,
    ActionNotPermitted,
    DocumentNotFound,
    InvalidStatusTransition,
)
from .extraction import NullExtractor
from .models import User
from .registre import Registre
from .seed import DEFAULT_USER_ID

# Cookie posé par POST /session/utilisateur
USER_COOKIE = "utilisateur_id"

logger = logging.getLogger(__name__)


def get_current_user(
    request: Request,
    x_utilisateur_id: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
) -> User:
    """
    Utilisateur actif (choisi, pas authentifié) à partir :
      1) de l'en-tête X-Utilisateur-Id, si présent
      2) sinon, du cookie 'utilisateur_id'
      3) sinon, l'utilisateur par défaut (le Maire)
    """
    user_id = x_utilisateur_id or request.cookies.get(USER_COOKIE) or DEFAULT_USER_ID

    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Utilisateur inconnu.",
        )
    return user


def http_error(e: RegistreError) -> HTTPException:
    """Erreur métier -> réponse HTTP (le message est renvoyé tel quel)."""
    if isinstance(e, (MissingRequiredField, InvalidFieldValue)):
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(e, ActionNotPermitted):
        logger.warning("Action refusée : %s", e.message)
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(e, DocumentNotFound):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(e, InvalidStatusTransition):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=e.message)


def get_registre(request: Request, db: Session = Depends(get_db)) -> Registre:
    extractor = getattr(request.app.state, "extractor", None) or NullExtractor()
    return Registre(db, extractor=extractor)
