# api/ged/routers_session.py
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status

from .models import User
from .registre import Registre
from .schemas import UserOut, SwitchUserIn, DashboardOut
from .session import USER_COOKIE, get_current_user, get_registre

logger = logging.getLogger(__name__)

router = APIRouter(tags=["session"])


@router.get("/utilisateurs", response_model=List[UserOut])
def list_users(registre: Registre = Depends(get_registre)):
    """Agents proposés dans le sélecteur de rôle (MAI / ADM / SEC)."""
    return registre.users()


@router.post("/session/utilisateur", response_model=UserOut)
def switch_user(
    payload: SwitchUserIn,
    response: Response,
    registre: Registre = Depends(get_registre),
):
    """
    Change d'utilisateur actif. Pas de mot de passe : le rôle est
    sélectionné, pas vérifié. Les filtres sont réinitialisés côté front.
    """
    user = registre.get_user(payload.user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Utilisateur introuvable.",
        )

    response.set_cookie(
        key=USER_COOKIE,
        value=user.id,
        httponly=True,
        samesite="lax",
        path="/",
    )
    logger.info("Session : utilisateur actif %s (%s)", user.name, user.role.value)
    return user


@router.get("/session/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    return user


@router.get("/tableau-de-bord", response_model=DashboardOut)
def dashboard(
    user: User = Depends(get_current_user),
    registre: Registre = Depends(get_registre),
):
    """Archives totales, à signer, flux du jour, répartition, activité récente."""
    return registre.dashboard(user.role)
