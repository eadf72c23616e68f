# api/ged/ledger.py
"""
Registre indélébile de traçabilité.

Une seule opération d'écriture : `record`. Pas de mise à jour, pas de
suppression (les listeners de models.py refusent les deux).
"""
import logging
import secrets
import time
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, and_
from sqlalchemy.orm import Session

from .enums import LogAction
from .models import ActivityLog

logger = logging.getLogger(__name__)


def _new_log_id() -> str:
    # horodatage ms + aléa : deux actions dans la même ms restent distinctes
    return f"LOG-{time.time_ns() // 1_000_000}-{secrets.token_hex(3).upper()}"


def _escape_like(value: str) -> str:
    # % et _ cherchés tels quels, pas comme jokers
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def record(
    db: Session,
    *,
    actor,
    action: LogAction,
    doc_id: str,
    doc_title: str,
    timestamp: Optional[datetime] = None,
) -> ActivityLog:
    """
    Ajoute une entrée en tête du journal et la renvoie.
    L'agent est copié par valeur : renommer l'utilisateur plus tard ne
    change pas l'historique.
    Pas de commit ici : l'entrée part dans la même transaction que l'action.
    """
    log = ActivityLog(
        id=_new_log_id(),
        user_id=str(actor.id),
        user_name=str(actor.name),
        user_role=actor.role,
        action=LogAction(action),
        doc_id=doc_id,
        doc_title=doc_title,
        timestamp=timestamp or datetime.now(),
    )
    db.add(log)
    db.flush()
    logger.debug("Journal %s : %s par %s sur %s", log.id, log.action.value, log.user_name, doc_id)
    return log


def entries(
    db: Session,
    *,
    user: Optional[str] = None,
    action: Optional[LogAction] = None,
    doc_id: Optional[str] = None,
    since: Optional[datetime] = None,
    page: int = 1,
    size: Optional[int] = None,
) -> List[ActivityLog]:
    """
    Journal du plus récent au plus ancien (ordre d'insertion, pas l'horodatage).
    Filtres possibles :
      - user : sous-chaîne du nom de l'agent
      - action : ENREGISTREMENT / CONSULTATION / MODIFICATION
      - doc_id : document concerné
      - since : entrées à partir de cette date/heure
    """
    stmt = select(ActivityLog)

    conds = []
    if user:
        conds.append(ActivityLog.user_name.ilike(f"%{_escape_like(user)}%", escape="\\"))
    if action is not None:
        conds.append(ActivityLog.action == LogAction(action))
    if doc_id is not None:
        conds.append(ActivityLog.doc_id == doc_id)
    if since is not None:
        conds.append(ActivityLog.timestamp >= since)

    if conds:
        stmt = stmt.where(and_(*conds))

    stmt = stmt.order_by(ActivityLog.seq.desc())
    if size is not None:
        stmt = stmt.offset((page - 1) * size).limit(size)

    return list(db.execute(stmt).scalars().all())
