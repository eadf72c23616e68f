# api/ged/filters.py
"""
Moteur de filtrage de la GED.

Fonctions pures : aucune écriture, aucun état caché. On peut les appeler à
chaque frappe dans la barre de recherche.
"""
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional

from .enums import ALL
from .policy import is_visible, selectable_confidentiality_levels
from .schemas import FilterCriteria


def start_of_day(d: date) -> datetime:
    return datetime.combine(d, time.min)


def next_day_start(d: date) -> datetime:
    # borne exclusive : 23:59:59.999500 appartient encore à la journée
    return start_of_day(d + timedelta(days=1))


def _contains(haystack: Optional[str], needle_low: str) -> bool:
    return needle_low in (haystack or "").lower()


def matches(doc, role, criteria: FilterCriteria) -> bool:
    """
    Conjonction des critères, évaluée dans l'ordre :
      1. visibilité du rôle (jamais contournable)
      2. recherche texte (titre OU description)
      3. catégorie
      4. confidentialité (un niveau non sélectionnable par le rôle ne matche rien)
      5. expéditeur OU service
      6. plage de dates inclusive
    """
    # 1. Rôle
    if not is_visible(role, doc):
        return False

    # 2. Recherche textuelle
    if criteria.text_query:
        q = criteria.text_query.lower()
        if not (_contains(doc.title, q) or _contains(doc.description, q)):
            return False

    # 3. Catégorie
    if criteria.category != ALL and doc.category != criteria.category:
        return False

    # 4. Confidentialité
    if criteria.confidentiality != ALL:
        if criteria.confidentiality not in selectable_confidentiality_levels(role):
            return False
        if doc.confidentiality != criteria.confidentiality:
            return False

    # 5. Expéditeur / service
    if criteria.sender_or_service:
        s = criteria.sender_or_service.lower()
        if not (_contains(doc.sender, s) or _contains(doc.service, s)):
            return False

    # 6. Dates
    if criteria.date_start is not None and doc.received_at < start_of_day(criteria.date_start):
        return False
    if criteria.date_end is not None and doc.received_at >= next_day_start(criteria.date_end):
        return False

    return True


def filter_documents(documents: Iterable, role, criteria: Optional[FilterCriteria] = None) -> List:
    """Documents visibles et conformes aux critères, dans l'ordre d'entrée."""
    criteria = criteria or FilterCriteria()
    if (
        criteria.date_start is not None
        and criteria.date_end is not None
        and criteria.date_start > criteria.date_end
    ):
        # Plage inversée : résultat vide, pas d'erreur
        return []
    return [doc for doc in documents if matches(doc, role, criteria)]


def count_documents(documents: Iterable, role, criteria: Optional[FilterCriteria] = None) -> int:
    return len(filter_documents(documents, role, criteria))
