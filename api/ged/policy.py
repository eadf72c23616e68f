# api/ged/policy.py
"""
Règles d'accès par rôle.

Chaque rôle a un niveau de confidentialité maximal ; un document est visible
si son niveau est inférieur ou égal à ce maximum. Les niveaux proposés dans
les filtres suivent exactement la même règle.
"""
from typing import List, assert_never

from .enums import Role, Confidentiality


def max_level(role: Role) -> Confidentiality:
    match role:
        case Role.MAIRE:
            return Confidentiality.STRICTEMENT_PRIVE
        case Role.ADMINISTRATEUR:
            return Confidentiality.CONFIDENTIEL
        case Role.SECRETAIRE:
            return Confidentiality.PUBLIC
        case _:
            assert_never(role)


def level_visible(role: Role, level: Confidentiality) -> bool:
    return level.rank <= max_level(role).rank


def is_visible(role: Role, doc) -> bool:
    """`doc` : tout objet portant un attribut `confidentiality`."""
    return level_visible(role, doc.confidentiality)


def selectable_confidentiality_levels(role: Role) -> List[Confidentiality]:
    """Niveaux proposés dans le filtre, du plus ouvert au plus restreint."""
    return [level for level in Confidentiality if level_visible(role, level)]


def intake_confidentiality_levels() -> List[Confidentiality]:
    # STRICTEMENT_PRIVE n'est jamais proposé à la numérisation
    return [Confidentiality.PUBLIC, Confidentiality.CONFIDENTIEL]


# ---------- Droits sur les actions ----------

def can_register(role: Role) -> bool:
    return role == Role.SECRETAIRE


def can_sign(role: Role) -> bool:
    return role == Role.MAIRE


def can_read_journal(role: Role) -> bool:
    return role == Role.ADMINISTRATEUR


def can_open_cabinet(role: Role) -> bool:
    return role == Role.MAIRE
