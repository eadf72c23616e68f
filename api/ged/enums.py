# api/ged/enums.py
import enum


class Role(str, enum.Enum):
    MAIRE = "MAIRE"
    SECRETAIRE = "SECRETAIRE"
    ADMINISTRATEUR = "ADMINISTRATEUR"


class DocStatus(str, enum.Enum):
    RECU = "RECU"
    EN_COURS = "EN_COURS"
    VALIDE = "VALIDE"
    ARCHIVE = "ARCHIVE"


class Confidentiality(str, enum.Enum):
    """
    Niveaux de classification, du plus ouvert au plus restreint.
    L'ordre de déclaration EST l'ordre d'accès : on compare via `rank`,
    jamais via la comparaison de chaînes héritée de `str`.
    """
    PUBLIC = "PUBLIC"
    CONFIDENTIEL = "CONFIDENTIEL"
    STRICTEMENT_PRIVE = "STRICTEMENT_PRIVE"

    @property
    def rank(self) -> int:
        return _CONFIDENTIALITY_ORDER.index(self)


_CONFIDENTIALITY_ORDER = list(Confidentiality)


class Category(str, enum.Enum):
    COURRIER_ENTRANT = "Courrier Entrant"
    COURRIER_SORTANT = "Courrier Sortant"
    ARRETE_MUNICIPAL = "Arrêté Municipal"
    DELIBERATION = "Délibération"
    NOTE_INTERNE = "Note Interne"
    DOSSIER_FONCIER = "Dossier Foncier"
    AUTRE = "Autre"


class LogAction(str, enum.Enum):
    ENREGISTREMENT = "ENREGISTREMENT"
    CONSULTATION = "CONSULTATION"
    # Émis par la signature du Maire (passage au statut VALIDE)
    MODIFICATION = "MODIFICATION"


# Valeur sentinelle des filtres "catégorie" / "confidentialité"
ALL = "All"
