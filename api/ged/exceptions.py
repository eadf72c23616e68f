# api/ged/exceptions.py
"""
Erreurs métier du registre.

Les routers les traduisent en HTTPException ; tout ce qui reste est
intercepté par le handler global de main.py (réponse 400) pour que la
session ne plante jamais.
"""
from typing import Any, Optional


class RegistreError(Exception):
    """Erreur de base : un code stable + un message lisible."""

    code = "REGISTRE_ERROR"

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "details": self.details}


class ExtractionFailure(RegistreError):
    """Le service d'extraction n'a rien pu produire (réseau, quota, JSON invalide...)."""

    code = "EXTRACTION_FAILURE"


class MissingRequiredField(RegistreError):
    code = "MISSING_REQUIRED_FIELD"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Champ obligatoire manquant : {field}", {"field": field})


class InvalidFieldValue(RegistreError):
    code = "INVALID_FIELD_VALUE"

    def __init__(self, field: str, value: Any):
        self.field = field
        self.value = value
        super().__init__(
            f"Valeur non autorisée pour {field} : {value}",
            {"field": field, "value": str(value)},
        )


class ActionNotPermitted(RegistreError):
    code = "ACTION_NOT_PERMITTED"

    def __init__(self, role: str, action: str):
        self.role = role
        self.action = action
        super().__init__(
            f"Le rôle {role} n'est pas autorisé à : {action}",
            {"role": role, "action": action},
        )


class DocumentNotFound(RegistreError):
    """Document inconnu OU invisible pour le rôle : on ne distingue pas les deux."""

    code = "DOCUMENT_NOT_FOUND"

    def __init__(self, doc_id: str):
        self.doc_id = doc_id
        super().__init__(f"Document introuvable : {doc_id}", {"doc_id": doc_id})


class InvalidStatusTransition(RegistreError):
    code = "INVALID_STATUS_TRANSITION"

    def __init__(self, doc_id: str, status: str):
        self.doc_id = doc_id
        self.status = status
        super().__init__(
            f"Le document {doc_id} est déjà au statut {status}",
            {"doc_id": doc_id, "status": status},
        )


class AppendOnlyViolation(RegistreError):
    """Tentative de modifier ou supprimer une entrée du journal."""

    code = "APPEND_ONLY_VIOLATION"
