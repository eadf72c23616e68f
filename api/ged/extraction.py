# api/ged/extraction.py
"""
Extraction des métadonnées à la numérisation.

Trois fournisseurs, choisis par EXTRACTION_BACKEND :
  - gemini      : modèle génératif hébergé (texte et/ou image -> JSON)
  - heuristique : hors-ligne, OCR Tesseract + règles métier
  - aucun       : jamais d'enrichissement

Quel que soit le fournisseur, `extract_metadata` ne lève jamais : échec,
timeout ou réponse illisible donnent None, et l'enregistrement continue
avec les valeurs de repli.
"""
import asyncio
import io
import json
import logging
import re
import unicodedata
from typing import List, Optional, Protocol

from PIL import Image
import pytesseract

from .config import Settings, settings as default_settings
from .enums import Category
from .exceptions import ExtractionFailure
from .schemas import ExtractionResult, ImagePayload

logger = logging.getLogger(__name__)


# ------------------------------------------
# Utils texte
# ------------------------------------------

def _strip_accents(s: str) -> str:
    """
    enlève les accents (Arrêté -> Arrete) pour matcher même si l'OCR casse les accents.
    """
    return "".join(
        c for c in unicodedata.normalize("NFD", s)
        if unicodedata.category(c) != "Mn"
    )


def _norm(s: str) -> str:
    return re.sub(r"\s+", " ", _strip_accents(s).lower()).strip()


_CATEGORY_BY_KEY = {_norm(c.value): c for c in Category}


def resolve_category(raw: Optional[str]) -> Category:
    """
    Recadre la catégorie libre renvoyée par l'extraction sur l'ensemble fermé.
    Tolère casse et accents ("arrete municipal" -> Arrêté Municipal).
    Tout le reste -> Autre.
    """
    if not raw:
        return Category.AUTRE
    return _CATEGORY_BY_KEY.get(_norm(raw), Category.AUTRE)


# ==================================================
# 1. Contrat du collaborateur
# ==================================================

class MetadataExtractor(Protocol):
    async def extract(
        self, text: Optional[str], image: Optional[ImagePayload]
    ) -> Optional[ExtractionResult]:
        ...


async def extract_metadata(
    extractor: MetadataExtractor,
    text: Optional[str] = None,
    image: Optional[ImagePayload] = None,
    timeout: Optional[float] = None,
) -> Optional[ExtractionResult]:
    """
    Appel borné dans le temps. Toute erreur est journalisée puis convertie
    en "pas d'enrichissement".
    """
    if not text and image is None:
        return None
    if timeout is None:
        timeout = default_settings.EXTRACTION_TIMEOUT_SECONDS
    try:
        return await asyncio.wait_for(extractor.extract(text, image), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Extraction abandonnée après %.1fs, enregistrement sans enrichissement", timeout)
    except ExtractionFailure as e:
        logger.warning("Extraction impossible : %s", e.message)
    except Exception as e:
        logger.warning("Erreur inattendue pendant l'extraction (%s) : %s", type(e).__name__, e)
    return None


class NullExtractor:
    """Aucun enrichissement (backend "aucun" ou Gemini non configuré)."""

    async def extract(self, text, image):
        return None


# ==================================================
# 2. Gemini
# ==================================================

_PROMPT_TEXT = (
    'Analyse ce texte de document administratif pour la mairie de Sandiara : "{text}". '
    "Extrais les métadonnées."
)
_PROMPT_IMAGE = (
    "Analyse cette image de document (scan) pour la mairie de Sandiara. "
    "Fais l'OCR et extrais les métadonnées pour le classement."
)
_PROMPT_SCHEMA = (
    "Réponds uniquement avec un objet JSON contenant : "
    '"title" (titre formel extrait ou généré), '
    '"summary" (résumé très court de l\'objet), '
    '"category" (une valeur parmi : {categories}), '
    '"service" (service municipal concerné), '
    '"tags" (liste de mots-clés).'
)


def build_prompt(text: Optional[str]) -> str:
    head = _PROMPT_TEXT.format(text=text) if text else _PROMPT_IMAGE
    categories = ", ".join(c.value for c in Category if c != Category.AUTRE)
    return f"{head}\n{_PROMPT_SCHEMA.format(categories=categories)}"


def parse_model_response(raw: Optional[str]) -> ExtractionResult:
    raw = (raw or "").strip()
    # certains modèles entourent le JSON d'un bloc ```json ... ```
    fenced = re.match(r"^```(?:json)?\s*(.*?)\s*```$", raw, flags=re.DOTALL)
    if fenced:
        raw = fenced.group(1)
    try:
        payload = json.loads(raw or "{}")
    except json.JSONDecodeError as e:
        raise ExtractionFailure(f"Réponse JSON invalide : {e}") from e
    if not isinstance(payload, dict):
        raise ExtractionFailure("Réponse inattendue (objet JSON attendu)")
    return ExtractionResult.model_validate(payload)


class GeminiExtractor:
    def __init__(self, api_key: str, model_name: str):
        import google.generativeai as genai

        genai.configure(api_key=api_key)
        self._model = genai.GenerativeModel(
            model_name=model_name,
            generation_config={"response_mime_type": "application/json"},
        )
        logger.info("Extraction Gemini configurée (modèle %s)", model_name)

    async def extract(self, text, image):
        parts: list = []
        if image is not None:
            parts.append({"mime_type": image.mime_type, "data": image.data})
        parts.append(build_prompt(text))

        try:
            response = await self._model.generate_content_async(parts)
            raw = response.text
        except Exception as e:
            raise ExtractionFailure(f"Appel Gemini en échec : {e}") from e
        return parse_model_response(raw)


# ==================================================
# 3. Heuristique hors-ligne (OCR + règles métier)
# ==================================================

def _preprocess_for_ocr(img: Image.Image) -> Image.Image:
    """
    Amélioration OCR :
    - on convertit en niveaux de gris
    - on applique un seuillage binaire léger
    - on renvoie une image bien contrastée pour Tesseract
    """
    gray = img.convert("L")  # niveaux de gris
    # seuillage : <160 -> noir, sinon blanc
    bw = gray.point(lambda x: 0 if x < 160 else 255, "1")
    return bw


def extract_text_from_image(data: bytes, lang: str = "fra") -> str:
    """
    OCR d'un scan (psm 6 = lecture en bloc). Lève ExtractionFailure si
    l'image est illisible ou si Tesseract est absent.
    """
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except Exception as e:
        raise ExtractionFailure(f"Image illisible : {e}") from e

    prep = _preprocess_for_ocr(img)
    try:
        return pytesseract.image_to_string(prep, lang=lang, config="--psm 6").strip()
    except pytesseract.TesseractError:
        # langue non installée : on retente sans langue forcée
        try:
            return pytesseract.image_to_string(prep, config="--psm 6").strip()
        except Exception as e:
            raise ExtractionFailure(f"OCR impossible : {e}") from e
    except Exception as e:
        raise ExtractionFailure(f"OCR impossible : {e}") from e


# (catégorie, motifs cherchés sur le texte sans accents, en minuscules)
_CATEGORY_RULES = [
    (Category.ARRETE_MUNICIPAL, [r"\barrete\s*(n|n°|num|du|de |municipal)", r"\bpar\s+arrete\b", r"\barrete\b"]),
    (Category.DELIBERATION, [r"\bdeliberation\b", r"\bconseil\s+municipal\b"]),
    (Category.DOSSIER_FONCIER, [r"\bfoncier\b", r"\btitre\s+foncier\b", r"\bparcelle\b", r"\blotissement\b", r"\bbail\b"]),
    (Category.NOTE_INTERNE, [r"\bnote\s+(interne|de\s+service)\b"]),
    (Category.COURRIER_SORTANT, [r"\bcourrier\s+sortant\b", r"\bobjet\s*:.*\bnous\s+avons\s+l'honneur\b"]),
    (Category.COURRIER_ENTRANT, [r"\bcourrier\s+entrant\b", r"\bmonsieur\s+le\s+maire\b", r"\bmadame\s+la\s+maire\b"]),
]


def guess_category_smart(text: str) -> Optional[Category]:
    """
    Les documents officiels annoncent leur nature tout en haut : on regarde
    d'abord les 15 premières lignes, puis le texte entier.
    """
    lines = [ln.strip() for ln in text.splitlines() if ln.strip()]
    top15 = "\n".join(lines[:15])
    full = "\n".join(lines)

    for block in (top15, full):
        block_na = _strip_accents(block.lower())
        for category, patterns in _CATEGORY_RULES:
            if any(re.search(p, block_na) for p in patterns):
                return category
    return None


def guess_service_smart(text: str, known_services: List[str]) -> Optional[str]:
    """
    Stratégie :
    - Chercher d'abord dans le haut (30 premières lignes)
      ET le bas (30 dernières lignes), car le service émetteur
      est souvent en-tête ou dans le bloc signature.
    - On fait une comparaison sans accents pour être tolerant à l'OCR.
    - Si rien trouvé : fallback recherche globale.
    """
    services_clean = [s for s in known_services if s]
    if not services_clean:
        return None

    lines = text.splitlines()
    head_zone_na = _strip_accents("\n".join(lines[:30]).lower())
    tail_zone_na = _strip_accents("\n".join(lines[-30:]).lower())
    full_na = _strip_accents(text.lower())

    for zone_na in (head_zone_na, tail_zone_na, full_na):
        for s in services_clean:
            s_na = _strip_accents(s.lower())
            if s_na and s_na in zone_na:
                return s
    return None


def guess_title(ocr_text: str, max_len: int = 120) -> Optional[str]:
    """Première ligne "parlante" du scan (au moins 3 lettres)."""
    for line in ocr_text.splitlines():
        line = re.sub(r"\s+", " ", line).strip(" -_:.")
        if len(re.findall(r"[A-Za-zÀ-ÿ]", line)) >= 3:
            return line[:max_len]
    return None


class HeuristicExtractor:
    def __init__(self, known_services: Optional[List[str]] = None, ocr_lang: str = "fra"):
        self.known_services = list(known_services or [])
        self.ocr_lang = ocr_lang

    async def extract(self, text, image):
        ocr_text = ""
        if image is not None:
            # Tesseract est bloquant : hors de la boucle d'événements
            ocr_text = await asyncio.to_thread(extract_text_from_image, image.data, self.ocr_lang)

        corpus = "\n".join(t for t in (text, ocr_text) if t)
        if not corpus.strip():
            return None

        category = guess_category_smart(corpus)
        service = guess_service_smart(corpus, self.known_services)
        return ExtractionResult(
            title=guess_title(ocr_text) if ocr_text else None,
            category=category.value if category else None,
            service=service,
            tags=[t for t in (service,) if t],
        )


# ==================================================
# 4. Fabrique
# ==================================================

def get_extractor(
    known_services: Optional[List[str]] = None,
    config: Optional[Settings] = None,
) -> MetadataExtractor:
    config = config or default_settings
    backend = (config.EXTRACTION_BACKEND or "aucun").strip().lower()

    if backend == "gemini":
        if not config.GEMINI_API_KEY:
            logger.warning("GEMINI_API_KEY absente : enregistrement sans enrichissement")
            return NullExtractor()
        return GeminiExtractor(config.GEMINI_API_KEY, config.GEMINI_MODEL)
    if backend == "heuristique":
        return HeuristicExtractor(known_services, ocr_lang=config.OCR_LANG)
    if backend != "aucun":
        logger.warning("EXTRACTION_BACKEND inconnu (%s) : extraction désactivée", backend)
    return NullExtractor()
