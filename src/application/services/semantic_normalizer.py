"""Label Normalization.

Every place labels are compared (concept store, semantic links, node keys,
quarantine records, observation lookup) uses the same normalization:
- Lowercase
- Diacritics stripped
- Trimmed
- Internal whitespace collapsed

The search variant additionally drops punctuation and is used for the
keyword matching performed against raw narrative text.
"""

from typing import Iterable, List, Tuple
import re
import unicodedata
import logging

from domain.clinical_lexicon import TERM_STOP_WORDS

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_NON_SEARCHABLE = re.compile(r"[^a-z0-9\s]")


def strip_diacritics(text: str) -> str:
    """Remove combining accents ("Ictère" -> "Ictere")."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_label(text: str) -> str:
    """
    Normalize a label for comparison.

    Args:
        text: Raw label

    Returns:
        Lowercased, accent-free, trimmed label with single spaces
    """
    if not text:
        return ""
    normalized = strip_diacritics(text.lower()).strip()
    return _WHITESPACE.sub(" ", normalized)


def normalize_for_search(text: str) -> str:
    """Normalize text for substring keyword search (punctuation removed)."""
    return _NON_SEARCHABLE.sub("", normalize_label(text))


def normalize_with_trace(text: str) -> Tuple[str, List[str]]:
    """
    Normalize a label and return the transformation trace.

    Returns:
        Tuple of (normalized_label, transformation_steps)
    """
    steps = [f"Original: {text}"]

    lowered = (text or "").lower()
    if lowered != text:
        steps.append(f"Lowercase: {lowered}")

    stripped = strip_diacritics(lowered)
    if stripped != lowered:
        steps.append(f"Accents removed: {stripped}")

    collapsed = _WHITESPACE.sub(" ", stripped.strip())
    if collapsed != stripped:
        steps.append(f"Whitespace collapsed: {collapsed}")

    steps.append(f"Final: {collapsed}")
    return collapsed, steps


def are_equivalent(first: str, second: str) -> bool:
    """Check if two labels normalize to the same form."""
    return normalize_label(first) == normalize_label(second)


def tokenize(text: str) -> List[str]:
    """Split a normalized label into tokens."""
    normalized = normalize_label(text)
    return normalized.split(" ") if normalized else []


def clean_clinical_term(term: str, stop_words: Iterable[str] = TERM_STOP_WORDS) -> str:
    """
    Remove filler words from an extracted term, keeping original casing.

    "Pain of the chest" -> "Pain chest"
    """
    stop = set(stop_words)
    words = (term or "").split()
    cleaned = " ".join(w for w in words if w.lower() not in stop)
    if cleaned != (term or "").strip():
        logger.debug(f"Cleaned term '{term}' -> '{cleaned}'")
    return cleaned


def capitalize_label(label: str) -> str:
    """Uppercase the first character only ("spider angiomas" -> "Spider angiomas")."""
    label = (label or "").strip()
    return label[:1].upper() + label[1:]
