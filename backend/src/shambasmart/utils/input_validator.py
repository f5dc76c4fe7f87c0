"""
Input Validator — Sanitisation et normalisation du texte utilisateur.

Fonctions totales, sans effet de bord. La sortie part vers des canaux
texte (SMS, WhatsApp, voix) : le nettoyage HTML est une hygiène, pas
une barrière de sécurité.
"""

import re
from dataclasses import dataclass, field
from typing import List

MAX_LENGTH = 1000

_SCRIPT_BLOCK = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_HTML_TAG = re.compile(r"<[^>]+>")
_JS_SCHEME = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"on\w+\s*=", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")

_SUSPICIOUS_PATTERNS = [
    re.compile(r"eval\s*\(", re.IGNORECASE),
    re.compile(r"exec\s*\(", re.IGNORECASE),
    re.compile(r"system\s*\(", re.IGNORECASE),
    re.compile(r"shell_exec", re.IGNORECASE),
    re.compile(r"base64_decode", re.IGNORECASE),
    re.compile(r"\.\./"),
    re.compile(r"\.\.\\"),
]

# Fautes courantes → terme correct (frontières de mot, insensible à la casse)
TYPO_MAP = {
    "maise": "maize",
    "maze": "maize",
    "cattel": "cattle",
    "goats": "goat",
    "chickens": "chicken",
}
_TYPO_PATTERNS = [
    (re.compile(rf"\b{re.escape(typo)}\b", re.IGNORECASE), correct)
    for typo, correct in TYPO_MAP.items()
]


@dataclass
class ValidationResult:
    is_valid: bool
    sanitized: str
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def _strip_markup(text: str) -> str:
    text = _SCRIPT_BLOCK.sub("", text)
    # Balises <script> orphelines ou imbriquées : on repasse jusqu'à stabilité
    previous = None
    while previous != text:
        previous = text
        text = _HTML_TAG.sub("", text)
    text = _JS_SCHEME.sub("", text)
    return _EVENT_HANDLER.sub("", text)


def validate(text: str) -> ValidationResult:
    """Trim, rejet du vide, troncature avec avertissement, nettoyage du markup."""
    errors: List[str] = []
    warnings: List[str] = []
    sanitized = (text or "").strip()

    if not sanitized:
        errors.append("Query is too short")
        return ValidationResult(False, "", errors, warnings)

    if len(sanitized) > MAX_LENGTH:
        sanitized = sanitized[:MAX_LENGTH]
        warnings.append("Query was truncated")

    sanitized = _strip_markup(sanitized)

    if any(p.search(sanitized) for p in _SUSPICIOUS_PATTERNS):
        warnings.append("Query contains unusual patterns")

    sanitized = _WHITESPACE.sub(" ", sanitized).strip()
    if not sanitized:
        errors.append("Query is too short")

    return ValidationResult(not errors, sanitized, errors, warnings)


def normalize(text: str) -> str:
    """Corrige les fautes connues, réduit la ponctuation répétée et les espaces."""
    normalized = (text or "").strip()
    for pattern, correct in _TYPO_PATTERNS:
        normalized = pattern.sub(correct, normalized)

    normalized = re.sub(r"!{2,}", "!", normalized)
    normalized = re.sub(r"\?{2,}", "?", normalized)
    normalized = re.sub(r"\.{3,}", "...", normalized)
    return _WHITESPACE.sub(" ", normalized).strip()


def is_potentially_malicious(text: str) -> bool:
    result = validate(text)
    return bool(result.warnings) or not result.is_valid


__all__ = ["MAX_LENGTH", "ValidationResult", "validate", "normalize", "is_potentially_malicious"]
