"""
Traduction anglais ↔ kiswahili pour le routage (pivot) et la sortie.

Pas de cache, température basse fixe. En cas d'échec on rend le texte
d'origine : une réponse non traduite vaut mieux que pas de réponse.
"""

import logging

from shambasmart.services.generation import TextGenerator

logger = logging.getLogger("ShambaSmart.Translator")

PIVOT_LANGUAGE = "en"
LANGUAGE_NAMES = {"en": "English", "sw": "Kiswahili"}

TRANSLATION_PROMPT = """Translate the following agricultural advice from {source} to {target}.
Maintain the technical accuracy and cultural appropriateness for Kenyan farmers.
Return only the translation.

Text to translate:
{text}

Translation:"""


class Translator:
    def __init__(self, generator: TextGenerator, temperature: float = 0.1):
        self.generator = generator
        self.temperature = temperature

    def translate(self, text: str, source: str, target: str) -> str:
        if not text or source == target:
            return text
        prompt = TRANSLATION_PROMPT.format(
            source=LANGUAGE_NAMES.get(source, source),
            target=LANGUAGE_NAMES.get(target, target),
            text=text,
        )
        try:
            return self.generator.generate(prompt, temperature=self.temperature) or text
        except Exception as e:
            logger.warning("Translation %s→%s failed, returning original text: %s", source, target, e)
            return text


__all__ = ["Translator", "PIVOT_LANGUAGE", "LANGUAGE_NAMES"]
