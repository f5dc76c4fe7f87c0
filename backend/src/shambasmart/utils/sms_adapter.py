import re

SMS_MAX_LENGTH = 1600
USSD_MAX_LENGTH = 150
WHATSAPP_MAX_LENGTH = 4096


class SMSAdapter:
    """
    Adapte les réponses riches de l'IA aux contraintes des canaux texte courts
    (SMS concaténés, écrans USSD).
    """

    @staticmethod
    def strip_markdown(text: str) -> str:
        text = re.sub(r"\*\*(.*?)\*\*", r"\1", text)      # Bold
        text = re.sub(r"\*(.*?)\*", r"\1", text)          # Italic
        text = re.sub(r"#+\s", "", text)                  # Headers
        text = re.sub(r"\[(.*?)\]\(.*?\)", r"\1", text)   # Links
        text = re.sub(r"^\s*[-•]\s+", "", text, flags=re.MULTILINE)
        return text

    @staticmethod
    def truncate(text: str, max_length: int) -> str:
        if len(text) <= max_length:
            return text
        return text[:max_length - 3].rstrip() + "..."

    @staticmethod
    def compress_for_sms(text: str, max_length: int = SMS_MAX_LENGTH) -> str:
        """
        Retire le markdown et les sauts de ligne, puis tronque pour tenir
        dans un SMS concaténé.
        """
        if not text:
            return ""
        text = SMSAdapter.strip_markdown(text)
        text = " ".join(text.split())
        return SMSAdapter.truncate(text, max_length)

    @staticmethod
    def format_for_ussd(text: str, max_length: int = USSD_MAX_LENGTH) -> str:
        """Écran USSD : une ligne courte, sans markdown."""
        return SMSAdapter.compress_for_sms(text, max_length=max_length)
