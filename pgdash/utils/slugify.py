import re

from unidecode import unidecode

SLUG_MAX_LENGTH = 100


def slugify(text: str | None, max_length: int = SLUG_MAX_LENGTH) -> str:
    """Lower-case ASCII slug for tenant URLs: "Padaria São João" -> "padaria-sao-joao"."""
    text = unidecode(text or "").lower()
    text = re.sub(r"[^a-z0-9]+", "-", text).strip("-")
    return text[:max_length].rstrip("-")
