"""
Localized validation messages.

Only the commonest keywords are translated. English, unknown locales and
untranslated keywords keep the validator's own message.
"""

from __future__ import annotations

DEFAULT_LOCALE = "en"
FALLBACK_MESSAGE = "Invalid value"

LOCALE_MESSAGES: dict[str, dict[str, str]] = {
    "de": {
        "required": "Pflichtfeld fehlt",
        "minimum": "Wert ist zu klein",
        "maximum": "Wert ist zu groß",
        "pattern": "Ungültiges Format",
        "type": "Falscher Typ",
    },
    "es": {
        "required": "Falta un campo obligatorio",
        "minimum": "Valor demasiado bajo",
        "maximum": "Valor demasiado alto",
        "pattern": "Formato inválido",
        "type": "Tipo incorrecto",
    },
    "fr": {
        "required": "Champ obligatoire manquant",
        "minimum": "Valeur trop petite",
        "maximum": "Valeur trop grande",
        "pattern": "Format invalide",
        "type": "Type incorrect",
    },
    "zh": {
        "required": "缺少必填字段",
        "minimum": "值太小",
        "maximum": "值太大",
        "pattern": "格式无效",
        "type": "类型不正确",
    },
}


def normalize_locale(code: str | None) -> str:
    """
    Reduce a locale tag to its language code.

    Example:
        >>> normalize_locale("de-DE")
        'de'
        >>> normalize_locale("pt_BR.UTF-8")
        'pt'
    """
    if not code:
        return DEFAULT_LOCALE
    language = code.strip().replace("_", "-").split(".")[0].split("-")[0]
    return language.lower() or DEFAULT_LOCALE


def localize(keyword: str, message: str | None, locale: str | None) -> str:
    """Message for a failed keyword in ``locale``."""
    table = LOCALE_MESSAGES.get(normalize_locale(locale), {})
    if keyword in table:
        return table[keyword]
    return message or FALLBACK_MESSAGE


def supported_locales() -> list[str]:
    return [DEFAULT_LOCALE, *sorted(LOCALE_MESSAGES)]
