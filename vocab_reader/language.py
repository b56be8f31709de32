from __future__ import annotations

import re

from .models import LanguageTag

_CJK_RE = re.compile(r"[\u4e00-\u9fff]")
_LATIN_RE = re.compile(r"[A-Za-z]")

# Speech locales by language tag; anything else reads as English.
LOCALES = {"zh": "zh-CN", "en": "en-US"}
DEFAULT_LOCALE = "en-US"

# Source-language codes the dictionary provider expects.
PROVIDER_LANGUAGES = {"zh": "zh-CHS"}
DEFAULT_PROVIDER_LANGUAGE = "en"


def detect(text: str) -> LanguageTag:
    """Classify text as zh, en or unknown.

    Any CJK ideograph wins, even when Latin letters are present, so mixed
    text such as "Hello 你好" is zh.
    """
    text = text or ""
    if _CJK_RE.search(text):
        return "zh"
    if _LATIN_RE.search(text):
        return "en"
    return "unknown"


def locale_for(language: str) -> str:
    return LOCALES.get(language, DEFAULT_LOCALE)


def provider_language(language: str) -> str:
    return PROVIDER_LANGUAGES.get(language, DEFAULT_PROVIDER_LANGUAGE)
