# insight_bff/prompts.py
"""构造发给 LLM 提供方的提示词。"""

from insight_bff.utils import base_lang

LANGUAGE_NAMES: dict[str, str] = {
    "en": "English",
    "de": "German",
    "tr": "Turkish",
    "fr": "French",
    "es": "Spanish",
    "it": "Italian",
    "ar": "Arabic",
    "ru": "Russian",
    "ja": "Japanese",
    "zh": "Chinese",
    "pt": "Portuguese",
    "nl": "Dutch",
    "pl": "Polish",
}

TEXT_PROMPT_TEMPLATE = (
    "Translate the following text from {src} to {dst}. "
    "Return only the translation with no extra words or quotes.\n\n{text}"
)

FIELDS_PROMPT_TEMPLATE = (
    "Translate the JSON values below from {src} to {dst}. "
    "Respond with minified JSON only, using exactly the keys "
    '"title", "summary" and "details". Keep empty values empty.\n\n{payload}'
)


def language_name(tag: str | None) -> str:
    """`de-CH` -> `German`；未知语言回退为其基础子标签。"""
    if not tag:
        return "the source language"
    base = base_lang(tag)
    return LANGUAGE_NAMES.get(base, base)


def build_text_prompt(text: str, source_lang: str | None, dest_lang: str) -> str:
    return TEXT_PROMPT_TEMPLATE.format(
        src=language_name(source_lang), dst=language_name(dest_lang), text=text
    )


def build_fields_prompt(payload_json: str, source_lang: str | None, dest_lang: str) -> str:
    return FIELDS_PROMPT_TEMPLATE.format(
        src=language_name(source_lang),
        dst=language_name(dest_lang),
        payload=payload_json,
    )
