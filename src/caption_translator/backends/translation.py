"""Machine translation collaborators (OpenAI chat completions and DeepL)."""

import json
import logging
import re
from typing import Iterable

import httpx
from openai import OpenAI, OpenAIError

from caption_translator.backends.base import TranslationBackend
from caption_translator.config import Settings
from caption_translator.errors import TranslationError

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

SYSTEM_PROMPT = "Return only valid JSON with original text as keys and translations as values. No extra text."

LANGUAGE_INSTRUCTIONS = {
    "zh": (
        "- Use simplified Chinese characters unless specified otherwise.\n"
        "- Keep translations concise and use natural Chinese word order.\n"
        "- Avoid literal word-for-word translation."
    ),
    "ja": (
        "- Use natural Japanese sentence structure and particles.\n"
        "- Use casual politeness for action content and katakana for loanwords."
    ),
    "ko": "- Use Hangul, casual speech levels and Subject-Object-Verb order.",
    "es": "- Use neutral Latin American Spanish with correct gender agreement.",
}

_LANGUAGE_ALIASES = {
    "zh": ("chinese", "中文"),
    "ja": ("japanese", "日本語"),
    "ko": ("korean", "한국어"),
    "es": ("spanish", "español"),
}


def language_code(target_language: str) -> str | None:
    """Best-effort two-letter code for a language name or code."""
    lang = target_language.strip().lower()
    for code, names in _LANGUAGE_ALIASES.items():
        if lang == code or lang.startswith(f"{code}-") or any(name in lang for name in names):
            return code
    return None


def is_chinese(target_language: str) -> bool:
    return language_code(target_language) == "zh"


def unique_phrases(phrases: Iterable[str]) -> list[str]:
    """Non-blank phrases, de-duplicated, first occurrence order."""
    return list(dict.fromkeys(p for p in phrases if p and p.strip()))


def with_fallback(phrases: Iterable[str], translations: dict[str, str]) -> dict[str, str]:
    """Complete a translation map so every phrase maps to something non-empty."""
    result = {}
    for phrase in phrases:
        translated = translations.get(phrase)
        result[phrase] = translated if isinstance(translated, str) and translated.strip() else phrase
    return result


def parse_json_object(content: str) -> dict[str, str]:
    """Parse a JSON object from model output, tolerating surrounding text or code fences.

    Raises:
        TranslationError: If no JSON object can be recovered
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        match = _JSON_OBJECT.search(content)
        if not match:
            raise TranslationError("Invalid JSON response from translation model") from None
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise TranslationError(f"Invalid JSON response from translation model: {e}") from e
    if not isinstance(data, dict):
        raise TranslationError("Translation model returned JSON that is not an object")
    return {str(k): str(v) for k, v in data.items() if v is not None}


def build_prompt(phrases: list[str], target_language: str) -> str:
    extra = LANGUAGE_INSTRUCTIONS.get(language_code(target_language) or "", "")
    return (
        "You are a professional subtitle translator for video content.\n"
        f"Translate the following on-screen texts into natural, readable {target_language} "
        "suitable for bottom-center subtitles.\n\n"
        "Rules:\n"
        "- Keep meaning and intent; do not translate brand names.\n"
        "- Preserve numbers, times, and units as-is.\n"
        "- Keep translations concise so they fit on one or two subtitle lines.\n"
        "- If a string is meaningless (e.g., random letters), return the original.\n"
        f"{extra}\n\n"
        'Return ONLY a valid JSON object: { "<original>": "<translated>" } '
        "with every input string present as a key.\n\n"
        f"Texts to translate: {json.dumps(phrases, ensure_ascii=False)}"
    )


class OpenAITranslator(TranslationBackend):
    """Translate with an OpenAI chat model returning a JSON map."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        temperature: float = 0.3,
        client: OpenAI | None = None,
    ):
        self.model = model
        self.temperature = temperature
        if client is None:
            try:
                client = OpenAI(api_key=api_key or None)
            except OpenAIError as e:
                raise TranslationError(f"OpenAI client unavailable: {e}") from e
        self.client = client

    def translate(self, phrases: Iterable[str], target_language: str) -> dict[str, str]:
        """Translate phrases in one request.

        Raises:
            TranslationError: On API failure or an unparseable response
        """
        texts = unique_phrases(phrases)
        if not texts:
            return {}

        logger.info(f"Translating {len(texts)} phrases to {target_language} with {self.model}")
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_prompt(texts, target_language)},
                ],
                temperature=self.temperature,
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            raise TranslationError(f"Failed to translate: {e}") from e

        content = response.choices[0].message.content or ""
        return with_fallback(texts, parse_json_object(content))


class DeepLTranslator(TranslationBackend):
    """Translate with the DeepL REST API."""

    def __init__(self, api_key: str, api_url: str, timeout: float = 30.0, client: httpx.Client | None = None):
        if not api_key:
            raise ValueError("DeepL API key is required")
        self.api_key = api_key
        self.api_url = api_url
        self.timeout = timeout
        self._client = client

    @staticmethod
    def target_code(target_language: str) -> str:
        code = language_code(target_language)
        return (code or target_language).upper()

    def translate(self, phrases: Iterable[str], target_language: str) -> dict[str, str]:
        """Translate phrases in one request.

        Raises:
            TranslationError: On HTTP failure or a malformed response
        """
        texts = unique_phrases(phrases)
        if not texts:
            return {}

        payload = {"text": texts, "target_lang": self.target_code(target_language)}
        headers = {"Authorization": f"DeepL-Auth-Key {self.api_key}"}
        logger.info(f"Translating {len(texts)} phrases to {payload['target_lang']} with DeepL")
        try:
            if self._client is not None:
                response = self._client.post(self.api_url, json=payload, headers=headers, timeout=self.timeout)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(self.api_url, json=payload, headers=headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise TranslationError(
                f"DeepL API error: {e.response.status_code} - {e.response.text}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise TranslationError(f"DeepL request failed: {e}") from e

        translated = [item.get("text", "") for item in data.get("translations", [])]
        return with_fallback(texts, dict(zip(texts, translated)))


def get_translator(settings: Settings, target_language: str) -> TranslationBackend:
    """Pick a translation backend for the target language.

    DeepL is used for Chinese targets when a DeepL key is configured;
    everything else goes through OpenAI.
    """
    if is_chinese(target_language) and settings.deepl_api_key:
        return DeepLTranslator(settings.deepl_api_key, settings.deepl_api_url)
    return OpenAITranslator(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        temperature=settings.openai_temperature,
    )
