"""
Translation of retrieved answers into the conversation language

Used when an answer came from the default-language corpus because the
requested language had no match or no corpus. Translation never fails the
turn: any error returns the untranslated text.
"""

import logging
from collections import OrderedDict
from typing import Dict, Optional, Tuple

from deep_translator import GoogleTranslator

logger = logging.getLogger('BhagavatamQA-Translation')

MAX_CACHE_ENTRIES = 512


class TranslationService:
    def __init__(self, config: Optional[Dict] = None):
        translation_config = (config or {}).get('translation', {})
        self.enabled = translation_config.get('enabled', True)
        self.max_cache_entries = translation_config.get('max_cache_entries', MAX_CACHE_ENTRIES)
        self._cache: Dict[Tuple[str, str], str] = OrderedDict()

    def translate(self, text: str, target_language: str) -> str:
        """Translate text into target_language, returning it unchanged on failure"""
        if not self.enabled or not text or not text.strip():
            return text

        key = (target_language, text)
        if key in self._cache:
            self._cache.move_to_end(key)
            return self._cache[key]

        try:
            translated = GoogleTranslator(source='auto', target=target_language).translate(text)
        except Exception as e:
            logger.warning(f"Translation to '{target_language}' failed, keeping original text: {e}")
            return text

        if not translated:
            return text

        self._cache[key] = translated
        while len(self._cache) > self.max_cache_entries:
            self._cache.popitem(last=False)
        return translated

    def clear_cache(self):
        self._cache.clear()
