import os
import json
import asyncio
import logging
import traceback
from typing import Any, Dict, List, Optional

from corpus_loader import CorpusRepository, LoadError, DEFAULT_LANGUAGE
from relevance_scorer import RelevanceScorer
from result_ranker import SearchResult, rank, MAX_RESULTS
from wisdom_atlas import DomainStats, build_atlas

CONFIG_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'config.json')


# Load configuration
def load_config(path: str = CONFIG_PATH) -> Dict[str, Any]:
    """Load configuration from config.json"""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except Exception as e:
        print(f"Error loading {path}: {e}")
        # Fallback configuration
        return {
            "models": {
                "synthesis_models": ["llama-3.1-8b-instant", "llama-3.3-70b-versatile"],
                "follow_up_model": "llama-3.1-8b-instant"
            },
            "llm": {
                "base_url": "https://api.groq.com/openai/v1",
                "api_key_env": "GROQ_API_KEY",
                "max_output_tokens": 600,
                "temperature": 0.7,
                "cache_seconds": 3600,
                "max_context_results": 3,
                "max_cache_entries": 256,
                "timeout": 30
            },
            "corpus": {
                "default_language": DEFAULT_LANGUAGE,
                "sources": {
                    "en": "data/srimad-bhagavatam.json",
                    "hi": "data/srimad-bhagavatam-hi.json"
                }
            },
            "system": {
                "max_results": MAX_RESULTS,
                "preload_languages": ["en"]
            },
            "translation": {
                "enabled": True,
                "max_cache_entries": 512
            },
            "logging": {
                "level": "INFO"
            }
        }


# Load configuration
config = load_config()

# Configure logging
logging.basicConfig(
    level=getattr(logging, config['logging']['level']),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger('BhagavatamQA-Service')


class KnowledgeService:
    """Lexical retrieval over the per-language Bhagavatam knowledge bases"""

    def __init__(self,
                 config: Optional[Dict[str, Any]] = None,
                 repository: Optional[CorpusRepository] = None,
                 scorer: Optional[RelevanceScorer] = None):
        self.config = config or load_config()
        corpus_config = self.config.get('corpus', {})
        self.default_language = corpus_config.get('default_language', DEFAULT_LANGUAGE)
        self.max_results = self.config.get('system', {}).get('max_results', MAX_RESULTS)

        self.repository = repository or CorpusRepository(
            corpus_config.get('sources', {}),
            default_language=self.default_language,
            base_dir=os.path.dirname(os.path.abspath(__file__))
        )
        self.scorer = scorer or RelevanceScorer()
        self.initialized = False
        self.query_count = 0

    def initialize(self, languages: Optional[List[str]] = None) -> bool:
        """Preload corpora; succeeds when at least the default language is available"""
        languages = languages or self.config.get('system', {}).get(
            'preload_languages', [self.default_language])
        logger.info(f"Initializing Bhagavatam knowledge service for {languages}...")

        status = self.repository.initialize(languages)
        for language, loaded in status.items():
            if not loaded:
                logger.warning(f"Corpus '{language}' unavailable, queries will use '{self.default_language}'")

        self.initialized = self.repository.get(self.default_language) is not None
        if self.initialized:
            logger.info(f"Initialization complete. Loaded: {self.repository.loaded_languages}")
        else:
            logger.error(f"Default corpus '{self.default_language}' could not be loaded")
        return self.initialized

    async def find_relevant_content_async(self, query: str, language: str = 'en') -> List[SearchResult]:
        """
        Rank knowledge base entries for a query in the given language

        Raises LoadError when neither the requested nor the default corpus
        can be loaded.
        """
        self.query_count += 1
        corpus = await self.repository.load(language)

        fallback_corpus = None
        if corpus.language != self.default_language:
            outcome = await self.repository.try_load(self.default_language)
            fallback_corpus = outcome.corpus

        logger.info(f"Processing query ({language}): {query}")
        return rank(query, corpus, self.scorer, fallback_corpus, self.max_results)

    def find_relevant_content(self, query: str, language: str = 'en') -> List[SearchResult]:
        """Synchronous wrapper for find_relevant_content_async"""
        loop = asyncio.new_event_loop()
        try:
            return loop.run_until_complete(
                self.find_relevant_content_async(query, language)
            )
        finally:
            loop.close()

    def wisdom_atlas(self, language: str = 'en') -> Dict[str, DomainStats]:
        """
        Entries of a language grouped by spiritual domain

        Uses the default corpus when the language cannot be loaded; raises
        LoadError when neither can.
        """
        corpus = self.repository.load_sync(language)
        return build_atlas(corpus)

    def reload(self, language: Optional[str] = None) -> bool:
        """Drop cached corpora and load them again"""
        self.repository.invalidate(language)
        languages = [language] if language else None
        return self.initialize(languages)

    def get_system_stats(self) -> Dict:
        """Get system statistics"""
        stats = {
            "initialized": self.initialized,
            "default_language": self.default_language,
            "queries": self.query_count,
            "corpus_fetches": self.repository.fetch_count,
            "corpora": {}
        }

        for language in self.repository.loaded_languages:
            corpus = self.repository.get(language)
            stats["corpora"][language] = {
                "questions": len(corpus),
                "verses": len(corpus.verses),
                "synonym_groups": len(corpus.synonyms),
                "index_terms": len(corpus.search_index),
                "cantos": [canto.name for canto in corpus.cantos],
                "version": corpus.metadata.get('version')
            }

        return stats

    def health_check(self) -> Dict:
        """Report which configured corpora are loaded"""
        try:
            if not self.initialized:
                return {"status": "error", "message": "Service not initialized"}

            configured = list(self.repository.sources.keys())
            loaded = self.repository.loaded_languages
            missing = [language for language in configured if language not in loaded]

            return {
                "status": "healthy" if not missing else "degraded",
                "loaded_corpora": loaded,
                "missing_corpora": missing
            }
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            logger.error(traceback.format_exc())
            return {"status": "error", "message": str(e)}


# Create a global instance
knowledge_service = KnowledgeService()


__all__ = ['KnowledgeService', 'knowledge_service', 'load_config', 'config', 'LoadError']
