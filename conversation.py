"""
Conversation orchestration for the Bhagavatam Q&A engine

Drives one turn at a time: follow-up rewriting, retrieval, picking an
answer the user has not seen yet, optional translation and LLM synthesis,
then updating the conversation context. Collaborator failures degrade to
the retrieval-only answer; a turn never raises to the caller.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, List, Optional

from context_builder import (
    ConversationContext, build_contextual_query, classify_follow_up,
    extract_context_keywords, Intent
)
from corpus_loader import LoadError
from llm_service import STATIC_FOLLOW_UPS
from result_ranker import SearchResult

logger = logging.getLogger('BhagavatamQA-Conversation')

LOAD_ERROR = 'LOAD_ERROR'

LOAD_ERROR_MESSAGES = {
    'en': "I apologize, but the teachings could not be loaded right now. Please try again in a moment.",
    'hi': "क्षमा करें, अभी शिक्षाएं लोड नहीं हो सकीं। कृपया थोड़ी देर बाद पुनः प्रयास करें।",
}


@dataclass
class ConversationTurn:
    """Outcome of one user message"""
    question: str
    query: str
    answer: str
    result: Optional[SearchResult] = None
    results: List[SearchResult] = field(default_factory=list)
    intent: Intent = Intent.NONE
    translated: bool = False
    ai_model: Optional[str] = None
    error: Optional[str] = None
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def is_follow_up(self) -> bool:
        return self.intent is not Intent.NONE

    def to_dict(self) -> Dict:
        return {
            'question': self.question,
            'query': self.query,
            'answer': self.answer,
            'reference': self.result.reference if self.result else None,
            'question_id': self.result.question_id if self.result else None,
            'confidence': self.result.confidence if self.result else 0,
            'intent': self.intent.value,
            'translated': self.translated,
            'ai_model': self.ai_model,
            'error': self.error,
            'timestamp': self.timestamp
        }


class Conversation:
    def __init__(self, service, language: str = 'en', llm=None, translator=None, use_ai: bool = False):
        self.service = service
        self.language = language
        self.llm = llm
        self.translator = translator
        self.use_ai = use_ai
        self.context = ConversationContext()
        self.history: List[ConversationTurn] = []
        self.messages: List[Dict[str, str]] = []

    def reset(self):
        """Start a new conversation"""
        self.context.reset()
        self.history = []
        self.messages = []
        logger.info("Conversation reset")

    def set_language(self, language: str):
        # Context keywords are tied to the previous language
        if language != self.language:
            self.language = language
            self.reset()

    def _pick(self, results: List[SearchResult]) -> Optional[SearchResult]:
        """First result not shown before in this conversation, else the best one"""
        for result in results:
            if result.question_id not in self.context.used_ids:
                return result
        return results[0] if results else None

    def _localize(self, result: SearchResult) -> SearchResult:
        if self.translator is None or result.language == self.language:
            return result
        return replace(
            result,
            title=self.translator.translate(result.title, self.language),
            description=self.translator.translate(result.description, self.language)
        )

    def ask(self, text: str) -> ConversationTurn:
        """Answer one user message"""
        intent = classify_follow_up(text)
        query = text
        if intent is not Intent.NONE and self.context.has_context:
            query = build_contextual_query(text, self.context, self.language)

        try:
            results = self.service.find_relevant_content(query, self.language)
        except LoadError as e:
            logger.error(f"Could not load teachings for '{self.language}': {e}")
            turn = ConversationTurn(
                question=text,
                query=query,
                answer=LOAD_ERROR_MESSAGES.get(self.language, LOAD_ERROR_MESSAGES['en']),
                intent=intent,
                error=LOAD_ERROR
            )
            self.history.append(turn)
            return turn

        picked = self._pick(results)
        turn = ConversationTurn(question=text, query=query, answer='', results=results, intent=intent)

        if picked is not None:
            localized = self._localize(picked)
            turn.translated = localized is not picked
            turn.result = localized
            turn.answer = localized.description

            if self.use_ai and self.llm is not None:
                ai_response = self.llm.synthesize(text, results, self.messages, self.language)
                if ai_response.ok:
                    turn.answer = ai_response.content
                    turn.ai_model = ai_response.model
                else:
                    logger.info(f"AI synthesis unavailable ({ai_response.error.value}), using retrieved answer")
                    turn.error = ai_response.error.value

            keywords = extract_context_keywords(localized.description, self.language)
            self.context.record(localized, keywords)

        self.messages.append({'role': 'user', 'content': text})
        self.messages.append({'role': 'assistant', 'content': turn.answer})
        self.history.append(turn)
        return turn

    def suggest_follow_ups(self) -> List[str]:
        """Follow-up questions for the UI; static suggestions without an LLM"""
        if self.llm is None:
            return list(STATIC_FOLLOW_UPS.get(self.language, STATIC_FOLLOW_UPS['en']))
        return self.llm.generate_follow_up_questions(self.messages, self.language)
