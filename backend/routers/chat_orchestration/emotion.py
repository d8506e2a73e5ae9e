"""
Relay Emotion Detector - sentiment signals for the escalation policy

Wraps the external sentiment oracle. The oracle is optional and fallible:
without it, or when it fails, every message reads as neutral and only the
critical phrases and repeated-question check can trigger a handoff.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from config import runtime_config
from errors import OracleFailure
from services.sentiment_client import SentimentClient

from .conversation_store import Message

logger = logging.getLogger(__name__)

# Always route to a human
CRITICAL_PHRASES = [
    "terrible service",
    "worst experience",
    "speak to manager",
    "speak to supervisor",
    "want to cancel",
    "cancel my order",
    "cancel my account",
    "file a complaint",
    "formal complaint",
    "refund immediately",
    "demand a refund",
    "absolutely unacceptable",
    "extremely disappointed",
    "ridiculous service",
]

NEGATIVE_SCORE = -0.2
TOTAL_NEGATIVE_SCORE = -0.8
REPEAT_SIMILARITY = 0.6
TREND_WINDOW = 5

_WORD_SPLIT = re.compile(r"\W+")


@dataclass(frozen=True)
class EmotionResult:
    score: float = 0.0
    emotion: str = "neutral"
    needs_human: bool = False
    confidence: float = 0.5


NEUTRAL = EmotionResult()


def similarity(a: str, b: str) -> float:
    """Jaccard similarity over lowercase words longer than two characters."""
    words_a = {w for w in _WORD_SPLIT.split(a.lower()) if len(w) > 2}
    words_b = {w for w in _WORD_SPLIT.split(b.lower()) if len(w) > 2}
    if not words_a or not words_b:
        return 0.0
    return len(words_a & words_b) / len(words_a | words_b)


class EmotionDetector:
    """Decides whether a message's emotional content needs a human.

    Args:
        sentiment_client: Sentiment oracle, or None for neutral-only analysis
        score_threshold: Scores below this (with enough confidence) escalate
        confidence_threshold: Minimum oracle confidence for the score rule
    """

    def __init__(
        self,
        sentiment_client: Optional[SentimentClient] = None,
        score_threshold: Optional[float] = None,
        confidence_threshold: Optional[float] = None,
    ):
        self.sentiment_client = sentiment_client
        self.score_threshold = (
            score_threshold if score_threshold is not None else runtime_config.emotion_score_threshold
        )
        self.confidence_threshold = (
            confidence_threshold if confidence_threshold is not None else runtime_config.emotion_confidence_threshold
        )

    async def analyze(self, text: str) -> EmotionResult:
        """Classify one message, degrading to neutral on any oracle failure."""
        if self.sentiment_client is None or not text:
            return NEUTRAL
        try:
            result = await self.sentiment_client.classify(text)
        except OracleFailure as e:
            logger.warning(f"Sentiment unavailable, treating message as neutral: {e}")
            return NEUTRAL
        return EmotionResult(
            score=result.score,
            emotion=result.emotion,
            needs_human=result.needs_human,
            confidence=result.confidence,
        )

    async def needs_human_intervention(self, text: str, history: Sequence[Message] = ()) -> bool:
        """True when the message or the recent conversation signals frustration.

        Args:
            text: Current customer message
            history: Stored messages ending with the current one, oldest first
        """
        if not text:
            return False

        lowered = text.lower()
        if any(phrase in lowered for phrase in CRITICAL_PHRASES):
            return True

        emotion = await self.analyze(text)
        if emotion.needs_human:
            return True
        if emotion.score < self.score_threshold and emotion.confidence > self.confidence_threshold:
            return True

        if len(history) > 2:
            return await self._frustrated_trend(history)
        return False

    async def _frustrated_trend(self, history: Sequence[Message]) -> bool:
        recent = [m for m in list(history)[-TREND_WINDOW:] if m.is_customer and m.content]
        if len(recent) < 2:
            return False

        questions = [m.content.lower() for m in recent if "?" in m.content]
        for i in range(len(questions)):
            for j in range(i + 1, len(questions)):
                if similarity(questions[i], questions[j]) > REPEAT_SIMILARITY:
                    logger.debug("Repeated question detected")
                    return True

        results: List[EmotionResult] = await asyncio.gather(*(self.analyze(m.content) for m in recent))
        scores = [r.score for r in results]
        negatives = [s for s in scores if s < NEGATIVE_SCORE]

        if len(negatives) >= 2 or sum(negatives) < TOTAL_NEGATIVE_SCORE:
            return True

        # Declining: latest is worse than two messages back, and negative
        if len(scores) >= 3 and scores[-1] < scores[-3] and scores[-1] < NEGATIVE_SCORE:
            return True
        return False
