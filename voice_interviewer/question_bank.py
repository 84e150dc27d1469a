"""Static Excel question bank and adaptive difficulty selection."""
import json
import os
from typing import Dict, List, Optional

import structlog

from voice_interviewer.config import settings
from voice_interviewer.database.schemas import CandidateInfo, ConversationTurn, ExperienceLevel

logger = structlog.get_logger()

TIERS = ["beginner", "intermediate", "advanced"]

ESCALATE_ABOVE = 7.5
DEESCALATE_BELOW = 4.0
TRAILING_WINDOW = 2

ADVANCED_SKILL_MARKERS = ("vba", "macro", "power", "advanced")

FALLBACK_QUESTION = "Can you tell me about your experience with Excel formulas and functions?"


class QuestionBank:
    def __init__(self, path: Optional[str] = None, questions: Optional[Dict[str, List[str]]] = None):
        self.path = path or settings.QUESTION_BANK_PATH
        self.questions = questions if questions is not None else self._load_question_bank()

    def _load_question_bank(self) -> Dict[str, List[str]]:
        """Load the per-tier question lists from disk."""
        try:
            if os.path.exists(self.path):
                with open(self.path, "r", encoding="utf-8") as f:
                    return json.load(f)
            logger.warning("Question bank file not found", path=self.path)
            return {}
        except (OSError, ValueError) as e:
            logger.error("Failed to load question bank", path=self.path, error=str(e))
            return {}

    def initial_tier(self, candidate: CandidateInfo) -> str:
        """Resume-based starting tier."""
        skills = [s.lower() for s in candidate.skills]

        if candidate.experience_level == ExperienceLevel.BEGINNER or len(skills) < 2:
            return "beginner"
        if candidate.experience_level == ExperienceLevel.ADVANCED or any(
            marker in skill for skill in skills for marker in ADVANCED_SKILL_MARKERS
        ):
            return "advanced"
        return "intermediate"

    def adjust_tier(self, tier: str, history: List[ConversationTurn]) -> str:
        """Move one tier up or down based on the trailing score average."""
        if not history:
            return tier

        recent = [turn.score for turn in history[-TRAILING_WINDOW:]]
        average = sum(recent) / len(recent)
        index = TIERS.index(tier)

        if average > ESCALATE_ABOVE and index < len(TIERS) - 1:
            return TIERS[index + 1]
        if average < DEESCALATE_BELOW and index > 0:
            return TIERS[index - 1]
        return tier

    def current_tier(self, candidate: CandidateInfo, history: List[ConversationTurn]) -> str:
        return self.adjust_tier(self.initial_tier(candidate), history)

    def select_next_question(self, candidate: CandidateInfo, history: List[ConversationTurn]) -> str:
        """Deterministic pick: the tier's list indexed by the number of completed turns."""
        tier = self.current_tier(candidate, history)
        questions = self.questions.get(tier) or []
        if not questions:
            logger.warning("No questions available for tier", tier=tier)
            return FALLBACK_QUESTION

        question = questions[len(history) % len(questions)]
        logger.info("Question selected", tier=tier, turn=len(history) + 1)
        return question
