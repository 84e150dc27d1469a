"""Score aggregation shared by the interview engine and the reports."""
from typing import List, Sequence

from voice_interviewer.database.schemas import ConversationTurn, OverallScores

# Weights applied to the per-dimension averages.
SCORE_WEIGHTS = {
    "technical": 0.4,
    "communication": 0.2,
    "problem_solving": 0.3,
    "completeness": 0.1,
}

# (threshold, label), checked top-down.
PERFORMANCE_BRACKETS = [
    (8.5, "exceptional"),
    (7.0, "very good"),
    (5.0, "satisfactory"),
    (3.0, "needs improvement"),
    (0.0, "requires substantial development"),
]

MIN_SCORE = 0.0
MAX_SCORE = 10.0


def clamp_score(value, default: float = 0.0) -> float:
    """Coerce to float and clamp into [0, 10]; unparseable values become ``default``."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = default
    if number != number:  # NaN
        number = default
    return max(MIN_SCORE, min(MAX_SCORE, number))


def weighted_overall(technical: float, communication: float, problem_solving: float, completeness: float) -> float:
    return (
        technical * SCORE_WEIGHTS["technical"]
        + communication * SCORE_WEIGHTS["communication"]
        + problem_solving * SCORE_WEIGHTS["problem_solving"]
        + completeness * SCORE_WEIGHTS["completeness"]
    )


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def compute_overall_scores(history: List[ConversationTurn]) -> OverallScores:
    """Recompute the aggregate scores from the full conversation history."""
    if not history:
        return OverallScores()

    technical = _mean([turn.evaluation.technical for turn in history])
    communication = _mean([turn.evaluation.communication for turn in history])
    problem_solving = _mean([turn.evaluation.practical for turn in history])
    completeness = _mean([turn.evaluation.completeness for turn in history])

    return OverallScores(
        technical=technical,
        communication=communication,
        problem_solving=problem_solving,
        completeness=completeness,
        overall=weighted_overall(technical, communication, problem_solving, completeness),
    )


def performance_bracket(score: float) -> str:
    for threshold, label in PERFORMANCE_BRACKETS:
        if score >= threshold:
            return label
    return PERFORMANCE_BRACKETS[-1][1]
