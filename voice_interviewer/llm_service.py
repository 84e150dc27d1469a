"""LLM service for answer evaluation, with keyword-based fallback scoring."""
import httpx
import json
import re
from typing import Dict, List, Optional
from pydantic import BaseModel, ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type
import structlog

from voice_interviewer.config import settings
from voice_interviewer.database.schemas import AnswerEvaluation, CandidateInfo, OverallScores
from voice_interviewer.scoring import clamp_score, performance_bracket

logger = structlog.get_logger()

DONT_KNOW_PHRASES = [
    "i don't know",
    "i dont know",
    "i do not know",
    "i'm not sure",
    "i'm not aware",
    "no idea",
    "not sure",
]

# Lack of experience zeroes a heuristic score but does not cap an LLM grade
NO_EXPERIENCE_PHRASES = [
    "not familiar",
    "don't have experience",
    "never used",
]

HEDGE_PHRASES = ["i think", "maybe", "probably", "i guess", "might be"]

EXAMPLE_PHRASES = ["example", "examples", "for instance", "such as"]

EXCEL_KEYWORDS = [
    "formula", "function", "cell", "range", "pivot", "vlookup", "chart", "data",
    "worksheet", "workbook", "sum", "count", "if", "index", "match", "filter",
    "conditional", "formatting", "macro", "vba",
]

LOW_CONFIDENCE = 0.5

FALLBACK_INTRODUCTION = (
    "Hello! Welcome to your Excel skills assessment. I'll be asking you several "
    "questions about Excel. Please answer to the best of your ability."
)

FALLBACK_CLOSING = (
    "Thank you for completing the Excel skills assessment. "
    "Your detailed report will be available shortly."
)


class LLMError(RuntimeError):
    """Raised when the completion provider cannot produce a usable reply."""


# Response model for type safety
class LLMEvaluation(BaseModel):
    score: float
    technical: Optional[float] = None
    practical: Optional[float] = None
    communication: Optional[float] = None
    completeness: Optional[float] = None
    feedback: str = ""
    strengths: List[str] = []
    improvements: List[str] = []
    keyMissing: List[str] = []


def matches_any(text: str, phrases: List[str]) -> bool:
    lowered = text.lower().replace("’", "'")
    return any(re.search(r"\b" + re.escape(phrase) + r"\b", lowered) for phrase in phrases)


def is_dont_know(answer: str) -> bool:
    return matches_any(answer, DONT_KNOW_PHRASES)


def lacks_experience(answer: str) -> bool:
    return matches_any(answer, NO_EXPERIENCE_PHRASES)


def count_keywords(text: str, keywords: List[str] = EXCEL_KEYWORDS) -> int:
    lowered = text.lower()
    return sum(1 for kw in keywords if re.search(r"\b" + re.escape(kw) + r"\b", lowered))


class LLMService:
    def __init__(self, provider: Optional[str] = None, api_key: Optional[str] = None):
        self.provider = (provider or settings.LLM_PROVIDER).lower()
        self.api_key = api_key if api_key is not None else settings.GEMINI_API_KEY
        self.gemini_model = settings.GEMINI_MODEL
        self.gemini_url = settings.GEMINI_API_URL
        self.ollama_model = settings.OLLAMA_MODEL
        self.ollama_url = settings.OLLAMA_API_URL
        self.timeout = settings.LLM_TIMEOUT

    @property
    def is_configured(self) -> bool:
        if self.provider == "ollama":
            return bool(self.ollama_url)
        return bool(self.api_key)

    @retry(
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.ConnectError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=10),
        reraise=True,
    )
    async def generate_content(self, parts: List[Dict], max_tokens: int = 512, temperature: float = 0.3) -> str:
        """Gemini generateContent call; ``parts`` may mix text and inline audio data."""
        if not self.api_key:
            raise LLMError("Gemini API key not configured")

        url = f"{self.gemini_url}/{self.gemini_model}:generateContent"
        payload = {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": {"temperature": temperature, "maxOutputTokens": max_tokens},
        }

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                logger.info("Making LLM request", provider="gemini", model=self.gemini_model, parts=len(parts))
                response = await client.post(url, params={"key": self.api_key}, json=payload)
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as e:
                logger.error("LLM HTTP error", status_code=e.response.status_code, response=e.response.text[:500])
                raise

        try:
            content = "".join(
                part.get("text", "") for part in data["candidates"][0]["content"]["parts"]
            ).strip()
        except (KeyError, IndexError, TypeError):
            logger.error("Gemini returned no candidates", data=str(data)[:500])
            raise LLMError("Empty response from LLM")

        if not content:
            raise LLMError("Empty response from LLM")
        logger.info("LLM response received", response_length=len(content))
        return content

    @retry(
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.ConnectError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=10),
        reraise=True,
    )
    async def _ollama_generate(self, prompt: str, max_tokens: int = 512, temperature: float = 0.3) -> str:
        payload = {
            "model": self.ollama_model,
            "prompt": prompt,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens,
                "top_k": 40,
                "top_p": 0.9
            },
            "stream": False
        }

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                logger.info("Making LLM request", provider="ollama", model=self.ollama_model, prompt_length=len(prompt))
                response = await client.post(self.ollama_url, json=payload)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                logger.error("LLM HTTP error", status_code=e.response.status_code, response=e.response.text[:500])
                raise

            data = response.json()
            if not data.get("response"):
                logger.error("Ollama returned empty response", data=data)
                raise LLMError("Empty response from LLM")

            content = data["response"].strip()
            logger.info("LLM response received", response_length=len(content))
            return content

    async def complete(self, prompt: str, max_tokens: int = 512, temperature: float = 0.3) -> str:
        if self.provider == "ollama":
            return await self._ollama_generate(prompt, max_tokens=max_tokens, temperature=temperature)
        return await self.generate_content([{"text": prompt}], max_tokens=max_tokens, temperature=temperature)

    def _extract_json_from_response(self, content: str) -> Optional[Dict]:
        """Extract a JSON object from an LLM reply."""
        try:
            parsed = json.loads(content)
            if isinstance(parsed, dict):
                return parsed
        except ValueError:
            pass
        if '```json' in content:
            start = content.find('```json') + 7
            end = content.find('```', start)
            try:
                parsed = json.loads(content[start:end].strip())
                if isinstance(parsed, dict):
                    return parsed
            except ValueError:
                pass
        match = re.search(r'\{.*\}', content, re.DOTALL)
        if match:
            try:
                return json.loads(match.group(0))
            except ValueError:
                pass
        logger.warning("Could not extract JSON from LLM response", content_preview=content[:200])
        return None

    async def evaluate_answer(self, question: str, answer: str, confidence: float = 1.0) -> AnswerEvaluation:
        """Score an answer on the 0-10 rubric. Never raises."""
        evaluation = None

        if self.is_configured:
            try:
                content = await self.complete(
                    self._build_evaluation_prompt(question, answer, confidence),
                    max_tokens=800,
                    temperature=0.2,
                )
                evaluation = self._parse_evaluation(content)
            except Exception as e:
                logger.error("LLM evaluation failed", error=str(e), error_type=type(e).__name__)

        if evaluation is None:
            evaluation = self._fallback_evaluation(answer)

        return self._finalize(evaluation, answer, confidence)

    def _parse_evaluation(self, content: str) -> Optional[AnswerEvaluation]:
        data = self._extract_json_from_response(content)
        if not data:
            return None
        try:
            result = LLMEvaluation(**data)
        except ValidationError as e:
            logger.warning("Evaluation validation failed", error=str(e))
            return None

        score = clamp_score(result.score)
        return AnswerEvaluation(
            score=score,
            technical=clamp_score(result.technical, score) if result.technical is not None else score,
            practical=clamp_score(result.practical, score) if result.practical is not None else score,
            communication=clamp_score(result.communication, score) if result.communication is not None else score,
            completeness=clamp_score(result.completeness, score) if result.completeness is not None else score,
            feedback=result.feedback[:1000],
            strengths=result.strengths,
            improvements=result.improvements,
            key_missing=result.keyMissing,
            source="llm",
        )

    def _finalize(self, evaluation: AnswerEvaluation, answer: str, confidence: float) -> AnswerEvaluation:
        if confidence < LOW_CONFIDENCE:
            evaluation.score = evaluation.score - 1
            evaluation.feedback += (
                f" Note: audio quality was poor (confidence: {confidence:.2f}), "
                "which may have affected transcription accuracy."
            )

        cap = 1.0 if is_dont_know(answer) else 10.0
        for field in ("score", "technical", "practical", "communication", "completeness"):
            setattr(evaluation, field, min(cap, clamp_score(getattr(evaluation, field))))
        return evaluation

    def _build_evaluation_prompt(self, question: str, answer: str, confidence: float) -> str:
        return f"""You are a senior Excel expert conducting a professional skills assessment. Evaluate this candidate's response with strict professional standards.

QUESTION: {question}

CANDIDATE'S ANSWER: {answer}

TRANSCRIPTION CONFIDENCE: {confidence:.2f} (1.0 = perfect, 0.1 = poor audio quality)

EVALUATION CRITERIA:
1. Technical Accuracy (40%): Is the information technically correct and complete?
2. Practical Knowledge (30%): Does the candidate show real-world understanding and experience?
3. Communication Clarity (20%): Is the explanation clear, structured, and professional?
4. Completeness (10%): Does the answer fully address all aspects of the question?

SCORING GUIDELINES (0-10):
- 9-10: Exceptional answer with perfect technical accuracy and excellent examples
- 7-8: Very good answer with minor gaps
- 5-6: Adequate answer but missing key points or lacking depth
- 3-4: Basic understanding with significant gaps or errors
- 1-2: Poor answer with major inaccuracies
- 0: No relevant answer, "I don't know", or unintelligible

SPECIAL RULES:
- If the candidate says "I don't know" or "I'm not sure", the maximum score is 1
- Vague answers without specifics score at most 4
- Reduce the score by 1-2 points for uncertainty such as "I think", "maybe", "probably"

Respond ONLY with valid JSON in this exact format:
{{
  "score": 7.5,
  "technical": 8.0,
  "practical": 7.0,
  "communication": 8.0,
  "completeness": 7.0,
  "feedback": "Professional feedback explaining the score",
  "strengths": ["strength 1"],
  "improvements": ["improvement 1"],
  "keyMissing": ["missing concept 1"]
}}"""

    def _fallback_evaluation(self, answer: str) -> AnswerEvaluation:
        """Keyword and length heuristic used when the LLM is unavailable."""
        answer_lower = answer.lower().strip()

        if is_dont_know(answer_lower) or lacks_experience(answer_lower) or len(answer_lower) < 10:
            return AnswerEvaluation(
                score=0,
                technical=0,
                practical=0,
                communication=1,
                completeness=0,
                feedback=(
                    "The candidate indicated they don't know the answer or provided insufficient "
                    "information. Honesty is appreciated, but this shows a knowledge gap in this Excel concept."
                ),
                strengths=["Honest about knowledge limitations"],
                improvements=["Study this Excel concept thoroughly", "Practice with hands-on examples"],
                key_missing=["Understanding of the concept", "Practical examples"],
                source="fallback",
            )

        score = 1.0
        score += min(count_keywords(answer_lower) * 0.5, 3)
        if len(answer) > 50:
            score += 1
        if len(answer) > 150:
            score += 1
        if matches_any(answer_lower, EXAMPLE_PHRASES):
            score += 1
        if matches_any(answer_lower, HEDGE_PHRASES):
            score -= 2
        score = clamp_score(score)

        if score >= 6:
            quality = "good"
            advice = "Good foundation, but could be enhanced with more depth and specific examples."
        else:
            quality = "basic" if score >= 3 else "limited"
            advice = ("To improve, provide more specific technical details, step-by-step "
                      "explanations, and real-world examples.")

        return AnswerEvaluation(
            score=score,
            technical=score,
            practical=max(score - 1, 0),
            communication=min(score + 1, 10),
            completeness=max(score - 1, 0),
            feedback=f"Your response shows {quality} understanding. {advice}",
            strengths=["Relevant content", "Clear communication"] if score >= 6 else ["Attempted to answer"],
            improvements=["Add more technical detail", "Provide specific examples"],
            key_missing=["More technical specifics", "Practical examples"],
            source="fallback",
        )

    def generate_introduction(self, candidate: CandidateInfo, total_questions: int) -> str:
        try:
            skills = ", ".join(candidate.skills[:3]) if candidate.skills else "basic Excel operations"
            return (
                f"Namaste {candidate.name}! Welcome to your Excel skills assessment.\n\n"
                f"I'm your AI interviewer. This interview consists of {total_questions} questions "
                "about Excel concepts and real-world scenarios.\n\n"
                f"Based on your resume, you have experience with {skills}, and your experience "
                f"level appears to be {candidate.experience_level.value}.\n\n"
                "Please give detailed answers with specific examples from your work, and explain your "
                "thought process step by step. If you don't know something, say so. Honesty is valued "
                "over guessing.\n\n"
                "Your answers are scored from 0 to 10 on technical accuracy, practical knowledge, "
                "communication and completeness, and you'll see your scores update after each question.\n\n"
                "Let's start with our first question."
            )
        except Exception as e:
            logger.error("Introduction generation failed", error=str(e))
            return FALLBACK_INTRODUCTION

    def generate_closing_remarks(self, scores: OverallScores, question_count: int) -> str:
        try:
            overall = scores.overall
            bracket = performance_bracket(overall)
            return (
                "Thank you for completing this Excel skills assessment!\n\n"
                f"Overall performance: {bracket.upper()}\n"
                f"Final score: {overall:.1f} out of 10\n"
                f"Questions completed: {question_count}\n\n"
                f"{CLOSING_FEEDBACK[bracket]}\n\n"
                "Your detailed report with question-by-question feedback is now available for download."
            )
        except Exception as e:
            logger.error("Closing remarks generation failed", error=str(e))
            return FALLBACK_CLOSING


CLOSING_FEEDBACK = {
    "exceptional": (
        "You demonstrated outstanding Excel expertise with comprehensive knowledge and excellent "
        "practical understanding. Consider advanced certifications or specialising in analytics."
    ),
    "very good": (
        "You showed strong Excel knowledge with good technical understanding. Focus on the "
        "improvement areas in your report to reach expert level."
    ),
    "satisfactory": (
        "You have a decent foundation in Excel with room for improvement. Structured training "
        "on the gaps identified in your report is recommended."
    ),
    "needs improvement": (
        "Your Excel knowledge shows significant gaps. A comprehensive course with hands-on "
        "practice on real datasets is recommended."
    ),
    "requires substantial development": (
        "The assessment revealed major gaps in Excel knowledge. Start with beginner-level "
        "courses and dedicate time to hands-on practice."
    ),
}

# Global service instance
llm_service = LLMService()
