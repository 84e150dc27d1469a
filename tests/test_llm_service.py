"""Tests for answer evaluation and provider calls."""
import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from conftest import GOOD_ANSWER
from voice_interviewer.database.schemas import CandidateInfo, OverallScores
from voice_interviewer.llm_service import LLMError, LLMService, count_keywords, is_dont_know, lacks_experience

SCORE_FIELDS = ("score", "technical", "practical", "communication", "completeness")


class TestPhraseMatching:

    def test_dont_know_variants(self):
        assert is_dont_know("I don't know")
        assert is_dont_know("Honestly I’m not sure about that")
        assert not is_dont_know("I know VLOOKUP well")

    def test_dont_know_matches_whole_phrases(self):
        assert not is_dont_know("There is no ideal single formula for this")
        assert not is_dont_know("Make sure the range is not surely fixed")

    def test_lack_of_experience_is_separate(self):
        assert lacks_experience("I have never used pivot tables")
        assert not is_dont_know("I have never used pivot tables")

    def test_keywords_match_whole_words(self):
        assert count_keywords("It is difficult") == 0
        assert count_keywords("Use IF inside a formula") == 2


class TestFallbackEvaluation:

    def setup_method(self):
        self.service = LLMService(provider="gemini", api_key="")

    def test_dont_know_scores_zero(self):
        result = asyncio.run(self.service.evaluate_answer("What is VLOOKUP?", "I don't know"))
        assert result.source == "fallback"
        assert result.score == 0
        assert result.technical == 0
        assert result.communication == 1
        assert all(getattr(result, f) <= 1 for f in SCORE_FIELDS)

    def test_no_experience_scores_zero(self):
        result = asyncio.run(self.service.evaluate_answer("q", "I have never used pivot tables at work"))
        assert result.score == 0

    def test_short_answer_scores_zero(self):
        result = asyncio.run(self.service.evaluate_answer("q", "Sum it"))
        assert result.score == 0

    def test_keyword_length_and_example_bonuses(self):
        result = asyncio.run(self.service.evaluate_answer("What is VLOOKUP?", GOOD_ANSWER))
        # base 1 + 5 keywords * 0.5 + 2 length + 1 example
        assert result.score == pytest.approx(6.5)
        assert result.technical == pytest.approx(6.5)
        assert result.practical == pytest.approx(5.5)
        assert result.communication == pytest.approx(7.5)
        assert result.completeness == pytest.approx(5.5)

    def test_hedging_is_penalised_and_clamped(self):
        result = asyncio.run(self.service.evaluate_answer("q", "I think maybe you use a formula"))
        assert result.score == 0

    def test_low_confidence_deducts_a_point(self):
        result = asyncio.run(self.service.evaluate_answer("What is VLOOKUP?", GOOD_ANSWER, confidence=0.3))
        assert result.score == pytest.approx(5.5)
        assert "audio quality" in result.feedback


class TestLLMEvaluation:

    def setup_method(self):
        self.service = LLMService(provider="gemini", api_key="test-key")

    def _evaluate(self, reply, answer=GOOD_ANSWER):
        with patch.object(self.service, "complete", new=AsyncMock(return_value=reply)):
            return asyncio.run(self.service.evaluate_answer("What is VLOOKUP?", answer))

    def test_parses_fenced_json_and_defaults_missing_dimensions(self):
        result = self._evaluate('```json\n{"score": 8, "technical": 9, "feedback": "Solid"}\n```')
        assert result.source == "llm"
        assert result.score == 8
        assert result.technical == 9
        assert result.practical == 8
        assert result.completeness == 8
        assert result.feedback == "Solid"

    def test_scores_are_clamped(self):
        result = self._evaluate('{"score": 15, "technical": -3, "practical": 4, "communication": 5, "completeness": 6}')
        assert result.score == 10
        assert result.technical == 0

    def test_dont_know_is_capped_on_llm_path(self):
        result = self._evaluate('{"score": 7, "technical": 7, "practical": 7, "communication": 8, "completeness": 7}',
                                answer="I don't know, sorry")
        assert all(getattr(result, f) <= 1 for f in SCORE_FIELDS)

    def test_near_miss_wording_is_not_capped(self):
        reply = '{"score": 9, "technical": 9, "practical": 9, "communication": 9, "completeness": 9}'
        ideal = self._evaluate(reply, answer=(
            "There is no ideal single formula here; I would combine INDEX and MATCH, "
            "for example to look up a price by product and region."
        ))
        switched = self._evaluate(reply, answer="I've never used VLOOKUP since XLOOKUP handles left lookups.")
        assert ideal.score == 9
        assert switched.score == 9

    def test_unparseable_reply_falls_back(self):
        result = self._evaluate("I cannot grade this")
        assert result.source == "fallback"

    def test_provider_error_falls_back(self):
        with patch.object(self.service, "complete", new=AsyncMock(side_effect=LLMError("down"))):
            result = asyncio.run(self.service.evaluate_answer("q", GOOD_ANSWER))
        assert result.source == "fallback"
        assert result.score == pytest.approx(6.5)


class TestGenerateContent:

    def test_requires_api_key(self):
        service = LLMService(provider="gemini", api_key="")
        with pytest.raises(LLMError):
            asyncio.run(service.generate_content([{"text": "hi"}]))

    def test_joins_candidate_parts(self):
        service = LLMService(provider="gemini", api_key="test-key")
        response = MagicMock()
        response.json.return_value = {
            "candidates": [{"content": {"parts": [{"text": "Hello "}, {"text": "there"}]}}]
        }
        client = MagicMock()
        client.post = AsyncMock(return_value=response)

        with patch("voice_interviewer.llm_service.httpx.AsyncClient") as client_cls:
            client_cls.return_value.__aenter__.return_value = client
            content = asyncio.run(service.generate_content([{"text": "hi"}]))

        assert content == "Hello there"
        _, kwargs = client.post.call_args
        assert kwargs["params"] == {"key": "test-key"}
        assert kwargs["json"]["contents"][0]["parts"] == [{"text": "hi"}]

    def test_empty_candidates_raise(self):
        service = LLMService(provider="gemini", api_key="test-key")
        response = MagicMock()
        response.json.return_value = {"candidates": []}
        client = MagicMock()
        client.post = AsyncMock(return_value=response)

        with patch("voice_interviewer.llm_service.httpx.AsyncClient") as client_cls:
            client_cls.return_value.__aenter__.return_value = client
            with pytest.raises(LLMError):
                asyncio.run(service.generate_content([{"text": "hi"}]))


class TestOllama:

    def _client(self, body):
        response = MagicMock()
        response.json.return_value = body
        client = MagicMock()
        client.post = AsyncMock(return_value=response)
        return client

    def test_complete_posts_to_ollama(self):
        service = LLMService(provider="ollama", api_key="")
        client = self._client({"response": "  {\"score\": 6}  "})

        with patch("voice_interviewer.llm_service.httpx.AsyncClient") as client_cls:
            client_cls.return_value.__aenter__.return_value = client
            content = asyncio.run(service.complete("grade this", max_tokens=100))

        assert service.is_configured
        assert content == '{"score": 6}'
        url = client.post.call_args[0][0]
        payload = client.post.call_args[1]["json"]
        assert url == service.ollama_url
        assert payload["prompt"] == "grade this"
        assert payload["options"]["num_predict"] == 100
        assert payload["stream"] is False

    def test_empty_response_raises(self):
        service = LLMService(provider="ollama", api_key="")
        client = self._client({"response": ""})

        with patch("voice_interviewer.llm_service.httpx.AsyncClient") as client_cls:
            client_cls.return_value.__aenter__.return_value = client
            with pytest.raises(LLMError):
                asyncio.run(service.complete("grade this"))

    def test_transcription_still_needs_gemini_key(self):
        service = LLMService(provider="ollama", api_key="")
        with pytest.raises(LLMError):
            asyncio.run(service.generate_content([{"text": "transcribe"}]))


class TestTemplates:

    def test_introduction_mentions_candidate(self):
        service = LLMService(api_key="")
        text = service.generate_introduction(CandidateInfo(name="Priya", skills=["vlookup"]), 8)
        assert "Priya" in text
        assert "8 questions" in text
        assert "vlookup" in text

    def test_closing_remarks_use_bracket(self):
        service = LLMService(api_key="")
        text = service.generate_closing_remarks(OverallScores(overall=7.2), 8)
        assert "VERY GOOD" in text
        assert "7.2 out of 10" in text
        assert "Questions completed: 8" in text
