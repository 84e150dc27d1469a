"""Shared fixtures; the environment is pinned before the package is imported."""
import io
import os
import tempfile
import wave
from array import array

_TMP_DIR = tempfile.mkdtemp(prefix="voice_interviewer_tests_")

os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["LLM_PROVIDER"] = "gemini"
os.environ["GEMINI_API_KEY"] = ""
os.environ["ELEVENLABS_API_KEY"] = ""
os.environ["REDIS_URL"] = ""
os.environ["SMTP_HOST"] = ""
os.environ["HR_EMAIL"] = "hr@example.com"
os.environ["HR_PASSWORD"] = "correct-horse"
os.environ["TOTAL_QUESTIONS"] = "8"

import pytest  # noqa: E402

from voice_interviewer.database.schemas import CandidateInfo, ExperienceLevel  # noqa: E402
from voice_interviewer.interview_engine import InterviewManager  # noqa: E402
from voice_interviewer.llm_service import LLMService  # noqa: E402
from voice_interviewer.question_bank import QuestionBank  # noqa: E402
from voice_interviewer.session_store import MemorySessionStore  # noqa: E402
from voice_interviewer.speech_service import SpeechService  # noqa: E402

GOOD_ANSWER = (
    "VLOOKUP is a function that searches for a value in the first column of a range and "
    "returns a value from another column. For example, I use it to match employee IDs to "
    "salaries across two worksheets in a workbook."
)


class FakeChannel:
    """Collects emitted events in order."""

    def __init__(self, channel_id: str = "conn-1"):
        self.id = channel_id
        self.events = []

    async def emit(self, event, data):
        self.events.append((event, data))

    def names(self):
        return [event for event, _ in self.events]

    def last(self, name):
        for event, data in reversed(self.events):
            if event == name:
                return data
        return None

    def clear(self):
        self.events = []


def tone_wav(samples: int = 2000, amplitude: int = 3000) -> bytes:
    pcm = array("h", [amplitude if i % 2 else -amplitude for i in range(samples)])
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(16000)
        wav.writeframes(pcm.tobytes())
    return buffer.getvalue()


@pytest.fixture
def llm():
    return LLMService(provider="gemini", api_key="")


@pytest.fixture
def speech(llm):
    return SpeechService(llm=llm, api_key="")


@pytest.fixture
def store():
    return MemorySessionStore(ttl_seconds=3600)


@pytest.fixture
def manager(store, llm, speech):
    return InterviewManager(store, llm=llm, speech=speech, question_bank=QuestionBank(), total_questions=8)


@pytest.fixture
def beginner():
    return CandidateInfo(name="Jane Doe", email="jane.doe@example.com", skills=[], experience_level=ExperienceLevel.BEGINNER)


@pytest.fixture
def channel():
    return FakeChannel()
