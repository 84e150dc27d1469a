"""Speech-to-text and text-to-speech bridge."""
import base64
import io
import wave
from array import array
from dataclasses import dataclass
from typing import Optional

import httpx
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from voice_interviewer.config import settings
from voice_interviewer.llm_service import HEDGE_PHRASES, LLMService, count_keywords, llm_service, matches_any

logger = structlog.get_logger()

# stability / similarity_boost / style per kind of utterance
VOICE_PRESETS = {
    "introduction": {"stability": 0.75, "similarity_boost": 0.80, "style": 0.25, "use_speaker_boost": True},
    "question": {"stability": 0.65, "similarity_boost": 0.75, "style": 0.40, "use_speaker_boost": True},
    "feedback": {"stability": 0.70, "similarity_boost": 0.75, "style": 0.30, "use_speaker_boost": True},
    "completion": {"stability": 0.80, "similarity_boost": 0.80, "style": 0.20, "use_speaker_boost": True},
}

PLACEHOLDER_SAMPLE_RATE = 16000
PLACEHOLDER_SECONDS = 0.5

TRANSCRIBE_PROMPT = (
    "Please transcribe this audio to text. Only return the transcribed text, "
    "no additional commentary or formatting."
)


class TranscriptionError(RuntimeError):
    """The transcription provider failed."""


@dataclass
class Transcription:
    text: str
    confidence: float


@dataclass
class AudioValidation:
    is_valid: bool
    reason: Optional[str] = None


def silent_placeholder() -> bytes:
    """Half a second of 16 kHz mono 16-bit silence as a WAV file."""
    frames = int(PLACEHOLDER_SAMPLE_RATE * PLACEHOLDER_SECONDS)
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(PLACEHOLDER_SAMPLE_RATE)
        wav.writeframes(b"\x00\x00" * frames)
    return buffer.getvalue()


def audio_mime_type(audio: bytes) -> str:
    if audio[:4] == b"RIFF" and audio[8:12] == b"WAVE":
        return "audio/wav"
    return "audio/mpeg"


def estimate_confidence(text: str) -> float:
    """Heuristic transcription reliability in [0, 1]."""
    text = (text or "").strip()
    if not text:
        return 0.0

    words = text.split()
    confidence = 0.5
    if len(words) >= 5:
        confidence += 0.2
    if len(words) >= 20:
        confidence += 0.1
    if count_keywords(text) > 0:
        confidence += 0.1
    if matches_any(text, HEDGE_PHRASES):
        confidence -= 0.2
    return round(max(0.1, min(1.0, confidence)), 2)


def _wav_has_signal(audio: bytes, threshold: int) -> Optional[bool]:
    """True/False for PCM16 WAV data, None when the buffer is not readable as such."""
    try:
        with wave.open(io.BytesIO(audio), "rb") as wav:
            if wav.getsampwidth() != 2:
                return None
            frames = wav.readframes(wav.getnframes())
    except (wave.Error, EOFError):
        return None

    samples = array("h")
    samples.frombytes(frames[: len(frames) - len(frames) % 2])
    return any(abs(sample) >= threshold for sample in samples)


class SpeechService:
    def __init__(
        self,
        llm: Optional[LLMService] = None,
        api_key: Optional[str] = None,
        min_audio_bytes: Optional[int] = None,
    ):
        self.llm = llm or llm_service
        self.api_key = api_key if api_key is not None else settings.ELEVENLABS_API_KEY
        self.voice_id = settings.ELEVENLABS_VOICE_ID
        self.tts_model = settings.ELEVENLABS_MODEL
        self.tts_url = settings.ELEVENLABS_API_URL
        self.min_audio_bytes = min_audio_bytes if min_audio_bytes is not None else settings.MIN_AUDIO_BYTES
        self.silence_amplitude = settings.SILENCE_AMPLITUDE

    def validate_audio_buffer(self, audio: bytes) -> AudioValidation:
        if not audio or len(audio) < self.min_audio_bytes:
            return AudioValidation(False, "Audio too short, likely silence")

        if audio[:4] == b"RIFF":
            has_signal = _wav_has_signal(audio, self.silence_amplitude)
            if has_signal is False:
                return AudioValidation(False, "No speech detected in audio")
            if has_signal is True:
                return AudioValidation(True)

        if len(set(audio)) <= 1:
            return AudioValidation(False, "No speech detected in audio")
        return AudioValidation(True)

    async def speech_to_text(self, audio: bytes, mime_type: str = "audio/webm") -> Transcription:
        if not audio or len(audio) < self.min_audio_bytes:
            logger.info("Audio below minimum size, treating as silence", size=len(audio or b""))
            return Transcription(text="", confidence=0.0)

        parts = [
            {"inlineData": {"mimeType": mime_type, "data": base64.b64encode(audio).decode("ascii")}},
            {"text": TRANSCRIBE_PROMPT},
        ]
        try:
            text = await self.llm.generate_content(parts, max_tokens=1024, temperature=0.0)
        except Exception as e:
            logger.error("Speech to text failed", error=str(e), error_type=type(e).__name__)
            raise TranscriptionError(f"Failed to convert speech to text: {e}") from e

        text = text.strip()
        confidence = estimate_confidence(text)
        logger.info("Speech to text result", characters=len(text), confidence=confidence)
        return Transcription(text=text, confidence=confidence)

    @retry(
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.ConnectError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=8),
        reraise=True,
    )
    async def _elevenlabs_generate(self, text: str, response_type: str) -> bytes:
        url = f"{self.tts_url}/{self.voice_id}"
        headers = {
            "xi-api-key": self.api_key,
            "Content-Type": "application/json",
            "Accept": "audio/mpeg",
        }
        payload = {
            "text": text,
            "model_id": self.tts_model,
            "voice_settings": VOICE_PRESETS.get(response_type, VOICE_PRESETS["question"]),
        }
        async with httpx.AsyncClient(timeout=60) as client:
            response = await client.post(url, headers=headers, json=payload)
            response.raise_for_status()
            return response.content

    async def text_to_speech(self, text: str, response_type: str = "question") -> bytes:
        """Synthesised speech, or a silent placeholder when the provider is unavailable."""
        if not self.api_key:
            logger.info("TTS provider not configured, using silent placeholder", response_type=response_type)
            return silent_placeholder()

        try:
            audio = await self._elevenlabs_generate(text, response_type)
        except Exception as e:
            logger.error("Text to speech failed", response_type=response_type, error=str(e))
            return silent_placeholder()

        if not audio:
            logger.warning("TTS provider returned empty audio", response_type=response_type)
            return silent_placeholder()
        logger.info("Voice generated", response_type=response_type, size=len(audio))
        return audio
