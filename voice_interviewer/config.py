"""Configuration for the Excel Voice Interviewer."""
import os
from dotenv import load_dotenv

load_dotenv()


def _as_bool(value: str) -> bool:
    return str(value).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    # Database
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./excel_interviewer.db")

    # LLM
    LLM_PROVIDER = os.getenv("LLM_PROVIDER", "gemini")  # gemini | ollama
    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
    GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
    GEMINI_API_URL = os.getenv(
        "GEMINI_API_URL", "https://generativelanguage.googleapis.com/v1beta/models"
    )
    LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", 60))

    # Ollama
    OLLAMA_API_URL = os.getenv("OLLAMA_API_URL", "http://localhost:11434/api/generate")
    OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "llama2")

    # ElevenLabs
    ELEVENLABS_API_KEY = os.getenv("ELEVENLABS_API_KEY")
    ELEVENLABS_VOICE_ID = os.getenv("ELEVENLABS_VOICE_ID", "21m00Tcm4TlvDq8ikWAM")
    ELEVENLABS_MODEL = os.getenv("ELEVENLABS_MODEL", "eleven_multilingual_v2")
    ELEVENLABS_API_URL = os.getenv("ELEVENLABS_API_URL", "https://api.elevenlabs.io/v1/text-to-speech")

    # Session store
    REDIS_URL = os.getenv("REDIS_URL", "")
    SESSION_TTL_SECONDS = int(os.getenv("SESSION_TTL_SECONDS", 3600))

    # Interview Settings
    TOTAL_QUESTIONS = int(os.getenv("TOTAL_QUESTIONS", 8))
    MIN_AUDIO_BYTES = int(os.getenv("MIN_AUDIO_BYTES", 1000))
    SILENCE_AMPLITUDE = int(os.getenv("SILENCE_AMPLITUDE", 500))
    MAX_RESUME_BYTES = int(os.getenv("MAX_RESUME_BYTES", 10 * 1024 * 1024))

    # HR access
    HR_EMAIL = os.getenv("HR_EMAIL", "")
    HR_PASSWORD = os.getenv("HR_PASSWORD", "")

    # Email delivery
    SMTP_HOST = os.getenv("SMTP_HOST", "")
    SMTP_PORT = int(os.getenv("SMTP_PORT", 587))
    SMTP_USER = os.getenv("SMTP_USER", "")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
    SMTP_USE_TLS = _as_bool(os.getenv("SMTP_USE_TLS", "true"))
    SMTP_FROM = os.getenv("SMTP_FROM", "Excel Skills Assessment <no-reply@localhost>")
    FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

    # App Settings
    DEBUG = _as_bool(os.getenv("DEBUG", "true"))
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    HOST = os.getenv("HOST", "0.0.0.0")
    PORT = int(os.getenv("PORT", 8000))
    CORS_ORIGINS = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
        if origin.strip()
    ]

    # File Paths
    PACKAGE_ROOT = os.path.dirname(os.path.abspath(__file__))
    QUESTION_BANK_PATH = os.getenv(
        "QUESTION_BANK_PATH", os.path.join(PACKAGE_ROOT, "data", "questions.json")
    )

settings = Settings()
