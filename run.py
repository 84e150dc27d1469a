"""Simple script to run the Excel Voice Interviewer API."""
import uvicorn

from voice_interviewer.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "voice_interviewer.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
