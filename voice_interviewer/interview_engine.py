"""Interview engine driving a candidate through the voice interview state machine."""
import base64
import uuid
from typing import Awaitable, Callable, Dict, List, Optional

import structlog

from voice_interviewer.config import settings
from voice_interviewer.database.schemas import (
    CandidateInfo,
    CandidateProfile,
    ConversationTurn,
    InterviewSession,
    SessionState,
)
from voice_interviewer.llm_service import LLMService, llm_service
from voice_interviewer.question_bank import QuestionBank
from voice_interviewer.report_generator import build_html_report, build_pdf_report
from voice_interviewer.scoring import compute_overall_scores
from voice_interviewer.session_store import SessionStore
from voice_interviewer.speech_service import SpeechService, TranscriptionError, audio_mime_type

logger = structlog.get_logger()

MIN_TRANSCRIPT_CHARS = 3

RETRY_PROMPT = "I didn't quite catch that. Could you please answer the question again?"

CompletionHook = Callable[[InterviewSession], Awaitable[None]]


class InterviewManager:
    """Owns the connection map and every state transition of a session.

    A channel is any object exposing an ``id`` attribute and an async
    ``emit(event, data)`` method; the WebSocket route wraps its socket in one.
    """

    def __init__(
        self,
        store: SessionStore,
        llm: Optional[LLMService] = None,
        speech: Optional[SpeechService] = None,
        question_bank: Optional[QuestionBank] = None,
        total_questions: Optional[int] = None,
        completion_hooks: Optional[List[CompletionHook]] = None,
    ):
        self.store = store
        self.llm = llm or llm_service
        self.speech = speech or SpeechService(llm=self.llm)
        self.question_bank = question_bank or QuestionBank()
        self.total_questions = total_questions or settings.TOTAL_QUESTIONS
        self.completion_hooks = list(completion_hooks or [])
        self.channel_sessions: Dict[str, str] = {}

    @property
    def active_connections(self) -> int:
        return len(self.channel_sessions)

    def get_session_id_by_channel(self, channel_id: str) -> Optional[str]:
        return self.channel_sessions.get(channel_id)

    # Session lifecycle

    async def create_session(self, candidate_info: CandidateInfo, resume_uploaded: bool = False) -> InterviewSession:
        session = InterviewSession(
            session_id=str(uuid.uuid4()),
            candidate_info=candidate_info,
            resume_uploaded=resume_uploaded,
        )
        await self.store.save_session(session)
        logger.info(
            "Interview session created",
            session_id=session.session_id,
            candidate=candidate_info.name,
            experience_level=candidate_info.experience_level.value,
        )
        return session

    async def get_session(self, session_id: str) -> Optional[InterviewSession]:
        return await self.store.get_session(session_id)

    async def attach_profile(self, session_id: str, profile: CandidateProfile) -> Optional[InterviewSession]:
        """Replace the candidate info with a parsed resume profile and mark the resume processed."""
        session = await self.store.get_session(session_id)
        if session is None:
            return None

        session.candidate_info = profile.to_candidate_info()
        session.resume_uploaded = True
        session.touch()
        await self.store.save_session(session)
        await self.store.save_candidate(profile)
        logger.info("Resume attached to session", session_id=session_id, skills=len(profile.skills))
        return session

    async def start_interview(self, session_id: str, channel) -> None:
        session = await self.store.get_session(session_id)
        if session is None:
            await self._error(channel, "Session not found")
            return
        if session.current_state != SessionState.CREATED:
            logger.warning("Interview already started", session_id=session_id, state=session.current_state.value)
            await self._error(channel, "Interview already started")
            return
        if not session.resume_uploaded:
            await self._error(channel, "Resume must be processed first")
            return

        self.channel_sessions[channel.id] = session_id
        session.connection_id = channel.id
        session.current_state = SessionState.INTRO
        session.touch()
        await self.store.save_session(session)

        logger.info("Interview started", session_id=session_id, connection_id=channel.id)
        await channel.emit("interview-started", {
            "sessionId": session_id,
            "candidateName": session.candidate_info.name,
            "totalQuestions": self.total_questions,
        })

        introduction = self.llm.generate_introduction(session.candidate_info, self.total_questions)
        await self._speak(channel, introduction, "introduction")
        await channel.emit("ai-message", {"message": introduction, "type": "introduction"})

    async def handle_playback_complete(self, channel) -> None:
        """Advance once the client has finished playing the last utterance."""
        session = await self._session_for(channel)
        if session is None:
            return

        if session.current_state == SessionState.INTRO:
            await self.ask_next_question(session, channel)
        elif session.current_state == SessionState.QUESTIONING:
            session.current_state = SessionState.WAITING_RESPONSE
            session.touch()
            await self.store.save_session(session)
            await channel.emit("start-listening", {"questionNumber": session.question_count + 1})
        else:
            logger.info(
                "Playback signal ignored",
                session_id=session.session_id,
                state=session.current_state.value,
            )

    async def request_question(self, channel) -> None:
        await self.handle_playback_complete(channel)

    async def ask_next_question(self, session: InterviewSession, channel) -> None:
        if session.question_count >= self.total_questions:
            await self.end_interview(session, channel)
            return

        try:
            question = self.question_bank.select_next_question(
                session.candidate_info, session.conversation_history
            )
        except Exception as e:
            logger.error("Question selection failed", session_id=session.session_id, error=str(e))
            # INTRO lets the next playback-complete or request-question retry the selection
            session.current_state = SessionState.INTRO
            session.touch()
            await self.store.save_session(session)
            await self._error(channel, "Failed to generate the next question. Please try again.")
            return

        session.current_question = question
        session.current_state = SessionState.QUESTIONING
        session.touch()
        await self.store.save_session(session)

        question_number = session.question_count + 1
        logger.info("Asking question", session_id=session.session_id, question_number=question_number)
        await self._speak(channel, question, "question")
        await channel.emit("ai-question", {
            "question": question,
            "questionNumber": question_number,
            "totalQuestions": self.total_questions,
        })

    # Answers

    async def process_audio_response(self, channel, audio: bytes, mime_type: str = "audio/webm") -> None:
        session = await self._begin_answer(channel)
        if session is None:
            return

        validation = self.speech.validate_audio_buffer(audio)
        if not validation.is_valid:
            logger.info("Audio rejected", session_id=session.session_id, reason=validation.reason, size=len(audio))
            await self._reject_answer(session, channel, validation.reason)
            return

        try:
            transcription = await self.speech.speech_to_text(audio, mime_type)
        except TranscriptionError as e:
            logger.error("Transcription failed", session_id=session.session_id, error=str(e))
            session.current_state = SessionState.WAITING_RESPONSE
            await self.store.save_session(session)
            await self._error(channel, "Failed to process your audio. Please try again.")
            await channel.emit("start-listening", {"questionNumber": session.question_count + 1})
            return

        if len(transcription.text.strip()) < MIN_TRANSCRIPT_CHARS:
            await self._reject_answer(session, channel, "Transcript too short")
            return

        await self._complete_turn(session, channel, transcription.text.strip(), transcription.confidence)

    async def process_text_response(self, channel, text: str) -> None:
        session = await self._begin_answer(channel)
        if session is None:
            return

        text = text.strip() if isinstance(text, str) else ""
        if len(text) < MIN_TRANSCRIPT_CHARS:
            await self._reject_answer(session, channel, "Answer too short")
            return

        await self._complete_turn(session, channel, text, 1.0)

    async def _begin_answer(self, channel) -> Optional[InterviewSession]:
        session = await self._session_for(channel)
        if session is None:
            return None

        if session.current_state != SessionState.WAITING_RESPONSE:
            logger.warning(
                "Answer received outside waiting-response, ignoring",
                session_id=session.session_id,
                state=session.current_state.value,
            )
            return None

        session.current_state = SessionState.PROCESSING
        session.touch()
        await self.store.save_session(session)
        return session

    async def _reject_answer(self, session: InterviewSession, channel, reason: Optional[str]) -> None:
        session.current_state = SessionState.WAITING_RESPONSE
        session.touch()
        await self.store.save_session(session)
        await channel.emit("ai-message", {"message": RETRY_PROMPT, "type": "retry", "reason": reason})
        await channel.emit("start-listening", {"questionNumber": session.question_count + 1})

    async def _complete_turn(self, session: InterviewSession, channel, answer: str, confidence: float) -> None:
        await channel.emit("stop-listening", {})
        try:
            evaluation = await self.llm.evaluate_answer(session.current_question, answer, confidence)
        except Exception as e:
            logger.error("Answer evaluation failed", session_id=session.session_id, error=str(e))
            session.current_state = SessionState.WAITING_RESPONSE
            session.touch()
            await self.store.save_session(session)
            await self._error(channel, "Failed to evaluate your answer. Please try again.")
            await channel.emit("start-listening", {"questionNumber": session.question_count + 1})
            return

        session.conversation_history.append(ConversationTurn(
            question=session.current_question,
            answer=answer,
            score=evaluation.score,
            evaluation=evaluation.dimensions(),
            feedback=evaluation.feedback,
        ))
        session.question_count += 1
        session.overall_scores = compute_overall_scores(session.conversation_history)
        session.touch()
        await self.store.save_session(session)

        logger.info(
            "Answer scored",
            session_id=session.session_id,
            question_number=session.question_count,
            score=evaluation.score,
            source=evaluation.source,
            overall=round(session.overall_scores.overall, 2),
        )
        await channel.emit("scores-updated", {
            "scores": session.overall_scores.to_payload(),
            "questionCount": session.question_count,
        })
        await channel.emit("question-completed", {
            "questionNumber": session.question_count,
            "score": evaluation.score,
            "feedback": evaluation.feedback,
            "totalQuestions": self.total_questions,
        })

        if session.question_count >= self.total_questions:
            await self.end_interview(session, channel)
        else:
            await self.ask_next_question(session, channel)

    # Completion

    async def stop_interview(self, channel) -> None:
        session = await self._session_for(channel)
        if session is None:
            return
        await self.end_interview(session, channel, reason="stopped")

    async def end_interview(self, session: InterviewSession, channel, reason: str = "completed") -> None:
        if session.current_state == SessionState.COMPLETED:
            await self._emit_completed(session, channel)
            return

        closing = self.llm.generate_closing_remarks(session.overall_scores, session.question_count)
        session.current_state = SessionState.COMPLETED
        session.completed_reason = reason
        session.current_question = ""
        session.touch()
        await self.store.save_session(session)

        logger.info(
            "Interview completed",
            session_id=session.session_id,
            reason=reason,
            question_count=session.question_count,
            overall=round(session.overall_scores.overall, 2),
        )
        await self._speak(channel, closing, "completion")
        await channel.emit("ai-message", {"message": closing, "type": "completion"})
        await self._emit_completed(session, channel)
        await self._run_completion_hooks(session)

    async def _emit_completed(self, session: InterviewSession, channel) -> None:
        await channel.emit("interview-completed", {
            "scores": session.overall_scores.to_payload(),
            "questionCount": session.question_count,
            "sessionId": session.session_id,
        })

    async def _run_completion_hooks(self, session: InterviewSession) -> None:
        for hook in self.completion_hooks:
            try:
                await hook(session)
            except Exception as e:
                logger.error(
                    "Completion hook failed",
                    session_id=session.session_id,
                    hook=getattr(hook, "__name__", repr(hook)),
                    error=str(e),
                )

    # Reports

    async def generate_report(self, session_id: str) -> Optional[bytes]:
        session = await self.store.get_session(session_id)
        if session is None:
            return None
        return build_pdf_report(session)

    async def generate_html_report(self, session_id: str) -> Optional[str]:
        session = await self.store.get_session(session_id)
        if session is None:
            return None
        return build_html_report(session)

    # Connections

    def handle_disconnect(self, channel_id: str) -> None:
        session_id = self.channel_sessions.pop(channel_id, None)
        if session_id:
            logger.info("Client disconnected", connection_id=channel_id, session_id=session_id)

    async def _session_for(self, channel) -> Optional[InterviewSession]:
        session_id = self.channel_sessions.get(channel.id)
        if session_id is None:
            await self._error(channel, "No active interview for this connection")
            return None

        session = await self.store.get_session(session_id)
        if session is None:
            self.channel_sessions.pop(channel.id, None)
            await self._error(channel, "Session not found")
        return session

    async def _speak(self, channel, text: str, response_type: str) -> None:
        audio = await self.speech.text_to_speech(text, response_type)
        await channel.emit("ai-speaking", {
            "audio": base64.b64encode(audio).decode("ascii"),
            "mimeType": audio_mime_type(audio),
            "responseType": response_type,
            "text": text,
        })

    async def _error(self, channel, message: str) -> None:
        await channel.emit("error", {"message": message})
