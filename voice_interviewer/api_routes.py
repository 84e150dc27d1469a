"""HTTP routes for HR access, interview setup and reports."""
import os
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile, status
from fastapi.responses import HTMLResponse, Response
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
import structlog

from voice_interviewer.config import settings
from voice_interviewer.database.db import SessionLocal, get_db
from voice_interviewer.database.models import HRSession, Invitation, InterviewResult
from voice_interviewer.database.schemas import (
    CandidateInfo,
    HRLogin,
    InterviewSession,
    InvitationRequest,
    SessionSummary,
)
from voice_interviewer.email_service import email_service, interview_link
from voice_interviewer.report_generator import build_pdf_report
from voice_interviewer.resume_parser import DOCX_MIME, PDF_MIME, SUPPORTED_MIME_TYPES, name_from_email, resume_parser
from voice_interviewer.scoring import performance_bracket

logger = structlog.get_logger()
router = APIRouter()

EXTENSION_MIME_TYPES = {".pdf": PDF_MIME, ".docx": DOCX_MIME}


def get_manager(request: Request):
    return request.app.state.interview_manager


def _require_hr_session(db: Session, token: Optional[str]) -> HRSession:
    hr_session = db.query(HRSession).filter(HRSession.token == token).first() if token else None
    if not hr_session:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid HR session"
        )
    return hr_session


# HR endpoints
@router.post("/hr/login")
def hr_login(credentials: HRLogin, db: Session = Depends(get_db)):
    """Check HR credentials and open an HR session."""
    configured = bool(settings.HR_EMAIL and settings.HR_PASSWORD)
    valid = configured and secrets.compare_digest(
        credentials.email.strip().lower().encode(), settings.HR_EMAIL.strip().lower().encode()
    ) and secrets.compare_digest(credentials.password.encode(), settings.HR_PASSWORD.encode())

    if not valid:
        logger.warning("HR login failed", email=credentials.email, configured=configured)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials"
        )

    hr_session = HRSession(token=secrets.token_urlsafe(32), email=credentials.email)
    db.add(hr_session)
    db.commit()
    logger.info("HR login successful", email=credentials.email)
    return {"success": True, "hrSessionId": hr_session.token, "email": hr_session.email}


@router.post("/hr/send-invitations")
def send_invitations(request: InvitationRequest, db: Session = Depends(get_db)):
    """Email an interview link to each candidate and record the outcome."""
    hr_session = _require_hr_session(db, request.hr_session_id)
    emails = [email.strip() for email in request.candidate_emails if email and email.strip()]
    if not emails:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="At least one candidate email is required"
        )

    hr_email = request.hr_email or hr_session.email
    results = email_service.send_invitations(emails, hr_email)

    for result in results:
        db.add(Invitation(
            candidate_email=result.email,
            hr_email=hr_email,
            interview_link=interview_link(result.email),
            status=result.status,
            error=result.error,
        ))
    db.commit()

    sent = sum(1 for result in results if result.status == "sent")
    logger.info("Invitations processed", sent=sent, failed=len(results) - sent)
    return {
        "success": sent > 0,
        "sent": sent,
        "failed": len(results) - sent,
        "results": [result.model_dump() for result in results],
    }


@router.get("/hr/results")
def list_results(hr_session_id: str = Query(..., alias="hrSessionId"), db: Session = Depends(get_db)):
    """Archived interview results, newest first."""
    _require_hr_session(db, hr_session_id)
    rows = db.query(InterviewResult).order_by(InterviewResult.completed_at.desc()).all()
    return {
        "results": [
            {
                "sessionId": r.session_id,
                "candidateName": r.candidate_name,
                "candidateEmail": r.candidate_email,
                "experienceLevel": r.experience_level,
                "questionCount": r.question_count,
                "scores": {
                    "technical": r.technical_score,
                    "communication": r.communication_score,
                    "problemSolving": r.problem_solving_score,
                    "completeness": r.completeness_score,
                    "overall": r.overall_score,
                },
                "performanceLevel": r.performance_level,
                "completedReason": r.completed_reason,
                "completedAt": r.completed_at,
            }
            for r in rows
        ]
    }


# Interview endpoints
@router.get("/interview/start/{candidate_email}")
async def start_interview(candidate_email: str, manager=Depends(get_manager)):
    """Create a session from the cached resume profile, or a placeholder candidate."""
    profile = await manager.store.get_candidate(candidate_email)
    if profile:
        candidate_info = profile.to_candidate_info()
    else:
        candidate_info = CandidateInfo(name=name_from_email(candidate_email), email=candidate_email)

    session = await manager.create_session(candidate_info, resume_uploaded=profile is not None)
    return {
        "success": True,
        "sessionId": session.session_id,
        "candidateName": candidate_info.name,
        "resumeRequired": not session.resume_uploaded,
    }


@router.post("/interview/upload-resume")
async def upload_resume(
    session_id: str = Form(..., alias="sessionId"),
    candidate_email: str = Form("", alias="candidateEmail"),
    resume: Optional[UploadFile] = File(None),
    manager=Depends(get_manager),
):
    if resume is None or not resume.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No resume file uploaded"
        )

    mime_type = resume.content_type
    if mime_type not in SUPPORTED_MIME_TYPES:
        mime_type = EXTENSION_MIME_TYPES.get(os.path.splitext(resume.filename)[1].lower())
    if mime_type is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only PDF and DOCX files are allowed"
        )

    file_bytes = await resume.read()
    if len(file_bytes) > settings.MAX_RESUME_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="Resume exceeds the maximum upload size"
        )

    session = await manager.get_session(session_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found"
        )

    email = candidate_email or session.candidate_info.email
    profile = await run_in_threadpool(resume_parser.extract, file_bytes, mime_type, email)
    if profile.parsing_error and profile.name == "Candidate":
        profile.name = session.candidate_info.name

    await manager.attach_profile(session_id, profile)
    logger.info("Resume processed", session_id=session_id, filename=resume.filename, size=len(file_bytes))
    return {
        "success": True,
        "candidateInfo": {
            "name": profile.name,
            "email": profile.email,
            "experienceLevel": profile.experience_level.value,
            "skills": profile.skills,
            "totalExperience": profile.total_experience,
            "currentRole": profile.current_role,
        },
        "parsingError": profile.parsing_error,
    }


@router.get("/session/{session_id}", response_model=SessionSummary)
async def get_session(session_id: str, manager=Depends(get_manager)):
    session = await manager.get_session(session_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found"
        )

    return SessionSummary(
        session_id=session.session_id,
        candidate_name=session.candidate_info.name,
        candidate_email=session.candidate_info.email,
        experience_level=session.candidate_info.experience_level.value,
        current_state=session.current_state.value,
        question_count=session.question_count,
        total_questions=manager.total_questions,
        resume_uploaded=session.resume_uploaded,
        scores=session.overall_scores.to_payload(),
        start_time=session.start_time,
        last_activity=session.last_activity,
    )


# Report endpoints
@router.get("/report/download/{session_id}")
async def download_report(session_id: str, manager=Depends(get_manager)):
    pdf = await manager.generate_report(session_id)
    if pdf is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found"
        )
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="excel_assessment_{session_id}.pdf"'},
    )


@router.get("/report/{session_id}", response_class=HTMLResponse)
async def view_report(session_id: str, manager=Depends(get_manager)):
    report = await manager.generate_html_report(session_id)
    if report is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found"
        )
    return HTMLResponse(content=report)


# Completion hooks registered on the interview manager at startup

def _save_result(session: InterviewSession) -> None:
    db = SessionLocal()
    try:
        result = db.query(InterviewResult).filter(InterviewResult.session_id == session.session_id).first()
        if result is None:
            result = InterviewResult(session_id=session.session_id)
            db.add(result)

        scores = session.overall_scores
        result.candidate_name = session.candidate_info.name
        result.candidate_email = session.candidate_info.email
        result.experience_level = session.candidate_info.experience_level.value
        result.question_count = session.question_count
        result.technical_score = scores.technical
        result.communication_score = scores.communication
        result.problem_solving_score = scores.problem_solving
        result.completeness_score = scores.completeness
        result.overall_score = scores.overall
        result.performance_level = performance_bracket(scores.overall)
        result.completed_reason = session.completed_reason
        result.started_at = session.start_time
        result.completed_at = session.last_activity
        db.commit()
    finally:
        db.close()


async def archive_interview_result(session: InterviewSession) -> None:
    await run_in_threadpool(_save_result, session)
    logger.info("Interview result archived", session_id=session.session_id)


async def email_interview_report(session: InterviewSession) -> None:
    email = session.candidate_info.email
    if not email or not email_service.is_configured:
        logger.info("Skipping report email", session_id=session.session_id, has_email=bool(email))
        return

    pdf = build_pdf_report(session)
    await run_in_threadpool(email_service.send_report, email, session.candidate_info.name, pdf)
