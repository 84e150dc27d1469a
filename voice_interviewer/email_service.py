"""SMTP delivery of interview invitations and assessment reports."""
import smtplib
from email.message import EmailMessage
from typing import List, Optional
from urllib.parse import quote

import structlog

from voice_interviewer.config import settings
from voice_interviewer.database.schemas import InvitationResult

logger = structlog.get_logger()

INVITATION_SUBJECT = "Invitation: Excel Skills Assessment - AI Interview"
REPORT_SUBJECT = "Your Excel Skills Assessment Report"


class EmailNotConfiguredError(RuntimeError):
    pass


def interview_link(candidate_email: str) -> str:
    return f"{settings.FRONTEND_URL.rstrip('/')}/interview?candidate={quote(candidate_email)}"


def invitation_body(link: str) -> str:
    return f"""Dear Candidate,

You have been invited to participate in our Excel Skills Assessment.

This is an AI-powered voice interview that will assess your Excel knowledge and skills. The assessment includes:
- Personalized questions based on your background
- Voice-based responses (approximately 15-20 minutes)
- Immediate feedback and scoring
- A detailed assessment report

To begin your assessment, please open the link below:
{link}

Instructions:
1. Find a quiet environment
2. Test your microphone and speakers
3. Use a desktop or laptop computer
4. Upload your resume when prompted
5. Complete the assessment in one session

Please complete the assessment within 7 days of receiving this invitation.

Best regards,
The Hiring Team
"""


class EmailService:
    def __init__(self):
        self.host = settings.SMTP_HOST
        self.port = settings.SMTP_PORT
        self.user = settings.SMTP_USER
        self.password = settings.SMTP_PASSWORD
        self.use_tls = settings.SMTP_USE_TLS
        self.sender = settings.SMTP_FROM

    @property
    def is_configured(self) -> bool:
        return bool(self.host)

    def _send(self, msg: EmailMessage) -> None:
        if not self.is_configured:
            raise EmailNotConfiguredError("SMTP is not configured")
        with smtplib.SMTP(self.host, self.port, timeout=20) as server:
            if self.use_tls:
                server.starttls()
            if self.user and self.password:
                server.login(self.user, self.password)
            server.send_message(msg)

    def send_invitation(self, candidate_email: str, hr_email: Optional[str] = None) -> InvitationResult:
        link = interview_link(candidate_email)
        msg = EmailMessage()
        msg["Subject"] = INVITATION_SUBJECT
        msg["From"] = self.sender
        msg["To"] = candidate_email
        if hr_email:
            msg["Bcc"] = hr_email
        msg.set_content(invitation_body(link))

        try:
            self._send(msg)
        except (smtplib.SMTPException, OSError, EmailNotConfiguredError) as e:
            logger.error("Failed to send invitation", email=candidate_email, error=str(e))
            return InvitationResult(email=candidate_email, status="failed", error=str(e))

        logger.info("Invitation sent", email=candidate_email)
        return InvitationResult(email=candidate_email, status="sent")

    def send_invitations(self, candidate_emails: List[str], hr_email: Optional[str] = None) -> List[InvitationResult]:
        logger.info("Sending invitations", count=len(candidate_emails))
        return [self.send_invitation(email.strip(), hr_email) for email in candidate_emails if email.strip()]

    def send_report(self, candidate_email: str, candidate_name: str, pdf_bytes: bytes) -> bool:
        msg = EmailMessage()
        msg["Subject"] = REPORT_SUBJECT
        msg["From"] = self.sender
        msg["To"] = candidate_email
        msg.set_content(
            f"Dear {candidate_name},\n\n"
            "Thank you for completing the Excel Skills Assessment. Your detailed report, "
            "with question-by-question feedback and recommendations, is attached.\n\n"
            "Best regards,\nThe Hiring Team\n"
        )
        msg.add_attachment(
            pdf_bytes, maintype="application", subtype="pdf", filename="excel_assessment_report.pdf"
        )

        try:
            self._send(msg)
        except (smtplib.SMTPException, OSError, EmailNotConfiguredError) as e:
            logger.error("Failed to send report email", email=candidate_email, error=str(e))
            return False

        logger.info("Report email sent", email=candidate_email)
        return True


email_service = EmailService()
