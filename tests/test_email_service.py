"""Tests for invitation and report emails."""
import smtplib
from unittest.mock import patch

from voice_interviewer.email_service import EmailService, interview_link


def _configured_service():
    service = EmailService()
    service.host = "smtp.example.com"
    service.port = 587
    service.user = "mailer"
    service.password = "pw"
    service.use_tls = True
    return service


class TestEmailService:

    def test_unconfigured_marks_failed(self):
        service = EmailService()
        service.host = ""
        results = service.send_invitations(["a@example.com"])
        assert results[0].status == "failed"
        assert "not configured" in results[0].error

    def test_sends_invitation_with_link_and_bcc(self):
        service = _configured_service()
        with patch("voice_interviewer.email_service.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value
            results = service.send_invitations([" a@example.com ", ""], hr_email="hr@example.com")

        assert [r.status for r in results] == ["sent"]
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("mailer", "pw")
        message = server.send_message.call_args[0][0]
        assert message["To"] == "a@example.com"
        assert message["Bcc"] == "hr@example.com"
        assert interview_link("a@example.com") in message.get_content()

    def test_smtp_error_is_reported_per_email(self):
        service = _configured_service()
        with patch("voice_interviewer.email_service.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value
            server.send_message.side_effect = [smtplib.SMTPRecipientsRefused({}), None]
            results = service.send_invitations(["bad@example.com", "good@example.com"])

        assert [r.status for r in results] == ["failed", "sent"]

    def test_report_attachment(self):
        service = _configured_service()
        with patch("voice_interviewer.email_service.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value
            assert service.send_report("a@example.com", "Ann", b"%PDF-1.4 test")

        message = server.send_message.call_args[0][0]
        attachments = list(message.iter_attachments())
        assert attachments[0].get_filename() == "excel_assessment_report.pdf"
        assert attachments[0].get_content() == b"%PDF-1.4 test"

    def test_report_failure_returns_false(self):
        service = _configured_service()
        with patch("voice_interviewer.email_service.smtplib.SMTP", side_effect=OSError("unreachable")):
            assert service.send_report("a@example.com", "Ann", b"%PDF") is False

