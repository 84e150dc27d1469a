"""Tests for PDF and HTML reports."""
import io
from datetime import timedelta

from pypdf import PdfReader

from voice_interviewer.database.schemas import (
    CandidateInfo,
    ConversationTurn,
    DimensionScores,
    InterviewSession,
    OverallScores,
    SessionState,
)
from voice_interviewer.report_generator import (
    build_html_report,
    build_pdf_report,
    duration_minutes,
    overall_assessment,
    recommendations,
)
from voice_interviewer.scoring import compute_overall_scores


def _completed_session(name="Jane Smith", score=6.0):
    history = [
        ConversationTurn(
            question="How do you use VLOOKUP?",
            answer="I use it to join tables by an ID column.",
            score=score,
            evaluation=DimensionScores(technical=score, practical=score, communication=score, completeness=score),
            feedback="Good practical grasp.",
        ),
        ConversationTurn(
            question="What is a pivot table?",
            answer="A summary of data grouped by fields.",
            score=score,
            evaluation=DimensionScores(technical=score, practical=score, communication=score, completeness=score),
        ),
    ]
    session = InterviewSession(
        session_id="report-1",
        candidate_info=CandidateInfo(name=name, email="jane@example.com"),
        conversation_history=history,
        current_state=SessionState.COMPLETED,
        question_count=len(history),
        overall_scores=compute_overall_scores(history),
    )
    session.last_activity = session.start_time + timedelta(minutes=12)
    return session


class TestPdfReport:

    def test_pdf_contains_summary_and_transcript(self):
        pdf = build_pdf_report(_completed_session())
        assert pdf.startswith(b"%PDF")

        text = "\n".join(page.extract_text() for page in PdfReader(io.BytesIO(pdf)).pages)
        assert "Excel Skills Assessment Report" in text
        assert "Jane Smith" in text
        assert "How do you use VLOOKUP?" in text
        assert "Recommendations for Improvement" in text

    def test_pdf_without_answers(self):
        session = InterviewSession(session_id="empty", candidate_info=CandidateInfo())
        assert build_pdf_report(session).startswith(b"%PDF")


class TestHtmlReport:

    def test_escapes_candidate_content(self):
        report = build_html_report(_completed_session(name="<script>alert(1)</script>"))
        assert "<script>" not in report
        assert "&lt;script&gt;" in report
        assert "&lt;jane@example.com&gt;" in report
        assert "Question 2 - Score: 6.0/10" in report

    def test_duration(self):
        assert duration_minutes(_completed_session()) == 12
        assert "Interview Duration: 12 minutes" in build_html_report(_completed_session())


class TestRecommendations:

    def test_strong_candidate_only_gets_continuous_learning(self):
        titles = [rec["title"] for rec in recommendations(_completed_session(score=8.0))]
        assert titles == ["Continuous Learning"]

    def test_weak_candidate_gets_one_per_dimension(self):
        session = InterviewSession(session_id="weak", candidate_info=CandidateInfo(), overall_scores=OverallScores())
        assert len(recommendations(session)) == 5

    def test_overall_assessment_levels(self):
        assert overall_assessment(9).startswith("Exceptional")
        assert overall_assessment(7.5).startswith("Strong")
        assert overall_assessment(5.5).startswith("Solid")
        assert overall_assessment(3.5).startswith("Basic")
        assert overall_assessment(1).startswith("Major")
