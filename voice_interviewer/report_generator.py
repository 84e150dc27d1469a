"""PDF and HTML assessment reports."""
import html
from datetime import datetime
from io import BytesIO
from typing import Dict, List

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

from voice_interviewer.database.schemas import InterviewSession
from voice_interviewer.scoring import performance_bracket

LEFT_MARGIN = 50
TOP_MARGIN = 60
BOTTOM_MARGIN = 60
BAR_WIDTH = 350

SCORE_ROWS = [
    ("Technical Skills", "technical", "#3b82f6"),
    ("Communication", "communication", "#10b981"),
    ("Problem Solving", "problem_solving", "#8b5cf6"),
    ("Completeness", "completeness", "#f59e0b"),
]


def overall_assessment(overall: float) -> str:
    if overall >= 8.5:
        return ("Exceptional Excel skills demonstrated. The candidate shows mastery of advanced "
                "features and excellent problem-solving abilities.")
    if overall >= 7.0:
        return ("Strong Excel skills with good technical knowledge and communication. The candidate "
                "can handle most Excel tasks with minimal supervision.")
    if overall >= 5.0:
        return ("Solid foundation in Excel with room for improvement in advanced features. "
                "Additional training in specific areas is recommended.")
    if overall >= 3.0:
        return ("Basic Excel knowledge demonstrated. Significant practice is recommended before "
                "taking on Excel-intensive roles.")
    return ("Major gaps in Excel knowledge. Comprehensive training is required before taking on "
            "Excel-based work.")


def recommendations(session: InterviewSession) -> List[Dict[str, str]]:
    scores = session.overall_scores
    recs = []
    if scores.technical < 7:
        recs.append({
            "title": "Strengthen Technical Excel Skills",
            "description": "Focus on advanced formulas, pivot tables and data analysis features. "
                           "Consider an advanced Excel course or certification.",
        })
    if scores.communication < 7:
        recs.append({
            "title": "Improve Technical Communication",
            "description": "Practice explaining Excel concepts clearly and concisely, and walk "
                           "through your reasoning step by step.",
        })
    if scores.problem_solving < 7:
        recs.append({
            "title": "Enhance Problem-Solving Approach",
            "description": "Break complex spreadsheet problems into smaller steps and build "
                           "systematic approaches to data analysis.",
        })
    if scores.completeness < 7:
        recs.append({
            "title": "Give Complete Answers",
            "description": "Address every part of a question and back your answers with "
                           "concrete examples from your work.",
        })
    recs.append({
        "title": "Continuous Learning",
        "description": "Stay current with new Excel features and practice with real-world datasets.",
    })
    return recs


def duration_minutes(session: InterviewSession) -> int:
    return max(0, round((session.last_activity - session.start_time).total_seconds() / 60))


class _PdfWriter:
    """Cursor-based text layout over a reportlab canvas."""

    def __init__(self, buffer: BytesIO):
        self.c = canvas.Canvas(buffer, pagesize=A4)
        self.width, self.height = A4
        self.y = self.height - TOP_MARGIN

    def ensure_space(self, needed: float) -> None:
        if self.y - needed < BOTTOM_MARGIN:
            self.new_page()

    def new_page(self) -> None:
        self.c.showPage()
        self.y = self.height - TOP_MARGIN

    def heading(self, text: str, size: int = 16) -> None:
        self.ensure_space(size + 16)
        self.c.setFont("Helvetica-Bold", size)
        self.c.setFillColor(colors.HexColor("#1f2937"))
        self.c.drawString(LEFT_MARGIN, self.y, text)
        self.y -= size + 10

    def paragraph(self, text: str, size: int = 10, color: str = "#374151", bold: bool = False, indent: int = 0) -> None:
        font = "Helvetica-Bold" if bold else "Helvetica"
        max_width = self.width - 2 * LEFT_MARGIN - indent
        lines = simpleSplit(text or "", font, size, max_width) or [""]
        for line in lines:
            self.ensure_space(size + 4)
            self.c.setFont(font, size)
            self.c.setFillColor(colors.HexColor(color))
            self.c.drawString(LEFT_MARGIN + indent, self.y, line)
            self.y -= size + 4

    def gap(self, amount: float = 8) -> None:
        self.y -= amount

    def score_bar(self, label: str, value: float, color: str) -> None:
        self.ensure_space(36)
        self.c.setFont("Helvetica", 11)
        self.c.setFillColor(colors.HexColor("#374151"))
        self.c.drawString(LEFT_MARGIN, self.y, label)
        self.c.drawRightString(LEFT_MARGIN + BAR_WIDTH + 80, self.y, f"{value:.1f}/10")
        self.y -= 14
        self.c.setFillColor(colors.HexColor("#e5e7eb"))
        self.c.rect(LEFT_MARGIN, self.y, BAR_WIDTH, 8, stroke=0, fill=1)
        self.c.setFillColor(colors.HexColor(color))
        self.c.rect(LEFT_MARGIN, self.y, BAR_WIDTH * max(0.0, min(value, 10.0)) / 10, 8, stroke=0, fill=1)
        self.y -= 20

    def save(self) -> None:
        self.c.showPage()
        self.c.save()


def build_pdf_report(session: InterviewSession) -> bytes:
    buffer = BytesIO()
    pdf = _PdfWriter(buffer)
    scores = session.overall_scores
    candidate = session.candidate_info

    pdf.c.setTitle(f"Excel Skills Assessment - {candidate.name}")
    pdf.heading("Excel Skills Assessment Report", size=22)
    pdf.paragraph(f"Generated on: {datetime.utcnow():%Y-%m-%d}", color="#666666")
    pdf.paragraph(f"Candidate: {candidate.name}" + (f" <{candidate.email}>" if candidate.email else ""), color="#666666")
    pdf.paragraph(f"Experience level: {candidate.experience_level.value}", color="#666666")
    pdf.paragraph(f"Session ID: {session.session_id}", color="#666666")
    pdf.gap(12)

    pdf.heading("Executive Summary")
    pdf.paragraph(f"Overall Score: {scores.overall:.1f}/10", size=12, bold=True)
    pdf.paragraph(f"Performance Level: {performance_bracket(scores.overall).title()}")
    pdf.paragraph(f"Interview Duration: {duration_minutes(session)} minutes")
    pdf.paragraph(f"Questions Answered: {len(session.conversation_history)}")
    pdf.gap(4)
    pdf.paragraph(overall_assessment(scores.overall))
    pdf.gap(12)

    pdf.heading("Detailed Score Breakdown")
    for label, attr, color in SCORE_ROWS:
        pdf.score_bar(label, getattr(scores, attr), color)
    pdf.gap(8)

    pdf.heading("Question-by-Question Analysis")
    for index, turn in enumerate(session.conversation_history, start=1):
        pdf.ensure_space(80)
        pdf.paragraph(f"Question {index} - Score: {turn.score:.1f}/10", size=12, bold=True, color="#1f2937")
        pdf.paragraph(turn.question, color="#4b5563")
        pdf.paragraph("Answer:", bold=True, color="#6b7280")
        pdf.paragraph(turn.answer, color="#6b7280", indent=10)
        if turn.feedback:
            pdf.paragraph("Feedback:", bold=True, color="#059669")
            pdf.paragraph(turn.feedback, color="#059669", indent=10)
        pdf.gap(10)
    if not session.conversation_history:
        pdf.paragraph("No questions were answered in this session.")

    pdf.new_page()
    pdf.heading("Recommendations for Improvement")
    for index, rec in enumerate(recommendations(session), start=1):
        pdf.paragraph(f"{index}. {rec['title']}", size=12, bold=True)
        pdf.paragraph(rec["description"], color="#4b5563", indent=15)
        pdf.gap(6)

    pdf.paragraph("Generated by Excel Skills Assessment System", size=8, color="#9ca3af")
    pdf.save()
    return buffer.getvalue()


def build_html_report(session: InterviewSession) -> str:
    e = html.escape
    scores = session.overall_scores
    candidate = session.candidate_info

    score_rows = "\n".join(
        f"<tr><td>{e(label)}</td><td>{getattr(scores, attr):.1f}/10</td></tr>"
        for label, attr, _ in SCORE_ROWS
    )
    turns = "\n".join(
        "<section class=\"turn\">"
        f"<h3>Question {i} - Score: {turn.score:.1f}/10</h3>"
        f"<p class=\"question\">{e(turn.question)}</p>"
        f"<p class=\"answer\"><strong>Answer:</strong> {e(turn.answer)}</p>"
        + (f"<p class=\"feedback\"><strong>Feedback:</strong> {e(turn.feedback)}</p>" if turn.feedback else "")
        + "</section>"
        for i, turn in enumerate(session.conversation_history, start=1)
    ) or "<p>No questions were answered in this session.</p>"
    email_part = f" &lt;{e(candidate.email)}&gt;" if candidate.email else ""
    recs = "\n".join(
        f"<li><strong>{e(rec['title'])}</strong>: {e(rec['description'])}</li>"
        for rec in recommendations(session)
    )

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>Excel Skills Assessment - {e(candidate.name)}</title>
</head>
<body>
<h1>Excel Skills Assessment Report</h1>
<p>Candidate: {e(candidate.name)}{email_part}</p>
<p>Experience level: {e(candidate.experience_level.value)}</p>
<p>Session ID: {e(session.session_id)}</p>
<h2>Executive Summary</h2>
<p>Overall Score: {scores.overall:.1f}/10</p>
<p>Performance Level: {e(performance_bracket(scores.overall).title())}</p>
<p>Interview Duration: {duration_minutes(session)} minutes</p>
<p>Questions Answered: {len(session.conversation_history)}</p>
<p>{e(overall_assessment(scores.overall))}</p>
<h2>Detailed Score Breakdown</h2>
<table>
{score_rows}
</table>
<h2>Question-by-Question Analysis</h2>
{turns}
<h2>Recommendations for Improvement</h2>
<ol>
{recs}
</ol>
</body>
</html>
"""
