"""Resume text extraction and Excel skill profiling."""
import io
import re
from typing import Dict, List

import docx
import structlog
from pypdf import PdfReader

from voice_interviewer.database.schemas import CandidateProfile, ExperienceLevel

logger = structlog.get_logger()

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
SUPPORTED_MIME_TYPES = (PDF_MIME, DOCX_MIME)

EXCEL_SKILLS = [
    "excel", "vlookup", "xlookup", "pivot table", "macro", "vba", "index match",
    "sumif", "countif", "conditional formatting", "data validation", "charts",
    "formulas", "functions", "spreadsheet", "data analysis", "power query",
    "power pivot", "dashboard", "power bi",
]

ADVANCED_SKILLS = ["vba", "macro", "power query", "power pivot", "advanced excel"]
SENIOR_TITLES = ["senior", "lead", "manager", "director", "analyst", "specialist"]
ROLE_TITLES = SENIOR_TITLES + ["associate", "executive", "consultant", "accountant", "engineer", "intern", "officer"]

EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
PHONE_RE = re.compile(r"(\+?\d{1,3}[-.\s]?)?\d{3}[-.\s]?\d{3}[-.\s]?\d{4}")
YEARS_RE = re.compile(r"(\d+)\s*\+?\s*(?:years?|yrs?)")
PERIOD_RE = re.compile(r"\b\d{4}\b.*\b\d{4}\b|\b\d{4}\b.*present", re.IGNORECASE)
NAME_RE = re.compile(r"^[A-Za-z\s]+$")


class ResumeParsingError(ValueError):
    pass


class ResumeParser:

    def extract(self, file_bytes: bytes, mime_type: str, email: str = "") -> CandidateProfile:
        """Build a candidate profile from a resume; never raises."""
        text = ""
        try:
            logger.info("Parsing resume", mime_type=mime_type, size=len(file_bytes or b""))
            text = self.extract_text(file_bytes, mime_type)
            if len(text.strip()) < 10:
                logger.warning("Very little text extracted from resume", characters=len(text))
            profile = self._build_profile(text)
            if email:
                profile.email = email
            logger.info(
                "Resume parsed",
                name=profile.name,
                skills=len(profile.skills),
                experience_level=profile.experience_level.value,
            )
            return profile
        except Exception as e:
            logger.error("Resume parsing failed, using fallback profile", error=str(e), error_type=type(e).__name__)
            return fallback_profile(email, error=str(e), raw_text=text)

    def extract_text(self, file_bytes: bytes, mime_type: str) -> str:
        if not file_bytes:
            raise ResumeParsingError("Empty resume buffer provided")

        if mime_type == PDF_MIME:
            reader = PdfReader(io.BytesIO(file_bytes))
            return "\n".join(page.extract_text() or "" for page in reader.pages)

        if mime_type == DOCX_MIME:
            document = docx.Document(io.BytesIO(file_bytes))
            return "\n".join(para.text for para in document.paragraphs if para.text.strip())

        raise ResumeParsingError(f"Unsupported file type: {mime_type}")

    def _build_profile(self, text: str) -> CandidateProfile:
        lines = [line.strip() for line in text.split("\n") if line.strip()]
        work_experience = extract_work_experience(lines)
        return CandidateProfile(
            name=extract_name(lines),
            email=extract_email(text),
            phone=extract_phone(text),
            skills=extract_excel_skills(text),
            experience_level=determine_experience_level(text),
            total_experience=extract_total_experience(text),
            current_role=extract_current_role(lines, work_experience),
            work_experience=work_experience,
            raw_text=text[:1000] + ("..." if len(text) > 1000 else ""),
        )


def name_from_email(email: str) -> str:
    local_part = (email or "").split("@")[0]
    name = re.sub(r"[^a-zA-Z]+", " ", local_part).strip()
    return name.title() if name else "Candidate"


def fallback_profile(email: str = "", error: str = None, raw_text: str = "") -> CandidateProfile:
    """Minimal profile derived from the email address alone."""
    return CandidateProfile(
        name=name_from_email(email),
        email=email or "",
        experience_level=ExperienceLevel.BEGINNER,
        skills=["Basic Excel"],
        raw_text=raw_text[:1000] if raw_text else "Failed to extract text from resume",
        parsing_error=error,
    )


def extract_name(lines: List[str]) -> str:
    for line in lines[:5]:
        if "@" in line or "http" in line or line[:1].isdigit():
            continue
        if 2 < len(line) < 50 and NAME_RE.match(line):
            return line
    return "Candidate"


def extract_email(text: str) -> str:
    match = EMAIL_RE.search(text)
    return match.group(0) if match else ""


def extract_phone(text: str) -> str:
    match = PHONE_RE.search(text)
    return match.group(0).strip() if match else ""


def extract_excel_skills(text: str) -> List[str]:
    lowered = text.lower()
    return [skill for skill in EXCEL_SKILLS if skill in lowered]


def _max_years(text: str) -> int:
    years = [int(value) for value in YEARS_RE.findall(text.lower())]
    return max(years) if years else 0


def determine_experience_level(text: str) -> ExperienceLevel:
    lowered = text.lower()
    score = min(_max_years(lowered), 10)
    score += 2 * sum(1 for skill in ADVANCED_SKILLS if skill in lowered)
    score += sum(1 for title in SENIOR_TITLES if title in lowered)

    if score >= 8:
        return ExperienceLevel.ADVANCED
    if score >= 4:
        return ExperienceLevel.INTERMEDIATE
    return ExperienceLevel.BEGINNER


def extract_total_experience(text: str) -> str:
    years = _max_years(text)
    if not years:
        return ""
    return f"{years} year" + ("s" if years != 1 else "")


def extract_work_experience(lines: List[str]) -> List[Dict]:
    experiences = []
    current = None
    for line in lines:
        if PERIOD_RE.search(line):
            if current:
                experiences.append(current)
            current = {"period": line, "description": []}
        elif current:
            current["description"].append(line)
    if current:
        experiences.append(current)
    return experiences


def extract_current_role(lines: List[str], work_experience: List[Dict]) -> str:
    """Best guess at the most recent job title."""
    candidates = []
    for block in work_experience:
        if "present" in block["period"].lower():
            candidates = [block["period"]] + block["description"][:2]
            break
    if not candidates and work_experience:
        first = work_experience[0]
        candidates = [first["period"]] + first["description"][:2]
    if not candidates:
        candidates = lines[:10]

    for line in candidates:
        lowered = line.lower()
        if any(re.search(r"\b" + title + r"\b", lowered) for title in ROLE_TITLES):
            return PERIOD_RE.sub("", line).strip(" -|,") or line
    return ""


resume_parser = ResumeParser()
