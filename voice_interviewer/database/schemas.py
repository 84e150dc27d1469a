"""Pydantic schemas for interview sessions, profiles and API payloads."""
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

SESSION_SCHEMA_VERSION = 1


def utcnow() -> datetime:
    return datetime.utcnow()


class ExperienceLevel(str, Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        return None


class SessionState(str, Enum):
    CREATED = "created"
    INTRO = "intro"
    QUESTIONING = "questioning"
    WAITING_RESPONSE = "waiting-response"
    PROCESSING = "processing"
    COMPLETED = "completed"


class CandidateInfo(BaseModel):
    name: str = "Candidate"
    email: str = ""
    skills: List[str] = []
    experience_level: ExperienceLevel = ExperienceLevel.INTERMEDIATE

    @field_validator("skills")
    @classmethod
    def _unique_skills(cls, skills: List[str]) -> List[str]:
        seen = []
        for skill in skills:
            if skill and skill not in seen:
                seen.append(skill)
        return seen


class CandidateProfile(BaseModel):
    """Resume-derived profile, cached independently of a session."""
    name: str = "Candidate"
    email: str = ""
    phone: str = ""
    experience_level: ExperienceLevel = ExperienceLevel.BEGINNER
    skills: List[str] = []
    total_experience: str = ""
    current_role: str = ""
    work_experience: List[Dict] = []
    raw_text: str = ""
    parsing_error: Optional[str] = None

    def to_candidate_info(self) -> CandidateInfo:
        return CandidateInfo(
            name=self.name,
            email=self.email,
            skills=self.skills,
            experience_level=self.experience_level,
        )


class DimensionScores(BaseModel):
    technical: float = 0.0
    practical: float = 0.0
    communication: float = 0.0
    completeness: float = 0.0


class AnswerEvaluation(DimensionScores):
    score: float = 0.0
    feedback: str = ""
    strengths: List[str] = []
    improvements: List[str] = []
    key_missing: List[str] = []
    source: str = "llm"  # llm | fallback

    def dimensions(self) -> DimensionScores:
        return DimensionScores(
            technical=self.technical,
            practical=self.practical,
            communication=self.communication,
            completeness=self.completeness,
        )


class ConversationTurn(BaseModel):
    question: str
    answer: str
    score: float
    evaluation: DimensionScores
    feedback: str = ""
    timestamp: datetime = Field(default_factory=utcnow)


class OverallScores(BaseModel):
    technical: float = 0.0
    communication: float = 0.0
    problem_solving: float = 0.0
    completeness: float = 0.0
    overall: float = 0.0

    def to_payload(self) -> Dict[str, float]:
        return {
            "technical": round(self.technical, 2),
            "communication": round(self.communication, 2),
            "problemSolving": round(self.problem_solving, 2),
            "completeness": round(self.completeness, 2),
            "overall": round(self.overall, 2),
        }


class InterviewSession(BaseModel):
    schema_version: int = SESSION_SCHEMA_VERSION
    session_id: str
    candidate_info: CandidateInfo
    conversation_history: List[ConversationTurn] = []
    current_state: SessionState = SessionState.CREATED
    current_question: str = ""
    overall_scores: OverallScores = Field(default_factory=OverallScores)
    question_count: int = 0
    start_time: datetime = Field(default_factory=utcnow)
    last_activity: datetime = Field(default_factory=utcnow)
    resume_uploaded: bool = False
    connection_id: Optional[str] = None
    completed_reason: Optional[str] = None

    def touch(self) -> None:
        self.last_activity = utcnow()


# HTTP payloads

class HRLogin(BaseModel):
    email: str
    password: str


class InvitationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    hr_session_id: str = Field(alias="hrSessionId")
    candidate_emails: List[str] = Field(alias="candidateEmails")
    hr_email: Optional[str] = Field(default=None, alias="hrEmail")


class InvitationResult(BaseModel):
    email: str
    status: str
    error: Optional[str] = None


class SessionSummary(BaseModel):
    session_id: str
    candidate_name: str
    candidate_email: str
    experience_level: str
    current_state: str
    question_count: int
    total_questions: int
    resume_uploaded: bool
    scores: Dict[str, float]
    start_time: datetime
    last_activity: datetime
