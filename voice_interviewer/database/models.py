"""Database models for HR access, invitations and archived interview results."""
from sqlalchemy import Column, Integer, String, Text, DateTime, Float
from datetime import datetime
from voice_interviewer.database.db import Base


class HRSession(Base):
    __tablename__ = "hr_sessions"

    id = Column(Integer, primary_key=True, index=True)
    token = Column(String, unique=True, index=True)
    email = Column(String)
    created_at = Column(DateTime, default=datetime.utcnow)


class Invitation(Base):
    __tablename__ = "invitations"

    id = Column(Integer, primary_key=True, index=True)
    candidate_email = Column(String, index=True)
    hr_email = Column(String, nullable=True)
    interview_link = Column(String)
    status = Column(String, default="pending")  # pending, sent, failed
    error = Column(Text, nullable=True)
    sent_at = Column(DateTime, default=datetime.utcnow)


class InterviewResult(Base):
    __tablename__ = "interview_results"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String, unique=True, index=True)
    candidate_name = Column(String)
    candidate_email = Column(String, index=True)
    experience_level = Column(String)
    question_count = Column(Integer, default=0)

    # Aggregate scores (0-10)
    technical_score = Column(Float, default=0.0)
    communication_score = Column(Float, default=0.0)
    problem_solving_score = Column(Float, default=0.0)
    completeness_score = Column(Float, default=0.0)
    overall_score = Column(Float, default=0.0)
    performance_level = Column(String)

    completed_reason = Column(String, nullable=True)
    started_at = Column(DateTime)
    completed_at = Column(DateTime, default=datetime.utcnow)
