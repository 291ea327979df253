"""Pydantic schemas for quiz endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class CreateQuizRequest(BaseModel):
    question: str = Field(..., max_length=4000)


class SetQuizActiveRequest(BaseModel):
    active: bool


class SubmitAnswerRequest(BaseModel):
    answer: str = Field(..., max_length=10000)


class ScoreAnswerRequest(BaseModel):
    score: float


class QuizDetailResponse(BaseModel):
    id: int
    track_id: int
    question: str
    period_start: datetime
    period_end: datetime
    is_active: bool
    created_at: datetime


class QuizListResponse(BaseModel):
    quizzes: list[QuizDetailResponse]


class CurrentQuizResponse(BaseModel):
    id: int
    question: str
    period_start: datetime
    period_end: datetime
    has_answered: bool
    my_score: float | None = None


class AnswerResponse(BaseModel):
    id: int
    quiz_id: int
    answer: str
    submitted_at: datetime


class QuizAnswerResponse(BaseModel):
    id: int
    user_id: int
    email: str
    display_name: str
    answer: str
    score: float | None = None
    scored_at: datetime | None = None
    submitted_at: datetime


class QuizAnswerListResponse(BaseModel):
    responses: list[QuizAnswerResponse]
    total: int


class ScoredAnswerResponse(BaseModel):
    id: int
    score: float
    scored_at: datetime
