from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

MAX_OPTIONS = 20


class RoleOut(BaseModel):
    organisation_id: Optional[int] = None
    role: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class OrganisationCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v


class JoinRequest(BaseModel):
    join_code: str = Field(max_length=64)

    @field_validator("join_code")
    @classmethod
    def _normalise_code(cls, v: str) -> str:
        return v.strip().upper()


class Organisation(BaseModel):
    id: int
    name: str
    owner_id: int
    join_code: Optional[str] = None
    created_at: datetime


class JoinCodeResponse(BaseModel):
    organisation_id: int
    join_code: str


class Member(BaseModel):
    user_id: int
    email: str
    joined_at: datetime


class PollCreate(BaseModel):
    organisation_id: int
    question: str = Field(min_length=1, max_length=300)
    options: List[str] = Field(min_length=2, max_length=MAX_OPTIONS)

    @field_validator("question")
    @classmethod
    def _strip_question(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("question must not be blank")
        return v

    @field_validator("options")
    @classmethod
    def _clean_options(cls, v: List[str]) -> List[str]:
        cleaned = [o.strip() for o in v]
        if any(not o for o in cleaned):
            raise ValueError("options must not be blank")
        if any(len(o) > 200 for o in cleaned):
            raise ValueError("options must be at most 200 characters")
        if len({o.lower() for o in cleaned}) != len(cleaned):
            raise ValueError("options must be distinct")
        return cleaned


class PollOption(BaseModel):
    index: int
    text: str
    votes: int


class Poll(BaseModel):
    id: int
    organisation_id: int
    question: str
    options: List[str]
    is_open: bool
    created_at: datetime


class PollResults(BaseModel):
    poll_id: int
    question: str
    is_open: bool
    options: List[PollOption]
    total_votes: int


class VoteRequest(BaseModel):
    option_index: int


class VoteResponse(BaseModel):
    poll_id: int
    option_index: int
    new_total: int


class CurrentUser(BaseModel):
    id: int
    email: str
    roles: List[RoleOut]
    organisations: List[Organisation]
