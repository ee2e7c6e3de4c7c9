"""
Poll-related Pydantic schemas.
"""

from datetime import datetime
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from schemas.validation import check_option, check_options, check_poll_id, check_question

Question = Annotated[str, AfterValidator(check_question)]
Options = Annotated[list[Annotated[str, AfterValidator(check_option)]], AfterValidator(check_options)]
PollId = Annotated[str, AfterValidator(check_poll_id)]


class PollCreate(BaseModel):
    """Schema for creating a new poll (form field names are camelCase)."""

    model_config = ConfigDict(populate_by_name=True, validate_default=True)

    question: Question = ""
    options: Options = []
    allow_multiple_votes: bool = Field(False, alias="allowMultipleVotes")
    require_authentication: bool = Field(True, alias="requireAuthentication")


class PollUpdate(BaseModel):
    """Schema for editing a poll's question and options."""

    model_config = ConfigDict(populate_by_name=True, validate_default=True)

    poll_id: PollId = Field("", alias="pollId")
    question: Question = ""
    options: Options = []


class Poll(BaseModel):
    """Schema for poll responses."""

    id: str
    user_id: str
    question: str
    options: list[str]
    allow_multiple_votes: bool = False
    require_authentication: bool = True
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class PollOptionResult(BaseModel):
    """Vote tally for one option."""

    index: int
    text: str
    vote_count: int = 0
    vote_percentage: float = 0.0


class PollResults(BaseModel):
    """Poll with aggregated voting results."""

    poll_id: str
    question: str
    options: list[PollOptionResult]
    total_votes: int = 0


class PollResponse(BaseModel):
    poll: Optional[Poll] = None
    error: Optional[str] = None


class PollListResponse(BaseModel):
    polls: list[Poll] = []
    error: Optional[str] = None


class PollResultsResponse(BaseModel):
    results: Optional[PollResults] = None
    error: Optional[str] = None


class AdminPollListResponse(BaseModel):
    """Admin listing: `data` is None whenever `error` is set."""

    error: Optional[str] = None
    data: Optional[list[Poll]] = None
