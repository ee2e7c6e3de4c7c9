"""
Vote-related Pydantic schemas.
"""

from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from schemas.poll import PollId
from schemas.validation import check_option_index


class VoteCreate(BaseModel):
    """Schema for casting a vote."""

    model_config = ConfigDict(populate_by_name=True, validate_default=True)

    poll_id: PollId = Field("", alias="pollId")
    option_index: Annotated[int, BeforeValidator(check_option_index)] = Field(
        None, alias="optionIndex"
    )


class VoteRecord(BaseModel):
    """A stored vote. `user_id` is None for anonymous votes."""

    id: str
    poll_id: str
    user_id: Optional[str] = None
    option_index: int
    created_at: datetime

    model_config = {"from_attributes": True}
