"""
Pydantic models for jobs and the job event log.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import Field

from .common import APIModel


class JobBase(APIModel):
    title: str = Field(..., min_length=1, max_length=200, examples=["Build a landing page"])
    description: Optional[str] = Field(None, examples=["Responsive landing page with a signup form"])


class JobCreate(JobBase):
    pass


class JobRead(JobBase):
    id: int
    client_id: Optional[int] = None
    status: str = Field("OPEN", examples=["OPEN"])
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class JobEventRead(APIModel):
    id: int
    job_id: Optional[int] = None
    event_type: str = Field(..., examples=["BUDGET_CREATED"])
    event_data: Optional[Any] = None
    user_id: Optional[int] = None
    created_at: Optional[datetime] = None
