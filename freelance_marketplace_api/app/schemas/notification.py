"""
Pydantic models for budget, milestone and payment notifications.
"""

from typing import Any, Dict, List

from pydantic import Field

from .common import APIModel


class NotificationRequest(APIModel):
    notification_type: str = Field(..., examples=["BUDGET_CREATED"])
    data: Dict[str, Any] = Field(default_factory=dict, examples=[{"jobId": 1, "amount": 5000, "currency": "USD"}])
    channels: List[str] = Field(default_factory=lambda: ["email"], examples=[["email", "push"]])


class NotificationResult(APIModel):
    email_sent: bool = False
    push_sent: bool = False
    errors: List[str] = Field(default_factory=list)
