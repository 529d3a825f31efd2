"""
Pydantic models for budgets, milestones and payments.

Status and type fields are plain strings on input so that unsupported
values reach the budget validator and produce a descriptive 400 instead
of a generic schema error.  The enums below define the accepted values.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import Field

from .common import APIModel, Pagination


class BudgetType(str, Enum):
    FIXED = "FIXED"
    HOURLY = "HOURLY"
    MILESTONE = "MILESTONE"
    HYBRID = "HYBRID"


class BudgetStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    ON_HOLD = "ON_HOLD"


class MilestoneStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    UNDER_REVIEW = "UNDER_REVIEW"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    ON_HOLD = "ON_HOLD"


class PaymentType(str, Enum):
    ADVANCE = "ADVANCE"
    MILESTONE = "MILESTONE"
    COMPLETION = "COMPLETION"
    REFUND = "REFUND"
    ADJUSTMENT = "ADJUSTMENT"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class BudgetHealth(str, Enum):
    HEALTHY = "HEALTHY"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


# ---------------------------------------------------------------------------
# Milestones
# ---------------------------------------------------------------------------

class MilestoneCreate(APIModel):
    """Milestone payload used both inline in a budget and standalone.

    Name and amount are optional when sent inline with a new budget: the
    validator fills in ``Milestone N`` and ``0`` respectively.
    """

    name: Optional[str] = Field(None, examples=["Design mockups"])
    description: Optional[str] = Field(None, examples=["Figma mockups for all pages"])
    amount: Optional[float] = Field(None, examples=[2500.0])
    percentage: Optional[float] = Field(None, examples=[50.0])
    due_date: Optional[datetime] = Field(None, examples=["2025-09-01T00:00:00Z"])
    deliverables: List[str] = Field(default_factory=list, examples=[["Figma file"]])
    acceptance_criteria: Optional[str] = Field(None, examples=["Approved by the client"])
    notes: Optional[str] = None


class MilestoneUpdate(APIModel):
    name: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[float] = None
    percentage: Optional[float] = None
    due_date: Optional[datetime] = None
    deliverables: Optional[List[str]] = None
    acceptance_criteria: Optional[str] = None
    notes: Optional[str] = None


class MilestoneStatusUpdate(APIModel):
    status: str = Field(..., examples=["IN_PROGRESS"])
    notes: Optional[str] = Field(None, examples=["Work started"])


class MilestoneRead(APIModel):
    id: int
    budget_id: int
    name: str
    description: Optional[str] = None
    amount: float
    percentage: float
    status: str
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    completed_by: Optional[int] = None
    deliverables: List[str] = Field(default_factory=list)
    acceptance_criteria: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------

class MilestonePaymentCreate(APIModel):
    amount: float = Field(..., examples=[1500.0])
    currency: str = Field("USD", examples=["USD"])
    reference: Optional[str] = Field(None, examples=["INV-2025-001"])
    description: Optional[str] = Field(None, examples=["Payment for design mockups"])
    notes: Optional[str] = None


class PaymentCreate(MilestonePaymentCreate):
    """Payment recorded directly against a budget (advance, refund, ...)."""

    payment_type: str = Field(..., examples=["ADVANCE"])
    milestone_id: Optional[int] = None


class PaymentStatusUpdate(APIModel):
    status: str = Field(..., examples=["COMPLETED"])
    failure_reason: Optional[str] = Field(None, examples=["Card declined"])


class PaymentRead(APIModel):
    id: int
    budget_id: int
    milestone_id: Optional[int] = None
    amount: float
    currency: str
    payment_type: str
    status: str
    reference: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    processed_at: Optional[datetime] = None
    processed_by: Optional[int] = None
    failure_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Budgets
# ---------------------------------------------------------------------------

class BudgetBase(APIModel):
    type: str = Field(..., examples=["FIXED"])
    amount: float = Field(..., examples=[5000.0])
    currency: str = Field("USD", examples=["USD"])
    estimated_hours: Optional[int] = Field(None, examples=[120])
    notes: Optional[str] = Field(None, examples=["Payment on delivery of each milestone"])


class BudgetCreate(BudgetBase):
    milestones: Optional[List[MilestoneCreate]] = None


class BudgetUpdate(APIModel):
    type: Optional[str] = None
    amount: Optional[float] = None
    currency: Optional[str] = None
    estimated_hours: Optional[int] = None
    notes: Optional[str] = None
    status: Optional[str] = None
    milestones: Optional[List[MilestoneCreate]] = None


class MilestoneProgress(APIModel):
    completed: int
    total: int
    percentage: float


class BudgetMetrics(APIModel):
    total_budget: float
    spent_amount: float
    remaining_amount: float
    utilization_percentage: float
    budget_health: str
    milestone_progress: MilestoneProgress
    total_payments: float


class BudgetRead(BudgetBase):
    id: int
    job_id: int
    status: str
    created_by: Optional[int] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    milestones: List[MilestoneRead] = Field(default_factory=list)
    payments: List[PaymentRead] = Field(default_factory=list)
    metrics: BudgetMetrics
    warnings: List[str] = Field(default_factory=list)


class BudgetSummary(APIModel):
    id: int
    job_id: int
    type: str
    amount: float
    currency: str
    status: str
    milestone_count: int
    completed_milestones: int
    total_payments: float
    utilization_percentage: float
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BudgetList(APIModel):
    budgets: List[BudgetSummary]
    pagination: Pagination
