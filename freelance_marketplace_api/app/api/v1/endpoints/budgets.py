"""
Budget endpoints for API v1.

Budgets are addressed by the job they belong to.  Milestones and
payments have their own identifiers for updates.  Clients and admins
manage budgets; developers may move milestones through their workflow
(e.g. submit work for review).
"""

from fastapi import APIRouter, Depends, Query, status
from typing import List

from freelance_marketplace_api.app.core.exceptions import to_http_exception
from freelance_marketplace_api.app.core.security import (
    ALL_ROLES,
    ROLE_ADMIN,
    ROLE_CLIENT,
    get_current_user,
    require_roles,
)
from freelance_marketplace_api.app.schemas.budget import (
    BudgetCreate,
    BudgetList,
    BudgetRead,
    BudgetSummary,
    BudgetUpdate,
    MilestoneCreate,
    MilestonePaymentCreate,
    MilestoneStatusUpdate,
    MilestoneUpdate,
    PaymentCreate,
    PaymentStatusUpdate,
)
from freelance_marketplace_api.app.services.budget_service import BudgetService


router = APIRouter()

budget_writers = require_roles(ROLE_CLIENT, ROLE_ADMIN)


@router.get("/", response_model=BudgetList)
async def list_all_budgets(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: dict = Depends(require_roles(ROLE_ADMIN)),
) -> BudgetList:
    """Page through every budget on the platform."""
    return await BudgetService.get_all_budgets(page=page, limit=limit)


@router.get("/user/{user_id}", response_model=List[BudgetSummary])
async def list_user_budgets(user_id: int, current_user: dict = Depends(get_current_user)) -> List[BudgetSummary]:
    """Budgets created by a user, newest first."""
    return await BudgetService.get_user_budgets(user_id)


# ---------------------------------------------------------------------------
# Milestones and payments addressed by their own id
# ---------------------------------------------------------------------------

@router.put("/milestones/{milestone_id}", response_model=BudgetRead)
async def update_milestone(
    milestone_id: int,
    data: MilestoneUpdate,
    current_user: dict = Depends(budget_writers),
) -> BudgetRead:
    try:
        return await BudgetService.update_milestone(milestone_id, data, current_user.get("user_id"))
    except ValueError as e:
        raise to_http_exception(e) from e


@router.put("/milestones/{milestone_id}/status", response_model=BudgetRead)
async def update_milestone_status(
    milestone_id: int,
    data: MilestoneStatusUpdate,
    current_user: dict = Depends(require_roles(*ALL_ROLES)),
) -> BudgetRead:
    """Move a milestone along its workflow.

    Completing the last open milestone completes the whole budget.
    """
    try:
        return await BudgetService.update_milestone_status(
            milestone_id, data.status, current_user.get("user_id"), data.notes
        )
    except ValueError as e:
        raise to_http_exception(e) from e


@router.delete("/milestones/{milestone_id}", response_model=BudgetRead)
async def delete_milestone(milestone_id: int, current_user: dict = Depends(budget_writers)) -> BudgetRead:
    try:
        return await BudgetService.delete_milestone(milestone_id, current_user.get("user_id"))
    except ValueError as e:
        raise to_http_exception(e) from e


@router.post("/milestones/{milestone_id}/payments", response_model=BudgetRead, status_code=status.HTTP_201_CREATED)
async def pay_milestone(
    milestone_id: int,
    data: MilestonePaymentCreate,
    current_user: dict = Depends(budget_writers),
) -> BudgetRead:
    """Create a pending payment for a completed milestone."""
    try:
        return await BudgetService.process_milestone_payment(milestone_id, data, current_user.get("user_id"))
    except ValueError as e:
        raise to_http_exception(e) from e


@router.put("/payments/{payment_id}/status", response_model=BudgetRead)
async def update_payment_status(
    payment_id: int,
    data: PaymentStatusUpdate,
    current_user: dict = Depends(budget_writers),
) -> BudgetRead:
    try:
        return await BudgetService.update_payment_status(
            payment_id, data.status, current_user.get("user_id"), data.failure_reason
        )
    except ValueError as e:
        raise to_http_exception(e) from e


# ---------------------------------------------------------------------------
# Budgets addressed by job id
# ---------------------------------------------------------------------------

@router.post("/{job_id}", response_model=BudgetRead, status_code=status.HTTP_201_CREATED)
async def create_budget(
    job_id: int,
    data: BudgetCreate,
    current_user: dict = Depends(budget_writers),
) -> BudgetRead:
    """Create the budget of a job, optionally with milestones.

    Non-blocking findings of the validator (milestone totals that do not
    add up, oversized milestones) are returned in ``warnings``.
    """
    try:
        return await BudgetService.create_budget(job_id, data, current_user.get("user_id"))
    except ValueError as e:
        raise to_http_exception(e) from e


@router.get("/{job_id}", response_model=BudgetRead)
async def get_budget(job_id: int, current_user: dict = Depends(get_current_user)) -> BudgetRead:
    try:
        return await BudgetService.get_budget_by_job_id(job_id)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.put("/{job_id}", response_model=BudgetRead)
async def update_budget(
    job_id: int,
    data: BudgetUpdate,
    current_user: dict = Depends(budget_writers),
) -> BudgetRead:
    """Partially update a budget.  Sending ``milestones`` replaces all of them."""
    try:
        return await BudgetService.update_budget(job_id, data, current_user.get("user_id"))
    except ValueError as e:
        raise to_http_exception(e) from e


@router.delete("/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_budget(job_id: int, current_user: dict = Depends(budget_writers)) -> None:
    try:
        await BudgetService.delete_budget(job_id, current_user.get("user_id"))
    except ValueError as e:
        raise to_http_exception(e) from e


@router.get("/{job_id}/summary", response_model=BudgetSummary)
async def get_budget_summary(job_id: int, current_user: dict = Depends(get_current_user)) -> BudgetSummary:
    try:
        return await BudgetService.get_budget_summary(job_id)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.post("/{job_id}/milestones", response_model=BudgetRead, status_code=status.HTTP_201_CREATED)
async def create_milestone(
    job_id: int,
    data: MilestoneCreate,
    current_user: dict = Depends(budget_writers),
) -> BudgetRead:
    try:
        return await BudgetService.create_milestone(job_id, data, current_user.get("user_id"))
    except ValueError as e:
        raise to_http_exception(e) from e


@router.post("/{job_id}/payments", response_model=BudgetRead, status_code=status.HTTP_201_CREATED)
async def create_payment(
    job_id: int,
    data: PaymentCreate,
    current_user: dict = Depends(budget_writers),
) -> BudgetRead:
    """Record a payment of any type against the job's budget."""
    try:
        return await BudgetService.process_payment(job_id, data, current_user.get("user_id"))
    except ValueError as e:
        raise to_http_exception(e) from e
