"""
Tests for budgets, milestones and payments
Covers metrics, the milestone workflow, automatic budget completion and
the job event trail left behind by every change.
"""

import itertools
from unittest.mock import AsyncMock, patch

import pytest

from freelance_marketplace_api.app.core.db import get_connection
from freelance_marketplace_api.app.core.exceptions import NotFoundError, ValidationError
from freelance_marketplace_api.app.schemas.budget import (
    BudgetCreate,
    BudgetUpdate,
    MilestoneCreate,
    MilestonePaymentCreate,
    MilestoneUpdate,
    PaymentCreate,
)
from freelance_marketplace_api.app.services.budget_service import (
    MILESTONE_STATUS_TRANSITIONS,
    BudgetService,
    calculate_budget_health,
    validate_status_transition,
)
from freelance_marketplace_api.app.services.job_event_service import JobEventService


def milestone_budget() -> BudgetCreate:
    return BudgetCreate(
        type="MILESTONE",
        amount=5000,
        currency="USD",
        notes="Paid per milestone",
        milestones=[
            MilestoneCreate(name="Design", amount=2000, percentage=40, deliverables=["Figma file"]),
            MilestoneCreate(name="Build", amount=3000, percentage=60),
        ],
    )


async def complete_milestone(milestone_id: int, user_id: int):
    for status in ("IN_PROGRESS", "UNDER_REVIEW", "COMPLETED"):
        budget = await BudgetService.update_milestone_status(milestone_id, status, user_id)
    return budget


class TestHelpers:
    @pytest.mark.parametrize(
        "utilization, health",
        [(0, "HEALTHY"), (80, "HEALTHY"), (80.5, "WARNING"), (95, "WARNING"), (95.01, "CRITICAL")],
    )
    def test_budget_health(self, utilization, health):
        assert calculate_budget_health(utilization) == health

    def test_allowed_transition(self):
        validate_status_transition("UNDER_REVIEW", "COMPLETED")

    def test_reopening_completed_milestone_goes_back_to_review(self):
        validate_status_transition("COMPLETED", "UNDER_REVIEW")
        with pytest.raises(ValidationError, match="Invalid status transition from COMPLETED to PENDING"):
            validate_status_transition("COMPLETED", "PENDING")

    @pytest.mark.parametrize(
        "current, new",
        list(itertools.product(MILESTONE_STATUS_TRANSITIONS, MILESTONE_STATUS_TRANSITIONS)),
    )
    def test_every_status_pair(self, current, new):
        if new in MILESTONE_STATUS_TRANSITIONS[current]:
            validate_status_transition(current, new)
        else:
            with pytest.raises(ValidationError) as exc_info:
                validate_status_transition(current, new)
            assert str(exc_info.value) == f"Invalid status transition from {current} to {new}"

    def test_unknown_status(self):
        with pytest.raises(ValidationError, match="Invalid status transition from PENDING to ARCHIVED"):
            validate_status_transition("PENDING", "ARCHIVED")
        with pytest.raises(ValidationError, match="Invalid status transition from ARCHIVED to PENDING"):
            validate_status_transition("ARCHIVED", "PENDING")


class TestBudgetLifecycle:
    @pytest.mark.asyncio
    async def test_create_budget_with_milestones(self, accounts, job):
        client_id = accounts["client"].id
        budget = await BudgetService.create_budget(job.id, milestone_budget(), client_id)

        assert budget.status == "ACTIVE"
        assert budget.created_by == client_id
        assert budget.approved_by == client_id
        assert budget.approved_at is not None
        assert [m.name for m in budget.milestones] == ["Design", "Build"]
        assert budget.milestones[0].deliverables == ["Figma file"]
        assert all(m.status == "PENDING" for m in budget.milestones)
        assert budget.warnings == []
        assert budget.metrics.total_budget == 5000
        assert budget.metrics.remaining_amount == 5000
        assert budget.metrics.budget_health == "HEALTHY"
        assert budget.metrics.milestone_progress.total == 2
        assert budget.metrics.milestone_progress.percentage == 0

    @pytest.mark.asyncio
    async def test_fixed_budget_split_in_halves(self, accounts, job):
        client_id = accounts["client"].id
        data = BudgetCreate(
            type="FIXED",
            amount=5000,
            currency="USD",
            milestones=[
                MilestoneCreate(name="First half", amount=2500, percentage=50),
                MilestoneCreate(name="Second half", amount=2500, percentage=50),
            ],
        )
        budget = await BudgetService.create_budget(job.id, data, client_id)
        assert budget.warnings == []
        assert budget.metrics.utilization_percentage == 0
        assert budget.metrics.spent_amount == 0

        first_id = budget.milestones[0].id
        with pytest.raises(ValidationError, match="Payment can only be processed for completed milestones"):
            await BudgetService.process_milestone_payment(first_id, MilestonePaymentCreate(amount=2500), client_id)

        await complete_milestone(first_id, client_id)
        paid = await BudgetService.process_milestone_payment(first_id, MilestonePaymentCreate(amount=2500), client_id)
        assert paid.metrics.spent_amount == 2500
        assert paid.metrics.remaining_amount == 2500
        assert paid.metrics.utilization_percentage == 50
        assert paid.metrics.budget_health == "HEALTHY"
        assert paid.metrics.milestone_progress.completed == 1
        assert paid.metrics.milestone_progress.percentage == 50

    @pytest.mark.asyncio
    async def test_create_budget_returns_warnings(self, accounts, job):
        data = BudgetCreate(
            type="FIXED",
            amount=5000,
            milestones=[MilestoneCreate(name="Only part", amount=1000)],
        )
        budget = await BudgetService.create_budget(job.id, data, accounts["client"].id)
        assert budget.warnings == [
            "Total milestone amount (1000) is less than budget (5000). Remaining amount: 4000"
        ]

    @pytest.mark.asyncio
    async def test_one_budget_per_job(self, accounts, job):
        await BudgetService.create_budget(job.id, milestone_budget(), accounts["client"].id)
        with pytest.raises(ValidationError, match="Budget already exists for this job"):
            await BudgetService.create_budget(job.id, milestone_budget(), accounts["client"].id)

    @pytest.mark.asyncio
    async def test_unknown_job(self, accounts):
        with pytest.raises(NotFoundError, match="Job not found"):
            await BudgetService.create_budget(999, milestone_budget(), accounts["client"].id)

    @pytest.mark.asyncio
    async def test_invalid_budget_is_not_stored(self, accounts, job):
        with pytest.raises(ValidationError):
            await BudgetService.create_budget(job.id, BudgetCreate(type="HOURLY", amount=100), accounts["client"].id)
        with pytest.raises(NotFoundError, match="Budget not found for this job"):
            await BudgetService.get_budget_by_job_id(job.id)

    @pytest.mark.asyncio
    async def test_update_budget_replaces_milestones(self, accounts, job):
        await BudgetService.create_budget(job.id, milestone_budget(), accounts["client"].id)
        updated = await BudgetService.update_budget(
            job.id,
            BudgetUpdate(amount=6000, milestones=[MilestoneCreate(name="Everything", amount=6000, percentage=100)]),
            accounts["client"].id,
        )
        assert updated.amount == 6000
        assert [m.name for m in updated.milestones] == ["Everything"]
        assert updated.warnings == []

    @pytest.mark.asyncio
    async def test_update_budget_rejects_unknown_status(self, accounts, job):
        await BudgetService.create_budget(job.id, milestone_budget(), accounts["client"].id)
        with pytest.raises(ValidationError, match="Unsupported budget status: DONE"):
            await BudgetService.update_budget(job.id, BudgetUpdate(status="DONE"), accounts["client"].id)

    @pytest.mark.asyncio
    async def test_delete_budget_cascades(self, accounts, job):
        budget = await BudgetService.create_budget(job.id, milestone_budget(), accounts["client"].id)
        await BudgetService.delete_budget(job.id, accounts["client"].id)

        with pytest.raises(NotFoundError):
            await BudgetService.get_budget_by_job_id(job.id)
        conn = get_connection()
        try:
            remaining = conn.execute(
                "SELECT COUNT(*) AS count FROM milestones WHERE budget_id = ?", (budget.id,)
            ).fetchone()["count"]
        finally:
            conn.close()
        assert remaining == 0

    @pytest.mark.asyncio
    async def test_summary_and_listings(self, accounts, job):
        await BudgetService.create_budget(job.id, milestone_budget(), accounts["client"].id)

        summary = await BudgetService.get_budget_summary(job.id)
        assert summary.milestone_count == 2
        assert summary.completed_milestones == 0
        assert summary.total_payments == 0

        user_budgets = await BudgetService.get_user_budgets(accounts["client"].id)
        assert [b.job_id for b in user_budgets] == [job.id]
        assert await BudgetService.get_user_budgets(accounts["developer"].id) == []

        listing = await BudgetService.get_all_budgets(page=1, limit=10)
        assert listing.pagination.total == 1
        assert listing.pagination.total_pages == 1

    @pytest.mark.asyncio
    async def test_event_log_failure_does_not_undo_change(self, accounts, job):
        """A broken event log must not fail an already committed budget"""
        with patch.object(JobEventService, "record", AsyncMock(side_effect=RuntimeError("disk full"))):
            budget = await BudgetService.create_budget(job.id, milestone_budget(), accounts["client"].id)
        assert budget.id is not None
        assert (await BudgetService.get_budget_by_job_id(job.id)).id == budget.id


class TestMilestones:
    @pytest.mark.asyncio
    async def test_standalone_milestone_rules(self, accounts, job):
        await BudgetService.create_budget(
            job.id, BudgetCreate(type="MILESTONE", amount=5000), accounts["client"].id
        )
        with pytest.raises(ValidationError, match="Milestone name is required"):
            await BudgetService.create_milestone(job.id, MilestoneCreate(amount=100), accounts["client"].id)
        with pytest.raises(ValidationError, match="Milestone amount must be greater than 0"):
            await BudgetService.create_milestone(job.id, MilestoneCreate(name="Design"), accounts["client"].id)

        budget = await BudgetService.create_milestone(
            job.id, MilestoneCreate(name="Design", amount=4000), accounts["client"].id
        )
        assert len(budget.milestones) == 1

        with pytest.raises(ValidationError, match="Total milestone amount cannot exceed budget amount"):
            await BudgetService.create_milestone(
                job.id, MilestoneCreate(name="Extra", amount=1500), accounts["client"].id
            )

    @pytest.mark.asyncio
    async def test_update_milestone_keeps_unsent_fields(self, accounts, job):
        budget = await BudgetService.create_budget(job.id, milestone_budget(), accounts["client"].id)
        design = budget.milestones[0]

        updated = await BudgetService.update_milestone(
            design.id, MilestoneUpdate(description="Mockups for every page"), accounts["client"].id
        )
        milestone = updated.milestones[0]
        assert milestone.description == "Mockups for every page"
        assert milestone.amount == 2000
        assert milestone.deliverables == ["Figma file"]

        with pytest.raises(ValidationError, match="Total milestone amount cannot exceed budget amount"):
            await BudgetService.update_milestone(design.id, MilestoneUpdate(amount=2500), accounts["client"].id)

    @pytest.mark.asyncio
    async def test_invalid_transition(self, accounts, job):
        budget = await BudgetService.create_budget(job.id, milestone_budget(), accounts["client"].id)
        with pytest.raises(ValidationError, match="Invalid status transition from PENDING to COMPLETED"):
            await BudgetService.update_milestone_status(budget.milestones[0].id, "COMPLETED", accounts["client"].id)

    @pytest.mark.asyncio
    async def test_status_notes_are_appended(self, accounts, job):
        budget = await BudgetService.create_budget(job.id, milestone_budget(), accounts["client"].id)
        updated = await BudgetService.update_milestone_status(
            budget.milestones[0].id, "IN_PROGRESS", accounts["developer"].id, "Started the wireframes"
        )
        assert updated.milestones[0].notes.endswith("Status Update: IN_PROGRESS - Started the wireframes")

    @pytest.mark.asyncio
    async def test_completing_all_milestones_completes_budget(self, accounts, job):
        budget = await BudgetService.create_budget(job.id, milestone_budget(), accounts["client"].id)
        design, build = budget.milestones

        partial = await complete_milestone(design.id, accounts["client"].id)
        assert partial.status == "ACTIVE"
        assert partial.milestones[0].completed_by == accounts["client"].id
        assert partial.milestones[0].completed_at is not None
        assert partial.metrics.milestone_progress.completed == 1
        assert partial.metrics.milestone_progress.percentage == 50

        done = await complete_milestone(build.id, accounts["client"].id)
        assert done.status == "COMPLETED"

        events = await JobEventService.list_events(job_id=job.id, event_type="MILESTONE_NOTIFICATION")
        assert any(e.event_data["eventType"] == "BUDGET_COMPLETED" for e in events)

    @pytest.mark.asyncio
    async def test_reopened_milestone_clears_completion(self, accounts, job):
        budget = await BudgetService.create_budget(job.id, milestone_budget(), accounts["client"].id)
        milestone_id = budget.milestones[0].id
        await complete_milestone(milestone_id, accounts["client"].id)

        reopened = await BudgetService.update_milestone_status(milestone_id, "UNDER_REVIEW", accounts["client"].id)
        assert reopened.milestones[0].completed_at is None
        assert reopened.milestones[0].completed_by is None

    @pytest.mark.asyncio
    async def test_completed_milestone_cannot_be_deleted(self, accounts, job):
        budget = await BudgetService.create_budget(job.id, milestone_budget(), accounts["client"].id)
        design, build = budget.milestones
        await complete_milestone(design.id, accounts["client"].id)

        with pytest.raises(ValidationError, match="Cannot delete completed milestone"):
            await BudgetService.delete_milestone(design.id, accounts["client"].id)

        remaining = await BudgetService.delete_milestone(build.id, accounts["client"].id)
        assert [m.id for m in remaining.milestones] == [design.id]

    @pytest.mark.asyncio
    async def test_unknown_milestone(self, accounts):
        with pytest.raises(NotFoundError, match="Milestone not found"):
            await BudgetService.update_milestone_status(404, "IN_PROGRESS", accounts["client"].id)


class TestPayments:
    @pytest.mark.asyncio
    async def test_milestone_payment_requires_completion(self, accounts, job):
        budget = await BudgetService.create_budget(job.id, milestone_budget(), accounts["client"].id)
        with pytest.raises(ValidationError, match="Payment can only be processed for completed milestones"):
            await BudgetService.process_milestone_payment(
                budget.milestones[0].id, MilestonePaymentCreate(amount=2000), accounts["client"].id
            )

    @pytest.mark.asyncio
    async def test_milestone_payment_flow(self, accounts, job):
        budget = await BudgetService.create_budget(job.id, milestone_budget(), accounts["client"].id)
        design_id = budget.milestones[0].id
        await complete_milestone(design_id, accounts["client"].id)

        with pytest.raises(ValidationError, match="Payment amount cannot exceed milestone amount"):
            await BudgetService.process_milestone_payment(
                design_id, MilestonePaymentCreate(amount=2500), accounts["client"].id
            )

        paid = await BudgetService.process_milestone_payment(
            design_id, MilestonePaymentCreate(amount=2000, reference="INV-1"), accounts["client"].id
        )
        payment = paid.payments[0]
        assert payment.status == "PENDING"
        assert payment.payment_type == "MILESTONE"
        assert payment.milestone_id == design_id
        assert paid.metrics.spent_amount == 2000
        assert paid.metrics.remaining_amount == 3000
        assert paid.metrics.utilization_percentage == 40.0

        completed = await BudgetService.update_payment_status(payment.id, "COMPLETED", accounts["admin"].id)
        assert completed.payments[0].status == "COMPLETED"
        assert completed.payments[0].processed_by == accounts["admin"].id
        assert completed.payments[0].processed_at is not None

        events = await JobEventService.list_events(job_id=job.id, event_type="PAYMENT_NOTIFICATION")
        assert len(events) == 2

    @pytest.mark.asyncio
    async def test_failed_payment_keeps_reason(self, accounts, job):
        await BudgetService.create_budget(job.id, milestone_budget(), accounts["client"].id)
        budget = await BudgetService.process_payment(
            job.id, PaymentCreate(amount=500, payment_type="ADVANCE"), accounts["client"].id
        )
        payment_id = budget.payments[0].id

        failed = await BudgetService.update_payment_status(
            payment_id, "FAILED", accounts["client"].id, "Card declined"
        )
        assert failed.payments[0].failure_reason == "Card declined"
        assert failed.payments[0].processed_at is None

        retried = await BudgetService.update_payment_status(payment_id, "PROCESSING", accounts["client"].id)
        assert retried.payments[0].failure_reason is None

    @pytest.mark.asyncio
    async def test_direct_payment_validation(self, accounts, job):
        await BudgetService.create_budget(job.id, milestone_budget(), accounts["client"].id)
        with pytest.raises(ValidationError, match="Unsupported payment type: BONUS"):
            await BudgetService.process_payment(
                job.id, PaymentCreate(amount=100, payment_type="BONUS"), accounts["client"].id
            )
        with pytest.raises(ValidationError, match="Payment amount must be greater than 0"):
            await BudgetService.process_payment(
                job.id, PaymentCreate(amount=0, payment_type="ADVANCE"), accounts["client"].id
            )
        with pytest.raises(NotFoundError, match="Milestone not found"):
            await BudgetService.process_payment(
                job.id, PaymentCreate(amount=100, payment_type="MILESTONE", milestone_id=999), accounts["client"].id
            )

    @pytest.mark.asyncio
    async def test_overspent_budget_is_critical(self, accounts, job):
        await BudgetService.create_budget(job.id, BudgetCreate(type="FIXED", amount=1000), accounts["client"].id)
        budget = await BudgetService.process_payment(
            job.id, PaymentCreate(amount=1200, payment_type="ADJUSTMENT"), accounts["client"].id
        )
        assert budget.metrics.utilization_percentage == 120.0
        assert budget.metrics.budget_health == "CRITICAL"
        assert budget.metrics.remaining_amount == -200

    @pytest.mark.asyncio
    async def test_unknown_payment_status(self, accounts, job):
        with pytest.raises(ValidationError, match="Unsupported payment status: LOST"):
            await BudgetService.update_payment_status(1, "LOST", accounts["client"].id)
