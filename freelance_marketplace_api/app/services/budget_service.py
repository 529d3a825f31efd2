"""
Business logic for job budgets, milestones and payments.

Every job has at most one budget.  A budget is created ``ACTIVE`` and
approved by its creator; it moves to ``COMPLETED`` automatically once
all of its milestones are completed.  Read operations return the budget
together with its milestones, payments and computed metrics.

Multi-row writes (budget with inline milestones, milestone replacement)
run on a single connection and are committed once.
"""

import logging
from typing import Any, Dict, List, Optional

from ..core.exceptions import NotFoundError, ValidationError
from ..schemas.budget import (
    BudgetCreate,
    BudgetHealth,
    BudgetList,
    BudgetMetrics,
    BudgetRead,
    BudgetStatus,
    BudgetSummary,
    BudgetUpdate,
    MilestoneCreate,
    MilestonePaymentCreate,
    MilestoneProgress,
    MilestoneRead,
    MilestoneStatus,
    MilestoneUpdate,
    PaymentCreate,
    PaymentRead,
    PaymentStatus,
    PaymentType,
)
from ..schemas.common import Pagination
from .budget_validator import BudgetValidator


logger = logging.getLogger(__name__)


MILESTONE_STATUS_TRANSITIONS: Dict[str, List[str]] = {
    "PENDING": ["IN_PROGRESS", "CANCELLED", "ON_HOLD"],
    "IN_PROGRESS": ["UNDER_REVIEW", "CANCELLED", "ON_HOLD"],
    "UNDER_REVIEW": ["COMPLETED", "IN_PROGRESS", "CANCELLED"],
    "COMPLETED": ["UNDER_REVIEW"],
    "CANCELLED": ["PENDING"],
    "ON_HOLD": ["PENDING", "CANCELLED"],
}


def calculate_budget_health(utilization_percentage: float) -> str:
    if utilization_percentage <= 80:
        return BudgetHealth.HEALTHY.value
    if utilization_percentage <= 95:
        return BudgetHealth.WARNING.value
    return BudgetHealth.CRITICAL.value


def validate_status_transition(current_status: str, new_status: str) -> None:
    if new_status not in MILESTONE_STATUS_TRANSITIONS.get(current_status, []):
        raise ValidationError(f"Invalid status transition from {current_status} to {new_status}")


def _row_to_milestone(row) -> MilestoneRead:
    from freelance_marketplace_api.app.core.db import from_json, parse_timestamp
    return MilestoneRead(
        id=row["id"],
        budget_id=row["budget_id"],
        name=row["name"],
        description=row["description"],
        amount=row["amount"],
        percentage=row["percentage"],
        status=row["status"],
        due_date=parse_timestamp(row["due_date"]),
        completed_at=parse_timestamp(row["completed_at"]),
        completed_by=row["completed_by"],
        deliverables=from_json(row["deliverables"], []),
        acceptance_criteria=row["acceptance_criteria"],
        notes=row["notes"],
        created_at=parse_timestamp(row["created_at"]),
        updated_at=parse_timestamp(row["updated_at"]),
    )


def _row_to_payment(row) -> PaymentRead:
    from freelance_marketplace_api.app.core.db import parse_timestamp
    return PaymentRead(
        id=row["id"],
        budget_id=row["budget_id"],
        milestone_id=row["milestone_id"],
        amount=row["amount"],
        currency=row["currency"],
        payment_type=row["payment_type"],
        status=row["status"],
        reference=row["reference"],
        description=row["description"],
        notes=row["notes"],
        processed_at=parse_timestamp(row["processed_at"]),
        processed_by=row["processed_by"],
        failure_reason=row["failure_reason"],
        created_at=parse_timestamp(row["created_at"]),
        updated_at=parse_timestamp(row["updated_at"]),
    )


def _utilization(spent: float, amount: float) -> float:
    if not amount:
        return 0.0
    return round(spent / amount * 100, 2)


class BudgetService:
    """Budgets, milestones and payments keyed by job."""

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _insert_milestones(cursor, budget_id: int, milestones: List[MilestoneCreate]) -> None:
        from freelance_marketplace_api.app.core.db import to_db_timestamp, to_json
        for milestone in milestones:
            cursor.execute(
                """
                INSERT INTO milestones
                    (budget_id, name, description, amount, percentage, due_date,
                     deliverables, acceptance_criteria, notes)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    budget_id,
                    milestone.name or "",
                    milestone.description,
                    milestone.amount or 0,
                    milestone.percentage or 0,
                    to_db_timestamp(milestone.due_date),
                    to_json(milestone.deliverables or []),
                    milestone.acceptance_criteria,
                    milestone.notes,
                ),
            )

    @staticmethod
    def _build_budget(cursor, budget_row, warnings: Optional[List[str]] = None) -> BudgetRead:
        from freelance_marketplace_api.app.core.db import parse_timestamp
        milestone_rows = cursor.execute(
            "SELECT * FROM milestones WHERE budget_id = ? ORDER BY created_at ASC, id ASC",
            (budget_row["id"],),
        ).fetchall()
        payment_rows = cursor.execute(
            "SELECT * FROM payments WHERE budget_id = ? ORDER BY created_at DESC, id DESC",
            (budget_row["id"],),
        ).fetchall()
        milestones = [_row_to_milestone(row) for row in milestone_rows]
        payments = [_row_to_payment(row) for row in payment_rows]

        amount = budget_row["amount"]
        total_payments = sum(p.amount for p in payments)
        utilization = _utilization(total_payments, amount)
        completed = sum(1 for m in milestones if m.status == MilestoneStatus.COMPLETED.value)
        metrics = BudgetMetrics(
            total_budget=amount,
            spent_amount=total_payments,
            remaining_amount=amount - total_payments,
            utilization_percentage=utilization,
            budget_health=calculate_budget_health(utilization),
            milestone_progress=MilestoneProgress(
                completed=completed,
                total=len(milestones),
                percentage=completed / len(milestones) * 100 if milestones else 0,
            ),
            total_payments=total_payments,
        )
        return BudgetRead(
            id=budget_row["id"],
            job_id=budget_row["job_id"],
            type=budget_row["type"],
            amount=amount,
            currency=budget_row["currency"],
            estimated_hours=budget_row["estimated_hours"],
            notes=budget_row["notes"],
            status=budget_row["status"],
            created_by=budget_row["created_by"],
            approved_by=budget_row["approved_by"],
            approved_at=parse_timestamp(budget_row["approved_at"]),
            created_at=parse_timestamp(budget_row["created_at"]),
            updated_at=parse_timestamp(budget_row["updated_at"]),
            milestones=milestones,
            payments=payments,
            metrics=metrics,
            warnings=warnings or [],
        )

    @staticmethod
    def _build_summary(cursor, budget_row) -> BudgetSummary:
        from freelance_marketplace_api.app.core.db import parse_timestamp
        counts = cursor.execute(
            """
            SELECT COUNT(*) AS total,
                   SUM(CASE WHEN status = 'COMPLETED' THEN 1 ELSE 0 END) AS completed
            FROM milestones WHERE budget_id = ?
            """,
            (budget_row["id"],),
        ).fetchone()
        paid = cursor.execute(
            "SELECT COALESCE(SUM(amount), 0) AS total FROM payments WHERE budget_id = ?",
            (budget_row["id"],),
        ).fetchone()
        total_payments = paid["total"] or 0
        return BudgetSummary(
            id=budget_row["id"],
            job_id=budget_row["job_id"],
            type=budget_row["type"],
            amount=budget_row["amount"],
            currency=budget_row["currency"],
            status=budget_row["status"],
            milestone_count=counts["total"] or 0,
            completed_milestones=counts["completed"] or 0,
            total_payments=total_payments,
            utilization_percentage=_utilization(total_payments, budget_row["amount"]),
            created_at=parse_timestamp(budget_row["created_at"]),
            updated_at=parse_timestamp(budget_row["updated_at"]),
        )

    @staticmethod
    def _get_budget_row(cursor, job_id: int):
        row = cursor.execute("SELECT * FROM budgets WHERE job_id = ?", (job_id,)).fetchone()
        if not row:
            raise NotFoundError("Budget not found for this job")
        return row

    @staticmethod
    def _get_milestone_row(cursor, milestone_id: int):
        row = cursor.execute(
            """
            SELECT m.*, b.job_id AS job_id, b.amount AS budget_amount
            FROM milestones m JOIN budgets b ON b.id = m.budget_id
            WHERE m.id = ?
            """,
            (milestone_id,),
        ).fetchone()
        if not row:
            raise NotFoundError("Milestone not found")
        return row

    @staticmethod
    async def _record_event(job_id: int, event_type: str, event_data: Dict[str, Any], user_id: Optional[int]) -> None:
        try:
            from freelance_marketplace_api.app.services.job_event_service import JobEventService
            await JobEventService.record(job_id, event_type, event_data, user_id)
        except Exception:
            # Event log failures must not undo a committed change
            logger.exception("Failed to record %s event for job %s", event_type, job_id)

    @classmethod
    async def _read_budget(cls, job_id: int, warnings: Optional[List[str]] = None) -> BudgetRead:
        from freelance_marketplace_api.app.core.db import get_connection
        conn = get_connection()
        try:
            cursor = conn.cursor()
            return cls._build_budget(cursor, cls._get_budget_row(cursor, job_id), warnings)
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Budgets
    # ------------------------------------------------------------------

    @classmethod
    async def create_budget(cls, job_id: int, data: BudgetCreate, user_id: Optional[int]) -> BudgetRead:
        """Create the budget of a job together with its inline milestones.

        Raises ``NotFoundError`` for an unknown job and ``ValidationError``
        when a budget already exists or the payload breaks a rule.
        Milestone warnings are returned in ``BudgetRead.warnings``.
        """
        logger.info("User %s is creating a %s budget for job %s", user_id, data.type, job_id)
        from freelance_marketplace_api.app.core.db import get_connection, utc_now
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cursor.execute("SELECT id FROM jobs WHERE id = ?", (job_id,)).fetchone():
                raise NotFoundError("Job not found")
            if cursor.execute("SELECT id FROM budgets WHERE job_id = ?", (job_id,)).fetchone():
                raise ValidationError("Budget already exists for this job")

            warnings = BudgetValidator.validate_budget_creation(data)

            now = utc_now()
            cursor.execute(
                """
                INSERT INTO budgets
                    (job_id, type, amount, currency, estimated_hours, notes, status,
                     created_by, approved_by, approved_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    job_id,
                    data.type,
                    data.amount,
                    data.currency,
                    data.estimated_hours,
                    data.notes,
                    BudgetStatus.ACTIVE.value,
                    user_id,
                    user_id,
                    now,
                ),
            )
            budget_id = cursor.lastrowid
            if data.milestones:
                cls._insert_milestones(cursor, budget_id, data.milestones)
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

        await cls._record_event(
            job_id,
            "BUDGET_CREATED",
            {"budgetId": budget_id, "budgetData": data.model_dump(mode="json", by_alias=True)},
            user_id,
        )
        return await cls._read_budget(job_id, warnings)

    @classmethod
    async def get_budget_by_job_id(cls, job_id: int) -> BudgetRead:
        return await cls._read_budget(job_id)

    @classmethod
    async def update_budget(cls, job_id: int, data: BudgetUpdate, user_id: Optional[int]) -> BudgetRead:
        """Update budget fields; a ``milestones`` list replaces all milestones."""
        from freelance_marketplace_api.app.core.db import get_connection, utc_now
        changes = data.model_dump(exclude_unset=True)
        warnings: List[str] = []
        conn = get_connection()
        try:
            cursor = conn.cursor()
            budget = cls._get_budget_row(cursor, job_id)

            if data.amount is not None:
                BudgetValidator.validate_budget_amount_for_update(data.amount, data.currency or budget["currency"])
            elif data.currency is not None:
                BudgetValidator.validate_currency(data.currency)
            if data.type is not None:
                BudgetValidator.validate_budget_type(data.type)
            if data.status is not None and data.status not in BudgetStatus.__members__:
                raise ValidationError(
                    f"Unsupported budget status: {data.status}. "
                    f"Supported statuses: {', '.join(BudgetStatus.__members__)}"
                )
            if data.estimated_hours is not None:
                BudgetValidator.validate_estimated_hours(data.estimated_hours)
            if data.notes and len(data.notes) > 500:
                raise ValidationError("Budget notes cannot exceed 500 characters")
            if data.milestones:
                warnings = BudgetValidator.validate_milestones(
                    data.milestones, data.amount if data.amount is not None else budget["amount"]
                )

            set_clauses: List[str] = []
            params: List[Any] = []
            for field in ("type", "amount", "currency", "estimated_hours", "notes", "status"):
                if field in changes and changes[field] is not None:
                    set_clauses.append(f"{field} = ?")
                    params.append(changes[field])
            set_clauses.append("updated_at = ?")
            params.append(utc_now())
            params.append(budget["id"])
            cursor.execute(f"UPDATE budgets SET {', '.join(set_clauses)} WHERE id = ?", tuple(params))

            if data.milestones is not None:
                cursor.execute("DELETE FROM milestones WHERE budget_id = ?", (budget["id"],))
                cls._insert_milestones(cursor, budget["id"], data.milestones)
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

        await cls._record_event(
            job_id,
            "BUDGET_UPDATED",
            {"budgetId": budget["id"], "changes": data.model_dump(mode="json", by_alias=True, exclude_unset=True)},
            user_id,
        )
        if data.milestones is not None:
            from freelance_marketplace_api.app.services.notification_service import NotificationService
            await NotificationService.notify_milestone_event(budget["id"], "MILESTONE_UPDATED")
        return await cls._read_budget(job_id, warnings)

    @classmethod
    async def delete_budget(cls, job_id: int, user_id: Optional[int]) -> None:
        """Delete a budget; milestones and payments cascade."""
        from freelance_marketplace_api.app.core.db import get_connection
        conn = get_connection()
        try:
            cursor = conn.cursor()
            budget = cls._get_budget_row(cursor, job_id)
            cursor.execute("DELETE FROM budgets WHERE id = ?", (budget["id"],))
            conn.commit()
        finally:
            conn.close()
        logger.info("Budget %s of job %s deleted by user %s", budget["id"], job_id, user_id)
        await cls._record_event(job_id, "BUDGET_DELETED", {"budgetId": budget["id"]}, user_id)

    @classmethod
    async def get_budget_summary(cls, job_id: int) -> BudgetSummary:
        from freelance_marketplace_api.app.core.db import get_connection
        conn = get_connection()
        try:
            cursor = conn.cursor()
            return cls._build_summary(cursor, cls._get_budget_row(cursor, job_id))
        finally:
            conn.close()

    @classmethod
    async def get_user_budgets(cls, user_id: int) -> List[BudgetSummary]:
        """Budgets created by ``user_id``, newest first."""
        from freelance_marketplace_api.app.core.db import get_connection
        conn = get_connection()
        try:
            cursor = conn.cursor()
            rows = cursor.execute(
                "SELECT * FROM budgets WHERE created_by = ? ORDER BY created_at DESC, id DESC",
                (user_id,),
            ).fetchall()
            return [cls._build_summary(cursor, row) for row in rows]
        finally:
            conn.close()

    @classmethod
    async def get_all_budgets(cls, page: int = 1, limit: int = 10) -> BudgetList:
        """Paginated list of all budgets for administrators."""
        page = max(page, 1)
        limit = max(min(limit, 100), 1)
        from freelance_marketplace_api.app.core.db import get_connection
        conn = get_connection()
        try:
            cursor = conn.cursor()
            total = cursor.execute("SELECT COUNT(*) AS count FROM budgets").fetchone()["count"]
            rows = cursor.execute(
                "SELECT * FROM budgets ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
                (limit, (page - 1) * limit),
            ).fetchall()
            return BudgetList(
                budgets=[cls._build_summary(cursor, row) for row in rows],
                pagination=Pagination(
                    page=page,
                    limit=limit,
                    total=total,
                    total_pages=(total + limit - 1) // limit,
                ),
            )
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Milestones
    # ------------------------------------------------------------------

    @classmethod
    async def create_milestone(cls, job_id: int, data: MilestoneCreate, user_id: Optional[int]) -> BudgetRead:
        """Add a milestone to a job budget.

        Unlike inline milestones, standalone milestones are validated
        strictly: the name and a positive amount are required and the
        milestone total may not exceed the budget.
        """
        from freelance_marketplace_api.app.core.db import get_connection
        conn = get_connection()
        try:
            cursor = conn.cursor()
            budget = cls._get_budget_row(cursor, job_id)

            if not data.name or not data.name.strip():
                raise ValidationError("Milestone name is required")
            if len(data.name) > 100:
                raise ValidationError("Milestone name cannot exceed 100 characters")
            if data.amount is None or data.amount <= 0:
                raise ValidationError("Milestone amount must be greater than 0")
            if data.percentage is not None and (data.percentage < 0 or data.percentage > 100):
                raise ValidationError("Milestone percentage must be between 0 and 100")
            existing = cursor.execute(
                "SELECT COALESCE(SUM(amount), 0) AS total FROM milestones WHERE budget_id = ?",
                (budget["id"],),
            ).fetchone()["total"]
            if existing + data.amount > budget["amount"]:
                raise ValidationError("Total milestone amount cannot exceed budget amount")

            cls._insert_milestones(cursor, budget["id"], [data])
            milestone_id = cursor.lastrowid
            conn.commit()
        finally:
            conn.close()

        await cls._record_event(
            job_id,
            "MILESTONE_CREATED",
            {
                "milestoneId": milestone_id,
                "milestoneName": data.name,
                "amount": data.amount,
                "percentage": data.percentage or 0,
            },
            user_id,
        )
        from freelance_marketplace_api.app.services.notification_service import NotificationService
        await NotificationService.notify_milestone_event(budget["id"], "MILESTONE_CREATED", milestone_id)
        return await cls._read_budget(job_id)

    @classmethod
    async def update_milestone(cls, milestone_id: int, data: MilestoneUpdate, user_id: Optional[int]) -> BudgetRead:
        """Update milestone fields.  Fields that are not sent keep their value."""
        from freelance_marketplace_api.app.core.db import get_connection, to_db_timestamp, to_json, utc_now
        changes = data.model_dump(exclude_unset=True)
        conn = get_connection()
        try:
            cursor = conn.cursor()
            milestone = cls._get_milestone_row(cursor, milestone_id)

            if data.amount is not None:
                if data.amount <= 0:
                    raise ValidationError("Milestone amount must be greater than 0")
                others = cursor.execute(
                    "SELECT COALESCE(SUM(amount), 0) AS total FROM milestones WHERE budget_id = ? AND id != ?",
                    (milestone["budget_id"], milestone_id),
                ).fetchone()["total"]
                if others + data.amount > milestone["budget_amount"]:
                    raise ValidationError("Total milestone amount cannot exceed budget amount")
            if data.percentage is not None and (data.percentage < 0 or data.percentage > 100):
                raise ValidationError("Milestone percentage must be between 0 and 100")
            if data.name is not None:
                if not data.name.strip():
                    raise ValidationError("Milestone name is required")
                if len(data.name) > 100:
                    raise ValidationError("Milestone name cannot exceed 100 characters")

            set_clauses: List[str] = []
            params: List[Any] = []
            for field in ("name", "description", "amount", "percentage", "acceptance_criteria", "notes"):
                if field in changes and changes[field] is not None:
                    set_clauses.append(f"{field} = ?")
                    params.append(changes[field])
            if data.due_date is not None:
                set_clauses.append("due_date = ?")
                params.append(to_db_timestamp(data.due_date))
            if data.deliverables is not None:
                set_clauses.append("deliverables = ?")
                params.append(to_json(data.deliverables))
            set_clauses.append("updated_at = ?")
            params.append(utc_now())
            params.append(milestone_id)
            cursor.execute(f"UPDATE milestones SET {', '.join(set_clauses)} WHERE id = ?", tuple(params))
            conn.commit()
        finally:
            conn.close()

        await cls._record_event(
            milestone["job_id"],
            "MILESTONE_UPDATED",
            {"milestoneId": milestone_id, "changes": data.model_dump(mode="json", by_alias=True, exclude_unset=True)},
            user_id,
        )
        from freelance_marketplace_api.app.services.notification_service import NotificationService
        await NotificationService.notify_milestone_event(milestone["budget_id"], "MILESTONE_UPDATED", milestone_id)
        return await cls._read_budget(milestone["job_id"])

    @classmethod
    async def update_milestone_status(
        cls, milestone_id: int, status: str, user_id: Optional[int], notes: Optional[str] = None
    ) -> BudgetRead:
        """Move a milestone through its workflow.

        Completing the last open milestone completes the budget.
        """
        from freelance_marketplace_api.app.core.db import get_connection, utc_now
        conn = get_connection()
        try:
            cursor = conn.cursor()
            milestone = cls._get_milestone_row(cursor, milestone_id)
            old_status = milestone["status"]
            validate_status_transition(old_status, status)

            now = utc_now()
            is_completed = status == MilestoneStatus.COMPLETED.value
            new_notes = milestone["notes"]
            if notes:
                new_notes = f"{milestone['notes'] or ''}\n\nStatus Update: {status} - {notes}"
            cursor.execute(
                """
                UPDATE milestones
                SET status = ?, completed_at = ?, completed_by = ?, notes = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    status,
                    now if is_completed else None,
                    user_id if is_completed else None,
                    new_notes,
                    now,
                    milestone_id,
                ),
            )
            conn.commit()
        finally:
            conn.close()

        logger.info("Milestone %s moved from %s to %s by user %s", milestone_id, old_status, status, user_id)
        await cls._record_event(
            milestone["job_id"],
            "MILESTONE_STATUS_UPDATED",
            {"milestoneId": milestone_id, "oldStatus": old_status, "newStatus": status, "notes": notes},
            user_id,
        )
        from freelance_marketplace_api.app.services.notification_service import NotificationService
        await NotificationService.notify_milestone_event(
            milestone["budget_id"], "MILESTONE_STATUS_UPDATED", milestone_id
        )
        if status == MilestoneStatus.COMPLETED.value:
            await cls._check_budget_completion(milestone["budget_id"])
        return await cls._read_budget(milestone["job_id"])

    @classmethod
    async def _check_budget_completion(cls, budget_id: int) -> None:
        from freelance_marketplace_api.app.core.db import get_connection, utc_now
        conn = get_connection()
        try:
            cursor = conn.cursor()
            counts = cursor.execute(
                """
                SELECT COUNT(*) AS total,
                       SUM(CASE WHEN status = 'COMPLETED' THEN 1 ELSE 0 END) AS completed
                FROM milestones WHERE budget_id = ?
                """,
                (budget_id,),
            ).fetchone()
            total, completed = counts["total"] or 0, counts["completed"] or 0
            if total == 0 or completed != total:
                return
            cursor.execute(
                "UPDATE budgets SET status = ?, updated_at = ? WHERE id = ?",
                (BudgetStatus.COMPLETED.value, utc_now(), budget_id),
            )
            conn.commit()
        finally:
            conn.close()
        logger.info("All milestones of budget %s completed", budget_id)
        from freelance_marketplace_api.app.services.notification_service import NotificationService
        await NotificationService.notify_milestone_event(budget_id, "BUDGET_COMPLETED")

    @classmethod
    async def delete_milestone(cls, milestone_id: int, user_id: Optional[int]) -> BudgetRead:
        from freelance_marketplace_api.app.core.db import get_connection
        conn = get_connection()
        try:
            cursor = conn.cursor()
            milestone = cls._get_milestone_row(cursor, milestone_id)
            if milestone["status"] == MilestoneStatus.COMPLETED.value:
                raise ValidationError("Cannot delete completed milestone")
            cursor.execute("DELETE FROM milestones WHERE id = ?", (milestone_id,))
            conn.commit()
        finally:
            conn.close()

        await cls._record_event(
            milestone["job_id"],
            "MILESTONE_DELETED",
            {"milestoneId": milestone_id, "milestoneName": milestone["name"]},
            user_id,
        )
        from freelance_marketplace_api.app.services.notification_service import NotificationService
        await NotificationService.notify_milestone_event(milestone["budget_id"], "MILESTONE_DELETED", milestone_id)
        return await cls._read_budget(milestone["job_id"])

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    @staticmethod
    def _insert_payment(cursor, budget_id: int, milestone_id: Optional[int], payment_type: str, data) -> int:
        cursor.execute(
            """
            INSERT INTO payments
                (budget_id, milestone_id, amount, currency, payment_type, status, reference, description, notes)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                budget_id,
                milestone_id,
                data.amount,
                data.currency,
                payment_type,
                PaymentStatus.PENDING.value,
                data.reference,
                data.description,
                data.notes,
            ),
        )
        return cursor.lastrowid

    @classmethod
    async def process_milestone_payment(
        cls, milestone_id: int, data: MilestonePaymentCreate, user_id: Optional[int]
    ) -> BudgetRead:
        """Create a pending payment for a completed milestone."""
        from freelance_marketplace_api.app.core.db import get_connection
        conn = get_connection()
        try:
            cursor = conn.cursor()
            milestone = cls._get_milestone_row(cursor, milestone_id)
            if milestone["status"] != MilestoneStatus.COMPLETED.value:
                raise ValidationError("Payment can only be processed for completed milestones")
            if data.amount <= 0:
                raise ValidationError("Payment amount must be greater than 0")
            if data.amount > milestone["amount"]:
                raise ValidationError("Payment amount cannot exceed milestone amount")
            BudgetValidator.validate_currency(data.currency)
            payment_id = cls._insert_payment(
                cursor, milestone["budget_id"], milestone_id, PaymentType.MILESTONE.value, data
            )
            conn.commit()
        finally:
            conn.close()

        logger.info("Payment %s of %s %s created for milestone %s", payment_id, data.amount, data.currency, milestone_id)
        await cls._record_event(
            milestone["job_id"],
            "PAYMENT_CREATED",
            {
                "paymentId": payment_id,
                "milestoneId": milestone_id,
                "amount": data.amount,
                "currency": data.currency,
                "paymentType": PaymentType.MILESTONE.value,
            },
            user_id,
        )
        from freelance_marketplace_api.app.services.notification_service import NotificationService
        await NotificationService.notify_payment_event(payment_id, "PAYMENT_CREATED")
        return await cls._read_budget(milestone["job_id"])

    @classmethod
    async def process_payment(cls, job_id: int, data: PaymentCreate, user_id: Optional[int]) -> BudgetRead:
        """Record a payment of any type directly against a job budget."""
        from freelance_marketplace_api.app.core.db import get_connection
        if data.payment_type not in PaymentType.__members__:
            raise ValidationError(
                f"Unsupported payment type: {data.payment_type}. "
                f"Supported types: {', '.join(PaymentType.__members__)}"
            )
        if data.amount <= 0:
            raise ValidationError("Payment amount must be greater than 0")
        BudgetValidator.validate_currency(data.currency)
        conn = get_connection()
        try:
            cursor = conn.cursor()
            budget = cls._get_budget_row(cursor, job_id)
            if data.milestone_id is not None:
                owned = cursor.execute(
                    "SELECT id FROM milestones WHERE id = ? AND budget_id = ?",
                    (data.milestone_id, budget["id"]),
                ).fetchone()
                if not owned:
                    raise NotFoundError("Milestone not found")
            payment_id = cls._insert_payment(cursor, budget["id"], data.milestone_id, data.payment_type, data)
            conn.commit()
        finally:
            conn.close()

        await cls._record_event(
            job_id,
            "PAYMENT_CREATED",
            {
                "paymentId": payment_id,
                "amount": data.amount,
                "currency": data.currency,
                "paymentType": data.payment_type,
            },
            user_id,
        )
        from freelance_marketplace_api.app.services.notification_service import NotificationService
        await NotificationService.notify_payment_event(payment_id, "PAYMENT_CREATED")
        return await cls._read_budget(job_id)

    @classmethod
    async def update_payment_status(
        cls, payment_id: int, status: str, user_id: Optional[int], failure_reason: Optional[str] = None
    ) -> BudgetRead:
        """Change a payment's status.

        ``COMPLETED`` stamps the processing time and user; ``FAILED``
        keeps the failure reason.  Other statuses clear both.
        """
        if status not in PaymentStatus.__members__:
            raise ValidationError(
                f"Unsupported payment status: {status}. "
                f"Supported statuses: {', '.join(PaymentStatus.__members__)}"
            )
        from freelance_marketplace_api.app.core.db import get_connection, utc_now
        conn = get_connection()
        try:
            cursor = conn.cursor()
            payment = cursor.execute(
                """
                SELECT p.*, b.job_id AS job_id
                FROM payments p JOIN budgets b ON b.id = p.budget_id
                WHERE p.id = ?
                """,
                (payment_id,),
            ).fetchone()
            if not payment:
                raise NotFoundError("Payment not found")
            now = utc_now()
            is_completed = status == PaymentStatus.COMPLETED.value
            cursor.execute(
                """
                UPDATE payments
                SET status = ?, processed_at = ?, processed_by = ?, failure_reason = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    status,
                    now if is_completed else None,
                    user_id if is_completed else None,
                    failure_reason if status == PaymentStatus.FAILED.value else None,
                    now,
                    payment_id,
                ),
            )
            conn.commit()
        finally:
            conn.close()

        await cls._record_event(
            payment["job_id"],
            "PAYMENT_STATUS_UPDATED",
            {
                "paymentId": payment_id,
                "oldStatus": payment["status"],
                "newStatus": status,
                "failureReason": failure_reason,
            },
            user_id,
        )
        from freelance_marketplace_api.app.services.notification_service import NotificationService
        await NotificationService.notify_payment_event(payment_id, "PAYMENT_STATUS_UPDATED")
        return await cls._read_budget(payment["job_id"])
