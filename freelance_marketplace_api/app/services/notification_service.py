"""
Budget, milestone and payment notifications.

E-mail and push delivery are not wired to a provider: the ``send_*``
methods log the message and report success with a generated id.  Every
notification is recorded as a ``NOTIFICATION_SENT`` job event.  Internal
notifications raised by the budget service are written to the job event
log as ``MILESTONE_NOTIFICATION`` / ``PAYMENT_NOTIFICATION``.

None of these methods fail the operation that triggered them: errors are
logged and collected in the result instead.
"""

import logging
import time
import uuid
from typing import Any, Dict, List, Optional

from ..schemas.notification import NotificationResult


logger = logging.getLogger(__name__)


def _generate_id(prefix: str) -> str:
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def _job_title(data: Dict[str, Any]) -> str:
    job = data.get("job") or (data.get("budget") or {}).get("job") or {}
    return data.get("jobTitle") or job.get("title") or "Unknown Job"


def budget_notification_config(notification_type: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Return e-mail and push content for a budget notification."""
    job_title = _job_title(data)
    base = {
        "jobTitle": job_title,
        "budgetAmount": data.get("amount"),
        "budgetCurrency": data.get("currency"),
        "budgetType": data.get("type"),
    }
    budget_id = data.get("id")
    currency, amount = data.get("currency"), data.get("amount")
    configs = {
        "BUDGET_CREATED": (
            "New Budget Created", "budget-created", "created",
            "Budget Created", f"New budget of {currency} {amount} created for {job_title}",
        ),
        "BUDGET_UPDATED": (
            "Budget Updated", "budget-updated", "updated",
            "Budget Updated", f"Budget for {job_title} has been updated",
        ),
        "BUDGET_COMPLETED": (
            "Budget Completed", "budget-completed", "completed",
            "Budget Completed", f"Budget for {job_title} has been completed",
        ),
        "BUDGET_OVERBUDGET": (
            "Budget Alert - Over Budget", "budget-overbudget", "over_budget",
            "Budget Alert", f"Budget for {job_title} is over the limit",
        ),
    }
    if notification_type not in configs:
        return {
            "email": {"subject": "Budget Notification", "template": "budget-notification", "data": base},
            "push": {
                "title": "Budget Notification",
                "body": f"Budget update for {job_title}",
                "data": {"type": "budget_notification", "budgetId": budget_id},
            },
        }
    subject, template, action, title, body = configs[notification_type]
    return {
        "email": {"subject": subject, "template": template, "data": {**base, "action": action}},
        "push": {
            "title": title,
            "body": body,
            "data": {"type": notification_type.lower(), "budgetId": budget_id},
        },
    }


def milestone_notification_config(notification_type: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Return e-mail and push content for a milestone notification."""
    job_title = _job_title(data)
    name = data.get("name")
    base = {
        "milestoneName": name,
        "milestoneAmount": data.get("amount"),
        "milestoneCurrency": data.get("currency") or "USD",
        "jobTitle": job_title,
    }
    milestone_id = data.get("id")
    configs = {
        "MILESTONE_CREATED": (
            "New Milestone Created", "milestone-created", "created",
            "Milestone Created", f'New milestone "{name}" created for {job_title}',
        ),
        "MILESTONE_UPDATED": (
            "Milestone Updated", "milestone-updated", "updated",
            "Milestone Updated", f'Milestone "{name}" has been updated',
        ),
        "MILESTONE_COMPLETED": (
            "Milestone Completed", "milestone-completed", "completed",
            "Milestone Completed", f'Milestone "{name}" has been completed',
        ),
        "MILESTONE_OVERDUE": (
            "Milestone Overdue Alert", "milestone-overdue", "overdue",
            "Milestone Overdue", f'Milestone "{name}" is overdue',
        ),
    }
    if notification_type not in configs:
        return {
            "email": {"subject": "Milestone Notification", "template": "milestone-notification", "data": base},
            "push": {
                "title": "Milestone Notification",
                "body": f"Milestone update for {job_title}",
                "data": {"type": "milestone_notification", "milestoneId": milestone_id},
            },
        }
    subject, template, action, title, body = configs[notification_type]
    return {
        "email": {"subject": subject, "template": template, "data": {**base, "action": action}},
        "push": {
            "title": title,
            "body": body,
            "data": {"type": notification_type.lower(), "milestoneId": milestone_id},
        },
    }


def payment_notification_config(notification_type: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Return e-mail and push content for a payment notification."""
    job_title = _job_title(data)
    currency, amount = data.get("currency"), data.get("amount")
    base = {
        "paymentAmount": amount,
        "paymentCurrency": currency,
        "paymentReference": data.get("reference"),
        "jobTitle": job_title,
    }
    payment_id = data.get("id")
    configs = {
        "PAYMENT_CREATED": (
            "Payment Created", "payment-created", "created",
            f"Payment of {currency} {amount} created for {job_title}",
        ),
        "PAYMENT_COMPLETED": (
            "Payment Completed", "payment-completed", "completed",
            f"Payment of {currency} {amount} has been completed",
        ),
        "PAYMENT_FAILED": (
            "Payment Failed", "payment-failed", "failed",
            f"Payment of {currency} {amount} has failed",
        ),
        "PAYMENT_REFUNDED": (
            "Payment Refunded", "payment-refunded", "refunded",
            f"Payment of {currency} {amount} has been refunded",
        ),
    }
    if notification_type not in configs:
        return {
            "email": {"subject": "Payment Notification", "template": "payment-notification", "data": base},
            "push": {
                "title": "Payment Notification",
                "body": f"Payment update for {job_title}",
                "data": {"type": "payment_notification", "paymentId": payment_id},
            },
        }
    subject, template, action, body = configs[notification_type]
    email_data = {**base, "action": action}
    if notification_type == "PAYMENT_FAILED":
        email_data["failureReason"] = data.get("failureReason")
    return {
        "email": {"subject": subject, "template": template, "data": email_data},
        "push": {
            "title": subject,
            "body": body,
            "data": {"type": notification_type.lower(), "paymentId": payment_id},
        },
    }


class NotificationService:
    """Send notifications through the configured channels."""

    @classmethod
    async def send_email(cls, to_email: str, subject: str, template: str, data: Dict[str, Any]) -> Dict[str, Any]:
        logger.info("Email notification to %s: subject=%r template=%s data=%s", to_email, subject, template, data)
        return {"success": True, "messageId": _generate_id("email")}

    @classmethod
    async def send_push(
        cls, user_id: int, title: str, body: str, data: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        logger.info("Push notification to user %s: title=%r body=%r data=%s", user_id, title, body, data)
        return {"success": True, "notificationId": _generate_id("push")}

    @classmethod
    async def send_budget_notification(
        cls, user_id: int, notification_type: str, data: Dict[str, Any], channels: Optional[List[str]] = None
    ) -> NotificationResult:
        config = budget_notification_config(notification_type, await cls._with_job_title(data))
        return await cls._dispatch(user_id, notification_type, data, config, channels)

    @classmethod
    async def send_milestone_notification(
        cls, user_id: int, notification_type: str, data: Dict[str, Any], channels: Optional[List[str]] = None
    ) -> NotificationResult:
        config = milestone_notification_config(notification_type, await cls._with_job_title(data))
        return await cls._dispatch(user_id, notification_type, data, config, channels)

    @classmethod
    async def send_payment_notification(
        cls, user_id: int, notification_type: str, data: Dict[str, Any], channels: Optional[List[str]] = None
    ) -> NotificationResult:
        config = payment_notification_config(notification_type, await cls._with_job_title(data))
        return await cls._dispatch(user_id, notification_type, data, config, channels)

    @classmethod
    async def _with_job_title(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        """Fill in ``jobTitle`` from the jobs table when only ``jobId`` is given."""
        if data.get("jobTitle") or not data.get("jobId"):
            return data
        from freelance_marketplace_api.app.core.db import get_connection
        conn = get_connection()
        try:
            row = conn.execute("SELECT title FROM jobs WHERE id = ?", (data["jobId"],)).fetchone()
        finally:
            conn.close()
        return {**data, "jobTitle": row["title"]} if row else data

    @classmethod
    async def _dispatch(
        cls,
        user_id: int,
        notification_type: str,
        data: Dict[str, Any],
        config: Dict[str, Any],
        channels: Optional[List[str]],
    ) -> NotificationResult:
        channels = channels or ["email"]
        result = NotificationResult()

        if "email" in channels:
            try:
                user = await cls._get_user(user_id)
                if user and user["email"]:
                    email = config["email"]
                    sent = await cls.send_email(
                        user["email"],
                        email["subject"],
                        email["template"],
                        {**email["data"], "userName": user["full_name"] or user["email"]},
                    )
                    if sent.get("success"):
                        result.email_sent = True
                    else:
                        result.errors.append(f"Email failed: {sent.get('error')}")
                else:
                    logger.info("Skipping e-mail %s: user %s not found", notification_type, user_id)
            except Exception as e:
                logger.exception("E-mail notification %s failed", notification_type)
                result.errors.append(f"Email error: {e}")

        if "push" in channels:
            try:
                push = config["push"]
                sent = await cls.send_push(user_id, push["title"], push["body"], push["data"])
                if sent.get("success"):
                    result.push_sent = True
                else:
                    result.errors.append(f"Push failed: {sent.get('error')}")
            except Exception as e:
                logger.exception("Push notification %s failed", notification_type)
                result.errors.append(f"Push error: {e}")

        await cls._log_notification_event(user_id, notification_type, data, result)
        return result

    @staticmethod
    async def _get_user(user_id: int):
        from freelance_marketplace_api.app.core.db import get_connection
        conn = get_connection()
        try:
            return conn.execute(
                "SELECT email, full_name FROM users WHERE id = ? AND is_deleted = 0", (user_id,)
            ).fetchone()
        finally:
            conn.close()

    @staticmethod
    async def _log_notification_event(
        user_id: int, notification_type: str, data: Dict[str, Any], result: NotificationResult
    ) -> None:
        try:
            from freelance_marketplace_api.app.core.db import utc_now
            from freelance_marketplace_api.app.services.job_event_service import JobEventService
            job_id = data.get("jobId") or (data.get("budget") or {}).get("jobId")
            await JobEventService.record(
                job_id=await _existing_job_id(job_id),
                event_type="NOTIFICATION_SENT",
                event_data={
                    "notificationType": notification_type,
                    "userId": user_id,
                    "channels": result.model_dump(by_alias=True),
                    "data": data,
                    "timestamp": utc_now(),
                },
            )
        except Exception:
            logger.exception("Failed to log notification event %s", notification_type)

    # ------------------------------------------------------------------
    # Internal notifications raised by the budget service
    # ------------------------------------------------------------------

    @classmethod
    async def notify_milestone_event(
        cls, budget_id: int, event_type: str, milestone_id: Optional[int] = None
    ) -> None:
        """Record a ``MILESTONE_NOTIFICATION`` job event for a budget."""
        try:
            context = await cls._budget_context(budget_id)
            if not context:
                return
            from freelance_marketplace_api.app.services.job_event_service import JobEventService
            await JobEventService.record(
                job_id=context["job_id"],
                event_type="MILESTONE_NOTIFICATION",
                event_data={
                    "eventType": event_type,
                    "budgetId": budget_id,
                    "milestoneId": milestone_id,
                    "message": milestone_event_message(event_type, context["job_title"], context["client_name"]),
                },
                user_id=context["created_by"],
            )
            logger.info("Milestone notification sent: %s for budget %s", event_type, budget_id)
        except Exception:
            logger.exception("Failed to send milestone notification")

    @classmethod
    async def notify_payment_event(cls, payment_id: int, event_type: str) -> None:
        """Record a ``PAYMENT_NOTIFICATION`` job event for a payment."""
        try:
            from freelance_marketplace_api.app.core.db import get_connection
            conn = get_connection()
            try:
                payment = conn.execute(
                    "SELECT budget_id, amount, currency, status FROM payments WHERE id = ?", (payment_id,)
                ).fetchone()
            finally:
                conn.close()
            if not payment:
                return
            context = await cls._budget_context(payment["budget_id"])
            if not context:
                return
            from freelance_marketplace_api.app.services.job_event_service import JobEventService
            await JobEventService.record(
                job_id=context["job_id"],
                event_type="PAYMENT_NOTIFICATION",
                event_data={
                    "eventType": event_type,
                    "paymentId": payment_id,
                    "message": payment_event_message(
                        event_type, context["job_title"], context["client_name"],
                        payment["amount"], payment["currency"], payment["status"],
                    ),
                },
                user_id=context["created_by"],
            )
            logger.info("Payment notification sent: %s for payment %s", event_type, payment_id)
        except Exception:
            logger.exception("Failed to send payment notification")

    @staticmethod
    async def _budget_context(budget_id: int) -> Optional[Dict[str, Any]]:
        from freelance_marketplace_api.app.core.db import get_connection
        conn = get_connection()
        try:
            row = conn.execute(
                """
                SELECT b.job_id, b.created_by, j.title, u.full_name, u.email
                FROM budgets b
                JOIN jobs j ON j.id = b.job_id
                LEFT JOIN users u ON u.id = j.client_id
                WHERE b.id = ?
                """,
                (budget_id,),
            ).fetchone()
        finally:
            conn.close()
        if not row:
            return None
        return {
            "job_id": row["job_id"],
            "created_by": row["created_by"],
            "job_title": row["title"],
            "client_name": row["full_name"] or row["email"] or "Unknown client",
        }


async def _existing_job_id(job_id: Any) -> Optional[int]:
    """Return ``job_id`` if such a job exists, else ``None`` (system event)."""
    if job_id is None:
        return None
    from freelance_marketplace_api.app.core.db import get_connection
    conn = get_connection()
    try:
        row = conn.execute("SELECT id FROM jobs WHERE id = ?", (job_id,)).fetchone()
    finally:
        conn.close()
    return row["id"] if row else None


def milestone_event_message(event_type: str, job_title: str, client_name: str) -> str:
    messages = {
        "MILESTONE_CREATED": f'New milestone created for job "{job_title}" by {client_name}',
        "MILESTONE_UPDATED": f'Milestone updated for job "{job_title}" by {client_name}',
        "MILESTONE_STATUS_UPDATED": f'Milestone status changed for job "{job_title}" by {client_name}',
        "MILESTONE_DELETED": f'Milestone deleted for job "{job_title}" by {client_name}',
        "BUDGET_COMPLETED": f'All milestones completed for job "{job_title}" by {client_name}',
    }
    return messages.get(event_type, f'Milestone event occurred for job "{job_title}"')


def payment_event_message(
    event_type: str, job_title: str, client_name: str, amount: float, currency: str, status: str
) -> str:
    if event_type == "PAYMENT_CREATED":
        return f'Payment of {amount:g} {currency} created for job "{job_title}" by {client_name}'
    if event_type == "PAYMENT_STATUS_UPDATED":
        return f'Payment status updated to {status} for job "{job_title}" by {client_name}'
    return f'Payment event occurred for job "{job_title}"'
