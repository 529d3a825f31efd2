"""
Tests for budget, milestone and payment notifications
Delivery channels are stubs, so these tests check the rendered content,
the per-channel results and the NOTIFICATION_SENT event trail.
"""

from unittest.mock import AsyncMock, patch

import pytest

from freelance_marketplace_api.app.services.job_event_service import JobEventService
from freelance_marketplace_api.app.services.notification_service import (
    NotificationService,
    budget_notification_config,
    milestone_event_message,
    milestone_notification_config,
    payment_event_message,
    payment_notification_config,
)


class TestNotificationContent:
    def test_budget_created(self):
        config = budget_notification_config(
            "BUDGET_CREATED", {"id": 7, "jobTitle": "Landing page", "amount": 5000, "currency": "USD", "type": "FIXED"}
        )
        assert config["email"]["subject"] == "New Budget Created"
        assert config["email"]["template"] == "budget-created"
        assert config["email"]["data"]["action"] == "created"
        assert config["email"]["data"]["budgetType"] == "FIXED"
        assert config["push"]["body"] == "New budget of USD 5000 created for Landing page"
        assert config["push"]["data"] == {"type": "budget_created", "budgetId": 7}

    def test_unknown_budget_type_uses_generic_content(self):
        config = budget_notification_config("BUDGET_ARCHIVED", {"id": 7})
        assert config["email"]["subject"] == "Budget Notification"
        assert config["push"]["body"] == "Budget update for Unknown Job"
        assert config["push"]["data"]["type"] == "budget_notification"

    def test_job_title_from_nested_budget(self):
        config = milestone_notification_config(
            "MILESTONE_COMPLETED", {"id": 3, "name": "Design", "budget": {"job": {"title": "Shop"}}}
        )
        assert config["push"]["body"] == 'Milestone "Design" has been completed'
        assert config["email"]["data"]["jobTitle"] == "Shop"
        assert config["email"]["data"]["milestoneCurrency"] == "USD"

    def test_failed_payment_includes_reason(self):
        config = payment_notification_config(
            "PAYMENT_FAILED", {"id": 9, "amount": 150, "currency": "EUR", "failureReason": "Card declined"}
        )
        assert config["email"]["data"]["failureReason"] == "Card declined"
        assert config["push"]["title"] == "Payment Failed"
        assert config["push"]["body"] == "Payment of EUR 150 has failed"

    def test_completed_payment_has_no_reason(self):
        config = payment_notification_config("PAYMENT_COMPLETED", {"id": 9, "amount": 150, "currency": "EUR"})
        assert "failureReason" not in config["email"]["data"]

    def test_event_messages(self):
        assert milestone_event_message("MILESTONE_CREATED", "Shop", "Carl") == (
            'New milestone created for job "Shop" by Carl'
        )
        assert milestone_event_message("SOMETHING_ELSE", "Shop", "Carl") == 'Milestone event occurred for job "Shop"'
        assert payment_event_message("PAYMENT_CREATED", "Shop", "Carl", 1500.0, "USD", "PENDING") == (
            'Payment of 1500 USD created for job "Shop" by Carl'
        )
        assert payment_event_message("PAYMENT_STATUS_UPDATED", "Shop", "Carl", 1500.0, "USD", "FAILED") == (
            'Payment status updated to FAILED for job "Shop" by Carl'
        )


class TestNotificationDelivery:
    @pytest.mark.asyncio
    async def test_email_and_push(self, accounts, job):
        result = await NotificationService.send_budget_notification(
            accounts["client"].id,
            "BUDGET_CREATED",
            {"jobId": job.id, "amount": 5000, "currency": "USD"},
            channels=["email", "push"],
        )
        assert result.email_sent is True
        assert result.push_sent is True
        assert result.errors == []

        events = await JobEventService.list_events(job_id=job.id, event_type="NOTIFICATION_SENT")
        assert len(events) == 1
        payload = events[0].event_data
        assert payload["notificationType"] == "BUDGET_CREATED"
        assert payload["userId"] == accounts["client"].id
        assert payload["channels"] == {"emailSent": True, "pushSent": True, "errors": []}

    @pytest.mark.asyncio
    async def test_email_is_default_channel(self, accounts):
        result = await NotificationService.send_payment_notification(
            accounts["client"].id, "PAYMENT_COMPLETED", {"amount": 10, "currency": "USD"}
        )
        assert result.email_sent is True
        assert result.push_sent is False

    @pytest.mark.asyncio
    async def test_job_title_is_looked_up(self, accounts, job):
        send_email = AsyncMock(return_value={"success": True, "messageId": "email_1"})
        with patch.object(NotificationService, "send_email", send_email):
            await NotificationService.send_milestone_notification(
                accounts["developer"].id, "MILESTONE_CREATED", {"jobId": job.id, "name": "Design"}
            )
        to_email, subject, template, data = send_email.call_args[0]
        assert to_email == "dev@example.com"
        assert subject == "New Milestone Created"
        assert template == "milestone-created"
        assert data["jobTitle"] == "Company website"
        assert data["userName"] == "Dana Developer"

    @pytest.mark.asyncio
    async def test_unknown_user_skips_email(self, accounts):
        result = await NotificationService.send_budget_notification(424242, "BUDGET_UPDATED", {})
        assert result.email_sent is False
        assert result.errors == []

    @pytest.mark.asyncio
    async def test_channel_errors_are_collected(self, accounts):
        """A failing channel is reported in the result, not raised"""
        with patch.object(NotificationService, "send_email", AsyncMock(side_effect=RuntimeError("smtp down"))), \
                patch.object(NotificationService, "send_push", AsyncMock(return_value={"success": False, "error": "no device"})):
            result = await NotificationService.send_budget_notification(
                accounts["client"].id, "BUDGET_UPDATED", {}, channels=["email", "push"]
            )
        assert result.email_sent is False
        assert result.push_sent is False
        assert result.errors == ["Email error: smtp down", "Push failed: no device"]

    @pytest.mark.asyncio
    async def test_notification_without_job_is_system_event(self, accounts):
        await NotificationService.send_budget_notification(accounts["client"].id, "BUDGET_UPDATED", {"jobId": 999})
        events = await JobEventService.list_events(event_type="NOTIFICATION_SENT")
        assert len(events) == 1
        assert events[0].job_id is None

    @pytest.mark.asyncio
    async def test_internal_notification_for_missing_budget_is_ignored(self):
        await NotificationService.notify_milestone_event(12345, "MILESTONE_CREATED")
        await NotificationService.notify_payment_event(12345, "PAYMENT_CREATED")
        assert await JobEventService.list_events() == []
