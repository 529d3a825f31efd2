"""
Notification endpoints for API v1.

Delivery is stubbed: messages are logged and recorded in the job event
log.  The endpoints let admins and clients trigger the same budget,
milestone and payment notifications the service layer sends itself.
"""

from fastapi import APIRouter, Depends

from freelance_marketplace_api.app.core.security import ROLE_ADMIN, ROLE_CLIENT, require_roles
from freelance_marketplace_api.app.schemas.notification import NotificationRequest, NotificationResult
from freelance_marketplace_api.app.services.notification_service import NotificationService


router = APIRouter()

notifiers = require_roles(ROLE_CLIENT, ROLE_ADMIN)


@router.post("/budget/{user_id}", response_model=NotificationResult)
async def send_budget_notification(
    user_id: int,
    request: NotificationRequest,
    current_user: dict = Depends(notifiers),
) -> NotificationResult:
    return await NotificationService.send_budget_notification(
        user_id, request.notification_type, request.data, request.channels
    )


@router.post("/milestone/{user_id}", response_model=NotificationResult)
async def send_milestone_notification(
    user_id: int,
    request: NotificationRequest,
    current_user: dict = Depends(notifiers),
) -> NotificationResult:
    return await NotificationService.send_milestone_notification(
        user_id, request.notification_type, request.data, request.channels
    )


@router.post("/payment/{user_id}", response_model=NotificationResult)
async def send_payment_notification(
    user_id: int,
    request: NotificationRequest,
    current_user: dict = Depends(notifiers),
) -> NotificationResult:
    return await NotificationService.send_payment_notification(
        user_id, request.notification_type, request.data, request.channels
    )
