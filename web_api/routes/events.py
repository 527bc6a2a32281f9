"""
Event message routes.

Endpoints:
- POST /api/event - Schedule a message for an event (sent now if the date has passed)
- GET /api/messages/{message_id} - Message record, including status and last error
- PATCH /api/messages/{message_id} - Move an unsent message to a new date
- DELETE /api/messages/{message_id} - Cancel and delete a message
- GET /api/test - Liveness check
"""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from notifier.notifications.service import NotificationService

router = APIRouter(prefix="/api", tags=["events"])


def get_service(request: Request) -> NotificationService:
    """The service instance created by the app lifespan."""
    return request.app.state.notification_service


class ScheduleEventRequest(BaseModel):
    """Schema for scheduling an event message.

    Fields are optional here so missing ones are reported with the
    notifier's own validation reason instead of FastAPI's 422.
    """

    date: str | None = None
    id: str | None = None
    message: str | None = None


class RescheduleRequest(BaseModel):
    date: str | None = None


def serialize_message(message: dict, service: NotificationService) -> dict[str, Any]:
    """Render a message record for JSON, with times in the service timezone."""
    data = {}
    for key, value in message.items():
        if isinstance(value, datetime):
            value = service.clock.format(value)
        data[key] = value
    data["status"] = message["status"].value
    return data


@router.post("/event")
async def schedule_event(
    body: ScheduleEventRequest,
    service: NotificationService = Depends(get_service),
) -> dict[str, Any]:
    result = await service.schedule_event(body.date, body.id, body.message)
    return {
        "success": True,
        "message": "Message sent immediately"
        if result.sent_immediately
        else "Event scheduled successfully",
        **result.as_dict(),
    }


@router.get("/messages/{message_id}")
async def get_message(
    message_id: str,
    service: NotificationService = Depends(get_service),
) -> dict[str, Any]:
    message = await service.get_message(message_id)
    return {"message": serialize_message(message, service)}


@router.patch("/messages/{message_id}")
async def reschedule_message(
    message_id: str,
    body: RescheduleRequest,
    service: NotificationService = Depends(get_service),
) -> dict[str, Any]:
    result = await service.reschedule_message(message_id, body.date)
    return {"success": True, **result.as_dict()}


@router.delete("/messages/{message_id}")
async def delete_message(
    message_id: str,
    service: NotificationService = Depends(get_service),
) -> dict[str, Any]:
    await service.delete_message(message_id)
    return {"success": True, "messageId": message_id}


@router.get("/test")
async def test_route() -> dict[str, str]:
    return {"message": "it Works"}
