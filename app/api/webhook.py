"""GitHub webhook listener"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from app.api.deps import get_services
from app.services.container import Services
from app.services.dispatcher import EventDispatcher
from app.services.errors import UnsupportedEventType

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhook"])

EVENT_HEADER = "X-GitHub-Event"
DELIVERY_HEADER = "X-GitHub-Delivery"
ACCEPTED_MESSAGE = "Event received. Have a nice day."


def process_event(dispatcher: EventDispatcher, event_type: str, delivery_id: str, payload: bytes) -> None:
    """Runs after the response has been sent; nothing here reaches the sender."""
    try:
        dispatcher.dispatch(event_type, delivery_id, payload)
    except UnsupportedEventType as e:
        logger.info(f"[{delivery_id}] {e}")
    except ValidationError as e:
        logger.error(f"[{delivery_id}] Error parsing {event_type} event: {e}")
    except Exception as e:
        logger.error(f"[{delivery_id}] Error processing {event_type} event: {e}")


@router.get("/", response_class=PlainTextResponse)
def health_check_root():
    """Health check for load balancers probing the webhook URL"""
    return ""


@router.api_route("/", methods=["POST", "PUT", "PATCH", "DELETE"], response_class=PlainTextResponse)
@router.api_route("/webhook", methods=["POST", "PUT", "PATCH", "DELETE"], response_class=PlainTextResponse)
async def receive_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    services: Services = Depends(get_services),
):
    """Validate a delivery, acknowledge it and hand it to the dispatcher"""
    if request.method != "POST":
        return PlainTextResponse("405 Method not allowed", status_code=405)

    event_type = request.headers.get(EVENT_HEADER)
    if not event_type:
        return PlainTextResponse(f"400 Bad Request - Missing {EVENT_HEADER} Header", status_code=400)

    delivery_id = request.headers.get(DELIVERY_HEADER)
    if not delivery_id:
        return PlainTextResponse(f"400 Bad Request - Missing {DELIVERY_HEADER} Header", status_code=400)

    content_type = request.headers.get("content-type", "").split(";", 1)[0].strip().lower()
    if content_type != "application/json":
        return PlainTextResponse(
            "400 Bad Request - Unexpected Content-Type (expected application/json)", status_code=400
        )

    payload = await request.body()
    logger.debug(f"[{delivery_id}] received {event_type} event ({len(payload)} bytes)")
    background_tasks.add_task(process_event, services.dispatcher, event_type, delivery_id, payload)
    return PlainTextResponse(ACCEPTED_MESSAGE)
