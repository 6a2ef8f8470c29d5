"""
Access-control webhook endpoint.
POST /access-events/{branch_id}/webhook — receives events pushed by the vendor.

Responds as soon as the raw event is stored; processing runs later from the
job queue. A body of the form {"messages": [...]} is handled as a batch.
"""

from fastapi import APIRouter, Request, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from gym_access.database import get_db
from gym_access.services.event_ingestor import ingest_from_webhook, ingest_batch
from gym_access.utils.json_parser import safe_parse_json
from gym_access.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


def _message_payload(message):
    """Queue messages carry the event under "data", either as an object or a JSON string."""
    if not isinstance(message, dict) or "data" not in message:
        return message
    data = message["data"]
    if isinstance(data, str):
        return safe_parse_json(data.encode("utf-8"))
    return data


@router.post("/access-events/{branch_id}/webhook", summary="Vendor webhook — receives access events")
async def receive_access_event(branch_id: str, request: Request, db: Session = Depends(get_db)):
    raw_body = await request.body()
    payload = safe_parse_json(raw_body) if raw_body else None
    if not isinstance(payload, dict):
        logger.warning(f"Webhook for {branch_id} with non-JSON or non-object body ({len(raw_body)} bytes)")
        return JSONResponse(status_code=400, content={"success": False, "message": "Expected a JSON object"})

    client_host = request.client.host if request.client else "unknown"
    logger.info(f"Webhook from {client_host} for branch {branch_id} | {len(raw_body)} bytes")

    if isinstance(payload.get("messages"), list):
        messages = [_message_payload(m) for m in payload["messages"]]
        result = await ingest_batch(db, branch_id, messages)
        return {"success": True, "processed": result.processed, "failed": result.failed}

    result = await ingest_from_webhook(db, branch_id, payload)
    if not result.success:
        return JSONResponse(status_code=500, content={"success": False, "message": result.message})
    return {"success": True, "message": result.message}
