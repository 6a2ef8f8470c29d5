"""
Raw event log + fetch / processing triggers.
GET  /access-events                                        — raw event log with filters
POST /branches/{branch_id}/access-events/fetch             — pull last 24h from the vendor
POST /branches/{branch_id}/access-events/process           — run one processor batch now
POST /branches/{branch_id}/access-events/{event_id}/process — process one stored event
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from typing import Optional
from gym_access.database import get_db
from gym_access.models.raw_event import RawEvent
from gym_access.schemas.raw_event import RawEventOut
from gym_access.services.event_ingestor import ingest_from_fetch
from gym_access.services.event_processor import process_pending_events, process_event_by_id
from gym_access.services.processing_queue import enqueue_processing

router = APIRouter()


@router.get("/access-events", response_model=list[RawEventOut], summary="List raw access events")
def list_events(branch_id: Optional[str] = None, processed: Optional[bool] = None,
                event_type: Optional[str] = None, limit: int = 50,
                db: Session = Depends(get_db)):
    q = db.query(RawEvent)
    if branch_id:
        q = q.filter(RawEvent.branch_id == branch_id)
    if processed is not None:
        q = q.filter(RawEvent.processed.is_(processed))
    if event_type:
        q = q.filter(RawEvent.event_type == event_type)
    return q.order_by(RawEvent.event_time.desc()).limit(limit).all()


@router.post("/branches/{branch_id}/access-events/fetch", summary="Fetch events from the vendor API")
async def fetch_events(branch_id: str, db: Session = Depends(get_db)):
    result = await ingest_from_fetch(db, branch_id)
    body = {"success": result.success, "fetched": result.fetched, "stored": result.stored}
    if not result.success:
        body["message"] = result.message
        return JSONResponse(status_code=502, content=body)
    if result.stored:
        enqueue_processing(db, branch_id, "fetch")
    return body


@router.post("/branches/{branch_id}/access-events/process", summary="Process pending events now")
async def process_events(branch_id: str, db: Session = Depends(get_db)):
    result = await process_pending_events(db, branch_id)
    return {"success": result.success, "totalEvents": result.total_events,
            "processedCount": result.processed_count}


@router.post("/branches/{branch_id}/access-events/{event_id}/process", summary="Process a single event")
async def process_single_event(branch_id: str, event_id: str, db: Session = Depends(get_db)):
    result = await process_event_by_id(db, branch_id, event_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Event not found")
    body = {"success": result.success, "message": result.message}
    if not result.success:
        return JSONResponse(status_code=409, content=body)
    return body
