"""Processing job queue and sync log — visibility into background processing."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import Optional
from gym_access.database import get_db
from gym_access.models.processing_job import ProcessingJob
from gym_access.models.sync_log import SyncLog
from gym_access.schemas.processing import ProcessingJobOut, SyncLogOut

router = APIRouter()


@router.get("/processing-jobs", response_model=list[ProcessingJobOut], summary="List processing jobs")
def list_jobs(branch_id: Optional[str] = None, status: Optional[str] = None, limit: int = 50,
              db: Session = Depends(get_db)):
    q = db.query(ProcessingJob)
    if branch_id:
        q = q.filter(ProcessingJob.branch_id == branch_id)
    if status:
        q = q.filter(ProcessingJob.status == status)
    return q.order_by(ProcessingJob.created_at.desc()).limit(limit).all()


@router.get("/processing-jobs/{job_id}", response_model=ProcessingJobOut, summary="Get one processing job")
def get_job(job_id: int, db: Session = Depends(get_db)):
    job = db.query(ProcessingJob).filter(ProcessingJob.id == job_id).first()
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


@router.get("/sync-log", response_model=list[SyncLogOut], summary="Fetch / processing audit trail")
def list_sync_log(branch_id: Optional[str] = None, status: Optional[str] = None, limit: int = 50,
                  db: Session = Depends(get_db)):
    q = db.query(SyncLog)
    if branch_id:
        q = q.filter(SyncLog.branch_id == branch_id)
    if status:
        q = q.filter(SyncLog.status == status)
    return q.order_by(SyncLog.created_at.desc()).limit(limit).all()
