"""Attendance and access-denial records produced by the event processor."""

from datetime import date
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional
from gym_access.database import get_db
from gym_access.models.attendance_record import AttendanceRecord
from gym_access.models.access_denial_log import AccessDenialLog
from gym_access.schemas.attendance import AttendanceRecordOut, AccessDenialLogOut

router = APIRouter()


@router.get("/attendance", response_model=list[AttendanceRecordOut], summary="Member attendance log")
def list_attendance(branch_id: Optional[str] = None, member_id: Optional[str] = None,
                    attendance_date: Optional[date] = None, limit: int = 50,
                    db: Session = Depends(get_db)):
    q = db.query(AttendanceRecord)
    if branch_id:
        q = q.filter(AttendanceRecord.branch_id == branch_id)
    if member_id:
        q = q.filter(AttendanceRecord.member_id == member_id)
    if attendance_date:
        q = q.filter(AttendanceRecord.attendance_date == attendance_date)
    return q.order_by(AttendanceRecord.id.desc()).limit(limit).all()


@router.get("/access-denials", response_model=list[AccessDenialLogOut], summary="Denied access attempts")
def list_denials(branch_id: Optional[str] = None, person_id: Optional[str] = None,
                 limit: int = 50, db: Session = Depends(get_db)):
    q = db.query(AccessDenialLog)
    if branch_id:
        q = q.filter(AccessDenialLog.branch_id == branch_id)
    if person_id:
        q = q.filter(AccessDenialLog.person_id == person_id)
    return q.order_by(AccessDenialLog.event_time.desc()).limit(limit).all()
