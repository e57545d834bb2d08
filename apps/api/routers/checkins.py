"""
Check-ins API Router

Coach-only: create check-ins for a group, take attendance against the live
roster.
"""
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from core.auth import ActorContext, get_current_actor, require_coach
from core.database import get_db
from schemas import AttendanceRecordResponse, AttendanceSubmit, AttendanceViewResponse, CheckInCreate, CheckInResponse
from services.attendance import create_checkin, get_attendance_view, list_checkins, submit_attendance

router = APIRouter(prefix="/v1/checkins", tags=["checkins"])


@router.post("", response_model=CheckInResponse, status_code=status.HTTP_201_CREATED)
def post_checkin(
    payload: CheckInCreate,
    actor: ActorContext = Depends(require_coach),
    db: Session = Depends(get_db),
):
    checkin = create_checkin(
        db,
        actor,
        title=payload.title,
        session_date=payload.session_date,
        group_id=payload.group_id,
    )
    db.commit()
    return checkin


@router.get("", response_model=List[CheckInResponse])
def get_checkins(
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return list_checkins(db, actor)


@router.get("/{checkin_id}/attendance", response_model=AttendanceViewResponse)
def get_attendance(
    checkin_id: UUID,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Roster (coaches excluded, by name) with each athlete's status; null = unrecorded."""
    view = get_attendance_view(db, actor, checkin_id)
    return {
        "checkin": view.checkin,
        "record": view.record,
        "athletes": [
            {
                "user_id": row.user.id,
                "display_name": row.user.display_name,
                "email": row.user.email,
                "status": row.status,
            }
            for row in view.athletes
        ],
    }


@router.post("/{checkin_id}/attendance", response_model=AttendanceRecordResponse)
def post_attendance(
    checkin_id: UUID,
    payload: AttendanceSubmit,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Save attendance. Malformed entries are dropped; resubmission updates in place."""
    record = submit_attendance(db, actor, checkin_id, payload.entries)
    db.commit()
    return record
