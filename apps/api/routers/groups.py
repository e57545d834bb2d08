"""
Groups API Router

Create a group (coach), join by code, leave, list members. Every membership
change re-issues the session cookie so its cached group stays current.

Each group also carries one announcement: members read it, the group's
coaches post and remove it.
"""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from core.auth import ActorContext, get_current_actor, refresh_session
from core.database import get_db
from schemas import (
    AnnouncementEnvelope,
    AnnouncementResponse,
    AnnouncementUpdate,
    GroupCreate,
    GroupJoin,
    GroupLeave,
    GroupResponse,
    MemberResponse,
)
from services.announcements import delete_announcement, get_announcement, post_announcement
from services.group_membership import (
    create_group,
    join_group,
    leave_group,
    list_groups_for_user,
    list_members_for_actor,
)

router = APIRouter(prefix="/v1/groups", tags=["groups"])


@router.get("", response_model=List[GroupResponse])
def get_my_groups(
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Groups the caller belongs to, most recently joined first."""
    return list_groups_for_user(db, actor.user_id)


@router.post("", response_model=GroupResponse, status_code=status.HTTP_201_CREATED)
def post_group(
    payload: GroupCreate,
    response: Response,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    group = create_group(db, actor, payload.name)
    db.commit()
    refresh_session(response, db, actor.user_id)
    return group


@router.post("/join", response_model=GroupResponse)
def post_join_group(
    payload: GroupJoin,
    response: Response,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    group = join_group(db, actor, payload.code)
    db.commit()
    refresh_session(response, db, actor.user_id)
    return group


@router.post("/leave")
def post_leave_group(
    response: Response,
    payload: Optional[GroupLeave] = None,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Leave one group (group_id) or all groups (no body). Always succeeds."""
    leave_group(db, actor, payload.group_id if payload else None)
    db.commit()
    refresh_session(response, db, actor.user_id)
    return {"success": True}


@router.get("/{group_id}/members", response_model=List[MemberResponse])
def get_group_members(
    group_id: UUID,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return list_members_for_actor(db, actor, group_id)


@router.get("/{group_id}/announcement", response_model=AnnouncementEnvelope)
def get_group_announcement(
    group_id: UUID,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """{"announcement": null} when nothing is posted."""
    announcement = get_announcement(db, actor, group_id)
    return AnnouncementEnvelope(
        announcement=AnnouncementResponse.model_validate(announcement) if announcement else None
    )


@router.put("/{group_id}/announcement", response_model=AnnouncementResponse)
def put_group_announcement(
    group_id: UUID,
    payload: AnnouncementUpdate,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    announcement = post_announcement(db, actor, group_id, payload.text)
    db.commit()
    return announcement


@router.delete("/{group_id}/announcement")
def delete_group_announcement(
    group_id: UUID,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    delete_announcement(db, actor, group_id)
    db.commit()
    return {"success": True}
