from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.auth import ActorContext, get_current_actor
from core.database import get_db
from schemas import TagListResponse, TagResponse
from services.log_entries import list_registry_tags, list_used_tags

router = APIRouter(prefix="/v1/tags", tags=["tags"])


@router.get("", response_model=TagListResponse)
def get_tags(
    source: str = Query(default="used", pattern="^(used|registry)$"),
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """
    The caller's tags.

    source=used derives names from the caller's logs; source=registry reads
    the persisted per-user registry.
    """
    if source == "registry":
        tags = list_registry_tags(db, actor)
    else:
        tags = list_used_tags(db, actor)
    return TagListResponse(tags=[TagResponse.model_validate(t) for t in tags])
