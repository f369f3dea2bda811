from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
from listseerr.api import deps
from listseerr.core.errors import InvalidMaxItemsError
from listseerr.db.repositories import MediaListRepository
from listseerr.db.session import get_db
from listseerr.schemas import MaxItemsUpdate, MediaListResponse

router = APIRouter()


def _get_list_or_404(repo: MediaListRepository, list_id: int, user_id: int):
    media_list = repo.find_by_id(list_id, user_id)
    if not media_list:
        raise HTTPException(status_code=404, detail=f"Media list {list_id} not found")
    return media_list


@router.get("/", response_model=List[MediaListResponse])
def get_lists(db: Session = Depends(get_db), user_id: int = Depends(deps.get_current_user_id)):
    return MediaListRepository(db).find_by_user(user_id)


@router.patch("/{list_id}/max-items", response_model=MediaListResponse)
def update_max_items(
    list_id: int,
    body: MaxItemsUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(deps.get_current_user_id)
):
    repo = MediaListRepository(db)
    media_list = _get_list_or_404(repo, list_id, user_id)
    try:
        media_list.change_max_items(body.max_items)
    except InvalidMaxItemsError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return repo.save(media_list)


@router.post("/{list_id}/toggle", response_model=MediaListResponse)
def toggle_list(list_id: int, db: Session = Depends(get_db), user_id: int = Depends(deps.get_current_user_id)):
    repo = MediaListRepository(db)
    media_list = _get_list_or_404(repo, list_id, user_id)
    media_list.toggle()
    return repo.save(media_list)
