"""
Profiler API Routes

Read-only inspection of stored profiles, plus purge.
Thin delegation layer to the Profiler; no storage logic lives here.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.dependencies import get_profiler
from profiler.exceptions import NotFoundError
from profiler.profiler import Profiler
from schemas.profile import CollectorDetail, ProfileDetail, ProfileSummary


router = APIRouter(prefix="/_profiler", tags=["profiler"])


@router.get("/search", response_model=List[ProfileSummary])
def search(
    ip: Optional[str] = None,
    url: Optional[str] = None,
    method: Optional[str] = None,
    status_code: Optional[str] = None,
    start: Optional[str] = Query(default=None, description="Epoch seconds or date text"),
    end: Optional[str] = Query(default=None, description="Epoch seconds or date text"),
    limit: int = Query(default=10, ge=1, le=500),
    profiler: Profiler = Depends(get_profiler),
) -> List[ProfileSummary]:
    """
    Search stored profiles, most recent first.

    Unparseable start/end values are ignored rather than rejected.
    """
    profiles = profiler.find(
        ip=ip,
        url=url,
        limit=limit,
        method=method,
        start=start,
        end=end,
        status_code=status_code,
    )
    return [ProfileSummary.from_profile(profile) for profile in profiles]


@router.get("/latest", response_model=ProfileDetail)
def latest(profiler: Profiler = Depends(get_profiler)) -> ProfileDetail:
    """Most recently indexed profile."""
    profiles = profiler.find(limit=1)
    if not profiles:
        raise HTTPException(status_code=404, detail="No profiles stored.")
    return ProfileDetail.from_profile(profiles[0])


@router.get("/{token}", response_model=ProfileDetail)
def show(token: str, profiler: Profiler = Depends(get_profiler)) -> ProfileDetail:
    profile = profiler.load(token)
    if profile is None:
        raise HTTPException(status_code=404, detail=f'Token "{token}" not found.')
    return ProfileDetail.from_profile(profile)


@router.get("/{token}/collectors/{name}", response_model=CollectorDetail)
def show_collector(
    token: str,
    name: str,
    profiler: Profiler = Depends(get_profiler),
) -> CollectorDetail:
    profile = profiler.load(token)
    if profile is None:
        raise HTTPException(status_code=404, detail=f'Token "{token}" not found.')

    try:
        collector = profile.get_collector(name)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return CollectorDetail(token=token, name=name, data=collector.data)


@router.delete("")
def purge(profiler: Profiler = Depends(get_profiler)) -> dict:
    """Remove every stored profile."""
    profiler.purge()
    return {"status": "purged"}
