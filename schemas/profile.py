from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from profiler.profile import Profile


class ProfileSummary(BaseModel):
    """
    Search result entry for a stored profile.
    """
    token: str = Field(..., description="Profile token (X-Debug-Token)")
    ip: Optional[str] = Field(default=None, description="Client IP, 'Unknown' if ambiguous")
    method: Optional[str] = Field(default=None, description="HTTP method")
    url: Optional[str] = Field(default=None, description="Full request URL")
    time: int = Field(default=0, description="Capture time, epoch seconds")
    status_code: Optional[int] = Field(default=None, description="Response status code")
    parent: Optional[str] = Field(default=None, description="Parent profile token for sub-requests")

    @classmethod
    def from_profile(cls, profile: Profile) -> "ProfileSummary":
        return cls(
            token=profile.token,
            ip=profile.ip,
            method=profile.method,
            url=profile.url,
            time=profile.time,
            status_code=profile.status_code,
            parent=profile.parent_token,
        )


class ProfileDetail(ProfileSummary):
    """
    Full profile as returned by the inspection API.
    """
    children: List[str] = Field(default_factory=list, description="Child profile tokens")
    collectors: Dict[str, Dict[str, Any]] = Field(default_factory=dict, description="Collector data by name")

    @classmethod
    def from_profile(cls, profile: Profile) -> "ProfileDetail":
        summary = ProfileSummary.from_profile(profile)
        return cls(
            **summary.model_dump(),
            children=[child.token for child in profile.children],
            collectors={
                name: collector.data
                for name, collector in profile.collectors.items()
            },
        )


class CollectorDetail(BaseModel):
    """
    Data of a single collector within a profile.
    """
    token: str
    name: str
    data: Dict[str, Any] = Field(default_factory=dict)
