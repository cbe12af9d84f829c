"""
Data models for recommendations, matches and claims.
"""

from dataclasses import dataclass, asdict
from typing import Dict


@dataclass(frozen=True)
class VMRecommendation:
    """A machine type change for one compute instance."""
    instance_id: str  # full resource name, e.g. //compute.googleapis.com/projects/p/zones/z/instances/i
    size: str  # recommended machine type, e.g. "n1-standard-2"
    recommendation_id: str
    recommendation_etag: str


@dataclass(frozen=True)
class IAMRecommendation:
    """Removal of a member from a project role, optionally moving it to another role."""
    project: str
    member: str
    role: str
    add: str = ""  # replacement role, empty when the member is only removed
    recommendation_id: str = ""
    recommendation_etag: str = ""


@dataclass(frozen=True)
class MatchedVM:
    recommendation: VMRecommendation
    tf_resource_name: str

    @property
    def size(self) -> str:
        return self.recommendation.size


@dataclass(frozen=True)
class MatchedIAM:
    recommendation: IAMRecommendation
    resource_name: str
    project: str  # literal project value taken from the state snapshot, "" when it has none

    @property
    def member(self) -> str:
        return self.recommendation.member

    @property
    def role(self) -> str:
        return self.recommendation.role

    @property
    def add(self) -> str:
        return self.recommendation.add


@dataclass(frozen=True)
class ManifestFile:
    path: str
    contents: str


@dataclass(frozen=True)
class ClaimedRecommendation:
    id: str
    etag: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def claim_for(recommendation) -> ClaimedRecommendation:
    """Build the claim record for a VM or IAM recommendation."""
    return ClaimedRecommendation(
        id=recommendation.recommendation_id,
        etag=recommendation.recommendation_etag,
    )
