"""
Turn Recommender API documents into VM and IAM recommendation records.

Only parsing happens here; fetching recommendations and updating their
state belongs to the caller.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from .models import IAMRecommendation, VMRecommendation

logger = logging.getLogger(__name__)

VM_RECOMMENDER = "google.compute.instance.MachineTypeRecommender"
IAM_RECOMMENDER = "google.iam.policy.Recommender"

INSTANCE_RESOURCE_TYPE = "compute.googleapis.com/Instance"
PROJECT_RESOURCE_TYPE = "cloudresourcemanager.googleapis.com/Project"
MEMBER_PATH = "/iamPolicy/bindings/*/members/*"
ADD_MEMBER_PATH = "/iamPolicy/bindings/*/members/-"
ROLE_FILTER = "/iamPolicy/bindings/*/role"


# Pydantic models for the API payload
class Operation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: str = ""
    resource_type: str = Field("", alias="resourceType")
    resource: str = ""
    path: str = ""
    value: Any = None
    path_filters: Dict[str, Any] = Field(default_factory=dict, alias="pathFilters")


class OperationGroup(BaseModel):
    operations: List[Operation] = Field(default_factory=list)


class Content(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    operation_groups: List[OperationGroup] = Field(default_factory=list, alias="operationGroups")


class StateInfo(BaseModel):
    state: str = ""


class Recommendation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    etag: str = ""
    state_info: StateInfo = Field(default_factory=StateInfo, alias="stateInfo")
    content: Content = Field(default_factory=Content)

    @property
    def active(self) -> bool:
        return self.state_info.state == "ACTIVE"


class VMRecord(BaseModel):
    """Already flattened VM recommendation."""
    instance_id: str = Field(validation_alias=AliasChoices("instanceID", "instance_id"))
    size: str
    recommendation_id: str = Field(validation_alias=AliasChoices("recommendationID", "recommendation_id"))
    recommendation_etag: str = Field(
        validation_alias=AliasChoices("recommendationETag", "recommendationETAG", "recommendation_etag"))


class IAMRecord(BaseModel):
    """Already flattened IAM recommendation."""
    project: str
    member: str
    role: str
    add: str = ""
    recommendation_id: str = Field(validation_alias=AliasChoices("recommendationID", "recommendation_id"))
    recommendation_etag: str = Field(
        validation_alias=AliasChoices("recommendationETag", "recommendationETAG", "recommendation_etag"))


def process_role(role: str) -> str:
    """Normalise a role path such as projects/p/roles/viewer to roles/viewer."""
    return f"roles/{role.split('/')[-1]}"


def filter_vm_size_recommendations(recommendations: List[Recommendation]) -> List[VMRecommendation]:
    """Machine type replacements from active recommendations."""
    vms: List[VMRecommendation] = []
    for rec in recommendations:
        if not rec.active:
            continue
        for group in rec.content.operation_groups:
            for op in group.operations:
                if (op.action == "replace" and op.resource_type == INSTANCE_RESOURCE_TYPE
                        and op.path == "/machineType" and isinstance(op.value, str)):
                    vms.append(VMRecommendation(
                        instance_id=op.resource,
                        size=op.value.split("/")[-1],
                        recommendation_id=rec.name,
                        recommendation_etag=rec.etag,
                    ))
    return vms


def _replacement_role(group: OperationGroup, member: str, project: str, rec_name: str) -> str:
    candidates = []
    for op in group.operations:
        if (op.action == "add" and op.resource_type == PROJECT_RESOURCE_TYPE
                and op.path == ADD_MEMBER_PATH and op.value == member
                and op.resource.split("/")[-1] == project):
            role = op.path_filters.get(ROLE_FILTER)
            if role:
                candidates.append(process_role(role))
    distinct = sorted(set(candidates))
    if len(distinct) > 1:
        logger.warning(f"{rec_name}: {member} has several replacement roles {distinct}; only removing it")
        return ""
    return distinct[0] if distinct else ""


def filter_iam_recommendations(recommendations: List[Recommendation]) -> List[IAMRecommendation]:
    """Member removals from active recommendations, with the paired add role if any."""
    removals: List[IAMRecommendation] = []
    for rec in recommendations:
        if not rec.active:
            continue
        parts = rec.name.split("/")
        project = parts[1] if len(parts) > 1 else ""
        for group in rec.content.operation_groups:
            for op in group.operations:
                if not (op.action == "remove" and op.resource_type == PROJECT_RESOURCE_TYPE
                        and op.path == MEMBER_PATH):
                    continue
                member = op.path_filters.get(MEMBER_PATH)
                role = op.path_filters.get(ROLE_FILTER)
                if not member or not role:
                    logger.debug(f"{rec.name}: remove operation without member or role filter")
                    continue
                removals.append(IAMRecommendation(
                    project=project,
                    member=member,
                    role=process_role(role),
                    add=_replacement_role(group, member, project, rec.name),
                    recommendation_id=rec.name,
                    recommendation_etag=rec.etag,
                ))
    return removals


def parse_recommendations(payload: Union[Dict[str, Any], List[Any]]) -> List[Recommendation]:
    """
    Parse an API list response or a bare list of recommendation objects.

    Raises:
        ValueError: If the payload does not have the expected shape
    """
    if isinstance(payload, dict):
        payload = payload.get("recommendations") or []
    if not isinstance(payload, list):
        raise ValueError("Recommendations payload must be a list or contain a 'recommendations' list")
    try:
        return [Recommendation.model_validate(item) for item in payload]
    except ValidationError as e:
        raise ValueError(f"Invalid recommendation payload: {e}")


def _is_flat(payload: Any) -> bool:
    return (isinstance(payload, list) and bool(payload) and isinstance(payload[0], dict)
            and "name" not in payload[0] and "content" not in payload[0])


def recommendations_from_payload(payload: Any, kind: str) -> List[Union[VMRecommendation, IAMRecommendation]]:
    kind = kind.lower()
    if kind not in ("vm", "iam"):
        raise ValueError(f"Unknown recommendation kind: {kind}")

    if _is_flat(payload):
        try:
            if kind == "vm":
                return [VMRecommendation(**VMRecord.model_validate(item).model_dump()) for item in payload]
            return [IAMRecommendation(**IAMRecord.model_validate(item).model_dump()) for item in payload]
        except ValidationError as e:
            raise ValueError(f"Invalid {kind} recommendation records: {e}")

    parsed = parse_recommendations(payload)
    if kind == "vm":
        return filter_vm_size_recommendations(parsed)
    return filter_iam_recommendations(parsed)


def load_recommendations(path: Union[str, Path], kind: str) -> List[Union[VMRecommendation, IAMRecommendation]]:
    """
    Read recommendations of one kind ("vm" or "iam") from a JSON file.

    The file holds either a saved Recommender API response, a list of
    recommendation objects, or a list of flattened records.
    """
    p = Path(path)
    with open(p, "r", encoding="utf-8") as f:
        try:
            payload = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"{p} is not valid JSON: {e}")
    records = recommendations_from_payload(payload, kind)
    logger.info(f"Loaded {len(records)} {kind} recommendations from {p}")
    return records
