"""
Match recommendations to the Terraform declarations recorded in the state.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Sequence

from tfreco.models import IAMRecommendation, MatchedIAM, MatchedVM, VMRecommendation
from .snapshot import StateSnapshot

logger = logging.getLogger(__name__)

COMPUTE_INSTANCE_TYPE = "google_compute_instance"
IAM_BINDING_TYPE = "google_project_iam_binding"

INSTANCE_ID_PREFIXES = (
    "//compute.googleapis.com/",
    "https://www.googleapis.com/compute/v1/",
    "https://compute.googleapis.com/compute/v1/",
)

ProjectNumberResolver = Callable[[str], str]


def strip_instance_prefix(value: str) -> str:
    for prefix in INSTANCE_ID_PREFIXES:
        if value.startswith(prefix):
            return value[len(prefix):]
    return value


def _instance_keys(attributes: Dict[str, object]) -> List[str]:
    keys = []
    for attr in ("id", "self_link"):
        value = attributes.get(attr)
        if isinstance(value, str) and value:
            keys.append(strip_instance_prefix(value))
    return keys


def match_vm_resources(state: StateSnapshot, recommendations: Sequence[VMRecommendation]) -> List[MatchedVM]:
    """
    Attach the declaring resource name to every VM recommendation whose
    instance is recorded in the state. Unmatched recommendations are dropped.
    """
    found: List[MatchedVM] = []
    matched: set = set()

    for resource, instance in state.instances_of(COMPUTE_INSTANCE_TYPE):
        keys = _instance_keys(instance.attributes)
        if not keys:
            continue
        for i, rec in enumerate(recommendations):
            if i in matched:
                continue
            if strip_instance_prefix(rec.instance_id) in keys:
                matched.add(i)
                found.append(MatchedVM(recommendation=rec, tf_resource_name=resource.name))

    logger.info(f"Matched {len(found)} of {len(recommendations)} VM recommendations to state")
    return found


def _identity(project: str) -> str:
    return project


class ProjectNumberCache:
    """
    Per-run memo of project id to project number lookups.

    The resolver is called at most once per distinct project.
    """

    def __init__(self, resolver: Optional[ProjectNumberResolver] = None):
        self._resolver = resolver or _identity
        self._cache: Dict[str, str] = {}

    def resolve(self, project: str) -> str:
        key = str(project)
        if key.startswith("projects/"):
            key = key[len("projects/"):]
        if key not in self._cache:
            self._cache[key] = str(self._resolver(key))
        return self._cache[key]

    def __len__(self) -> int:
        return len(self._cache)


def match_iam_resources(
    state: StateSnapshot,
    recommendations: Sequence[IAMRecommendation],
    projects: Optional[ProjectNumberCache] = None,
) -> List[MatchedIAM]:
    """
    Attach the binding block name and literal project to every IAM
    recommendation whose project, role and member appear in a binding.
    """
    if projects is None:
        projects = ProjectNumberCache()
    found: List[MatchedIAM] = []
    matched: set = set()

    for resource, instance in state.instances_of(IAM_BINDING_TYPE):
        attrs = instance.attributes
        # a binding without a project uses the provider project and matches any
        state_project = attrs.get("project") or ""
        members = attrs.get("members") or []
        for i, rec in enumerate(recommendations):
            if i in matched:
                continue
            if attrs.get("role") != rec.role or rec.member not in members:
                continue
            if state_project and projects.resolve(state_project) != projects.resolve(rec.project):
                continue
            matched.add(i)
            found.append(MatchedIAM(
                recommendation=rec,
                resource_name=resource.name,
                project=str(state_project),
            ))

    logger.info(f"Matched {len(found)} of {len(recommendations)} IAM recommendations to state")
    return found
