"""
Entry points that match recommendations against the state and patch one
manifest directory.
"""

import logging
from pathlib import Path
from typing import Optional, Sequence

from .patcher import PatchResult, patch_iam_manifests, patch_vm_manifests
from .state import ProjectNumberCache, StateSnapshot, match_iam_resources, match_vm_resources
from .state.match import ProjectNumberResolver
from .models import IAMRecommendation, VMRecommendation

logger = logging.getLogger(__name__)


def _require_dir(manifest_dir: str) -> None:
    if not Path(manifest_dir).is_dir():
        raise FileNotFoundError(f"Manifest directory not found: {manifest_dir}")


def apply_vm_recommendations(
    manifest_dir: str,
    state: StateSnapshot,
    recommendations: Sequence[VMRecommendation],
    write_dir: Optional[str] = None,
) -> PatchResult:
    """
    Apply VM resize recommendations to the manifests in manifest_dir.

    Args:
        manifest_dir: Checked out manifest directory
        state: Terraform state snapshot for the same infrastructure
        recommendations: VM recommendations to apply
        write_dir: Destination for changed files, defaults to manifest_dir

    Returns:
        PatchResult; only its claimed recommendations were written
    """
    _require_dir(manifest_dir)
    logger.info(f"Applying {len(recommendations)} VM recommendations to {manifest_dir}")
    matched = match_vm_resources(state, recommendations)
    if not matched:
        return PatchResult()
    return patch_vm_manifests(manifest_dir, matched, write_dir)


def apply_iam_recommendations(
    manifest_dir: str,
    state: StateSnapshot,
    recommendations: Sequence[IAMRecommendation],
    resolve_project_number: Optional[ProjectNumberResolver] = None,
    write_dir: Optional[str] = None,
) -> PatchResult:
    """
    Apply IAM member removal recommendations to the manifests in manifest_dir.

    Args:
        manifest_dir: Checked out manifest directory
        state: Terraform state snapshot for the same infrastructure
        recommendations: IAM recommendations to apply
        resolve_project_number: Maps a project id to its number; identity when omitted
        write_dir: Destination for changed files, defaults to manifest_dir

    Returns:
        PatchResult; only its claimed recommendations were written
    """
    _require_dir(manifest_dir)
    logger.info(f"Applying {len(recommendations)} IAM recommendations to {manifest_dir}")
    matched = match_iam_resources(state, recommendations, ProjectNumberCache(resolve_project_number))
    if not matched:
        return PatchResult()
    return patch_iam_manifests(manifest_dir, matched, write_dir)
