from .patcher import apply_iam_edits, apply_vm_edits, patch_iam_manifests, patch_vm_manifests
from .report import PatchResult

__all__ = [
    "apply_iam_edits",
    "apply_vm_edits",
    "patch_iam_manifests",
    "patch_vm_manifests",
    "PatchResult",
]
