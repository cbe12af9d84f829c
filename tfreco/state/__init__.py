from .snapshot import Instance, Resource, StateSnapshot
from .provider import load_state
from .match import ProjectNumberCache, match_iam_resources, match_vm_resources

__all__ = [
    "Instance",
    "Resource",
    "StateSnapshot",
    "load_state",
    "ProjectNumberCache",
    "match_iam_resources",
    "match_vm_resources",
]
