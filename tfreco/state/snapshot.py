"""
Terraform state snapshot model.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple


@dataclass(frozen=True)
class Instance:
    attributes: Dict[str, Any]
    index_key: Optional[Any] = None


@dataclass(frozen=True)
class Resource:
    type: str
    name: str
    instances: Tuple[Instance, ...] = ()
    mode: str = "managed"
    module: Optional[str] = None


@dataclass(frozen=True)
class StateSnapshot:
    resources: Tuple[Resource, ...] = field(default_factory=tuple)
    version: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StateSnapshot":
        """
        Build a snapshot from the JSON document terraform writes.

        Raises:
            ValueError: If the document has no resources list
        """
        if not isinstance(data, dict):
            raise ValueError("Terraform state must be a JSON object")
        raw_resources = data.get("resources")
        if raw_resources is None:
            raw_resources = []
        if not isinstance(raw_resources, list):
            raise ValueError("Terraform state 'resources' must be a list")

        resources = []
        for raw in raw_resources:
            instances = tuple(
                Instance(attributes=dict(i.get("attributes") or {}), index_key=i.get("index_key"))
                for i in raw.get("instances") or []
            )
            resources.append(Resource(
                type=raw.get("type", ""),
                name=raw.get("name", ""),
                instances=instances,
                mode=raw.get("mode", "managed"),
                module=raw.get("module"),
            ))
        return cls(resources=tuple(resources), version=data.get("version"))

    def managed(self, resource_type: str) -> Iterator[Resource]:
        """Managed resources of one type, in state order."""
        for resource in self.resources:
            if resource.type == resource_type and resource.mode == "managed":
                yield resource

    def instances_of(self, resource_type: str) -> List[Tuple[Resource, Instance]]:
        return [(r, i) for r in self.managed(resource_type) for i in r.instances]
