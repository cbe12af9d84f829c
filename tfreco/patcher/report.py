from dataclasses import dataclass, field
from typing import Any, Dict, List

from tfreco.models import ClaimedRecommendation


@dataclass
class PatchResult:
    claimed: List[ClaimedRecommendation] = field(default_factory=list)
    changed_files: List[str] = field(default_factory=list)
    changes: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)  # recommendation ids with no declaration to edit

    def claim(self, claim: ClaimedRecommendation) -> bool:
        if claim in self.claimed:
            return False
        self.claimed.append(claim)
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "claimed": [c.to_dict() for c in self.claimed],
            "changed_files": list(self.changed_files),
            "changes": list(self.changes),
            "skipped": list(self.skipped),
        }
