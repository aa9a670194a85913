"""
Action results returned by player-facing operations.

Capacity and state violations are never raised: the call reports failure with
a human-readable reason and leaves every entity untouched.
"""

from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass(frozen=True, slots=True)
class ActionResult:
    """Success flag plus reason; falsy on failure."""

    ok: bool
    reason: str = ""
    data: Dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls, **data: Any) -> "ActionResult":
        return cls(True, "", dict(data))

    @classmethod
    def failure(cls, reason: str) -> "ActionResult":
        return cls(False, reason)
