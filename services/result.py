# services/result.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional


@dataclass
class ActionResult:
    """Outcome of one user action. Store failures come back here instead of raising."""
    ok: bool
    message: str = ""
    failed_step: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    data: Any = None

    @classmethod
    def success(cls, message: str = "", data: Any = None, warnings: Optional[List[str]] = None) -> "ActionResult":
        return cls(True, message, None, list(warnings or []), data)

    @classmethod
    def failure(cls, message: str, failed_step: Optional[str] = None, data: Any = None) -> "ActionResult":
        return cls(False, message, failed_step, [], data)
