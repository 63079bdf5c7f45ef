"""
provisioner.probes.base
AUTHOR: carter-vin

Light result wrapper -> best-effort calls report failure as data
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Optional

@dataclass(frozen=True)
class Outcome:
    """
    Normalized result of a fallible, non-fatal call
    - ok: false=failure, error details in error fields
    - value: call result if ok=true
    """

    name: str
    ok: bool
    value: Optional[Any] = None
    error_type: Optional[str] = None
    error_message: Optional[str] = None

    def value_or(self, default: Any) -> Any:
        return self.value if self.ok else default


def attempt(name: str, fn, *args, **kwargs) -> Outcome:
    """
    Run fn & collect failure as data
    """
    try:
        v = fn(*args, **kwargs)
        return Outcome(name=name, ok=True, value=v, error_type=None, error_message=None)
    except Exception as e:
        return Outcome(
            name=name,
            ok=False,
            value=None,
            error_type=type(e).__name__,
            error_message=str(e),
        )
