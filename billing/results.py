"""
billing/results.py
Structured outcome of a persistence operation.
"""
import secrets
import string
from dataclasses import dataclass
from typing import Any, Optional

_ALPHABET = string.ascii_uppercase + string.digits


@dataclass
class PersistenceResult:
    """
    success=False means only the persistence step failed; any price computed
    beforehand stays valid and the caller may retry without recomputing it.
    """
    success: bool
    data: Optional[dict[str, Any]] = None
    error: Optional[str] = None


def random_suffix(length: int = 6) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))
