from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated identity attached to a request by the token verifier."""

    id: str
    role: str

    def __post_init__(self) -> None:
        if not isinstance(self.role, str) or not self.role.strip():
            raise ValueError("principal role must be a non-empty string")
        if self.id is None or str(self.id) == "":
            raise ValueError("principal id must be provided")
        object.__setattr__(self, "id", str(self.id))
