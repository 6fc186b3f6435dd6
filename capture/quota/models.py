from dataclasses import dataclass
from datetime import datetime, timezone


@dataclass
class Quota:
    """Document-processing allowance of a tenant's license."""

    total: int
    remaining: int
    expires_at: datetime | None = None
    status: str = "active"

    def is_usable(self, now: datetime | None = None) -> bool:
        if self.status != "active":
            return False
        if self.expires_at is None:
            return True
        current = now if now is not None else datetime.now(timezone.utc)
        return self.expires_at > current


@dataclass(frozen=True)
class Reservation:
    """Capacity held by the gate for one unit between reserve and commit."""

    id: int
    count: int
