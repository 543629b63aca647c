from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date

from libdesk.dates import format_date, parse_date


@dataclass(frozen=True)
class Member:
    """A registered library member (stored in the ``users`` collection)."""

    id: str
    name: str
    email: str
    phone: str
    member_since: date | None = None

    def with_changes(self, **changes) -> "Member":
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "memberSince": format_date(self.member_since),
        }

    @staticmethod
    def from_dict(data: dict) -> "Member":
        return Member(
            id=str(data["id"]),
            name=str(data.get("name") or "").strip(),
            email=str(data.get("email") or "").strip(),
            phone=str(data.get("phone") or "").strip(),
            member_since=parse_date(data.get("memberSince", data.get("member_since"))),
        )
