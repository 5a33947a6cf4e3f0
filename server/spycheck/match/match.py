from __future__ import annotations

from collections.abc import Set
from dataclasses import dataclass

from server.spycheck.membership.data import MembershipData
from server.spycheck.sources.spypet import RemoteIndex


@dataclass(frozen=True)
class MatchedCommunity:
    community_id: int
    name: str | None = None
    detail: object = None

    @property
    def display_name(self) -> str:
        return self.name or str(self.community_id)

    def as_dict(self) -> dict:
        return {
            "guild_id": str(self.community_id),
            "guild_name": self.name,
            "api_response": self.detail,
        }


def intersect_ids(left: Set[int], right: Set[int]) -> frozenset[int]:
    # Walk the smaller set, look up in the larger one.
    small, large = (left, right) if len(left) <= len(right) else (right, left)
    return frozenset(cid for cid in small if cid in large)


def match_memberships(memberships: MembershipData, remote: RemoteIndex) -> tuple[MatchedCommunity, ...]:
    shared = intersect_ids(memberships.ids, remote.ids)
    return tuple(
        MatchedCommunity(
            community_id=cid,
            name=memberships.name_for(cid),
            detail=remote.details.get(cid),
        )
        for cid in sorted(shared)
    )
