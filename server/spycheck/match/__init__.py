"""Membership versus spy.pet dataset matching."""

from server.spycheck.match.match import MatchedCommunity, intersect_ids, match_memberships

__all__ = [
    "MatchedCommunity",
    "intersect_ids",
    "match_memberships",
]
