"""Server membership export loading helpers."""

from server.spycheck.membership.data import (
    MembershipData,
    MembershipRecord,
    empty_membership,
    load_membership_export,
)

__all__ = [
    "MembershipData",
    "MembershipRecord",
    "empty_membership",
    "load_membership_export",
]
