import random
import unittest
from pathlib import Path

from server.spycheck.match.match import intersect_ids, match_memberships
from server.spycheck.membership.data import MembershipData, MembershipRecord
from server.spycheck.sources.spypet import RemoteIndex


def _memberships(ids: set[int], names: dict[int, str] | None = None) -> MembershipData:
    names = names or {}
    records = tuple(MembershipRecord(community_id=cid, name=names.get(cid)) for cid in sorted(ids))
    return MembershipData(source=Path("index.json"), records=records, ids=frozenset(ids), names=dict(names))


class TestIntersectIds(unittest.TestCase):
    def setUp(self) -> None:
        rng = random.Random(1234)
        self.samples = [
            frozenset(rng.randrange(0, 2**64) for _ in range(rng.randrange(0, 40))) for _ in range(20)
        ]
        # Force overlaps between neighbours.
        self.samples = [s | frozenset(list(self.samples[i - 1])[:5]) for i, s in enumerate(self.samples)]

    def test_result_contained_in_both_inputs(self) -> None:
        for m, r in zip(self.samples, self.samples[1:]):
            result = intersect_ids(m, r)
            self.assertTrue(result <= m)
            self.assertTrue(result <= r)
            self.assertEqual(result, m & r)

    def test_commutative(self) -> None:
        for m, r in zip(self.samples, self.samples[1:]):
            self.assertEqual(intersect_ids(m, r), intersect_ids(r, m))

    def test_self_intersection_is_identity(self) -> None:
        for m in self.samples:
            self.assertEqual(intersect_ids(m, m), m)

    def test_empty_inputs(self) -> None:
        some = frozenset({1, 2, 3})
        self.assertEqual(intersect_ids(frozenset(), some), frozenset())
        self.assertEqual(intersect_ids(some, frozenset()), frozenset())


class TestMatchMemberships(unittest.TestCase):
    def test_unnamed_match_falls_back_to_id(self) -> None:
        memberships = _memberships({10, 20, 30}, {10: "Alpha"})
        remote = RemoteIndex(ids=frozenset({20, 40}))
        matches = match_memberships(memberships, remote)
        self.assertEqual([m.community_id for m in matches], [20])
        self.assertIsNone(matches[0].name)
        self.assertEqual(matches[0].display_name, "20")

    def test_results_sorted_and_enriched(self) -> None:
        memberships = _memberships({5, 3, 9, 1}, {9: "Nine", 3: "Three"})
        remote = RemoteIndex(ids=frozenset({9, 1, 3, 100}), details={9: {"listed": True}})
        matches = match_memberships(memberships, remote)
        self.assertEqual([m.community_id for m in matches], [1, 3, 9])
        self.assertEqual(matches[2].as_dict(), {"guild_id": "9", "guild_name": "Nine", "api_response": {"listed": True}})
        self.assertEqual(match_memberships(memberships, remote), matches)

    def test_no_matches(self) -> None:
        self.assertEqual(match_memberships(_memberships({1}), RemoteIndex(ids=frozenset({2}))), ())
        self.assertEqual(match_memberships(_memberships(set()), RemoteIndex(ids=frozenset({2}))), ())


if __name__ == "__main__":
    unittest.main()
