"""Unit tests for the progressive reference index."""

import sys
import unittest
from pathlib import Path
from types import SimpleNamespace

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from resolver.exceptions import UnresolvedReferenceError
from resolver.references import ReferenceIndex


def published_index():
    index = ReferenceIndex()
    index.publish("VPC", {"main": SimpleNamespace(id="vpc-1")})
    index.publish(
        "Subnet",
        {"a": SimpleNamespace(id="subnet-a"), "b": SimpleNamespace(id="subnet-b")},
    )
    return index


class TestReferenceIndex(unittest.TestCase):
    def test_resolve(self):
        index = published_index()
        self.assertEqual(index.resolve("Subnet", "a", "vpc", "VPC", "main"), "vpc-1")

    def test_unknown_name(self):
        with self.assertRaises(UnresolvedReferenceError) as ctx:
            published_index().resolve("Subnet", "a", "vpc", "VPC", "mian")
        self.assertEqual(ctx.exception.from_type, "Subnet")
        self.assertEqual(ctx.exception.target_name, "mian")

    def test_unpublished_type_fails_like_a_typo(self):
        index = published_index()
        self.assertFalse(index.is_published("RouteTable"))
        with self.assertRaises(UnresolvedReferenceError):
            index.resolve("RouteTableAssociation", "x", "route_table", "RouteTable", "public")

    def test_resolve_optional(self):
        index = published_index()
        self.assertEqual(index.resolve_optional("NatGateway", "n", "elastic_ip", "ElasticIP", None), "")
        self.assertEqual(index.resolve_optional("Subnet", "a", "vpc", "VPC", "main"), "vpc-1")

    def test_resolve_many_keeps_order(self):
        index = published_index()
        self.assertEqual(
            index.resolve_many("Cluster", "c", "subnets", "Subnet", ["b", "a"]),
            ("subnet-b", "subnet-a"),
        )

    def test_resolve_many_names_position(self):
        with self.assertRaises(UnresolvedReferenceError) as ctx:
            published_index().resolve_many("Cluster", "c", "subnets", "Subnet", ["a", "z"])
        self.assertEqual(ctx.exception.field, "subnets[1]")

    def test_ids_is_a_copy(self):
        index = published_index()
        ids = index.ids("Subnet")
        ids["c"] = "subnet-c"
        self.assertNotIn("c", index.ids("Subnet"))
        self.assertEqual(index.ids("Endpoint"), {})

    def test_record(self):
        index = published_index()
        self.assertEqual(index.record("Subnet", "a", "vpc", "VPC", "main").id, "vpc-1")
        with self.assertRaises(UnresolvedReferenceError):
            index.record("Subnet", "a", "vpc", "VPC", "other")


if __name__ == "__main__":
    unittest.main()
