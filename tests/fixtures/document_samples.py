"""Fixture factories for declaration documents and lookup collaborators.

Documents are written the way a user writes them (type -> environment ->
name -> attributes) and normalised through fileparser.merge_document, so
tests exercise the same shape the parser produces.
"""

import copy
from typing import Any, Dict, List, Tuple

import resolver.fileparser as fileparser
from resolver.lookups import ImageCatalog, StaticImageCatalog, StaticZoneDirectory, ZoneDirectory

REGION = "eu-west-1"
ZONES = {REGION: ["eu-west-1a", "eu-west-1b", "eu-west-1c"]}
IMAGES = {"1.34/arm64": "ami-xyz", "1.34/x86_64": "ami-x86"}

NETWORK_DECLARATIONS: Dict[str, Any] = {
    "region": REGION,
    "tags": {"Project": "platform"},
    "vpcs": {
        "default": {"main": {"cidr_block": "10.0.0.0/16"}},
        "qe": {"main": {"cidr_block": "10.20.0.0/16"}},
    },
    "elastic_ips": {"default": {"nat": {}}},
    "subnets": {
        "default": {
            "public-a": {
                "vpc": "main",
                "cidr_block": "10.0.0.0/24",
                "az_index": 0,
                "map_public_ip_on_launch": True,
            },
            "private-a": {"vpc": "main", "cidr_block": "10.0.16.0/20", "az_index": 1},
        }
    },
    "internet_gateways": {"default": {"gw1": {"vpc": "main"}}},
    "nat_gateways": {"default": {"nat-a": {"subnet": "public-a", "elastic_ip": "nat"}}},
    "route_tables": {
        "default": {
            "public": {
                "vpc": "main",
                "routes": [{"cidr_block": "0.0.0.0/0", "target_type": "igw", "target_key": "gw1"}],
            },
            "private": {
                "vpc": "main",
                "routes": [
                    {"target_type": "nat", "target_key": "nat-a"},
                    {"cidr_block": "10.1.0.0/16", "target_type": "other", "target_key": "pcx-999"},
                ],
            },
        }
    },
    "route_table_associations": {
        "default": {
            "public-a": {"route_table": "public", "subnet": "public-a"},
            "private-a": {"route_table": "private", "subnet": "private-a"},
        }
    },
    "security_groups": {
        "default": {"web": {"vpc": "main"}, "db": {"vpc": "main", "description": "Database"}}
    },
    "security_rules": {
        "default": {
            "web-https": {
                "security_group": "web",
                "type": "ingress",
                "protocol": "tcp",
                "from_port": 443,
                "to_port": 443,
                "cidr_block": "0.0.0.0/0",
            },
            "db-from-web": {
                "security_group": "db",
                "type": "ingress",
                "protocol": "tcp",
                "from_port": 5432,
                "peer_security_group": "web",
            },
            "web-internal": {
                "security_group": "web",
                "type": "ingress",
                "protocol": "tcp",
                "from_port": 8080,
            },
            "web-egress": {
                "security_group": "web",
                "type": "egress",
                "protocol": "-1",
                "from_port": 0,
                "to_port": 65535,
                "cidr_block": "0.0.0.0/0",
            },
        }
    },
    "endpoints": {
        "default": {
            "s3": {
                "vpc": "main",
                "service_name": "com.amazonaws.eu-west-1.s3",
                "endpoint_type": "Gateway",
                "route_tables": ["private"],
            },
            "ecr": {
                "vpc": "main",
                "service_name": "com.amazonaws.eu-west-1.ecr.api",
                "endpoint_type": "Interface",
                "subnets": ["private-a"],
                "security_groups": ["web"],
            },
        }
    },
    "clusters": {
        "default": {"platform": {"kubernetes_version": "1.34", "subnets": ["private-a", "public-a"]}}
    },
    "nodegroups": {
        "default": {
            "arm": {"cluster": "platform", "architecture": "arm64", "desired_size": 2, "max_size": 3},
            "pinned": {"cluster": "platform", "image_id": "ami-pinned", "subnets": ["private-a"]},
        }
    },
}


def build_document(declarations: Dict[str, Any]) -> Dict[str, Any]:
    """Normalise user-shaped declarations into a raw document."""
    return fileparser.merge_document({}, copy.deepcopy(declarations), "<memory>")


def network_document() -> Dict[str, Any]:
    """Full default environment plus a one-VPC qe environment."""
    return build_document(NETWORK_DECLARATIONS)


def minimal_document() -> Dict[str, Any]:
    """Scenario A: one VPC and one subnet in the default environment."""
    return build_document(
        {
            "region": REGION,
            "vpcs": {"default": {"v1": {"cidr_block": "10.0.0.0/16"}}},
            "subnets": {"default": {"s1": {"vpc": "v1", "cidr_block": "10.0.1.0/24", "az_index": 0}}},
        }
    )


class CountingZoneDirectory(ZoneDirectory):
    """Static zone directory that records every query it answers."""

    def __init__(self, zones: Dict[str, List[str]] = None):
        self._directory = StaticZoneDirectory(zones or ZONES)
        self.calls: List[str] = []

    def list_availability_zones(self, region: str) -> List[str]:
        self.calls.append(region)
        return self._directory.list_availability_zones(region)


class CountingImageCatalog(ImageCatalog):
    """Static image catalog that records every query it answers."""

    def __init__(self, images: Dict[str, str] = None):
        self._catalog = StaticImageCatalog(images or IMAGES)
        self.calls: List[Tuple[str, str]] = []

    def lookup_image(self, kubernetes_version: str, architecture: str) -> str:
        self.calls.append((kubernetes_version, architecture))
        return self._catalog.lookup_image(kubernetes_version, architecture)


def static_lookups() -> Tuple[CountingZoneDirectory, CountingImageCatalog]:
    return CountingZoneDirectory(), CountingImageCatalog()
