"""Typed entity schema for infraresolve.

Each declared entity is loaded into a frozen dataclass. Reference fields hold
entity *names*; they are turned into identifiers only by the resolver, which
builds new resolved records instead of touching these.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

import resolver.cloud_config as cloud_config


@dataclass(frozen=True)
class Vpc:
    name: str
    cidr_block: str
    enable_dns_support: bool = True
    enable_dns_hostnames: bool = True
    instance_tenancy: str = "default"
    tags: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ElasticIp:
    name: str
    domain: str = "vpc"
    tags: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Subnet:
    name: str
    vpc: str
    cidr_block: str
    az_index: int = 0
    map_public_ip_on_launch: bool = False
    tags: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class InternetGateway:
    name: str
    vpc: str
    tags: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class NatGateway:
    name: str
    subnet: str
    elastic_ip: Optional[str] = None
    connectivity_type: str = cloud_config.NAT_PUBLIC
    tags: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Route:
    """A single route entry. target_key is a name for igw/nat targets, a literal ID otherwise."""

    cidr_block: str
    target_type: str
    target_key: str


@dataclass(frozen=True)
class RouteTable:
    name: str
    vpc: str
    routes: Tuple[Route, ...] = ()
    tags: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class RouteTableAssociation:
    name: str
    route_table: str
    subnet: str


@dataclass(frozen=True)
class SecurityGroup:
    name: str
    vpc: str
    description: str = cloud_config.DEFAULT_SECURITY_GROUP_DESCRIPTION
    tags: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SecurityRule:
    """A security group rule as declared.

    Which of cidr_block and peer_security_group is set decides the rule's
    shape; see resolver.rules for the classification.
    """

    name: str
    security_group: str
    type: str
    protocol: str
    from_port: Optional[int] = None
    to_port: Optional[int] = None
    cidr_block: Optional[str] = None
    peer_security_group: Optional[str] = None
    description: str = ""


@dataclass(frozen=True)
class Endpoint:
    name: str
    vpc: str
    service_name: str
    endpoint_type: str
    subnets: Tuple[str, ...] = ()
    security_groups: Tuple[str, ...] = ()
    route_tables: Tuple[str, ...] = ()
    private_dns_enabled: Optional[bool] = None
    tags: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Cluster:
    name: str
    kubernetes_version: str
    subnets: Tuple[str, ...]
    security_groups: Tuple[str, ...] = ()
    role_arn: Optional[str] = None
    endpoint_public_access: bool = True
    endpoint_private_access: bool = True
    tags: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Nodegroup:
    name: str
    cluster: str
    subnets: Tuple[str, ...] = ()
    instance_types: Tuple[str, ...] = tuple(cloud_config.DEFAULT_INSTANCE_TYPES)
    architecture: str = cloud_config.ARCH_X86_64
    kubernetes_version: Optional[str] = None
    image_id: Optional[str] = None
    capacity_type: str = cloud_config.DEFAULT_CAPACITY_TYPE
    desired_size: int = 1
    min_size: int = 1
    max_size: int = 1
    tags: Dict[str, str] = field(default_factory=dict)


ENTITY_CLASSES = {
    cloud_config.VPC: Vpc,
    cloud_config.ELASTIC_IP: ElasticIp,
    cloud_config.SUBNET: Subnet,
    cloud_config.SECURITY_GROUP: SecurityGroup,
    cloud_config.INTERNET_GATEWAY: InternetGateway,
    cloud_config.NAT_GATEWAY: NatGateway,
    cloud_config.ROUTE_TABLE: RouteTable,
    cloud_config.ROUTE_TABLE_ASSOCIATION: RouteTableAssociation,
    cloud_config.SECURITY_RULE: SecurityRule,
    cloud_config.ENDPOINT: Endpoint,
    cloud_config.CLUSTER: Cluster,
    cloud_config.NODEGROUP: Nodegroup,
}

# Fields that must be present in every declaration of a type
REQUIRED_FIELDS = {
    cloud_config.VPC: ["cidr_block"],
    cloud_config.ELASTIC_IP: [],
    cloud_config.SUBNET: ["vpc", "cidr_block"],
    cloud_config.SECURITY_GROUP: ["vpc"],
    cloud_config.INTERNET_GATEWAY: ["vpc"],
    cloud_config.NAT_GATEWAY: ["subnet"],
    cloud_config.ROUTE_TABLE: ["vpc"],
    cloud_config.ROUTE_TABLE_ASSOCIATION: ["route_table", "subnet"],
    cloud_config.SECURITY_RULE: ["security_group", "type", "protocol"],
    cloud_config.ENDPOINT: ["vpc", "service_name", "endpoint_type"],
    cloud_config.CLUSTER: ["kubernetes_version", "subnets"],
    cloud_config.NODEGROUP: ["cluster"],
}

# Reference fields of each type: field name -> (target type, is list)
REFERENCE_FIELDS = {
    cloud_config.VPC: {},
    cloud_config.ELASTIC_IP: {},
    cloud_config.SUBNET: {"vpc": (cloud_config.VPC, False)},
    cloud_config.SECURITY_GROUP: {"vpc": (cloud_config.VPC, False)},
    cloud_config.INTERNET_GATEWAY: {"vpc": (cloud_config.VPC, False)},
    cloud_config.NAT_GATEWAY: {
        "subnet": (cloud_config.SUBNET, False),
        "elastic_ip": (cloud_config.ELASTIC_IP, False),
    },
    cloud_config.ROUTE_TABLE: {"vpc": (cloud_config.VPC, False)},
    cloud_config.ROUTE_TABLE_ASSOCIATION: {
        "route_table": (cloud_config.ROUTE_TABLE, False),
        "subnet": (cloud_config.SUBNET, False),
    },
    cloud_config.SECURITY_RULE: {
        "security_group": (cloud_config.SECURITY_GROUP, False),
        "peer_security_group": (cloud_config.SECURITY_GROUP, False),
    },
    cloud_config.ENDPOINT: {
        "vpc": (cloud_config.VPC, False),
        "subnets": (cloud_config.SUBNET, True),
        "security_groups": (cloud_config.SECURITY_GROUP, True),
        "route_tables": (cloud_config.ROUTE_TABLE, True),
    },
    cloud_config.CLUSTER: {
        "subnets": (cloud_config.SUBNET, True),
        "security_groups": (cloud_config.SECURITY_GROUP, True),
    },
    cloud_config.NODEGROUP: {
        "cluster": (cloud_config.CLUSTER, False),
        "subnets": (cloud_config.SUBNET, True),
    },
}
