"""
AWS resolution configuration for infraresolve.

This module contains the static constants used throughout the resolution
pipeline: entity type names, document keys, identifier prefixes, required
fields and the closed value sets of polymorphic attributes.
"""

VPC = "VPC"
ELASTIC_IP = "ElasticIP"
SUBNET = "Subnet"
SECURITY_GROUP = "SecurityGroup"
INTERNET_GATEWAY = "InternetGateway"
NAT_GATEWAY = "NatGateway"
ROUTE_TABLE = "RouteTable"
ROUTE_TABLE_ASSOCIATION = "RouteTableAssociation"
SECURITY_RULE = "SecurityRule"
ENDPOINT = "Endpoint"
CLUSTER = "Cluster"
NODEGROUP = "Nodegroup"

# Key of each entity collection in the input document
DOCUMENT_KEYS = {
    VPC: "vpcs",
    ELASTIC_IP: "elastic_ips",
    SUBNET: "subnets",
    SECURITY_GROUP: "security_groups",
    INTERNET_GATEWAY: "internet_gateways",
    NAT_GATEWAY: "nat_gateways",
    ROUTE_TABLE: "route_tables",
    ROUTE_TABLE_ASSOCIATION: "route_table_associations",
    SECURITY_RULE: "security_rules",
    ENDPOINT: "endpoints",
    CLUSTER: "clusters",
    NODEGROUP: "nodegroups",
}

ENTITY_TYPES = tuple(DOCUMENT_KEYS.keys())

# Top level document keys that are not entity collections
DOCUMENT_SETTINGS_KEYS = ["region", "tags"]

# Types a given type may reference
TYPE_DEPENDENCIES = {
    VPC: [],
    ELASTIC_IP: [],
    SUBNET: [VPC],
    SECURITY_GROUP: [VPC],
    INTERNET_GATEWAY: [VPC],
    NAT_GATEWAY: [SUBNET, ELASTIC_IP],
    ROUTE_TABLE: [VPC, INTERNET_GATEWAY, NAT_GATEWAY],
    ROUTE_TABLE_ASSOCIATION: [ROUTE_TABLE, SUBNET],
    SECURITY_RULE: [SECURITY_GROUP, VPC],
    ENDPOINT: [VPC, SUBNET, SECURITY_GROUP, ROUTE_TABLE],
    CLUSTER: [SUBNET, SECURITY_GROUP],
    NODEGROUP: [CLUSTER, SUBNET],
}

# Stages run strictly in sequence. A type never references a type of a later stage.
RESOLUTION_STAGES = [
    [VPC, ELASTIC_IP],
    [SUBNET, SECURITY_GROUP, INTERNET_GATEWAY],
    [NAT_GATEWAY, ROUTE_TABLE],
    [ROUTE_TABLE_ASSOCIATION],
    [SECURITY_RULE],
    [ENDPOINT],
    [CLUSTER],
    [NODEGROUP],
]

# Placeholder identifier prefixes for entities the provisioning engine has not created yet
ID_PREFIXES = {
    VPC: "vpc-",
    ELASTIC_IP: "eipalloc-",
    SUBNET: "subnet-",
    SECURITY_GROUP: "sg-",
    INTERNET_GATEWAY: "igw-",
    NAT_GATEWAY: "nat-",
    ROUTE_TABLE: "rtb-",
    ROUTE_TABLE_ASSOCIATION: "rtbassoc-",
    SECURITY_RULE: "sgr-",
    ENDPOINT: "vpce-",
}

PLACEHOLDER_ID_LENGTH = 17

# Route targets. igw and nat keys are entity names, everything else is a literal provider ID.
ROUTE_TARGET_IGW = "igw"
ROUTE_TARGET_NAT = "nat"
ROUTE_TARGET_VGW = "vgw"
ROUTE_TARGET_TGW = "tgw"
ROUTE_TARGET_OTHER = "other"
ROUTE_TARGET_TYPES = [
    ROUTE_TARGET_IGW,
    ROUTE_TARGET_NAT,
    ROUTE_TARGET_VGW,
    ROUTE_TARGET_TGW,
    ROUTE_TARGET_OTHER,
]
ROUTE_TARGET_ALIASES = {
    "internet_gateway": ROUTE_TARGET_IGW,
    "internet-gateway": ROUTE_TARGET_IGW,
    "nat_gateway": ROUTE_TARGET_NAT,
    "nat-gateway": ROUTE_TARGET_NAT,
    "vpn_gateway": ROUTE_TARGET_VGW,
    "vpn-gateway": ROUTE_TARGET_VGW,
    "transit_gateway": ROUTE_TARGET_TGW,
    "transit-gateway": ROUTE_TARGET_TGW,
}
DEFAULT_ROUTE_CIDR = "0.0.0.0/0"

ENDPOINT_INTERFACE = "Interface"
ENDPOINT_GATEWAY = "Gateway"
ENDPOINT_TYPES = [ENDPOINT_INTERFACE, ENDPOINT_GATEWAY]

RULE_INGRESS = "ingress"
RULE_EGRESS = "egress"
RULE_DIRECTIONS = [RULE_INGRESS, RULE_EGRESS]

# Protocol values meaning "all protocols, no port restriction"
ALL_PROTOCOLS = "-1"
ALL_PROTOCOL_ALIASES = ["-1", "all"]

NAT_PUBLIC = "public"
NAT_PRIVATE = "private"
NAT_CONNECTIVITY_TYPES = [NAT_PUBLIC, NAT_PRIVATE]

ARCH_X86_64 = "x86_64"
ARCH_ARM64 = "arm64"
ARCHITECTURE_ALIASES = {
    "x86_64": ARCH_X86_64,
    "amd64": ARCH_X86_64,
    "x86": ARCH_X86_64,
    "arm64": ARCH_ARM64,
    "aarch64": ARCH_ARM64,
}

DEFAULT_INSTANCE_TYPES = ["t3.medium"]
DEFAULT_CAPACITY_TYPE = "ON_DEMAND"
DEFAULT_SECURITY_GROUP_DESCRIPTION = "Managed by infraresolve"

# EKS optimized AMI published by AWS in SSM Parameter Store
EKS_AMI_SSM_PARAMETER = (
    "/aws/service/eks/optimized-ami/{version}/amazon-linux-2023/{arch}"
    "/standard/recommended/image_id"
)
