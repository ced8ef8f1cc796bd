"""Security rule classification for infraresolve.

A declared security rule has no explicit shape tag; its shape follows from
which optional fields are set. Classification, in priority order:

1. a peer security group is named -> PeerGroupRule, CIDR left empty
2. an explicit CIDR block is given -> CidrRule with that block
3. neither -> CidrRule with the CIDR block of the rule's owning VPC,
   found through security_group -> vpc

Independently, an all-protocols rule carries no port range: any ports
supplied are dropped.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple, Union

import resolver.cloud_config as cloud_config
from resolver.exceptions import AmbiguousRuleError
from resolver.references import ReferenceIndex
from resolver.schema import SecurityRule

logger = logging.getLogger(__name__)

CIDR_SOURCE_EXPLICIT = "explicit"
CIDR_SOURCE_VPC = "vpc"


@dataclass(frozen=True)
class CidrRule:
    cidr_block: str
    source: str


@dataclass(frozen=True)
class PeerGroupRule:
    peer_security_group_id: str


RuleShape = Union[CidrRule, PeerGroupRule]


def owning_vpc_cidr(rule: SecurityRule, index: ReferenceIndex) -> str:
    """CIDR block of the VPC the rule's security group lives in."""
    t = cloud_config.SECURITY_RULE
    group = index.record(t, rule.name, "security_group", cloud_config.SECURITY_GROUP, rule.security_group)
    vpc = index.record(t, rule.name, "security_group.vpc", cloud_config.VPC, group.entity.vpc)
    return vpc.attributes["cidr_block"]


def classify(rule: SecurityRule, index: ReferenceIndex, strict: bool = False) -> RuleShape:
    """Classify a rule and resolve whatever its shape refers to.

    Args:
        rule: Declared security rule
        index: Reference index with security groups and VPCs published
        strict: Reject rules that set both a CIDR and a peer group

    Returns:
        PeerGroupRule or CidrRule

    Raises:
        AmbiguousRuleError: In strict mode, if both CIDR and peer group are set
        UnresolvedReferenceError: If the peer group or owning VPC is unknown
    """
    if rule.peer_security_group:
        if rule.cidr_block:
            if strict:
                raise AmbiguousRuleError(rule.name, rule.cidr_block, rule.peer_security_group)
            logger.warning(
                f"SecurityRule '{rule.name}': peer_security_group takes precedence, "
                f"discarding cidr_block {rule.cidr_block}"
            )
        peer_id = index.resolve(
            cloud_config.SECURITY_RULE,
            rule.name,
            "peer_security_group",
            cloud_config.SECURITY_GROUP,
            rule.peer_security_group,
        )
        return PeerGroupRule(peer_security_group_id=peer_id)
    if rule.cidr_block:
        return CidrRule(cidr_block=rule.cidr_block, source=CIDR_SOURCE_EXPLICIT)
    return CidrRule(cidr_block=owning_vpc_cidr(rule, index), source=CIDR_SOURCE_VPC)


def is_all_protocols(protocol: str) -> bool:
    return str(protocol).lower() in cloud_config.ALL_PROTOCOL_ALIASES


def normalise_ports(
    protocol: str, from_port: Optional[int], to_port: Optional[int]
) -> Tuple[Optional[int], Optional[int]]:
    """Port range of a rule. All-protocols rules have none; a lone from_port is a single port."""
    if is_all_protocols(protocol):
        return None, None
    if from_port is not None and to_port is None:
        to_port = from_port
    return from_port, to_port


def cidr_and_peer(shape: RuleShape) -> Tuple[str, str]:
    """(cidr_block, peer_security_group_id) of a classified rule; exactly one is non-empty."""
    if isinstance(shape, PeerGroupRule):
        return "", shape.peer_security_group_id
    if isinstance(shape, CidrRule):
        return shape.cidr_block, ""
    raise TypeError(f"Unknown rule shape {shape!r}")
