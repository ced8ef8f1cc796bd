"""Per-type reference resolution and default derivation.

Each resolve_* function takes one typed declaration and the resolution
context, and returns two dicts: the identifiers its reference fields
resolved to, and the fields derived for it. Every function runs exactly
once per entity, after all types it may reference have been published.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Tuple

import ipaddr

import resolver.cloud_config as cloud_config
import resolver.rules as rules
import resolver.schema as schema
from resolver.exceptions import (
    ConfigurationError,
    ExternalLookupError,
    InvalidAttributeError,
    InvalidIndexError,
)
from resolver.lookups import ImageCatalog, ZoneDirectory
from resolver.references import ReferenceIndex

logger = logging.getLogger(__name__)

Resolution = Tuple[Dict[str, Any], Dict[str, Any]]


@dataclass
class ResolutionContext:
    """Everything a single resolution run threads through the derivations."""

    environment: str
    region: str
    index: ReferenceIndex
    zones: ZoneDirectory
    images: ImageCatalog
    strict_rules: bool = False


def _ref(ctx: ResolutionContext, entity_type: str, entity: Any, field: str) -> str:
    target_type, _ = schema.REFERENCE_FIELDS[entity_type][field]
    return ctx.index.resolve(entity_type, entity.name, field, target_type, getattr(entity, field))


def _refs(ctx: ResolutionContext, entity_type: str, entity: Any, field: str) -> Tuple[str, ...]:
    target_type, _ = schema.REFERENCE_FIELDS[entity_type][field]
    return ctx.index.resolve_many(entity_type, entity.name, field, target_type, getattr(entity, field))


def resolve_vpc(entity: schema.Vpc, ctx: ResolutionContext) -> Resolution:
    return {}, {}


def resolve_elastic_ip(entity: schema.ElasticIp, ctx: ResolutionContext) -> Resolution:
    return {}, {}


def _entity_lookup_error(
    error: ExternalLookupError, entity_type: str, name: str, field: str
) -> ExternalLookupError:
    context = {"type": entity_type, "name": name, "field": field}
    context.update(error.context)
    return ExternalLookupError(error.message, context=context)


def availability_zone(ctx: ResolutionContext, entity_type: str, name: str, az_index: int) -> str:
    """Zone at az_index in the region's zone list. Out of range is an error, never clamped."""
    if not ctx.region:
        raise ConfigurationError(
            "No region configured; an availability zone cannot be derived",
            context={"type": entity_type, "name": name, "field": "az_index"},
        )
    try:
        zones = ctx.zones.list_availability_zones(ctx.region)
    except ExternalLookupError as e:
        raise _entity_lookup_error(e, entity_type, name, "az_index") from e
    if az_index < 0 or az_index >= len(zones):
        raise InvalidIndexError(entity_type, name, "az_index", az_index, zones)
    return zones[az_index]


def resolve_subnet(entity: schema.Subnet, ctx: ResolutionContext) -> Resolution:
    t = cloud_config.SUBNET
    vpc_id = _ref(ctx, t, entity, "vpc")
    vpc = ctx.index.record(t, entity.name, "vpc", cloud_config.VPC, entity.vpc)
    vpc_cidr = ipaddr.IPNetwork(vpc.attributes["cidr_block"])
    if ipaddr.IPNetwork(entity.cidr_block) not in vpc_cidr:
        raise InvalidAttributeError(
            t, entity.name, "cidr_block",
            f"{entity.cidr_block} is not within VPC '{entity.vpc}' block {vpc_cidr}",
        )
    return (
        {"vpc_id": vpc_id},
        {"availability_zone": availability_zone(ctx, t, entity.name, entity.az_index)},
    )


def resolve_internet_gateway(entity: schema.InternetGateway, ctx: ResolutionContext) -> Resolution:
    return {"vpc_id": _ref(ctx, cloud_config.INTERNET_GATEWAY, entity, "vpc")}, {}


def resolve_nat_gateway(entity: schema.NatGateway, ctx: ResolutionContext) -> Resolution:
    t = cloud_config.NAT_GATEWAY
    subnet_id = _ref(ctx, t, entity, "subnet")
    subnet = ctx.index.record(t, entity.name, "subnet", cloud_config.SUBNET, entity.subnet)
    elastic_ip = entity.elastic_ip
    if entity.connectivity_type == cloud_config.NAT_PRIVATE and elastic_ip:
        logger.warning(f"NatGateway '{entity.name}': private gateway ignores elastic_ip")
        elastic_ip = None
    references = {
        "subnet_id": subnet_id,
        "allocation_id": ctx.index.resolve_optional(
            t, entity.name, "elastic_ip", cloud_config.ELASTIC_IP, elastic_ip
        ),
    }
    return references, {"availability_zone": subnet.derived["availability_zone"]}


def resolve_route(
    ctx: ResolutionContext, table_name: str, position: int, route: schema.Route
) -> Dict[str, str]:
    """Resolve a route target. Gateway names are looked up, other targets pass through."""
    field = f"routes[{position}].target_key"
    if route.target_type == cloud_config.ROUTE_TARGET_IGW:
        gateway_id = ctx.index.resolve(
            cloud_config.ROUTE_TABLE, table_name, field, cloud_config.INTERNET_GATEWAY, route.target_key
        )
    elif route.target_type == cloud_config.ROUTE_TARGET_NAT:
        gateway_id = ctx.index.resolve(
            cloud_config.ROUTE_TABLE, table_name, field, cloud_config.NAT_GATEWAY, route.target_key
        )
    else:
        gateway_id = route.target_key
    return {
        "cidr_block": route.cidr_block,
        "target_type": route.target_type,
        "gateway_id": gateway_id,
    }


def resolve_route_table(entity: schema.RouteTable, ctx: ResolutionContext) -> Resolution:
    routes = [resolve_route(ctx, entity.name, i, route) for i, route in enumerate(entity.routes)]
    return {"vpc_id": _ref(ctx, cloud_config.ROUTE_TABLE, entity, "vpc")}, {"routes": routes}


def resolve_route_table_association(
    entity: schema.RouteTableAssociation, ctx: ResolutionContext
) -> Resolution:
    t = cloud_config.ROUTE_TABLE_ASSOCIATION
    return {
        "route_table_id": _ref(ctx, t, entity, "route_table"),
        "subnet_id": _ref(ctx, t, entity, "subnet"),
    }, {}


def resolve_security_group(entity: schema.SecurityGroup, ctx: ResolutionContext) -> Resolution:
    return {"vpc_id": _ref(ctx, cloud_config.SECURITY_GROUP, entity, "vpc")}, {}


def resolve_security_rule(entity: schema.SecurityRule, ctx: ResolutionContext) -> Resolution:
    shape = rules.classify(entity, ctx.index, ctx.strict_rules)
    cidr_block, peer_id = rules.cidr_and_peer(shape)
    from_port, to_port = rules.normalise_ports(entity.protocol, entity.from_port, entity.to_port)
    references = {
        "security_group_id": _ref(ctx, cloud_config.SECURITY_RULE, entity, "security_group"),
        "peer_security_group_id": peer_id,
    }
    derived = {
        "cidr_block": cidr_block,
        "cidr_source": shape.source if isinstance(shape, rules.CidrRule) else "",
        "from_port": from_port,
        "to_port": to_port,
    }
    return references, derived


def resolve_endpoint(entity: schema.Endpoint, ctx: ResolutionContext) -> Resolution:
    t = cloud_config.ENDPOINT
    references = {
        "vpc_id": _ref(ctx, t, entity, "vpc"),
        "subnet_ids": (),
        "security_group_ids": (),
        "route_table_ids": (),
    }
    if entity.endpoint_type == cloud_config.ENDPOINT_INTERFACE:
        if entity.route_tables:
            logger.warning(f"Endpoint '{entity.name}': Interface endpoint ignores route_tables")
        references["subnet_ids"] = _refs(ctx, t, entity, "subnets")
        references["security_group_ids"] = _refs(ctx, t, entity, "security_groups")
        private_dns = True if entity.private_dns_enabled is None else entity.private_dns_enabled
    elif entity.endpoint_type == cloud_config.ENDPOINT_GATEWAY:
        if entity.subnets or entity.security_groups:
            logger.warning(
                f"Endpoint '{entity.name}': Gateway endpoint ignores subnets and security_groups"
            )
        references["route_table_ids"] = _refs(ctx, t, entity, "route_tables")
        private_dns = False
    else:
        raise InvalidAttributeError(t, entity.name, "endpoint_type", f"unknown type '{entity.endpoint_type}'")
    return references, {"private_dns_enabled": private_dns}


def resolve_cluster(entity: schema.Cluster, ctx: ResolutionContext) -> Resolution:
    t = cloud_config.CLUSTER
    subnet_ids = _refs(ctx, t, entity, "subnets")
    vpc_names = sorted(
        {
            ctx.index.record(t, entity.name, f"subnets[{i}]", cloud_config.SUBNET, subnet).entity.vpc
            for i, subnet in enumerate(entity.subnets)
        }
    )
    if len(vpc_names) > 1:
        raise InvalidAttributeError(
            t, entity.name, "subnets", f"subnets span more than one VPC ({', '.join(vpc_names)})"
        )
    vpc_id = ctx.index.resolve(t, entity.name, "subnets.vpc", cloud_config.VPC, vpc_names[0])
    return (
        {"subnet_ids": subnet_ids, "security_group_ids": _refs(ctx, t, entity, "security_groups")},
        {"vpc_id": vpc_id},
    )


def resolve_nodegroup(entity: schema.Nodegroup, ctx: ResolutionContext) -> Resolution:
    t = cloud_config.NODEGROUP
    cluster = ctx.index.record(t, entity.name, "cluster", cloud_config.CLUSTER, entity.cluster)
    if entity.subnets:
        subnet_ids = _refs(ctx, t, entity, "subnets")
    else:
        subnet_ids = tuple(cluster.references["subnet_ids"])
    kubernetes_version = entity.kubernetes_version or cluster.attributes["kubernetes_version"]
    if entity.image_id:
        instance_image = entity.image_id
    else:
        try:
            instance_image = ctx.images.lookup_image(kubernetes_version, entity.architecture)
        except ExternalLookupError as e:
            raise _entity_lookup_error(e, t, entity.name, "image_id") from e
    return (
        {"cluster_id": _ref(ctx, t, entity, "cluster"), "subnet_ids": subnet_ids},
        {"kubernetes_version": kubernetes_version, "instance_image": instance_image},
    )


RESOLVERS: Dict[str, Callable[[Any, ResolutionContext], Resolution]] = {
    cloud_config.VPC: resolve_vpc,
    cloud_config.ELASTIC_IP: resolve_elastic_ip,
    cloud_config.SUBNET: resolve_subnet,
    cloud_config.SECURITY_GROUP: resolve_security_group,
    cloud_config.INTERNET_GATEWAY: resolve_internet_gateway,
    cloud_config.NAT_GATEWAY: resolve_nat_gateway,
    cloud_config.ROUTE_TABLE: resolve_route_table,
    cloud_config.ROUTE_TABLE_ASSOCIATION: resolve_route_table_association,
    cloud_config.SECURITY_RULE: resolve_security_rule,
    cloud_config.ENDPOINT: resolve_endpoint,
    cloud_config.CLUSTER: resolve_cluster,
    cloud_config.NODEGROUP: resolve_nodegroup,
}
