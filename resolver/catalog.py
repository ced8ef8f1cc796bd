"""Entity catalog for infraresolve.

Loads the records selected for one environment into the typed, frozen
structures of resolver.schema. Loading validates name uniqueness, required
fields and the sanity of literal attributes; references are left as names
for the resolver.
"""

import dataclasses
import logging
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

import ipaddr

import resolver.cloud_config as cloud_config
import resolver.schema as schema
from resolver.exceptions import (
    DuplicateNameError,
    InvalidAttributeError,
    MissingRequiredFieldError,
)

logger = logging.getLogger(__name__)


def _is_missing(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


def _require(entity_type: str, record: Dict[str, Any], field: str) -> Any:
    value = record.get(field)
    if _is_missing(value):
        raise MissingRequiredFieldError(entity_type, record["name"], field)
    return value


def _as_str(value: Any) -> Optional[str]:
    if _is_missing(value):
        return None
    return str(value)


def _as_bool(entity_type: str, name: str, field: str, value: Any, default: Optional[bool]) -> Optional[bool]:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    raise InvalidAttributeError(entity_type, name, field, f"expected a boolean, got '{value}'")


def _as_int(entity_type: str, name: str, field: str, value: Any, default: Optional[int]) -> Optional[int]:
    if _is_missing(value):
        return default
    if isinstance(value, bool):
        raise InvalidAttributeError(entity_type, name, field, f"expected an integer, got '{value}'")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidAttributeError(entity_type, name, field, f"expected an integer, got '{value}'")


def _as_names(entity_type: str, name: str, field: str, value: Any) -> Tuple[str, ...]:
    if _is_missing(value):
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)):
        return tuple(str(v) for v in value)
    raise InvalidAttributeError(entity_type, name, field, "expected a name or a list of names")


def _as_tags(entity_type: str, name: str, value: Any) -> Dict[str, str]:
    if _is_missing(value):
        return {}
    if not isinstance(value, dict):
        raise InvalidAttributeError(entity_type, name, "tags", "expected a mapping")
    return {str(k): str(v) for k, v in value.items()}


def _as_version(entity_type: str, name: str, value: Any) -> Optional[str]:
    # YAML and HCL read an unquoted 1.30 as the float 1.3
    if isinstance(value, (float, bool)):
        raise InvalidAttributeError(
            entity_type, name, "kubernetes_version", f"must be a quoted string, got {value!r}"
        )
    return _as_str(value)


def validate_cidr(entity_type: str, name: str, field: str, value: str) -> str:
    """Check that a CIDR block parses. Returns the block unchanged."""
    if "/" not in value:
        raise InvalidAttributeError(entity_type, name, field, f"'{value}' is not a CIDR block")
    try:
        ipaddr.IPNetwork(value)
    except ValueError as e:
        raise InvalidAttributeError(entity_type, name, field, f"'{value}' is not a CIDR block ({e})")
    return value


def _parse_vpc(record: Dict[str, Any]) -> schema.Vpc:
    t, name = cloud_config.VPC, record["name"]
    return schema.Vpc(
        name=name,
        cidr_block=validate_cidr(t, name, "cidr_block", str(_require(t, record, "cidr_block"))),
        enable_dns_support=_as_bool(t, name, "enable_dns_support", record.get("enable_dns_support"), True),
        enable_dns_hostnames=_as_bool(t, name, "enable_dns_hostnames", record.get("enable_dns_hostnames"), True),
        instance_tenancy=_as_str(record.get("instance_tenancy")) or "default",
        tags=_as_tags(t, name, record.get("tags")),
    )


def _parse_elastic_ip(record: Dict[str, Any]) -> schema.ElasticIp:
    return schema.ElasticIp(
        name=record["name"],
        domain=_as_str(record.get("domain")) or "vpc",
        tags=_as_tags(cloud_config.ELASTIC_IP, record["name"], record.get("tags")),
    )


def _parse_subnet(record: Dict[str, Any]) -> schema.Subnet:
    t, name = cloud_config.SUBNET, record["name"]
    return schema.Subnet(
        name=name,
        vpc=str(_require(t, record, "vpc")),
        cidr_block=validate_cidr(t, name, "cidr_block", str(_require(t, record, "cidr_block"))),
        az_index=_as_int(t, name, "az_index", record.get("az_index"), 0),
        map_public_ip_on_launch=_as_bool(
            t, name, "map_public_ip_on_launch", record.get("map_public_ip_on_launch"), False
        ),
        tags=_as_tags(t, name, record.get("tags")),
    )


def _parse_internet_gateway(record: Dict[str, Any]) -> schema.InternetGateway:
    t = cloud_config.INTERNET_GATEWAY
    return schema.InternetGateway(
        name=record["name"],
        vpc=str(_require(t, record, "vpc")),
        tags=_as_tags(t, record["name"], record.get("tags")),
    )


def _parse_nat_gateway(record: Dict[str, Any]) -> schema.NatGateway:
    t, name = cloud_config.NAT_GATEWAY, record["name"]
    connectivity_type = (_as_str(record.get("connectivity_type")) or cloud_config.NAT_PUBLIC).lower()
    if connectivity_type not in cloud_config.NAT_CONNECTIVITY_TYPES:
        raise InvalidAttributeError(
            t, name, "connectivity_type",
            f"must be one of {', '.join(cloud_config.NAT_CONNECTIVITY_TYPES)}",
        )
    elastic_ip = _as_str(record.get("elastic_ip"))
    if connectivity_type == cloud_config.NAT_PUBLIC and elastic_ip is None:
        raise MissingRequiredFieldError(t, name, "elastic_ip")
    return schema.NatGateway(
        name=name,
        subnet=str(_require(t, record, "subnet")),
        elastic_ip=elastic_ip,
        connectivity_type=connectivity_type,
        tags=_as_tags(t, name, record.get("tags")),
    )


def _parse_routes(name: str, value: Any) -> Tuple[schema.Route, ...]:
    t = cloud_config.ROUTE_TABLE
    if _is_missing(value):
        return ()
    if not isinstance(value, list):
        raise InvalidAttributeError(t, name, "routes", "expected a list of routes")
    routes = []
    for i, entry in enumerate(value):
        field = f"routes[{i}]"
        if not isinstance(entry, dict):
            raise InvalidAttributeError(t, name, field, "expected a mapping")
        target_type = _as_str(entry.get("target_type"))
        if target_type is None:
            raise MissingRequiredFieldError(t, name, f"{field}.target_type")
        target_type = target_type.lower()
        target_type = cloud_config.ROUTE_TARGET_ALIASES.get(target_type, target_type)
        if target_type not in cloud_config.ROUTE_TARGET_TYPES:
            raise InvalidAttributeError(
                t, name, f"{field}.target_type",
                f"'{target_type}' is not one of {', '.join(cloud_config.ROUTE_TARGET_TYPES)}",
            )
        target_key = _as_str(entry.get("target_key"))
        if target_key is None:
            raise MissingRequiredFieldError(t, name, f"{field}.target_key")
        cidr_block = _as_str(entry.get("cidr_block")) or cloud_config.DEFAULT_ROUTE_CIDR
        routes.append(
            schema.Route(
                cidr_block=validate_cidr(t, name, f"{field}.cidr_block", cidr_block),
                target_type=target_type,
                target_key=target_key,
            )
        )
    return tuple(routes)


def _parse_route_table(record: Dict[str, Any]) -> schema.RouteTable:
    t, name = cloud_config.ROUTE_TABLE, record["name"]
    return schema.RouteTable(
        name=name,
        vpc=str(_require(t, record, "vpc")),
        routes=_parse_routes(name, record.get("routes")),
        tags=_as_tags(t, name, record.get("tags")),
    )


def _parse_route_table_association(record: Dict[str, Any]) -> schema.RouteTableAssociation:
    t = cloud_config.ROUTE_TABLE_ASSOCIATION
    return schema.RouteTableAssociation(
        name=record["name"],
        route_table=str(_require(t, record, "route_table")),
        subnet=str(_require(t, record, "subnet")),
    )


def _parse_security_group(record: Dict[str, Any]) -> schema.SecurityGroup:
    t = cloud_config.SECURITY_GROUP
    return schema.SecurityGroup(
        name=record["name"],
        vpc=str(_require(t, record, "vpc")),
        description=_as_str(record.get("description"))
        or cloud_config.DEFAULT_SECURITY_GROUP_DESCRIPTION,
        tags=_as_tags(t, record["name"], record.get("tags")),
    )


def _parse_security_rule(record: Dict[str, Any]) -> schema.SecurityRule:
    t, name = cloud_config.SECURITY_RULE, record["name"]
    direction = str(_require(t, record, "type")).lower()
    if direction not in cloud_config.RULE_DIRECTIONS:
        raise InvalidAttributeError(
            t, name, "type", f"must be one of {', '.join(cloud_config.RULE_DIRECTIONS)}"
        )
    protocol = str(_require(t, record, "protocol")).lower()
    if protocol in cloud_config.ALL_PROTOCOL_ALIASES:
        protocol = cloud_config.ALL_PROTOCOLS
    cidr_block = _as_str(record.get("cidr_block"))
    if cidr_block is not None:
        validate_cidr(t, name, "cidr_block", cidr_block)
    return schema.SecurityRule(
        name=name,
        security_group=str(_require(t, record, "security_group")),
        type=direction,
        protocol=protocol,
        from_port=_as_int(t, name, "from_port", record.get("from_port"), None),
        to_port=_as_int(t, name, "to_port", record.get("to_port"), None),
        cidr_block=cidr_block,
        peer_security_group=_as_str(record.get("peer_security_group")),
        description=_as_str(record.get("description")) or "",
    )


def _parse_endpoint(record: Dict[str, Any]) -> schema.Endpoint:
    t, name = cloud_config.ENDPOINT, record["name"]
    requested = str(_require(t, record, "endpoint_type"))
    endpoint_type = next(
        (e for e in cloud_config.ENDPOINT_TYPES if e.lower() == requested.lower()), None
    )
    if endpoint_type is None:
        raise InvalidAttributeError(
            t, name, "endpoint_type", f"must be one of {', '.join(cloud_config.ENDPOINT_TYPES)}"
        )
    return schema.Endpoint(
        name=name,
        vpc=str(_require(t, record, "vpc")),
        service_name=str(_require(t, record, "service_name")),
        endpoint_type=endpoint_type,
        subnets=_as_names(t, name, "subnets", record.get("subnets")),
        security_groups=_as_names(t, name, "security_groups", record.get("security_groups")),
        route_tables=_as_names(t, name, "route_tables", record.get("route_tables")),
        private_dns_enabled=_as_bool(t, name, "private_dns_enabled", record.get("private_dns_enabled"), None),
        tags=_as_tags(t, name, record.get("tags")),
    )


def _parse_cluster(record: Dict[str, Any]) -> schema.Cluster:
    t, name = cloud_config.CLUSTER, record["name"]
    return schema.Cluster(
        name=name,
        kubernetes_version=_as_version(t, name, _require(t, record, "kubernetes_version")),
        subnets=_as_names(t, name, "subnets", _require(t, record, "subnets")),
        security_groups=_as_names(t, name, "security_groups", record.get("security_groups")),
        role_arn=_as_str(record.get("role_arn")),
        endpoint_public_access=_as_bool(
            t, name, "endpoint_public_access", record.get("endpoint_public_access"), True
        ),
        endpoint_private_access=_as_bool(
            t, name, "endpoint_private_access", record.get("endpoint_private_access"), True
        ),
        tags=_as_tags(t, name, record.get("tags")),
    )


def _parse_nodegroup(record: Dict[str, Any]) -> schema.Nodegroup:
    t, name = cloud_config.NODEGROUP, record["name"]
    architecture = (_as_str(record.get("architecture")) or cloud_config.ARCH_X86_64).lower()
    if architecture not in cloud_config.ARCHITECTURE_ALIASES:
        raise InvalidAttributeError(
            t, name, "architecture",
            f"'{architecture}' is not one of {', '.join(sorted(cloud_config.ARCHITECTURE_ALIASES))}",
        )
    desired_size = _as_int(t, name, "desired_size", record.get("desired_size"), 1)
    min_size = _as_int(t, name, "min_size", record.get("min_size"), min(1, desired_size))
    max_size = _as_int(t, name, "max_size", record.get("max_size"), max(1, desired_size))
    if not min_size <= desired_size <= max_size:
        raise InvalidAttributeError(
            t, name, "desired_size",
            f"expected min_size <= desired_size <= max_size, got {min_size}/{desired_size}/{max_size}",
        )
    instance_types = _as_names(t, name, "instance_types", record.get("instance_types"))
    return schema.Nodegroup(
        name=name,
        cluster=str(_require(t, record, "cluster")),
        subnets=_as_names(t, name, "subnets", record.get("subnets")),
        instance_types=instance_types or tuple(cloud_config.DEFAULT_INSTANCE_TYPES),
        architecture=cloud_config.ARCHITECTURE_ALIASES[architecture],
        kubernetes_version=_as_version(t, name, record.get("kubernetes_version")),
        image_id=_as_str(record.get("image_id")),
        capacity_type=(_as_str(record.get("capacity_type")) or cloud_config.DEFAULT_CAPACITY_TYPE).upper(),
        desired_size=desired_size,
        min_size=min_size,
        max_size=max_size,
        tags=_as_tags(t, name, record.get("tags")),
    )


PARSERS: Dict[str, Callable[[Dict[str, Any]], Any]] = {
    cloud_config.VPC: _parse_vpc,
    cloud_config.ELASTIC_IP: _parse_elastic_ip,
    cloud_config.SUBNET: _parse_subnet,
    cloud_config.SECURITY_GROUP: _parse_security_group,
    cloud_config.INTERNET_GATEWAY: _parse_internet_gateway,
    cloud_config.NAT_GATEWAY: _parse_nat_gateway,
    cloud_config.ROUTE_TABLE: _parse_route_table,
    cloud_config.ROUTE_TABLE_ASSOCIATION: _parse_route_table_association,
    cloud_config.SECURITY_RULE: _parse_security_rule,
    cloud_config.ENDPOINT: _parse_endpoint,
    cloud_config.CLUSTER: _parse_cluster,
    cloud_config.NODEGROUP: _parse_nodegroup,
}


class EntityCatalog:
    """Typed declarations of one environment, keyed by type then name."""

    def __init__(self, environment: str, entities: Dict[str, Dict[str, Any]]):
        self.environment = environment
        self._entities = entities

    @classmethod
    def load(cls, selection: Dict[str, List[Dict[str, Any]]], environment: str) -> "EntityCatalog":
        """Build a catalog from the records selected for an environment.

        Args:
            selection: Entity type -> raw records, from environment.select
            environment: The environment the records were selected for

        Returns:
            EntityCatalog with one typed record per declaration

        Raises:
            DuplicateNameError: If a name repeats within a type
            MissingRequiredFieldError: If a type-mandatory field is absent
            InvalidAttributeError: If a literal attribute is unusable
        """
        entities: Dict[str, Dict[str, Any]] = {}
        for entity_type in cloud_config.ENTITY_TYPES:
            typed: Dict[str, Any] = {}
            for record in selection.get(entity_type) or []:
                name = record["name"]
                if name in typed:
                    raise DuplicateNameError(entity_type, name, environment)
                _warn_unknown_fields(entity_type, record)
                for field in schema.REQUIRED_FIELDS[entity_type]:
                    _require(entity_type, record, field)
                typed[name] = PARSERS[entity_type](record)
            entities[entity_type] = typed
            if typed:
                logger.debug(f"Loaded {len(typed)} {entity_type} declaration(s) for '{environment}'")
        return cls(environment, entities)

    def entities(self, entity_type: str) -> List[Any]:
        """Records of one type, sorted by name."""
        typed = self._entities.get(entity_type, {})
        return [typed[name] for name in sorted(typed)]

    def get(self, entity_type: str, name: str) -> Optional[Any]:
        return self._entities.get(entity_type, {}).get(name)

    def names(self, entity_type: str) -> List[str]:
        return sorted(self._entities.get(entity_type, {}))

    def __iter__(self) -> Iterator[Tuple[str, Any]]:
        for entity_type in cloud_config.ENTITY_TYPES:
            for entity in self.entities(entity_type):
                yield entity_type, entity

    def __len__(self) -> int:
        return sum(len(v) for v in self._entities.values())


def _warn_unknown_fields(entity_type: str, record: Dict[str, Any]) -> None:
    known = {f.name for f in dataclasses.fields(schema.ENTITY_CLASSES[entity_type])}
    for key in record:
        if key not in known:
            logger.warning(f"{entity_type} '{record['name']}': ignoring unknown field '{key}'")
