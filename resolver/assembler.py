"""Output assembly for infraresolve.

Builds the immutable resolved records handed to the provisioning engine.
A record combines the literal attributes of a declaration, the identifiers
its references resolved to and the fields derived for it. Records are never
patched: a new run builds new records from the raw declarations.
"""

import dataclasses
import hashlib
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional

import resolver.cloud_config as cloud_config
import resolver.schema as schema


def freeze(value: Any) -> Any:
    """Recursively turn dicts into read-only mappings and lists into tuples."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = dataclasses.asdict(value)
    if isinstance(value, Mapping):
        return MappingProxyType({k: freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(v) for v in value)
    return value


def thaw(value: Any) -> Any:
    """Inverse of freeze, producing plain JSON serialisable containers."""
    if isinstance(value, Mapping):
        return {k: thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [thaw(v) for v in value]
    return value


def placeholder_id(environment: str, entity_type: str, name: str) -> str:
    """Deterministic stand-in identifier for an entity not created yet."""
    digest = hashlib.sha1(f"{environment}/{entity_type}/{name}".encode("utf8")).hexdigest()
    return cloud_config.ID_PREFIXES[entity_type] + digest[: cloud_config.PLACEHOLDER_ID_LENGTH]


def assign_id(
    entity_type: str,
    name: str,
    environment: str,
    known_ids: Optional[Dict[str, Dict[str, str]]] = None,
    natural_id: Optional[str] = None,
) -> str:
    """Identifier for an entity.

    Preference order: the identifier the provisioning engine returned on an
    earlier run, the entity's natural identifier (clusters and nodegroups are
    identified by name), then a placeholder.
    """
    known = (known_ids or {}).get(entity_type, {}).get(name)
    if known:
        return known
    if natural_id:
        return natural_id
    return placeholder_id(environment, entity_type, name)


@dataclass(frozen=True)
class ResolvedRecord:
    entity_type: str
    name: str
    environment: str
    id: str
    attributes: Mapping[str, Any]
    references: Mapping[str, Any]
    derived: Mapping[str, Any]
    tags: Mapping[str, str]
    entity: Any = field(default=None, compare=False, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.entity_type,
            "name": self.name,
            "id": self.id,
            "attributes": thaw(self.attributes),
            "references": thaw(self.references),
            "derived": thaw(self.derived),
            "tags": thaw(self.tags),
        }


def merge_tags(name: str, default_tags: Optional[Dict[str, str]], entity_tags: Optional[Dict[str, str]]) -> Dict[str, str]:
    """Run-wide tags, then a Name tag, then the entity's own tags."""
    tags = dict(default_tags or {})
    tags["Name"] = name
    tags.update(entity_tags or {})
    return tags


def build_record(
    entity_type: str,
    entity: Any,
    environment: str,
    entity_id: str,
    references: Optional[Dict[str, Any]] = None,
    derived: Optional[Dict[str, Any]] = None,
    default_tags: Optional[Dict[str, str]] = None,
) -> ResolvedRecord:
    """Assemble a resolved record from a declaration and its resolution results.

    Args:
        entity_type: Type of the declaration
        entity: Typed declaration from the catalog
        environment: Environment being resolved
        entity_id: Identifier assigned to the entity
        references: Reference field -> resolved identifier(s)
        derived: Derived field -> value. A derived field replaces the
            declared attribute of the same name, so the record never
            carries both a declared and an effective value.
        default_tags: Run-wide tags merged under the entity's tags
    """
    reference_fields = schema.REFERENCE_FIELDS[entity_type]
    attributes = {
        f.name: getattr(entity, f.name)
        for f in dataclasses.fields(entity)
        if f.name not in reference_fields
        and f.name not in ("name", "tags")
        and f.name not in (derived or {})
    }
    entity_tags = getattr(entity, "tags", None)
    return ResolvedRecord(
        entity_type=entity_type,
        name=entity.name,
        environment=environment,
        id=entity_id,
        attributes=freeze(attributes),
        references=freeze(references or {}),
        derived=freeze(derived or {}),
        tags=freeze(merge_tags(entity.name, default_tags, entity_tags) if entity_tags is not None else {}),
        entity=entity,
    )


class ResolvedGraph:
    """Every resolved record of one run, per type, in resolution order."""

    def __init__(
        self,
        environment: str,
        region: str,
        order: List[str],
        records: Dict[str, Dict[str, ResolvedRecord]],
    ):
        self.environment = environment
        self.region = region
        self.order = list(order)
        self._records = MappingProxyType(
            {t: MappingProxyType(dict(records.get(t, {}))) for t in self.order}
        )

    def records(self, entity_type: str) -> Mapping[str, ResolvedRecord]:
        return self._records.get(entity_type, MappingProxyType({}))

    def get(self, entity_type: str, name: str) -> ResolvedRecord:
        return self._records[entity_type][name]

    def __iter__(self) -> Iterator[ResolvedRecord]:
        for entity_type in self.order:
            for name in sorted(self._records[entity_type]):
                yield self._records[entity_type][name]

    def __len__(self) -> int:
        return sum(len(records) for records in self._records.values())

    def counts(self) -> Dict[str, int]:
        return {entity_type: len(self._records[entity_type]) for entity_type in self.order}

    def ids(self) -> Dict[str, Dict[str, Dict[str, str]]]:
        """Environment -> type -> name -> identifier, the state file shape fileparser.load_known_ids reads."""
        return {
            self.environment: {
                entity_type: {name: record.id for name, record in sorted(self._records[entity_type].items())}
                for entity_type in self.order
            }
        }

    def to_dict(self) -> Dict[str, Any]:
        """Plain, deterministic representation for the provisioning engine."""
        resources = {}
        for entity_type in self.order:
            key = cloud_config.DOCUMENT_KEYS[entity_type]
            resources[key] = {
                name: record.to_dict() for name, record in sorted(self._records[entity_type].items())
            }
        return {
            "environment": self.environment,
            "region": self.region,
            "resolution_order": list(self.order),
            "resources": resources,
        }
