"""Resolution pipeline for infraresolve.

Runs the whole resolution for one environment:

    raw document -> environment selection -> entity catalog
        -> per-type resolution in dependency order -> resolved graph

The run is a single synchronous pass. Any error aborts it; there is no
partial output.
"""

import logging
from typing import Any, Dict, Optional

import resolver.cloud_config as cloud_config
import resolver.environment as environment_selector
import resolver.ordering as ordering
from resolver.assembler import ResolvedGraph, ResolvedRecord, assign_id, build_record
from resolver.catalog import EntityCatalog
from resolver.derive import RESOLVERS, ResolutionContext
from resolver.lookups import CachedImageCatalog, CachedZoneDirectory, ImageCatalog, ZoneDirectory
from resolver.references import ReferenceIndex

logger = logging.getLogger(__name__)


def natural_id(entity_type: str, entity: Any) -> Optional[str]:
    """Identifier implied by the entity itself, for types identified by name."""
    if entity_type == cloud_config.CLUSTER:
        return entity.name
    if entity_type == cloud_config.NODEGROUP:
        return f"{entity.cluster}:{entity.name}"
    return None


def resolve_entity(
    entity_type: str,
    entity: Any,
    ctx: ResolutionContext,
    known_ids: Optional[Dict[str, Dict[str, str]]] = None,
    default_tags: Optional[Dict[str, str]] = None,
) -> ResolvedRecord:
    """Resolve references, derive defaults and assemble the record of one entity."""
    references, derived = RESOLVERS[entity_type](entity, ctx)
    entity_id = assign_id(
        entity_type, entity.name, ctx.environment, known_ids, natural_id(entity_type, entity)
    )
    logger.debug(f"Resolved {entity_type} '{entity.name}' -> {entity_id}")
    return build_record(
        entity_type, entity, ctx.environment, entity_id, references, derived, default_tags
    )


def resolve_catalog(
    catalog: EntityCatalog,
    region: Optional[str],
    zones: ZoneDirectory,
    images: ImageCatalog,
    known_ids: Optional[Dict[str, Dict[str, str]]] = None,
    strict_rules: bool = False,
    default_tags: Optional[Dict[str, str]] = None,
) -> ResolvedGraph:
    """Resolve every entity of a loaded catalog, one type at a time.

    A type's identifiers are published to the reference index only after all
    of its entities resolved, so later types can never see a half-built
    index.

    Args:
        catalog: Typed declarations of one environment
        region: Region availability zones are listed for
        zones: Zone directory collaborator
        images: Image catalog collaborator
        known_ids: Identifiers returned by the provisioning engine on earlier runs
        strict_rules: Reject security rules setting both CIDR and peer group
        default_tags: Tags applied to every taggable entity

    Returns:
        ResolvedGraph: Immutable resolved records per type
    """
    ctx = ResolutionContext(
        environment=catalog.environment,
        region=region or "",
        index=ReferenceIndex(),
        zones=CachedZoneDirectory(zones),
        images=CachedImageCatalog(images),
        strict_rules=strict_rules,
    )
    order = ordering.resolution_order()
    records: Dict[str, Dict[str, ResolvedRecord]] = {}
    for entity_type in order:
        resolved: Dict[str, ResolvedRecord] = {}
        for entity in catalog.entities(entity_type):
            resolved[entity.name] = resolve_entity(entity_type, entity, ctx, known_ids, default_tags)
        ctx.index.publish(entity_type, resolved)
        records[entity_type] = resolved
        if resolved:
            logger.info(f"Resolved {len(resolved)} {entity_type} entit{'y' if len(resolved) == 1 else 'ies'}")
    return ResolvedGraph(catalog.environment, ctx.region, order, records)


def resolve(
    document: Dict[str, Any],
    environment: str,
    zones: ZoneDirectory,
    images: ImageCatalog,
    region: Optional[str] = None,
    known_ids: Optional[Dict[str, Dict[str, str]]] = None,
    strict_rules: bool = False,
    default_tags: Optional[Dict[str, str]] = None,
) -> ResolvedGraph:
    """Resolve a raw declaration document for one environment.

    Args:
        document: Raw document from fileparser.read_document
        environment: Environment to resolve
        zones: Zone directory collaborator
        images: Image catalog collaborator
        region: Region override; defaults to the document's region for the environment
        known_ids: Identifiers returned by the provisioning engine on earlier runs
        strict_rules: Reject security rules setting both CIDR and peer group
        default_tags: Tags applied under the document's own tags

    Returns:
        ResolvedGraph: Immutable resolved records per type
    """
    logger.info(f"Resolving environment '{environment}'")
    selection = environment_selector.select(document, environment)
    catalog = EntityCatalog.load(selection, environment)
    region = region or environment_selector.environment_setting(document, "region", environment)
    tags = dict(default_tags or {})
    tags.update(environment_selector.environment_setting(document, "tags", environment) or {})
    return resolve_catalog(catalog, region, zones, images, known_ids, strict_rules, tags)
