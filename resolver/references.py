"""Reference resolution for infraresolve.

A ReferenceIndex holds one name -> identifier index per entity type. An index
is filled in only when its whole type has been resolved, so a lookup into a
type that has not run yet fails exactly like a typo or a reference into
another environment: with an UnresolvedReferenceError naming all four
identifiers involved.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from resolver.exceptions import UnresolvedReferenceError

logger = logging.getLogger(__name__)


class ReferenceIndex:
    """Progressively built name -> ID (and name -> resolved record) indices."""

    def __init__(self) -> None:
        self._ids: Dict[str, Dict[str, str]] = {}
        self._records: Dict[str, Dict[str, Any]] = {}

    def publish(self, entity_type: str, records: Dict[str, Any]) -> None:
        """Make a fully resolved type available to later types.

        Args:
            entity_type: Type that finished resolving
            records: name -> resolved record (anything with an ``id``)
        """
        self._records[entity_type] = dict(records)
        self._ids[entity_type] = {name: record.id for name, record in records.items()}
        logger.debug(f"Published {len(records)} {entity_type} identifier(s)")

    def is_published(self, entity_type: str) -> bool:
        return entity_type in self._ids

    def ids(self, entity_type: str) -> Dict[str, str]:
        """Copy of the name -> ID index of a type (empty if not published)."""
        return dict(self._ids.get(entity_type, {}))

    def resolve(
        self,
        from_type: str,
        from_name: str,
        field: str,
        target_type: str,
        target_name: str,
    ) -> str:
        """Resolve one reference to the identifier of its target.

        Args:
            from_type: Type of the entity holding the reference
            from_name: Name of the entity holding the reference
            field: Reference field, e.g. "vpc" or "subnets[1]"
            target_type: Type the reference must point to
            target_name: Referenced name

        Returns:
            str: Identifier of the referenced entity

        Raises:
            UnresolvedReferenceError: If no such resolved entity exists
        """
        entity_id = self._ids.get(target_type, {}).get(target_name)
        if not entity_id:
            raise UnresolvedReferenceError(from_type, from_name, field, target_type, target_name)
        return entity_id

    def resolve_optional(
        self,
        from_type: str,
        from_name: str,
        field: str,
        target_type: str,
        target_name: Optional[str],
    ) -> str:
        """Resolve a reference that may be absent. Absent resolves to ""."""
        if not target_name:
            return ""
        return self.resolve(from_type, from_name, field, target_type, target_name)

    def resolve_many(
        self,
        from_type: str,
        from_name: str,
        field: str,
        target_type: str,
        target_names: Iterable[str],
    ) -> Tuple[str, ...]:
        """Resolve a list reference field, keeping the declared order."""
        resolved: List[str] = []
        for i, target_name in enumerate(target_names):
            resolved.append(
                self.resolve(from_type, from_name, f"{field}[{i}]", target_type, target_name)
            )
        return tuple(resolved)

    def record(
        self,
        from_type: str,
        from_name: str,
        field: str,
        target_type: str,
        target_name: str,
    ) -> Any:
        """Return the resolved record of a reference target, for following chains."""
        record = self._records.get(target_type, {}).get(target_name)
        if record is None:
            raise UnresolvedReferenceError(from_type, from_name, field, target_type, target_name)
        return record
