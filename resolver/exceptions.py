"""Custom exception types for infraresolve.

This module defines the exception hierarchy for resolution errors. Every error
carries a context dict naming the offending entity type, name and field so a
faulty declaration can be located without re-deriving the resolution state.

Exception Hierarchy:
    InfraResolveError (base)
    ├── DocumentParsingError - Input document cannot be read or parsed
    ├── ConfigurationError - Settings file or overrides are invalid
    ├── DuplicateNameError - Same name declared twice for a type/environment
    ├── MissingRequiredFieldError - Type-mandatory field absent
    ├── InvalidAttributeError - Literal attribute has an unusable value
    ├── UnresolvedReferenceError - Reference names no resolved entity
    ├── AmbiguousRuleError - Security rule supplies both CIDR and peer group
    ├── InvalidIndexError - Availability zone index out of range
    ├── ExternalLookupError - Zone directory or image catalog failure
    └── DependencyCycleError - Type dependency graph is not acyclic
"""

from typing import Any, Dict, List, Optional


class InfraResolveError(Exception):
    """Base exception for all infraresolve errors.

    Attributes:
        message: Human-readable error description
        context: Additional contextual information (entity type, name, field)
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """Return formatted error message with context."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (context: {context_str})"
        return self.message


class DocumentParsingError(InfraResolveError):
    """Raised when an input document cannot be read or parsed.

    Examples:
        - Invalid HCL2 syntax in a .tfvars file
        - Malformed YAML or JSON
        - Entity collection that is neither a map nor a list of records
    """

    pass


class ConfigurationError(InfraResolveError):
    """Raised when the settings file or its overrides are invalid."""

    pass


class DuplicateNameError(InfraResolveError):
    """Raised when two entities of one type share a name in one environment."""

    def __init__(self, entity_type: str, name: str, environment: str = ""):
        context = {"type": entity_type, "name": name}
        if environment:
            context["environment"] = environment
        super().__init__(f"Duplicate {entity_type} name '{name}'", context)
        self.entity_type = entity_type
        self.name = name


class MissingRequiredFieldError(InfraResolveError):
    """Raised when a record lacks a field its type requires."""

    def __init__(self, entity_type: str, name: str, field: str):
        super().__init__(
            f"{entity_type} '{name}' is missing required field '{field}'",
            {"type": entity_type, "name": name, "field": field},
        )
        self.entity_type = entity_type
        self.name = name
        self.field = field


class InvalidAttributeError(InfraResolveError):
    """Raised when a literal attribute is present but unusable.

    Examples:
        - CIDR block that does not parse
        - Subnet CIDR outside its VPC CIDR
        - Unknown route target type or endpoint type
    """

    def __init__(self, entity_type: str, name: str, field: str, reason: str):
        super().__init__(
            f"{entity_type} '{name}' has an invalid '{field}': {reason}",
            {"type": entity_type, "name": name, "field": field},
        )
        self.entity_type = entity_type
        self.name = name
        self.field = field


class UnresolvedReferenceError(InfraResolveError):
    """Raised when a reference names no resolved entity of the target type.

    Typos, references into another environment and references to a type
    that has not been resolved yet all surface as this error. The context
    carries all four identifiers so a human can tell them apart.
    """

    def __init__(
        self,
        from_type: str,
        from_name: str,
        field: str,
        target_type: str,
        target_name: str,
    ):
        super().__init__(
            f"{from_type} '{from_name}' field '{field}' references unknown "
            f"{target_type} '{target_name}'",
            {
                "from_type": from_type,
                "from_name": from_name,
                "field": field,
                "target_type": target_type,
                "target_name": target_name,
            },
        )
        self.from_type = from_type
        self.from_name = from_name
        self.field = field
        self.target_type = target_type
        self.target_name = target_name


class AmbiguousRuleError(InfraResolveError):
    """Raised in strict mode when a rule gives both a CIDR and a peer group."""

    def __init__(self, name: str, cidr_block: str, peer_group: str):
        super().__init__(
            f"SecurityRule '{name}' sets both cidr_block and peer_security_group",
            {
                "type": "SecurityRule",
                "name": name,
                "field": "peer_security_group",
                "cidr_block": cidr_block,
                "peer_security_group": peer_group,
            },
        )
        self.name = name


class InvalidIndexError(InfraResolveError):
    """Raised when an availability zone index falls outside the zone list."""

    def __init__(self, entity_type: str, name: str, field: str, index: int, zones: List[str]):
        super().__init__(
            f"{entity_type} '{name}' {field}={index} is out of range for "
            f"{len(zones)} availability zone(s)",
            {
                "type": entity_type,
                "name": name,
                "field": field,
                "index": index,
                "zones": ",".join(zones),
            },
        )
        self.index = index


class ExternalLookupError(InfraResolveError):
    """Raised when the zone directory or the image catalog fails.

    Examples:
        - AWS API error while listing availability zones
        - Missing SSM parameter for a Kubernetes version / architecture
        - Region or image key absent from a static lookup table
    """

    pass


class DependencyCycleError(InfraResolveError):
    """Raised when the declared type dependency graph contains a cycle."""

    pass
