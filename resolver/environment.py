"""Environment selection for infraresolve.

Filters a raw declaration document down to one named environment. The
environment is always passed in explicitly; nothing here reads a current
workspace from process state.
"""

from typing import Any, Dict, List, Optional

import resolver.cloud_config as cloud_config
import resolver.fileparser as fileparser
from resolver.exceptions import DocumentParsingError

DEFAULT_ENVIRONMENT = "default"

# entity type -> records declared for the selected environment
PerTypeEntityMaps = Dict[str, List[Dict[str, Any]]]


def select(document: Dict[str, Any], environment: str) -> PerTypeEntityMaps:
    """Return the declarations of every entity type for one environment.

    A type with nothing declared for the environment maps to an empty list;
    that is the normal case, not an error.

    Args:
        document: Raw document from fileparser.read_document. Collections may
            also be written directly as name -> attributes maps.
        environment: Environment name, e.g. "default", "qe" or "prod"

    Returns:
        dict: Entity type -> list of raw records

    Raises:
        DocumentParsingError: If a collection has neither supported shape
    """
    selection: PerTypeEntityMaps = {}
    for entity_type, key in cloud_config.DOCUMENT_KEYS.items():
        by_env = document.get(key) or {}
        if not isinstance(by_env, dict):
            raise DocumentParsingError(
                "Entity collections must be keyed by environment", context={"key": key}
            )
        records = fileparser.normalise_collection(by_env.get(environment), key, environment, "<document>")
        selection[entity_type] = [dict(record) for record in records]
    return selection


def list_environments(document: Dict[str, Any]) -> List[str]:
    """List every environment named anywhere in the document, sorted."""
    environments = set()
    for key in cloud_config.DOCUMENT_KEYS.values():
        by_env = document.get(key) or {}
        if not isinstance(by_env, dict):
            raise DocumentParsingError(
                "Entity collections must be keyed by environment", context={"key": key}
            )
        environments.update(by_env.keys())
    region = document.get("region")
    if isinstance(region, dict):
        environments.update(region.keys())
    return sorted(str(env) for env in environments)


def environment_setting(
    document: Dict[str, Any], key: str, environment: str, default: Optional[Any] = None
) -> Any:
    """Read a document level setting that is either global or keyed by environment.

    ``region = "eu-west-1"`` applies to all environments, while
    ``region = { default = "eu-west-1", prod = "us-east-1" }`` is looked up.
    Tags are always a mapping, so for ``tags`` the per-environment form is
    recognised by every value being a mapping itself.
    """
    value = document.get(key)
    if value is None:
        return default
    if isinstance(value, dict):
        if key == "tags":
            if value and all(isinstance(v, dict) for v in value.values()):
                return value.get(environment, default)
            return value
        return value.get(environment, default)
    return value
