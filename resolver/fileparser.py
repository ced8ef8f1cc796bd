"""File parser module for infraresolve.

This module reads the declaration documents that describe the infrastructure.
Documents can be HCL variable files (.tfvars), JSON or YAML. Each holds
per-type collections keyed first by environment, then by entity name:

    vpcs = {
      default = {
        main = { cidr_block = "10.0.0.0/16" }
      }
    }

Collections from several files are merged per (type, environment). Records
are kept as a list so that a name declared twice survives until the catalog
can report it.
"""

import json
import logging
from contextlib import suppress
from pathlib import Path
from typing import Any, Dict, List, Tuple

import hcl2
import yaml

import resolver.cloud_config as cloud_config
from resolver.exceptions import DocumentParsingError

logger = logging.getLogger(__name__)

HCL_SUFFIXES = [".tfvars", ".hcl", ".tf"]
YAML_SUFFIXES = [".yml", ".yaml"]
JSON_SUFFIXES = [".json"]

RawDocument = Dict[str, Any]


def strip_quotes(value: Any) -> Any:
    """Remove the literal double quotes some HCL parser versions keep on strings."""
    if isinstance(value, str):
        if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
            return value[1:-1]
        return value
    if isinstance(value, dict):
        return {strip_quotes(k): strip_quotes(v) for k, v in value.items()}
    if isinstance(value, list):
        return [strip_quotes(v) for v in value]
    return value


def _load_hcl(filepath: Path) -> Dict[str, Any]:
    with open(filepath, "r", encoding="utf8") as f:
        parsed_data = hcl2.load(f)
    # Older HCL2 parsers wrap every top level attribute in a single item list
    return {
        k: v[0] if isinstance(v, list) and len(v) == 1 and isinstance(v[0], dict) else v
        for k, v in strip_quotes(parsed_data).items()
    }


def parse_file(filepath: str) -> Dict[str, Any]:
    """Parse a single declaration document.

    Args:
        filepath: Path to a .tfvars, .json, .yml or .yaml file

    Returns:
        dict: Top level keys of the document

    Raises:
        DocumentParsingError: If the file is missing, unsupported or malformed
    """
    path = Path(filepath)
    if not path.is_file():
        raise DocumentParsingError(
            "Declaration file not found", context={"filepath": filepath}
        )
    suffix = path.suffix.lower()
    logger.info(f"Parsing {filepath}")
    try:
        if suffix in JSON_SUFFIXES:
            with open(path, "r", encoding="utf8") as f:
                data = json.load(f)
        elif suffix in YAML_SUFFIXES:
            with open(path, "r", encoding="utf8") as f:
                data = yaml.safe_load(f)
        elif suffix in HCL_SUFFIXES:
            data = _load_hcl(path)
        else:
            raise DocumentParsingError(
                f"Unsupported declaration file type '{suffix}'",
                context={"filepath": filepath},
            )
    except DocumentParsingError:
        raise
    except Exception as e:
        raise DocumentParsingError(
            f"Failed to parse declaration file: {filepath}",
            context={"error": str(e), "filepath": filepath},
        ) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise DocumentParsingError(
            "Declaration document must be a mapping at the top level",
            context={"filepath": filepath},
        )
    return data


def normalise_collection(
    collection: Any, type_key: str, environment: str, filepath: str
) -> List[Dict[str, Any]]:
    """Turn one per-environment collection into a list of records with a name.

    A collection is either a mapping of name -> attributes or a list of
    records that each carry a ``name`` field.
    """
    records: List[Dict[str, Any]] = []
    if collection is None:
        return records
    if isinstance(collection, dict):
        for name, attrs in collection.items():
            if attrs is None:
                attrs = {}
            if not isinstance(attrs, dict):
                raise DocumentParsingError(
                    "Entity declaration must be a mapping of attributes",
                    context={
                        "key": type_key,
                        "environment": environment,
                        "name": name,
                        "filepath": filepath,
                    },
                )
            record = dict(attrs)
            record["name"] = str(name)
            records.append(record)
    elif isinstance(collection, list):
        for position, attrs in enumerate(collection):
            if not isinstance(attrs, dict) or not attrs.get("name"):
                raise DocumentParsingError(
                    "List entries must be mappings with a 'name' field",
                    context={
                        "key": type_key,
                        "environment": environment,
                        "position": position,
                        "filepath": filepath,
                    },
                )
            record = dict(attrs)
            record["name"] = str(record["name"])
            records.append(record)
    else:
        raise DocumentParsingError(
            "Entity collection must be a mapping or a list",
            context={"key": type_key, "environment": environment, "filepath": filepath},
        )
    return records


def merge_document(document: RawDocument, data: Dict[str, Any], filepath: str) -> RawDocument:
    """Merge one parsed file into the accumulated raw document."""
    known_keys = set(cloud_config.DOCUMENT_KEYS.values())
    for key, value in data.items():
        if key in cloud_config.DOCUMENT_SETTINGS_KEYS:
            document[key] = _merge_setting(document.get(key), value)
            continue
        if key not in known_keys:
            logger.warning(f"Ignoring unknown key '{key}' in {filepath}")
            continue
        if value is None:
            continue
        if not isinstance(value, dict):
            raise DocumentParsingError(
                "Entity collections must be keyed by environment",
                context={"key": key, "filepath": filepath},
            )
        by_env = document.setdefault(key, {})
        for environment, collection in value.items():
            records = normalise_collection(collection, key, str(environment), filepath)
            by_env.setdefault(str(environment), []).extend(records)
            logger.debug(
                f"Found {len(records)} {key} declaration(s) for environment "
                f"'{environment}' in {filepath}"
            )
    return document


def _merge_setting(existing: Any, value: Any) -> Any:
    if isinstance(existing, dict) and isinstance(value, dict):
        merged = dict(existing)
        merged.update(value)
        return merged
    return value


def read_document(source_list: Tuple[str, ...]) -> RawDocument:
    """Parse all declaration files into one raw document.

    Args:
        source_list: Declaration file paths, or directories to scan for them

    Returns:
        dict: Raw document with per-type, per-environment record lists

    Raises:
        DocumentParsingError: If no file is found or any file fails to parse
    """
    document: RawDocument = {}
    files = find_declaration_files(source_list)
    if not files:
        raise DocumentParsingError(
            "No declaration files found in source location(s)",
            context={"source": ",".join(source_list)},
        )
    for filepath in files:
        document = merge_document(document, parse_file(filepath), filepath)
    return document


def find_declaration_files(source_list: Tuple[str, ...]) -> List[str]:
    """Expand directories in the source list to the declaration files they hold."""
    paths: List[str] = []
    for source in source_list:
        location = Path(source)
        if location.is_dir():
            for child in sorted(location.iterdir()):
                if child.is_file() and _is_declaration_file(child):
                    paths.append(str(child))
        else:
            paths.append(str(location))
    return paths


def _is_declaration_file(path: Path) -> bool:
    suffix = path.suffix.lower()
    if suffix == ".tf":
        return False
    return suffix in HCL_SUFFIXES + YAML_SUFFIXES + JSON_SUFFIXES


def load_known_ids(filepath: str, environment: str) -> Dict[str, Dict[str, str]]:
    """Load identifiers the provisioning engine assigned in one environment.

    The state file is keyed by environment, then by entity type (type name
    or document key), then by entity name. It can be JSON or YAML:

        default:
          vpcs:
            main: vpc-0123456789abcdef0

    Identifiers recorded for other environments are never returned.

    Args:
        filepath: Path to the state file
        environment: Environment being resolved

    Returns:
        dict: Entity type -> {name: identifier}

    Raises:
        DocumentParsingError: If the file cannot be read or has the wrong shape
    """
    try:
        with open(filepath, "r", encoding="utf8") as f:
            content = f.read()
    except OSError as e:
        raise DocumentParsingError(
            f"Failed to read state file: {filepath}",
            context={"error": str(e), "filepath": filepath},
        ) from e
    data = None
    with suppress(json.JSONDecodeError):
        data = json.loads(content)
    if data is None:
        try:
            data = yaml.safe_load(content) or {}
        except yaml.YAMLError as e:
            raise DocumentParsingError(
                f"Failed to parse state file: {filepath}",
                context={"error": str(e), "filepath": filepath},
            ) from e
    if not isinstance(data, dict) or not all(v is None or isinstance(v, dict) for v in data.values()):
        raise DocumentParsingError(
            "State file must map environments to entity types",
            context={"filepath": filepath},
        )
    if environment not in data:
        logger.info(f"No identifiers recorded for environment '{environment}' in {filepath}")
    type_by_key = {v: k for k, v in cloud_config.DOCUMENT_KEYS.items()}
    known_ids: Dict[str, Dict[str, str]] = {}
    for key, ids in (data.get(environment) or {}).items():
        entity_type = key if key in cloud_config.DOCUMENT_KEYS else type_by_key.get(key)
        if entity_type is None:
            logger.warning(f"Ignoring unknown entity type '{key}' in state file {filepath}")
            continue
        if ids is not None and not isinstance(ids, dict):
            raise DocumentParsingError(
                "State file entries must map names to identifiers",
                context={"filepath": filepath, "environment": environment, "key": key},
            )
        known_ids[entity_type] = {str(name): str(value) for name, value in (ids or {}).items()}
    return known_ids
