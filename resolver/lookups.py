"""External lookups used while deriving defaults.

Two collaborators sit outside the resolver:

- a zone directory, listing the availability zones of a region
- an image catalog, returning the node image for a Kubernetes version and
  CPU architecture

Each has an AWS implementation (EC2 and SSM Parameter Store through boto3)
and a static one fed from settings. The Cached* wrappers memoise answers for
the lifetime of one resolution run so a key is never queried twice.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError

import resolver.cloud_config as cloud_config
from resolver.exceptions import ConfigurationError, ExternalLookupError

logger = logging.getLogger(__name__)

LOOKUP_AWS = "aws"
LOOKUP_STATIC = "static"
LOOKUP_MODES = [LOOKUP_AWS, LOOKUP_STATIC]


class ZoneDirectory:
    """Lists availability zones of a region, in a stable order."""

    def list_availability_zones(self, region: str) -> List[str]:
        raise NotImplementedError


class ImageCatalog:
    """Finds the node image for a Kubernetes version and architecture."""

    def lookup_image(self, kubernetes_version: str, architecture: str) -> str:
        raise NotImplementedError


def _default_client_factory(service: str) -> Callable[[str], Any]:
    def factory(region: str) -> Any:
        return boto3.client(service, region_name=region or None)

    return factory


class Ec2ZoneDirectory(ZoneDirectory):
    """Zone directory backed by EC2 DescribeAvailabilityZones."""

    def __init__(self, client_factory: Optional[Callable[[str], Any]] = None):
        self._client_factory = client_factory or _default_client_factory("ec2")

    def list_availability_zones(self, region: str) -> List[str]:
        try:
            response = self._client_factory(region).describe_availability_zones(
                Filters=[
                    {"Name": "zone-type", "Values": ["availability-zone"]},
                    {"Name": "state", "Values": ["available"]},
                ]
            )
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code")
            raise ExternalLookupError(
                f"Failed to list availability zones for region '{region}'",
                context={"region": region, "error_code": error_code},
            ) from e
        except BotoCoreError as e:
            raise ExternalLookupError(
                f"Failed to list availability zones for region '{region}'",
                context={"region": region, "error": str(e)},
            ) from e
        zones = sorted(zone["ZoneName"] for zone in response.get("AvailabilityZones", []))
        if not zones:
            raise ExternalLookupError(
                f"No available zones reported for region '{region}'", context={"region": region}
            )
        return zones


class SsmImageCatalog(ImageCatalog):
    """Image catalog backed by the EKS optimized AMI parameters in SSM."""

    def __init__(self, region: str, client_factory: Optional[Callable[[str], Any]] = None):
        self.region = region
        self._client_factory = client_factory or _default_client_factory("ssm")

    def lookup_image(self, kubernetes_version: str, architecture: str) -> str:
        parameter = cloud_config.EKS_AMI_SSM_PARAMETER.format(
            version=kubernetes_version, arch=architecture
        )
        try:
            response = self._client_factory(self.region).get_parameter(Name=parameter)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code")
            raise ExternalLookupError(
                f"No node image published for Kubernetes {kubernetes_version} on {architecture}",
                context={"parameter": parameter, "error_code": error_code},
            ) from e
        except BotoCoreError as e:
            raise ExternalLookupError(
                f"Failed to read image parameter {parameter}",
                context={"parameter": parameter, "error": str(e)},
            ) from e
        return response["Parameter"]["Value"]


class StaticZoneDirectory(ZoneDirectory):
    """Zone directory answering from a region -> zones table."""

    def __init__(self, zones: Dict[str, List[str]]):
        self._zones = {region: list(names) for region, names in (zones or {}).items()}

    def list_availability_zones(self, region: str) -> List[str]:
        if region not in self._zones:
            raise ExternalLookupError(
                f"No availability zones configured for region '{region}'",
                context={"region": region},
            )
        return list(self._zones[region])


class StaticImageCatalog(ImageCatalog):
    """Image catalog answering from a ``"<version>/<arch>"`` -> image table."""

    def __init__(self, images: Dict[str, str]):
        self._images = dict(images or {})

    def lookup_image(self, kubernetes_version: str, architecture: str) -> str:
        key = f"{kubernetes_version}/{architecture}"
        if key not in self._images:
            raise ExternalLookupError(
                f"No node image configured for '{key}'", context={"key": key}
            )
        return self._images[key]


class CachedZoneDirectory(ZoneDirectory):
    """Memoises zone listings per region for one resolution run."""

    def __init__(self, directory: ZoneDirectory):
        self._directory = directory
        self._cache: Dict[str, List[str]] = {}

    def list_availability_zones(self, region: str) -> List[str]:
        if region not in self._cache:
            logger.info(f"Listing availability zones for region {region}")
            self._cache[region] = list(self._directory.list_availability_zones(region))
        return list(self._cache[region])


class CachedImageCatalog(ImageCatalog):
    """Memoises image lookups per (version, architecture) for one resolution run."""

    def __init__(self, catalog: ImageCatalog):
        self._catalog = catalog
        self._cache: Dict[Tuple[str, str], str] = {}

    def lookup_image(self, kubernetes_version: str, architecture: str) -> str:
        key = (kubernetes_version, architecture)
        if key not in self._cache:
            logger.info(f"Looking up node image for Kubernetes {kubernetes_version} ({architecture})")
            self._cache[key] = self._catalog.lookup_image(kubernetes_version, architecture)
        return self._cache[key]


def build_lookups(settings: Dict[str, Any], region: str) -> Tuple[ZoneDirectory, ImageCatalog]:
    """Create the zone directory and image catalog named by the settings.

    Args:
        settings: Settings from config_loader.load_settings
        region: Region the run resolves against

    Returns:
        tuple: (zone directory, image catalog), both uncached

    Raises:
        ConfigurationError: If the lookup mode is unknown
    """
    mode = settings.get("lookup", LOOKUP_AWS)
    if mode == LOOKUP_AWS:
        return Ec2ZoneDirectory(), SsmImageCatalog(region)
    if mode == LOOKUP_STATIC:
        return (
            StaticZoneDirectory(settings.get("availability_zones", {})),
            StaticImageCatalog(settings.get("images", {})),
        )
    raise ConfigurationError(
        f"Lookup mode '{mode}' not supported. Must be one of: {', '.join(LOOKUP_MODES)}"
    )
