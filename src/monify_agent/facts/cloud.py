"""Cloud provider detection through instance metadata services."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

import httpx

logger = logging.getLogger(__name__)

AWS_BASE = "http://169.254.169.254/latest"
GCP_BASE = "http://metadata.google.internal/computeMetadata/v1/instance"
AZURE_BASE = "http://169.254.169.254/metadata/instance/compute"
DIGITALOCEAN_BASE = "http://169.254.169.254/metadata/v1"
AZURE_API = {"api-version": "2021-02-01", "format": "text"}


@dataclass(frozen=True)
class CloudInfo:
    region: str = ""
    instance_type: str = ""


def _get(client: httpx.Client, url: str, **kwargs) -> str:
    resp = client.get(url, **kwargs)
    resp.raise_for_status()
    return resp.text.strip()


def detect_aws(client: httpx.Client) -> CloudInfo:
    headers = {}
    try:
        # IMDSv2 session token; instances still on IMDSv1 reject the PUT
        resp = client.put(
            f"{AWS_BASE}/api/token",
            headers={"X-aws-ec2-metadata-token-ttl-seconds": "60"},
        )
        resp.raise_for_status()
        headers["X-aws-ec2-metadata-token"] = resp.text.strip()
    except httpx.HTTPError:
        pass

    zone = _get(client, f"{AWS_BASE}/meta-data/placement/availability-zone", headers=headers)
    # us-east-1a -> us-east-1
    region = zone[:-1] if zone else ""
    try:
        instance_type = _get(client, f"{AWS_BASE}/meta-data/instance-type", headers=headers)
    except httpx.HTTPError:
        instance_type = ""
    return CloudInfo(region=region, instance_type=instance_type)


def detect_gcp(client: httpx.Client) -> CloudInfo:
    headers = {"Metadata-Flavor": "Google"}
    # projects/NUM/zones/us-central1-a -> us-central1
    zone = _get(client, f"{GCP_BASE}/zone", headers=headers).rsplit("/", 1)[-1]
    region = zone.rsplit("-", 1)[0] if "-" in zone else ""
    try:
        machine = _get(client, f"{GCP_BASE}/machine-type", headers=headers)
        instance_type = machine.rsplit("/", 1)[-1]
    except httpx.HTTPError:
        instance_type = ""
    return CloudInfo(region=region, instance_type=instance_type)


def detect_azure(client: httpx.Client) -> CloudInfo:
    headers = {"Metadata": "true"}
    region = _get(client, f"{AZURE_BASE}/location", headers=headers, params=AZURE_API)
    try:
        instance_type = _get(client, f"{AZURE_BASE}/vmSize", headers=headers, params=AZURE_API)
    except httpx.HTTPError:
        instance_type = ""
    return CloudInfo(region=region, instance_type=instance_type)


def detect_digitalocean(client: httpx.Client) -> CloudInfo:
    # droplet size is not exposed through metadata
    return CloudInfo(region=_get(client, f"{DIGITALOCEAN_BASE}/region"))


DETECTORS: tuple[Callable[[httpx.Client], CloudInfo], ...] = (
    detect_aws,
    detect_gcp,
    detect_azure,
    detect_digitalocean,
)


def detect_cloud_provider(client: httpx.Client | None = None) -> CloudInfo:
    """Try each provider in turn; an empty :class:`CloudInfo` when none answers."""
    own_client = client is None
    if client is None:
        client = httpx.Client(timeout=2.0)
    try:
        for detector in DETECTORS:
            try:
                info = detector(client)
            except httpx.HTTPError as exc:
                logger.debug("%s: %s", detector.__name__, exc)
                continue
            if info.region or info.instance_type:
                return info
    finally:
        if own_client:
            client.close()
    return CloudInfo()
