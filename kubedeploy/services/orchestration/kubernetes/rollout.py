"""
Deployment rollout verification.

A Deployment has rolled out when, on a single status read, the updated,
total and available replica counts all equal the desired replica count
and the controller has observed the latest generation.
"""

import asyncio
import logging
import time
from typing import Any, Dict

from .client import ResourceAdapter
from .errors import error_message

logger = logging.getLogger(__name__)


def deployment_rolled_out(deployment: Dict[str, Any]) -> bool:
    """
    Check a Deployment document (with status) for a completed rollout.

    Replica counts missing from the status are zero, as the API server
    omits zero-valued fields. A missing spec.replicas means 1.
    """
    spec = deployment.get("spec") or {}
    status = deployment.get("status") or {}
    metadata = deployment.get("metadata") or {}

    desired = spec.get("replicas")
    if desired is None:
        desired = 1

    updated = status.get("updatedReplicas") or 0
    replicas = status.get("replicas") or 0
    available = status.get("availableReplicas") or 0
    observed = status.get("observedGeneration") or 0
    generation = metadata.get("generation") or 0

    return updated == replicas == available == desired and observed >= generation


async def verify_rollout(
    deployments: ResourceAdapter,
    name: str,
    namespace: str,
    timeout: float,
    interval: float = 5.0
) -> bool:
    """
    Poll a Deployment's status until it has rolled out or ``timeout`` elapses.

    Any error reading the status (including the Deployment not existing)
    ends verification with False; status reads are not retried.

    Args:
        deployments: Deployment adapter
        name: Deployment name
        namespace: Deployment namespace
        timeout: Seconds to keep polling
        interval: Seconds between status reads

    Returns:
        True if the rollout completed within the timeout
    """
    slug = deployments.slug(name, namespace)
    start = time.monotonic()

    try:
        while time.monotonic() - start < timeout:
            deployment = await deployments.read_status(name, namespace)
            if deployment_rolled_out(deployment):
                logger.info(f"[K8S:ROLLOUT] ✅ {slug} rolled out")
                return True
            logger.debug(f"[K8S:ROLLOUT] {slug} not rolled out yet, status: {deployment.get('status')}")
            await asyncio.sleep(interval)
    except Exception as e:
        logger.debug(f"[K8S:ROLLOUT] Unable to read status of {slug}: {error_message(e)}")
        return False

    logger.warning(f"[K8S:ROLLOUT] {slug} did not roll out within {timeout}s")
    return False
