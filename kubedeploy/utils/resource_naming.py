"""
Resource naming utilities for applications and their Kubernetes resources.

Centralized functions for generating consistent identifiers across:
- Resource names (DNS-1123 labels)
- Log and error message slugs
- Label selectors
"""

import re
from typing import Dict, Optional

DEFAULT_VALID_NAME = "valid-name"


def valid_name(name: str) -> str:
    """
    Ensure the provided name is a valid Kubernetes resource name.

    The validation regular expression for a resource name is
    ``^[a-z]([-a-z0-9]*[a-z0-9])?$`` and it must be between 1 and 63
    characters long.

    Args:
        name: Candidate resource name

    Returns:
        A valid resource name based on the input, or "valid-name" if
        nothing usable is left

    Examples:
        >>> valid_name("My_App.v2")
        "my-app-v2"
    """
    valid = name[:63].lower()
    valid = re.sub(r"^[^a-z]+", "", valid)
    valid = re.sub(r"[^a-z0-9]+$", "", valid)
    valid = re.sub(r"[^-a-z0-9]+", "-", valid)
    return valid or DEFAULT_VALID_NAME


def app_slug(namespace: Optional[str], name: str) -> str:
    """
    Get the qualified name used in logs for a resource.

    Examples:
        >>> app_slug("production", "api")
        "production/api"

        >>> app_slug(None, "api-reader")
        "api-reader"
    """
    return f"{namespace}/{name}" if namespace else name


def resource_slug(kind: str, name: str, namespace: Optional[str] = None) -> str:
    """
    Get the human readable kind/namespace/name identifier of a resource.

    Examples:
        >>> resource_slug("Deployment", "api", "production")
        "Deployment production/api"
    """
    return f"{kind} {app_slug(namespace, name)}"


def label_selector(labels: Dict[str, str]) -> str:
    """
    Convert a label mapping into an equality-based label selector.

    Examples:
        >>> label_selector({"app.kubernetes.io/name": "api", "tier": "web"})
        "app.kubernetes.io/name=api,tier=web"
    """
    return ",".join(f"{key}={value}" for key, value in labels.items())
