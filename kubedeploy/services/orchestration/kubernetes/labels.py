"""
Kubernetes Labels

Deterministic label sets for application resources, following the
Kubernetes recommended labels:
https://kubernetes.io/docs/concepts/overview/working-with-objects/common-labels/

- match_labels: the minimal subset used in selectors
- application_labels: match labels plus the recommended metadata labels

Nothing here reads process state; the creator identity and label vendor
are passed in through LabelConfig.
"""

import re
from dataclasses import dataclass
from typing import Dict, Optional

from ....schemas import ApplicationDescriptor

DEFAULT_LABEL_VENDOR = "kubedeploy.io"

NAME_LABEL = "app.kubernetes.io/name"
PART_OF_LABEL = "app.kubernetes.io/part-of"
MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
COMPONENT_LABEL = "app.kubernetes.io/component"
INSTANCE_LABEL = "app.kubernetes.io/instance"
VERSION_LABEL = "app.kubernetes.io/version"

# Kubernetes label value grammar
LABEL_VALUE_PATTERN = re.compile(r"^(([A-Za-z0-9][-A-Za-z0-9_.]*)?[A-Za-z0-9])?$")


@dataclass(frozen=True)
class LabelConfig:
    """Explicit inputs to label computation."""
    creator: str
    vendor: str = DEFAULT_LABEL_VENDOR

    @property
    def workspace_label(self) -> str:
        return f"{self.vendor}/workspaceId"

    @property
    def environment_label(self) -> str:
        return f"{self.vendor}/environment"

    @classmethod
    def from_settings(cls, settings) -> "LabelConfig":
        return cls(creator=settings.k8s_fulfiller, vendor=settings.k8s_label_vendor)


def sanitize_label_value(value: str) -> str:
    """
    Remove objectionable characters from a Kubernetes label value.

    Leading and trailing non-alphanumeric characters are stripped and
    any remaining run of characters outside ``[-A-Za-z0-9_.]`` becomes a
    single underscore. The empty string is returned unchanged.

    Args:
        value: Raw label value

    Returns:
        Value matching LABEL_VALUE_PATTERN
    """
    value = re.sub(r"^[^A-Za-z0-9]+", "", value)
    value = re.sub(r"[^A-Za-z0-9]+$", "", value)
    return re.sub(r"[^-A-Za-z0-9_.]+", "_", value)


def match_labels(app: ApplicationDescriptor, config: LabelConfig) -> Dict[str, str]:
    """
    Labels that select the resources (and pods) of an application.

    Args:
        app: Application descriptor
        config: Label configuration

    Returns:
        Dict with the application name and workspace ID labels
    """
    return {
        NAME_LABEL: sanitize_label_value(app.name),
        config.workspace_label: sanitize_label_value(app.workspace_id),
    }


def application_labels(
    app: ApplicationDescriptor,
    config: LabelConfig,
    component: Optional[str] = None
) -> Dict[str, str]:
    """
    Full recommended label set for an application resource.

    Args:
        app: Application descriptor
        config: Label configuration
        component: Component override (e.g. "secret"), defaults to
            the descriptor's component

    Returns:
        Dict of labels, always a superset of match_labels()
    """
    labels = {
        **match_labels(app, config),
        PART_OF_LABEL: sanitize_label_value(app.name),
        MANAGED_BY_LABEL: sanitize_label_value(config.creator),
        config.environment_label: sanitize_label_value(app.environment),
    }

    component = component or app.component
    if component:
        labels[COMPONENT_LABEL] = sanitize_label_value(component)

    if app.instance:
        labels[INSTANCE_LABEL] = sanitize_label_value(app.instance)

    if app.version:
        labels[VERSION_LABEL] = sanitize_label_value(app.version)

    return labels
