"""Utility modules for kubedeploy."""

from .resource_naming import (
    valid_name,
    app_slug,
    resource_slug,
    label_selector,
)

__all__ = [
    'valid_name',
    'app_slug',
    'resource_slug',
    'label_selector',
]
