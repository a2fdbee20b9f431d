"""
Deep merge of override documents onto default resource documents.

Rules:
1. Mappings merge key by key, recursively; override values win.
2. Lists merge index-aligned: override[i] is merged into default[i];
   extra override elements are appended.
3. Anything else (scalars, or a type mismatch) is replaced by the
   override value.

Neither input is modified. Merging the same override twice gives the
same result as merging it once.
"""

import copy
from typing import Any, Optional


def deep_merge(default: Any, override: Any) -> Any:
    """
    Merge ``override`` on top of ``default`` and return the result.

    Args:
        default: Default document (dict, list or scalar)
        override: Override document of the same shape

    Returns:
        New merged document
    """
    if isinstance(default, dict) and isinstance(override, dict):
        merged = copy.deepcopy(default)
        for key, value in override.items():
            if key in merged:
                merged[key] = deep_merge(merged[key], value)
            else:
                merged[key] = copy.deepcopy(value)
        return merged

    if isinstance(default, list) and isinstance(override, list):
        merged = [
            deep_merge(default[i], override[i]) if i < len(override) else copy.deepcopy(default[i])
            for i in range(len(default))
        ]
        merged.extend(copy.deepcopy(item) for item in override[len(default):])
        return merged

    return copy.deepcopy(override)


def merge_override(
    default: dict,
    override: Optional[dict],
    pin_identity: bool = False
) -> dict:
    """
    Merge an optional override document onto a resource template.

    Args:
        default: Template document with apiVersion and kind set
        override: Caller supplied override, may be None
        pin_identity: Restore the template's apiVersion and kind after
            merging so the override cannot change the resource type

    Returns:
        Merged document (a copy, even without an override)
    """
    if not override:
        return copy.deepcopy(default)

    merged = deep_merge(default, override)
    if pin_identity:
        merged["apiVersion"] = default["apiVersion"]
        merged["kind"] = default["kind"]
    return merged
