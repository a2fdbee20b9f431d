"""
Kubernetes Deploy Errors

Every failure raised by the reconciliation code carries an ErrorKind tag
so callers can branch on the kind of failure instead of inspecting
exception types or message strings:

- NOT_FOUND: the resource does not exist (selects create vs patch)
- TRANSIENT: network failures, throttling and 5xx responses
- PERMANENT: validation, conflict and permission failures
- CONFIGURATION: invalid descriptor or process configuration, raised
  before any call to the cluster
"""

import json
import re
from enum import Enum
from typing import Any, List, Optional


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"
    PERMANENT = "permanent"
    CONFIGURATION = "configuration"

    def __str__(self) -> str:
        return self.value


class KubernetesDeployError(Exception):
    """Base exception for reconciliation errors."""

    kind: ErrorKind = ErrorKind.PERMANENT

    def __init__(
        self,
        message: str,
        slug: Optional[str] = None,
        status: Optional[int] = None,
        reason: Optional[str] = None,
        body: Any = None,
        headers: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.slug = slug
        self.status = status
        self.reason = reason
        self.body = body
        self.headers = headers


class ResourceNotFoundError(KubernetesDeployError):
    kind = ErrorKind.NOT_FOUND


class TransientClusterError(KubernetesDeployError):
    kind = ErrorKind.TRANSIENT


class PermanentClusterError(KubernetesDeployError):
    kind = ErrorKind.PERMANENT


class ConfigurationError(KubernetesDeployError, ValueError):
    kind = ErrorKind.CONFIGURATION


class ApplicationDeleteError(KubernetesDeployError):
    """One or more resources of an application could not be deleted."""

    def __init__(self, message: str, errors: List[Exception], slug: Optional[str] = None):
        super().__init__(message, slug=slug)
        self.errors = errors


def error_for_status(
    status: Optional[int],
    message: str,
    slug: Optional[str] = None,
    **kwargs
) -> KubernetesDeployError:
    """
    Build the tagged error matching an HTTP status from the API server.

    404 is NOT_FOUND; no status (connection failure), 408, 429 and 5xx are
    TRANSIENT; anything else is PERMANENT.
    """
    if status == 404:
        cls = ResourceNotFoundError
    elif not status or status in (408, 429) or status >= 500:
        cls = TransientClusterError
    else:
        cls = PermanentClusterError
    return cls(message, slug=slug, status=status, **kwargs)


# =============================================================================
# Messages and redaction
# =============================================================================

_SECRET_KEY_PATTERN = re.compile(r"secret|token|password|jwt|url|auth|key|cert|pass|user", re.IGNORECASE)


def mask_value(value: str) -> str:
    """Mask a string, keeping first and last character of long values."""
    if len(value) < 16:
        return "*" * len(value)
    return value[0] + "*" * (len(value) - 2) + value[-1]


def redact(obj: Any) -> Any:
    """
    Return a copy of ``obj`` with secret-looking values masked.

    String values under keys that look like credentials are masked,
    other values under such keys are dropped. Secret ``data`` and
    ``stringData`` maps are masked entirely.
    """
    if isinstance(obj, dict):
        redacted = {}
        for k, v in obj.items():
            if k in ("data", "stringData"):
                if isinstance(v, dict):
                    redacted[k] = {dk: mask_value(str(dv)) for dk, dv in v.items()}
                elif isinstance(v, str):
                    redacted[k] = mask_value(v)
                continue
            if isinstance(k, str) and _SECRET_KEY_PATTERN.search(k) and not isinstance(v, (dict, list)):
                if isinstance(v, str):
                    redacted[k] = mask_value(v)
                continue
            redacted[k] = redact(v)
        return redacted
    if isinstance(obj, list):
        return [redact(item) for item in obj]
    return obj


def stringify(obj: Any) -> str:
    """Render an object as JSON for logs, secrets masked."""
    return json.dumps(redact(obj), default=str, sort_keys=True)


def error_message(e: Any) -> str:
    """
    Extract a message from a variety of error shapes.

    Checks, in order: the error itself if it is a string, a ``message``
    attribute, the message in a JSON API ``body``, the exception text, and
    finally a masked JSON rendering of the error's attributes.
    """
    if e is None:
        return "null"
    if isinstance(e, str):
        return e
    if isinstance(e, (list, tuple)):
        return stringify(list(e))
    message = getattr(e, "message", None)
    if isinstance(message, str) and message:
        return message
    body = getattr(e, "body", None)
    if isinstance(body, (str, bytes)):
        try:
            body = json.loads(body)
        except ValueError:
            body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    if isinstance(e, BaseException) and str(e):
        return str(e)
    attributes = vars(e) if hasattr(e, "__dict__") else {}
    if attributes:
        return stringify(attributes)
    return type(e).__name__
