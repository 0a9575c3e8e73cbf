"""
Exception hierarchy for the federated aggregator.

Request boundaries catch ``FederationError`` and render ``message`` with the
suggested ``status_code``; ``detail`` is for logs.

    FederationError
    ├── ValidationError             400, unusable caller input
    ├── EndpointDefinitionsError    500, static definitions file missing or broken
    └── ExternalServiceError        502, something outside this process failed
        └── RegistryError               the node registry
            └── ProviderResolutionError     one provider's node descriptor

Node failures during a fan-out never raise; they become failed response
records. Registry failures are caught by the resolver and answered with
the static definitions.
"""

from typing import Any, Dict, Optional


def _with_context(detail: Optional[Dict[str, Any]], key: str, value: Optional[str]) -> Optional[Dict[str, Any]]:
    if not value:
        return detail
    merged = dict(detail or {})
    merged[key] = value
    return merged


class FederationError(Exception):
    def __init__(
        self,
        message: str,
        *,
        detail: Optional[Dict[str, Any]] = None,
        status_code: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"error": type(self).__name__, "message": self.message}
        if self.detail:
            result["detail"] = self.detail
        return result


class ValidationError(FederationError):
    def __init__(self, message: str, *, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message, detail=detail, status_code=400)


class EndpointDefinitionsError(FederationError):
    """
    Examples:
        raise EndpointDefinitionsError("Default endpoints file not found", detail={"path": path})
    """

    def __init__(self, message: str, *, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message, detail=detail, status_code=500)


class ExternalServiceError(FederationError):
    def __init__(
        self,
        message: str,
        *,
        detail: Optional[Dict[str, Any]] = None,
        service_name: Optional[str] = None,
    ):
        super().__init__(message, detail=_with_context(detail, "service", service_name), status_code=502)
        self.service_name = service_name


class RegistryError(ExternalServiceError):
    """
    Examples:
        raise RegistryError("NODE_REGISTRY_URL not set")
        raise RegistryError("Registry request failed with status 503", detail={"status": 503})
    """

    def __init__(self, message: str, *, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message, detail=detail, service_name="node_registry")


class ProviderResolutionError(RegistryError):
    def __init__(self, message: str, *, detail: Optional[Dict[str, Any]] = None, provider: Optional[str] = None):
        super().__init__(message, detail=_with_context(detail, "provider", provider))
        self.provider = provider
