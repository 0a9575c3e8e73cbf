"""Loading of the static endpoint definitions file."""

from pathlib import Path
from typing import Any, List, Union

import yaml

from aggregation.endpoints import normalize_endpoints
from aggregation.models import Endpoint
from exceptions import EndpointDefinitionsError

DEFAULT_ENV_KEY = "default"


def select_environment(raw: Any, environment: str) -> Any:
    """
    A list is used as-is; a mapping is keyed by environment name with a
    ``default`` fallback. Anything else yields nothing.
    """
    if isinstance(raw, list):
        return raw
    if isinstance(raw, dict):
        selected = raw.get(environment)
        if selected is None:
            selected = raw.get(DEFAULT_ENV_KEY)
        return selected or []
    return []


def load_endpoint_definitions(path: Union[str, Path], environment: str) -> List[Endpoint]:
    """
    Read the YAML definitions at ``path`` for ``environment``.

    Raises:
        EndpointDefinitionsError: the file is missing, unreadable or not YAML
    """
    path = Path(path)
    if not path.is_file():
        raise EndpointDefinitionsError(
            f"Default endpoints file not found at {path}", detail={"path": str(path)}
        )

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise EndpointDefinitionsError(
            f"Failed to read endpoint definitions: {e}", detail={"path": str(path)}
        ) from e

    return normalize_endpoints(select_environment(raw, environment))
