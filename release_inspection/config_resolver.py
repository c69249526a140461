"""Merge base configuration with a cloud/environment overlay.

Layout read from a repository snapshot:

    config/config.yaml                       -> `defaults:` is the base
    config/config.msft.clouds-overlay.yaml   -> clouds.public.environments.<env>.defaults

Older repository states may predate either file; that is "no configuration",
not an error.
"""
import copy
import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence

import yaml

from .errors import ConfigSchemaError, UnknownEnvironmentError
from .naming import KNOWN_ENVIRONMENTS


BASE_CONFIG_PATH = "config/config.yaml"
OVERLAY_CONFIG_PATH = "config/config.msft.clouds-overlay.yaml"
INTERESTING_FILES = (BASE_CONFIG_PATH, OVERLAY_CONFIG_PATH)
CONFIG_PATH_PREFIX = "config"
VIRTUAL_CONFIG_PATH = "virtual-config/environment-release-config.json"
OVERLAY_CLOUD = "public"

# config.yaml is a template at some commits; coerce the known placeholders to YAML
_TEMPLATE_COERCIONS = (
    ("{{ .ev2.availabilityZoneCount }}", "2"),
    ("environmentName: {{ .ctx.environment }}", "environmentName: ANY_KEY"),
)


@dataclass(frozen=True)
class ResolvedConfig:
    environment: str
    document: Dict[str, Any]
    canonical_json: bytes

    def virtual_files(self) -> Dict[str, bytes]:
        return {VIRTUAL_CONFIG_PATH: self.canonical_json}


def deep_merge(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    """Return base overlaid by overlay; nested dicts merge, overlay wins otherwise.

    An explicit null in the overlay keeps the base value.
    """
    merged = copy.deepcopy(base)
    for key, value in overlay.items():
        if value is None and key in merged:
            continue
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _load_yaml(raw: bytes, path: str) -> Any:
    text = raw.decode("utf-8", errors="replace")
    if path == BASE_CONFIG_PATH:
        for placeholder, replacement in _TEMPLATE_COERCIONS:
            text = text.replace(placeholder, replacement)
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigSchemaError(f"failed to parse {path}: {e}") from e


def _mapping_at(doc: Any, path: Sequence[str], source: str) -> Dict[str, Any]:
    node = doc
    walked = []
    for part in path:
        walked.append(part)
        if not isinstance(node, dict) or part not in node:
            raise ConfigSchemaError(f"{source}: missing {'.'.join(walked)}")
        node = node[part]
    if node is None:
        return {}
    if not isinstance(node, dict):
        raise ConfigSchemaError(f"{source}: {'.'.join(path)} is not a mapping")
    return node


def resolve_config(
    snapshot: Mapping[str, bytes],
    environment: str,
    known_environments: Sequence[str] = KNOWN_ENVIRONMENTS,
) -> Optional[ResolvedConfig]:
    """Merged, environment-scoped configuration for a snapshot, or None if absent."""
    if environment not in known_environments:
        raise UnknownEnvironmentError(environment)

    base_raw = snapshot.get(BASE_CONFIG_PATH)
    if base_raw is None:
        return None
    base = _mapping_at(_load_yaml(base_raw, BASE_CONFIG_PATH), ["defaults"], BASE_CONFIG_PATH)

    overlay_raw = snapshot.get(OVERLAY_CONFIG_PATH)
    if overlay_raw is None:
        return None
    overlay = _mapping_at(
        _load_yaml(overlay_raw, OVERLAY_CONFIG_PATH),
        ["clouds", OVERLAY_CLOUD, "environments", environment, "defaults"],
        OVERLAY_CONFIG_PATH,
    )

    merged = deep_merge(base, overlay)
    try:
        canonical = json.dumps(merged, sort_keys=True, indent=4, default=str).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise ConfigSchemaError(f"merged configuration is not serialisable: {e}") from e
    return ResolvedConfig(environment=environment, document=merged, canonical_json=canonical)
