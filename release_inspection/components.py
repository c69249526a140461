"""Static component registry.

One entry per tracked component: where its image is pulled from, where its
source lives, and where its image reference sits inside the merged
environment configuration. Configuration only reliably carries the digest,
so registry/repository always come from here.
"""
from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, Optional, Tuple


ORG_LATENCY = timedelta(days=5)
COMPANY_LATENCY = timedelta(days=5)
WORLD_LATENCY = timedelta(days=60)


@dataclass(frozen=True)
class ComponentDefinition:
    name: str
    image_pull_registry: str
    image_pull_repository: str
    repository_url: str = ""
    default_branch: str = ""
    latency_threshold: timedelta = timedelta(0)
    # dotted path of the image block inside the merged config; None = not declared in config
    image_config_path: Optional[str] = None
    # conditional components are only emitted when the config declares them
    conditional: bool = False


_DEFINITIONS = (
    ComponentDefinition(
        name="ACM Operator",
        image_pull_registry="arohcpsvcdev.azurecr.io",
        image_pull_repository="rhacm2/acm-operator-bundle",
        repository_url="https://github.com/stolostron/acm-operator-bundle",
        default_branch="main",
    ),
    ComponentDefinition(
        name="ACR Pull",
        image_pull_registry="mcr.microsoft.com",
        image_pull_repository="aks/msi-acrpull",
        image_config_path="acrPull.image",
    ),
    ComponentDefinition(
        name="Backend",
        image_pull_registry="arohcpsvcdev.azurecr.io",
        image_pull_repository="arohcpbackend",
        repository_url="https://github.com/Azure/ARO-HCP",
        default_branch="main",
        latency_threshold=ORG_LATENCY,
        image_config_path="backend.image",
        conditional=True,
    ),
    ComponentDefinition(
        name="Backplane",
        image_pull_registry="quay.io",
        image_pull_repository="app-sre/backplane-api",
        repository_url="https://gitlab.cee.redhat.com/service/backplane-api",
        default_branch="master",
        image_config_path="backplaneAPI.image",
    ),
    ComponentDefinition(
        name="Cluster Service",
        image_pull_registry="quay.io",
        image_pull_repository="app-sre/uhc-clusters-service",
        repository_url="https://gitlab.cee.redhat.com/service/uhc-clusters-service",
        default_branch="master",
        latency_threshold=ORG_LATENCY,
        image_config_path="clustersService.image",
    ),
    ComponentDefinition(
        name="Frontend",
        image_pull_registry="arohcpsvcdev.azurecr.io",
        image_pull_repository="arohcpfrontend",
        repository_url="https://github.com/Azure/ARO-HCP",
        default_branch="main",
        latency_threshold=ORG_LATENCY,
        image_config_path="frontend.image",
    ),
    ComponentDefinition(
        name="Hypershift",
        image_pull_registry="quay.io",
        image_pull_repository="acm-d/rhtap-hypershift-operator",
        repository_url="https://github.com/openshift/hypershift",
        default_branch="main",
        latency_threshold=COMPANY_LATENCY,
        image_config_path="hypershift.image",
    ),
    ComponentDefinition(
        name="Maestro",
        image_pull_registry="quay.io",
        image_pull_repository="redhat-user-workloads/maestro-rhtap-tenant/maestro/maestro",
        repository_url="https://github.com/openshift-online/maestro",
        default_branch="main",
        image_config_path="maestro.image",
    ),
    ComponentDefinition(
        name="MCE",
        image_pull_registry="arohcpsvcdev.azurecr.io",
        image_pull_repository="multicluster-engine/mce-operator-bundle",
        repository_url="https://github.com/stolostron/mce-operator-bundle",
        default_branch="main",
    ),
    ComponentDefinition(
        name="OcMirror",
        image_pull_registry="arohcpsvcdev.azurecr.io",
        image_pull_repository="image-sync/oc-mirror",
        repository_url="https://github.com/openshift/oc-mirror",
        default_branch="main",
        image_config_path="imageSync.ocMirror.image",
    ),
    ComponentDefinition(
        name="Package Operator Package",
        image_pull_registry="quay.io",
        image_pull_repository="package-operator/package-operator-package",
        repository_url="https://github.com/package-operator/package-operator",
        default_branch="main",
    ),
    ComponentDefinition(
        name="Package Operator Manager",
        image_pull_registry="quay.io",
        image_pull_repository="package-operator/package-operator-manager",
        repository_url="https://github.com/package-operator/package-operator",
        default_branch="main",
    ),
    ComponentDefinition(
        name="Package Operator Remote Phase Manager",
        image_pull_registry="quay.io",
        image_pull_repository="package-operator/remote-phase-manager",
        repository_url="https://github.com/package-operator/package-operator",
        default_branch="main",
    ),
    ComponentDefinition(
        name="Management Prometheus Spec",
        image_pull_registry="mcr.microsoft.com/oss/v2",
        image_pull_repository="prometheus/prometheus",
        latency_threshold=WORLD_LATENCY,
        image_config_path="mgmt.prometheus.prometheusSpec.image",
        conditional=True,
    ),
    ComponentDefinition(
        name="Service Prometheus Spec",
        image_pull_registry="mcr.microsoft.com/oss/v2",
        image_pull_repository="prometheus/prometheus",
        latency_threshold=WORLD_LATENCY,
        image_config_path="svc.prometheus.prometheusSpec.image",
        conditional=True,
    ),
)


class ComponentRegistry:
    """Read-only lookup over component definitions."""

    def __init__(self, definitions=_DEFINITIONS):
        self._by_name: Dict[str, ComponentDefinition] = {d.name: d for d in definitions}

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    def __iter__(self):
        return iter(sorted(self._by_name.values(), key=lambda d: d.name))

    def get(self, name: str) -> Optional[ComponentDefinition]:
        return self._by_name.get(name)

    def image_pull_location(self, name: str) -> Tuple[str, str]:
        """Return (registry, repository) for a component, or raise KeyError."""
        definition = self._by_name.get(name)
        if definition is None:
            raise KeyError(f"image pull location not found for image name {name!r}")
        return definition.image_pull_registry, definition.image_pull_repository


DEFAULT_REGISTRY = ComponentRegistry()


# pull spec prefix -> auth file name inside the pull secret directory
_CREDENTIAL_FILES = (
    ("quay.io/app-sre/", "quay-repository-app-sre-dockerconfig.json"),
    ("quay.io/acm-d/", "quay-repository-acm-d-dockerconfig.json"),
    ("arohcpsvcdev.azurecr.io/", "arohcpsvcdev-dockerconfig.json"),
)


def credential_file_for(pull_spec: str) -> str:
    """Auth file name for a pull spec; empty means the runtime's default config."""
    for prefix, filename in _CREDENTIAL_FILES:
        if pull_spec.startswith(prefix):
            return filename
    return ""


def repository_host_kind(repo_url: Optional[str]) -> str:
    url = repo_url or ""
    if "github.com" in url:
        return "github"
    if "gitlab" in url:
        return "gitlab"
    return ""


def permanent_link_for_sha(repo_url: Optional[str], sha: Optional[str]) -> Optional[str]:
    if not repo_url or not sha:
        return None
    base = repo_url.rstrip("/")
    kind = repository_host_kind(base)
    if kind == "github":
        return f"{base}/tree/{sha}/"
    if kind == "gitlab":
        return f"{base}/-/tree/{sha}/"
    return None
