"""Turn a merged environment configuration into resolved components."""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from .components import DEFAULT_REGISTRY, ComponentRegistry, permanent_link_for_sha
from .errors import ImageProvenanceError
from .image_provenance import ImageProvenanceResolver
from .logging_utils import logger
from .models import Component, ContainerImage


@dataclass(frozen=True)
class ComponentDeclaration:
    """Where a component's image block lives in the merged configuration."""

    name: str
    image_config_path: str
    conditional: bool = False

    @property
    def presence_path(self) -> str:
        # a conditional component is present when the block holding its image is
        parent, _, _ = self.image_config_path.rpartition(".")
        return parent or self.image_config_path


def declarations_from_registry(registry: ComponentRegistry) -> List[ComponentDeclaration]:
    return [
        ComponentDeclaration(d.name, d.image_config_path, d.conditional)
        for d in registry
        if d.image_config_path
    ]


def lookup_path(doc: Any, dotted: str) -> Any:
    node = doc
    for part in dotted.split("."):
        if not isinstance(node, dict):
            return None
        node = node.get(part)
        if node is None:
            return None
    return node


class ComponentExtractor:
    def __init__(
        self,
        provenance_resolver: ImageProvenanceResolver,
        registry: ComponentRegistry = DEFAULT_REGISTRY,
        declarations: Optional[Iterable[ComponentDeclaration]] = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.provenance_resolver = provenance_resolver
        self.registry = registry
        self.declarations = list(declarations) if declarations is not None else declarations_from_registry(registry)
        self._now = now

    def _container_image(self, name: str, image_node: Any) -> Optional[ContainerImage]:
        if not isinstance(image_node, dict):
            return None
        digest = str(image_node.get("digest") or "")
        try:
            registry, repository = self.registry.image_pull_location(name)
        except KeyError as e:
            logger.warn("image_pull_location_missing", component=name)
            registry = f"missing image pull location for {name!r}: {e}"
            repository = str(image_node.get("repository") or "")
        return ContainerImage(registry=registry, repository=repository, digest=digest)

    def _resolve(self, declaration: ComponentDeclaration, image_node: Any) -> Component:
        name = declaration.name
        definition = self.registry.get(name)
        repo_url = definition.repository_url if definition and definition.repository_url else None

        component = Component(name=name, repoURL=repo_url)
        if definition and definition.latency_threshold.total_seconds() > 0:
            component.latencyThresholdSeconds = definition.latency_threshold.total_seconds()

        component.imageInfo = self._container_image(name, image_node)
        if component.imageInfo is None:
            return component

        try:
            provenance = self.provenance_resolver.get_provenance(component.imageInfo)
        except ImageProvenanceError as e:
            logger.warn("image_provenance_failed", component=name, error=str(e))
            component.provenanceError = str(e)
            return component

        component.imageCreationTime = provenance.imageCreationTime
        component.sourceSHA = provenance.sourceSHA
        component.permLinkForSourceSHA = permanent_link_for_sha(repo_url, provenance.sourceSHA)
        if definition and component.imageCreationTime and definition.latency_threshold.total_seconds() > 0:
            component.stale = (self._now() - component.imageCreationTime) > definition.latency_threshold
        return component

    def extract(self, config_doc: Dict[str, Any]) -> Dict[str, Component]:
        components: Dict[str, Component] = {}
        for declaration in self.declarations:
            if declaration.conditional and lookup_path(config_doc, declaration.presence_path) is None:
                continue
            image_node = lookup_path(config_doc, declaration.image_config_path)
            components[declaration.name] = self._resolve(declaration, image_node)
        return components
