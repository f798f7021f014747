"""Name-to-factory lookup for entities.

Registries are plain objects passed to whoever needs them; there is no
module-level registry, so tests can build one with stub factories.
"""

import logging
from typing import Callable, Dict, Iterable, List, Optional

from ..errors import UnknownEntityError
from ..utils.validators import normalize_entity_name
from .config import EntityConfig, FrameworkSettings
from .entity import Entity

logger = logging.getLogger(__name__)

EntityFactory = Callable[[], Entity]


class EntityRegistry:
    """Maps normalized entity names ("Brett Jr" -> "brettjr") to factories."""

    def __init__(self):
        self._factories: Dict[str, EntityFactory] = {}
        self._display_names: Dict[str, str] = {}
        self._configs: Dict[str, EntityConfig] = {}

    def register(self, name: str, factory: EntityFactory, config: Optional[EntityConfig] = None) -> None:
        key = normalize_entity_name(name)
        if not key:
            raise ValueError(f"Entity name normalizes to nothing: {name!r}")
        if key in self._factories:
            logger.warning(f"Replacing registered entity '{self._display_names[key]}' with '{name}'")
        self._factories[key] = factory
        self._display_names[key] = name
        if config is not None:
            self._configs[key] = config

    def names(self) -> List[str]:
        """Display names of every registered entity, in registration order."""
        return list(self._display_names.values())

    def __contains__(self, name: str) -> bool:
        return normalize_entity_name(name) in self._factories

    def __len__(self) -> int:
        return len(self._factories)

    def _key(self, name: str) -> str:
        key = normalize_entity_name(name)
        if key not in self._factories:
            raise UnknownEntityError(name, self.names())
        return key

    def get_config(self, name: str) -> Optional[EntityConfig]:
        """Config the entity was registered with, without building it.

        Raises:
            UnknownEntityError: If no entity has this name
        """
        return self._configs.get(self._key(name))

    def create(self, name: str) -> Entity:
        """
        Build a fresh entity by name. Lookup ignores case, spaces and dashes.

        Raises:
            UnknownEntityError: If no entity has this name
        """
        return self._factories[self._key(name)]()

    @classmethod
    def from_definitions(
        cls,
        configs: Iterable[EntityConfig],
        settings: Optional[FrameworkSettings] = None,
        **entity_kwargs,
    ) -> "EntityRegistry":
        """One registry entry per loaded EntityConfig, all sharing settings."""
        registry = cls()
        for config in configs:
            registry.register(
                config.name,
                _factory_for(config, settings, entity_kwargs),
                config=config,
            )
        return registry


def _factory_for(config: EntityConfig, settings: Optional[FrameworkSettings], entity_kwargs: dict) -> EntityFactory:
    def factory() -> Entity:
        return Entity(config, settings, **entity_kwargs)
    return factory
