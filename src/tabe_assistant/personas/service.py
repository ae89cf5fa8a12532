"""Persona catalogue loaded from a YAML file."""

from pathlib import Path

import yaml
import structlog

from tabe_assistant.personas.models import LOCAL_DEFAULT_PERSONA, Persona, PersonaCatalogue

logger = structlog.get_logger()


class PersonaService:
    """Looks up assistant personas by id.

    A missing catalogue file is not an error: the built-in local default
    persona is served instead.
    """

    def __init__(self, config_path: str):
        self._config_path = config_path
        self._catalogue = self._load_config()

    def _load_config(self) -> PersonaCatalogue:
        path = Path(self._config_path)
        if not path.exists():
            logger.info("persona_catalogue_missing", path=self._config_path)
            return PersonaCatalogue(personas=[LOCAL_DEFAULT_PERSONA])

        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        catalogue = PersonaCatalogue(**raw)
        if not catalogue.personas:
            catalogue.personas.append(LOCAL_DEFAULT_PERSONA)
        return catalogue

    def reload_config(self) -> None:
        self._catalogue = self._load_config()
        logger.info("persona_catalogue_reloaded", path=self._config_path)

    def list_personas(self) -> list[Persona]:
        """Default personas first, otherwise in file order."""
        return sorted(self._catalogue.personas, key=lambda p: not p.is_default)

    def get(self, persona_id: str) -> Persona | None:
        for persona in self._catalogue.personas:
            if persona.id == persona_id:
                return persona
        return None

    def default(self) -> Persona:
        """The persona to use when none is selected."""
        for persona in self._catalogue.personas:
            if persona.is_default:
                return persona
        return self._catalogue.personas[0]

    def resolve(self, persona_id: str | None) -> Persona:
        """Return the requested persona, falling back to the default."""
        if persona_id:
            persona = self.get(persona_id)
            if persona is not None:
                return persona
            logger.warning("persona_not_found", persona_id=persona_id)
        return self.default()
