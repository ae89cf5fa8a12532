"""Pytest fixtures for tabe-assistant tests."""

import os
from unittest.mock import patch

import pytest
import yaml

from tabe_assistant.config import Settings


@pytest.fixture
def mock_env_vars():
    """Mock environment variables for testing."""
    env_vars = {
        "ASSISTANT_API_URL": "https://project.example.test",
        "ASSISTANT_API_KEY": "test-publishable-key",
        "LOG_LEVEL": "DEBUG",
    }
    with patch.dict(os.environ, env_vars, clear=False):
        yield env_vars


@pytest.fixture
def settings(mock_env_vars) -> Settings:
    """Create Settings instance with mocked environment."""
    return Settings()


@pytest.fixture
def personas_yaml_content():
    """Persona catalogue with a default and a secondary persona."""
    return {
        "personas": [
            {
                "id": "exam-coach",
                "name": "Coach de Exámenes",
                "avatar_emoji": "📚",
                "description": "Repaso antes de parciales",
                "personality_prompt": "Sos un tutor exigente pero justo.",
            },
            {
                "id": "tabe",
                "name": "T.A.B.E. IA",
                "personality_prompt": "Sos un asistente académico motivador.",
                "is_default": True,
            },
        ],
        "defaults": {"fallback": "tabe"},
    }


@pytest.fixture
def personas_config_path(personas_yaml_content, tmp_path):
    """Write the persona catalogue to a temp file and return the path."""
    config_file = tmp_path / "personas.yaml"
    config_file.write_text(yaml.dump(personas_yaml_content, allow_unicode=True), encoding="utf-8")
    return str(config_file)
