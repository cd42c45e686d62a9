"""Test that the project setup is correct."""

import pytest
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent


def test_config_settings_import():
    """Test that settings can be imported."""
    from config.settings import Settings
    settings = Settings(_env_file=None)
    assert settings.llm_provider == "gemini"
    assert settings.gemini_model == "gemini-2.0-flash"
    assert settings.database_path == "code_interactions.db"


def test_settings_read_environment(monkeypatch):
    """Test that settings are overridable through the environment."""
    from config.settings import Settings
    monkeypatch.setenv("LLM_PROVIDER", "openai")
    monkeypatch.setenv("API_PORT", "9001")

    settings = Settings(_env_file=None)
    assert settings.llm_provider == "openai"
    assert settings.api_port == 9001


def test_api_main_import():
    """Test that FastAPI app can be imported."""
    from api.main import app
    assert app is not None
    assert app.title == "CodeCritic Gateway"


def test_cli_import():
    """Test that CLI can be imported."""
    from api.cli import main
    assert main is not None
    assert {"serve", "review", "stats", "history"} <= set(main.commands)


def test_directory_structure():
    """Test that all required directories exist."""
    required_dirs = [
        "api",
        "config",
        "models",
        "services",
        "storage",
        "tools",
        "tests",
    ]

    for dir_name in required_dirs:
        path = ROOT / dir_name
        assert path.exists(), f"Directory '{dir_name}' should exist"
        assert path.is_dir(), f"'{dir_name}' should be a directory"


def test_api_endpoints():
    """Test that API endpoints are defined."""
    from api.main import app

    routes = [route.path for route in app.routes]

    assert "/" in routes
    assert "/health" in routes
    assert "/ai/get-response" in routes
    assert "/ai/stream" in routes
    assert "/admin/stats" in routes
    assert "/admin/interactions" in routes
    assert "/admin/interactions/ip/{ip}" in routes
