"""Tests for settings loading and text helpers."""

import pytest

from category_agent.config import load_settings
from category_agent.prompt_loader import load_prompt, render_prompt
from category_agent.utils import fold_case, mask_secret, normalize_text, safe_json_loads

SETTINGS_ENV = (
    "GEMINI_MODEL",
    "GEMINI_TEMPERATURE",
    "WP_REQUEST_TIMEOUT",
    "WP_PER_PAGE",
    "MAX_SUGGESTIONS",
    "SUGGESTION_THRESHOLD",
    "HISTORY_LIMIT",
    "MAX_SESSIONS",
    "LOG_LEVEL",
    "PROMPTS_DIR",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestSettings:
    def test_defaults(self, clean_env):
        settings = load_settings()
        assert settings.gemini_model == "gemini-2.5-flash"
        assert settings.wp_per_page == 100
        assert settings.max_suggestions == 5
        assert settings.suggestion_threshold == 0.5
        assert settings.log_level == "INFO"
        assert (settings.prompts_dir / "system_instruction.txt").exists()

    def test_overrides(self, clean_env):
        clean_env.setenv("MAX_SUGGESTIONS", "3")
        clean_env.setenv("WP_REQUEST_TIMEOUT", "2.5")
        clean_env.setenv("LOG_LEVEL", "debug")
        settings = load_settings()
        assert settings.max_suggestions == 3
        assert settings.wp_request_timeout == 2.5
        assert settings.log_level == "DEBUG"

    def test_invalid_number(self, clean_env):
        clean_env.setenv("HISTORY_LIMIT", "many")
        with pytest.raises(ValueError):
            load_settings()

    @pytest.mark.parametrize("value", ["0", "101"])
    def test_per_page_out_of_range(self, clean_env, value):
        clean_env.setenv("WP_PER_PAGE", value)
        with pytest.raises(ValueError):
            load_settings()


class TestTextHelpers:
    def test_normalize_text_strips_accents_and_punctuation(self):
        assert normalize_text("Chaussures  d'Été !") == "chaussures d ete"
        assert normalize_text("Œufs") == "oeufs"
        assert normalize_text("") == ""

    def test_fold_case_keeps_accents(self):
        assert fold_case("  Vêtements   ÉTÉ ") == "vêtements été"

    def test_safe_json_loads_handles_fences_and_garbage(self):
        assert safe_json_loads('```json\n{"a": 1}\n```') == {"a": 1}
        assert safe_json_loads('{"a": ') is None
        assert safe_json_loads("no json") is None
        assert safe_json_loads("") is None

    def test_mask_secret(self):
        assert mask_secret("abcd efgh") == "ab*****gh"
        assert mask_secret("abc") == "***"


class TestPrompts:
    def test_load_prompt_strips_bom(self, tmp_path):
        path = tmp_path / "p.txt"
        path.write_bytes("\ufeffHello <<LANGUAGE>>".encode("utf-8"))
        assert load_prompt(path) == "Hello <<LANGUAGE>>"

    def test_load_prompt_tolerates_invalid_bytes(self, tmp_path):
        path = tmp_path / "p.txt"
        path.write_bytes(b"Hello \xff world")
        assert load_prompt(path) == "Hello  world"

    def test_render_prompt(self):
        assert render_prompt("Speak <<LANGUAGE>>, <<OTHER>>", {"LANGUAGE": "French"}) == "Speak French, <<OTHER>>"
