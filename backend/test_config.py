"""
Tests for the startup configuration check.
"""

import config


class TestValidateConfig:
    """Tests for validate_config."""

    def test_reports_missing_openai_key(self, monkeypatch, caplog):
        """Test that a missing required key is returned and warned about."""
        monkeypatch.setattr(config, "OPENAI_API_KEY", "")
        monkeypatch.setattr(config, "MOCK_LLM_RESPONSES", False)

        with caplog.at_level("WARNING", logger="config"):
            missing = config.validate_config()

        assert missing == ["OPENAI_API_KEY"]
        assert "Missing environment variables" in caplog.text

    def test_mock_mode_does_not_warn(self, monkeypatch, caplog):
        """Test that mock mode runs without an OpenAI key."""
        monkeypatch.setattr(config, "OPENAI_API_KEY", "")
        monkeypatch.setattr(config, "MOCK_LLM_RESPONSES", True)

        with caplog.at_level("WARNING", logger="config"):
            config.validate_config()

        assert "Missing environment variables" not in caplog.text

    def test_all_required_present(self, monkeypatch):
        """Test an empty list when the key is set."""
        monkeypatch.setattr(config, "OPENAI_API_KEY", "sk-test")
        assert config.validate_config() == []
