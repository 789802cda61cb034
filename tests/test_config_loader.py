"""
Tests for configuration loading
"""
import os

from config import ConfigLoader


class TestConfigLoader:
    """Environment > .env > default resolution"""

    def test_default_when_unset(self, tmp_path, monkeypatch):
        monkeypatch.delenv("ONDEMAND_TEST_VALUE", raising=False)
        loader = ConfigLoader(env_path=str(tmp_path / ".env"))
        assert loader.get("ONDEMAND_TEST_VALUE", "fallback") == "fallback"

    def test_env_file_is_loaded(self, tmp_path, monkeypatch):
        monkeypatch.delenv("ONDEMAND_TEST_VALUE", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("ONDEMAND_TEST_VALUE=from-file\n")
        loader = ConfigLoader(env_path=str(env_file))
        try:
            assert loader.get("ONDEMAND_TEST_VALUE", "fallback") == "from-file"
        finally:
            os.environ.pop("ONDEMAND_TEST_VALUE", None)

    def test_typed_values(self, tmp_path, monkeypatch):
        loader = ConfigLoader(env_path=str(tmp_path / ".env"))
        monkeypatch.setenv("T_BOOL", "yes")
        monkeypatch.setenv("T_INT", "12")
        monkeypatch.setenv("T_FLOAT", "2.5")
        monkeypatch.setenv("T_LIST", "plugin-a, plugin-b,,")
        assert loader.get("T_BOOL", False) is True
        assert loader.get("T_INT", 1) == 12
        assert loader.get("T_FLOAT", 1.0) == 2.5
        assert loader.get("T_LIST", ["x"]) == ["plugin-a", "plugin-b"]

    def test_bad_number_falls_back(self, tmp_path, monkeypatch):
        loader = ConfigLoader(env_path=str(tmp_path / ".env"))
        monkeypatch.setenv("T_INT", "twelve")
        assert loader.get("T_INT", 7) == 7

    def test_home_expansion(self, tmp_path, monkeypatch):
        monkeypatch.delenv("T_PATH", raising=False)
        loader = ConfigLoader(env_path=str(tmp_path / ".env"))
        assert not loader.get("T_PATH", "~/traces").startswith("~")
