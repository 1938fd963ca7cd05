"""Tests for idspine.core.settings module."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from idspine.core.settings import IdentitySettings, clear_settings_cache, get_settings


class TestIdentitySettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("IDSPINE_HASH_ALGORITHM", raising=False)
        settings = IdentitySettings(_env_file=None)
        assert settings.hash_algorithm == "sha256/1"
        assert settings.digest_length == 32
        assert settings.number_precision == 17
        assert settings.unicode_form == "NFC"
        assert settings.nan_as_null is True
        assert settings.max_workers == 1
        assert settings.log_format == "auto"

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("IDSPINE_HASH_ALGORITHM", "blake2b-256/1")
        monkeypatch.setenv("IDSPINE_MAX_WORKERS", "4")
        settings = IdentitySettings(_env_file=None)
        assert settings.hash_algorithm == "blake2b-256/1"
        assert settings.max_workers == 4

    def test_normalizes_case(self):
        settings = IdentitySettings(_env_file=None, unicode_form="nfkc", log_format="JSON", log_level="debug")
        assert settings.unicode_form == "NFKC"
        assert settings.log_format == "json"
        assert settings.log_level == "DEBUG"

    @pytest.mark.parametrize(
        "field,value",
        [
            ("hash_algorithm", "md5/1"),
            ("digest_length", 0),
            ("max_workers", 0),
            ("parallel_threshold", -1),
            ("number_precision", 0),
            ("unicode_form", "UTF8"),
            ("log_format", "xml"),
        ],
    )
    def test_rejects_invalid_values(self, field, value):
        with pytest.raises(PydanticValidationError):
            IdentitySettings(_env_file=None, **{field: value})


class TestGetSettings:
    def test_cached(self):
        assert get_settings() is get_settings()

    def test_clear_cache_rereads_environment(self, monkeypatch):
        monkeypatch.setenv("IDSPINE_DIGEST_LENGTH", "16")
        clear_settings_cache()
        assert get_settings().digest_length == 16
        monkeypatch.setenv("IDSPINE_DIGEST_LENGTH", "40")
        assert get_settings().digest_length == 16
        clear_settings_cache()
        assert get_settings().digest_length == 40
