from typing import ClassVar

import pytest
from pydantic import field_validator
from pydantic_settings import BaseSettings

from shared.validators import StringListEnvSettingsSource, parse_string_list

LOCAL = "http://localhost:5173"
COURT = "http://court-tablet.local"


class _CourtSettings(BaseSettings):
    model_config = {"env_prefix": "COURT_"}

    string_list_fields: ClassVar[frozenset[str]] = frozenset({"hosts"})

    hosts: list[str] = []
    tags: list[str] = []

    @field_validator("hosts", mode="before")
    @classmethod
    def validate_hosts(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v, allow_empty=True)

    @classmethod
    def settings_customise_sources(cls, settings_cls, init_settings, **_sources):
        return (init_settings, StringListEnvSettingsSource(settings_cls))


class TestParseStringList:
    @pytest.mark.parametrize(
        "raw",
        [
            f'["{LOCAL}","{COURT}"]',
            f"{LOCAL},{COURT}",
            f" {LOCAL} , {COURT} ",
            f"{LOCAL},,{COURT},",
            [LOCAL, COURT],
            [f" {LOCAL}", COURT, ""],
        ],
    )
    def test_accepted_forms(self, raw):
        assert parse_string_list(raw) == [LOCAL, COURT]

    def test_duplicates_keep_first_position(self):
        assert parse_string_list(f"{COURT},{LOCAL},{COURT}") == [COURT, LOCAL]

    @pytest.mark.parametrize("raw", ["", "   ", ",", ",,,", "[]", []])
    def test_empty_values_raise(self, raw):
        with pytest.raises(ValueError, match="must not be empty"):
            parse_string_list(raw)

    def test_invalid_json_raises(self):
        with pytest.raises(ValueError, match="Invalid JSON array"):
            parse_string_list("[not valid json")

    def test_json_array_of_non_strings_raises(self):
        with pytest.raises(ValueError, match="must be an array of strings"):
            parse_string_list(f'["{LOCAL}", 123]')

    def test_allow_empty_accepts_empty_list(self):
        assert parse_string_list([], allow_empty=True) == []
        assert parse_string_list("[]", allow_empty=True) == []

    def test_allow_empty_still_rejects_blank_string(self):
        with pytest.raises(ValueError, match="must not be empty"):
            parse_string_list("   ", allow_empty=True)


class TestStringListEnvSettingsSource:
    def test_listed_field_accepts_csv(self, monkeypatch):
        monkeypatch.setenv("COURT_HOSTS", f"{LOCAL}, {COURT}")
        assert _CourtSettings().hosts == [LOCAL, COURT]

    def test_listed_field_accepts_json(self, monkeypatch):
        monkeypatch.setenv("COURT_HOSTS", f'["{COURT}"]')
        assert _CourtSettings().hosts == [COURT]

    def test_other_list_fields_keep_json_decoding(self, monkeypatch):
        monkeypatch.setenv("COURT_TAGS", '["east", "west"]')
        assert _CourtSettings().tags == ["east", "west"]
