"""Tests for the expected-service registry loader."""

from __future__ import annotations

from pathlib import Path

import pytest

from beaconwatch.health.registry import DEFAULT_SERVICES, load_expected_services, unique_services


class TestDefaults:
    def test_no_duplicates(self) -> None:
        assert len(DEFAULT_SERVICES) == len(set(DEFAULT_SERVICES))

    def test_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        assert load_expected_services(tmp_path / "nope.yaml") == DEFAULT_SERVICES

    def test_none_uses_defaults(self) -> None:
        assert load_expected_services(None) == DEFAULT_SERVICES


class TestYamlRegistry:
    def test_loads_in_order(self, tmp_path: Path) -> None:
        path = tmp_path / "services.yaml"
        path.write_text("services:\n  - statsUpdater\n  - eth1indexer\n")
        assert load_expected_services(path) == ("statsUpdater", "eth1indexer")

    def test_duplicates_dropped(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        path = tmp_path / "services.yaml"
        path.write_text("services: [epochExporter, statistics, epochExporter]\n")

        assert load_expected_services(path) == ("epochExporter", "statistics")
        assert "Duplicate expected service ignored: epochExporter" in caplog.text

    def test_missing_key_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "services.yaml"
        path.write_text("fleet: [a]\n")
        with pytest.raises(ValueError, match="services"):
            load_expected_services(path)

    def test_empty_file_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "services.yaml"
        path.write_text("")
        with pytest.raises(ValueError):
            load_expected_services(path)


def test_unique_services_keeps_first_position() -> None:
    assert unique_services(["b", "a", "b", "c", "a"]) == ("b", "a", "c")
