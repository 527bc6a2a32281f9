"""Tests that an install ships every package main.py imports."""

import tomllib
from pathlib import Path

from setuptools import find_namespace_packages

project_root = Path(__file__).parent.parent.parent


def _find_packages() -> list[str]:
    with open(project_root / "pyproject.toml", "rb") as f:
        find = tomllib.load(f)["tool"]["setuptools"]["packages"]["find"]
    assert find["namespaces"] is True
    return find_namespace_packages(
        where=str(project_root), include=find["include"], exclude=find["exclude"]
    )


class TestPackageDiscovery:
    def test_routes_without_init_are_shipped(self):
        packages = _find_packages()

        assert "web_api" in packages
        assert "web_api.routes" in packages
        assert "notifier.notifications.channels" in packages

    def test_test_directories_are_left_out(self):
        packages = _find_packages()

        assert not [p for p in packages if ".tests" in p or "__pycache__" in p]
