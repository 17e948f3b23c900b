"""
Tests for the package layout declared in pyproject.toml.
"""
import importlib

import pytest


@pytest.mark.parametrize("name", ["nownext", "nownext.services", "nownext.utils"])
def test_declared_packages_are_regular_packages(name):
    """Namespace packages have no __file__; every declared package ships an __init__.py."""
    module = importlib.import_module(name)
    assert module.__file__ is not None
    assert module.__file__.endswith("__init__.py")
