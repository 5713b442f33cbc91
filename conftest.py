"""Pytest configuration: custom markers and shared fixtures."""
import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--large", action="store_true", default=False,
        help="Run large-layer tests (deep nesting, thousands of prims and commits)",
    )


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "large: mark test as large-input only (slow parse of generated layers)"
    )


def pytest_collection_modifyitems(config, items):
    if config.getoption("--large"):
        return
    skip_large = pytest.mark.skip(reason="needs --large option to run")
    for item in items:
        if "large" in item.keywords:
            item.add_marker(skip_large)
