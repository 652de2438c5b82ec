"""
Root pytest configuration.

pytest-django loads config.settings_test (see pyproject.toml); project-wide
hooks and fixtures live in app/conftest.py, app-specific fixtures in each
app's tests/conftest.py.
"""
