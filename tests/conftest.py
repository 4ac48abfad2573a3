"""Shared fixtures for the tenancy tests."""

import pytest

from tenancy.config import parse_config

AI_TEAM = {
  "name": "ai-team",
  "namespaces": [{"name": "ai"}, {"name": "observability"}],
  "githubTeams": [{"name": "ai-admins"}],
}

DATA_TEAM = {
  "name": "data-team",
  "namespaces": [{"name": "data"}],
}


@pytest.fixture
def make_config():
  """Return a factory building a validated config for the foot-org owner."""
  def _make(tenants=None, **overrides):
    data = {
      "github_owner": "foot-org",
      "tenants": [AI_TEAM] if tenants is None else tenants,
    }
    data.update(overrides)
    return parse_config(data)
  return _make


@pytest.fixture
def config(make_config):
  return make_config()
