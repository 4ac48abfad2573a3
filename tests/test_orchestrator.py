"""Tests for planning the whole multi-tenant run."""

import pytest

from tenancy.errors import AlreadyExists, NamespaceConflict, TeamNotFound
from tenancy.graph import ResourceKind
from tenancy.orchestrator import Orchestrator

from conftest import AI_TEAM, DATA_TEAM


def snapshot(graph, scope=None):
  return [
    (node.id, node.kind, node.props, node.depends_on, node.scope)
    for node in graph
    if scope is None or node.scope == scope
  ]


def test_plan_for_ai_team(config):
  plan = Orchestrator(config).plan()
  graph = plan.graph

  assert plan.failures == {}
  assert list(plan.tenants) == ["ai-team"]
  handle = plan.tenants["ai-team"]
  assert handle.repository_name == "ai-team-workspace"
  assert handle.git_url == "ssh://git@github.com/foot-org/ai-team-workspace.git"

  by_kind = {}
  for node in graph.scope_nodes("ai-team"):
    by_kind.setdefault(node.kind, []).append(node)

  assert [n.props["name"] for n in by_kind[ResourceKind.REPOSITORY]] == ["ai-team-workspace"]
  assert len(by_kind[ResourceKind.DEPLOY_KEY]) == 1
  assert [(n.props["name"], n.props["namespace"]) for n in by_kind[ResourceKind.SECRET]] == [
    ("ai-team-flux-secret", "flux-system"),
  ]
  assert [n.props["name"] for n in by_kind[ResourceKind.NAMESPACE]] == ["ai", "observability"]
  assert [(n.props["name"], n.props["namespace"], n.props["cluster_role"]) for n in by_kind[ResourceKind.ROLE_BINDING]] == [
    ("ai-admins-admin", "ai", "admin"),
    ("ai-admins-admin", "observability", "admin"),
  ]
  assert len(by_kind[ResourceKind.MANIFEST_BUNDLE]) == 1
  assert "path: ./clusters/my-cluster" in by_kind[ResourceKind.MANIFEST_BUNDLE][0].props["yaml"]


def test_sync_binding_depends_on_secret_repo_and_bootstrap(config):
  plan = Orchestrator(config).plan()
  handle = plan.tenants["ai-team"]
  deps = plan.graph.dependencies(handle.sync_id, transitive=True)
  assert handle.secret_id in deps
  assert handle.repository_id in deps
  assert plan.system.bootstrap_id in deps


def test_tenants_are_independent(make_config):
  plan = Orchestrator(make_config(tenants=[AI_TEAM, DATA_TEAM])).plan()
  ai_ids = {node.id for node in plan.graph.scope_nodes("ai-team")}
  data_ids = {node.id for node in plan.graph.scope_nodes("data-team")}
  assert ai_ids.isdisjoint(data_ids)
  for node in plan.graph.scope_nodes("data-team"):
    assert ai_ids.isdisjoint(plan.graph.dependencies(node.id, transitive=True))


def test_plan_is_repeatable(make_config):
  config = make_config(tenants=[AI_TEAM, DATA_TEAM])
  assert snapshot(Orchestrator(config).plan().graph) == snapshot(Orchestrator(config).plan().graph)


def test_removing_a_tenant_leaves_admin_system_untouched(make_config):
  both = Orchestrator(make_config(tenants=[AI_TEAM, DATA_TEAM])).plan()
  one = Orchestrator(make_config(tenants=[DATA_TEAM])).plan()
  assert snapshot(both.graph, "workspace-admin") == snapshot(one.graph, "workspace-admin")
  assert snapshot(both.graph, "data-team") == snapshot(one.graph, "data-team")
  assert "ai-team" not in one.graph.scopes


def test_namespace_claimed_twice_fails_second_tenant(make_config):
  rival = {"name": "rival-team", "namespaces": [{"name": "ai"}]}
  plan = Orchestrator(make_config(tenants=[AI_TEAM, rival, DATA_TEAM])).plan()

  assert list(plan.tenants) == ["ai-team", "data-team"]
  assert isinstance(plan.failures["rival-team"], NamespaceConflict)
  assert plan.failures["rival-team"].namespace == "ai"
  assert plan.graph.scope_nodes("rival-team") == []


def test_flux_namespace_cannot_be_claimed(make_config):
  greedy = {"name": "greedy", "namespaces": [{"name": "flux-system"}]}
  plan = Orchestrator(make_config(tenants=[greedy])).plan()
  assert isinstance(plan.failures["greedy"], NamespaceConflict)
  assert plan.tenants == {}


def test_tenant_colliding_with_admin_system_fails_alone(make_config):
  impostor = {"name": "workspace-admin"}
  plan = Orchestrator(make_config(tenants=[impostor, DATA_TEAM])).plan()
  assert isinstance(plan.failures["workspace-admin"], AlreadyExists)
  assert list(plan.tenants) == ["data-team"]
  assert "workspace-admin-flux-bootstrap" in plan.graph


def test_failed_tenant_frees_its_namespaces(make_config):
  impostor = {"name": "workspace-admin", "namespaces": [{"name": "shared"}]}
  later = {"name": "later-team", "namespaces": [{"name": "shared"}]}
  plan = Orchestrator(make_config(tenants=[impostor, later])).plan()
  assert list(plan.tenants) == ["later-team"]


def test_admin_only_run(make_config):
  plan = Orchestrator(make_config(tenants=[], allow_empty_tenants=True)).plan()
  assert plan.tenants == {}
  assert {node.scope for node in plan.graph} == {"workspace-admin"}


@pytest.mark.parametrize("tenants", [[AI_TEAM], [AI_TEAM, DATA_TEAM]])
def test_every_node_is_scoped_and_resolved(make_config, tenants):
  plan = Orchestrator(make_config(tenants=tenants)).plan()
  assert plan.graph.pending == []
  assert all(node.scope in plan.graph.scopes for node in plan.graph)


def test_tenants_with_overlapping_names_both_succeed(make_config):
  foo = {"name": "foo", "namespaces": [{"name": "a-b"}], "githubTeams": [{"name": "t"}]}
  foo_a = {"name": "foo-a", "namespaces": [{"name": "b"}], "githubTeams": [{"name": "t"}]}
  plan = Orchestrator(make_config(tenants=[foo, foo_a])).plan()
  assert plan.failures == {}
  assert list(plan.tenants) == ["foo", "foo-a"]
  assert plan.tenants["foo"].role_binding_ids == ["foo-cluster-role-binding.a-b.t"]
  assert plan.tenants["foo-a"].role_binding_ids == ["foo-a-cluster-role-binding.b.t"]


def test_unknown_team_fails_only_its_tenant(make_config):
  ghost = dict(DATA_TEAM, githubTeams=[{"name": "ghosts"}])
  config = make_config(tenants=[ghost, AI_TEAM], verify_teams=True)
  plan = Orchestrator(config, team_lookup={"ai-admins": "4242"}.get).plan()
  assert isinstance(plan.failures["data-team"], TeamNotFound)
  assert list(plan.tenants) == ["ai-team"]
  assert plan.graph.scope_nodes("data-team") == []


def test_team_lookup_ignored_unless_verify_teams(config):
  plan = Orchestrator(config, team_lookup={}.get).plan()
  assert plan.failures == {}
  assert plan.graph["ai-team-team-repository.ai-admins"].props["team_id"] == "ai-admins"
