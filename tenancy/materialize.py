from typing import Dict, Optional

import pulumi
import pulumi_github as github

from tenancy import resources
from tenancy.config import TenancyConfig
from tenancy.errors import DependencyNotReady
from tenancy.graph import Ref, ResourceGraph, ResourceKind, ScopeKind


class TenancyScope(pulumi.ComponentResource):
  """Groups one tenant's (or the admin system's) resources under a single parent"""

  def __init__(self, name: str, kind: ScopeKind, opts: Optional[pulumi.ResourceOptions] = None):
    super().__init__(f"flux:tenancy:{kind.value}", name, None, opts)


def resolve_refs(value, created: Dict[str, pulumi.Resource]):
  if isinstance(value, Ref):
    resource = created[value.node_id]
    return resource if value.attr is None else getattr(resource, value.attr)
  if isinstance(value, dict):
    return {k: resolve_refs(v, created) for k, v in value.items()}
  if isinstance(value, list):
    return [resolve_refs(v, created) for v in value]
  if isinstance(value, tuple):
    return tuple(resolve_refs(v, created) for v in value)
  return value


class PulumiMaterializer:
  """
  Turns a resolved ResourceGraph into Pulumi resources.

  Nodes are created in arena order, which already respects every edge. Each
  edge also becomes an explicit `depends_on`, so Pulumi keeps the same
  ordering when it creates, updates or replaces resources in parallel.
  """

  def __init__(self, config: TenancyConfig, github_token: Optional[pulumi.Output] = None):
    self.config = config
    self.github_provider = resources.github_provider(config.github_owner, github_token)
    self.k8s_provider = resources.kubernetes_provider(config.kubeconfig_path, config.kube_context)

  def lookup_team(self, slug: str) -> str:
    """Team id for `slug`, read through the same GitHub provider the grants use"""
    team = github.get_team(slug=slug, opts=pulumi.InvokeOptions(provider=self.github_provider))
    return team.id

  def _provider_for(self, kind: ResourceKind):
    if kind in resources.GITHUB_KINDS:
      return self.github_provider
    if kind in resources.KUBERNETES_KINDS:
      return self.k8s_provider
    return None

  def apply(self, graph: ResourceGraph) -> Dict[str, pulumi.Resource]:
    unresolved = graph.pending
    if unresolved:
      raise DependencyNotReady(unresolved[0].id, unresolved[0].depends_on)

    scopes = {name: TenancyScope(name, kind) for name, kind in graph.scopes.items()}
    created: Dict[str, pulumi.Resource] = {}
    for node in graph:
      opts = pulumi.ResourceOptions(
        parent=scopes.get(node.scope),
        depends_on=[created[dep] for dep in node.depends_on],
        provider=self._provider_for(node.kind),
      )
      pulumi.log.debug(f"creating {node.kind.value} '{node.id}'")
      created[node.id] = resources.BUILDERS[node.kind](node.id, resolve_refs(node.props, created), opts)

    for scope in scopes.values():
      scope.register_outputs({})
    return created
