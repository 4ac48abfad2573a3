from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import pulumi

from tenancy import naming
from tenancy.config import TenancyConfig, Tenant
from tenancy.errors import TeamNotFound, TenancyError
from tenancy.graph import Ref, ResourceGraph, ResourceKind, ScopeKind
from tenancy.manifests import render_flux_sync
from tenancy.system import SystemHandle


def verify_team(slug: str, lookup: Callable[[str], str]) -> str:
  """Return the team id for `slug`, raising TeamNotFound when the lookup fails"""
  try:
    team_id = lookup(slug)
  except Exception as e:
    raise TeamNotFound(slug) from e
  if not team_id:
    raise TeamNotFound(slug)
  return team_id


@dataclass(frozen=True)
class TenantHandle:
  tenant: str
  repository_name: str
  repository_id: str
  secret_id: str
  sync_id: str
  git_url: str
  namespace_ids: Dict[str, str] = field(default_factory=dict)
  role_binding_ids: List[str] = field(default_factory=list)


class TenantProvisioner:
  """
  One tenant's isolated workspace: repo, deploy key, team grants, flux
  secret, namespaces with admin RoleBindings, and the Flux sync manifests
  registering the repo with the already bootstrapped agent.

  With a `team_lookup`, every team slug is resolved to its GitHub id before
  anything is declared. If any step fails, everything already declared for
  the tenant is discarded from the graph before the error is re-raised.
  """

  def __init__(
      self,
      tenant: Tenant,
      config: TenancyConfig,
      system: SystemHandle,
      team_lookup: Optional[Callable[[str], str]] = None,
  ):
    self.tenant = tenant
    self.config = config
    self.system = system
    self.team_lookup = team_lookup

  def declare(self, graph: ResourceGraph) -> TenantHandle:
    scope = graph.add_scope(self.tenant.name, ScopeKind.TENANT)
    try:
      handle = self._declare(graph, scope)
      graph.resolve(scope)
    except TenancyError:
      graph.discard_scope(scope)
      raise
    return handle

  def _team_ids(self) -> Dict[str, str]:
    teams = [team.name for team in self.tenant.github_teams]
    if self.team_lookup is None:
      return {team: team for team in teams}
    return {team: verify_team(team, self.team_lookup) for team in teams}

  def _declare(self, graph: ResourceGraph, scope: str) -> TenantHandle:
    tenant = self.tenant
    name = lambda role: naming.child_name(tenant.name, role)
    repo_name = name(naming.WORKSPACE)
    team_ids = self._team_ids()
    teams = list(team_ids)
    pulumi.log.debug(f"declaring tenant '{tenant.name}' ({len(tenant.namespaces)} namespaces, {len(teams)} teams)")

    # 1. Generate ssh keys
    key = graph.declare(name(naming.PRIVATE_KEY), ResourceKind.PRIVATE_KEY, {
      "algorithm": "ECDSA",
      "ecdsa_curve": "P256",
    }, scope=scope)

    # 2. Create Github repository
    repo = graph.declare(name(naming.REPOSITORY), ResourceKind.REPOSITORY, {
      "name": repo_name,
      "visibility": "private",
      "auto_init": True,
    }, scope=scope)

    # 3. Add generated public key to Github deploy key
    graph.declare(name(naming.DEPLOY_KEY), ResourceKind.DEPLOY_KEY, {
      "title": "fluxcd",
      "repository": Ref(repo.id, "name"),
      "key": Ref(key.id, "public_key_openssh"),
      "read_only": False,
    }, scope=scope)

    # 4. Default branch, only needs the repository
    graph.declare(name(naming.BRANCH_DEFAULT), ResourceKind.BRANCH_DEFAULT, {
      "repository": Ref(repo.id, "name"),
      "branch": self.config.branch,
    }, scope=scope)

    # 5. Push access for every github team
    for team in teams:
      graph.declare(name(naming.team_repository_role(team)), ResourceKind.TEAM_REPOSITORY, {
        "team_id": team_ids[team],
        "repository": Ref(repo.id, "name"),
        "permission": "push",
      }, scope=scope)

    # 6. Flux secret, the flux namespace only exists once the bootstrap ran
    secret = graph.declare(name(naming.FLUX_SECRET), ResourceKind.SECRET, {
      "name": name(naming.FLUX_SECRET),
      "namespace": self.config.flux_namespace,
      "string_data": {
        "identity": Ref(key.id, "private_key_pem"),
        "identity.pub": Ref(key.id, "public_key_pem"),
        "known_hosts": self.config.known_hosts,
      },
    }, depends_on=[self.system.bootstrap_id], scope=scope)

    # 7. Namespaces, with admin role for github teams in each
    namespace_ids = {}
    role_binding_ids = []
    for namespace in tenant.namespaces:
      ns = graph.declare(name(naming.namespace_role(namespace.name)), ResourceKind.NAMESPACE, {
        "name": namespace.name,
      }, scope=scope)
      namespace_ids[namespace.name] = ns.id

      for team in teams:
        binding = graph.declare(name(naming.role_binding_role(namespace.name, team)), ResourceKind.ROLE_BINDING, {
          "name": naming.role_binding_name(team),
          "namespace": namespace.name,
          "cluster_role": "admin",
          "group": team,
        }, depends_on=[ns.id], scope=scope)
        role_binding_ids.append(binding.id)

    # 8. add ks and source, rendered once the secret and the flux bootstrap are declared
    git_url = naming.git_ssh_url(self.config.github_owner, repo_name)
    sync_name = name(naming.AUTOMATION)

    def render(deps):
      flux_secret = deps[secret.id].props
      sync = render_flux_sync(
        name=sync_name,
        target_path=self.config.sync_target_path,
        url=git_url,
        branch=self.config.branch,
        secret=flux_secret["name"],
        namespace=flux_secret["namespace"],
        interval=self.config.sync_interval,
      )
      return {"yaml": sync.content, "secret": sync.secret, "namespace": sync.namespace}

    sync = graph.defer(name(naming.FLUX_SYNC), ResourceKind.MANIFEST_BUNDLE, render,
      depends_on=[secret.id, repo.id, self.system.bootstrap_id], scope=scope)

    return TenantHandle(
      tenant=tenant.name,
      repository_name=repo_name,
      repository_id=repo.id,
      secret_id=secret.id,
      sync_id=sync.id,
      git_url=git_url,
      namespace_ids=namespace_ids,
      role_binding_ids=role_binding_ids,
    )
