from dataclasses import dataclass

import pulumi

from tenancy import naming
from tenancy.config import TenancyConfig
from tenancy.graph import Ref, ResourceGraph, ResourceKind, ScopeKind


@dataclass(frozen=True)
class SystemHandle:
  scope: str
  repository_name: str
  repository_id: str
  bootstrap_id: str
  git_url: str


class TenantSystemProvisioner:
  """
  Shared admin scaffolding: one `workspace-admin` repository and the Flux
  bootstrap that points the cluster at it.

  Every step depends on the previous one; if any declaration fails the whole
  run is aborted since no tenant can sync without a bootstrapped agent.
  """

  def __init__(self, config: TenancyConfig):
    self.config = config

  def declare(self, graph: ResourceGraph) -> SystemHandle:
    repo_name = self.config.admin_repository
    name = lambda role: naming.child_name(repo_name, role)
    scope = graph.add_scope(repo_name, ScopeKind.TENANT_SYSTEM)
    pulumi.log.debug(f"declaring tenant system '{repo_name}'")

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

    # 3. Default branch
    graph.declare(name(naming.BRANCH_DEFAULT), ResourceKind.BRANCH_DEFAULT, {
      "repository": Ref(repo.id, "name"),
      "branch": self.config.branch,
    }, scope=scope)

    # 4. Add generated public key to Github deploy key (write access, flux pushes its manifests)
    deploy_key = graph.declare(name(naming.DEPLOY_KEY), ResourceKind.DEPLOY_KEY, {
      "title": "fluxcd",
      "repository": Ref(repo.id, "name"),
      "key": Ref(key.id, "public_key_openssh"),
      "read_only": False,
    }, scope=scope)

    # 5. Flux provider bound to the cluster and the admin repo
    git_url = naming.git_ssh_url(self.config.github_owner, repo_name)
    provider = graph.declare(name(naming.FLUX_PROVIDER), ResourceKind.FLUX_PROVIDER, {
      "config_path": self.config.kubeconfig_path,
      "config_context": self.config.kube_context,
      "url": git_url,
      "branch": self.config.branch,
      "username": "git",
      "private_key": Ref(key.id, "private_key_pem"),
    }, depends_on=[repo.id], scope=scope)

    # 6. Bootstrap Flux into the cluster, only once the deploy key can be used
    bootstrap = graph.declare(name(naming.FLUX_BOOTSTRAP), ResourceKind.FLUX_BOOTSTRAP, {
      "path": self.config.bootstrap_path,
      "provider": Ref(provider.id),
    }, depends_on=[deploy_key.id], scope=scope)

    return SystemHandle(
      scope=scope,
      repository_name=repo_name,
      repository_id=repo.id,
      bootstrap_id=bootstrap.id,
      git_url=git_url,
    )
