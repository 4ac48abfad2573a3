"""Deterministic names for everything a tenant (or the admin system) owns.

Every child resource is named `{parent_id}-{role}`. The parent id is a
validated tenant name (or the admin repository name) and the role comes from
the closed set below, so re-running with the same config always produces the
same names.

Roles carrying a namespace or team put it after a fixed prefix, joined with
dots (`ai-team-cluster-role-binding.ai.ai-admins`). A DNS label never
contains a dot, so a namespace or team can not run into the tenant name and
two tenants never derive the same name.
"""

SEPARATOR = "-"
PARAM_SEPARATOR = "."

PRIVATE_KEY = "private-key"
REPOSITORY = "repository"
WORKSPACE = "workspace"
BRANCH_DEFAULT = "branch-default"
DEPLOY_KEY = "repository-deploy-key"
FLUX_PROVIDER = "flux-provider"
FLUX_BOOTSTRAP = "flux-bootstrap"
FLUX_SECRET = "flux-secret"
AUTOMATION = "automation"
FLUX_SYNC = "flux-sync"

ROLES = frozenset([
  PRIVATE_KEY,
  REPOSITORY,
  WORKSPACE,
  BRANCH_DEFAULT,
  DEPLOY_KEY,
  FLUX_PROVIDER,
  FLUX_BOOTSTRAP,
  FLUX_SECRET,
  AUTOMATION,
  FLUX_SYNC,
])

TEAM_REPOSITORY = "team-repository"
NAMESPACE = "namespace"
ROLE_BINDING = "cluster-role-binding"


def child_name(parent_id: str, role: str) -> str:
  return f"{parent_id}{SEPARATOR}{role}"


def _parameterised(prefix: str, *params: str) -> str:
  return PARAM_SEPARATOR.join((prefix,) + params)


def team_repository_role(team: str) -> str:
  return _parameterised(TEAM_REPOSITORY, team)


def namespace_role(namespace: str) -> str:
  return _parameterised(NAMESPACE, namespace)


def role_binding_role(namespace: str, team: str) -> str:
  return _parameterised(ROLE_BINDING, namespace, team)


def role_binding_name(team: str) -> str:
  """In-cluster name of the RoleBinding granting `team` admin in a namespace"""
  return f"{team}-admin"


def git_ssh_url(owner: str, repository: str) -> str:
  return f"ssh://git@github.com/{owner}/{repository}.git"
