class TenancyError(Exception):
  """Base class for everything the tenancy layer raises on purpose"""


class ConfigurationError(TenancyError):
  pass


class InvalidIdentifier(ConfigurationError):
  """A tenant, namespace, team or owner name is not usable as a resource name"""


class AlreadyExists(TenancyError):
  """Two declarations resolved to the same resource name"""

  def __init__(self, node_id: str, scope: str = None):
    self.node_id = node_id
    self.scope = scope
    owner = f" (declared by {scope})" if scope else ""
    super().__init__(f"resource '{node_id}' is already declared{owner}")


class TeamNotFound(TenancyError):
  def __init__(self, team: str):
    self.team = team
    super().__init__(f"GitHub team '{team}' was not found")


class NamespaceConflict(TenancyError):
  def __init__(self, namespace: str, owner: str):
    self.namespace = namespace
    self.owner = owner
    super().__init__(f"namespace '{namespace}' is already claimed by {owner}")


class DependencyNotReady(TenancyError):
  """A resource was declared before something it depends on"""

  def __init__(self, node_id: str, missing):
    self.node_id = node_id
    self.missing = sorted(missing)
    super().__init__(f"'{node_id}' depends on undeclared resources: {', '.join(self.missing)}")
