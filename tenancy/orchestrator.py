from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

import pulumi

from tenancy.config import TenancyConfig
from tenancy.errors import NamespaceConflict, TenancyError
from tenancy.graph import ResourceGraph
from tenancy.system import SystemHandle, TenantSystemProvisioner
from tenancy.tenant import TenantHandle, TenantProvisioner


@dataclass
class Plan:
  graph: ResourceGraph
  system: SystemHandle
  tenants: Dict[str, TenantHandle] = field(default_factory=dict)
  failures: Dict[str, TenancyError] = field(default_factory=dict)


class Orchestrator:
  """
  Declares the admin system followed by one provisioner per tenant.

  Tenants only depend on the system bootstrap, never on each other. A failing
  tenant (namespace conflict, name collision, unknown team) is reported and
  left out of the plan; a failing system propagates.
  """

  def __init__(self, config: TenancyConfig, team_lookup: Optional[Callable[[str], str]] = None):
    self.config = config
    # teams are only looked up when the stack asks for it
    self.team_lookup = team_lookup if config.verify_teams else None

  def plan(self) -> Plan:
    graph = ResourceGraph()
    system = TenantSystemProvisioner(self.config).declare(graph)
    plan = Plan(graph=graph, system=system)

    claimed = {self.config.flux_namespace: "the flux system"}
    for tenant in self.config.tenants:
      try:
        for namespace in tenant.namespaces:
          if namespace.name in claimed:
            raise NamespaceConflict(namespace.name, claimed[namespace.name])
        handle = TenantProvisioner(tenant, self.config, system, self.team_lookup).declare(graph)
      except TenancyError as e:
        pulumi.log.error(f"tenant '{tenant.name}' was not provisioned: {e}")
        plan.failures[tenant.name] = e
        continue
      for namespace in tenant.namespaces:
        claimed[namespace.name] = f"tenant '{tenant.name}'"
      plan.tenants[tenant.name] = handle

    pulumi.log.info(
      f"planned {len(graph)} resources for {len(plan.tenants)} tenants"
      + (f", {len(plan.failures)} failed" if plan.failures else "")
    )
    return plan
