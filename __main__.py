"""Flux multi-tenancy layer: admin workspace plus one GitOps workspace per tenant"""

import pulumi
from tenancy.config import load_config
from tenancy.materialize import PulumiMaterializer
from tenancy.orchestrator import Orchestrator

# Stack config: github_owner, tenants, ... (see tenancy/config.py)
config = load_config(pulumi.Config())
# GitHub token for repos, deploy keys and team grants - set via: pulumi config set --secret github:token <token>
# Or set GITHUB_TOKEN environment variable
gh_config = pulumi.Config("github")
gh_token = gh_config.get_secret("token")

materializer = PulumiMaterializer(config, github_token=gh_token)
# Unknown teams (verify_teams) fail only the tenant that names them
plan = Orchestrator(config, team_lookup=materializer.lookup_team).plan()
created = materializer.apply(plan.graph)

pulumi.export("admin_repository", created[plan.system.repository_id].name)
pulumi.export("tenant_repositories", {
  name: created[handle.repository_id].name for name, handle in plan.tenants.items()
})
pulumi.export("tenant_git_urls", {name: handle.git_url for name, handle in plan.tenants.items()})
pulumi.export("failed_tenants", sorted(plan.failures))
