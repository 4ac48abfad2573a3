"""Pulumi constructors for each kind of node in the resource graph.

Each builder takes the node id (used as the Pulumi resource name), its props
with every Ref already swapped for the referenced output, and the resource
options prepared by the materializer (parent, depends_on, provider).
"""

import os

import pulumi
import pulumi_flux as flux
import pulumi_github as github
import pulumi_kubernetes as kubernetes
import pulumi_kubernetes.yaml.v2 as k8s_yaml
import pulumi_tls as tls

from tenancy.graph import ResourceKind

RBAC_API_GROUP = "rbac.authorization.k8s.io"


def private_key(name: str, props: dict, opts: pulumi.ResourceOptions):
  return tls.PrivateKey(name,
    algorithm=props["algorithm"],
    ecdsa_curve=props["ecdsa_curve"],
    opts=opts,
  )


def repository(name: str, props: dict, opts: pulumi.ResourceOptions):
  return github.Repository(name,
    name=props["name"],
    visibility=props["visibility"],
    auto_init=props["auto_init"],            # default branch needs a first commit to point at
    opts=opts,
  )


def branch_default(name: str, props: dict, opts: pulumi.ResourceOptions):
  return github.BranchDefault(name,
    repository=props["repository"],
    branch=props["branch"],
    opts=opts,
  )


def deploy_key(name: str, props: dict, opts: pulumi.ResourceOptions):
  # Write access required for Flux to push its own manifests
  return github.RepositoryDeployKey(name,
    title=props["title"],
    repository=props["repository"],
    key=props["key"],
    read_only=props["read_only"],
    opts=opts,
  )


def team_repository(name: str, props: dict, opts: pulumi.ResourceOptions):
  return github.TeamRepository(name,
    team_id=props["team_id"],                # id or slug
    repository=props["repository"],
    permission=props["permission"],
    opts=opts,
  )


def flux_provider(name: str, props: dict, opts: pulumi.ResourceOptions):
  return flux.Provider(name,
    kubernetes=flux.ProviderKubernetesArgs(
      config_path=props["config_path"],
      config_context=props.get("config_context"),
    ),
    git=flux.ProviderGitArgs(
      url=props["url"],
      branch=props["branch"],
      ssh=flux.ProviderGitSshArgs(username=props["username"], private_key=props["private_key"]),
    ),
    opts=opts,
  )


def flux_bootstrap(name: str, props: dict, opts: pulumi.ResourceOptions):
  # This does exactly what `flux bootstrap git` does
  return flux.FluxBootstrapGit(name,
    path=props["path"],                      # Folder in repo to sync
    opts=pulumi.ResourceOptions.merge(opts, pulumi.ResourceOptions(provider=props["provider"])),
  )


def secret(name: str, props: dict, opts: pulumi.ResourceOptions):
  return kubernetes.core.v1.Secret(name,
    metadata=kubernetes.meta.v1.ObjectMetaArgs(
      name=props["name"],
      namespace=props["namespace"],
    ),
    string_data=props["string_data"],
    opts=opts,
  )


def namespace(name: str, props: dict, opts: pulumi.ResourceOptions):
  return kubernetes.core.v1.Namespace(name,
    metadata=kubernetes.meta.v1.ObjectMetaArgs(
      name=props["name"],
    ),
    opts=opts,
  )


def role_binding(name: str, props: dict, opts: pulumi.ResourceOptions):
  return kubernetes.rbac.v1.RoleBinding(name,
    metadata=kubernetes.meta.v1.ObjectMetaArgs(
      name=props["name"],
      namespace=props["namespace"],
    ),
    role_ref=kubernetes.rbac.v1.RoleRefArgs(
      api_group=RBAC_API_GROUP,
      kind="ClusterRole",
      name=props["cluster_role"],
    ),
    subjects=[kubernetes.rbac.v1.SubjectArgs(
      api_group=RBAC_API_GROUP,
      kind="Group",
      name=props["group"],
    )],
    opts=opts,
  )


def manifest_bundle(name: str, props: dict, opts: pulumi.ResourceOptions):
  return k8s_yaml.ConfigGroup(name,
    yaml=props["yaml"],
    opts=opts,
  )


BUILDERS = {
  ResourceKind.PRIVATE_KEY: private_key,
  ResourceKind.REPOSITORY: repository,
  ResourceKind.BRANCH_DEFAULT: branch_default,
  ResourceKind.DEPLOY_KEY: deploy_key,
  ResourceKind.TEAM_REPOSITORY: team_repository,
  ResourceKind.FLUX_PROVIDER: flux_provider,
  ResourceKind.FLUX_BOOTSTRAP: flux_bootstrap,
  ResourceKind.SECRET: secret,
  ResourceKind.NAMESPACE: namespace,
  ResourceKind.ROLE_BINDING: role_binding,
  ResourceKind.MANIFEST_BUNDLE: manifest_bundle,
}

GITHUB_KINDS = {
  ResourceKind.REPOSITORY,
  ResourceKind.BRANCH_DEFAULT,
  ResourceKind.DEPLOY_KEY,
  ResourceKind.TEAM_REPOSITORY,
}

KUBERNETES_KINDS = {
  ResourceKind.SECRET,
  ResourceKind.NAMESPACE,
  ResourceKind.ROLE_BINDING,
  ResourceKind.MANIFEST_BUNDLE,
}


def github_provider(owner: str, token=None):
  # Token falls back to the GITHUB_TOKEN env var when not set in config
  return github.Provider("github-provider",
    owner=owner,
    token=token,
  )


def kubernetes_provider(kubeconfig_path: str, context: str = None):
  return kubernetes.Provider("k8s-provider",
    kubeconfig=os.path.expanduser(kubeconfig_path),
    context=context,
  )
