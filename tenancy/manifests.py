from dataclasses import dataclass

import yaml

SOURCE_API_VERSION = "source.toolkit.fluxcd.io/v1"
KUSTOMIZE_API_VERSION = "kustomize.toolkit.fluxcd.io/v1"


@dataclass(frozen=True)
class FluxSync:
  content: str
  secret: str
  namespace: str


def render_flux_sync(
    name: str,
    target_path: str,
    url: str,
    branch: str,
    secret: str,
    namespace: str = "flux-system",
    interval: str = "1m0s",
) -> FluxSync:
  """
  Render the GitRepository + Kustomization pair that points Flux at a repo path.

  Equivalent to `flux create source git` followed by `flux create kustomization`
  for the same name, which is what the flux_sync data source used to produce.
  """
  path = target_path if target_path.startswith("./") else f"./{target_path.strip('/')}"
  git_repository = {
    "apiVersion": SOURCE_API_VERSION,
    "kind": "GitRepository",
    "metadata": {"name": name, "namespace": namespace},
    "spec": {
      "interval": interval,
      "ref": {"branch": branch},
      "secretRef": {"name": secret},
      "url": url,
    },
  }
  kustomization = {
    "apiVersion": KUSTOMIZE_API_VERSION,
    "kind": "Kustomization",
    "metadata": {"name": name, "namespace": namespace},
    "spec": {
      "interval": "10m0s",
      "path": path,
      "prune": True,
      "sourceRef": {"kind": "GitRepository", "name": name},
    },
  }
  content = yaml.safe_dump_all([git_repository, kustomization], sort_keys=False)
  return FluxSync(content=content, secret=secret, namespace=namespace)
