"""Stack configuration for the tenancy program.

Read from `pulumi.Config()` and validated with pydantic. Example stack config:

  config:
    flux-tenancy:github_owner: foot-org
    flux-tenancy:tenants:
      - name: ai-team
        namespaces:
          - name: ai
          - name: observability
        githubTeams:
          - name: ai-admins

The GitHub token is not part of this model; set it with
`pulumi config set --secret github:token <token>` or GITHUB_TOKEN.
"""

import os
import re
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from tenancy.errors import ConfigurationError, InvalidIdentifier

# RFC 1123 label: usable as a Kubernetes namespace, a GitHub repo prefix and a Pulumi name
DNS_LABEL = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
GITHUB_LOGIN = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9]|-(?=[A-Za-z0-9])){0,38}$")
MAX_LABEL = 63

# github.com ECDSA host key, pinned into every tenant's flux secret
GITHUB_KNOWN_HOSTS = (
  "github.com ecdsa-sha2-nistp256 AAAAE2VjZHNhLXNoYTItbmlzdHAyNTYAAAAIbmlzdHAyNTYAAABBBEmKSENjQEezOmxkZMy7opKgwFB9n"
  "kt5YRrYMjNuG5N87uRgg6CLrbo5wAdT/y6v0mKV0U2w0WZ2YB/++Tpockg="
)

IDENTIFIER_FIELDS = {"name", "github_owner", "admin_repository", "flux_namespace"}


def _check_label(value: str, what: str) -> str:
  if not value or len(value) > MAX_LABEL or not DNS_LABEL.match(value):
    raise ValueError(f"{what} '{value}' must be a lowercase DNS label of at most {MAX_LABEL} characters")
  return value


def _unique(items, what: str):
  seen = set()
  for item in items:
    if item.name in seen:
      raise ValueError(f"duplicate {what} '{item.name}'")
    seen.add(item.name)
  return items


class Namespace(BaseModel):
  model_config = ConfigDict(frozen=True)

  name: str

  @field_validator("name")
  @classmethod
  def _valid_name(cls, value):
    return _check_label(value, "namespace")


class GithubTeam(BaseModel):
  model_config = ConfigDict(frozen=True)

  name: str

  @field_validator("name")
  @classmethod
  def _valid_name(cls, value):
    return _check_label(value, "team slug")


class Tenant(BaseModel):
  model_config = ConfigDict(frozen=True, populate_by_name=True)

  name: str
  namespaces: List[Namespace] = Field(default_factory=list)
  github_teams: List[GithubTeam] = Field(default_factory=list, alias="githubTeams")

  @field_validator("name")
  @classmethod
  def _valid_name(cls, value):
    return _check_label(value, "tenant name")

  @field_validator("namespaces")
  @classmethod
  def _unique_namespaces(cls, value):
    return _unique(value, "namespace")

  @field_validator("github_teams", mode="before")
  @classmethod
  def _teams_may_be_null(cls, value):
    return value or []

  @field_validator("github_teams")
  @classmethod
  def _unique_teams(cls, value):
    return _unique(value, "team")


class TenancyConfig(BaseModel):
  model_config = ConfigDict(frozen=True)

  github_owner: str
  tenants: List[Tenant] = Field(default_factory=list)
  admin_repository: str = "workspace-admin"
  branch: str = "main"
  bootstrap_path: str = "kubernetes"
  sync_target_path: str = "clusters/my-cluster"
  sync_interval: str = "1m0s"
  flux_namespace: str = "flux-system"
  kubeconfig_path: str = "~/.kube/config"
  kube_context: Optional[str] = None
  known_hosts: str = GITHUB_KNOWN_HOSTS
  verify_teams: bool = False
  allow_empty_tenants: bool = False

  @field_validator("github_owner")
  @classmethod
  def _valid_owner(cls, value):
    if not value or not GITHUB_LOGIN.match(value):
      raise ValueError(f"github owner '{value}' is not a valid GitHub login")
    return value

  @field_validator("admin_repository", "flux_namespace")
  @classmethod
  def _valid_label(cls, value):
    return _check_label(value, "name")

  @model_validator(mode="after")
  def _tenants_present(self):
    if not self.tenants and not self.allow_empty_tenants:
      raise ValueError("no tenants configured (set allow_empty_tenants to bootstrap the admin system only)")
    _unique(self.tenants, "tenant")
    return self


def parse_config(data: dict) -> TenancyConfig:
  """Validate raw config, translating pydantic errors into tenancy errors"""
  try:
    return TenancyConfig.model_validate(data)
  except ValidationError as e:
    details = "; ".join(
      f"{'.'.join(str(part) for part in err['loc']) or 'config'}: {err['msg']}" for err in e.errors()
    )
    bad_identifier = any(
      err["loc"] and err["loc"][-1] in IDENTIFIER_FIELDS for err in e.errors()
    )
    if bad_identifier:
      raise InvalidIdentifier(details) from e
    raise ConfigurationError(details) from e


def load_config(config) -> TenancyConfig:
  """Build a TenancyConfig from a `pulumi.Config` (or anything with the same getters)"""
  owner = config.get("github_owner") or os.environ.get("GITHUB_OWNER")
  if not owner:
    raise ConfigurationError("github_owner is required (pulumi config set github_owner <org>, or GITHUB_OWNER)")

  data = {
    "github_owner": owner,
    "tenants": config.get_object("tenants") or [],
  }
  for key in ("admin_repository", "branch", "bootstrap_path", "sync_target_path",
              "sync_interval", "flux_namespace", "kubeconfig_path", "kube_context", "known_hosts"):
    value = config.get(key)
    if value is not None:
      data[key] = value
  for key in ("verify_teams", "allow_empty_tenants"):
    value = config.get_bool(key)
    if value is not None:
      data[key] = value

  return parse_config(data)
