"""Explicit dependency graph of resource declarations.

Provisioners only declare nodes and edges here; nothing touches Pulumi until
the materializer walks the finished graph. Nodes live in an arena keyed by
id. A node can only be declared once everything it depends on is already in
the arena, so insertion order is always a valid creation order.

Resources whose inputs have to be rendered from other declarations (the Flux
sync manifests) are declared in a second phase: `defer` records the pending
node with its explicit dependency list and `resolve` renders it once those
dependencies are confirmed present.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from tenancy.errors import AlreadyExists, DependencyNotReady, TenancyError


class ResourceKind(str, Enum):
  PRIVATE_KEY = "private_key"
  REPOSITORY = "repository"
  BRANCH_DEFAULT = "branch_default"
  DEPLOY_KEY = "deploy_key"
  TEAM_REPOSITORY = "team_repository"
  FLUX_PROVIDER = "flux_provider"
  FLUX_BOOTSTRAP = "flux_bootstrap"
  SECRET = "secret"
  NAMESPACE = "namespace"
  ROLE_BINDING = "role_binding"
  MANIFEST_BUNDLE = "manifest_bundle"


class ScopeKind(str, Enum):
  TENANT_SYSTEM = "TenantSystem"
  TENANT = "Tenant"


@dataclass(frozen=True)
class Ref:
  """Placeholder for an output of another node (or the node itself when attr is None)"""
  node_id: str
  attr: Optional[str] = None


@dataclass
class ResourceNode:
  id: str
  kind: ResourceKind
  props: Dict[str, Any] = field(default_factory=dict)
  depends_on: Tuple[str, ...] = ()
  scope: Optional[str] = None


@dataclass
class PendingNode:
  id: str
  kind: ResourceKind
  resolve: Callable[[Dict[str, ResourceNode]], Dict[str, Any]]
  depends_on: Tuple[str, ...] = ()
  scope: Optional[str] = None


def find_refs(value) -> List[Ref]:
  """Collect every Ref nested anywhere inside a props value"""
  if isinstance(value, Ref):
    return [value]
  if isinstance(value, dict):
    return [ref for v in value.values() for ref in find_refs(v)]
  if isinstance(value, (list, tuple)):
    return [ref for v in value for ref in find_refs(v)]
  return []


def _merge_edges(props, depends_on) -> Tuple[str, ...]:
  edges = list(depends_on)
  for ref in find_refs(props):
    edges.append(ref.node_id)
  # keep first occurrence so edge order follows declaration order
  return tuple(dict.fromkeys(edges))


class ResourceGraph:
  def __init__(self):
    self._nodes: Dict[str, ResourceNode] = {}
    self._pending: Dict[str, PendingNode] = {}
    self._scopes: Dict[str, ScopeKind] = {}

  def __contains__(self, node_id) -> bool:
    return node_id in self._nodes

  def __getitem__(self, node_id) -> ResourceNode:
    return self._nodes[node_id]

  def __iter__(self) -> Iterator[ResourceNode]:
    return iter(list(self._nodes.values()))

  def __len__(self) -> int:
    return len(self._nodes)

  @property
  def scopes(self) -> Dict[str, ScopeKind]:
    return dict(self._scopes)

  @property
  def pending(self) -> List[PendingNode]:
    return list(self._pending.values())

  def add_scope(self, name: str, kind: ScopeKind) -> str:
    if name in self._scopes:
      raise AlreadyExists(name, self._scopes[name].value)
    self._scopes[name] = kind
    return name

  def _check_new(self, node_id: str, depends_on, scope):
    if node_id in self._nodes:
      raise AlreadyExists(node_id, self._nodes[node_id].scope)
    if node_id in self._pending:
      raise AlreadyExists(node_id, self._pending[node_id].scope)
    if scope is not None and scope not in self._scopes:
      raise TenancyError(f"unknown scope '{scope}' for '{node_id}'")
    missing = [dep for dep in depends_on if dep not in self._nodes]
    if missing:
      raise DependencyNotReady(node_id, missing)

  def declare(
      self,
      node_id: str,
      kind: ResourceKind,
      props: Optional[dict] = None,
      depends_on=(),
      scope: Optional[str] = None,
  ) -> ResourceNode:
    props = props or {}
    edges = _merge_edges(props, depends_on)
    self._check_new(node_id, edges, scope)
    node = ResourceNode(node_id, kind, props, edges, scope)
    self._nodes[node_id] = node
    return node

  def defer(
      self,
      node_id: str,
      kind: ResourceKind,
      resolve: Callable[[Dict[str, ResourceNode]], dict],
      depends_on=(),
      scope: Optional[str] = None,
  ) -> PendingNode:
    edges = tuple(dict.fromkeys(depends_on))
    self._check_new(node_id, edges, scope)
    pending = PendingNode(node_id, kind, resolve, edges, scope)
    self._pending[node_id] = pending
    return pending

  def resolve(self, scope: Optional[str] = None) -> List[ResourceNode]:
    """Render pending nodes (all, or only those in `scope`) into the arena"""
    resolved = []
    for pending in list(self._pending.values()):
      if scope is not None and pending.scope != scope:
        continue
      missing = [dep for dep in pending.depends_on if dep not in self._nodes]
      if missing:
        raise DependencyNotReady(pending.id, missing)
      props = pending.resolve({dep: self._nodes[dep] for dep in pending.depends_on})
      del self._pending[pending.id]
      resolved.append(self.declare(pending.id, pending.kind, props, pending.depends_on, pending.scope))
    return resolved

  def dependencies(self, node_id: str, transitive: bool = False) -> set:
    node = self._nodes[node_id]
    if not transitive:
      return set(node.depends_on)
    seen = set()
    stack = list(node.depends_on)
    while stack:
      dep = stack.pop()
      if dep in seen:
        continue
      seen.add(dep)
      stack.extend(self._nodes[dep].depends_on)
    return seen

  def scope_nodes(self, scope: str) -> List[ResourceNode]:
    return [node for node in self._nodes.values() if node.scope == scope]

  def discard_scope(self, scope: str) -> List[str]:
    """Drop a scope with everything declared in it, returning the removed ids"""
    doomed = {node.id for node in self.scope_nodes(scope)}
    for node in self._nodes.values():
      if node.scope != scope and doomed.intersection(node.depends_on):
        raise TenancyError(f"cannot discard '{scope}': '{node.id}' depends on it")
    for node_id in doomed:
      del self._nodes[node_id]
    for pending in [p for p in self._pending.values() if p.scope == scope]:
      del self._pending[pending.id]
    self._scopes.pop(scope, None)
    return sorted(doomed)
