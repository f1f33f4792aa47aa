"""Walk the live component graph and index host elements by owning component."""
import logging
from typing import Any, Dict, FrozenSet, Hashable, Iterable, List, Optional, Protocol, Sequence, Tuple

from scripts.a11y_core.config import DEFAULT_FRAMEWORK_PATTERNS, MAX_COMPONENT_NODES
from scripts.a11y_core.models import ComponentDescriptor, ComponentKind

LOGGER = logging.getLogger("a11y-scan")


class ComponentGraph(Protocol):
    """Read-only view of a component graph; nodes are opaque hashable keys."""

    def root(self) -> Optional[Hashable]: ...

    def child(self, node: Hashable) -> Optional[Hashable]: ...

    def sibling(self, node: Hashable) -> Optional[Hashable]: ...

    def name(self, node: Hashable) -> Optional[str]: ...

    def kind(self, node: Hashable) -> ComponentKind: ...

    def element(self, node: Hashable) -> Optional[str]: ...


class SnapshotGraph:
    """Graph over the id-linked snapshot produced by the page bundle.

    Snapshot shape::

        {"root": "f1", "strategy": "devtools-hook", "truncated": false,
         "nodes": {"f1": {"name": ..., "kind": "host" | "composite",
                          "child": "f2" | null, "sibling": ... | null,
                          "element": "e4" | null}}}

    Links to ids that are missing from ``nodes`` are treated as absent.
    """

    def __init__(self, snapshot: Dict[str, Any]):
        nodes = snapshot.get("nodes") if isinstance(snapshot, dict) else None
        self.nodes: Dict[str, Dict[str, Any]] = {
            str(k): v for k, v in (nodes or {}).items() if isinstance(v, dict)
        }
        self.strategy: Optional[str] = snapshot.get("strategy") if isinstance(snapshot, dict) else None
        self.truncated = bool(snapshot.get("truncated")) if isinstance(snapshot, dict) else False
        self._root = snapshot.get("root") if isinstance(snapshot, dict) else None

    def _link(self, node: Hashable, key: str) -> Optional[str]:
        target = self.nodes.get(node, {}).get(key)
        return target if target in self.nodes else None

    def root(self) -> Optional[str]:
        return self._root if self._root in self.nodes else None

    def child(self, node: Hashable) -> Optional[str]:
        return self._link(node, "child")

    def sibling(self, node: Hashable) -> Optional[str]:
        return self._link(node, "sibling")

    def name(self, node: Hashable) -> Optional[str]:
        name = self.nodes.get(node, {}).get("name")
        return name if isinstance(name, str) else None

    def kind(self, node: Hashable) -> ComponentKind:
        if self.nodes.get(node, {}).get("kind") == "host":
            return ComponentKind.HOST
        return ComponentKind.COMPOSITE

    def element(self, node: Hashable) -> Optional[str]:
        handle = self.nodes.get(node, {}).get("element")
        return handle if isinstance(handle, str) else None


def is_named(name: Optional[str]) -> bool:
    return bool(name) and name != "Anonymous" and not name.startswith("_")


def is_framework_component(name: Optional[str], patterns: Sequence[str] = DEFAULT_FRAMEWORK_PATTERNS) -> bool:
    if not name:
        return False
    if name.startswith("_") or "Suspense" in name or "ErrorBoundary" in name:
        return True
    return any(name == pattern or name.startswith(pattern + ".") for pattern in patterns)


def filter_user_components(path: Iterable[str], patterns: Sequence[str] = DEFAULT_FRAMEWORK_PATTERNS) -> List[str]:
    return [name for name in path if not is_framework_component(name, patterns)]


class ComponentTreeWalker:
    """Depth-first, cycle-safe walk producing one descriptor per named node.

    Unnamed nodes (no name, ``Anonymous`` or a leading ``_``) are skipped but
    their subtrees are still walked, so descendants hang off the nearest
    named ancestor. The walk is iterative and stops at ``max_nodes``.
    """

    def __init__(self, max_nodes: int = MAX_COMPONENT_NODES):
        self.max_nodes = max_nodes
        self.visited_count = 0
        self.truncated = False

    def traverse(self, graph: ComponentGraph) -> List[ComponentDescriptor]:
        descriptors: List[ComponentDescriptor] = []
        self.visited_count = 0
        self.truncated = False

        root = graph.root()
        if root is None:
            return descriptors

        visited = set()
        stack: List[Tuple[Optional[Hashable], Tuple[str, ...]]] = [(root, ())]
        while stack:
            node, path = stack.pop()
            if node is None or node in visited:
                continue
            if len(visited) >= self.max_nodes:
                self.truncated = True
                LOGGER.warning("Max component count (%d) reached, stopping traversal", self.max_nodes)
                break
            visited.add(node)

            name = graph.name(node)
            child_path = path
            if is_named(name):
                child_path = path + (name,)
                descriptors.append(ComponentDescriptor(name, graph.kind(node), child_path, graph.element(node)))

            # Sibling goes on the stack first so the child's subtree is finished before it.
            stack.append((graph.sibling(node), path))
            stack.append((graph.child(node), child_path))

        self.visited_count = len(visited)
        return descriptors


class ComponentIndex:
    """Element handle -> owning composite component for a single scan.

    Built once from the descriptors of one traversal and never mutated.
    """

    def __init__(self, by_element: Dict[str, ComponentDescriptor], names: FrozenSet[str]):
        self._by_element = dict(by_element)
        self._names = names

    @classmethod
    def build(cls, descriptors: Iterable[ComponentDescriptor]) -> "ComponentIndex":
        descriptors = list(descriptors)
        composites: Dict[Tuple[str, ...], ComponentDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.kind is ComponentKind.COMPOSITE:
                composites.setdefault(descriptor.path, descriptor)

        by_element: Dict[str, ComponentDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.kind is not ComponentKind.HOST or not descriptor.element:
                continue
            owner = cls._owner(descriptor.path, composites)
            if owner is not None:
                by_element.setdefault(descriptor.element, owner)
        return cls(by_element, frozenset(d.name for d in descriptors))

    @staticmethod
    def _owner(
        path: Tuple[str, ...], composites: Dict[Tuple[str, ...], ComponentDescriptor]
    ) -> Optional[ComponentDescriptor]:
        for end in range(len(path) - 1, 0, -1):
            owner = composites.get(path[:end])
            if owner is not None:
                return owner
        return None

    def has_component(self, name: Optional[str]) -> bool:
        return name in self._names

    def lookup(self, handle: Optional[str]) -> Optional[ComponentDescriptor]:
        if handle is None:
            return None
        return self._by_element.get(handle)

    def nearest(self, handles: Iterable[Optional[str]]) -> Optional[ComponentDescriptor]:
        """First mapped handle in nearest-first order."""
        for handle in handles:
            found = self.lookup(handle)
            if found is not None:
                return found
        return None

    def __len__(self) -> int:
        return len(self._by_element)
