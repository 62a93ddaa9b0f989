"""Import dependency graph for internal packages.

Parses .py files under a package directory with ``ast`` and collects edges
between project-internal modules (``core.*`` and ``stagehand.*``). Used in
tests to enforce:
  - No cycles inside a package.
  - No forbidden edges (``core`` never imports ``stagehand``).

Imports under ``if TYPE_CHECKING:`` are ignored; relative imports are
resolved against the importing module.
"""
from __future__ import annotations

import ast
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Set, Tuple

INTERNAL_PREFIXES = ("core", "stagehand")


def _is_internal(name: str) -> bool:
    return any(
        name == p or name.startswith(p + ".") for p in INTERNAL_PREFIXES
    )


def _module_name(py: Path, root: Path, package: str) -> str:
    parts = list(py.relative_to(root).with_suffix("").parts)
    if parts[-1] == "__init__":
        parts = parts[:-1]
    return ".".join([package, *parts])


def _is_type_checking(node: ast.If) -> bool:
    test = node.test
    if isinstance(test, ast.Name):
        return test.id == "TYPE_CHECKING"
    return isinstance(test, ast.Attribute) and test.attr == "TYPE_CHECKING"


def _runtime_imports(node: ast.AST) -> Iterator[ast.stmt]:
    if isinstance(node, (ast.Import, ast.ImportFrom)):
        yield node
        return
    for child in ast.iter_child_nodes(node):
        if isinstance(child, ast.If) and _is_type_checking(child):
            for stmt in child.orelse:
                yield from _runtime_imports(stmt)
            continue
        yield from _runtime_imports(child)


def _resolve(node: ast.ImportFrom, module: str, is_package: bool) -> str:
    if not node.level:
        return node.module or ""
    base = module.split(".")
    if not is_package:
        base = base[:-1]
    if node.level > 1:
        base = base[: len(base) - (node.level - 1)]
    return ".".join([*base, node.module] if node.module else base)


def build_import_graph(
    root: str | Path = "core", package: str | None = None
) -> Dict[str, Set[str]]:
    root_path = Path(root)
    package = package or root_path.name
    edges: Dict[str, Set[str]] = {}
    for py in sorted(root_path.rglob("*.py")):
        if "__pycache__" in py.parts:
            continue
        module = _module_name(py, root_path, package)
        tree = ast.parse(py.read_text(encoding="utf-8"))
        targets = edges.setdefault(module, set())
        for node in _runtime_imports(tree):
            if isinstance(node, ast.Import):
                names = [n.name for n in node.names]
            else:
                names = [_resolve(node, module, py.name == "__init__.py")]
            targets.update(n for n in names if _is_internal(n))
    for n in list(edges.keys()):
        for dst in edges[n]:
            edges.setdefault(dst, set())
    return edges


def detect_cycles(graph: Dict[str, Set[str]]) -> List[List[str]]:
    visited: Set[str] = set()
    stack: Set[str] = set()
    cycles: List[List[str]] = []

    def dfs(node: str, path: List[str]):
        if node in stack:
            if node in path:
                idx = path.index(node)
                cycles.append(path[idx:] + [node])
            return
        if node in visited:
            return
        visited.add(node)
        stack.add(node)
        for nxt in sorted(graph.get(node, ())):
            dfs(nxt, path + [nxt])
        stack.remove(node)

    for n in sorted(graph):
        if n not in visited:
            dfs(n, [n])
    return cycles


def forbidden_edges(
    graph: Dict[str, Set[str]], rules: Iterable[Tuple[str, str]]
) -> List[Tuple[str, str]]:
    found: List[Tuple[str, str]] = []
    for src, targets in graph.items():
        for dst in targets:
            for a, b in rules:
                if src.startswith(a) and dst.startswith(b):
                    found.append((src, dst))
    return found


__all__ = [
    "build_import_graph",
    "detect_cycles",
    "forbidden_edges",
]
