"""Cycle detection over declared out-edges.

One routine serves parent chains (out-degree at most one), formula
dependency lists and workflow step links. Callers describe their graph with
an edge lookup: a function returning the ids a node points to.
"""

from __future__ import annotations

from typing import Callable, Iterable, Iterator, List, Mapping, Optional, Sequence

EdgeLookup = Callable[[str], Iterable[str]]


def find_cycle(start: str, get_edges: EdgeLookup) -> Optional[List[str]]:
    """Walk forward from a node and return the path that closes a cycle.

    The walk keeps the ids on the current path in a visited set seeded with
    the start id; stepping onto an id already on the path means a cycle.
    Nodes whose edges were fully explored without finding one are not
    walked again, so shared descendants (x -> y, x -> z, y -> w, z -> w)
    are not mistaken for cycles.

    Args:
        start: Id to start from
        get_edges: Returns the ids a node points to (empty for unknown ids)

    Returns:
        The walked path ending with the revisited id (e.g. ['a', 'b', 'a']),
        or None if no cycle is reachable
    """
    path: List[str] = [start]
    on_path = {start}
    explored = set()
    pending: List[Iterator[str]] = [iter(get_edges(start) or ())]

    while pending:
        for next_id in pending[-1]:
            if next_id is None:
                continue
            if next_id in on_path:
                return path + [next_id]
            if next_id in explored:
                continue
            path.append(next_id)
            on_path.add(next_id)
            pending.append(iter(get_edges(next_id) or ()))
            break
        else:
            pending.pop()
            done = path.pop()
            on_path.discard(done)
            explored.add(done)

    return None


def has_cycle(start: str, get_edges: EdgeLookup) -> bool:
    """Check if a cycle is reachable from a node."""
    return find_cycle(start, get_edges) is not None


def nodes_in_cycles(ids: Iterable[str], get_edges: EdgeLookup) -> List[str]:
    """Ids (in input order) from which a cycle is reachable."""
    return [node_id for node_id in ids if has_cycle(node_id, get_edges)]


def parent_edges(parent_of: Mapping[str, Optional[str]]) -> EdgeLookup:
    """Edge lookup following parent pointers.

    The mapping is read on every call, so later edits are seen by the walk.
    """

    def lookup(node_id: str) -> Sequence[str]:
        parent = parent_of.get(node_id)
        return [parent] if parent else []

    return lookup


def dependency_edges(dependencies: Mapping[str, Iterable[str]]) -> EdgeLookup:
    """Edge lookup following declared dependency lists."""

    def lookup(node_id: str) -> Iterable[str]:
        return dependencies.get(node_id) or ()

    return lookup


def format_cycle(path: Sequence[str]) -> str:
    return " -> ".join(path)
