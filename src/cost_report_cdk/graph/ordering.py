"""Dependency checks and creation order for resource nodes."""

from collections.abc import Sequence
from graphlib import CycleError, TopologicalSorter

from ..exceptions import DependencyError
from .nodes import ResourceNode


def check_dependencies(nodes: Sequence[ResourceNode]) -> None:
    """Fail when a present node depends on, or references, an absent node.

    Raises:
        DependencyError: Naming the dependent node and the missing one
    """
    present = {node.name for node in nodes}
    for node in nodes:
        for dependency in node.dependencies():
            if dependency not in present:
                raise DependencyError(
                    f"Resource '{node.name}' depends on '{dependency}', "
                    f"which is not present under this configuration",
                    node=dependency,
                    dependent=node.name,
                )


def order_nodes(nodes: Sequence[ResourceNode]) -> tuple[ResourceNode, ...]:
    """Return the nodes in a valid creation order.

    Among nodes that are ready at the same time, declaration order wins,
    which makes the result deterministic for a given input sequence.

    Raises:
        DependencyError: On a missing dependency or a dependency cycle
    """
    check_dependencies(nodes)

    by_name = {node.name: node for node in nodes}
    rank = {node.name: index for index, node in enumerate(nodes)}

    sorter: TopologicalSorter[str] = TopologicalSorter()
    for node in nodes:
        sorter.add(node.name, *node.dependencies())

    try:
        sorter.prepare()
    except CycleError as e:
        cycle = e.args[1] if len(e.args) > 1 else []
        raise DependencyError(
            "Resource dependencies form a cycle",
            cycle=" -> ".join(cycle),
        ) from e

    ordered: list[ResourceNode] = []
    ready: list[str] = []
    while sorter.is_active():
        ready.extend(sorter.get_ready())
        # Release one node at a time so a later-declared sibling never
        # jumps ahead of an earlier one that just became ready.
        ready.sort(key=rank.__getitem__)
        name = ready.pop(0)
        ordered.append(by_name[name])
        sorter.done(name)
    return tuple(ordered)
