from __future__ import annotations

from typing import Iterable, Mapping, Sequence

from ..errors import ConfigurationError


def resolve_order(
    dependencies: Mapping[str, Sequence[str]],
    targets: Iterable[str],
) -> list[str]:
    """Return ``targets`` and their transitive dependencies in execution order.

    The walk is depth-first: dependencies are visited in declaration order and a
    task is emitted only after everything it depends on. Each task appears once.
    """

    order: list[str] = []
    done: set[str] = set()

    def visit(name: str, stack: list[str]) -> None:
        if name in done:
            return
        if name in stack:
            cycle = " -> ".join(stack[stack.index(name):] + [name])
            raise ConfigurationError(f"Cyclic dependency detected: {cycle}")
        if name not in dependencies:
            if stack:
                raise ConfigurationError(
                    f"Task '{stack[-1]}' depends on unknown task '{name}'"
                )
            raise ConfigurationError(f"Unknown task: {name}")
        stack.append(name)
        try:
            for dep in dependencies[name]:
                visit(dep, stack)
        finally:
            stack.pop()
        done.add(name)
        order.append(name)

    for target in targets:
        visit(target, [])
    return order
