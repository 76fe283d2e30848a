"""Declarative resource graph: specs, cross references and ordering."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field, replace
from graphlib import CycleError, TopologicalSorter
from typing import Any

from rollup_deployer.errors import GraphError, UnresolvedReferenceError


@dataclass(frozen=True, slots=True)
class Ref:
    """Placeholder for the address of another resource in the graph."""

    name: str


def _iter_refs(value: Any) -> Iterator[Ref]:
    if isinstance(value, Ref):
        yield value
    elif isinstance(value, (tuple, list)):
        for item in value:
            yield from _iter_refs(item)


def _substitute(value: Any, addresses: Mapping[str, str]) -> Any:
    if isinstance(value, Ref):
        if value.name not in addresses:
            msg = f"No address for referenced resource '{value.name}'"
            raise UnresolvedReferenceError(msg)
        return addresses[value.name]
    if isinstance(value, (tuple, list)):
        return tuple(_substitute(item, addresses) for item in value)
    return value


@dataclass(frozen=True, slots=True)
class ResourceSpec:
    """One contract to create.

    ``constructor_args`` may contain :class:`Ref` placeholders, also nested in
    tuples for struct arguments; every referenced name is a dependency.
    """

    name: str
    code_template: str
    constructor_args: tuple[Any, ...] = ()
    extra_depends_on: frozenset[str] = frozenset()
    verify: bool = True
    contract_path: str | None = None

    @property
    def depends_on(self) -> frozenset[str]:
        refs = {ref.name for ref in _iter_refs(self.constructor_args)}
        return frozenset(refs) | self.extra_depends_on

    @property
    def is_resolved(self) -> bool:
        return next(_iter_refs(self.constructor_args), None) is None

    def resolve(self, addresses: Mapping[str, str]) -> ResourceSpec:
        """Copy of this spec with every Ref replaced by its address."""
        args = tuple(_substitute(arg, addresses) for arg in self.constructor_args)
        return replace(self, constructor_args=args)


@dataclass(frozen=True, slots=True)
class ConfigurationCall:
    """The single call that wires created resources together.

    ``slots`` lists resource names in the target method's positional order.
    """

    target: str
    method: str
    slots: tuple[str, ...]
    gas_limit: int | None = None

    def arguments(self, addresses: Mapping[str, str]) -> tuple[str, ...]:
        return tuple(addresses[name] for name in self.slots)


@dataclass(frozen=True)
class ResourceGraph:
    specs: tuple[ResourceSpec, ...]
    configuration: ConfigurationCall | None = None
    _index: dict[str, ResourceSpec] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        index: dict[str, ResourceSpec] = {}
        for spec in self.specs:
            if spec.name in index:
                msg = f"Duplicate resource name '{spec.name}'"
                raise GraphError(msg)
            index[spec.name] = spec
        for spec in self.specs:
            unknown = spec.depends_on - index.keys()
            if unknown:
                msg = f"Resource '{spec.name}' depends on unknown {sorted(unknown)}"
                raise GraphError(msg)
        if self.configuration is not None:
            names = {self.configuration.target, *self.configuration.slots}
            unknown = names - index.keys()
            if unknown:
                msg = f"Configuration call references unknown {sorted(unknown)}"
                raise GraphError(msg)
        object.__setattr__(self, "_index", index)

    def __getitem__(self, name: str) -> ResourceSpec:
        return self._index[name]

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def __len__(self) -> int:
        return len(self.specs)

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(spec.name for spec in self.specs)

    def topological_order(self) -> list[ResourceSpec]:
        """Dependencies first; ties broken by declaration order."""
        position = {spec.name: i for i, spec in enumerate(self.specs)}
        sorter: TopologicalSorter[str] = TopologicalSorter(
            {spec.name: spec.depends_on for spec in self.specs}
        )
        try:
            sorter.prepare()
        except CycleError as exc:
            msg = f"Dependency cycle: {' -> '.join(exc.args[1])}"
            raise GraphError(msg) from exc

        order: list[ResourceSpec] = []
        ready: list[str] = []
        while sorter.is_active():
            ready.extend(sorter.get_ready())
            ready.sort(key=position.__getitem__)
            name = ready.pop(0)
            order.append(self._index[name])
            sorter.done(name)
        return order


def graph_from_specs(
    specs: Iterable[ResourceSpec], configuration: ConfigurationCall | None = None
) -> ResourceGraph:
    return ResourceGraph(tuple(specs), configuration)
