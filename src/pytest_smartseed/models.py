"""Data models for dynamic sensitivity analysis."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from pytest_smartseed.similarity import is_similar


@dataclass(frozen=True)
class Instruction:
    """A source-level site in the program under test."""

    module: str
    qualname: str
    lineno: int
    opname: str  # "RETURN_VALUE", "COMPARE_OP", "LOAD_FAST", "LOAD_CONST", ...
    arg: Any = None  # loaded name, constant operand, ...

    @property
    def site_id(self) -> str:
        base = f"{self.module}:{self.qualname}:{self.lineno}:{self.opname}"
        if self.arg is None:
            return base
        return f"{base}:{self.arg!r}"

    def __str__(self) -> str:
        return self.site_id


class VarKind(enum.Enum):
    CONSTANT = "constant"
    PARAMETER = "parameter"
    INSTANCE_FIELD = "instance_field"
    STATIC_FIELD = "static_field"
    LOCAL = "local"


@dataclass(frozen=True)
class RootVariable:
    """A node of the static dependency graph hypothesized to influence a branch."""

    kind: VarKind
    instruction: Instruction
    name: str = ""
    owner: str | None = None  # "module.Class" for fields
    param_index: int | None = None  # 1-based, parameters only
    children: tuple[RootVariable, ...] = field(default=(), compare=False, hash=False)

    @property
    def is_constant(self) -> bool:
        return self.kind is VarKind.CONSTANT

    @property
    def is_parameter(self) -> bool:
        return self.kind is VarKind.PARAMETER

    @property
    def is_field(self) -> bool:
        return self.kind in (VarKind.INSTANCE_FIELD, VarKind.STATIC_FIELD)

    def all_children_including_itself(self) -> list[RootVariable]:
        result: list[RootVariable] = []
        stack = [self]
        while stack:
            var = stack.pop()
            if var in result:
                continue
            result.append(var)
            stack.extend(reversed(var.children))
        return result


@dataclass(frozen=True)
class Branch:
    """One outcome of a decision point."""

    module: str
    qualname: str
    lineno: int  # line of the decision
    target_lineno: int | None  # first line executed when the outcome is taken
    outcome: bool = True

    def __str__(self) -> str:
        side = "T" if self.outcome else "F"
        return f"{self.module}:{self.qualname}:{self.lineno}{side}"


@dataclass(frozen=True)
class ComputationPath:
    """A static chain from a root variable to the tail instruction it reaches."""

    branch: Branch
    nodes: tuple[RootVariable, ...]
    tail: Instruction

    @property
    def root(self) -> RootVariable:
        return self.nodes[0]


@dataclass(frozen=True)
class TargetOperation:
    """The callable under test, addressed by module and qualified name."""

    module: str
    qualname: str

    @property
    def signature(self) -> str:
        return f"{self.module}.{self.qualname}"

    @property
    def is_method(self) -> bool:
        return "." in self.qualname


@dataclass(frozen=True)
class ConstantValue:
    """A compile-time constant resolved from its defining instruction."""

    instruction: Instruction
    value: Any


@dataclass(frozen=True)
class InputSnapshot:
    """Input values of one trial, captured after its mutation."""

    values: dict[int, Any]  # statement position -> primitive value
    constants: dict[str, Any]  # instruction site id -> constant value
    mutated_position: int | None = None
    previous_value: Any = None

    @property
    def head(self) -> Any:
        if self.mutated_position is not None:
            return self.values.get(self.mutated_position)
        if self.values:
            return self.values[min(self.values)]
        if self.constants:
            return next(iter(self.constants.values()))
        return None


@dataclass
class ObservationRecord:
    """Outcome of one trial."""

    inputs: InputSnapshot
    observations: dict[str, list[Any]]

    @property
    def head(self) -> Any:
        return self.inputs.head

    @property
    def tails(self) -> list[Any]:
        return [v for values in self.observations.values() for v in values]

    @property
    def observed_nothing(self) -> bool:
        return all(len(values) == 0 for values in self.observations.values())


@dataclass
class ValuePreservance:
    """All trial records for one (branch, root variables, observations) triple."""

    observations: list[Instruction] = field(default_factory=list)
    root_variables: list[RootVariable] = field(default_factory=list)
    records: list[ObservationRecord] = field(default_factory=list)
    branch: Branch | None = None

    def add_record(self, record: ObservationRecord) -> None:
        self.records.append(record)

    @property
    def trials(self) -> int:
        return len(self.records)

    @property
    def is_empty(self) -> bool:
        return all(r.observed_nothing for r in self.records)

    @property
    def value_preserving_count(self) -> int:
        return sum(1 for r in self.records if _is_value_preserving(r))

    @property
    def sensitivity_preserving_count(self) -> int:
        return sum(
            1
            for prev, cur in zip(self.records, self.records[1:])
            if _is_sensitivity_preserving(prev, cur)
        )

    @property
    def value_preservation_ratio(self) -> float:
        if not self.records:
            return 0.0
        return self.value_preserving_count / self.trials

    @property
    def sensitivity_ratio(self) -> float:
        if not self.records:
            return 0.0
        return self.sensitivity_preserving_count / self.trials


def _is_value_preserving(record: ObservationRecord) -> bool:
    head = record.head
    if head is None:
        return False
    return any(tail is not None and is_similar(head, tail) for tail in record.tails)


def _is_sensitivity_preserving(prev: ObservationRecord, cur: ObservationRecord) -> bool:
    if prev.head is None or cur.head is None:
        return False
    prev_tails, cur_tails = prev.tails, cur.tails
    if not prev_tails or not cur_tails:
        return False
    if any(t is None for t in prev_tails) or any(t is None for t in cur_tails):
        return False
    return prev.head != cur.head and prev_tails != cur_tails
