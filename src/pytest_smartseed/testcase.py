"""Test case representation: statements, variable references and chromosomes."""

from __future__ import annotations

import abc
import copy
from dataclasses import dataclass, replace
from typing import Any, Callable, Iterator

from pytest_smartseed import operators, randomness
from pytest_smartseed.sandbox import ImportLoader

PRIMITIVE_TYPES = ("int", "float", "str", "bool")


@dataclass(frozen=True)
class VariableReference:
    """The value defined by the statement at ``position``.

    Always resolved against the test case that owns the referring statement,
    so clones can share references.
    """

    position: int
    type_name: str

    def shifted(self, from_position: int, delta: int) -> VariableReference:
        if self.position >= from_position:
            return replace(self, position=self.position + delta)
        return self


@dataclass(frozen=True)
class ArrayIndex:
    """Lvalue ``array[index]``."""

    array: VariableReference
    index: int

    def mapped(self, fn: Callable[[VariableReference], VariableReference]) -> ArrayIndex:
        return replace(self, array=fn(self.array))


@dataclass(frozen=True)
class FieldReference:
    """Lvalue ``owner.name``; a class attribute when ``owner`` is None."""

    owner: VariableReference | None
    owner_type: str  # "module.Class"
    name: str

    def mapped(self, fn: Callable[[VariableReference], VariableReference]) -> FieldReference:
        if self.owner is None:
            return self
        return replace(self, owner=fn(self.owner))


def short_type_name(type_name: str) -> str:
    return type_name.rsplit(".", 1)[-1].split("[", 1)[0]


def _split_type(type_name: str) -> tuple[str, str]:
    module, _, qualname = type_name.rpartition(".")
    return module, qualname


class Statement(abc.ABC):
    """A single line of a test case."""

    type_name: str = "object"

    def references(self) -> list[VariableReference]:
        """Variable references read by this statement."""
        return []

    def map_references(self, fn: Callable[[VariableReference], VariableReference]) -> None:
        """Replace every reference read by this statement with ``fn(ref)``."""

    def shift_references(self, from_position: int, delta: int) -> None:
        """Move references at or after ``from_position`` by ``delta``."""
        self.map_references(lambda ref: ref.shifted(from_position, delta))

    @abc.abstractmethod
    def execute(self, scope: list[Any], loader: ImportLoader) -> Any:
        """Run the statement and return the value it defines."""

    @abc.abstractmethod
    def code(self, test_case: TestCase, position: int) -> str:
        """Render the statement as a line of Python."""

    def step(self, test_case: TestCase, position: int) -> int | None:
        """Position of the statement holding this statement's root value.

        None means this statement is itself the root value statement.
        """
        return None

    @property
    def name_hint(self) -> str:
        name = short_type_name(self.type_name) or "object"
        return name[0].lower() + name[1:]


class PrimitiveStatement(Statement):
    """Defines a primitive literal."""

    primitive_type = "object"

    def __init__(self, value: Any = None) -> None:
        self.type_name = self.primitive_type
        self.value = value
        if value is None:
            self.randomize_value()

    def randomize_value(self) -> None:
        self.value = operators.random_value(self.primitive_type)

    def mutate(self, strategy: str | None = None) -> bool:
        old_value = self.value
        self.value = operators.mutate_value(self.primitive_type, self.value, strategy)
        return self.value != old_value

    def execute(self, scope: list[Any], loader: ImportLoader) -> Any:
        return self.value

    def code(self, test_case: TestCase, position: int) -> str:
        return f"{test_case.variable_name(position)} = {self.value!r}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.value!r})"


class IntPrimitiveStatement(PrimitiveStatement):
    primitive_type = "int"


class FloatPrimitiveStatement(PrimitiveStatement):
    primitive_type = "float"


class StringPrimitiveStatement(PrimitiveStatement):
    primitive_type = "str"


class BooleanPrimitiveStatement(PrimitiveStatement):
    primitive_type = "bool"


_PRIMITIVE_CLASSES: dict[str, type[PrimitiveStatement]] = {
    "int": IntPrimitiveStatement,
    "float": FloatPrimitiveStatement,
    "str": StringPrimitiveStatement,
    "bool": BooleanPrimitiveStatement,
}


def primitive_statement(type_name: str, value: Any = None) -> PrimitiveStatement:
    """Create the primitive statement class matching ``type_name``."""
    return _PRIMITIVE_CLASSES[type_name](value)


class NullStatement(Statement):
    """Defines ``None`` for a declared type."""

    def __init__(self, type_name: str) -> None:
        self.type_name = type_name

    def execute(self, scope: list[Any], loader: ImportLoader) -> Any:
        return None

    def code(self, test_case: TestCase, position: int) -> str:
        return f"{test_case.variable_name(position)} = None"

    def __repr__(self) -> str:
        return f"NullStatement({self.type_name!r})"


class ArrayStatement(Statement):
    """Defines a list of fixed ``lengths``; elements are set by assignments."""

    def __init__(self, element_type: str, lengths: list[int]) -> None:
        self.element_type = element_type
        self.lengths = list(lengths)
        self.type_name = f"list[{element_type}]"

    @property
    def name_hint(self) -> str:
        return f"{self.element_type.rsplit('.', 1)[-1].lower()}Array"

    def execute(self, scope: list[Any], loader: ImportLoader) -> Any:
        return _make_array(self.lengths)

    def step(self, test_case: TestCase, position: int) -> int | None:
        if len(self.lengths) != 1 or self.lengths[0] == 0:
            return None
        last_index = self.lengths[0] - 1
        for i, statement in enumerate(test_case):
            if (
                isinstance(statement, AssignmentStatement)
                and isinstance(statement.lhs, ArrayIndex)
                and statement.lhs.array.position == position
                and statement.lhs.index == last_index
            ):
                return i
        return None

    def code(self, test_case: TestCase, position: int) -> str:
        if len(self.lengths) == 1:
            init = f"[None] * {self.lengths[0]}"
        else:
            init = f"<array {self.lengths}>"
        return f"{test_case.variable_name(position)} = {init}"

    def __repr__(self) -> str:
        return f"ArrayStatement({self.element_type!r}, {self.lengths})"


def _make_array(lengths: list[int]) -> list[Any]:
    if len(lengths) <= 1:
        return [None] * (lengths[0] if lengths else 0)
    return [_make_array(lengths[1:]) for _ in range(lengths[0])]


class ParametrizedStatement(Statement):
    """A call taking parameter references."""

    def __init__(self, module: str, qualname: str, params: list[VariableReference]) -> None:
        self.module = module
        self.qualname = qualname
        self.params = list(params)

    @property
    def signature(self) -> str:
        return f"{self.module}.{self.qualname}"

    def references(self) -> list[VariableReference]:
        return list(self.params)

    def map_references(self, fn: Callable[[VariableReference], VariableReference]) -> None:
        self.params = [fn(p) for p in self.params]

    def step(self, test_case: TestCase, position: int) -> int | None:
        if not self.params:
            return None
        return self.params[randomness.next_int(len(self.params))].position

    def _args(self, test_case: TestCase) -> str:
        return ", ".join(test_case.variable_name(p.position) for p in self.params)


class ConstructorStatement(ParametrizedStatement):
    """``obj = Class(*params)``."""

    def __init__(self, module: str, qualname: str, params: list[VariableReference]) -> None:
        super().__init__(module, qualname, params)
        self.type_name = f"{module}.{qualname}"

    def execute(self, scope: list[Any], loader: ImportLoader) -> Any:
        cls = loader.resolve(self.module, self.qualname)
        return cls(*(scope[p.position] for p in self.params))

    def code(self, test_case: TestCase, position: int) -> str:
        return f"{test_case.variable_name(position)} = {self.qualname}({self._args(test_case)})"

    def __repr__(self) -> str:
        return f"ConstructorStatement({self.signature!r}, {self.params})"


class MethodStatement(ParametrizedStatement):
    """``result = callee.method(*params)`` or ``result = function(*params)``."""

    def __init__(
        self,
        module: str,
        qualname: str,
        params: list[VariableReference],
        callee: VariableReference | None = None,
        return_type: str = "object",
    ) -> None:
        super().__init__(module, qualname, params)
        self.callee = callee
        self.type_name = return_type

    @property
    def method_name(self) -> str:
        return self.qualname.rsplit(".", 1)[-1]

    @property
    def owner_type(self) -> str | None:
        if "." not in self.qualname:
            return None
        return f"{self.module}.{self.qualname.rsplit('.', 1)[0]}"

    def references(self) -> list[VariableReference]:
        refs = super().references()
        if self.callee is not None:
            refs.insert(0, self.callee)
        return refs

    def map_references(self, fn: Callable[[VariableReference], VariableReference]) -> None:
        super().map_references(fn)
        if self.callee is not None:
            self.callee = fn(self.callee)

    def execute(self, scope: list[Any], loader: ImportLoader) -> Any:
        args = [scope[p.position] for p in self.params]
        if self.callee is not None:
            return getattr(scope[self.callee.position], self.method_name)(*args)
        return loader.resolve(self.module, self.qualname)(*args)

    def code(self, test_case: TestCase, position: int) -> str:
        if self.callee is not None:
            target = f"{test_case.variable_name(self.callee.position)}.{self.method_name}"
        else:
            target = self.qualname
        return f"{test_case.variable_name(position)} = {target}({self._args(test_case)})"

    def __repr__(self) -> str:
        return f"MethodStatement({self.signature!r}, {self.params}, callee={self.callee})"


class AssignmentStatement(Statement):
    """``array[i] = value`` or ``owner.field = value``."""

    def __init__(self, lhs: ArrayIndex | FieldReference, value: VariableReference) -> None:
        self.lhs = lhs
        self.value = value
        self.type_name = value.type_name

    def references(self) -> list[VariableReference]:
        refs = [self.value]
        if isinstance(self.lhs, ArrayIndex):
            refs.insert(0, self.lhs.array)
        elif self.lhs.owner is not None:
            refs.insert(0, self.lhs.owner)
        return refs

    def map_references(self, fn: Callable[[VariableReference], VariableReference]) -> None:
        self.lhs = self.lhs.mapped(fn)
        self.value = fn(self.value)

    def step(self, test_case: TestCase, position: int) -> int | None:
        return self.value.position

    def execute(self, scope: list[Any], loader: ImportLoader) -> Any:
        value = scope[self.value.position]
        if isinstance(self.lhs, ArrayIndex):
            scope[self.lhs.array.position][self.lhs.index] = value
        elif self.lhs.owner is not None:
            setattr(scope[self.lhs.owner.position], self.lhs.name, value)
        else:
            setattr(loader.resolve(*_split_type(self.lhs.owner_type)), self.lhs.name, value)
        return value

    def lhs_name(self, test_case: TestCase) -> str:
        if isinstance(self.lhs, ArrayIndex):
            return f"{test_case.variable_name(self.lhs.array.position)}[{self.lhs.index}]"
        if self.lhs.owner is not None:
            return f"{test_case.variable_name(self.lhs.owner.position)}.{self.lhs.name}"
        return f"{short_type_name(self.lhs.owner_type)}.{self.lhs.name}"

    def code(self, test_case: TestCase, position: int) -> str:
        return f"{self.lhs_name(test_case)} = {test_case.variable_name(self.value.position)}"

    def __repr__(self) -> str:
        return f"AssignmentStatement({self.lhs}, {self.value})"


class TestCase:
    """An ordered sequence of statements."""

    __test__ = False

    def __init__(self, statements: list[Statement] | None = None) -> None:
        self._statements: list[Statement] = list(statements or [])
        self.loader: ImportLoader = ImportLoader()

    def __len__(self) -> int:
        return len(self._statements)

    def __iter__(self) -> Iterator[Statement]:
        return iter(self._statements)

    def __getitem__(self, position: int) -> Statement:
        return self._statements[position]

    @property
    def statements(self) -> list[Statement]:
        return list(self._statements)

    @property
    def last_statement(self) -> Statement | None:
        return self._statements[-1] if self._statements else None

    def position_of(self, statement: Statement) -> int:
        for i, s in enumerate(self._statements):
            if s is statement:
                return i
        raise ValueError(f"{statement!r} is not part of this test case")

    def add(self, statement: Statement) -> VariableReference:
        self._statements.append(statement)
        return VariableReference(len(self._statements) - 1, statement.type_name)

    def insert_block(self, position: int, block: list[Statement]) -> None:
        """Splice ``block`` in at ``position``.

        References inside ``block`` must already be absolute for that
        position; references of later statements are shifted past it.
        """
        delta = len(block)
        for statement in self._statements[position:]:
            statement.shift_references(position, delta)
        self._statements[position:position] = block

    def insert(self, position: int, statement: Statement) -> VariableReference:
        self.insert_block(position, [statement])
        return VariableReference(position, statement.type_name)

    def replace(self, position: int, statement: Statement) -> None:
        self._statements[position] = statement

    def remove(self, position: int, redirect: int | None = None) -> Statement:
        """Delete the statement at ``position``.

        References to it are moved to ``redirect``, which must be an earlier
        position; without one, the statement must be unreferenced.
        """
        if redirect is not None and not 0 <= redirect < position:
            raise ValueError(f"cannot redirect position {position} to {redirect}")
        later = self._statements[position + 1:]
        if redirect is None and any(
            ref.position == position for s in later for ref in s.references()
        ):
            raise ValueError(f"statement at {position} is still referenced")

        def remap(ref: VariableReference) -> VariableReference:
            if ref.position == position and redirect is not None:
                return replace(ref, position=redirect)
            if ref.position > position:
                return replace(ref, position=ref.position - 1)
            return ref

        removed = self._statements.pop(position)
        for statement in later:
            statement.map_references(remap)
        return removed

    def find_last(self, predicate: Callable[[int, Statement], bool]) -> int | None:
        """Position of the last statement matching ``predicate``."""
        for i in range(len(self._statements) - 1, -1, -1):
            if predicate(i, self._statements[i]):
                return i
        return None

    def change_loader(self, loader: ImportLoader) -> None:
        self.loader = loader

    def clone(self) -> TestCase:
        cloned = TestCase(copy.deepcopy(self._statements))
        cloned.loader = self.loader
        return cloned

    def is_valid(self) -> bool:
        """Every reference points at an existing, earlier-or-same statement."""
        for i, statement in enumerate(self._statements):
            for ref in statement.references():
                if not 0 <= ref.position <= i:
                    return False
        return True

    def variable_name(self, position: int) -> str:
        statement = self._statements[position]
        if isinstance(statement, AssignmentStatement):
            return statement.lhs_name(self)
        hint = statement.name_hint
        index = sum(
            1
            for s in self._statements[:position]
            if not isinstance(s, AssignmentStatement) and s.name_hint == hint
        )
        return f"{hint}{index}"

    def to_code(self) -> str:
        return "\n".join(s.code(self, i) for i, s in enumerate(self._statements))

    def __repr__(self) -> str:
        return f"TestCase({self._statements!r})"


class TestChromosome:
    """A test case together with its attached fitness functions."""

    __test__ = False

    def __init__(self, test_case: TestCase | None = None) -> None:
        self.test_case = test_case if test_case is not None else TestCase()
        self._fitness_values: dict[Any, float] = {}
        self.last_execution_result: Any = None
        self.changed = True

    @property
    def fitness_values(self) -> dict[Any, float]:
        return dict(self._fitness_values)

    def add_fitness(self, fitness: Any, value: float = 1.0) -> None:
        self._fitness_values.setdefault(fitness, value)

    def set_fitness(self, fitness: Any, value: float) -> None:
        self._fitness_values[fitness] = value

    def clear_cached_results(self) -> None:
        self.last_execution_result = None
        self.changed = True

    def clone(self) -> TestChromosome:
        cloned = TestChromosome(self.test_case.clone())
        cloned._fitness_values = dict(self._fitness_values)
        return cloned
