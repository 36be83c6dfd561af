"""Random test case construction from the signatures of target operations."""

from __future__ import annotations

import importlib
import inspect
import logging
import types
import typing
from typing import Any, ClassVar, Union

from pytest_smartseed import randomness
from pytest_smartseed.configuration import config
from pytest_smartseed.errors import ConstructionFailure
from pytest_smartseed.models import TargetOperation
from pytest_smartseed.testcase import (
    PRIMITIVE_TYPES,
    ArrayIndex,
    ArrayStatement,
    AssignmentStatement,
    ConstructorStatement,
    MethodStatement,
    NullStatement,
    Statement,
    TestCase,
    VariableReference,
    primitive_statement,
)

logger = logging.getLogger(__name__)

_BUILTINS: dict[str, type] = {"int": int, "float": float, "str": str, "bool": bool}


def type_name_of(annotation: Any) -> str:
    """Convert a resolved annotation to the type name used by statements."""
    if annotation is None or annotation is inspect.Parameter.empty or annotation is Any:
        return "object"
    if isinstance(annotation, str):
        return annotation
    origin = typing.get_origin(annotation)
    args = typing.get_args(annotation)
    if origin is ClassVar:
        return type_name_of(args[0]) if args else "object"
    if origin is Union or origin is types.UnionType:
        # X | None style optional
        concrete = [a for a in args if a is not type(None)]
        if len(concrete) == 1:
            return type_name_of(concrete[0])
        return "object"
    if origin is list or annotation is list:
        return f"list[{type_name_of(args[0]) if args else 'object'}]"
    if annotation in (int, float, str, bool, object):
        return annotation.__name__
    if inspect.isclass(annotation):
        return f"{annotation.__module__}.{annotation.__qualname__}"
    return "object"


def annotation_from_name(type_name: str) -> Any:
    """Inverse of type_name_of; None stands for "any value"."""
    if type_name in ("object", "None"):
        return None
    if type_name in _BUILTINS:
        return _BUILTINS[type_name]
    if type_name.startswith("list[") and type_name.endswith("]"):
        element = annotation_from_name(type_name[5:-1])
        return list if element is None else list[element]
    parts = type_name.split(".")
    for split in range(len(parts) - 1, 0, -1):
        try:
            obj: Any = importlib.import_module(".".join(parts[:split]))
        except ImportError:
            continue
        try:
            for part in parts[split:]:
                obj = getattr(obj, part)
        except AttributeError:
            continue
        return obj
    raise ConstructionFailure(f"cannot resolve type {type_name}")


def type_hints(obj: Any) -> dict[str, Any]:
    try:
        return typing.get_type_hints(obj)
    except Exception:
        return {}


class _Block:
    """Statements destined for ``base`` and the positions after it."""

    def __init__(self, base: int) -> None:
        self.base = base
        self.statements: list[Statement] = []

    def __len__(self) -> int:
        return len(self.statements)

    def add(self, statement: Statement) -> VariableReference:
        self.statements.append(statement)
        return VariableReference(self.base + len(self.statements) - 1, statement.type_name)


class TestFactory:
    """Inserts random calls to a cluster of operations into test cases."""

    __test__ = False

    def __init__(
        self,
        target: TargetOperation,
        cluster: list[TargetOperation] | None = None,
    ) -> None:
        self.target = target
        self.cluster = list(cluster) if cluster else [target]

    # -- public operations --------------------------------------------------

    def insert_random_statement(self, test_case: TestCase, position: int) -> int:
        """Insert a call to a random cluster operation at ``position``.

        Returns the position of the inserted call, or -1 when nothing was
        inserted.
        """
        operation = randomness.choice(self.cluster)
        position = max(0, min(position, len(test_case)))
        block = _Block(position)
        try:
            self._call(block, operation, allow_null=True)
        except ConstructionFailure as e:
            logger.debug("cannot call %s: %s", operation.signature, e)
            return -1
        test_case.insert_block(position, block.statements)
        return position + len(block) - 1

    def change_null_statement(self, test_case: TestCase, statement: Statement) -> bool:
        """Replace a NullStatement by a concrete value of its declared type."""
        position = test_case.position_of(statement)
        block = _Block(position)
        try:
            value = self._value(block, annotation_from_name(statement.type_name), 0, allow_null=False)
        except ConstructionFailure as e:
            logger.debug("keeping None at %d: %s", position, e)
            return False
        test_case.insert_block(position, block.statements)
        test_case.remove(position + len(block), redirect=value.position)
        return True

    def generate_block(
        self, annotation: Any, position: int, allow_null: bool = False
    ) -> tuple[list[Statement], VariableReference]:
        """Statements defining a value of ``annotation`` if placed at ``position``."""
        block = _Block(position)
        value = self._value(block, annotation, 0, allow_null)
        return block.statements, value

    # -- construction -------------------------------------------------------

    def _call(self, block: _Block, operation: TargetOperation, allow_null: bool) -> VariableReference:
        try:
            module = importlib.import_module(operation.module)
            owner: Any = None
            func: Any = module
            for part in operation.qualname.split("."):
                owner, func = func, getattr(func, part)
        except (ImportError, AttributeError) as e:
            raise ConstructionFailure(f"cannot resolve {operation.signature}: {e}") from e

        callee = None
        if inspect.isclass(owner):
            raw = inspect.getattr_static(owner, operation.qualname.rsplit(".", 1)[-1])
            if not isinstance(raw, (staticmethod, classmethod)):
                callee = self._object(block, owner, 1, allow_null=False)

        hints = type_hints(func)
        params = self._arguments(block, func, hints, 1, allow_null)
        return block.add(
            MethodStatement(
                operation.module,
                operation.qualname,
                params,
                callee=callee,
                return_type=type_name_of(hints.get("return")),
            )
        )

    def _arguments(
        self, block: _Block, func: Any, hints: dict[str, Any], depth: int, allow_null: bool
    ) -> list[VariableReference]:
        try:
            signature = inspect.signature(func)
        except (TypeError, ValueError) as e:
            raise ConstructionFailure(f"no signature for {func!r}") from e

        params = list(signature.parameters.values())
        if params and inspect.isfunction(func) and params[0].name == "self":
            # unbound method looked up on its class
            params = params[1:]

        refs = []
        for param in params:
            if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue
            if param.kind is param.KEYWORD_ONLY:
                if param.default is param.empty:
                    raise ConstructionFailure(f"keyword-only parameter {param.name}")
                continue
            annotation = hints.get(param.name)
            if annotation is None and param.annotation is not param.empty:
                annotation = param.annotation
            refs.append(self._value(block, annotation, depth, allow_null))
        return refs

    def _object(self, block: _Block, cls: type, depth: int, allow_null: bool) -> VariableReference:
        if depth > config.construction_depth:
            if allow_null:
                return block.add(NullStatement(type_name_of(cls)))
            raise ConstructionFailure(f"{cls.__qualname__} nested deeper than {config.construction_depth}")
        params = self._arguments(block, cls, type_hints(cls.__init__), depth + 1, allow_null)
        return block.add(ConstructorStatement(cls.__module__, cls.__qualname__, params))

    def _value(self, block: _Block, annotation: Any, depth: int, allow_null: bool) -> VariableReference:
        if annotation is None or annotation is Any or annotation is object:
            if allow_null and randomness.next_float() < config.null_probability:
                return block.add(NullStatement("object"))
            return block.add(primitive_statement(randomness.choice(PRIMITIVE_TYPES)))

        origin = typing.get_origin(annotation)
        args = typing.get_args(annotation)
        if origin is ClassVar:
            return self._value(block, args[0] if args else None, depth, allow_null)

        if origin is Union or origin is types.UnionType:
            concrete = [a for a in args if a is not type(None)]
            nullable = len(concrete) < len(args)
            if nullable and allow_null and randomness.next_float() < config.null_probability:
                return block.add(NullStatement(type_name_of(annotation)))
            chosen = randomness.choice(concrete) if concrete else None
            return self._value(block, chosen, depth, allow_null)

        if annotation in _BUILTINS.values():
            return block.add(primitive_statement(annotation.__name__))

        if origin is list or annotation is list:
            element = args[0] if args else None
            array = block.add(ArrayStatement(type_name_of(element), [config.array_length]))
            for index in range(config.array_length):
                value = self._value(block, element, depth, allow_null)
                block.add(AssignmentStatement(ArrayIndex(array, index), value))
            return array

        if inspect.isclass(annotation):
            return self._object(block, annotation, depth, allow_null)

        raise ConstructionFailure(f"cannot generate a value of type {annotation!r}")
