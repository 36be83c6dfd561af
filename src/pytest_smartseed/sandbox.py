"""Isolated module loading with observation probes."""

from __future__ import annotations

import ast
import contextlib
import importlib
import importlib.abc
import importlib.machinery
import importlib.util
import logging
import sys
import types
from collections import defaultdict
from typing import TYPE_CHECKING, Any, Callable, Iterable, Iterator

from pytest_smartseed.errors import ClassLoadFailure
from pytest_smartseed.models import Instruction

if TYPE_CHECKING:
    from pytest_smartseed.observation import ObservationContext

logger = logging.getLogger(__name__)

PROBE_NAME = "__smartseed_probe__"

_LOAD_NAME_OPS = {"LOAD_FAST", "LOAD_NAME", "LOAD_GLOBAL", "LOAD_DEREF"}
_STORE_OPS = {"STORE_FAST", "STORE_NAME", "STORE_ATTR", "STORE_GLOBAL", "STORE_DEREF"}


def _normalize_qualname(qualname: str) -> str:
    return qualname.replace(".<locals>", "")


class ProbeInserter(ast.NodeTransformer):
    """Wrap the expressions observed by each site in a probe call."""

    def __init__(self, sites: Iterable[Instruction]) -> None:
        self.sites = list(sites)
        self.applied: set[str] = set()
        self._scope: list[str] = []

    def _qualname(self) -> str:
        return ".".join(self._scope) or "<module>"

    def _sites_at(self, node: ast.AST, opnames: set[str]) -> list[Instruction]:
        lineno = getattr(node, "lineno", None)
        qualname = self._qualname()
        return [
            s for s in self.sites
            if s.lineno == lineno
            and s.opname in opnames
            and _normalize_qualname(s.qualname) == qualname
        ]

    def _wrap(self, site: Instruction, expr: ast.expr) -> ast.expr:
        self.applied.add(site.site_id)
        call = ast.Call(
            func=ast.Name(id=PROBE_NAME, ctx=ast.Load()),
            args=[ast.Constant(value=site.site_id), expr],
            keywords=[],
        )
        return ast.copy_location(call, expr)

    def _visit_scope(self, node: ast.AST) -> ast.AST:
        self._scope.append(node.name)  # type: ignore[attr-defined]
        self.generic_visit(node)
        self._scope.pop()
        return node

    visit_FunctionDef = _visit_scope
    visit_AsyncFunctionDef = _visit_scope
    visit_ClassDef = _visit_scope

    def visit_Return(self, node: ast.Return) -> ast.AST:
        self.generic_visit(node)
        for site in self._sites_at(node, {"RETURN_VALUE"}):
            value = node.value if node.value is not None else ast.copy_location(
                ast.Constant(value=None), node
            )
            node.value = self._wrap(site, value)
        return node

    def visit_Compare(self, node: ast.Compare) -> ast.AST:
        self.generic_visit(node)
        for site in self._sites_at(node, {"COMPARE_OP"}):
            node.left = self._wrap(site, node.left)
        return node

    def visit_Name(self, node: ast.Name) -> ast.AST:
        if not isinstance(node.ctx, ast.Load):
            return node
        result: ast.expr = node
        for site in self._sites_at(node, _LOAD_NAME_OPS):
            if site.arg == node.id:
                result = self._wrap(site, result)
        return result

    def visit_Attribute(self, node: ast.Attribute) -> ast.AST:
        self.generic_visit(node)
        if not isinstance(node.ctx, ast.Load):
            return node
        result: ast.expr = node
        for site in self._sites_at(node, {"LOAD_ATTR"}):
            if site.arg == node.attr:
                result = self._wrap(site, result)
        return result

    def visit_Call(self, node: ast.Call) -> ast.AST:
        self.generic_visit(node)
        func = node.func
        name = func.id if isinstance(func, ast.Name) else getattr(func, "attr", None)
        result: ast.expr = node
        for site in self._sites_at(node, {"CALL"}):
            if site.arg is None or site.arg == name:
                result = self._wrap(site, result)
        return result

    def _visit_store(self, node: ast.Assign | ast.AugAssign | ast.AnnAssign) -> ast.AST:
        self.generic_visit(node)
        if node.value is None:
            return node
        targets = node.targets if isinstance(node, ast.Assign) else [node.target]
        names = set()
        for target in targets:
            for sub in ast.walk(target):
                if isinstance(sub, ast.Name):
                    names.add(sub.id)
                elif isinstance(sub, ast.Attribute):
                    names.add(sub.attr)
        for site in self._sites_at(node, _STORE_OPS):
            if site.arg in names:
                node.value = self._wrap(site, node.value)
        return node

    visit_Assign = _visit_store
    visit_AugAssign = _visit_store
    visit_AnnAssign = _visit_store


def instrument_source(source: str, filename: str, sites: Iterable[Instruction]) -> tuple[ast.Module, set[str]]:
    """Parse ``source`` and insert probes; return the tree and the probed site ids."""
    tree = ast.parse(source, filename=filename)
    inserter = ProbeInserter(sites)
    tree = inserter.visit(tree)
    ast.fix_missing_locations(tree)
    return tree, inserter.applied


class InstrumentingLoader(importlib.abc.Loader):
    """Loader that inserts observation probes into source before executing."""

    def __init__(
        self,
        source: str,
        filename: str,
        sites: list[Instruction],
        probe: Callable[[str, Any], Any],
    ) -> None:
        self.source = source
        self.filename = filename
        self.sites = sites
        self.probe = probe

    def create_module(self, spec: importlib.machinery.ModuleSpec) -> None:
        return None

    def exec_module(self, module: types.ModuleType) -> None:
        tree, applied = instrument_source(self.source, self.filename, self.sites)
        missing = {s.site_id for s in self.sites} - applied
        if missing:
            logger.debug("no probe placed for %s", sorted(missing))
        module.__dict__[PROBE_NAME] = self.probe
        code = compile(tree, self.filename, "exec")
        exec(code, module.__dict__)


class SandboxFinder(importlib.abc.MetaPathFinder):
    """Meta path finder that serves the sandbox's target modules."""

    def __init__(self, sandbox: ExecutionSandbox) -> None:
        self.sandbox = sandbox

    def _original_spec(self, fullname: str, path: Any, target: Any) -> importlib.machinery.ModuleSpec | None:
        for finder in sys.meta_path:
            if finder is self or not hasattr(finder, "find_spec"):
                continue
            spec = finder.find_spec(fullname, path, target)
            if spec is not None:
                return spec
        return None

    def find_spec(
        self,
        fullname: str,
        path: Any = None,
        target: Any = None,
    ) -> importlib.machinery.ModuleSpec | None:
        if fullname not in self.sandbox.targets:
            return None
        original = self._original_spec(fullname, path, target)
        if original is None or original.origin is None:
            return None
        get_source = getattr(original.loader, "get_source", None)
        source = get_source(fullname) if get_source is not None else None
        if source is None:
            return None
        loader = InstrumentingLoader(
            source,
            original.origin,
            self.sandbox.sites_for(fullname),
            self.sandbox.probe,
        )
        spec = importlib.machinery.ModuleSpec(
            fullname,
            loader,
            origin=original.origin,
            is_package=original.submodule_search_locations is not None,
        )
        if original.submodule_search_locations is not None:
            spec.submodule_search_locations = list(original.submodule_search_locations)
        spec.has_location = True
        return spec


class ImportLoader:
    """Resolve callables through the regular import system."""

    def resolve(self, module_name: str, qualname: str) -> Any:
        obj: Any = importlib.import_module(module_name)
        for part in qualname.split("."):
            obj = getattr(obj, part)
        return obj

    def module_file(self, module_name: str) -> str | None:
        try:
            spec = importlib.util.find_spec(module_name)
        except (ImportError, ValueError):
            return None
        if spec is None:
            return None
        return spec.origin

    @contextlib.contextmanager
    def activated(self) -> Iterator[ImportLoader]:
        yield self


class ExecutionSandbox(ImportLoader):
    """Fresh, instrumented copies of target modules, scoped to one observation set.

    While activated, the sandboxed modules replace their regular counterparts
    in ``sys.modules``; the previous process state is restored on exit.
    Only one sandbox may be active at a time.
    """

    def __init__(self, sites: Iterable[Instruction], targets: Iterable[str] = ()) -> None:
        self.sites = list(sites)
        self._sites_by_module: dict[str, list[Instruction]] = defaultdict(list)
        for site in self.sites:
            self._sites_by_module[site.module].append(site)
        self.targets: set[str] = set(targets) | set(self._sites_by_module)
        self.modules: dict[str, types.ModuleType] = {}
        self._context: ObservationContext | None = None
        self._finder = SandboxFinder(self)

    def sites_for(self, module_name: str) -> list[Instruction]:
        return list(self._sites_by_module.get(module_name, []))

    def bind(self, context: ObservationContext | None) -> None:
        """Route probe values to ``context``."""
        self._context = context

    def probe(self, site_id: str, value: Any) -> Any:
        if self._context is not None:
            self._context.record(site_id, value)
        return value

    @contextlib.contextmanager
    def activated(self) -> Iterator[ExecutionSandbox]:
        saved_modules = {
            name: sys.modules[name] for name in self.targets if name in sys.modules
        }
        saved_attrs = self._parent_attributes()
        for name in self.targets:
            sys.modules.pop(name, None)
        sys.modules.update(self.modules)
        sys.meta_path.insert(0, self._finder)
        try:
            yield self
        finally:
            try:
                sys.meta_path.remove(self._finder)
            except ValueError:
                pass
            for name in self.targets:
                module = sys.modules.pop(name, None)
                if module is not None:
                    self.modules.setdefault(name, module)
            sys.modules.update(saved_modules)
            self._restore_parent_attributes(saved_attrs)

    def _parent_attributes(self) -> dict[str, Any]:
        saved: dict[str, Any] = {}
        for name in self.targets:
            parent, _, child = name.rpartition(".")
            if parent and parent in sys.modules:
                saved[name] = getattr(sys.modules[parent], child, None)
        return saved

    def _restore_parent_attributes(self, saved: dict[str, Any]) -> None:
        for name in self.targets:
            parent, _, child = name.rpartition(".")
            if not parent or parent not in sys.modules:
                continue
            original = saved.get(name)
            if original is not None:
                setattr(sys.modules[parent], child, original)
            elif hasattr(sys.modules[parent], child):
                delattr(sys.modules[parent], child)

    def load(self, module_name: str) -> types.ModuleType:
        """Load ``module_name`` into the sandbox (instrumented if it holds sites)."""
        if module_name in self.modules:
            return self.modules[module_name]
        self.targets.add(module_name)
        try:
            with self.activated():
                return importlib.import_module(module_name)
        except Exception as e:
            raise ClassLoadFailure(module_name, f"{type(e).__name__}: {e}") from e
