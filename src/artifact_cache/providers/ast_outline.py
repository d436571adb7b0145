"""Structural outline of a Python module built from libcst, stored as plain JSON."""

from __future__ import annotations

import logging
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import libcst as cst
from libcst import metadata

if TYPE_CHECKING:
    from ..fileinfo.context import FileInfoContext

AST_INFO_TYPE = "ast"
SUPPORTED_SUFFIXES = frozenset({".py", ".pyi"})
LOGGER = logging.getLogger(__name__)


def _function_record(module: cst.Module, node: cst.FunctionDef) -> Dict[str, Any]:
    params = module.code_for_node(node.params)
    signature = f"{node.name.value}({params})"
    if node.returns is not None:
        signature = f"{signature} -> {module.code_for_node(node.returns.annotation)}"
    if node.asynchronous is not None:
        signature = f"async {signature}"
    return {
        "name": node.name.value,
        "signature": signature,
        "async": node.asynchronous is not None,
        "decorators": [module.code_for_node(item.decorator) for item in node.decorators],
    }


def _assignment_targets(module: cst.Module, statement: cst.BaseSmallStatement) -> List[Dict[str, Any]]:
    if isinstance(statement, cst.AnnAssign):
        return [
            {
                "name": module.code_for_node(statement.target),
                "annotation": module.code_for_node(statement.annotation.annotation),
            }
        ]
    if isinstance(statement, cst.Assign):
        return [
            {"name": module.code_for_node(target.target), "annotation": None}
            for target in statement.targets
        ]
    return []


def _declared_all(statement: cst.BaseSmallStatement) -> Optional[List[str]]:
    if isinstance(statement, cst.Assign):
        targets = [target.target for target in statement.targets]
    elif isinstance(statement, cst.AnnAssign):
        targets = [statement.target]
    else:
        return None
    if not any(isinstance(target, cst.Name) and target.value == "__all__" for target in targets):
        return None
    if not isinstance(statement.value, (cst.List, cst.Tuple)):
        return None
    names: List[str] = []
    for element in statement.value.elements:
        value = element.value
        if isinstance(value, cst.SimpleString):
            evaluated = value.evaluated_value
            if isinstance(evaluated, str):
                names.append(evaluated)
    return names


class _OutlineBuilder:
    """Walk the top level of a module and collect imports, classes, functions, assignments."""

    def __init__(self, wrapper: metadata.MetadataWrapper) -> None:
        self._module = wrapper.module
        self._positions = wrapper.resolve(metadata.PositionProvider)
        self.outline: Dict[str, Any] = {
            "language": "python",
            "imports": [],
            "classes": [],
            "functions": [],
            "assignments": [],
            "all": None,
        }

    def build(self) -> Dict[str, Any]:
        for statement in self._module.body:
            if isinstance(statement, cst.SimpleStatementLine):
                for small in statement.body:
                    self._visit_small(small, statement)
            elif isinstance(statement, cst.FunctionDef):
                record = _function_record(self._module, statement)
                record.update(self._lines(statement))
                self.outline["functions"].append(record)
            elif isinstance(statement, cst.ClassDef):
                self.outline["classes"].append(self._class_record(statement))
        return self.outline

    def _visit_small(self, small: cst.BaseSmallStatement, line: cst.SimpleStatementLine) -> None:
        if isinstance(small, cst.Import):
            for alias in small.names:
                self.outline["imports"].append(
                    {
                        "module": self._module.code_for_node(alias.name),
                        "names": [],
                        "alias": self._alias(alias),
                        "level": 0,
                        **self._lines(line),
                    }
                )
        elif isinstance(small, cst.ImportFrom):
            if isinstance(small.names, cst.ImportStar):
                names = ["*"]
            else:
                names = [self._imported_name(alias) for alias in small.names]
            self.outline["imports"].append(
                {
                    "module": self._module.code_for_node(small.module) if small.module is not None else "",
                    "names": names,
                    "alias": None,
                    "level": len(small.relative),
                    **self._lines(line),
                }
            )
        elif isinstance(small, (cst.Assign, cst.AnnAssign)):
            declared = _declared_all(small)
            if declared is not None:
                self.outline["all"] = declared
                return
            for target in _assignment_targets(self._module, small):
                target.update(self._lines(line))
                self.outline["assignments"].append(target)

    def _class_record(self, node: cst.ClassDef) -> Dict[str, Any]:
        methods: List[Dict[str, Any]] = []
        attributes: List[Dict[str, Any]] = []
        body = node.body.body if isinstance(node.body, cst.IndentedBlock) else ()
        for statement in body:
            if isinstance(statement, cst.FunctionDef):
                methods.append(_function_record(self._module, statement))
            elif isinstance(statement, cst.SimpleStatementLine):
                for small in statement.body:
                    attributes.extend(_assignment_targets(self._module, small))
        record: Dict[str, Any] = {
            "name": node.name.value,
            "bases": [self._module.code_for_node(base.value) for base in node.bases],
            "decorators": [self._module.code_for_node(item.decorator) for item in node.decorators],
            "methods": methods,
            "attributes": attributes,
        }
        record.update(self._lines(node))
        return record

    def _imported_name(self, alias: cst.ImportAlias) -> str:
        name = self._module.code_for_node(alias.name)
        asname = self._alias(alias)
        return f"{name} as {asname}" if asname else name

    def _alias(self, alias: cst.ImportAlias) -> Optional[str]:
        if alias.asname is None:
            return None
        return self._module.code_for_node(alias.asname.name)

    def _lines(self, node: cst.CSTNode) -> Dict[str, int]:
        code_range = self._positions.get(node)
        if code_range is None:
            return {}
        return {"start_line": code_range.start.line, "end_line": code_range.end.line}


def build_outline(source: str) -> Dict[str, Any]:
    """Return the JSON outline for ``source``; raises ``libcst.ParserSyntaxError``."""
    module = cst.parse_module(source)
    return _OutlineBuilder(metadata.MetadataWrapper(module)).build()


class AstProvider:
    """Parses Python sources into a top-level structural outline."""

    async def extract_info(self, relative_path: str, context: "FileInfoContext") -> Dict[str, Any] | None:
        suffix = PurePosixPath(relative_path.replace("\\", "/")).suffix
        if suffix not in SUPPORTED_SUFFIXES:
            LOGGER.warning("Unsupported language extension for AST parsing: %s", suffix or relative_path)
            return None

        source = await context.get_file_content(relative_path)
        if source is None:
            return None

        try:
            return build_outline(source)
        except cst.ParserSyntaxError as error:
            LOGGER.warning("Unable to parse %s: %s", relative_path, error)
            return None
