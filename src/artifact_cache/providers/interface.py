"""Public surface of a Python module, derived from its cached ``ast`` outline."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Set

from .ast_outline import AST_INFO_TYPE

if TYPE_CHECKING:
    from ..fileinfo.context import FileInfoContext

INTERFACE_INFO_TYPE = "interface"
LOGGER = logging.getLogger(__name__)

# Dunder methods that still describe how callers construct or use a class.
_PUBLIC_DUNDERS = frozenset({"__init__", "__call__", "__enter__", "__exit__", "__iter__"})


def _exported(name: str, declared: Optional[Set[str]]) -> bool:
    if declared is not None:
        return name in declared
    return not name.startswith("_")


def _public_member(name: str) -> bool:
    return name in _PUBLIC_DUNDERS or not name.startswith("_")


def extract_interface(outline: Mapping[str, Any]) -> Dict[str, Any]:
    """Reduce an ``ast`` outline to imports plus exported variables, classes and functions."""
    declared_value = outline.get("all")
    declared = set(declared_value) if isinstance(declared_value, list) else None

    imports = [
        {
            "module": entry.get("module", ""),
            "names": list(entry.get("names") or []),
            "level": int(entry.get("level") or 0),
        }
        for entry in outline.get("imports") or []
    ]

    variables: List[Dict[str, Any]] = []
    seen: Set[str] = set()
    for assignment in outline.get("assignments") or []:
        name = assignment.get("name", "")
        if not name.isidentifier() or name in seen or not _exported(name, declared):
            continue
        seen.add(name)
        variables.append({"name": name, "type": assignment.get("annotation") or "Any"})

    classes: List[Dict[str, Any]] = []
    for record in outline.get("classes") or []:
        if not _exported(record.get("name", ""), declared):
            continue
        classes.append(
            {
                "name": record["name"],
                "bases": list(record.get("bases") or []),
                "attributes": [
                    {"name": item["name"], "type": item.get("annotation") or "Any"}
                    for item in record.get("attributes") or []
                    if item.get("name", "").isidentifier() and not item["name"].startswith("_")
                ],
                "methods": [
                    {"name": method["name"], "signature": method["signature"]}
                    for method in record.get("methods") or []
                    if _public_member(method["name"])
                ],
            }
        )

    functions = [
        {"name": record["name"], "signature": record["signature"]}
        for record in outline.get("functions") or []
        if _exported(record.get("name", ""), declared)
    ]

    return {
        "imports": imports,
        "exports": {"variable": variables, "class": classes, "function": functions},
    }


class InterfaceProvider:
    """Computes the exported interface from the ``ast`` info of the same file."""

    async def extract_info(self, relative_path: str, context: "FileInfoContext") -> Dict[str, Any] | None:
        outline = await context.get_info(AST_INFO_TYPE, relative_path)
        if not outline:
            return None
        return extract_interface(outline)
