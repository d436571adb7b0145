"""Render the ``interface`` info of a file as prompt-ready text."""

from __future__ import annotations

from importlib.util import resolve_name
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Any, Dict, List, Mapping

from .interface import INTERFACE_INFO_TYPE

if TYPE_CHECKING:
    from ..fileinfo.context import FileInfoContext

INTERFACE_PROMPT_INFO_TYPE = "interfacePrompt"


def _module_name(relative_path: str) -> str:
    relative = PurePosixPath(relative_path.replace("\\", "/")).with_suffix("")
    parts = [part for part in relative.parts if part not in {"__pycache__", ""}]
    if parts and parts[0] == "src":
        parts = parts[1:]
    if parts and parts[-1] == "__init__":
        parts = parts[:-1]
    return ".".join(parts)


def _package_for_path(relative_path: str) -> str:
    module_name = _module_name(relative_path)
    if PurePosixPath(relative_path).name in {"__init__.py", "__init__.pyi"}:
        return module_name
    return module_name.rpartition(".")[0]


def resolve_import(relative_path: str, module: str, level: int) -> str:
    """Resolve a (possibly relative) import against the importing file's package."""
    if level <= 0:
        return module
    dotted = "." * level + module
    package = _package_for_path(relative_path)
    if not package:
        return dotted
    try:
        return resolve_name(dotted, package)
    except (ImportError, ValueError):
        return dotted


def _format_imports(imports: List[Mapping[str, Any]], relative_path: str) -> str:
    if not imports:
        return ""
    lines = []
    for entry in imports:
        source = resolve_import(relative_path, entry.get("module", ""), int(entry.get("level") or 0))
        names = entry.get("names") or []
        if names:
            lines.append(f"- {', '.join(names)} from '{source}'")
        else:
            lines.append(f"- import '{source}'")
    return "Imports:\n" + "\n".join(lines)


def _format_class(record: Mapping[str, Any]) -> str:
    bases = record.get("bases") or []
    header = f"-- - {record['name']}({', '.join(bases)})" if bases else f"-- - {record['name']}"
    parts = [header]
    attributes = record.get("attributes") or []
    if attributes:
        parts.append("----Attributes:")
        parts.extend(f"---- - {item['name']}: {item['type']}" for item in attributes)
    methods = record.get("methods") or []
    if methods:
        parts.append("----Methods:")
        parts.extend(f"---- - {item['signature']}" for item in methods)
    return "\n".join(parts)


def format_interface(info: Mapping[str, Any], relative_path: str) -> str:
    sections = [f"File Name: {relative_path}"]

    imports = _format_imports(list(info.get("imports") or []), relative_path)
    if imports:
        sections.append(imports)

    exports: Dict[str, Any] = dict(info.get("exports") or {})
    blocks: List[str] = []
    variables = exports.get("variable") or []
    if variables:
        blocks.append(
            "--Variables:\n" + "\n".join(f"-- - {item['name']}: {item['type']}" for item in variables)
        )
    classes = exports.get("class") or []
    if classes:
        blocks.append("--Classes:\n" + "\n".join(_format_class(item) for item in classes))
    functions = exports.get("function") or []
    if functions:
        blocks.append("--Functions:\n" + "\n".join(f"-- - {item['signature']}" for item in functions))
    if blocks:
        sections.append("Exports:\n" + "\n\n".join(blocks))

    return "\n\n".join(sections)


class InterfacePromptProvider:
    """Formats the ``interface`` info of a file for inclusion in model prompts."""

    async def extract_info(self, relative_path: str, context: "FileInfoContext") -> str | None:
        info = await context.get_info(INTERFACE_INFO_TYPE, relative_path)
        if not info:
            return None
        return format_interface(info, relative_path)
