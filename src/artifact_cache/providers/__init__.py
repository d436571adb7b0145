"""Built-in derived-info providers for Python sources."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .ast_outline import AST_INFO_TYPE, AstProvider, build_outline
from .interface import INTERFACE_INFO_TYPE, InterfaceProvider, extract_interface
from .interface_prompt import INTERFACE_PROMPT_INFO_TYPE, InterfacePromptProvider, format_interface

if TYPE_CHECKING:
    from ..fileinfo.registry import ProviderRegistry


def register_default_providers(registry: "ProviderRegistry") -> None:
    """Install the ``ast`` -> ``interface`` -> ``interfacePrompt`` provider chain."""
    registry.register(AST_INFO_TYPE, AstProvider())
    registry.register(INTERFACE_INFO_TYPE, InterfaceProvider())
    registry.register(INTERFACE_PROMPT_INFO_TYPE, InterfacePromptProvider())


__all__ = [
    "AST_INFO_TYPE",
    "INTERFACE_INFO_TYPE",
    "INTERFACE_PROMPT_INFO_TYPE",
    "AstProvider",
    "InterfacePromptProvider",
    "InterfaceProvider",
    "build_outline",
    "extract_interface",
    "format_interface",
    "register_default_providers",
]
