"""Registration table mapping info types to the providers that compute them."""

from __future__ import annotations

import inspect
import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, Protocol, runtime_checkable

from .errors import RegistryFrozenError

if TYPE_CHECKING:
    from .context import FileInfoContext

LOGGER = logging.getLogger(__name__)

# Underscores and separators would make cache filenames ambiguous.
_INFO_TYPE_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9.-]*$")


@runtime_checkable
class FileInfoProvider(Protocol):
    """Computes one kind of derived data for a file; may be sync or async."""

    def extract_info(self, relative_path: str, context: "FileInfoContext") -> Any:
        ...


ProviderFunction = Callable[[str, "FileInfoContext"], Any]


@dataclass(slots=True)
class FunctionProvider:
    """Adapter exposing a plain callable through the provider protocol."""

    function: ProviderFunction

    def extract_info(self, relative_path: str, context: "FileInfoContext") -> Any:
        return self.function(relative_path, context)


async def call_provider(provider: FileInfoProvider, relative_path: str, context: "FileInfoContext") -> Any:
    """Invoke ``provider`` and await the result when it is a coroutine."""
    result = provider.extract_info(relative_path, context)
    if inspect.isawaitable(result):
        result = await result
    return result


def validate_info_type(info_type: str) -> str:
    candidate = info_type.strip() if isinstance(info_type, str) else ""
    if not _INFO_TYPE_PATTERN.match(candidate):
        raise ValueError(
            f"Invalid info type {info_type!r}: use letters, digits, '.' or '-', starting with a letter."
        )
    return candidate


class ProviderRegistry:
    """Dispatch table shared by every context rooted at the same repository."""

    def __init__(self) -> None:
        self._providers: Dict[str, FileInfoProvider] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(self, info_type: str, provider: FileInfoProvider | ProviderFunction) -> None:
        """Register ``provider`` for ``info_type``; replacing an existing entry is logged."""
        if self._frozen:
            raise RegistryFrozenError(
                f"Cannot register provider for '{info_type}': registry is frozen."
            )
        key = validate_info_type(info_type)
        resolved = self._coerce_provider(provider)
        if key in self._providers:
            LOGGER.warning("Overwriting provider for info type: %s", key)
        self._providers[key] = resolved

    def lookup(self, info_type: str) -> FileInfoProvider | None:
        return self._providers.get(info_type)

    def freeze(self) -> None:
        """Close the table once startup registration is complete."""
        self._frozen = True

    def info_types(self) -> Iterable[str]:
        return sorted(self._providers)

    def __contains__(self, info_type: object) -> bool:
        return info_type in self._providers

    @staticmethod
    def _coerce_provider(provider: FileInfoProvider | ProviderFunction) -> FileInfoProvider:
        if isinstance(provider, FileInfoProvider):
            return provider
        if callable(provider):
            return FunctionProvider(provider)
        raise TypeError(f"Provider must define extract_info() or be callable, got {type(provider).__name__}")
