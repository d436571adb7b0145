"""Exceptions raised by the derived-info cache."""

from __future__ import annotations

from typing import Sequence


class FileInfoError(RuntimeError):
    """Base class for fatal derived-info failures."""


class CircularDependencyError(FileInfoError):
    """Raised when a context re-enters ``get_info`` for a signature it is computing."""

    def __init__(self, signature: str, chain: Sequence[str]) -> None:
        self.signature = signature
        self.chain = tuple(chain)
        path = " -> ".join([*self.chain, signature])
        super().__init__(f"Circular dependency detected: {path}")


class InvalidContextUsage(FileInfoError, ValueError):
    """Raised for illegal context construction or operations on the wrong context kind."""


class RegistryFrozenError(FileInfoError):
    """Raised when registering a provider after the registry has been frozen."""
