"""Excepciones de frontera.

Los resultados de las operaciones se devuelven como valores (`core.domain.models`);
estas excepciones solo cruzan la costura adaptador -> servicio y el servicio las
convierte en valores antes de devolver.
"""

from __future__ import annotations


class KeyValueStoreError(RuntimeError):
    """El almacén clave-valor externo no respondió o rechazó la operación."""

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause

    @property
    def error_type(self) -> str:
        return type(self.cause).__name__ if self.cause is not None else type(self).__name__
