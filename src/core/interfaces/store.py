"""Contrato del almacén clave-valor externo.

Por qué Protocol:
- La caché del universo solo necesita `get`/`set` de strings; Redis es un
  detalle del adaptador.
- Los tests usan un fake en memoria sin herencia.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class KeyValueStore(Protocol):
    """Servicio opaco string -> string.

    Reglas de diseño:
    - Ambos métodos son asíncronos (I/O remoto).
    - Los fallos se señalan con `core.domain.errors.KeyValueStoreError`.
    - `set` sobrescribe el valor completo; último en escribir gana.
    """

    async def get(self, key: str) -> str | None:
        """Devuelve el valor guardado o `None` si la clave no existe."""

        ...

    async def set(self, key: str, value: str) -> None:
        """Guarda `value` bajo `key`, reemplazando cualquier valor previo."""

        ...
