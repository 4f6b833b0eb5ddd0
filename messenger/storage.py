# --------------------------------------------------------------
# File: storage.py
# Description: Persistencia JSON con escritura atómica para registro, almacén y llavero.
# --------------------------------------------------------------
"""Funciones auxiliares de entrada/salida para el almacenamiento local."""

from __future__ import annotations

import copy
import json
import os
from typing import Any, Dict

from messenger.exceptions import StorageCorrupted

__all__ = ["load_db", "save_db"]


def _ensure_parent_dir(path: str) -> None:
    """Garantiza que exista el directorio padre del archivo de destino."""

    parent = os.path.dirname(path) or "."
    os.makedirs(parent, exist_ok=True)


def load_db(path: str, default: Dict[str, Any]) -> Dict[str, Any]:
    """Carga un archivo JSON o devuelve una copia de la estructura por defecto.

    Sólo un archivo inexistente produce la estructura vacía; un archivo
    ilegible se rechaza para que ninguna escritura posterior lo sobrescriba.

    Args:
        path (str): Ruta del archivo JSON.
        default (Dict[str, Any]): Estructura vacía usada si el archivo no existe.

    Returns:
        Dict[str, Any]: Estructura cargada o copia independiente de `default`.

    Raises:
        StorageCorrupted: Si el archivo existe pero no contiene JSON válido.

    """

    try:
        with open(path, "r", encoding="utf-8") as handler:
            return json.load(handler)
    except FileNotFoundError:
        return copy.deepcopy(default)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise StorageCorrupted("Archivo de datos corrupto", {"path": path}) from exc


def save_db(db: Dict[str, Any], path: str) -> None:
    """Guarda la base de datos JSON aplicando escritura atómica."""

    _ensure_parent_dir(path)
    tmp_path = f"{path}.tmp"
    with open(tmp_path, "w", encoding="utf-8") as handler:
        json.dump(db, handler, indent=2, ensure_ascii=False)
    os.replace(tmp_path, path)
