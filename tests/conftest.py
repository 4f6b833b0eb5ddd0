# --------------------------------------------------------------
# File: conftest.py
# Description: Fixtures compartidas para aislar almacenamiento y construir el servicio.
# --------------------------------------------------------------

import importlib
from typing import Iterator

import pytest

from messenger.identity import Identity

T0 = 1_760_000_000


class FakeClock:
    """Reloj manual para controlar las ventanas de validez."""

    def __init__(self, now: float = T0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _isolate_storage(tmp_path, monkeypatch) -> Iterator[None]:
    """Aísla STORAGE_PATH y recarga messenger.config para cada prueba.

    Args:
        tmp_path (Path): Carpeta temporal proporcionada por pytest.
        monkeypatch (pytest.MonkeyPatch): Fixture para ajustar variables de entorno.

    Returns:
        Iterator[None]: Control del fixture autouse durante la ejecución de cada test.
    """
    data_dir = tmp_path / "_data"
    data_dir.mkdir()
    monkeypatch.setenv("STORAGE_PATH", str(data_dir))
    monkeypatch.setenv("MESSENGER_SECRET", "test-secret")
    monkeypatch.setenv("STORE_ID", "test-keystore")
    monkeypatch.delenv("PROOF_MAX_DURATION_DAYS", raising=False)
    monkeypatch.delenv("PROOF_DURATION_DAYS", raising=False)

    import messenger.config as config_module

    importlib.reload(config_module)

    yield


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def alice() -> Identity:
    return Identity.generate()


@pytest.fixture
def bob() -> Identity:
    return Identity.generate()


@pytest.fixture
def mallory() -> Identity:
    return Identity.generate()
