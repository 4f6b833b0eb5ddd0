# --------------------------------------------------------------
# File: config.py
# Description: Parámetros de configuración cargados desde el entorno y .env.
# --------------------------------------------------------------
"""Configuración global del mensajero cifrado."""

import os

from dotenv import load_dotenv

load_dotenv()

MESSENGER_SECRET = os.getenv("MESSENGER_SECRET", "change_this_dev_secret").encode()
DATA_DIR = os.getenv("STORAGE_PATH", "./_data")
LEDGER_PATH = os.path.join(DATA_DIR, "ledger.json")
KEYSTORE_PATH = os.path.join(DATA_DIR, "keystore.json")
IDENTITIES_PATH = os.path.join(DATA_DIR, "identities.json")

# Identificador del almacén confidencial que deben nombrar las pruebas de autorización.
STORE_ID = os.getenv("STORE_ID", "cipherlab-keystore")

PROOF_MAX_DURATION_DAYS = int(os.getenv("PROOF_MAX_DURATION_DAYS", "10"))
PROOF_DURATION_DAYS = int(os.getenv("PROOF_DURATION_DAYS", "10"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "WARNING")
