# --------------------------------------------------------------
# File: proof.py
# Description: Construcción, firma y verificación de pruebas de autorización.
# --------------------------------------------------------------
"""Pruebas de autorización para recuperar valores confidenciales."""

import json
from typing import Any, Dict, Iterable

from cryptography.exceptions import InvalidSignature

from messenger.exceptions import InvalidProof, Unauthorized
from messenger.identity import Identity
from messenger.models import AuthorizationProof, AuthorizationRequest

# Separación de dominio para que la firma no sea reutilizable en otro contexto.
PROOF_DOMAIN = b"cipherlab-messenger/user-decrypt/v1\n"
X25519_KEY_SIZE = 32


def canonical_json_bytes(payload: Dict[str, Any]) -> bytes:
    """Serializa un diccionario JSON de manera determinista para firmarlo.

    Args:
        payload (Dict[str, Any]): Datos que formarán parte de la petición.

    Returns:
        bytes: Representación JSON canonizada en UTF-8.
    """

    return json.dumps(payload, separators=(",", ":"), sort_keys=True, ensure_ascii=False).encode("utf-8")


def signing_bytes(request: AuthorizationRequest) -> bytes:
    """Bytes exactos que firma el destinatario."""

    return PROOF_DOMAIN + canonical_json_bytes(request.to_payload())


def build_request(
    identity: Identity,
    ephemeral_public_key: bytes,
    handles: Iterable[str],
    store_id: str,
    start_timestamp: int,
    duration_days: int,
) -> AuthorizationRequest:
    """Construye la petición tipada que vincula principal, handles y ventana."""

    return AuthorizationRequest(
        signer_public_key=identity.public_key_bytes,
        ephemeral_public_key=ephemeral_public_key,
        store_ids=[store_id],
        handles=list(handles),
        start_timestamp=int(start_timestamp),
        duration_days=int(duration_days),
    )


def sign_request(identity: Identity, request: AuthorizationRequest) -> AuthorizationProof:
    """Firma la petición con la clave de identidad de largo plazo."""

    if request.signer_public_key != identity.public_key_bytes:
        raise InvalidProof("La petición no pertenece a la identidad firmante")
    return AuthorizationProof(request=request, signature=identity.sign(signing_bytes(request)))


def verify_proof(proof: AuthorizationProof, store_id: str, now: int, max_duration_days: int) -> str:
    """Valida una prueba de autorización y devuelve su principal.

    Args:
        proof (AuthorizationProof): Prueba presentada por el solicitante.
        store_id (str): Identificador del almacén que la evalúa.
        now (int): Instante actual en segundos UNIX.
        max_duration_days (int): Ventana máxima aceptada.

    Returns:
        str: Principal firmante.

    Raises:
        InvalidProof: Si la firma, el almacén o la ventana no son válidos.
        Unauthorized: Si ``now`` está fuera de la ventana de validez.

    """

    request = proof.request
    if not 1 <= request.duration_days <= max_duration_days:
        raise InvalidProof(
            "Duración de la prueba no permitida",
            {"duration_days": request.duration_days, "max": max_duration_days},
        )
    if store_id not in request.store_ids:
        raise InvalidProof("La prueba no nombra este almacén", {"store_id": store_id})
    if len(request.ephemeral_public_key) != X25519_KEY_SIZE:
        raise InvalidProof("Clave efímera inválida")

    try:
        Identity.verify(request.signer_public_key, signing_bytes(request), proof.signature)
    except (InvalidSignature, ValueError) as exc:
        raise InvalidProof("Firma de la prueba inválida") from exc

    if not request.start_timestamp <= now < request.end_timestamp:
        raise Unauthorized(
            "Prueba fuera de su ventana de validez",
            {"start": request.start_timestamp, "end": request.end_timestamp, "now": now},
        )
    return request.principal
