# --------------------------------------------------------------
# File: cli.py
# Description: Interfaz de línea de comandos para enviar y leer mensajes cifrados.
# --------------------------------------------------------------
"""Comandos `messenger register|identities|send|count|message-at|decrypt|inbox`."""

from __future__ import annotations

import argparse
import getpass
import json
import logging
import os
import sys
from datetime import UTC, datetime
from typing import List, Optional

from messenger import config
from messenger.exceptions import MessengerError
from messenger.identity import Identity, list_identities, register_identity, unlock_identity
from messenger_api.services import Messenger

logger = logging.getLogger(__name__)


def _passphrase(args: argparse.Namespace) -> str:
    """Obtiene la passphrase de los argumentos, del entorno o del terminal."""

    if args.passphrase:
        return args.passphrase
    env_value = os.getenv("MESSENGER_PASSPHRASE")
    if env_value:
        return env_value
    return getpass.getpass(f"Passphrase de {args.name}: ")


def _unlock(args: argparse.Namespace) -> Identity:
    return unlock_identity(args.name, _passphrase(args))


def _fmt_ts(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp, UTC).isoformat()


def cmd_register(args: argparse.Namespace, messenger: Messenger) -> int:
    identity = register_identity(args.name, _passphrase(args))
    print(f"Identity {args.name}: {identity.principal}")
    return 0


def cmd_identities(args: argparse.Namespace, messenger: Messenger) -> int:
    for name, principal in sorted(list_identities().items()):
        print(f"{name}\t{principal}")
    return 0


def cmd_send(args: argparse.Namespace, messenger: Messenger) -> int:
    sender = _unlock(args)
    index = messenger.send(sender, args.recipient, args.message)
    print(f"Message {index} delivered to {args.recipient.lower()}")
    return 0


def cmd_count(args: argparse.Namespace, messenger: Messenger) -> int:
    print(f"Message count for {args.recipient.lower()}: {messenger.count(args.recipient)}")
    return 0


def cmd_message_at(args: argparse.Namespace, messenger: Messenger) -> int:
    record = messenger.message_at(args.recipient, args.index)
    print(f"Sender: {record.sender}")
    print(f"Encrypted message: {record.ciphertext}")
    print(f"Encrypted key: {record.key_handle}")
    print(f"Timestamp: {record.timestamp} ({_fmt_ts(record.timestamp)})")
    return 0


def cmd_decrypt(args: argparse.Namespace, messenger: Messenger) -> int:
    identity = _unlock(args)
    plaintext = messenger.decrypt(identity, args.index, recipient=args.recipient)
    print(f"Plaintext message: {plaintext}")
    return 0


def cmd_inbox(args: argparse.Namespace, messenger: Messenger) -> int:
    identity = _unlock(args)
    items = messenger.inbox(identity, decrypt=not args.no_decrypt)
    if not items:
        print("No messages yet.")
        return 0
    for item in items:
        line = f"[{item.index}] {_fmt_ts(item.record.timestamp)} from {item.record.sender}"
        if item.plaintext is not None:
            line += f": {item.plaintext}"
        elif item.error is not None:
            line += f": <{item.error.__class__.__name__}: {item.error.message}>"
        print(line)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="messenger",
        description="Mensajería cifrada con claves de un solo uso y almacén confidencial.",
    )
    parser.add_argument("--json-errors", action="store_true", help="Errores en formato JSON")
    sub = parser.add_subparsers(dest="command", required=True)

    def with_identity(p: argparse.ArgumentParser) -> argparse.ArgumentParser:
        p.add_argument("--name", required=True, help="Alias de la identidad local")
        p.add_argument("--passphrase", help="Passphrase (o MESSENGER_PASSPHRASE)")
        return p

    p = with_identity(sub.add_parser("register", help="Crea una identidad de firma"))
    p.set_defaults(func=cmd_register)

    p = sub.add_parser("identities", help="Lista las identidades locales")
    p.set_defaults(func=cmd_identities)

    p = with_identity(sub.add_parser("send", help="Envía un mensaje cifrado"))
    p.add_argument("--recipient", required=True)
    p.add_argument("--message", required=True)
    p.set_defaults(func=cmd_send)

    p = sub.add_parser("count", help="Número de mensajes de un destinatario")
    p.add_argument("--recipient", required=True)
    p.set_defaults(func=cmd_count)

    p = sub.add_parser("message-at", help="Muestra un registro cifrado")
    p.add_argument("--recipient", required=True)
    p.add_argument("--index", type=int, required=True)
    p.set_defaults(func=cmd_message_at)

    p = with_identity(sub.add_parser("decrypt", help="Descifra un mensaje propio"))
    p.add_argument("--index", type=int, required=True)
    p.add_argument("--recipient", help="Principal destinatario (por defecto, el de la identidad)")
    p.set_defaults(func=cmd_decrypt)

    p = with_identity(sub.add_parser("inbox", help="Bandeja de entrada"))
    p.add_argument("--no-decrypt", action="store_true")
    p.set_defaults(func=cmd_inbox)
    return parser


def main(argv: Optional[List[str]] = None, messenger: Optional[Messenger] = None) -> int:
    logging.basicConfig(
        level=config.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args = build_parser().parse_args(argv)
    messenger = messenger if messenger is not None else Messenger.from_config()
    try:
        return args.func(args, messenger)
    except MessengerError as exc:
        logger.debug("Comando %s fallido", args.command, exc_info=True)
        if args.json_errors:
            print(json.dumps(exc.to_dict(), ensure_ascii=False), file=sys.stderr)
        else:
            print(f"Error: {exc.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
