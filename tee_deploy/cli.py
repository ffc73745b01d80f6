#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# tee-deploy command line.
#
# Secret owner (no cloud credentials needed):
#   tee-deploy encrypt --pubkey <hex> --env-file secrets.env > envelope.hex
#   tee-deploy encrypt --pubkey <hex> --from-env DB_PASSWORD API_KEY=abc
#
# Operator (PHALA_CLOUD_API_KEY set):
#   tee-deploy teepods
#   tee-deploy pubkey --compose docker-compose.yml --name my-app --out issuance.json
#   tee-deploy deploy --issuance issuance.json --envelope @envelope.hex
#
# Local stand-in of the guest side:
#   tee-deploy keygen
#   tee-deploy decrypt --private-key <hex> @envelope.hex
#
# Exit codes:
#   0  - success
#   1  - any error (message on stderr)

import argparse
import json
import logging
import os
import sys
from typing import List, Optional

from .config import Settings
from .crypto import (
    EnvVarEntry, decrypt_env_vars, encrypt_env_vars, generate_recipient_keypair, unpack_envelope,
)
from .crypto.cipher import TAG_SIZE
from .deployer import TeeDeployer
from .errors import TeeDeployError
from .logging_config import setup_logging
from .masking import mask_entries
from .protocol import KeyIssuance

logger = logging.getLogger(__name__)


def parse_env_lines(lines) -> List[EnvVarEntry]:
    """NAME=VALUE lines; blank lines and '#' comments skipped, order and duplicates kept."""
    out: List[EnvVarEntry] = []
    for n, raw in enumerate(lines, 1):
        line = raw.rstrip("\r\n")
        if not line.strip() or line.lstrip().startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):]
        name, sep, value = line.partition("=")
        name = name.strip()
        if not sep or not name:
            raise ValueError(f"line {n}: expected NAME=VALUE")
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
            value = value[1:-1]
        out.append(EnvVarEntry(name, value))
    return out


def read_arg(value: str) -> str:
    """'-' reads stdin, '@path' reads a file, anything else is literal."""
    if value == "-":
        return sys.stdin.read().strip()
    if value.startswith("@"):
        with open(value[1:], "r", encoding="utf-8") as f:
            return f.read().strip()
    return value.strip()


def _collect_entries(args) -> List[EnvVarEntry]:
    entries: List[EnvVarEntry] = []
    if args.env_file:
        with open(args.env_file, "r", encoding="utf-8") as f:
            entries += parse_env_lines(f)
    for name in args.from_env or []:
        if name not in os.environ:
            raise ValueError(f"{name} is not set in the environment")
        entries.append(EnvVarEntry(name, os.environ[name]))
    entries += parse_env_lines(args.pairs or [])
    return entries


# ---------- Secret owner ----------

def cmd_encrypt(args) -> int:
    entries = _collect_entries(args)
    envelope = encrypt_env_vars(entries, read_arg(args.pubkey))
    logger.info("Encrypted %d entries", len(entries))
    print(envelope)
    return 0


# ---------- Guest stand-in ----------

def cmd_keygen(args) -> int:
    private_hex, public_hex = generate_recipient_keypair()
    print(json.dumps({"private_key": private_hex, "public_key": public_hex}, indent=2))
    return 0


def cmd_decrypt(args) -> int:
    key = args.private_key or os.getenv("TEE_RECIPIENT_PRIVATE_KEY")
    if not key:
        print("ERR: no private key (use --private-key or $TEE_RECIPIENT_PRIVATE_KEY)", file=sys.stderr)
        return 1
    entries = decrypt_env_vars(read_arg(args.envelope), read_arg(key))
    shown = entries if args.reveal else mask_entries(entries)
    for name, value in shown:
        print(f"{name}={value}")
    return 0


def cmd_inspect(args) -> int:
    pub, nonce, sealed = unpack_envelope(read_arg(args.envelope))
    print(json.dumps({
        "ephemeral_public_key": pub.hex(),
        "nonce": nonce.hex(),
        "ciphertext_bytes": max(len(sealed) - TAG_SIZE, 0),
        "tag_bytes": min(len(sealed), TAG_SIZE),
    }, indent=2))
    return 0


# ---------- Operator ----------

def _deployer(args) -> TeeDeployer:
    settings = Settings.from_env()
    deployer = TeeDeployer.from_settings(settings)
    teepod_id = getattr(args, "teepod_id", None) or settings.teepod_id
    if teepod_id is not None:
        deployer.select_teepod(teepod_id)
    else:
        deployer.discover_teepod()
    return deployer


def cmd_teepods(args) -> int:
    deployer = TeeDeployer.from_settings(Settings.from_env())
    teepods = deployer.client.get_available_teepods()
    print(json.dumps(teepods.model_dump(mode="json"), indent=2))
    return 0


def cmd_pubkey(args) -> int:
    deployer = _deployer(args)
    vm_config = deployer.create_vm_config_from_file(
        args.compose, args.name, vcpu=args.vcpu, memory=args.memory, disk_size=args.disk_size,
    )
    issuance = deployer.issue_key(vm_config)
    doc = {"vm_config": issuance.vm_config, "app_env_encrypt_pubkey": issuance.pubkey_hex,
           "app_id_salt": issuance.salt, "binding": issuance.binding}
    if args.out:
        with open(args.out, "w", encoding="utf-8") as f:
            json.dump(doc, f, indent=2)
        logger.info("Issuance written to %s", args.out)
    # only the public key goes to the secret owner
    print(issuance.pubkey_hex)
    return 0


def cmd_deploy(args) -> int:
    with open(args.issuance, "r", encoding="utf-8") as f:
        doc = json.load(f)
    # checked against the fingerprint recorded by `pubkey`, not one recomputed from the file
    issuance = KeyIssuance(
        vm_config=doc["vm_config"], pubkey_hex=doc["app_env_encrypt_pubkey"],
        salt=doc["app_id_salt"], binding=doc["binding"],
    )
    issuance.verify_binding()
    envelope = read_arg(args.envelope)
    unpack_envelope(envelope)
    deployer = TeeDeployer.from_settings(Settings.from_env())
    deployment = deployer.deploy_with_encrypted_env(issuance, envelope)
    print(json.dumps(deployment.model_dump(mode="json"), indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tee-deploy", description="Encrypted env deployment to TEE hosts.")
    parser.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "WARNING"))
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("encrypt", help="Encrypt env vars for a recipient public key")
    p.add_argument("--pubkey", required=True, help="64-char hex key, '@file' or '-' for stdin")
    p.add_argument("--env-file", help="File of NAME=VALUE lines")
    p.add_argument("--from-env", nargs="*", metavar="NAME", help="Take values from the current environment")
    p.add_argument("pairs", nargs="*", metavar="NAME=VALUE")
    p.set_defaults(func=cmd_encrypt)

    p = sub.add_parser("keygen", help="Generate a static recipient keypair")
    p.set_defaults(func=cmd_keygen)

    p = sub.add_parser("decrypt", help="Open an envelope with the recipient private key")
    p.add_argument("envelope", help="Hex envelope, '@file' or '-' for stdin")
    p.add_argument("--private-key", default=None)
    p.add_argument("--reveal", action="store_true", help="Print values unmasked")
    p.set_defaults(func=cmd_decrypt)

    p = sub.add_parser("inspect", help="Show envelope field sizes")
    p.add_argument("envelope")
    p.set_defaults(func=cmd_inspect)

    p = sub.add_parser("teepods", help="List available TEEPods")
    p.set_defaults(func=cmd_teepods)

    p = sub.add_parser("pubkey", help="Issue an encryption key for a compose file")
    p.add_argument("--compose", required=True)
    p.add_argument("--name", required=True)
    p.add_argument("--teepod-id", type=int, default=None)
    p.add_argument("--vcpu", type=int, default=None)
    p.add_argument("--memory", type=int, default=None)
    p.add_argument("--disk-size", type=int, default=None)
    p.add_argument("--out", help="Write the issuance (config, key, salt) for the deploy step")
    p.set_defaults(func=cmd_pubkey)

    p = sub.add_parser("deploy", help="Forward an envelope with its issuance")
    p.add_argument("--issuance", required=True)
    p.add_argument("--envelope", required=True)
    p.set_defaults(func=cmd_deploy)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, stream=sys.stderr)
    try:
        return args.func(args)
    except TeeDeployError as e:
        print(f"ERR: {e}", file=sys.stderr)
    except (OSError, ValueError, KeyError) as e:
        print(f"ERR: {e}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
