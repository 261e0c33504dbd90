from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

from jwt import exceptions as jwt_exceptions

from . import __version__
from .arn_inventory import ArnInventory
from .errors import SisjwtError
from .options import Mode, Options
from .settings import current_settings
from .token import SisJwt

logger = logging.getLogger("sisjwt")

VERBOSITY_LEVELS = {
    0: logging.CRITICAL + 10,
    1: logging.CRITICAL,
    2: logging.ERROR,
    3: logging.WARNING,
    4: logging.INFO,
    5: logging.DEBUG,
}
MAX_VERBOSITY = max(VERBOSITY_LEVELS)


def _verbosity(args: argparse.Namespace) -> int:
    if args.silent:
        return 0
    if args.verbose_level is not None:
        return int(args.verbose_level)
    level = int(current_settings().verbose) + int(args.v or 0)
    return max(0, min(level, MAX_VERBOSITY))


def _configure_logging(args: argparse.Namespace) -> None:
    logging.basicConfig(
        level=VERBOSITY_LEVELS[_verbosity(args)],
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
        force=True,
    )


def _build_options(args: argparse.Namespace, mode: Mode) -> Options:
    opts = Options.defaults(mode)
    overrides: dict[str, Any] = {
        "token_type": args.type,
        "key_alg": args.alg,
        "key_id": args.key_id,
        "aws_region": args.region,
        "aws_profile": args.profile,
        "token_lifetime": args.ttl,
        "iss": args.iss,
        "aud": args.aud,
        "expires_at": args.exp,
    }
    opts = opts.replace(**{k: v for k, v in overrides.items() if v is not None})
    opts.validate()
    logger.debug("options: %s", opts.to_dict())
    logger.debug("options valid: %s", not opts.errors)
    return opts


def _parse_claims(values: list[str]) -> dict[str, Any]:
    """Turn ``["k=v", "flag", "other=x"]`` into ``{"k": "v", "flag": None, "other": "x"}``."""
    claims: dict[str, Any] = {}
    for raw in values:
        key, sep, value = raw.partition("=")
        if not key.strip():
            raise ValueError(f"invalid claim: {raw!r} (expected key=value)")
        claims[key.strip()] = value.strip() if sep else None
    return claims


def _load_payload(args: argparse.Namespace) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    if args.payload:
        obj = json.loads(args.payload)
        if not isinstance(obj, dict):
            raise ValueError("payload must be a JSON object")
        payload.update(obj)
    payload.update(_parse_claims(args.claims))
    return payload


def _load_token(token_arg: str) -> str:
    if token_arg != "-":
        return token_arg.strip()
    logger.debug("reading token from stdin")
    token = sys.stdin.read().strip()
    if not token:
        raise ValueError("stdin is empty; expected JWT")
    return token


def _load_inventory(args: argparse.Namespace) -> ArnInventory | None:
    if args.inventory:
        inventory = ArnInventory()
        inventory.add_from_config(args.inventory, env=args.inventory_env)
        return inventory
    if current_settings().inventory_path:
        return ArnInventory.from_settings(current_settings())
    return None


def _cmd_sign(args: argparse.Namespace) -> int:
    logger.info("SIGN TOKEN")
    opts = _build_options(args, Mode.SIGN)
    payload = _load_payload(args)
    logger.debug("claims: %s", payload)
    # stdout carries only the token
    print(SisJwt(opts).encode(payload))
    return 0


def _cmd_verify(args: argparse.Namespace) -> int:
    logger.info("VERIFY TOKEN")
    opts = _build_options(args, Mode.VERIFY)
    token = _load_token(args.token)
    sisjwt = SisJwt(opts, inventory=_load_inventory(args))
    result = sisjwt.verify(token, allowed_iss=opts.iss, allowed_aud=opts.aud)
    print(result.to_json(indent=2))
    if result.valid or not args.strict_mode:
        return 0
    return 1


def _add_option_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-t", "--type", help="Token type (SISKMS1.0 or SISKMSd)")
    parser.add_argument("-a", "--alg", help="KMS signing algorithm, e.g. RSASSA_PKCS1_V1_5_SHA_256")
    parser.add_argument("-k", "--key-id", help="KMS key id or ARN")
    parser.add_argument("-r", "--region", help="AWS region of the KMS key")
    parser.add_argument("-p", "--profile", help="AWS credentials profile")
    parser.add_argument(
        "--ttl", type=int, help="Token lifetime in seconds (used to calculate exp)"
    )
    parser.add_argument("--exp", type=int, help="Token expiry as unix time (overrides --ttl)")
    parser.add_argument("--iss", help="Token issuer (on verify: the accepted issuer)")
    parser.add_argument("--aud", help="Token audience (on verify: the accepted audience)")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="sisjwt", description="Sign and verify KMS-backed JWTs"
    )
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument(
        "-v",
        action="count",
        default=0,
        help="Increase verbosity (repeatable; default level comes from SISJWT_VERBOSE)",
    )
    parser.add_argument(
        "--verbose",
        dest="verbose_level",
        type=int,
        choices=sorted(VERBOSITY_LEVELS),
        help="Set the verbosity level, 0 (silent) to 5 (debug)",
    )
    parser.add_argument(
        "-s", "--silent", action="store_true", help="Only print data; same as --verbose=0"
    )
    parser.add_argument(
        "--strict-mode",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Exit non-zero when a verified token is invalid (default: on)",
    )

    sub = parser.add_subparsers(dest="cmd", required=True)

    p_sign = sub.add_parser("sign", help="Sign a token and print it")
    _add_option_flags(p_sign)
    p_sign.add_argument("--payload", help="JSON object with extra claims")
    p_sign.add_argument("claims", nargs="*", help="Extra claims as key=value")
    p_sign.set_defaults(func=_cmd_sign)

    p_verify = sub.add_parser("verify", help="Verify a token and print the result as JSON")
    _add_option_flags(p_verify)
    p_verify.add_argument(
        "--inventory", help="ARN inventory YAML file (default: SISJWT_INVENTORY_PATH)"
    )
    p_verify.add_argument(
        "--inventory-env", help="Environment section of the ARN inventory to use"
    )
    p_verify.add_argument("token", help="JWT string (use '-' to read from stdin)")
    p_verify.set_defaults(func=_cmd_verify)

    args = parser.parse_args(argv)
    _configure_logging(args)
    try:
        return int(args.func(args))
    except KeyboardInterrupt:
        return 130
    except (SisjwtError, ValueError, jwt_exceptions.PyJWTError) as exc:
        logger.debug("command failed", exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
