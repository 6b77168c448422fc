"""
confidential-bank command line

    confidential-bank keygen --genesis-dir test-data/genesis/mock --keys-dir test-data/keys
    confidential-bank requests --genesis test-data/genesis/mock/bank_fhe.json \\
        --out test-data/requests/fhe --minter <hex> --to <hex>
"""

import argparse
import json
import logging
import sys
import time
from pathlib import Path

from confidential_bank import keys
from confidential_bank.config import BankConfig, LogConfig, setup_logging
from confidential_bank.errors import BankError
from confidential_bank.holders import TokenHolder, TokenId, as_address, get_token_id
from confidential_bank.messages import Coins, CreateToken, Mint, Transfer

logger = logging.getLogger(__name__)

TOKEN_NAME = "sov-confidential-token"
SALT = 11
INITIAL_BALANCE = 1_000
MINT_AMOUNT = 500
TRANSFER_AMOUNT = 100


def cmd_keygen(args) -> int:
    start = time.monotonic()
    material = keys.generate()
    genesis_path, private_path = keys.write_key_files(material, args.genesis_dir, args.keys_dir)
    print(f"[Init] Keys generated in {time.monotonic() - start:.2f}s")
    print(f"[Init] Genesis keys: {genesis_path}")
    print(f"[Init] Private key:  {private_path}")
    return 0


def cmd_requests(args) -> int:
    start = time.monotonic()
    config = BankConfig.load(args.genesis)
    minter = as_address(args.minter)
    recipient = as_address(args.to)
    if args.token_id:
        token_id = TokenId(args.token_id)
    else:
        token_id = get_token_id(TOKEN_NAME, TokenHolder.user(minter), SALT)

    public_key = keys.load_public_key(config.fhe_public_key).decompress()

    def encrypt(amount):
        return keys.encrypt_amount(public_key, amount)

    requests = {
        'create_token.json': CreateToken(
            salt=SALT,
            token_name=TOKEN_NAME,
            initial_balance=encrypt(INITIAL_BALANCE),
            mint_to_address=minter,
            authorized_minters=[minter, recipient],
        ),
        'mint.json': Mint(
            coins=Coins(encrypt(MINT_AMOUNT), token_id),
            mint_to_address=minter,
        ),
        'transfer.json': Transfer(
            to=recipient,
            coins=Coins(encrypt(TRANSFER_AMOUNT), token_id),
        ),
    }

    out = Path(args.out)
    out.mkdir(parents=True, exist_ok=True)
    for name, message in requests.items():
        (out / name).write_text(json.dumps(message.to_json()))

    print(f"[Init] Requests generated and serialized in {time.monotonic() - start:.2f}s")
    print(f"[Init] Requests are stored in {out}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="confidential-bank",
        description="Offline tooling for the confidential token ledger",
    )
    parser.add_argument("--log-level", default="WARNING")
    sub = parser.add_subparsers(dest="command", required=True)

    keygen = sub.add_parser("keygen", help="generate FHE key material")
    keygen.add_argument("--genesis-dir", required=True)
    keygen.add_argument("--keys-dir", required=True)
    keygen.set_defaults(func=cmd_keygen)

    requests = sub.add_parser("requests", help="generate sample call messages")
    requests.add_argument("--genesis", required=True, help="bank_fhe.json")
    requests.add_argument("--out", required=True)
    requests.add_argument("--minter", required=True, help="creator / minter address (hex)")
    requests.add_argument("--to", required=True, help="transfer recipient address (hex)")
    requests.add_argument("--token-id", help="defaults to the id derived from --minter")
    requests.set_defaults(func=cmd_requests)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(LogConfig(level=args.log_level))
    try:
        return args.func(args)
    except (BankError, ValueError) as e:
        logger.error("%s failed: %s", args.command, e)
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
