"""
CALL MESSAGES

The four inbound calls and their JSON form:

    {"CreateToken": {"salt": 11, "token_name": "...", "initial_balance": "<hex>",
                     "mint_to_address": "<hex>", "authorized_minters": ["<hex>", ...]}}
    {"Transfer": {"to": "<hex>", "coins": {"amount": "<hex>", "token_id": "token_<hex>"}}}
    {"Mint": {"coins": {...}, "mint_to_address": "<hex>"}}
    {"Freeze": {"token_id": "token_<hex>"}}

Encrypted amounts travel as hex of the compressed ciphertext bytes.
"""

import json
from dataclasses import dataclass, field
from typing import List, Union

from confidential_bank.errors import CodecError, UnknownCall
from confidential_bank.holders import Address, TokenId, as_address
from confidential_bank.params import UINT64_MAX


def _hex_bytes(value, what) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    try:
        return bytes.fromhex(value)
    except (TypeError, ValueError):
        raise CodecError(f"{what} must be hex encoded") from None


def _salt(value) -> int:
    salt = int(value)
    if not 0 <= salt <= UINT64_MAX:
        raise CodecError("salt must be an unsigned 64-bit integer", {"salt": salt})
    return salt


@dataclass(frozen=True)
class Coins:
    amount: bytes
    token_id: TokenId

    def to_json(self) -> dict:
        return {'amount': self.amount.hex(), 'token_id': str(self.token_id)}

    @classmethod
    def from_json(cls, data: dict) -> "Coins":
        return cls(_hex_bytes(data['amount'], "amount"), TokenId(data['token_id']))

    def __str__(self):
        return f"token_id={self.token_id} amount=<{len(self.amount)} bytes>"


@dataclass(frozen=True)
class CreateToken:
    salt: int
    token_name: str
    initial_balance: bytes
    mint_to_address: Address
    authorized_minters: List[Address] = field(default_factory=list)

    def to_json(self) -> dict:
        return {'CreateToken': {
            'salt': self.salt,
            'token_name': self.token_name,
            'initial_balance': self.initial_balance.hex(),
            'mint_to_address': str(self.mint_to_address),
            'authorized_minters': [str(m) for m in self.authorized_minters],
        }}

    @classmethod
    def from_json(cls, data: dict) -> "CreateToken":
        return cls(
            salt=_salt(data['salt']),
            token_name=data['token_name'],
            initial_balance=_hex_bytes(data['initial_balance'], "initial_balance"),
            mint_to_address=as_address(data['mint_to_address']),
            authorized_minters=[as_address(m) for m in data.get('authorized_minters', [])],
        )


@dataclass(frozen=True)
class Transfer:
    to: Address
    coins: Coins

    def to_json(self) -> dict:
        return {'Transfer': {'to': str(self.to), 'coins': self.coins.to_json()}}

    @classmethod
    def from_json(cls, data: dict) -> "Transfer":
        return cls(to=as_address(data['to']), coins=Coins.from_json(data['coins']))


@dataclass(frozen=True)
class Mint:
    coins: Coins
    mint_to_address: Address

    def to_json(self) -> dict:
        return {'Mint': {
            'coins': self.coins.to_json(),
            'mint_to_address': str(self.mint_to_address),
        }}

    @classmethod
    def from_json(cls, data: dict) -> "Mint":
        return cls(
            coins=Coins.from_json(data['coins']),
            mint_to_address=as_address(data['mint_to_address']),
        )


@dataclass(frozen=True)
class Freeze:
    token_id: TokenId

    def to_json(self) -> dict:
        return {'Freeze': {'token_id': str(self.token_id)}}

    @classmethod
    def from_json(cls, data: dict) -> "Freeze":
        return cls(token_id=TokenId(data['token_id']))


CallMessage = Union[CreateToken, Transfer, Mint, Freeze]

CALLS = {
    'CreateToken': CreateToken,
    'Transfer': Transfer,
    'Mint': Mint,
    'Freeze': Freeze,
}


def decode_call(payload) -> CallMessage:
    """Decode a call message from its JSON text or already-parsed dict."""
    if isinstance(payload, (str, bytes)):
        payload = json.loads(payload)
    if not isinstance(payload, dict) or len(payload) != 1:
        raise UnknownCall(repr(payload)[:64])
    (name, body), = payload.items()
    if name not in CALLS:
        raise UnknownCall(name)
    try:
        return CALLS[name].from_json(body)
    except (KeyError, TypeError, ValueError) as e:
        raise CodecError(f"Malformed {name} message: {e}", {"call": name}) from e
