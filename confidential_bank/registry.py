"""
TOKEN REGISTRY

Durable token records (name, encrypted total supply, authorized minters) and
the per-token balance maps, namespaced as `tokens_prefix ++ token_id`.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from confidential_bank.errors import TokenNotFound
from confidential_bank.holders import TokenHolder, TokenId
from confidential_bank.state import BytesCodec, JsonCodec, StateMap


def unique_minters(minters) -> List[TokenHolder]:
    """Drop duplicates, keeping first-seen order."""
    seen = set()
    ordered = []
    for minter in minters:
        if minter not in seen:
            seen.add(minter)
            ordered.append(minter)
    return ordered


@dataclass
class Token:
    name: str
    total_supply: bytes
    balances: StateMap
    authorized_minters: List[TokenHolder] = field(default_factory=list)

    @property
    def frozen(self) -> bool:
        return not self.authorized_minters

    def is_authorized_minter(self, holder: TokenHolder) -> bool:
        return holder in self.authorized_minters

    def to_record(self) -> dict:
        return {
            'name': self.name,
            'total_supply': self.total_supply.hex(),
            'authorized_minters': [m.to_json() for m in self.authorized_minters],
        }

    @classmethod
    def from_record(cls, record: dict, balances: StateMap) -> "Token":
        return cls(
            name=record['name'],
            total_supply=bytes.fromhex(record['total_supply']),
            balances=balances,
            authorized_minters=[TokenHolder.from_json(m) for m in record['authorized_minters']],
        )


class TokenRegistry:
    def __init__(self, prefix: bytes):
        self.tokens = StateMap(prefix + b"tokens/", lambda token_id: token_id.raw, JsonCodec)

    @property
    def tokens_prefix(self) -> bytes:
        return self.tokens.prefix

    def balances_for(self, token_id: TokenId) -> StateMap:
        return StateMap(self.tokens_prefix + token_id.raw, TokenHolder.to_key, BytesCodec)

    def get(self, token_id: TokenId, state) -> Optional[Token]:
        record = self.tokens.get(token_id, state)
        if record is None:
            return None
        return Token.from_record(record, self.balances_for(token_id))

    def get_or_err(self, token_id: TokenId, state) -> Token:
        token = self.get(token_id, state)
        if token is None:
            raise TokenNotFound(token_id)
        return token

    def contains(self, token_id: TokenId, state) -> bool:
        return self.tokens.get(token_id, state) is not None

    def set(self, token_id: TokenId, token: Token, state):
        self.tokens.set(token_id, token.to_record(), state)
