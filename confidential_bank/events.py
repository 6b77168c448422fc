"""
LEDGER EVENTS

Emitted by the bank on successful mutations only. Amounts stay encrypted.
"""

from dataclasses import dataclass, field
from typing import List

from confidential_bank.holders import TokenId
from confidential_bank.messages import Coins


@dataclass(frozen=True)
class TokenCreated:
    event_id: int
    token_name: str
    coins: Coins
    minter: str
    authorized_minters: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class TokenTransferred:
    event_id: int
    sender: str
    to: str
    coins: Coins


@dataclass(frozen=True)
class TokenMinted:
    event_id: int
    mint_to_identity: str
    coins: Coins


@dataclass(frozen=True)
class TokenFrozen:
    event_id: int
    freezer: str
    token_id: TokenId


def event_to_dict(event) -> dict:
    body = {}
    for name, value in vars(event).items():
        if isinstance(value, Coins):
            value = value.to_json()
        elif isinstance(value, TokenId):
            value = str(value)
        body[name] = value
    return {type(event).__name__: body}
