"""
Confidential token ledger on homomorphically encrypted u64 amounts.
"""

from confidential_bank.bank import Bank, BalanceResponse, TotalSupplyResponse
from confidential_bank.holders import Address, ModuleId, TokenHolder, TokenId, get_token_id
from confidential_bank.ledger import LedgerEngine
from confidential_bank.messages import Coins, CreateToken, Freeze, Mint, Transfer, decode_call

__version__ = "0.1.0"

__all__ = [
    "Address",
    "BalanceResponse",
    "Bank",
    "Coins",
    "CreateToken",
    "Freeze",
    "LedgerEngine",
    "Mint",
    "ModuleId",
    "TokenHolder",
    "TokenId",
    "TotalSupplyResponse",
    "Transfer",
    "decode_call",
    "get_token_id",
]
