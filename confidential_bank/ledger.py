"""
LEDGER ENGINE

Token lifecycle on encrypted amounts: create, mint, transfer, freeze and the
balance / supply reads.

Arithmetic operations take the call's EvaluationContext explicitly and run
the same ciphertext operations whatever the (hidden) outcome:

  - mint of a zero amount becomes a zero-effect mint
  - transfer with insufficient funds becomes a zero transfer

Public checks (token existence, minter list, sender == recipient) are plain
branches; they only involve public identities.
"""

import logging

from confidential_bank import backends
from confidential_bank.errors import (
    AlreadyFrozen,
    FrozenToken,
    TokenAlreadyExists,
    UnauthorizedMinter,
)
from confidential_bank.holders import as_token_holder, get_token_id
from confidential_bank.registry import Token, TokenRegistry, unique_minters

logger = logging.getLogger(__name__)


class LedgerEngine:
    def __init__(self, registry: TokenRegistry, backend: str = "cpu"):
        backends.get_backend(backend)
        self.registry = registry
        self.backend = backend

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def create_token(self, ctx, token_name, salt, creator,
                     initial_holders_and_balances, authorized_minters, state):
        """Create a token at the id derived from (creator, name, salt)."""
        token_id = get_token_id(token_name, creator, salt)
        token = self.create_token_with_id(
            ctx, token_id, token_name, initial_holders_and_balances, authorized_minters, state
        )
        return token_id, token

    def create_token_with_id(self, ctx, token_id, token_name,
                             initial_holders_and_balances, authorized_minters, state) -> Token:
        if self.registry.contains(token_id, state):
            raise TokenAlreadyExists(token_name, token_id)

        balances = self.registry.balances_for(token_id)
        total_supply = ctx.zero()
        written = {}
        for holder, amount in initial_holders_and_balances:
            holder = as_token_holder(holder)
            value = ctx.decompress(amount)
            total_supply = ctx.add(total_supply, value)
            if holder in written:
                # repeated holder: balances accumulate
                amount = ctx.compress(ctx.add(ctx.decompress(written[holder]), value))
            written[holder] = bytes(amount)

        for holder, amount in written.items():
            balances.set(holder, amount, state)

        token = Token(
            name=token_name,
            total_supply=ctx.compress(total_supply),
            balances=balances,
            authorized_minters=unique_minters(as_token_holder(m) for m in authorized_minters),
        )
        self.registry.set(token_id, token, state)
        logger.info(
            "Token created: name=%s id=%s holders=%d minters=%d",
            token_name, token_id, len(written), len(token.authorized_minters)
        )
        return token

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def _balance(self, ctx, token: Token, holder, state):
        stored = token.balances.get(holder, state)
        if stored is None:
            return ctx.zero()
        return ctx.decompress(stored)

    def mint(self, ctx, token_id, authorizer, recipient, amount, state):
        authorizer = as_token_holder(authorizer)
        recipient = as_token_holder(recipient)
        token = self.registry.get_or_err(token_id, state)
        if token.frozen:
            raise FrozenToken(token.name)
        if not token.is_authorized_minter(authorizer):
            raise UnauthorizedMinter(authorizer, token.name)

        zero = ctx.zero()
        value = ctx.decompress(amount)
        valid = ctx.gt(value, zero)
        mint_amount = ctx.select(valid, value, zero)

        balance = ctx.add(self._balance(ctx, token, recipient, state), mint_amount)
        token.balances.set(recipient, ctx.compress(balance), state)

        supply = ctx.add(ctx.decompress(token.total_supply), mint_amount)
        token.total_supply = ctx.compress(supply)
        self.registry.set(token_id, token, state)
        logger.info("Mint applied: token=%s to=%s by=%s", token_id, recipient, authorizer)

    def transfer(self, ctx, sender, recipient, token_id, amount, state):
        sender = as_token_holder(sender)
        recipient = as_token_holder(recipient)
        token = self.registry.get_or_err(token_id, state)
        if sender == recipient:
            logger.debug("Self-transfer on %s ignored", token_id)
            return

        zero = ctx.zero()
        value = ctx.decompress(amount)
        from_balance = self._balance(ctx, token, sender, state)
        to_balance = self._balance(ctx, token, recipient, state)

        can_transfer = ctx.gt(from_balance, value)
        transfer_amount = ctx.select(can_transfer, value, zero)

        token.balances.set(sender, ctx.compress(ctx.sub(from_balance, transfer_amount)), state)
        token.balances.set(recipient, ctx.compress(ctx.add(to_balance, transfer_amount)), state)
        logger.info("Transfer applied: token=%s from=%s to=%s", token_id, sender, recipient)

    def freeze(self, token_id, sender, state):
        sender = as_token_holder(sender)
        token = self.registry.get_or_err(token_id, state)
        if token.frozen:
            raise AlreadyFrozen(token.name)
        if not token.is_authorized_minter(sender):
            raise UnauthorizedMinter(sender, token.name)
        token.authorized_minters = []
        self.registry.set(token_id, token, state)
        logger.info("Token frozen: %s by %s", token_id, sender)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def balance_of(self, ctx, holder, token_id, state):
        """Stored ciphertext, an encrypted zero for an unseen holder, None for no token."""
        token = self.registry.get(token_id, state)
        if token is None:
            return None
        stored = token.balances.get(as_token_holder(holder), state)
        if stored is None:
            return ctx.compress(ctx.zero())
        return stored

    def total_supply_of(self, token_id, state):
        token = self.registry.get(token_id, state)
        return None if token is None else token.total_supply

    def token_name(self, token_id, state):
        token = self.registry.get(token_id, state)
        return None if token is None else token.name

    def authorized_minters(self, token_id, state):
        token = self.registry.get(token_id, state)
        return None if token is None else list(token.authorized_minters)
