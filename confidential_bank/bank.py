"""
CONFIDENTIAL BANK MODULE

Ties the ledger engine to module state:

  - genesis: store the FHE public / server keys, create genesis tokens
  - call:    dispatch CreateToken / Transfer / Mint / Freeze, one evaluation
             context per call, one event per successful mutation
  - queries: balance_of / raw_balance_of / supply_of / raw_supply_of,
             token_id, public_key (optionally at an archived version)

The sender is handed in by the runtime; the bank does no authentication.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from confidential_bank import keys
from confidential_bank.config import BankConfig, LedgerSettings
from confidential_bank.decryption import DecryptionAuthority
from confidential_bank.errors import (
    DecryptionUnavailable,
    KeysNotInitialized,
    TokenAlreadyExists,
    UnknownCall,
)
from confidential_bank.events import TokenCreated, TokenFrozen, TokenMinted, TokenTransferred
from confidential_bank.holders import (
    Address,
    ModuleId,
    TokenHolder,
    TokenId,
    as_token_holder,
    get_token_id,
)
from confidential_bank.ledger import LedgerEngine
from confidential_bank.messages import Coins, CreateToken, Freeze, Mint, Transfer
from confidential_bank.registry import TokenRegistry
from confidential_bank.state import CallState, IntCodec, StateAccessor, StateValue, VersionedState

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = b"bank/"


def _holder(value) -> TokenHolder:
    # bare addresses (hex or bytes) are users
    if isinstance(value, (TokenHolder, Address, ModuleId)):
        return as_token_holder(value)
    return TokenHolder.user(value)


@dataclass(frozen=True)
class BalanceResponse:
    plaintext: Optional[int] = None
    ciphertext: Optional[bytes] = None


@dataclass(frozen=True)
class TotalSupplyResponse:
    plaintext: Optional[int] = None
    ciphertext: Optional[bytes] = None


@dataclass(frozen=True)
class CallResponse:
    token_id: Optional[TokenId] = None


class Bank:
    def __init__(self, prefix: bytes = DEFAULT_PREFIX, backend: str = "cpu",
                 decryption: Optional[DecryptionAuthority] = None):
        self.prefix = prefix
        self.registry = TokenRegistry(prefix)
        self.engine = LedgerEngine(self.registry, backend)
        self.fhe_public_key = StateValue(prefix + b"fhe_public_key")
        self.fhe_server_key = StateValue(prefix + b"fhe_server_key")
        self.next_event_id = StateValue(prefix + b"next_event_id", IntCodec)
        self.decryption = decryption

    @classmethod
    def from_settings(cls, settings: LedgerSettings, prefix: bytes = DEFAULT_PREFIX) -> "Bank":
        decryption = None
        if settings.private_key_path:
            decryption = DecryptionAuthority.from_file(settings.private_key_path)
        return cls(prefix=prefix, backend=settings.backend, decryption=decryption)

    # -------------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------------

    def _server_key(self, state) -> bytes:
        server_key = self.fhe_server_key.get(state)
        if server_key is None:
            raise KeysNotInitialized("server")
        return server_key

    def _context(self, state):
        return keys.install_evaluation_context(self._server_key(state), self.engine.backend)

    def _emit(self, state, event_cls, **fields):
        event_id = self.next_event_id.get(state) or 0
        self.next_event_id.set(event_id + 1, state)
        state.emit_event(event_cls(event_id=event_id, **fields))

    # -------------------------------------------------------------------------
    # Genesis
    # -------------------------------------------------------------------------

    def genesis(self, config: BankConfig, state: CallState):
        # both keys must load before anything is stored
        keys.load_public_key(config.fhe_public_key)
        server_key = keys.load_server_key(config.fhe_server_key)
        self.fhe_public_key.set(config.fhe_public_key, state)
        self.fhe_server_key.set(config.fhe_server_key, state)
        logger.debug("FHE keys stored at genesis")

        if not config.tokens:
            return
        with keys.install_evaluation_context(server_key, self.engine.backend) as ctx:
            for token_config in config.tokens:
                token_id = TokenId(token_config.token_id)
                logger.debug("Genesis of the token %s", token_config)
                if self.registry.contains(token_id, state):
                    raise TokenAlreadyExists(token_config.token_name, token_id)
                self.engine.create_token_with_id(
                    ctx,
                    token_id,
                    token_config.token_name,
                    [
                        (TokenHolder.user(address), bytes.fromhex(balance))
                        for address, balance in token_config.address_and_balances
                    ],
                    [TokenHolder.user(m) for m in token_config.authorized_minters],
                    state,
                )

    # -------------------------------------------------------------------------
    # Calls
    # -------------------------------------------------------------------------

    def call(self, message, sender, state: CallState) -> CallResponse:
        if isinstance(message, CreateToken):
            token_id = self.create_token(
                message.token_name,
                message.salt,
                message.initial_balance,
                message.mint_to_address,
                message.authorized_minters,
                sender,
                state,
            )
            return CallResponse(token_id=token_id)
        if isinstance(message, Transfer):
            self.transfer(message.to, message.coins, sender, state)
        elif isinstance(message, Mint):
            self.mint_from_eoa(message.coins, message.mint_to_address, sender, state)
        elif isinstance(message, Freeze):
            self.freeze(message.token_id, sender, state)
        else:
            raise UnknownCall(type(message).__name__)
        return CallResponse()

    def create_token(self, token_name, salt, initial_balance, minter, authorized_minters,
                     originator, state) -> TokenId:
        minter = _holder(minter)
        logger.info(
            "Create token request: name=%s salt=%s minter=%s sender=%s",
            token_name, salt, minter, originator
        )
        minters = [_holder(m) for m in authorized_minters]
        with self._context(state) as ctx:
            token_id, token = self.engine.create_token(
                ctx,
                token_name,
                salt,
                _holder(originator),
                [(minter, initial_balance)],
                minters,
                state,
            )
        self._emit(
            state, TokenCreated,
            token_name=token_name,
            coins=Coins(initial_balance, token_id),
            minter=minter.to_json(),
            authorized_minters=[m.to_json() for m in token.authorized_minters],
        )
        return token_id

    def transfer(self, to, coins: Coins, sender, state):
        sender = _holder(sender)
        to = _holder(to)
        self.transfer_from(sender, to, coins, state)
        self._emit(state, TokenTransferred, sender=sender.to_json(), to=to.to_json(), coins=coins)

    def transfer_from(self, sender, to, coins: Coins, state):
        with self._context(state) as ctx:
            self.engine.transfer(ctx, sender, to, coins.token_id, coins.amount, state)

    def mint_from_eoa(self, coins: Coins, mint_to_identity, sender, state):
        self.mint(coins, mint_to_identity, _holder(sender), state)

    def mint(self, coins: Coins, mint_to_identity, authorizer, state):
        recipient = _holder(mint_to_identity)
        with self._context(state) as ctx:
            self.engine.mint(ctx, coins.token_id, authorizer, recipient, coins.amount, state)
        self._emit(state, TokenMinted, mint_to_identity=recipient.to_json(), coins=coins)

    def freeze(self, token_id: TokenId, sender, state):
        sender = _holder(sender)
        self.engine.freeze(token_id, sender, state)
        self._emit(state, TokenFrozen, freezer=sender.to_json(), token_id=token_id)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def _view(self, storage: VersionedState, version) -> StateAccessor:
        return storage if version is None else storage.archival(version)

    def _decrypt(self, ciphertext):
        if self.decryption is None:
            raise DecryptionUnavailable()
        return self.decryption.decrypt(ciphertext)

    def get_raw_balance_of(self, user, token_id: TokenId, state) -> Optional[bytes]:
        holder = _holder(user)
        if not self.registry.contains(token_id, state):
            return None
        with self._context(state) as ctx:
            return self.engine.balance_of(ctx, holder, token_id, state)

    def balance_of(self, user, token_id: TokenId, storage, version: Optional[int] = None):
        state = self._view(storage, version)
        return BalanceResponse(plaintext=self._decrypt(self.get_raw_balance_of(user, token_id, state)))

    def raw_balance_of(self, user, token_id: TokenId, storage, version: Optional[int] = None):
        state = self._view(storage, version)
        return BalanceResponse(ciphertext=self.get_raw_balance_of(user, token_id, state))

    def supply_of(self, token_id: TokenId, storage, version: Optional[int] = None):
        state = self._view(storage, version)
        return TotalSupplyResponse(plaintext=self._decrypt(self.engine.total_supply_of(token_id, state)))

    def raw_supply_of(self, token_id: TokenId, storage, version: Optional[int] = None):
        state = self._view(storage, version)
        return TotalSupplyResponse(ciphertext=self.engine.total_supply_of(token_id, state))

    def token_id(self, token_name: str, sender, salt: int) -> TokenId:
        return get_token_id(token_name, _holder(sender), salt)

    def public_key(self, storage) -> Optional[bytes]:
        return self.fhe_public_key.get(storage)
