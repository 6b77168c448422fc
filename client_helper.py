import json
from pathlib import Path

from confidential_bank import keys
from confidential_bank.holders import TokenId, as_address
from confidential_bank.lwe import ClientKey
from confidential_bank.messages import Coins, CreateToken, Freeze, Mint, Transfer

# ---- Chain-constant parameters & helpers (mirror bank genesis) ----

def load_genesis_keys(path):
    """Return the public key bytes published in bank_fhe.json."""
    data = json.loads(Path(path).read_text())
    return bytes.fromhex(data['fhe_public_key'])

def encrypt_amount(public_key, amount: int) -> bytes:
    # Public-key encryption, compressed exactly like on-chain state
    return keys.encrypt_amount(public_key, amount)

def _token_id(token_id) -> TokenId:
    return token_id if isinstance(token_id, TokenId) else TokenId(token_id)

# ---- High-level builders -----------------------------------------------------

def build_create_token(public_key,
                       token_name: str,
                       salt: int,
                       initial_balance: int,
                       mint_to_address,
                       authorized_minters=None,
                       amount_ciphertext: bytes = None):
    """
    Returns the CreateToken call message:
        {"CreateToken": {salt, token_name, initial_balance, mint_to_address, authorized_minters}}
    Pass `amount_ciphertext` to reuse an already encrypted initial balance.
    """
    if amount_ciphertext is None:
        amount_ciphertext = encrypt_amount(public_key, initial_balance)
    if authorized_minters is None:
        authorized_minters = [mint_to_address]

    return CreateToken(
        salt=int(salt),
        token_name=token_name,
        initial_balance=amount_ciphertext,
        mint_to_address=as_address(mint_to_address),
        authorized_minters=[as_address(m) for m in authorized_minters],
    ).to_json()

def build_transfer(public_key,
                   to,
                   token_id,
                   amount: int,
                   amount_ciphertext: bytes = None):
    """
    Returns the Transfer call message:
        {"Transfer": {to, coins: {amount, token_id}}}
    The sender is whoever signs the call. An amount the sender cannot cover
    transfers nothing; the call still succeeds.
    """
    if amount_ciphertext is None:
        amount_ciphertext = encrypt_amount(public_key, amount)

    return Transfer(
        to=as_address(to),
        coins=Coins(amount_ciphertext, _token_id(token_id)),
    ).to_json()

def build_mint(public_key,
               token_id,
               amount: int,
               mint_to_address,
               amount_ciphertext: bytes = None):
    """
    Returns the Mint call message:
        {"Mint": {coins: {amount, token_id}, mint_to_address}}
    Authorized-minter only on-chain; a zero amount mints nothing.
    """
    if amount_ciphertext is None:
        amount_ciphertext = encrypt_amount(public_key, amount)

    return Mint(
        coins=Coins(amount_ciphertext, _token_id(token_id)),
        mint_to_address=as_address(mint_to_address),
    ).to_json()

def build_freeze(token_id):
    """Returns the Freeze call message: {"Freeze": {token_id}}."""
    return Freeze(token_id=_token_id(token_id)).to_json()

# ---- Convenience: wallet-side balance tracker (optional) --------------------

class EncryptedAccount:
    """
    Optional local helper for the key holder: keeps the last balance ciphertext
    fetched from the bank and decrypts it on demand.
    """
    def __init__(self, address, client_key):
        if isinstance(client_key, (bytes, bytearray)):
            client_key = keys.load_private_key(bytes(client_key))
        if not isinstance(client_key, ClientKey):
            raise TypeError("client_key must be a ClientKey or its serialized bytes")
        self.address = as_address(address)
        self._client_key = client_key
        self.ciphertext = None

    def sync(self, bank, token_id, storage, version=None):
        response = bank.raw_balance_of(self.address, _token_id(token_id), storage, version)
        self.ciphertext = response.ciphertext
        return self.balance

    @property
    def balance(self):
        if self.ciphertext is None:
            return None
        return self._client_key.decrypt(self.ciphertext)
