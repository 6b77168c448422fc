"""
KEY MANAGER

Generation, serialization and loading of FHE key material, and the call-scoped
installation of the evaluation key.

    material = generate()
    blobs = serialize(material).require_complete()
    with install_evaluation_context(blobs.server_key, "gpu") as ctx:
        ...

The private (client) key is only ever written to the keys directory for a
decryption authority; ledger state holds the public and server keys, neither
of which can decrypt.
"""

import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Optional

from confidential_bank import backends, lwe
from confidential_bank.codec import Kind
from confidential_bank.errors import BankError, KeyDeserializationError, KeySerializationError
from confidential_bank.integer import EvaluationContext
from confidential_bank.lwe import ClientKey, CompressedPublicKey, CompressedServerKey, ServerKey
from confidential_bank.params import PARAMETER_SET

logger = logging.getLogger(__name__)

GENESIS_FILE = "bank_fhe.json"
PRIVATE_KEY_FILE = "private_key.json"


class SerializationStatus(Enum):
    NOT_SERIALIZED = "not_serialized"
    PARTIALLY_SERIALIZED = "partially_serialized"
    FULLY_SERIALIZED = "fully_serialized"


@dataclass(frozen=True)
class KeyMaterial:
    client_key: ClientKey
    compressed_server_key: CompressedServerKey
    compressed_public_key: CompressedPublicKey
    parameter_set: str = PARAMETER_SET

    def public_key(self):
        return self.compressed_public_key.decompress()


@dataclass(frozen=True)
class SerializedKeys:
    public_key: Optional[bytes]
    server_key: Optional[bytes]
    private_key: Optional[bytes]
    status: SerializationStatus

    @property
    def failed(self):
        return [
            name for name, blob in (
                ("public", self.public_key),
                ("server", self.server_key),
                ("private", self.private_key),
            )
            if blob is None
        ]

    def require_complete(self) -> "SerializedKeys":
        if self.status is not SerializationStatus.FULLY_SERIALIZED:
            raise KeySerializationError(self.status.value, self.failed)
        return self


def generate(rng=None) -> KeyMaterial:
    """
    Generate a fresh key set under PARAMETER_SET.

    `rng` may be a callable returning a ClientKey (tests inject fixed secrets);
    by default the secret comes from the OS CSPRNG.
    """
    client_key = rng() if rng is not None else ClientKey.generate()
    material = KeyMaterial(
        client_key=client_key,
        compressed_server_key=CompressedServerKey.new(client_key),
        compressed_public_key=CompressedPublicKey.new(client_key),
    )
    logger.info("Generated FHE key material (%s)", PARAMETER_SET)
    return material


def _serialize_one(name, key):
    try:
        return key.serialize()
    except BankError as e:
        logger.error("Failed to serialize %s key: %s", name, e)
        return None


def serialize(material: KeyMaterial) -> SerializedKeys:
    public = _serialize_one("public", material.compressed_public_key)
    server = _serialize_one("server", material.compressed_server_key)
    private = _serialize_one("private", material.client_key)

    done = sum(blob is not None for blob in (public, server, private))
    if done == 3:
        status = SerializationStatus.FULLY_SERIALIZED
    elif done == 0:
        status = SerializationStatus.NOT_SERIALIZED
    else:
        status = SerializationStatus.PARTIALLY_SERIALIZED
    return SerializedKeys(public, server, private, status)


def _load(name, loader, data):
    try:
        return loader(data)
    except BankError as e:
        raise KeyDeserializationError(name, e.message) from e
    except (TypeError, ValueError) as e:
        raise KeyDeserializationError(name, str(e)) from e


def load_public_key(data: bytes) -> CompressedPublicKey:
    return _load("public", CompressedPublicKey.deserialize, data)


def load_server_key(data: bytes) -> CompressedServerKey:
    return _load("server", CompressedServerKey.deserialize, data)


def load_private_key(data: bytes) -> ClientKey:
    return _load("private", ClientKey.deserialize, data)


def deserialize(public: bytes, server: bytes, private: bytes) -> KeyMaterial:
    return KeyMaterial(
        client_key=load_private_key(private),
        compressed_server_key=load_server_key(server),
        compressed_public_key=load_public_key(public),
    )


@lru_cache(maxsize=4)
def _evaluation_key(server_key: CompressedServerKey) -> ServerKey:
    logger.debug("Decompressing server key")
    return server_key.decompress()


def decompress_server_key(server_key: CompressedServerKey, backend: str = "cpu"):
    """Evaluation backend over the decompressed server key."""
    backend_cls = backends.get_backend(backend)
    return backend_cls(_evaluation_key(server_key))


@contextmanager
def install_evaluation_context(server_key, backend: str = "cpu"):
    """
    Yield an EvaluationContext for exactly one ledger call.

    `server_key` is a CompressedServerKey or its serialized bytes. The context
    is released on exit, whether the call succeeded or not.
    """
    if isinstance(server_key, (bytes, bytearray)):
        server_key = load_server_key(bytes(server_key))
    context = EvaluationContext(decompress_server_key(server_key, backend))
    logger.debug("Installed %s evaluation context", backend)
    try:
        yield context
    finally:
        context.release()


def encrypt_amount(public_key, amount: int) -> bytes:
    """Public-key encrypt a u64, packed like evaluated ciphertexts in ledger state."""
    if isinstance(public_key, (bytes, bytearray)):
        public_key = load_public_key(bytes(public_key))
    if isinstance(public_key, CompressedPublicKey):
        public_key = public_key.decompress()
    return lwe.dump_blocks(Kind.PACKED_UINT64, public_key.encrypt(amount))


def write_key_files(material: KeyMaterial, genesis_dir, keys_dir):
    """Write bank_fhe.json (genesis) and private_key.json (decryption authority)."""
    blobs = serialize(material).require_complete()
    genesis_dir, keys_dir = Path(genesis_dir), Path(keys_dir)
    genesis_dir.mkdir(parents=True, exist_ok=True)
    keys_dir.mkdir(parents=True, exist_ok=True)

    genesis_path = genesis_dir / GENESIS_FILE
    genesis_path.write_text(json.dumps({
        'tokens': [],
        'fhe_public_key': blobs.public_key.hex(),
        'fhe_server_key': blobs.server_key.hex(),
    }, indent=2))

    private_path = keys_dir / PRIVATE_KEY_FILE
    private_path.write_text(json.dumps({'fhe_private_key': blobs.private_key.hex()}, indent=2))

    logger.info("Wrote %s and %s", genesis_path, private_path)
    return genesis_path, private_path
