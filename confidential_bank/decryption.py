"""
DECRYPTION AUTHORITY

Off-consensus plaintext queries. Holds the private key read from
private_key.json ({"fhe_private_key": "<hex>"}); never touched by ledger calls.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from confidential_bank.errors import ConfigError
from confidential_bank.keys import load_private_key
from confidential_bank.lwe import ClientKey

logger = logging.getLogger(__name__)


class DecryptionAuthority:
    def __init__(self, client_key: ClientKey):
        self._client_key = client_key

    @classmethod
    def from_file(cls, path) -> "DecryptionAuthority":
        path = Path(path)
        try:
            data = json.loads(path.read_text())
            blob = bytes.fromhex(data['fhe_private_key'])
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise ConfigError(f"Cannot read private key file {path}: {e}") from e
        logger.info("Decryption authority loaded from %s", path)
        return cls(load_private_key(blob))

    def decrypt(self, ciphertext: Optional[bytes]) -> Optional[int]:
        if ciphertext is None:
            return None
        return self._client_key.decrypt(ciphertext)
