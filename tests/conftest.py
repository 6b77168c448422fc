import importlib.util
from pathlib import Path

import pytest

from confidential_bank import keys
from confidential_bank.bank import Bank
from confidential_bank.config import BankConfig
from confidential_bank.decryption import DecryptionAuthority

from memory_state import Storage

PROJECT_ROOT = Path(__file__).resolve().parents[1]
HELPER_PATH = PROJECT_ROOT / "client_helper.py"


@pytest.fixture(scope="session")
def helper_module():
    spec = importlib.util.spec_from_file_location("client_helper_tests", HELPER_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture(scope="session")
def key_material():
    return keys.generate()


@pytest.fixture(scope="session")
def serialized_keys(key_material):
    return keys.serialize(key_material).require_complete()


@pytest.fixture(scope="session")
def client_key(key_material):
    return key_material.client_key


@pytest.fixture(scope="session")
def public_key(key_material):
    return key_material.public_key()


@pytest.fixture(scope="session")
def encrypt(key_material):
    """Symmetric (client-key) encryption of a u64, compressed."""
    return key_material.client_key.encrypt_compressed


@pytest.fixture(scope="session")
def decrypt(key_material):
    return key_material.client_key.decrypt


@pytest.fixture
def ctx(key_material):
    with keys.install_evaluation_context(key_material.compressed_server_key, "cpu") as context:
        yield context


@pytest.fixture
def storage():
    return Storage()


@pytest.fixture
def bank_config(serialized_keys):
    return BankConfig(
        fhe_public_key=serialized_keys.public_key,
        fhe_server_key=serialized_keys.server_key,
    )


@pytest.fixture
def bank(storage, bank_config, key_material):
    bank = Bank(backend="cpu", decryption=DecryptionAuthority(key_material.client_key))
    with storage.transaction() as state:
        bank.genesis(bank_config, state)
    return bank
