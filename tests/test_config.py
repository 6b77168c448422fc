import json

import pytest

from confidential_bank.bank import Bank
from confidential_bank.config import (
    ENV_BACKEND,
    ENV_LOG_LEVEL,
    ENV_PRIVATE_KEY,
    BankConfig,
    LedgerSettings,
    TokenConfig,
)
from confidential_bank.errors import ConfigError
from confidential_bank.holders import Address, get_token_id

ALICE = Address(bytes([0xA1]) * 32)


def test_bank_config_round_trip(tmp_path, bank_config, encrypt):
    bank_config.tokens = [TokenConfig(
        token_name="g",
        token_id=str(get_token_id("g", ALICE, 0)),
        address_and_balances=[(str(ALICE), encrypt(3).hex())],
        authorized_minters=[str(ALICE)],
    )]
    path = tmp_path / "bank_fhe.json"
    bank_config.save(path)

    loaded = BankConfig.load(path)
    assert loaded == bank_config
    assert json.loads(path.read_text())["fhe_public_key"] == bank_config.fhe_public_key.hex()


def test_bank_config_validation_errors(bank_config):
    token_id = str(get_token_id("g", ALICE, 0))
    bank_config.fhe_server_key = b""
    bank_config.tokens = [
        TokenConfig("g", token_id, [("abcd", "zz")], ["00"]),
        TokenConfig("g", token_id),
        TokenConfig("bad", "token_1234"),
    ]

    errors = bank_config.validate()
    assert "fhe_server_key cannot be empty" in errors
    assert any("Invalid holder address" in e for e in errors)
    assert any("is not hex" in e for e in errors)
    assert any("Invalid minter address" in e for e in errors)
    assert any("Duplicate genesis token id" in e for e in errors)
    assert any("Invalid token id" in e for e in errors)


def test_bank_config_load_errors(tmp_path):
    with pytest.raises(ConfigError):
        BankConfig.load(tmp_path / "missing.json")

    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"fhe_public_key": "zz", "fhe_server_key": ""}))
    with pytest.raises(ConfigError):
        BankConfig.load(path)


def test_settings_from_env():
    settings = LedgerSettings.from_env({
        ENV_BACKEND: "gpu",
        ENV_PRIVATE_KEY: "/keys/private_key.json",
        ENV_LOG_LEVEL: "DEBUG",
    })

    assert settings.backend == "gpu"
    assert settings.private_key_path == "/keys/private_key.json"
    assert settings.log.level == "DEBUG"
    assert LedgerSettings.from_env({}).backend == "cpu"


def test_settings_validation(tmp_path):
    assert LedgerSettings().validate() == []

    settings = LedgerSettings(backend="tpu", private_key_path=str(tmp_path / "none.json"))
    settings.log.level = "LOUD"
    errors = settings.validate()
    assert len(errors) == 3


def test_settings_load(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"backend": "gpu", "log": {"level": "DEBUG", "file": "bank.log"}}))

    settings = LedgerSettings.load(path)
    assert settings.backend == "gpu"
    assert settings.log.file == "bank.log"
    assert settings.to_dict()["log"]["level"] == "DEBUG"

    with pytest.raises(ConfigError):
        LedgerSettings.load(tmp_path / "missing.json")


def test_bank_from_settings(tmp_path, serialized_keys, storage, bank_config, encrypt):
    key_path = tmp_path / "private_key.json"
    key_path.write_text(json.dumps({"fhe_private_key": serialized_keys.private_key.hex()}))
    bank = Bank.from_settings(LedgerSettings(backend="gpu", private_key_path=str(key_path)))

    with storage.transaction() as state:
        bank.genesis(bank_config, state)
        token_id = bank.create_token("T", 1, encrypt(42), ALICE, [ALICE], ALICE, state)

    assert bank.balance_of(ALICE, token_id, storage).plaintext == 42

    key_path.write_text("{}")
    with pytest.raises(ConfigError):
        Bank.from_settings(LedgerSettings(private_key_path=str(key_path)))
