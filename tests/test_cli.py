import json

from confidential_bank import cli
from confidential_bank.config import BankConfig
from confidential_bank.decryption import DecryptionAuthority
from confidential_bank.holders import Address, get_token_id
from confidential_bank.messages import CreateToken, Mint, Transfer, decode_call

MINTER = Address(bytes([0x11]) * 32)
RECIPIENT = Address(bytes([0x22]) * 32)


def test_keygen_writes_genesis_and_private_key(tmp_path):
    genesis_dir, keys_dir = tmp_path / "genesis", tmp_path / "keys"

    assert cli.main(["keygen", "--genesis-dir", str(genesis_dir), "--keys-dir", str(keys_dir)]) == 0

    config = BankConfig.load(genesis_dir / "bank_fhe.json")
    assert config.tokens == []
    assert config.validate() == []
    authority = DecryptionAuthority.from_file(keys_dir / "private_key.json")
    assert authority.decrypt(None) is None


def test_requests_are_decodable_and_encrypt_the_sample_amounts(tmp_path, bank_config, decrypt):
    genesis = tmp_path / "bank_fhe.json"
    bank_config.save(genesis)
    out = tmp_path / "requests"

    assert cli.main([
        "requests",
        "--genesis", str(genesis),
        "--out", str(out),
        "--minter", str(MINTER),
        "--to", str(RECIPIENT),
    ]) == 0

    create = decode_call((out / "create_token.json").read_text())
    mint = decode_call((out / "mint.json").read_text())
    transfer = decode_call((out / "transfer.json").read_text())

    assert isinstance(create, CreateToken)
    assert create.authorized_minters == [MINTER, RECIPIENT]
    assert decrypt(create.initial_balance) == cli.INITIAL_BALANCE

    token_id = get_token_id(cli.TOKEN_NAME, MINTER, cli.SALT)
    assert isinstance(mint, Mint) and mint.coins.token_id == token_id
    assert decrypt(mint.coins.amount) == cli.MINT_AMOUNT
    assert isinstance(transfer, Transfer) and transfer.to == RECIPIENT
    assert decrypt(transfer.coins.amount) == cli.TRANSFER_AMOUNT


def test_requests_with_unreadable_genesis_fails(tmp_path, capsys):
    code = cli.main([
        "requests",
        "--genesis", str(tmp_path / "missing.json"),
        "--out", str(tmp_path / "out"),
        "--minter", str(MINTER),
        "--to", str(RECIPIENT),
    ])

    assert code == 1
    assert "error:" in capsys.readouterr().err
    assert not (tmp_path / "out").exists()


def test_requests_reject_bad_addresses(tmp_path, bank_config):
    genesis = tmp_path / "bank_fhe.json"
    genesis.write_text(json.dumps(bank_config.to_dict()))

    code = cli.main([
        "requests",
        "--genesis", str(genesis),
        "--out", str(tmp_path / "out"),
        "--minter", "zz",
        "--to", str(RECIPIENT),
    ])
    assert code == 1
