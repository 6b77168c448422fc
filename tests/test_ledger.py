import pytest

from confidential_bank.errors import (
    AlreadyFrozen,
    FrozenToken,
    TokenAlreadyExists,
    TokenNotFound,
    UnauthorizedMinter,
    UnknownBackend,
)
from confidential_bank.holders import Address, ModuleId, TokenHolder, get_token_id
from confidential_bank.ledger import LedgerEngine
from confidential_bank.registry import TokenRegistry

from memory_state import WorkingSet

A = TokenHolder.user(bytes([0xA1]) * 32)
B = TokenHolder.user(bytes([0xB0]) * 32)
C = TokenHolder.user(bytes([0xC4]) * 32)
VAULT = TokenHolder.module(bytes([0x0D]) * 32)


@pytest.fixture
def engine():
    return LedgerEngine(TokenRegistry(b"bank/"))


@pytest.fixture
def state(storage):
    return WorkingSet(storage)


def create(engine, ctx, state, encrypt, *, balances, minters, name="T", salt=11, creator=A):
    token_id, _ = engine.create_token(
        ctx, name, salt, creator,
        [(holder, encrypt(amount)) for holder, amount in balances],
        minters,
        state,
    )
    return token_id


def balance(engine, ctx, state, decrypt, holder, token_id):
    return decrypt(engine.balance_of(ctx, holder, token_id, state))


def supply(engine, state, decrypt, token_id):
    return decrypt(engine.total_supply_of(token_id, state))


def test_unknown_backend_is_rejected_at_construction():
    with pytest.raises(UnknownBackend):
        LedgerEngine(TokenRegistry(b"bank/"), backend="fpga")


def test_create_token_sums_initial_balances(engine, ctx, state, encrypt, decrypt):
    token_id = create(engine, ctx, state, encrypt, balances=[(A, 1000), (B, 250)], minters=[A])

    assert token_id == get_token_id("T", A, 11)
    assert engine.token_name(token_id, state) == "T"
    assert balance(engine, ctx, state, decrypt, A, token_id) == 1000
    assert balance(engine, ctx, state, decrypt, B, token_id) == 250
    assert supply(engine, state, decrypt, token_id) == 1250


def test_create_token_with_no_holders_has_zero_supply(engine, ctx, state, encrypt, decrypt):
    token_id = create(engine, ctx, state, encrypt, balances=[], minters=[A])
    assert supply(engine, state, decrypt, token_id) == 0


def test_repeated_initial_holder_accumulates(engine, ctx, state, encrypt, decrypt):
    token_id = create(engine, ctx, state, encrypt, balances=[(A, 10), (A, 5)], minters=[A])

    assert balance(engine, ctx, state, decrypt, A, token_id) == 15
    assert supply(engine, state, decrypt, token_id) == 15


def test_minters_are_deduplicated_in_first_seen_order(engine, ctx, state, encrypt):
    first = create(engine, ctx, state, encrypt, balances=[], minters=[A, B, A, C], salt=1)
    second = create(engine, ctx, state, encrypt, balances=[], minters=[A, B, A, C], salt=2)

    assert engine.authorized_minters(first, state) == [A, B, C]
    assert engine.authorized_minters(second, state) == [A, B, C]


def test_token_id_collision(engine, ctx, state, encrypt, decrypt):
    token_id = create(engine, ctx, state, encrypt, balances=[(A, 1)], minters=[A])

    with pytest.raises(TokenAlreadyExists):
        create(engine, ctx, state, encrypt, balances=[(B, 99)], minters=[B])
    assert balance(engine, ctx, state, decrypt, B, token_id) == 0
    assert supply(engine, state, decrypt, token_id) == 1


def test_mint_updates_recipient_and_supply(engine, ctx, state, encrypt, decrypt):
    token_id = create(engine, ctx, state, encrypt, balances=[(A, 1000)], minters=[A, B])

    engine.mint(ctx, token_id, B, C, encrypt(500), state)

    assert balance(engine, ctx, state, decrypt, C, token_id) == 500
    assert supply(engine, state, decrypt, token_id) == 1500


def test_mint_to_module_holder(engine, ctx, state, encrypt, decrypt):
    token_id = create(engine, ctx, state, encrypt, balances=[], minters=[A])

    engine.mint(ctx, token_id, A, ModuleId(VAULT.raw), encrypt(7), state)

    assert balance(engine, ctx, state, decrypt, VAULT, token_id) == 7
    assert balance(engine, ctx, state, decrypt, Address(VAULT.raw), token_id) == 0


def test_zero_mint_is_an_oblivious_no_op(engine, ctx, state, encrypt, decrypt):
    token_id = create(engine, ctx, state, encrypt, balances=[(A, 40)], minters=[A])

    engine.mint(ctx, token_id, A, A, encrypt(0), state)

    assert balance(engine, ctx, state, decrypt, A, token_id) == 40
    assert supply(engine, state, decrypt, token_id) == 40


def test_mint_errors(engine, ctx, state, encrypt):
    token_id = create(engine, ctx, state, encrypt, balances=[], minters=[A])
    missing = get_token_id("missing", A, 0)

    with pytest.raises(TokenNotFound):
        engine.mint(ctx, missing, A, A, encrypt(1), state)
    with pytest.raises(UnauthorizedMinter):
        engine.mint(ctx, token_id, B, B, encrypt(1), state)


def test_transfer_moves_funds(engine, ctx, state, encrypt, decrypt):
    token_id = create(engine, ctx, state, encrypt, balances=[(A, 1000)], minters=[A])

    engine.transfer(ctx, A, C, token_id, encrypt(100), state)

    assert balance(engine, ctx, state, decrypt, A, token_id) == 900
    assert balance(engine, ctx, state, decrypt, C, token_id) == 100
    assert supply(engine, state, decrypt, token_id) == 1000


@pytest.mark.parametrize("amount", [301, 300, 0, 2**64 - 1])
def test_insufficient_funds_is_a_silent_no_op(engine, ctx, state, encrypt, decrypt, amount):
    # a transfer needs strictly more funds than the amount
    token_id = create(engine, ctx, state, encrypt, balances=[(A, 300), (B, 5)], minters=[A])

    engine.transfer(ctx, A, B, token_id, encrypt(amount), state)

    assert balance(engine, ctx, state, decrypt, A, token_id) == 300
    assert balance(engine, ctx, state, decrypt, B, token_id) == 5


def test_transfer_from_absent_sender_moves_nothing(engine, ctx, state, encrypt, decrypt):
    token_id = create(engine, ctx, state, encrypt, balances=[(A, 10)], minters=[A])

    engine.transfer(ctx, B, C, token_id, encrypt(3), state)

    assert balance(engine, ctx, state, decrypt, B, token_id) == 0
    assert balance(engine, ctx, state, decrypt, C, token_id) == 0


def test_self_transfer_leaves_state_untouched(engine, ctx, state, encrypt):
    token_id = create(engine, ctx, state, encrypt, balances=[(A, 10)], minters=[A])
    before = dict(state.writes)

    engine.transfer(ctx, A, A, token_id, encrypt(3), state)

    assert state.writes == before


def test_transfer_unknown_token(engine, ctx, state, encrypt):
    with pytest.raises(TokenNotFound):
        engine.transfer(ctx, A, B, get_token_id("nope", A, 0), encrypt(1), state)


def test_freeze_is_monotonic(engine, ctx, state, encrypt):
    token_id = create(engine, ctx, state, encrypt, balances=[(A, 10)], minters=[A, B])

    with pytest.raises(UnauthorizedMinter):
        engine.freeze(token_id, C, state)
    engine.freeze(token_id, B, state)

    assert engine.authorized_minters(token_id, state) == []
    with pytest.raises(FrozenToken):
        engine.mint(ctx, token_id, A, A, encrypt(1), state)
    with pytest.raises(AlreadyFrozen):
        engine.freeze(token_id, A, state)
    with pytest.raises(TokenNotFound):
        engine.freeze(get_token_id("nope", A, 0), A, state)


def test_transfers_still_work_after_freeze(engine, ctx, state, encrypt, decrypt):
    token_id = create(engine, ctx, state, encrypt, balances=[(A, 10)], minters=[A])
    engine.freeze(token_id, A, state)

    engine.transfer(ctx, A, B, token_id, encrypt(4), state)

    assert balance(engine, ctx, state, decrypt, A, token_id) == 6
    assert balance(engine, ctx, state, decrypt, B, token_id) == 4


def test_empty_minters_at_creation_yields_frozen_token(engine, ctx, state, encrypt):
    token_id = create(engine, ctx, state, encrypt, balances=[(A, 10)], minters=[])

    with pytest.raises(FrozenToken):
        engine.mint(ctx, token_id, A, A, encrypt(1), state)
    with pytest.raises(AlreadyFrozen):
        engine.freeze(token_id, A, state)


def test_reads_for_unknown_token_and_unseen_holder(engine, ctx, state, encrypt, decrypt):
    missing = get_token_id("missing", A, 0)
    assert engine.balance_of(ctx, A, missing, state) is None
    assert engine.total_supply_of(missing, state) is None
    assert engine.token_name(missing, state) is None

    token_id = create(engine, ctx, state, encrypt, balances=[(A, 10)], minters=[A])
    assert balance(engine, ctx, state, decrypt, C, token_id) == 0


def test_conservation_over_a_sequence(engine, ctx, state, encrypt, decrypt):
    token_id = create(engine, ctx, state, encrypt, balances=[(A, 100)], minters=[A])
    steps = [
        ("mint", B, 50),
        ("transfer", A, C, 30),
        ("transfer", C, B, 31),
        ("transfer", B, A, 80),
        ("transfer", B, A, 49),
        ("mint", C, 0),
        ("transfer", A, B, 121),
    ]

    for step in steps:
        if step[0] == "mint":
            engine.mint(ctx, token_id, A, step[1], encrypt(step[2]), state)
        else:
            engine.transfer(ctx, step[1], step[2], token_id, encrypt(step[3]), state)
        held = sum(balance(engine, ctx, state, decrypt, h, token_id) for h in (A, B, C))
        assert held == supply(engine, state, decrypt, token_id)

    assert [balance(engine, ctx, state, decrypt, h, token_id) for h in (A, B, C)] == [119, 1, 30]
