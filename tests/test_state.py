import pytest

from confidential_bank.holders import Address, TokenHolder, get_token_id
from confidential_bank.registry import TokenRegistry
from confidential_bank.state import IntCodec, JsonCodec, StateMap, StateValue

from memory_state import Storage


def test_transaction_commits_writes_and_events():
    storage = Storage()
    with storage.transaction() as state:
        state.set(b"k", b"v")
        state.emit_event("created")
        assert state.get(b"k") == b"v"
        assert storage.get(b"k") is None

    assert storage.get(b"k") == b"v"
    assert storage.events == ["created"]
    assert storage.version == 1


def test_transaction_discards_everything_on_error():
    storage = Storage()
    with storage.transaction() as state:
        state.set(b"k", b"v1")

    with pytest.raises(RuntimeError):
        with storage.transaction() as state:
            state.set(b"k", b"v2")
            state.set(b"other", b"x")
            state.emit_event("lost")
            raise RuntimeError("boom")

    assert storage.get(b"k") == b"v1"
    assert storage.get(b"other") is None
    assert storage.events == []
    assert storage.version == 1


def test_archival_views_are_read_only_snapshots():
    storage = Storage()
    for value in (b"a", b"b"):
        with storage.transaction() as state:
            state.set(b"k", value)

    assert storage.archival(0).get(b"k") is None
    assert storage.archival(1).get(b"k") == b"a"
    assert storage.archival(2).get(b"k") == b"b"
    with pytest.raises(TypeError):
        storage.archival(1).set(b"k", b"c")
    with pytest.raises(KeyError):
        storage.archival(3)


def test_typed_wrappers_use_their_prefix():
    storage = Storage()
    counter = StateValue(b"bank/next", IntCodec)
    records = StateMap(b"bank/records/", lambda k: k.encode(), JsonCodec)

    with storage.transaction() as state:
        assert counter.get(state) is None
        counter.set(7, state)
        records.set("a", {"z": 1, "a": [2]}, state)

    assert counter.get(storage) == 7
    assert storage.get(b"bank/records/a") == b'{"a":[2],"z":1}'
    assert records.get("a", storage) == {"z": 1, "a": [2]}


def test_balance_namespace_is_tokens_prefix_plus_token_id():
    registry = TokenRegistry(b"bank/")
    token_id = get_token_id("T", Address(bytes(32)), 1)
    holder = TokenHolder.user(bytes(32))

    balances = registry.balances_for(token_id)
    assert balances.prefix == b"bank/tokens/" + token_id.raw
    assert balances._key(holder) == b"bank/tokens/" + token_id.raw + b"\x00" + bytes(32)
