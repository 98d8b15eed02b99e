import json

import pytest

from bscswap.adapters.wallets import load_wallet, load_wallets
from bscswap.core.errors import InvalidKeyError, WalletFileError
from bscswap.core.keys import KeyManager, derive_address, load_account

KEY_0 = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
ADDRESS_0 = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
KEY_1 = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
ADDRESS_1 = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"


def test_derive_address_with_and_without_prefix():
    assert derive_address(KEY_0) == ADDRESS_0
    assert derive_address(KEY_0[2:]) == ADDRESS_0


@pytest.mark.parametrize("bad", ["", "xyz", KEY_0[:-2], KEY_0 + "00", "zz" * 32, None])
def test_malformed_keys_are_rejected(bad):
    with pytest.raises(InvalidKeyError):
        derive_address(bad)


def test_account_never_shows_its_key():
    account = load_account(KEY_0)
    assert account.address == ADDRESS_0
    assert KEY_0[2:] not in repr(account)
    assert account.private_key.get_secret_value() == KEY_0


def test_switch_account():
    keys = KeyManager(KEY_0)
    assert keys.address == ADDRESS_0
    keys.switch_account(KEY_1)
    assert keys.address == ADDRESS_1
    assert keys.active.address == ADDRESS_1


def test_malformed_switch_keeps_previous_account():
    keys = KeyManager(KEY_0)
    with pytest.raises(InvalidKeyError):
        keys.switch_account("0x1234")
    assert keys.address == ADDRESS_0


def write_wallet(directory, name, content):
    path = directory / name
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content if isinstance(content, str) else json.dumps(content))
    return path


@pytest.mark.asyncio
async def test_load_wallets_derives_addresses(tmp_path):
    write_wallet(tmp_path, "b.json", {"PublicKey": ADDRESS_1, "PrivateKey": KEY_1})
    write_wallet(tmp_path, "a.json", {"PublicKey": ADDRESS_0, "PrivateKey": KEY_0[2:]})
    (tmp_path / "notes.txt").write_text("ignored")

    wallets = await load_wallets(tmp_path)

    assert [w.address() for w in wallets] == [ADDRESS_0, ADDRESS_1]
    assert wallets[0].source.endswith("a.json")


@pytest.mark.asyncio
async def test_stored_public_key_is_informational(tmp_path):
    path = write_wallet(tmp_path, "w.json", {"PublicKey": ADDRESS_1, "PrivateKey": KEY_0})
    wallet = await load_wallet(path)
    assert wallet.address() == ADDRESS_0


@pytest.mark.asyncio
@pytest.mark.parametrize("content", [
    "{not json",
    "[]",
    {"PublicKey": ADDRESS_0},
    {"PublicKey": ADDRESS_0, "PrivateKey": "0x1234"},
    b'{"PublicKey": "\xff\xfe", "PrivateKey": "00"}',
])
async def test_bad_wallet_files_raise(tmp_path, content):
    path = write_wallet(tmp_path, "bad.json", content)
    with pytest.raises(WalletFileError) as exc:
        await load_wallet(path)
    assert exc.value.path == str(path)


@pytest.mark.asyncio
async def test_one_bad_wallet_fails_the_directory(tmp_path):
    write_wallet(tmp_path, "a.json", {"PublicKey": ADDRESS_0, "PrivateKey": KEY_0})
    write_wallet(tmp_path, "b.json", "{")
    with pytest.raises(WalletFileError):
        await load_wallets(tmp_path)


@pytest.mark.asyncio
async def test_missing_wallet_directory(tmp_path):
    with pytest.raises(WalletFileError):
        await load_wallets(tmp_path / "missing")


@pytest.mark.asyncio
async def test_missing_wallet_file(tmp_path):
    path = tmp_path / "nope.json"
    with pytest.raises(WalletFileError) as exc:
        await load_wallet(path)
    assert exc.value.path == str(path)
