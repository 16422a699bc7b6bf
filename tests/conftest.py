"""Test fixtures and utilities."""

import base64
import json
from typing import Any

import base58
import bech32
import pytest

from chainsig.address import Network, ScriptType, address_for, script_for
from chainsig.bip32 import ExtendedPrivateKey
from chainsig.descriptor import DescriptorRecord

# BIP32 test vector 1 seed
TEST_SEED = bytes.fromhex("000102030405060708090a0b0c0d0e0f")

SEGWIT_PATH = "m/84h/1h/0h/0/3"
LEGACY_PATH = "m/44h/1h/0h/0/7"

# BIP84 root key of the BIP39 mnemonic "abandon abandon ... about" (empty passphrase)
BIP84_ROOT = (
    "zprvAWgYBBk7JR8Gjrh4UJQ2uJdG1r3WNRRfURiABBE3RvMXYSrRJL62XuezvGdPvG6GFBZduosCc1YP5"
    "wixPox7zhZLfiUm8aunE96BBa4Kei5"
)
BIP84_FINGERPRINT = "73c5da0a"

# (hdkeypath, pubkey, mainnet address) from the BIP84 test vectors
BIP84_ACCOUNTS = [
    (
        "m/84h/0h/0h/0/0",
        "0330d54fd0dd420a6e5f8d3624f5f3482cae350f79d5f0753bf5beef9c2d91af3c",
        "bc1qcr8te4kr609gcawutmrza0j4xv80jy8z306fyu",
    ),
    (
        "m/84h/0h/0h/0/1",
        "03e775fd51f0dfb8cd865d9ff1cca2a158cf651fe997fdc9fee9c1d3b5e995ea77",
        "bc1qnjg0jd8228aq7egyzacy8cys3knf9xvrerkf9g",
    ),
    (
        "m/84h/0h/0h/1/0",
        "03025324888e429ab8e3dbaf1f7802648b9cd01e9b418485c5fa4c1b9b5700e1a6",
        "bc1q8c6fshw2dlwun7ekn9qwf37cu2rn755upcp6el",
    ),
]

# First BIP44 receive address of the same mnemonic
BIP44_PATH = "m/44h/0h/0h/0/0"
BIP44_ADDRESS = "1LqBGSKuX5yYUonjxT5qGfpUsXKYYWeabA"


@pytest.fixture
def master_key() -> ExtendedPrivateKey:
    """Return a regtest master key built from a fixed seed."""
    return ExtendedPrivateKey.from_seed(TEST_SEED, Network.REGTEST)


@pytest.fixture
def other_master_key() -> ExtendedPrivateKey:
    """Return a second, unrelated regtest master key."""
    return ExtendedPrivateKey.from_seed(b"\x42" * 32, Network.REGTEST)


@pytest.fixture
def descriptor_records(
    master_key: ExtendedPrivateKey,
    other_master_key: ExtendedPrivateKey,
) -> list[DescriptorRecord]:
    """Return a listdescriptors-style listing with taproot first.

    The taproot descriptor uses a different master key so that selecting it
    by mistake is detectable.
    """
    tprv = master_key.to_string()
    other = other_master_key.to_string()
    return [
        DescriptorRecord(desc=f"tr({other}/86h/1h/0h/0/*)#tr000000", active=True),
        DescriptorRecord(desc=f"pkh({tprv}/44h/1h/0h/0/*)#pkh00000", active=True),
        DescriptorRecord(desc=f"sh(wpkh({tprv}/49h/1h/0h/0/*))#shwpkh00", active=True),
        DescriptorRecord(desc=f"wpkh({tprv}/84h/1h/0h/0/*)#wpkh0000", active=True),
    ]


@pytest.fixture
def descriptors_json(descriptor_records: list[DescriptorRecord]) -> bytes:
    """Return the JSON-RPC envelope of a listdescriptors call."""
    return json.dumps(
        {
            "result": {
                "wallet_name": "test",
                "descriptors": [
                    {"desc": r.desc, "timestamp": 1700000000, "active": True, "internal": False}
                    for r in descriptor_records
                ],
            },
            "error": None,
            "id": 1,
        }
    ).encode()


def make_address_info(
    master: ExtendedPrivateKey,
    path: str,
    script_type: ScriptType,
    network: Network = Network.REGTEST,
) -> dict[str, Any]:
    """Build the getaddressinfo record a node would report for ``path``."""
    child = master.derive_path(path)
    return {
        "address": address_for(child.public_key, script_type, network),
        "scriptPubKey": script_for(child.public_key, script_type).hex(),
        "ismine": True,
        "solvable": True,
        "iswitness": script_type is ScriptType.SEGWIT,
        "pubkey": child.public_key.hex(),
        "hdkeypath": path,
        "hdmasterfingerprint": master.fingerprint.hex(),
    }


@pytest.fixture
def segwit_address_info(master_key: ExtendedPrivateKey) -> dict[str, Any]:
    return make_address_info(master_key, SEGWIT_PATH, ScriptType.SEGWIT)


@pytest.fixture
def legacy_address_info(master_key: ExtendedPrivateKey) -> dict[str, Any]:
    return make_address_info(master_key, LEGACY_PATH, ScriptType.LEGACY)


def sign_payload(big_r: str | None = "02" + "11" * 32, s: str | None = "22" * 32) -> bytes:
    """Return a signer contract return value with the given components."""
    value: dict[str, Any] = {"recovery_id": 0}
    if big_r is not None:
        value["big_r"] = {"affine_point": big_r}
    if s is not None:
        value["s"] = {"scalar": s}
    return json.dumps(value).encode()


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def as_tprv(extended_key: str) -> str:
    """Re-encode an extended private key with the testnet version bytes."""
    payload = base58.b58decode_check(extended_key)
    return base58.b58encode_check(bytes.fromhex("04358394") + payload[4:]).decode()


def regtest_segwit_address(mainnet_address: str) -> str:
    """Re-encode a mainnet bech32 address with the regtest hrp."""
    witver, witprog = bech32.decode("bc", mainnet_address)
    return bech32.encode("bcrt", witver, witprog)


def regtest_legacy_address(mainnet_address: str) -> str:
    """Re-encode a mainnet P2PKH address with the test-network version byte."""
    payload = base58.b58decode_check(mainnet_address)
    return base58.b58encode_check(b"\x6f" + payload[1:]).decode()


@pytest.fixture
def vector_descriptors() -> list[DescriptorRecord]:
    """Return a regtest descriptor listing built on the BIP84 vector root key."""
    tprv = as_tprv(BIP84_ROOT)
    return [
        DescriptorRecord(desc=f"pkh({tprv}/44h/0h/0h/0/*)#pkh00000", active=True),
        DescriptorRecord(desc=f"wpkh({tprv}/84h/0h/0h/0/*)#wpkh0000", active=True),
        DescriptorRecord(desc=f"wpkh({tprv}/84h/0h/0h/1/*)#wpkh0001", active=True, internal=True),
    ]
