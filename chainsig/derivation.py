"""Child key derivation and comparison against node-reported wallet state.

The checks here prove that an address a node hands out is reproducible from
the wallet's master key and the declared ``hdkeypath`` alone.
"""

import logging
from collections.abc import Iterable

import msgspec

from .address import Network, ScriptType, address_for, hash160, script_for
from .bip32 import ExtendedKeyError, ExtendedPrivateKey
from .errors import ChainsigError
from .metrics import DERIVATION_CHECKS_TOTAL
from .models import AccountInfo, DerivedKeyPair
from .path_utils import DerivationPath, InvalidPath, parse_path

logger = logging.getLogger(__name__)


class DerivationError(ChainsigError):
    """Error deriving a key or checking it against node state."""


class DerivationMismatch(DerivationError):
    """A derived value disagrees with the value the node reported.

    Attributes:
        field: Which value disagreed (pubkey, address or scriptPubKey)
        observed: The node-reported value
        expected: The value computed from the master key

    """

    def __init__(self, field: str, observed: str, expected: str) -> None:
        super().__init__(
            f"Derived {field} does not match the node: node reported {observed}, derived {expected}"
        )
        self.field = field
        self.observed = observed
        self.expected = expected


class AddressInfoError(DerivationError):
    """The address-info record lacks a field needed for verification."""


class UtxoOwnershipMismatch(DerivationError):
    """A UTXO listed for an address belongs to a different address."""


class AddressInfo(msgspec.Struct, frozen=True, rename={"script_pubkey": "scriptPubKey"}):
    """The fields of a ``getaddressinfo`` result used for verification."""

    address: str | None = None
    pubkey: str | None = None
    script_pubkey: str | None = None
    hdkeypath: str | None = None
    ismine: bool | None = None
    iswitness: bool | None = None


class Utxo(msgspec.Struct, frozen=True, rename={"script_pubkey": "scriptPubKey"}):
    """One entry of a ``listunspent`` result."""

    txid: str
    vout: int
    address: str | None = None
    amount: float | None = None
    script_pubkey: str | None = None
    confirmations: int | None = None


def derive(master: ExtendedPrivateKey, path: str | DerivationPath) -> DerivedKeyPair:
    """Derive the child key pair of ``master`` along ``path``.

    Raises:
        DerivationError: If the path is malformed or a step yields an invalid child

    """
    try:
        parsed = parse_path(path)
        child = master.derive_path(parsed)
    except (InvalidPath, ExtendedKeyError) as e:
        raise DerivationError(f"Cannot derive {path}: {e}") from e

    return DerivedKeyPair(
        private_key=child.private_key,
        public_key=child.public_key,
        chain_code=child.chain_code,
        path=parsed,
    )


def verify_against_node(
    derived: DerivedKeyPair,
    reported_pubkey_hex: str,
    reported_address: str,
    network: Network = Network.REGTEST,
    script_type: ScriptType = ScriptType.SEGWIT,
) -> bool:
    """Check a derived key against the pubkey and address a node reported.

    Returns:
        True when both the public key and the address match

    Raises:
        DerivationMismatch: On any disagreement, carrying both values

    """
    return _check_derived(derived, reported_pubkey_hex, reported_address, network, script_type)


def _check_derived(
    derived: DerivedKeyPair,
    reported_pubkey_hex: str,
    reported_address: str,
    network: Network,
    script_type: ScriptType,
    reported_script: bytes | None = None,
) -> bool:
    # Counts exactly one match or mismatch per call
    try:
        _check_pubkey(derived, reported_pubkey_hex)
        expected_address = address_for(derived.public_key, script_type, network)
        if reported_address != expected_address:
            raise DerivationMismatch("address", reported_address, expected_address)
        if reported_script is not None:
            expected_script = script_for(derived.public_key, script_type)
            if reported_script != expected_script:
                raise DerivationMismatch(
                    "scriptPubKey", reported_script.hex(), expected_script.hex()
                )
    except DerivationMismatch as e:
        DERIVATION_CHECKS_TOTAL.labels(script_type=script_type.value, result="mismatch").inc()
        logger.warning(f"Derivation check failed at {derived.path}: {e.field} differs")
        raise

    DERIVATION_CHECKS_TOTAL.labels(script_type=script_type.value, result="match").inc()
    logger.debug(f"Derived key at {derived.path} matches {reported_address}")
    return True


def _check_pubkey(derived: DerivedKeyPair, reported_pubkey_hex: str) -> None:
    try:
        reported = bytes.fromhex(reported_pubkey_hex)
    except ValueError:
        raise DerivationMismatch("pubkey", reported_pubkey_hex, derived.public_key_hex) from None
    if reported != derived.public_key:
        raise DerivationMismatch("pubkey", reported_pubkey_hex, derived.public_key_hex)


def verify_address_info(
    master: ExtendedPrivateKey,
    address_info: AddressInfo | bytes | str,
    address: str | None = None,
    script_type: ScriptType = ScriptType.SEGWIT,
    network: Network = Network.REGTEST,
) -> AccountInfo:
    """Verify a ``getaddressinfo`` record against the wallet master key.

    The record's ``hdkeypath`` is derived from ``master``; the derived public
    key, address and scriptPubKey must all equal what the node reported.

    Args:
        master: Master key of the wallet's descriptor for ``script_type``
        address_info: The decoded record, or its raw JSON
        address: The address that was queried; defaults to the record's own
        script_type: Script type the address was generated with
        network: Network the node runs on

    Returns:
        The verified account details

    Raises:
        AddressInfoError: If the record is malformed or lacks a required field
        DerivationError: If derivation fails
        DerivationMismatch: If any derived value differs from the node's

    """
    if not isinstance(address_info, AddressInfo):
        address_info = decode_address_info(address_info)

    address = address or address_info.address
    if address is None:
        raise AddressInfoError("Address info has no address and none was given")

    pubkey_hex = _require(address_info.pubkey, "pubkey")
    script_hex = _require(address_info.script_pubkey, "scriptPubKey")
    hdkeypath = _require(address_info.hdkeypath, "hdkeypath")

    try:
        script_pubkey = bytes.fromhex(script_hex)
    except ValueError as e:
        raise AddressInfoError(f"scriptPubKey is not valid hex: {script_hex!r}") from e

    derived = derive(master, hdkeypath)
    _check_derived(derived, pubkey_hex, address, network, script_type, script_pubkey)

    return AccountInfo(
        address=address,
        script_pubkey=script_pubkey,
        private_key=derived.private_key,
        public_key=derived.public_key,
        wpkh=hash160(derived.public_key),
    )


def decode_address_info(data: bytes | str) -> AddressInfo:
    """Decode the JSON of a ``getaddressinfo`` result.

    Raises:
        AddressInfoError: If the JSON is malformed

    """
    try:
        return msgspec.json.decode(data, type=AddressInfo)
    except (msgspec.DecodeError, msgspec.ValidationError) as e:
        raise AddressInfoError(f"Invalid getaddressinfo response: {e}") from e


def _require(value: str | None, name: str) -> str:
    if value is None:
        raise AddressInfoError(f"Address info is missing {name}")
    return value


def verify_utxo_ownership(utxos: Iterable[Utxo], address: str) -> list[Utxo]:
    """Check that every UTXO listed for ``address`` pays to it.

    Returns:
        The UTXOs as a list

    Raises:
        UtxoOwnershipMismatch: If a UTXO reports a different address

    """
    checked = []
    for utxo in utxos:
        if utxo.address != address:
            raise UtxoOwnershipMismatch(
                f"UTXO {utxo.txid}:{utxo.vout} belongs to {utxo.address}, not {address}"
            )
        checked.append(utxo)
    return checked


def decode_utxos(data: bytes | str) -> list[Utxo]:
    """Decode the JSON of a ``listunspent`` result."""
    try:
        return msgspec.json.decode(data, type=list[Utxo])
    except (msgspec.DecodeError, msgspec.ValidationError) as e:
        raise DerivationError(f"Invalid listunspent response: {e}") from e
