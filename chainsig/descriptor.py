"""Master key extraction from wallet output-script descriptors.

A descriptor wallet reports its keys through ``listdescriptors true`` as
strings such as ``wpkh(tprv8Zgx.../84h/1h/0h/0/*)#checksum``. This module picks
the descriptor for a script type and recovers the master extended private key
embedded in it.
"""

import logging
import re
from collections.abc import Iterable
from typing import Any

import msgspec

from .address import Network, ScriptType
from .bip32 import ExtendedKeyError, ExtendedPrivateKey
from .errors import ChainsigError

logger = logging.getLogger(__name__)

TAPROOT_PREFIX = "tr("

# "pkh(" that is not the tail of "wpkh("
_LEGACY_TOKEN = re.compile(r"(?<!w)pkh\(")
_SEGWIT_TOKEN = re.compile(r"wpkh\(")


class DescriptorError(ChainsigError):
    """Error reading wallet descriptors."""


class DescriptorNotFound(DescriptorError):
    """No descriptor matches the requested script type."""


class MalformedKey(DescriptorError):
    """The key in the selected descriptor is not a valid extended private key."""


class DescriptorRecord(msgspec.Struct, frozen=True):
    """One entry of a ``listdescriptors`` result."""

    desc: str
    timestamp: int | str | None = None
    active: bool = False
    internal: bool | None = None


class DescriptorListing(msgspec.Struct, frozen=True):
    """The ``listdescriptors`` result object."""

    descriptors: list[DescriptorRecord] = msgspec.field(default_factory=list)
    wallet_name: str | None = None


class _ListDescriptorsResponse(msgspec.Struct, frozen=True):
    # Accepts both the bare result and the JSON-RPC envelope around it
    descriptors: list[DescriptorRecord] | None = None
    result: DescriptorListing | None = None
    error: dict[str, Any] | None = None


def decode_descriptors(data: bytes | str) -> list[DescriptorRecord]:
    """Decode a ``listdescriptors`` response.

    Accepts the JSON-RPC envelope, the bare result object, or a bare list of
    descriptor records.

    Raises:
        DescriptorError: If the JSON is malformed or carries an RPC error

    """
    try:
        decoded = msgspec.json.decode(
            data, type=_ListDescriptorsResponse | list[DescriptorRecord]
        )
    except (msgspec.DecodeError, msgspec.ValidationError) as e:
        raise DescriptorError(f"Invalid listdescriptors response: {e}") from e

    if isinstance(decoded, list):
        return decoded
    if decoded.error is not None:
        raise DescriptorError(f"listdescriptors returned an error: {decoded.error}")
    if decoded.result is not None:
        return decoded.result.descriptors
    return decoded.descriptors or []


def _token_for(script_type: ScriptType) -> re.Pattern[str]:
    return _SEGWIT_TOKEN if script_type is ScriptType.SEGWIT else _LEGACY_TOKEN


def matches_script_type(desc: str, script_type: ScriptType) -> bool:
    """Return whether a descriptor string is a candidate for ``script_type``."""
    if _token_for(script_type).search(desc) is None:
        return False
    if script_type is ScriptType.SEGWIT and desc.startswith(TAPROOT_PREFIX):
        return False
    return True


def find_descriptor(
    descriptors: Iterable[DescriptorRecord | str],
    script_type: ScriptType,
) -> str:
    """Return the first descriptor string matching ``script_type``.

    Raises:
        DescriptorNotFound: If none of the descriptors match

    """
    for index, record in enumerate(descriptors):
        desc = record if isinstance(record, str) else record.desc
        if matches_script_type(desc, script_type):
            logger.debug(f"Selected descriptor #{index} for {script_type.value}")
            return desc

    raise DescriptorNotFound(f"No {script_type.value} ({script_type.descriptor_marker}) descriptor found")


def extract_key_string(desc: str, script_type: ScriptType) -> str:
    """Return the key text enclosed by the script-type token of a descriptor.

    The key is the first ``/`` segment between the opening token and the
    next closing parenthesis. A key-origin block ``[fingerprint/path]`` is
    dropped.

    Raises:
        DescriptorNotFound: If the descriptor lacks the script-type token

    """
    match = _token_for(script_type).search(desc)
    if match is None:
        raise DescriptorNotFound(f"Descriptor has no {script_type.descriptor_marker}( token")

    inner = desc[match.end():].split(")", 1)[0]
    if inner.startswith("["):
        inner = inner.partition("]")[2]
    return inner.split("/", 1)[0]


def parse_master_key(
    key_text: str,
    script_type: ScriptType,
    network: Network = Network.REGTEST,
) -> ExtendedPrivateKey:
    """Parse the key text taken from a descriptor into a master key.

    Segwit descriptors may report the key without its network prefix; the
    prefix is restored before parsing.

    Raises:
        MalformedKey: If the text is not an extended private key for ``network``

    """
    prefix = network.xprv_prefix
    if script_type is ScriptType.SEGWIT and not key_text.startswith(prefix):
        key_text = f"{prefix}{key_text}"

    try:
        master = ExtendedPrivateKey.from_string(key_text)
    except ExtendedKeyError as e:
        raise MalformedKey(f"Descriptor key is not a valid extended private key: {e}") from e

    if (master.network is Network.MAINNET) != (network is Network.MAINNET):
        raise MalformedKey(
            f"Descriptor key is a {master.network.value} key, expected one for {network.value}"
        )
    return master


def get_master_key(
    descriptors: Iterable[DescriptorRecord | str],
    script_type: ScriptType,
    network: Network = Network.REGTEST,
) -> ExtendedPrivateKey:
    """Return the master key of the wallet descriptor for ``script_type``.

    Args:
        descriptors: Records (or plain strings) as listed by ``listdescriptors``
        script_type: Legacy (P2PKH) or segwit (P2WPKH)
        network: Network the wallet runs on

    Returns:
        The master extended private key

    Raises:
        DescriptorNotFound: If no descriptor matches
        MalformedKey: If the embedded key does not parse

    """
    desc = find_descriptor(descriptors, script_type)
    master = parse_master_key(extract_key_string(desc, script_type), script_type, network)
    logger.info(
        f"Loaded {script_type.value} master key with fingerprint {master.fingerprint.hex()}"
    )
    return master
