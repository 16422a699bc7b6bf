"""Tests for descriptor parsing."""

import json

import pytest

from chainsig.address import Network, ScriptType
from chainsig.bip32 import ExtendedPrivateKey
from chainsig.descriptor import (
    DescriptorError,
    DescriptorNotFound,
    DescriptorRecord,
    MalformedKey,
    decode_descriptors,
    extract_key_string,
    find_descriptor,
    get_master_key,
    matches_script_type,
)


class TestSelection:
    """Tests for choosing the descriptor of a script type."""

    def test_legacy(self, descriptor_records: list[DescriptorRecord]) -> None:
        assert find_descriptor(descriptor_records, ScriptType.LEGACY).startswith("pkh(")

    def test_segwit_skips_taproot(self, descriptor_records: list[DescriptorRecord]) -> None:
        desc = find_descriptor(descriptor_records, ScriptType.SEGWIT)
        assert not desc.startswith("tr(")
        assert "wpkh(" in desc

    def test_legacy_does_not_match_wpkh(self) -> None:
        assert not matches_script_type("wpkh(tprvabc/0/*)", ScriptType.LEGACY)
        assert not matches_script_type("sh(wpkh(tprvabc/0/*))", ScriptType.LEGACY)
        assert matches_script_type("pkh(tprvabc/0/*)", ScriptType.LEGACY)

    def test_adversarial_taproot_excluded(
        self,
        master_key: ExtendedPrivateKey,
        other_master_key: ExtendedPrivateKey,
    ) -> None:
        """Test that a taproot descriptor containing wpkh( is never selected."""
        decoy = f"tr(wpkh({other_master_key.to_string()}/86h/1h/0h/0/*))#decoy000"
        real = f"wpkh({master_key.to_string()}/84h/1h/0h/0/*)#real0000"

        assert matches_script_type(decoy, ScriptType.SEGWIT) is False
        assert find_descriptor([decoy, real], ScriptType.SEGWIT) == real
        assert get_master_key([decoy, real], ScriptType.SEGWIT) == master_key

    def test_not_found(self) -> None:
        records = [DescriptorRecord(desc="tr(tprvabc/86h/1h/0h/0/*)#xxxxxxxx")]
        with pytest.raises(DescriptorNotFound):
            find_descriptor(records, ScriptType.SEGWIT)
        with pytest.raises(DescriptorNotFound):
            find_descriptor(records, ScriptType.LEGACY)

    def test_empty_listing(self) -> None:
        with pytest.raises(DescriptorNotFound):
            get_master_key([], ScriptType.SEGWIT)


class TestExtraction:
    """Tests for extracting the key text from a descriptor."""

    def test_first_segment(self) -> None:
        desc = "wpkh(tprvKEY/84h/1h/0h/0/*)#abcdefgh"
        assert extract_key_string(desc, ScriptType.SEGWIT) == "tprvKEY"

    def test_nested_segwit(self) -> None:
        desc = "sh(wpkh(tprvKEY/49h/1h/0h/0/*))#abcdefgh"
        assert extract_key_string(desc, ScriptType.SEGWIT) == "tprvKEY"

    def test_legacy(self) -> None:
        desc = "pkh(tprvKEY/44h/1h/0h/1/*)#abcdefgh"
        assert extract_key_string(desc, ScriptType.LEGACY) == "tprvKEY"

    def test_key_origin_stripped(self) -> None:
        desc = "wpkh([d34db33f/84h/1h/0h]tprvKEY/0/*)#abcdefgh"
        assert extract_key_string(desc, ScriptType.SEGWIT) == "tprvKEY"

    def test_bare_key(self) -> None:
        assert extract_key_string("pkh(tprvKEY)", ScriptType.LEGACY) == "tprvKEY"


class TestGetMasterKey:
    """Tests for get_master_key."""

    def test_segwit(
        self,
        descriptor_records: list[DescriptorRecord],
        master_key: ExtendedPrivateKey,
    ) -> None:
        assert get_master_key(descriptor_records, ScriptType.SEGWIT) == master_key

    def test_legacy(
        self,
        descriptor_records: list[DescriptorRecord],
        master_key: ExtendedPrivateKey,
    ) -> None:
        assert get_master_key(descriptor_records, ScriptType.LEGACY) == master_key

    def test_segwit_without_prefix(self, master_key: ExtendedPrivateKey) -> None:
        """Test that a segwit key reported without its tprv prefix is restored."""
        unprefixed = master_key.to_string()[len("tprv"):]
        desc = f"wpkh({unprefixed}/84h/1h/0h/0/*)#abcdefgh"

        assert get_master_key([desc], ScriptType.SEGWIT) == master_key

    def test_malformed_key(self) -> None:
        desc = "wpkh(tprvnotarealkey/84h/1h/0h/0/*)#abcdefgh"
        with pytest.raises(MalformedKey):
            get_master_key([desc], ScriptType.SEGWIT)

    def test_public_key_descriptor_is_malformed(self, master_key: ExtendedPrivateKey) -> None:
        """Test that a watch-only (tpub) descriptor does not yield a master key."""
        desc = f"pkh({master_key.neuter()}/44h/1h/0h/0/*)#abcdefgh"
        with pytest.raises(MalformedKey):
            get_master_key([desc], ScriptType.LEGACY)

    def test_network_mismatch(self) -> None:
        mainnet = ExtendedPrivateKey.from_seed(b"\x01" * 32, Network.MAINNET)
        desc = f"pkh({mainnet.to_string()}/44h/0h/0h/0/*)#abcdefgh"

        with pytest.raises(MalformedKey, match="mainnet"):
            get_master_key([desc], ScriptType.LEGACY, Network.REGTEST)
        assert get_master_key([desc], ScriptType.LEGACY, Network.MAINNET) == mainnet

    def test_errors_share_base(self) -> None:
        assert issubclass(DescriptorNotFound, DescriptorError)
        assert issubclass(MalformedKey, DescriptorError)


class TestDecodeDescriptors:
    """Tests for decode_descriptors."""

    def test_envelope(
        self,
        descriptors_json: bytes,
        descriptor_records: list[DescriptorRecord],
    ) -> None:
        records = decode_descriptors(descriptors_json)
        assert [r.desc for r in records] == [r.desc for r in descriptor_records]
        assert records[0].active is True
        assert records[0].internal is False

    def test_bare_result(self) -> None:
        data = json.dumps({"wallet_name": "w", "descriptors": [{"desc": "pkh(x)"}]})
        assert decode_descriptors(data) == [DescriptorRecord(desc="pkh(x)")]

    def test_bare_list(self) -> None:
        data = json.dumps([{"desc": "pkh(x)", "timestamp": "now"}])
        records = decode_descriptors(data)
        assert records[0].timestamp == "now"

    def test_rpc_error(self) -> None:
        data = json.dumps({"result": None, "error": {"code": -4, "message": "no wallet"}})
        with pytest.raises(DescriptorError, match="no wallet"):
            decode_descriptors(data)

    def test_invalid_json(self) -> None:
        with pytest.raises(DescriptorError, match="Invalid listdescriptors"):
            decode_descriptors(b"not json")

    def test_missing_desc(self) -> None:
        with pytest.raises(DescriptorError):
            decode_descriptors(json.dumps([{"timestamp": 1}]))
