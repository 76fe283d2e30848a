"""Unit tests for artifact loading and ABI encoding."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector

from rollup_deployer.errors import ArtifactError
from rollup_deployer.ledger.contracts import (
    Artifact,
    ArtifactBackend,
    ContractFactory,
    abi_type,
)

ADDR_A = "0x" + "aa" * 20
ADDR_B = "0x" + "bb" * 20

_BRIDGE_SET = {
    "type": "tuple",
    "components": [{"name": n, "type": "address"} for n in "abcde"],
}

SEQUENCER_INBOX_ABI = [
    {
        "type": "constructor",
        "inputs": [
            {"name": "maxDataSize", "type": "uint256"},
            {"name": "reader4844", "type": "address"},
            {"name": "isUsingFeeToken", "type": "bool"},
        ],
    }
]

ROLLUP_CREATOR_ABI = [
    {
        "type": "function",
        "name": "setTemplates",
        "inputs": [{"name": f"t{i}", "type": "address"} for i in range(2)],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "bridgeCreator",
        "inputs": [],
        "outputs": [{"name": "", "type": "address"}],
    },
]


def _write(root: Path, rel: str, abi: list, bytecode="0x6080") -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    document = {"contractName": path.stem, "abi": abi, "bytecode": bytecode}
    path.write_text(json.dumps(document))
    return path


def _signer(receipt=None) -> MagicMock:
    signer = MagicMock()
    signer.transact = AsyncMock(return_value=receipt or {"status": "0x1"})
    return signer


class TestAbiType:
    def test_plain_type(self):
        assert abi_type({"type": "uint256"}) == "uint256"

    def test_tuple_expanded(self):
        assert abi_type(_BRIDGE_SET) == "(address,address,address,address,address)"

    def test_tuple_array_suffix_kept(self):
        param = {"type": "tuple[]", "components": [{"type": "uint8"}, {"type": "bool"}]}
        assert abi_type(param) == "(uint8,bool)[]"


class TestArtifactBackend:
    def test_finds_nested_artifact(self, tmp_path):
        _write(tmp_path, "src/bridge/SequencerInbox.sol/SequencerInbox.json", [])
        artifact = ArtifactBackend(tmp_path).load("SequencerInbox")
        assert artifact.contract_name == "SequencerInbox"
        assert artifact.bytecode == "0x6080"

    def test_foundry_bytecode_object(self, tmp_path):
        _write(tmp_path, "Outbox.json", [], bytecode={"object": "0x60aa"})
        assert ArtifactBackend(tmp_path).load("Outbox").bytecode == "0x60aa"

    def test_missing_artifact(self, tmp_path):
        with pytest.raises(ArtifactError, match="No artifact"):
            ArtifactBackend(tmp_path).load("Bridge")

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ArtifactError, match="not found"):
            ArtifactBackend(tmp_path / "build").load("Bridge")

    def test_ambiguous_artifact(self, tmp_path):
        _write(tmp_path, "a/Bridge.json", [])
        _write(tmp_path, "b/Bridge.json", [])
        with pytest.raises(ArtifactError, match="ambiguous"):
            ArtifactBackend(tmp_path).load("Bridge")

    def test_json_template_loaded_as_path(self, tmp_path):
        path = _write(tmp_path, "out/yul/Reader4844.yul/Reader4844.json", [])
        artifact = ArtifactBackend(tmp_path / "build").load(str(path))
        assert artifact.contract_name == "Reader4844"
        assert artifact.source_path == path

    def test_override_wins_over_directory(self, tmp_path):
        _write(tmp_path, "build/UpgradeExecutor.json", [], bytecode="0x60bb")
        pinned = _write(
            tmp_path,
            "node_modules/upgrade-executor/UpgradeExecutor.json",
            [],
            bytecode={"object": "0x60cc"},
        )
        backend = ArtifactBackend(
            tmp_path / "build", overrides={"UpgradeExecutor": pinned}
        )
        assert backend.load("UpgradeExecutor").bytecode == "0x60cc"

    def test_missing_override_file(self, tmp_path):
        backend = ArtifactBackend(
            tmp_path, overrides={"Reader4844": tmp_path / "Reader4844.json"}
        )
        with pytest.raises(ArtifactError, match="Reader4844.*not found"):
            backend.load("Reader4844")

    def test_malformed_artifact(self, tmp_path):
        (tmp_path / "Inbox.json").write_text("{}")
        with pytest.raises(ArtifactError, match="abi/bytecode"):
            ArtifactBackend(tmp_path).load("Inbox")


class TestContractFactory:
    def test_deploy_data_appends_constructor_args(self):
        artifact = Artifact("SequencerInbox", SEQUENCER_INBOX_ABI, "0x6080")
        data = ContractFactory(artifact, _signer()).deploy_data((117964, ADDR_A, True))

        assert data.startswith("0x6080")
        args = decode(["uint256", "address", "bool"], bytes.fromhex(data[6:]))
        assert args[0] == 117964
        assert args[1].lower() == ADDR_A
        assert args[2] is True

    def test_deploy_data_encodes_nested_tuples(self):
        abi = [{"type": "constructor", "inputs": [_BRIDGE_SET, _BRIDGE_SET]}]
        artifact = Artifact("BridgeCreator", abi, "0x60")
        eth = (ADDR_A,) * 5
        erc20 = (ADDR_B,) * 5

        data = ContractFactory(artifact, _signer()).deploy_data((eth, erc20))

        tuple_type = "(address,address,address,address,address)"
        expected = encode([tuple_type, tuple_type], [eth, erc20]).hex()
        assert data == "0x60" + expected

    def test_argument_count_checked(self):
        artifact = Artifact("SequencerInbox", SEQUENCER_INBOX_ABI, "0x6080")
        with pytest.raises(ArtifactError, match="takes 3"):
            ContractFactory(artifact, _signer()).deploy_data((1,))

    def test_empty_bytecode_rejected(self):
        with pytest.raises(ArtifactError, match="no creation bytecode"):
            ContractFactory(Artifact("IFace", [], "0x"), _signer()).deploy_data(())

    @pytest.mark.asyncio
    async def test_deploy_attaches_receipt_address(self):
        signer = _signer({"status": "0x1", "contractAddress": ADDR_A})
        factory = ContractFactory(Artifact("Bridge", [], "0x6080"), signer)

        contract = await factory.deploy()

        assert contract.address.lower() == ADDR_A
        signer.transact.assert_awaited_once_with({"data": "0x6080"}, None)

    @pytest.mark.asyncio
    async def test_deploy_without_contract_address_fails(self):
        factory = ContractFactory(Artifact("Bridge", [], "0x6080"), _signer())
        with pytest.raises(ArtifactError, match="contractAddress"):
            await factory.deploy()


@pytest.mark.asyncio
class TestContract:
    async def test_transact_encodes_selector_and_args(self):
        signer = _signer()
        artifact = Artifact("RollupCreator", ROLLUP_CREATOR_ABI, "0x")
        contract = ContractFactory(artifact, signer).attach(ADDR_A)

        await contract.transact("setTemplates", ADDR_A, ADDR_B, gas_limit=5_000_000)

        tx, gas_limit = signer.transact.await_args.args
        selector = function_signature_to_4byte_selector("setTemplates(address,address)")
        assert tx["to"] == contract.address
        assert tx["data"].startswith("0x" + selector.hex())
        assert gas_limit == 5_000_000

    async def test_unknown_method_rejected(self):
        contract = ContractFactory(
            Artifact("RollupCreator", ROLLUP_CREATOR_ABI, "0x"), _signer()
        ).attach(ADDR_A)
        with pytest.raises(ArtifactError, match="0 ABI match"):
            await contract.transact("setTemplates", ADDR_A)

    async def test_call_decodes_single_output(self):
        signer = _signer()
        signer.client.call = AsyncMock(
            return_value="0x" + encode(["address"], [ADDR_B]).hex()
        )
        contract = ContractFactory(
            Artifact("RollupCreator", ROLLUP_CREATOR_ABI, "0x"), signer
        ).attach(ADDR_A)

        assert (await contract.call("bridgeCreator")).lower() == ADDR_B
