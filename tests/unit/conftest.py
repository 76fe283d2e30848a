"""In-memory ledger, signer and contract backend for provisioning tests."""

from __future__ import annotations

from typing import Any

import pytest

from rollup_deployer.errors import SubmissionError
from rollup_deployer.rollup.creator import RollupCreation

DEPLOYER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"


class FakeLedger:
    """Receipts keyed by hash; unknown hashes never get mined.

    Each entry in ``poll_errors`` fails one receipt wait before any lookup.
    """

    def __init__(self, chain_id: int = 412346, arbitrum: bool = False) -> None:
        self.receipts: dict[str, dict[str, Any]] = {}
        self.waits: list[tuple[str, float]] = []
        self.transactions: list[dict[str, Any]] = []
        self._chain_id = chain_id
        self.arbitrum = arbitrum
        self.remote_calls = 0
        self.poll_errors: list[Exception] = []

    async def chain_id(self) -> int:
        self.remote_calls += 1
        return self._chain_id

    async def is_arbitrum(self) -> bool:
        self.remote_calls += 1
        return self.arbitrum

    async def get_transaction_receipt(self, tx_hash: str) -> dict[str, Any] | None:
        return self.receipts.get(tx_hash)

    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> dict[str, Any]:
        self.waits.append((tx_hash, timeout))
        if self.poll_errors:
            raise self.poll_errors.pop(0)
        if tx_hash not in self.receipts:
            raise TimeoutError
        return self.receipts[tx_hash]


class FakeSigner:
    address = DEPLOYER

    async def transact(self, tx: dict[str, Any], gas_limit: int | None = None) -> Any:
        raise AssertionError("fake contracts never go through the signer")


class FakeContract:
    def __init__(self, template: str, address: str, ledger: FakeLedger) -> None:
        self.template = template
        self.address = address
        self._ledger = ledger
        self.drop_ack: str | None = None

    async def transact(
        self, method: str, *args: Any, gas_limit: int | None = None
    ) -> dict[str, Any]:
        tx_hash = f"0x{len(self._ledger.transactions) + 1:064x}"
        record = {
            "to": self.address,
            "method": method,
            "args": args,
            "gas_limit": gas_limit,
            "hash": tx_hash,
        }
        self._ledger.transactions.append(record)
        receipt = {"status": 1, "to": self.address.lower(), "transactionHash": tx_hash}
        if self.drop_ack is not None:
            if self.drop_ack == "confirmed":
                self._ledger.receipts[tx_hash] = receipt
            elif self.drop_ack == "reverted":
                self._ledger.receipts[tx_hash] = {**receipt, "status": 0}
            self.drop_ack = None
            raise SubmissionError("reply lost", transaction_hash=tx_hash)
        return receipt


class FakeFactory:
    def __init__(self, backend: FakeBackend, template: str) -> None:
        self._backend = backend
        self._template = template

    async def deploy(self, *args: Any, gas_limit: int | None = None) -> FakeContract:
        return self._backend.create(self._template, args)

    def attach(self, address: str) -> FakeContract:
        contract = FakeContract(self._template, address, self._backend.ledger)
        contract.drop_ack = self._backend.call_drop_ack.pop(self._template, None)
        self._backend.contracts[address] = contract
        self._backend.attached.append((self._template, address))
        return contract


class FakeBackend:
    """Creates fake contracts at sequential addresses.

    ``drop_ack[template]`` makes the next creation of *template* lose its
    reply: "confirmed" mines it anyway, "reverted" mines it failed, "pending"
    never mines it. ``hard_fail[template]`` raises the given error with no
    transaction hash. ``call_drop_ack[template]`` does the same for the
    first state-changing call on the created contract.
    """

    def __init__(self, ledger: FakeLedger) -> None:
        self.ledger = ledger
        self.created: list[tuple[str, tuple[Any, ...]]] = []
        self.contracts: dict[str, FakeContract] = {}
        self.attached: list[tuple[str, str]] = []
        self.drop_ack: dict[str, str] = {}
        self.hard_fail: dict[str, Exception] = {}
        self.call_drop_ack: dict[str, str] = {}
        self._counter = 0

    def get_factory(self, code_template: str, signer: Any) -> FakeFactory:
        return FakeFactory(self, code_template)

    def create(self, template: str, args: tuple[Any, ...]) -> FakeContract:
        self.created.append((template, args))
        if template in self.hard_fail:
            raise self.hard_fail.pop(template)

        self._counter += 1
        address = f"0x{self._counter:040x}"
        mode = self.drop_ack.pop(template, None)
        if mode is not None:
            tx_hash = f"0x{0xD00D0000 + self._counter:064x}"
            if mode in ("confirmed", "reverted"):
                self.ledger.receipts[tx_hash] = {
                    "status": 1 if mode == "confirmed" else 0,
                    "contractAddress": address,
                    "transactionHash": tx_hash,
                }
            raise SubmissionError("reply lost", transaction_hash=tx_hash)

        contract = FakeContract(template, address, self.ledger)
        contract.drop_ack = self.call_drop_ack.pop(template, None)
        self.contracts[address] = contract
        return contract


class FakeRollupCreator:
    def __init__(self) -> None:
        self.calls: list[tuple[str, bool, str, str]] = []
        self.error: Exception | None = None

    async def create(
        self,
        signer: Any,
        dev_deployment: bool,
        rollup_creator_address: str,
        fee_token: str,
    ) -> RollupCreation:
        self.calls.append(
            (signer.address, dev_deployment, rollup_creator_address, fee_token)
        )
        if self.error is not None:
            raise self.error
        return RollupCreation(
            creation_result={
                "rollup": "0x00000000000000000000000000000000000000aa",
                "inbox": "0x00000000000000000000000000000000000000bb",
                "deployedAtBlockNumber": 42,
            },
            chain_info={"chain-id": 412346, "parent-chain-id": 1337},
        )


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def backend(ledger: FakeLedger) -> FakeBackend:
    return FakeBackend(ledger)


@pytest.fixture
def signer() -> FakeSigner:
    return FakeSigner()


@pytest.fixture
def rollup_creator() -> FakeRollupCreator:
    return FakeRollupCreator()


@pytest.fixture
def deploy_env(tmp_path) -> dict[str, str]:
    return {
        "CHILD_CHAIN_NAME": "my-orbit",
        "DEPLOYER_PRIVKEY": TEST_PRIVATE_KEY,
        "PARENT_CHAIN_RPC": "http://localhost:8545",
        "PARENT_CHAIN_ID": "412346",
        "CHAIN_DEPLOYMENT_INFO": str(tmp_path / "deploy.json"),
        "CHILD_CHAIN_INFO": str(tmp_path / "l2_chain_info.json"),
    }
