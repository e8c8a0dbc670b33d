"""Pytest configuration and fixtures."""

import json
import pytest
import sys
from pathlib import Path

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from privpool.backends.base import CircuitArtifacts  # noqa: E402
from privpool.config import PoolSettings  # noqa: E402
from privpool.core.secrets import generate_master_keys  # noqa: E402
from privpool.models.schemas import DepositEvent, PoolInfo  # noqa: E402

TEST_SEED = bytes(range(64))
TEST_SCOPE = 123456789
DEPOSITOR = "0x1234567890123456789012345678901234567890"

SAMPLE_PROOF = {
    "pi_a": ["1", "2", "1"],
    "pi_b": [["3", "4"], ["5", "6"], ["1", "0"]],
    "pi_c": ["7", "8", "1"],
    "protocol": "groth16",
    "curve": "bn128",
}


def mock_tx_hash(index: int) -> str:
    """Deterministic 32-byte transaction hash for test events."""
    return "0x" + format(index, "064x")


def make_deposit_event(value, label, precommitment, block_number, tx_hash, commitment=123):
    return DepositEvent(
        depositor=DEPOSITOR,
        value=value,
        label=label,
        commitment=commitment,
        precommitment=precommitment,
        block_number=block_number,
        transaction_hash=tx_hash,
    )


class FakeArtifactProvider:
    """Artifact provider returning fixed bytes, optionally failing."""

    def __init__(self):
        self.verification_key = json.dumps({"protocol": "groth16", "nPublic": 2}).encode()
        self.download_error = None
        self.key_error = None
        self.downloads = []

    async def download_artifacts(self, circuit):
        self.downloads.append(circuit)
        if self.download_error is not None:
            raise self.download_error
        return CircuitArtifacts(program=f"{circuit}-wasm".encode(), proving_key=f"{circuit}-zkey".encode())

    async def get_verification_key(self, circuit):
        if self.key_error is not None:
            raise self.key_error
        return self.verification_key


class FakeBackend:
    """Proving backend recording its calls."""

    def __init__(self):
        self.prove_calls = []
        self.verify_calls = []
        self.prove_error = None
        self.verify_error = None
        self.verify_result = True
        self.prove_output = {"proof": SAMPLE_PROOF, "publicSignals": ["11", "22"]}

    async def full_prove(self, witness, program, proving_key):
        self.prove_calls.append((dict(witness), program, proving_key))
        if self.prove_error is not None:
            raise self.prove_error
        return self.prove_output

    async def verify(self, verification_key, public_signals, proof):
        self.verify_calls.append((verification_key, public_signals, proof))
        if self.verify_error is not None:
            raise self.verify_error
        return self.verify_result


@pytest.fixture
def settings():
    """Settings isolated from the environment and any .env file."""
    return PoolSettings(_env_file=None)


@pytest.fixture(scope="session")
def master_keys():
    """Master keys of the test seed."""
    return generate_master_keys(TEST_SEED)


@pytest.fixture
def test_pool():
    return PoolInfo(
        chain_id=1,
        address="0x8Fac8db5cae9C29e9c80c40e8CeDC47EEfe3874E",
        scope=TEST_SCOPE,
        deployment_block=1000,
    )


@pytest.fixture
def artifacts():
    return FakeArtifactProvider()


@pytest.fixture
def backend():
    return FakeBackend()
