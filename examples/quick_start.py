#!/usr/bin/env python3
"""
Quick start guide for the privacy pool SDK.

Recovers an account from its seed, prepares a withdrawal and, when the
snarkjs CLI and circuit artifacts are available, proves and verifies it.
"""

import asyncio
import shutil
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from privpool import AccountService, ProofService, calculate_context
from privpool.backends import FileSystemArtifactProvider, InMemoryDataSource, SnarkjsBackend
from privpool.config import configure_logging, get_settings
from privpool.core.commitment import hash_commitment
from privpool.exceptions import ProofError
from privpool.models.schemas import (
    DepositEvent,
    MerkleProof,
    PoolInfo,
    Withdrawal,
    WithdrawalInput,
)

SEED = b"correct horse battery staple " * 2
POOL = PoolInfo(
    chain_id=11155111,
    address="0x8Fac8db5cae9C29e9c80c40e8CeDC47EEfe3874E",
    scope=0x0555C5FDC167F1F1519C1B21A690DE24D9BE5FF0BDE19447A5F28958D9256E50,
    deployment_block=7_000_000,
)
RELAYER = "0xa513E6E4b8f2a923D98304ec87F64353C4D5C853"


def simulate_deposits(service, data_source):
    """Publish deposits at indices 0, 1 and 4, as the pool contract would."""
    for index, value in ((0, 1000), (1, 250), (4, 5000)):
        secrets = service.create_deposit_secrets(POOL.scope, index)
        label = 1_000 + index
        data_source.add_deposits(
            POOL.scope,
            [
                DepositEvent(
                    depositor=RELAYER,
                    value=value,
                    label=label,
                    commitment=hash_commitment(value, label, secrets.precommitment),
                    precommitment=secrets.precommitment,
                    block_number=POOL.deployment_block + index,
                    transaction_hash="0x" + format(index, "064x"),
                )
            ],
        )


async def main():
    """Run a simple example of the SDK."""
    configure_logging()

    print("=" * 70)
    print("PRIVACY POOL SDK QUICK START")
    print("=" * 70)
    print()

    # Step 1: Recover the account
    print("Step 1: Recover pool accounts from the seed")
    print("-" * 70)
    data_source = InMemoryDataSource()
    service = AccountService(data_source, seed=SEED)
    simulate_deposits(service, data_source)

    await service.retrieve_history([POOL])
    for pool_account in service.account.pool_accounts[POOL.scope]:
        print(f"✓ Deposit of {pool_account.deposit.value} (label {pool_account.label})")
    print()

    # Step 2: Prepare a withdrawal
    print("Step 2: Prepare a withdrawal of 400 from the first deposit")
    print("-" * 70)
    commitment = service.get_spendable_commitments()[POOL.scope][0]
    new_nullifier, new_secret = service.create_withdrawal_secrets(commitment)
    context = calculate_context(Withdrawal(processooor=RELAYER, data=b""), POOL.scope)
    withdrawal_input = WithdrawalInput(
        withdrawal_amount=400,
        state_merkle_proof=MerkleProof(root=commitment.hash, leaf=commitment.hash, index=0),
        asp_merkle_proof=MerkleProof(root=commitment.label, leaf=commitment.label, index=0),
        state_root=commitment.hash,
        asp_root=commitment.label,
        new_nullifier=new_nullifier,
        new_secret=new_secret,
        context=context,
        state_tree_depth=0,
        asp_tree_depth=0,
    )
    print(f"  Context: {hex(context)}")
    print()

    # Step 3: Prove and verify
    print("Step 3: Prove and verify")
    print("-" * 70)
    settings = get_settings()
    if shutil.which(settings.snarkjs_binary) is None or not settings.artifacts_dir.exists():
        print(f"  snarkjs or {settings.artifacts_dir}/ not found, skipping proof generation")
        return

    proofs = ProofService(FileSystemArtifactProvider(), SnarkjsBackend())
    try:
        proof = await proofs.prove_withdrawal(commitment, withdrawal_input)
        valid = await proofs.verify_withdrawal(proof)
    except ProofError as e:
        print(f"✗ {e}")
        return
    print(f"✓ Proof generated with {len(proof.public_signals)} public signals")
    print(f"✓ Verification: {'valid' if valid else 'INVALID'}")


if __name__ == "__main__":
    asyncio.run(main())
