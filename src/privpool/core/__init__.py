"""Secret derivation, account reconciliation and proofs."""
