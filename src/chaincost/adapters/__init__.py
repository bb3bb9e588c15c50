"""Chain adapter implementations, one module per ledger family."""
