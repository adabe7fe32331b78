"""Stock ledger: inventory deliveries, checkouts and returns behind a FastAPI service."""
