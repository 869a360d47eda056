"""Concrete external collaborators: rate provider and ledger sink."""
