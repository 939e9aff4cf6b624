"""Inference resolution domain: model, policy, ledger, producers and arbitration."""
