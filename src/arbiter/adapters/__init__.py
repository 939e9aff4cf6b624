"""Adapters translating external formats into domain records."""
