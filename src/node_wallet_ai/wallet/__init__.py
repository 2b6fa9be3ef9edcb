"""Solana wallet system for Node Wallet AI.

Provides a transaction executor over a single RPC endpoint with three
interchangeable signing backends: a browser-extension bridge, a mobile
wallet adapter bridge, and an in-process keypair.
"""
