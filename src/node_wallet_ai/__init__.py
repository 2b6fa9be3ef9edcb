"""Node Wallet AI - an AI agent bridge over a personal node graph and a Solana wallet."""

__version__ = "0.1.0"
