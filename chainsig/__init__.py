"""chainsig - verification helpers for MPC-produced ECDSA signatures and regtest HD wallets."""

__version__ = "0.1.0"
