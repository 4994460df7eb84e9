"""
Gasless Relay — fee-sponsorship service for Solana transactions.

Accepts partially-signed transactions that pay the relay operator a fee in a
supported SPL token, co-signs them as fee payer and broadcasts them. Modular
architecture: transaction codec, fee policy validator, fee-payer signer,
submission pipeline, admission control and a thin HTTP server on top.
"""

__version__ = "0.1.0"
