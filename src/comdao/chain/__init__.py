"""
Chain - adapters around the external blockchain client libraries.

JSON-RPC over httpx, ABI coding via eth-abi / eth-hash, signing via
eth-account. The orchestrator only sees the transport protocol.
"""
