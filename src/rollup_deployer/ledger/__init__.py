"""Parent-chain access: JSON-RPC client, signer and contract bindings."""
