"""
Pneuma - On-chain interaction layer for wasmtodo.

Provides the CometBFT JSON-RPC connection, transaction assembly and the
signing client used to talk to CosmWasm contracts on Juno.

Uses httpx + eth-keys + cosmpy protobuf types instead of a full chain SDK.
"""
