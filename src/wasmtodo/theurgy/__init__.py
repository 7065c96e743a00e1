"""
Theurgy - Command implementations for wasmtodo.

Each module corresponds to a top-level CLI command or group:
- wallet:  Generate a mnemonic / show the account address
- faucet:  Request testnet tokens
- bank:    Balance and token transfer
- deploy:  Upload and instantiate contract code
- entry:   Create, read, update, delete and list entries
"""
