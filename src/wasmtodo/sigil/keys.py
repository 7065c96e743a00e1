"""
Mnemonic Key Management for wasmtodo.

This module turns a BIP-39 mnemonic into the secp256k1 signing key and
bech32 account address used on Cosmos chains (Juno by default):

- BIP-39 validation and BIP-32 derivation along m/44'/118'/0'/0/0
- Cosmos address = bech32(prefix, ripemd160(sha256(compressed_pubkey)))
- SIGN_MODE_DIRECT signatures (64-byte r||s over sha256, low-s)

The mnemonic is stored in ~/.wasmtodo/.env as MNEMONIC.

Dependencies: eth-account (HD wallet), eth-keys (secp256k1),
pycryptodome (RIPEMD-160), bech32.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from bech32 import bech32_decode, bech32_encode, convertbits
from Crypto.Hash import RIPEMD160
from dotenv import load_dotenv
from eth_account import Account as EthAccount
from eth_account.hdaccount.mnemonic import Mnemonic
from eth_keys import keys

from ..utils import sha256_digest


# Default config directory
WASMTODO_DIR = Path.home() / ".wasmtodo"
WASMTODO_ENV = WASMTODO_DIR / ".env"

DEFAULT_PREFIX = "juno"
COSMOS_HD_PATH = "m/44'/118'/0'/0/0"

# secp256k1 group order
_SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

EthAccount.enable_unaudited_hdwallet_features()


class InvalidMnemonic(ValueError):
    exit_code = 2


@dataclass(frozen=True)
class Account:
    """A derived on-chain identity.

    Attributes:
        address: bech32 account address (e.g. juno1...)
        public_key: 33-byte compressed secp256k1 public key
    """
    address: str
    public_key: bytes


class KeyMaterial:
    """Signing key bound to one account. Holds no copy of the mnemonic."""

    def __init__(self, private_key: bytes, prefix: str = DEFAULT_PREFIX) -> None:
        self._key = keys.PrivateKey(private_key)
        public_key = self._key.public_key.to_compressed_bytes()
        self.account = Account(
            address=address_from_public_key(public_key, prefix),
            public_key=public_key,
        )

    @property
    def address(self) -> str:
        return self.account.address

    def sign(self, payload: bytes) -> bytes:
        """Sign sha256(payload) and return the 64-byte r||s signature."""
        signature = self._key.sign_msg_hash(sha256_digest(payload))
        s = signature.s
        if s > _SECP256K1_N // 2:
            s = _SECP256K1_N - s
        return signature.r.to_bytes(32, "big") + s.to_bytes(32, "big")

    def __repr__(self) -> str:
        return f"KeyMaterial(address={self.address!r})"


def derive(
    mnemonic: str,
    prefix: str = DEFAULT_PREFIX,
    hd_path: str = COSMOS_HD_PATH,
) -> KeyMaterial:
    """
    Derive the signing key and address for a mnemonic.

    Args:
        mnemonic: BIP-39 phrase (English wordlist)
        prefix: bech32 human-readable part of the address
        hd_path: BIP-32 derivation path

    Returns:
        KeyMaterial for the derived account

    Raises:
        InvalidMnemonic: If the phrase fails the wordlist or checksum
    """
    phrase = " ".join(mnemonic.split())
    if not phrase or not Mnemonic().is_mnemonic_valid(phrase):
        raise InvalidMnemonic("Mnemonic is not a valid BIP-39 phrase.")

    local = EthAccount.from_mnemonic(phrase, account_path=hd_path)
    return KeyMaterial(bytes(local.key), prefix=prefix)


def generate_mnemonic(num_words: int = 12) -> str:
    """Generate a fresh BIP-39 mnemonic."""
    _, mnemonic = EthAccount.create_with_mnemonic(
        num_words=num_words, account_path=COSMOS_HD_PATH
    )
    return mnemonic


def address_from_public_key(public_key: bytes, prefix: str = DEFAULT_PREFIX) -> str:
    """Encode a compressed public key as a bech32 account address."""
    h = RIPEMD160.new()
    h.update(sha256_digest(public_key))
    words = convertbits(h.digest(), 8, 5)
    return bech32_encode(prefix, words)


def validate_address(address: str, prefix: Optional[str] = None) -> str:
    """
    Check that an address is well-formed bech32.

    Returns:
        The address unchanged

    Raises:
        ValueError: If the checksum fails or the prefix does not match
    """
    hrp, data = bech32_decode(address)
    if hrp is None or data is None:
        raise ValueError(f"Invalid bech32 address: {address!r}")
    if prefix is not None and hrp != prefix:
        raise ValueError(f"Address {address} does not use prefix {prefix!r}")
    return address


def save_env_value(key: str, value: str, env_path: Optional[Path] = None) -> Path:
    """
    Save a single KEY=value to the .env file, preserving other entries.

    Args:
        key: Variable name
        value: Value (quoted when it contains spaces)
        env_path: Path to .env file (default: ~/.wasmtodo/.env)

    Returns:
        Path to the saved .env file
    """
    env_path = env_path or WASMTODO_ENV
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing = {}
    if env_path.exists():
        for line in env_path.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                k, v = line.split("=", 1)
                existing[k.strip()] = v.strip()

    existing[key] = f'"{value}"' if " " in value else value

    lines = [f"{k}={v}" for k, v in existing.items()]
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    # Set secure permissions on Unix
    if os.name != "nt":
        env_path.chmod(0o600)

    return env_path


def save_mnemonic(mnemonic: str, env_path: Optional[Path] = None) -> Path:
    """Save mnemonic to .env file as MNEMONIC."""
    return save_env_value("MNEMONIC", " ".join(mnemonic.split()), env_path)


def load_mnemonic(env_path: Optional[Path] = None) -> str:
    """
    Load mnemonic from .env file or environment.

    Raises:
        ValueError: If MNEMONIC is not configured
    """
    env_path = env_path or WASMTODO_ENV

    if env_path.exists():
        # Environment wins over the .env file
        load_dotenv(env_path, override=False)

    mnemonic = os.environ.get("MNEMONIC")
    if not mnemonic:
        raise ValueError(
            f"MNEMONIC not found. Run 'wasmtodo wallet generate' or set "
            f"MNEMONIC in {env_path}"
        )
    return mnemonic.strip()


def load_key(prefix: str = DEFAULT_PREFIX, env_path: Optional[Path] = None) -> KeyMaterial:
    """Load the configured mnemonic and derive its key."""
    return derive(load_mnemonic(env_path), prefix=prefix)
