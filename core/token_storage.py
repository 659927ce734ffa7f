"""
Storage Model for the Token Ledger.

This module simulates the key-value storage that a chain runtime provides to
its contracts. Values live in a flat map of raw bytes, addressed by keys built
the same way the runtime builds them:

- every storage item has a 32-byte prefix made of the hashed pallet name and
  the hashed item name
- map keys are appended with the Blake2_128Concat hasher (a 16-byte blake2b
  digest followed by the encoded key itself, so keys remain iterable)
- values are unsigned 256-bit integers encoded as 32 big-endian bytes

The store supports nested transactions so the host can discard every write of
a failed call.
"""

import hashlib
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Tuple

U256_MAX = 2 ** 256 - 1
U256_BYTES = 32
HASH_BYTES = 16
LENGTH_BYTES = 4

PALLET_NAME = "Token"


def blake2_128(data: bytes) -> bytes:
    """Returns the 16-byte blake2b digest of the given bytes."""
    return hashlib.blake2b(data, digest_size=HASH_BYTES).digest()


def blake2_128_concat(encoded: bytes) -> bytes:
    """Hashes a key while keeping the original bytes recoverable."""
    return blake2_128(encoded) + encoded


def storage_prefix(pallet: str, item: str) -> bytes:
    """Returns the 32-byte prefix under which all entries of an item live."""
    return blake2_128(pallet.encode("utf-8")) + blake2_128(item.encode("utf-8"))


def encode_account(account: str) -> bytes:
    """Encodes an account identifier as a length-prefixed UTF-8 string."""
    raw = account.encode("utf-8")
    return len(raw).to_bytes(LENGTH_BYTES, "big") + raw


def decode_account(data: bytes, offset: int = 0) -> Tuple[str, int]:
    """
    Decodes a length-prefixed account identifier.

    Returns:
        Tuple of (account, offset just past the decoded bytes)
    """
    length = int.from_bytes(data[offset:offset + LENGTH_BYTES], "big")
    start = offset + LENGTH_BYTES
    end = start + length
    if end > len(data):
        raise ValueError("Truncated account encoding")
    return data[start:end].decode("utf-8"), end


def encode_u256(value: int) -> bytes:
    if value < 0 or value > U256_MAX:
        raise ValueError(f"Value out of u256 range: {value}")
    return value.to_bytes(U256_BYTES, "big")


def decode_u256(data: bytes) -> int:
    if len(data) != U256_BYTES:
        raise ValueError(f"Expected {U256_BYTES} bytes for a u256, got {len(data)}")
    return int.from_bytes(data, "big")


class KeyValueStore:
    """
    Simulates the runtime's persistent key-value storage.

    Writes made inside `transaction()` are held in an overlay until the block
    exits normally; if an exception escapes, the overlay is thrown away.
    Transactions nest, and reads always see the innermost overlay first.
    """

    def __init__(self):
        # Committed entries
        self._committed: Dict[bytes, bytes] = {}

        # Stack of pending overlays, innermost last
        self._overlays: List[Dict[bytes, bytes]] = []

    @property
    def depth(self) -> int:
        """Number of transactions currently open."""
        return len(self._overlays)

    def get(self, key: bytes) -> Optional[bytes]:
        for overlay in reversed(self._overlays):
            if key in overlay:
                return overlay[key]
        return self._committed.get(key)

    def set(self, key: bytes, value: bytes):
        if self._overlays:
            self._overlays[-1][key] = value
        else:
            self._committed[key] = value

    def contains(self, key: bytes) -> bool:
        return self.get(key) is not None

    def iter_prefix(self, prefix: bytes) -> Iterator[Tuple[bytes, bytes]]:
        """Yields (key, value) pairs whose key starts with the prefix, sorted by key."""
        merged = dict(self._committed)
        for overlay in self._overlays:
            merged.update(overlay)

        for key in sorted(merged):
            if key.startswith(prefix):
                yield key, merged[key]

    def begin(self):
        self._overlays.append({})

    def commit(self):
        if not self._overlays:
            raise RuntimeError("No open transaction to commit")

        overlay = self._overlays.pop()
        if self._overlays:
            self._overlays[-1].update(overlay)
        else:
            self._committed.update(overlay)

    def rollback(self):
        if not self._overlays:
            raise RuntimeError("No open transaction to roll back")
        self._overlays.pop()

    @contextmanager
    def transaction(self):
        """
        Runs the enclosed block as a storage transaction.

        The overlay is committed when the block finishes and rolled back when
        it raises; the exception is re-raised unchanged.
        """
        self.begin()
        try:
            yield self
        except BaseException:
            self.rollback()
            raise
        self.commit()


class StorageValue:
    """A single u256 storage item. Absent reads as zero."""

    def __init__(self, store: KeyValueStore, item: str, pallet: str = PALLET_NAME):
        self.store = store
        self.key = storage_prefix(pallet, item)

    def get(self) -> int:
        raw = self.store.get(self.key)
        return decode_u256(raw) if raw is not None else 0

    def set(self, value: int):
        self.store.set(self.key, encode_u256(value))

    def exists(self) -> bool:
        return self.store.contains(self.key)


class StorageMap:
    """Maps an account to a u256. Absent entries read as zero."""

    def __init__(self, store: KeyValueStore, item: str, pallet: str = PALLET_NAME):
        self.store = store
        self.prefix = storage_prefix(pallet, item)

    def key_for(self, account: str) -> bytes:
        return self.prefix + blake2_128_concat(encode_account(account))

    def get(self, account: str) -> int:
        raw = self.store.get(self.key_for(account))
        return decode_u256(raw) if raw is not None else 0

    def insert(self, account: str, value: int):
        self.store.set(self.key_for(account), encode_u256(value))

    def contains(self, account: str) -> bool:
        return self.store.contains(self.key_for(account))

    def items(self) -> Iterator[Tuple[str, int]]:
        """Yields every stored (account, value) pair."""
        skip = len(self.prefix) + HASH_BYTES
        for key, raw in self.store.iter_prefix(self.prefix):
            account, _ = decode_account(key, skip)
            yield account, decode_u256(raw)


class StorageDoubleMap:
    """Maps an (account, account) pair to a u256. Absent entries read as zero."""

    def __init__(self, store: KeyValueStore, item: str, pallet: str = PALLET_NAME):
        self.store = store
        self.prefix = storage_prefix(pallet, item)

    def key_for(self, first: str, second: str) -> bytes:
        return (self.prefix
                + blake2_128_concat(encode_account(first))
                + blake2_128_concat(encode_account(second)))

    def get(self, first: str, second: str) -> int:
        raw = self.store.get(self.key_for(first, second))
        return decode_u256(raw) if raw is not None else 0

    def insert(self, first: str, second: str, value: int):
        self.store.set(self.key_for(first, second), encode_u256(value))

    def contains(self, first: str, second: str) -> bool:
        return self.store.contains(self.key_for(first, second))

    def items(self) -> Iterator[Tuple[Tuple[str, str], int]]:
        """Yields every stored ((first, second), value) pair."""
        for key, raw in self.store.iter_prefix(self.prefix):
            first, offset = decode_account(key, len(self.prefix) + HASH_BYTES)
            second, _ = decode_account(key, offset + HASH_BYTES)
            yield (first, second), decode_u256(raw)


class LedgerState:
    """
    The three tables a token ledger reads and writes.

    The state is owned by the host and handed to the ledger; several states
    over separate stores can coexist without interfering.
    """

    def __init__(self, store: Optional[KeyValueStore] = None):
        self.store = store if store is not None else KeyValueStore()

        # Total quantity of the asset in existence, set at genesis
        self.total_supply = StorageValue(self.store, "TotalSupply")

        # Account -> balance
        self.balances = StorageMap(self.store, "Balance")

        # (owner, spender) -> remaining allowance
        self.allowances = StorageDoubleMap(self.store, "Allowance")

    def total_balances(self) -> int:
        """Sum of every stored balance."""
        return sum(value for _, value in self.balances.items())
