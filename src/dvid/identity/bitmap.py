"""Revocation bitmap carried in a DID document service.

Bit *i* set means "credentials bound to index *i* are revoked". The bitmap is
published inside a ``RevocationBitmap2022`` service whose endpoint is a data
URL holding a zlib-compressed roaring bitmap::

    data:application/octet-stream;base64,<base64(zlib(roaring portable bytes))>

The roaring portable format is what other RevocationBitmap2022 tooling reads
and writes, so documents published here resolve correctly elsewhere.
"""

from __future__ import annotations

import base64
import binascii
import zlib
from collections.abc import Iterable, Iterator

from pyroaring import BitMap

REVOCATION_BITMAP_TYPE = "RevocationBitmap2022"
DATA_URL_PREFIX = "data:application/octet-stream;base64,"

MAX_INDEX = 2**32 - 1


def _check_index(index: int) -> int:
    if isinstance(index, bool) or not isinstance(index, int):
        raise ValueError(f"Bitmap index must be an integer, got {type(index).__name__}")
    if index < 0 or index > MAX_INDEX:
        raise ValueError(f"Bitmap index out of range: {index}")
    return index


class RevocationBitmap:
    """A set of revoked indices backed by a roaring bitmap."""

    def __init__(self, indices: Iterable[int] = ()) -> None:
        self._bits = BitMap(_check_index(i) for i in indices)

    def revoke(self, index: int) -> bool:
        """Set the bit at ``index``.

        Returns:
            True if the bit was newly set, False if it was already set.
        """
        index = _check_index(index)
        if index in self._bits:
            return False
        self._bits.add(index)
        return True

    def is_revoked(self, index: int) -> bool:
        return _check_index(index) in self._bits

    def __contains__(self, index: object) -> bool:
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index <= MAX_INDEX:
            return False
        return index in self._bits

    def __iter__(self) -> Iterator[int]:
        return iter(self._bits)

    def __len__(self) -> int:
        return len(self._bits)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RevocationBitmap):
            return NotImplemented
        return self._bits == other._bits

    def __repr__(self) -> str:
        return f"RevocationBitmap({list(self._bits)!r})"

    # -- Encoding ------------------------------------------------------------

    def to_bytes(self) -> bytes:
        """zlib-compressed roaring portable serialization."""
        return zlib.compress(self._bits.serialize())

    @classmethod
    def from_bytes(cls, data: bytes) -> RevocationBitmap:
        """Decode compressed bitmap bytes.

        Raises ValueError on corrupt data.
        """
        try:
            bits = BitMap.deserialize(zlib.decompress(data))
        except (zlib.error, ValueError) as e:
            raise ValueError(f"Corrupt revocation bitmap: {e}") from e
        bitmap = cls()
        bitmap._bits = bits
        return bitmap

    def to_endpoint(self) -> str:
        """Encode as a service endpoint data URL."""
        return DATA_URL_PREFIX + base64.b64encode(self.to_bytes()).decode("ascii")

    @classmethod
    def from_endpoint(cls, endpoint: str) -> RevocationBitmap:
        """Decode a service endpoint data URL.

        Unpadded base64 is accepted. Raises ValueError if the endpoint is not
        a bitmap data URL or its payload is corrupt.
        """
        if not isinstance(endpoint, str) or not endpoint.startswith(DATA_URL_PREFIX):
            raise ValueError("Revocation bitmap endpoint must be a base64 data URL")
        payload = endpoint[len(DATA_URL_PREFIX):]
        try:
            raw = base64.b64decode(payload + "=" * (-len(payload) % 4), validate=True)
        except binascii.Error as e:
            raise ValueError(f"Invalid base64 in revocation bitmap: {e}") from e
        return cls.from_bytes(raw)
