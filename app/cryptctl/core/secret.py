"""Secret byte material with guaranteed wiping.

Passphrases live in a mutable ``bytearray`` owned by the call that
created them. Owners wipe through the context manager; ``__del__`` is
only a fallback and correctness never depends on it.
"""

import hmac


class SecretBuffer:
    """Mutable buffer of sensitive bytes that can be zero-filled.

    The buffer takes ownership of the ``bytearray`` it is given (no copy),
    so the caller must not keep another reference to it.

    Example:
        >>> with SecretBuffer.from_str("hunter2") as secret:
        ...     len(secret)
        7
    """

    __slots__ = ("_data",)

    def __init__(self, data: bytearray) -> None:
        if not isinstance(data, bytearray):
            msg = f"SecretBuffer requires a bytearray, got {type(data).__name__}"
            raise TypeError(msg)
        self._data: bytearray | None = data

    @classmethod
    def from_str(cls, value: str) -> "SecretBuffer":
        """Create a buffer from text (UTF-8 encoded)."""
        return cls(bytearray(value.encode("utf-8")))

    @property
    def wiped(self) -> bool:
        """True once the content has been destroyed."""
        return self._data is None

    def view(self) -> memoryview:
        """Read-only view of the secret.

        Raises:
            ValueError: If the buffer was already wiped.
        """
        if self._data is None:
            msg = "Secret has already been wiped"
            raise ValueError(msg)
        return memoryview(self._data).toreadonly()

    def write_to(self, target: bytearray) -> None:
        """Append the secret to ``target`` without creating a ``bytes`` copy."""
        target.extend(self.view())

    def equals(self, other: "SecretBuffer") -> bool:
        """Constant-time comparison with another secret."""
        return hmac.compare_digest(self.view(), other.view())

    def wipe(self) -> None:
        """Zero-fill and release the content. Safe to call repeatedly."""
        if self._data is None:
            return
        for i in range(len(self._data)):
            self._data[i] = 0
        self._data = None

    def __len__(self) -> int:
        return 0 if self._data is None else len(self._data)

    def __enter__(self) -> "SecretBuffer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.wipe()

    def __repr__(self) -> str:
        state = "wiped" if self._data is None else f"{len(self._data)} bytes"
        return f"SecretBuffer(<{state}>)"

    def __del__(self) -> None:
        self.wipe()


def wipe_bytearray(data: bytearray | None) -> None:
    """Zero-fill a scratch buffer that held secret material."""
    if data is None:
        return
    for i in range(len(data)):
        data[i] = 0
