from __future__ import annotations

from typing import Mapping, Sequence

import numpy as np

from trifactor.core.values import format_key


class VerticalBlockMatrix:
    """
    A (rows, sum(dims)) float64 buffer split into column blocks.

    With `append_one_dimension`, a trailing 1-column block is added (the usual home of `b`
    in an augmented [A | b] system). The buffer is allocated once; block access returns
    views, block assignment copies into the existing storage.
    """

    def __init__(self, dims: Sequence[int], rows: int, append_one_dimension: bool = False) -> None:
        dims = [int(d) for d in dims]
        if append_one_dimension:
            dims.append(1)
        if rows < 0 or any(d < 0 for d in dims):
            raise ValueError("block dimensions must be >= 0")
        offsets = np.concatenate([[0], np.cumsum(dims)]).astype(int)
        self._dims = tuple(dims)
        self._offsets = tuple(int(o) for o in offsets)
        self._matrix = np.zeros((int(rows), self._offsets[-1]), dtype=np.float64)

    @property
    def rows(self) -> int:
        return int(self._matrix.shape[0])

    @property
    def cols(self) -> int:
        return int(self._matrix.shape[1])

    @property
    def n_blocks(self) -> int:
        return len(self._dims)

    @property
    def dims(self) -> tuple[int, ...]:
        return self._dims

    @property
    def matrix(self) -> np.ndarray:
        return self._matrix

    def __getitem__(self, block: int) -> np.ndarray:
        if not -self.n_blocks <= block < self.n_blocks:
            raise IndexError("block index out of range")
        block %= self.n_blocks
        return self._matrix[:, self._offsets[block] : self._offsets[block + 1]]

    def __setitem__(self, block: int, value: np.ndarray) -> None:
        view = self[block]
        view[...] = np.asarray(value, dtype=np.float64).reshape(view.shape)

    def copy(self) -> "VerticalBlockMatrix":
        out = VerticalBlockMatrix(self._dims, self.rows)
        out._matrix[...] = self._matrix
        return out


class JacobianFactor:
    """
    Gaussian factor ||A x - b||^2 on a set of keys, stored as an augmented [A_1 .. A_n | b].

    The constructor copies `Ab`, so the factor never aliases a caller's scratch storage.
    """

    def __init__(self, keys: Sequence[int], Ab: VerticalBlockMatrix) -> None:
        keys = tuple(int(k) for k in keys)
        if Ab.n_blocks != len(keys) + 1 or Ab.dims[-1] != 1:
            raise ValueError("Ab must hold one block per key plus a trailing b column")
        if len(set(keys)) != len(keys):
            raise ValueError("duplicate keys")
        self._keys = keys
        self._Ab = Ab.copy()
        self._Ab.matrix.setflags(write=False)

    @classmethod
    def from_blocks(cls, terms: Sequence[tuple[int, np.ndarray]], b: np.ndarray) -> "JacobianFactor":
        b = np.asarray(b, dtype=np.float64).reshape(-1)
        mats = [np.atleast_2d(np.asarray(A, dtype=np.float64)) for _, A in terms]
        if any(A.shape[0] != b.size for A in mats):
            raise ValueError("all A blocks must have as many rows as b")
        Ab = VerticalBlockMatrix([A.shape[1] for A in mats], b.size, append_one_dimension=True)
        for i, A in enumerate(mats):
            Ab[i] = A
        Ab[len(mats)] = b
        return cls([k for k, _ in terms], Ab)

    @property
    def keys(self) -> tuple[int, ...]:
        return self._keys

    @property
    def rows(self) -> int:
        return self._Ab.rows

    @property
    def b(self) -> np.ndarray:
        return self._Ab[-1].reshape(-1)

    def get_a(self, key: int) -> np.ndarray:
        try:
            i = self._keys.index(int(key))
        except ValueError:
            raise KeyError(format_key(key)) from None
        return self._Ab[i]

    def augmented_jacobian(self) -> np.ndarray:
        return self._Ab.matrix.copy()

    def information(self) -> np.ndarray:
        """A^T A over all keys (key order)."""
        A = self._Ab.matrix[:, :-1]
        return A.T @ A

    def error_vector(self, delta: Mapping[int, np.ndarray]) -> np.ndarray:
        """A x - b for the given per-key increments."""
        r = -self.b.copy()
        for i, k in enumerate(self._keys):
            x = np.asarray(delta[k], dtype=np.float64).reshape(-1)
            r += self._Ab[i] @ x
        return r

    def error(self, delta: Mapping[int, np.ndarray]) -> float:
        e = self.error_vector(delta)
        return 0.5 * float(e @ e)

    def equals(self, other: "JacobianFactor", tol: float = 1e-9) -> bool:
        if not isinstance(other, JacobianFactor) or other.keys != self.keys:
            return False
        if other._Ab.dims != self._Ab.dims or other.rows != self.rows:
            return False
        return bool(np.allclose(self._Ab.matrix, other._Ab.matrix, rtol=0.0, atol=tol))

    def describe(self, label: str = "") -> str:
        lines = [f"{label}JacobianFactor, keys=[{', '.join(format_key(k) for k in self._keys)}]"]
        for i, k in enumerate(self._keys):
            lines.append(f"  A[{format_key(k)}] = {np.array2string(self._Ab[i], precision=6, separator=', ')}")
        lines.append(f"  b = {np.array2string(self.b, precision=6, separator=', ')}")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.describe()
