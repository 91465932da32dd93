from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from trifactor.config import ConfigurationError


@dataclass(frozen=True, eq=False)
class GaussianNoise:
    """
    Gaussian measurement noise stored as its square-root information matrix R
    (upper triangular, R^T R = Sigma^-1). Whitening multiplies by R.

    `kind` is informational ("gaussian", "diagonal", "isotropic", "unit").
    """

    sqrt_information: np.ndarray  # (d,d)
    kind: str = "gaussian"

    def __post_init__(self) -> None:
        R = np.array(self.sqrt_information, dtype=np.float64)
        if R.ndim != 2 or R.shape[0] != R.shape[1] or R.shape[0] == 0:
            raise ConfigurationError("sqrt_information must be a non-empty square matrix")
        if not np.all(np.isfinite(R)):
            raise ConfigurationError("sqrt_information must be finite")
        if not np.allclose(np.tril(R, -1), 0.0, rtol=0.0, atol=0.0):
            raise ConfigurationError("sqrt_information must be upper triangular")
        if not np.all(np.abs(np.diag(R)) > 0.0):
            raise ConfigurationError("sqrt_information must have a non-zero diagonal")
        R.setflags(write=False)
        object.__setattr__(self, "sqrt_information", R)

    @classmethod
    def from_sigmas(cls, sigmas: Sequence[float] | np.ndarray) -> "GaussianNoise":
        s = np.asarray(sigmas, dtype=np.float64).reshape(-1)
        if s.size == 0 or not np.all(np.isfinite(s)) or np.any(s <= 0.0):
            raise ConfigurationError("sigmas must be finite and > 0")
        return cls(sqrt_information=np.diag(1.0 / s), kind="diagonal")

    @classmethod
    def isotropic(cls, dim: int, sigma: float) -> "GaussianNoise":
        if dim < 1:
            raise ConfigurationError("dim must be >= 1")
        sigma = float(sigma)
        if not np.isfinite(sigma) or sigma <= 0.0:
            raise ConfigurationError("sigma must be finite and > 0")
        return cls(sqrt_information=np.eye(int(dim)) / sigma, kind="isotropic")

    @classmethod
    def unit(cls, dim: int) -> "GaussianNoise":
        if dim < 1:
            raise ConfigurationError("dim must be >= 1")
        return cls(sqrt_information=np.eye(int(dim)), kind="unit")

    @classmethod
    def from_covariance(cls, cov: np.ndarray) -> "GaussianNoise":
        from scipy.linalg import LinAlgError, cholesky  # type: ignore

        cov = np.asarray(cov, dtype=np.float64)
        if cov.ndim != 2 or cov.shape[0] != cov.shape[1]:
            raise ConfigurationError("covariance must be square")
        if not np.allclose(cov, cov.T, rtol=0.0, atol=1e-12):
            raise ConfigurationError("covariance must be symmetric")
        try:
            info = np.linalg.inv(cov)
            R = cholesky(info, lower=False)
        except (LinAlgError, np.linalg.LinAlgError) as e:
            raise ConfigurationError("covariance must be symmetric positive definite") from e
        return cls(sqrt_information=R, kind="gaussian")

    @property
    def dim(self) -> int:
        return int(self.sqrt_information.shape[0])

    @property
    def covariance(self) -> np.ndarray:
        Rinv = np.linalg.inv(self.sqrt_information)
        return Rinv @ Rinv.T

    @property
    def sigmas(self) -> np.ndarray:
        return np.sqrt(np.diag(self.covariance))

    def whiten(self, v: np.ndarray) -> np.ndarray:
        return self.sqrt_information @ np.asarray(v, dtype=np.float64).reshape(self.dim)

    def unwhiten(self, v: np.ndarray) -> np.ndarray:
        return np.linalg.solve(self.sqrt_information, np.asarray(v, dtype=np.float64).reshape(self.dim))

    def distance(self, v: np.ndarray) -> float:
        """Squared Mahalanobis norm of an unwhitened error."""
        w = self.whiten(v)
        return float(w @ w)

    def whiten_system(self, A: np.ndarray, b: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """
        Whiten a linear system in place: A <- R A, b <- R b.
        """
        if A.shape[0] != self.dim or b.shape[0] != self.dim:
            raise ValueError("system rows must match the noise model dimension")
        A[...] = self.sqrt_information @ A
        b[...] = self.sqrt_information @ b
        return A, b

    def equals(self, other: "GaussianNoise", tol: float = 1e-9) -> bool:
        if other.dim != self.dim:
            return False
        return bool(np.allclose(self.sqrt_information, other.sqrt_information, rtol=0.0, atol=tol))

    def describe(self, label: str = "") -> str:
        sig = np.array2string(self.sigmas, precision=6, separator=", ")
        return f"{label}{self.kind} noise, dim={self.dim}, sigmas={sig}"
