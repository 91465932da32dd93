from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

import numpy as np

from trifactor.core.distortion import BrownDistortion


def _as_xy(xy: np.ndarray) -> np.ndarray:
    xy = np.asarray(xy, dtype=np.float64).reshape(-1)
    if xy.size != 2:
        raise ValueError("expected a 2D point")
    return xy


@dataclass(frozen=True)
class Cal3S2:
    """
    Pinhole intrinsics: focal lengths, skew and principal point (pixels).

      u = fx x + s y + u0
      v = fy y + v0
    """

    fx: float
    fy: float
    s: float = 0.0
    u0: float = 0.0
    v0: float = 0.0

    @classmethod
    def from_matrix(cls, K: np.ndarray) -> "Cal3S2":
        K = np.asarray(K, dtype=np.float64).reshape(3, 3)
        return cls(fx=float(K[0, 0]), fy=float(K[1, 1]), s=float(K[0, 1]), u0=float(K[0, 2]), v0=float(K[1, 2]))

    @property
    def K(self) -> np.ndarray:
        return np.array([[self.fx, self.s, self.u0], [0.0, self.fy, self.v0], [0.0, 0.0, 1.0]], dtype=np.float64)

    @property
    def focal_scale(self) -> float:
        return float(self.fx)

    def _affine(self) -> np.ndarray:
        return np.array([[self.fx, self.s], [0.0, self.fy]], dtype=np.float64)

    def uncalibrate(self, xy: np.ndarray, want_jacobian: bool = False) -> tuple[np.ndarray, np.ndarray | None]:
        """Normalized coordinates -> pixels, with the optional 2x2 derivative w.r.t. xy."""
        x, y = _as_xy(xy)
        uv = np.array([self.fx * x + self.s * y + self.u0, self.fy * y + self.v0], dtype=np.float64)
        return uv, (self._affine() if want_jacobian else None)

    def calibrate(self, uv: np.ndarray) -> np.ndarray:
        u, v = _as_xy(uv)
        y = (v - self.v0) / self.fy
        x = (u - self.u0 - self.s * y) / self.fx
        return np.array([x, y], dtype=np.float64)

    def _params(self) -> np.ndarray:
        return np.array([self.fx, self.fy, self.s, self.u0, self.v0], dtype=np.float64)

    def equals(self, other: "Calibration", tol: float = 1e-9) -> bool:
        if type(other) is not type(self):
            return False
        return bool(np.allclose(self._params(), other._params(), rtol=0.0, atol=tol))

    def describe(self, label: str = "") -> str:
        return f"{label}fx={self.fx:g} fy={self.fy:g} s={self.s:g} u0={self.u0:g} v0={self.v0:g}"


@dataclass(frozen=True)
class Cal3DS2(Cal3S2):
    """
    Pinhole intrinsics with Brown-Conrady distortion applied in normalized coordinates
    before the affine pixel mapping (same model as OpenCV's 5-coefficient distortion).
    """

    distortion: BrownDistortion = field(default_factory=BrownDistortion)

    @classmethod
    def from_opencv(cls, K: np.ndarray, dist: np.ndarray) -> "Cal3DS2":
        base = Cal3S2.from_matrix(K)
        d = np.zeros((5,), dtype=np.float64)
        dist = np.asarray(dist, dtype=np.float64).reshape(-1)
        if dist.size > 5:
            raise ValueError("only (k1, k2, p1, p2, k3) distortion is supported")
        d[: dist.size] = dist
        return cls(
            fx=base.fx,
            fy=base.fy,
            s=base.s,
            u0=base.u0,
            v0=base.v0,
            distortion=BrownDistortion(k1=d[0], k2=d[1], p1=d[2], p2=d[3], k3=d[4]),
        )

    def uncalibrate(self, xy: np.ndarray, want_jacobian: bool = False) -> tuple[np.ndarray, np.ndarray | None]:
        x, y = _as_xy(xy)
        xd, yd = self.distortion.distort(x, y)
        uv, H_aff = super().uncalibrate(np.array([xd, yd]), want_jacobian)
        if not want_jacobian:
            return uv, None
        return uv, H_aff @ self.distortion.distort_jacobian(x, y)

    def calibrate(self, uv: np.ndarray) -> np.ndarray:
        xd, yd = super().calibrate(uv)
        x, y = self.distortion.undistort(xd, yd, iterations=20)
        return np.array([float(x), float(y)], dtype=np.float64)

    def equals(self, other: "Calibration", tol: float = 1e-9) -> bool:
        return super().equals(other, tol) and self.distortion.equals(other.distortion, tol)

    def describe(self, label: str = "") -> str:
        d = self.distortion
        return (
            super().describe(label)
            + f" k1={d.k1:g} k2={d.k2:g} p1={d.p1:g} p2={d.p2:g} k3={d.k3:g}"
        )


Calibration = Union[Cal3S2, Cal3DS2]
