from __future__ import annotations

from dataclasses import dataclass

import numpy as np


def _as_point(p: np.ndarray) -> np.ndarray:
    p = np.asarray(p, dtype=np.float64).reshape(-1)
    if p.size != 3:
        raise ValueError("expected a 3D point")
    return p


@dataclass(frozen=True, eq=False)
class Pose3:
    """
    Rigid transform of a camera in the world frame (camera -> world).

    A world point P is seen in the camera frame at R^T (P - t), so `t` is the
    camera center and the columns of `R` are the camera axes in world coordinates.
    """

    R: np.ndarray  # (3,3)
    t: np.ndarray  # (3,)

    def __post_init__(self) -> None:
        R = np.array(self.R, dtype=np.float64).reshape(3, 3)
        t = np.array(self.t, dtype=np.float64).reshape(3)
        R.setflags(write=False)
        t.setflags(write=False)
        object.__setattr__(self, "R", R)
        object.__setattr__(self, "t", t)

    @classmethod
    def identity(cls) -> "Pose3":
        return cls(R=np.eye(3), t=np.zeros(3))

    @classmethod
    def from_rotvec(cls, rotvec: np.ndarray, t: np.ndarray) -> "Pose3":
        from scipy.spatial.transform import Rotation as R  # type: ignore

        rot = R.from_rotvec(np.asarray(rotvec, dtype=np.float64).reshape(3)).as_matrix()
        return cls(R=rot, t=t)

    @classmethod
    def from_opencv_extrinsics(cls, rvec: np.ndarray, tvec: np.ndarray) -> "Pose3":
        """
        Build a camera pose from OpenCV extrinsics (world -> camera: X_c = R_cw X_w + t_cw).
        """
        import cv2

        R_cw, _ = cv2.Rodrigues(np.asarray(rvec, dtype=np.float64).reshape(3, 1))
        t_cw = np.asarray(tvec, dtype=np.float64).reshape(3)
        return cls(R=R_cw.T, t=-R_cw.T @ t_cw)

    @classmethod
    def look_at(cls, eye: np.ndarray, target: np.ndarray, up: np.ndarray = (0.0, 1.0, 0.0)) -> "Pose3":
        """
        Camera at `eye` looking at `target`, image y axis pointing away from `up`.
        """
        eye = _as_point(eye)
        zc = _as_point(target) - eye
        dist = np.linalg.norm(zc)
        if dist < 1e-12:
            raise ValueError("eye and target coincide")
        zc /= dist
        xc = np.cross(-_as_point(up), zc)
        n = np.linalg.norm(xc)
        if n < 1e-12:
            raise ValueError("up vector is parallel to the viewing direction")
        xc /= n
        yc = np.cross(zc, xc)
        return cls(R=np.stack([xc, yc, zc], axis=1), t=eye)

    def transform_to(self, point: np.ndarray, want_jacobian: bool = False) -> tuple[np.ndarray, np.ndarray | None]:
        """World point -> camera frame, with the optional 3x3 derivative w.r.t. the point."""
        p = _as_point(point)
        pc = self.R.T @ (p - self.t)
        H = self.R.T.copy() if want_jacobian else None
        return pc, H

    def transform_from(self, point: np.ndarray) -> np.ndarray:
        return self.R @ _as_point(point) + self.t

    def equals(self, other: "Pose3", tol: float = 1e-9) -> bool:
        return bool(np.allclose(self.R, other.R, rtol=0.0, atol=tol) and np.allclose(self.t, other.t, rtol=0.0, atol=tol))

    def describe(self, label: str = "") -> str:
        R = np.array2string(self.R, precision=6, separator=", ")
        t = np.array2string(self.t, precision=6, separator=", ")
        return f"{label}R: {R}\nt: {t}"
