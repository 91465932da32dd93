from __future__ import annotations

from dataclasses import dataclass
from typing import Union

import numpy as np

from trifactor.core.calibration import Cal3DS2, Cal3S2, Calibration
from trifactor.core.geometry import Pose3


class CheiralityError(RuntimeError):
    """A landmark projected from behind the camera's image plane."""

    def __init__(self, landmark: str = "", depth: float | None = None) -> None:
        msg = "Cheirality Exception"
        if landmark:
            msg += f": landmark {landmark} moved behind camera"
        if depth is not None:
            msg += f" (depth={depth:.6g})"
        super().__init__(msg)
        self.landmark = landmark
        self.depth = depth


@dataclass(frozen=True)
class Projection:
    uv: np.ndarray  # (2,)
    H_point: np.ndarray | None  # (2,3) d(uv)/d(point) when requested


@dataclass(frozen=True)
class BehindCamera:
    depth: float


ProjectionResult = Union[Projection, BehindCamera]


@dataclass(frozen=True, eq=False)
class PinholeCamera:
    """
    Calibrated pinhole camera at a known pose.

    Projection is pose.transform_to -> perspective division -> calibration.uncalibrate.
    Points with camera-frame depth <= 0 are reported as `BehindCamera` instead of pixels.
    """

    pose: Pose3
    calibration: Calibration

    @classmethod
    def from_opencv(
        cls,
        K: np.ndarray,
        dist: np.ndarray | None = None,
        rvec: np.ndarray | None = None,
        tvec: np.ndarray | None = None,
    ) -> "PinholeCamera":
        """
        Camera from OpenCV conventions (intrinsics K, distortion coeffs, world->camera rvec/tvec).
        """
        if dist is None:
            calib: Calibration = Cal3S2.from_matrix(K)
        else:
            calib = Cal3DS2.from_opencv(K, dist)
        if rvec is None and tvec is None:
            pose = Pose3.identity()
        else:
            pose = Pose3.from_opencv_extrinsics(
                np.zeros(3) if rvec is None else rvec,
                np.zeros(3) if tvec is None else tvec,
            )
        return cls(pose=pose, calibration=calib)

    def project(self, point: np.ndarray, want_jacobian: bool = False) -> ProjectionResult:
        pc, H_pose = self.pose.transform_to(point, want_jacobian)
        depth = float(pc[2])
        if depth <= 0.0:
            return BehindCamera(depth=depth)

        inv_z = 1.0 / depth
        x = pc[0] * inv_z
        y = pc[1] * inv_z
        uv, H_cal = self.calibration.uncalibrate(np.array([x, y]), want_jacobian)
        if not want_jacobian:
            return Projection(uv=uv, H_point=None)

        # d(x,y)/d(pc)
        H_pn = inv_z * np.array([[1.0, 0.0, -x], [0.0, 1.0, -y]], dtype=np.float64)
        return Projection(uv=uv, H_point=H_cal @ H_pn @ H_pose)

    def backproject(self, uv: np.ndarray, depth: float) -> np.ndarray:
        """World point at `depth` along the ray through pixel `uv`."""
        x, y = self.calibration.calibrate(uv)
        pc = np.array([x * depth, y * depth, depth], dtype=np.float64)
        return self.pose.transform_from(pc)

    def equals(self, other: "PinholeCamera", tol: float = 1e-9) -> bool:
        return self.pose.equals(other.pose, tol) and self.calibration.equals(other.calibration, tol)

    def describe(self, label: str = "") -> str:
        return f"{label}\n{self.pose.describe('pose ')}\n{self.calibration.describe('calibration ')}"
