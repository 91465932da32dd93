from __future__ import annotations

from typing import Any

import numpy as np

from trifactor.core.calibration import Cal3DS2, Cal3S2, Calibration
from trifactor.core.camera import PinholeCamera
from trifactor.core.distortion import brown_from_dict, brown_to_dict
from trifactor.core.geometry import Pose3
from trifactor.core.noise import GaussianNoise
from trifactor.factor import TriangulationFactor

FACTOR_SCHEMA = "trifactor.factor.triangulation.v0"


def _to_float_matrix(x: Any, shape: tuple[int, ...]) -> np.ndarray:
    x = np.asarray(x, dtype=np.float64)
    x = x.reshape(shape)
    if not np.all(np.isfinite(x)):
        raise ValueError("non-finite values")
    return x


def calibration_to_dict(calib: Calibration) -> dict[str, Any]:
    d: dict[str, Any] = {
        "model": "cal3ds2" if isinstance(calib, Cal3DS2) else "cal3s2",
        "fx": float(calib.fx),
        "fy": float(calib.fy),
        "s": float(calib.s),
        "u0": float(calib.u0),
        "v0": float(calib.v0),
    }
    if isinstance(calib, Cal3DS2):
        d["distortion"] = brown_to_dict(calib.distortion)
    return d


def calibration_from_dict(d: dict[str, Any]) -> Calibration:
    model = str(d.get("model", "cal3s2"))
    params = {k: float(d[k]) for k in ("fx", "fy", "s", "u0", "v0")}
    if model == "cal3s2":
        return Cal3S2(**params)
    if model == "cal3ds2":
        return Cal3DS2(**params, distortion=brown_from_dict(d.get("distortion", {})))
    raise ValueError(f"unsupported calibration model: {model}")


def camera_to_dict(camera: PinholeCamera) -> dict[str, Any]:
    return {
        "pose": {
            "R": np.asarray(camera.pose.R, dtype=np.float64).tolist(),
            "t": np.asarray(camera.pose.t, dtype=np.float64).reshape(3).tolist(),
        },
        "calibration": calibration_to_dict(camera.calibration),
    }


def camera_from_dict(d: dict[str, Any]) -> PinholeCamera:
    pose = d["pose"]
    return PinholeCamera(
        pose=Pose3(R=_to_float_matrix(pose["R"], (3, 3)), t=_to_float_matrix(pose["t"], (3,))),
        calibration=calibration_from_dict(d["calibration"]),
    )


def factor_to_dict(factor: TriangulationFactor) -> dict[str, Any]:
    """
    Plain-dict (JSON-compatible) form of every immutable field of the factor.

    The optional activity predicate is runtime-only and is not serialized.
    """
    noise = factor.noise_model
    return {
        "schema_version": FACTOR_SCHEMA,
        "key": int(factor.key),
        "camera": camera_to_dict(factor.camera),
        "measured": np.asarray(factor.measured, dtype=np.float64).tolist(),
        "noise": None
        if noise is None
        else {"kind": noise.kind, "sqrt_information": np.asarray(noise.sqrt_information).tolist()},
        "degenerate": {"rethrow": bool(factor.rethrow_degenerate), "log": bool(factor.log_degenerate)},
    }


def factor_from_dict(data: dict[str, Any]) -> TriangulationFactor:
    if str(data.get("schema_version")) != FACTOR_SCHEMA:
        raise ValueError("unsupported factor schema")

    noise_cfg = data.get("noise")
    noise = None
    if noise_cfg is not None:
        R = np.asarray(noise_cfg["sqrt_information"], dtype=np.float64)
        noise = GaussianNoise(sqrt_information=_to_float_matrix(R, R.shape), kind=str(noise_cfg.get("kind", "gaussian")))

    degenerate = data.get("degenerate", {})
    return TriangulationFactor(
        camera_from_dict(data["camera"]),
        _to_float_matrix(data["measured"], (2,)),
        noise,
        int(data["key"]),
        rethrow_degenerate=bool(degenerate.get("rethrow", False)),
        log_degenerate=bool(degenerate.get("log", False)),
    )
