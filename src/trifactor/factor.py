from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Callable, Protocol, runtime_checkable

import numpy as np

from trifactor.config import ConfigurationError, FactorSettings
from trifactor.core.camera import BehindCamera, CheiralityError, PinholeCamera
from trifactor.core.linear import JacobianFactor, VerticalBlockMatrix
from trifactor.core.noise import GaussianNoise
from trifactor.core.values import ValueStore, format_key

logger = logging.getLogger(__name__)

MEASUREMENT_DIM = 2
POINT_DIM = 3


@runtime_checkable
class Residual(Protocol):
    def evaluate(self, point: np.ndarray, want_jacobian: bool = False) -> tuple[np.ndarray, np.ndarray | None]: ...

    def linearize(self, values: ValueStore) -> JacobianFactor | None: ...

    def clone(self) -> "Residual": ...

    def equals(self, other: object, tol: float = 1e-9) -> bool: ...

    def describe(self, label: str = "") -> str: ...


@dataclass
class LinearizationWorkspace:
    """
    Scratch storage reused by successive `linearize` calls.

    Shapes are fixed at allocation. Not safe to share between threads: give each
    worker its own workspace (or its own factor clone).
    """

    A: np.ndarray  # (2,3)
    b: np.ndarray  # (2,)
    Ab: VerticalBlockMatrix  # blocks [3, 1], 2 rows

    @classmethod
    def allocate(cls) -> "LinearizationWorkspace":
        return cls(
            A=np.zeros((MEASUREMENT_DIM, POINT_DIM), dtype=np.float64),
            b=np.zeros((MEASUREMENT_DIM,), dtype=np.float64),
            Ab=VerticalBlockMatrix([POINT_DIM], MEASUREMENT_DIM, append_one_dimension=True),
        )


class TriangulationFactor:
    """
    Unary reprojection factor on an unknown 3D point seen by a known camera.

    error(p) = project(p) - measured

    If the point lands behind the camera the factor does not fail by default: the
    Jacobian is zeroed and a constant residual of 2*fx is returned per component.
    `rethrow_degenerate` turns that into a `CheiralityError`, `log_degenerate`
    emits a warning naming the landmark.
    """

    def __init__(
        self,
        camera: PinholeCamera,
        measured: np.ndarray,
        noise_model: GaussianNoise | None,
        key: int,
        rethrow_degenerate: bool = False,
        log_degenerate: bool = False,
        active: Callable[[ValueStore], bool] | None = None,
    ) -> None:
        if noise_model is not None and noise_model.dim != MEASUREMENT_DIM:
            raise ConfigurationError("TriangulationFactor must be created with a 2-dimensional noise model")
        z = np.array(measured, dtype=np.float64).reshape(-1)
        if z.size != MEASUREMENT_DIM:
            raise ConfigurationError("measured must be a 2D pixel")
        z.setflags(write=False)

        self._camera = copy.deepcopy(camera)
        self._measured = z
        self._noise_model = noise_model
        self._key = int(key)
        self._rethrow_degenerate = bool(rethrow_degenerate)
        self._log_degenerate = bool(log_degenerate)
        self._active = active
        self._workspace: LinearizationWorkspace | None = None

    @classmethod
    def from_settings(
        cls,
        camera: PinholeCamera,
        measured: np.ndarray,
        key: int,
        settings: FactorSettings,
        active: Callable[[ValueStore], bool] | None = None,
    ) -> "TriangulationFactor":
        return cls(
            camera,
            measured,
            settings.noise,
            key,
            rethrow_degenerate=settings.policy.rethrow,
            log_degenerate=settings.policy.log,
            active=active,
        )

    @property
    def camera(self) -> PinholeCamera:
        return self._camera

    @property
    def measured(self) -> np.ndarray:
        return self._measured

    @property
    def noise_model(self) -> GaussianNoise | None:
        return self._noise_model

    @property
    def key(self) -> int:
        return self._key

    @property
    def keys(self) -> tuple[int, ...]:
        return (self._key,)

    @property
    def dim(self) -> int:
        return MEASUREMENT_DIM

    @property
    def rethrow_degenerate(self) -> bool:
        return self._rethrow_degenerate

    @property
    def log_degenerate(self) -> bool:
        return self._log_degenerate

    @property
    def workspace(self) -> LinearizationWorkspace | None:
        return self._workspace

    def is_active(self, values: ValueStore) -> bool:
        return True if self._active is None else bool(self._active(values))

    def _fallback_error(self) -> np.ndarray:
        return np.full((MEASUREMENT_DIM,), 2.0 * self._camera.calibration.focal_scale, dtype=np.float64)

    def _on_behind_camera(self, result: BehindCamera) -> None:
        if self._log_degenerate:
            logger.warning("Cheirality Exception: landmark %s moved behind camera (depth=%.6g)", format_key(self._key), result.depth)
        if self._rethrow_degenerate:
            raise CheiralityError(format_key(self._key), result.depth)

    def evaluate(self, point: np.ndarray, want_jacobian: bool = False) -> tuple[np.ndarray, np.ndarray | None]:
        """
        Reprojection error h(p) - z and, on request, H = dh/dp (2x3).
        """
        result = self._camera.project(point, want_jacobian)
        if isinstance(result, BehindCamera):
            H = np.zeros((MEASUREMENT_DIM, POINT_DIM), dtype=np.float64) if want_jacobian else None
            self._on_behind_camera(result)
            return self._fallback_error(), H
        return result.uv - self._measured, result.H_point

    def unwhitened_error(self, values: ValueStore) -> np.ndarray:
        e, _ = self.evaluate(values.at(self._key))
        return e

    def whitened_error(self, values: ValueStore) -> np.ndarray:
        e = self.unwhitened_error(values)
        return e if self._noise_model is None else self._noise_model.whiten(e)

    def error(self, values: ValueStore) -> float:
        """0.5 * squared whitened error; 0 for an inactive factor."""
        if not self.is_active(values):
            return 0.0
        w = self.whitened_error(values)
        return 0.5 * float(w @ w)

    def linearize(self, values: ValueStore, workspace: LinearizationWorkspace | None = None) -> JacobianFactor | None:
        """
        Linearize to a JacobianFactor: A dp - b ~ h(p + dp) - z, so b = -(h(p) - z).

        Constrained noise models are not supported.
        """
        if not self.is_active(values):
            return None

        if workspace is None:
            if self._workspace is None:
                self._workspace = LinearizationWorkspace.allocate()
            workspace = self._workspace
        A, b, Ab = workspace.A, workspace.b, workspace.Ab

        point = values.at(self._key)
        result = self._camera.project(point, want_jacobian=True)
        if isinstance(result, BehindCamera):
            self._on_behind_camera(result)
            A[...] = 0.0
            b[...] = -self._fallback_error()
        else:
            A[...] = result.H_point
            b[...] = self._measured - result.uv

        if self._noise_model is not None:
            self._noise_model.whiten_system(A, b)

        Ab[0] = A
        Ab[1] = b
        return JacobianFactor(self.keys, Ab)

    def clone(self) -> "TriangulationFactor":
        return TriangulationFactor(
            self._camera,
            self._measured.copy(),
            self._noise_model,
            self._key,
            rethrow_degenerate=self._rethrow_degenerate,
            log_degenerate=self._log_degenerate,
            active=self._active,
        )

    def equals(self, other: object, tol: float = 1e-9) -> bool:
        if not isinstance(other, TriangulationFactor):
            return False
        if (self._noise_model is None) != (other._noise_model is None):
            return False
        if self._noise_model is not None and not self._noise_model.equals(other._noise_model, tol):
            return False
        return (
            self.keys == other.keys
            and self._camera.equals(other._camera, tol)
            and bool(np.allclose(self._measured, other._measured, rtol=0.0, atol=tol))
        )

    def describe(self, label: str = "") -> str:
        z = np.array2string(self._measured, precision=6, separator=", ")
        noise = "unit (none)" if self._noise_model is None else self._noise_model.describe()
        return (
            f"{label}TriangulationFactor,{self._camera.describe('camera')}\n"
            f"z: {z}\n"
            f"keys = {{ {format_key(self._key)} }}\n"
            f"noise model: {noise}"
        )

    def __str__(self) -> str:
        return self.describe()
