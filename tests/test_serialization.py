import json

import numpy as np
import pytest

from trifactor.config import ConfigurationError
from trifactor.core.calibration import Cal3DS2, Cal3S2
from trifactor.core.camera import PinholeCamera
from trifactor.core.distortion import BrownDistortion
from trifactor.core.geometry import Pose3
from trifactor.core.noise import GaussianNoise
from trifactor.core.values import symbol
from trifactor.factor import TriangulationFactor
from trifactor.serialization import factor_from_dict, factor_to_dict


def test_factor_dict_survives_json():
    cam = PinholeCamera(
        pose=Pose3.from_rotvec([0.1, 0.0, -0.1], [1.0, 2.0, 3.0]),
        calibration=Cal3DS2(fx=500.0, fy=510.0, s=0.1, u0=320.0, v0=240.0, distortion=BrownDistortion(k1=-0.05, p2=1e-4)),
    )
    f = TriangulationFactor(
        cam,
        [12.5, 40.0],
        GaussianNoise.from_covariance(np.array([[2.0, 0.5], [0.5, 1.0]])),
        symbol("l", 9),
        rethrow_degenerate=True,
    )
    data = json.loads(json.dumps(factor_to_dict(f)))
    assert data["schema_version"] == "trifactor.factor.triangulation.v0"
    g = factor_from_dict(data)
    assert g.equals(f)
    assert g.rethrow_degenerate and not g.log_degenerate
    assert isinstance(g.camera.calibration, Cal3DS2)


def test_factor_without_noise_model():
    cam = PinholeCamera(pose=Pose3.identity(), calibration=Cal3S2(fx=1.0, fy=1.0))
    data = factor_to_dict(TriangulationFactor(cam, [0.0, 0.0], None, 3))
    assert data["noise"] is None
    g = factor_from_dict(data)
    assert g.noise_model is None
    assert isinstance(g.camera.calibration, Cal3S2) and not isinstance(g.camera.calibration, Cal3DS2)


def test_factor_from_dict_rejects_bad_input():
    cam = PinholeCamera(pose=Pose3.identity(), calibration=Cal3S2(fx=1.0, fy=1.0))
    data = factor_to_dict(TriangulationFactor(cam, [0.0, 0.0], None, 3))
    with pytest.raises(ValueError):
        factor_from_dict({**data, "schema_version": "nope"})
    with pytest.raises(ValueError):
        factor_from_dict({**data, "measured": [float("nan"), 0.0]})


def test_factor_from_dict_rejects_singular_noise():
    cam = PinholeCamera(pose=Pose3.identity(), calibration=Cal3S2(fx=1.0, fy=1.0))
    data = factor_to_dict(TriangulationFactor(cam, [0.0, 0.0], GaussianNoise.unit(2), 3))
    data["noise"]["sqrt_information"] = [[0.0, 0.0], [0.0, 0.0]]
    with pytest.raises(ConfigurationError):
        factor_from_dict(data)
