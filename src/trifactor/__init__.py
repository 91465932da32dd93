from trifactor import config
from trifactor.config import ConfigurationError, DegeneracyPolicy, FactorSettings, parse_factor_settings
from trifactor.core.calibration import Cal3DS2, Cal3S2
from trifactor.core.camera import BehindCamera, CheiralityError, PinholeCamera, Projection
from trifactor.core.distortion import BrownDistortion
from trifactor.core.geometry import Pose3
from trifactor.core.linear import JacobianFactor, VerticalBlockMatrix
from trifactor.core.noise import GaussianNoise
from trifactor.core.values import Values, ValuesKeyError, format_key, symbol
from trifactor.factor import LinearizationWorkspace, TriangulationFactor
from trifactor.serialization import factor_from_dict, factor_to_dict

__all__ = [
    "config",
    "ConfigurationError",
    "DegeneracyPolicy",
    "FactorSettings",
    "parse_factor_settings",
    "Cal3S2",
    "Cal3DS2",
    "BrownDistortion",
    "Pose3",
    "PinholeCamera",
    "Projection",
    "BehindCamera",
    "CheiralityError",
    "GaussianNoise",
    "Values",
    "ValuesKeyError",
    "symbol",
    "format_key",
    "VerticalBlockMatrix",
    "JacobianFactor",
    "LinearizationWorkspace",
    "TriangulationFactor",
    "factor_to_dict",
    "factor_from_dict",
]
