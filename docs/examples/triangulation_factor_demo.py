"""
Triangulation factor demo.

It does:
1) build a few OpenCV-style cameras around a known landmark,
2) create one TriangulationFactor per (noisy) observation,
3) run a plain Gauss-Newton loop on the stacked JacobianFactors,
4) print the recovered landmark next to the ground truth.

The loop here stands in for a real optimizer; the factors only provide residuals
and whitened linear systems.
"""

from __future__ import annotations

import argparse
import logging

import numpy as np

from trifactor import GaussianNoise, PinholeCamera, TriangulationFactor, Values, symbol


def make_cameras(n: int) -> list[PinholeCamera]:
    K = np.array([[800.0, 0.0, 320.0], [0.0, 800.0, 240.0], [0.0, 0.0, 1.0]])
    cams = []
    for i in range(n):
        rvec = np.array([0.0, 0.15 * (i - n / 2), 0.0])
        tvec = np.array([0.3 * (i - n / 2), 0.0, 4.0])
        cams.append(PinholeCamera.from_opencv(K, None, rvec, tvec))
    return cams


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--cameras", type=int, default=4)
    ap.add_argument("--sigma-px", type=float, default=0.5)
    ap.add_argument("--iters", type=int, default=10)
    ap.add_argument("--seed", type=int, default=0)
    args = ap.parse_args()

    logging.basicConfig(level=logging.INFO, format="[%(levelname)s][%(name)s] %(message)s")

    rng = np.random.default_rng(args.seed)
    key = symbol("l", 0)
    truth = np.array([0.2, -0.1, 0.5])
    noise = GaussianNoise.isotropic(2, args.sigma_px)

    factors = []
    for cam in make_cameras(args.cameras):
        uv = cam.project(truth).uv + rng.normal(scale=args.sigma_px, size=2)
        factors.append(TriangulationFactor(cam, uv, noise, key, log_degenerate=True))

    estimate = truth + np.array([0.3, 0.2, -0.4])
    for it in range(args.iters):
        values = Values({key: estimate})
        linear = [f.linearize(values) for f in factors]
        A = np.vstack([jf.get_a(key) for jf in linear if jf is not None])
        b = np.concatenate([jf.b for jf in linear if jf is not None])
        delta, *_ = np.linalg.lstsq(A, b, rcond=None)
        estimate = estimate + delta
        cost = sum(f.error(Values({key: estimate})) for f in factors)
        print(f"iter {it}: cost={cost:.6g} |delta|={np.linalg.norm(delta):.3g}")
        if np.linalg.norm(delta) < 1e-10:
            break

    print("truth   ", truth)
    print("estimate", estimate)


if __name__ == "__main__":
    main()
