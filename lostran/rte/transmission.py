"""
Layer transmission for propagation matrices.

The transmission of a homogeneous layer is T = exp(-r K) for a layer
length r and propagation matrix

    K = [[a,  b,  c,  d],
         [b,  a,  u,  v],
         [c, -u,  a,  w],
         [d, -v, -w,  a]]

truncated to the leading ns x ns block. The exponential is evaluated in
closed form. The diagonal part factors out as exp(-a r). The remaining
matrix M = -r (K - a I) satisfies a quartic characteristic equation with
eigenvalues ±x and ±iy, giving

    exp(M) = C0 I + C1 M + C2 M² + C3 M³

with coefficients depending only on x and y.
"""

from enum import IntEnum

import numpy as np
from numba import jit

# Below this value of x² + y², Taylor limits of the coefficients are used
_SMALL_EIGENVALUE = 1e-12

# Gauss-Legendre nodes for the derivative of the full case
_QUADRATURE_NODES = 12


class ExtinctionCase(IntEnum):
    """Structure of a propagation matrix."""
    DIAGONAL = 1
    BLOCK = 2
    FULL = 3


def extinction_case(k: np.ndarray) -> ExtinctionCase:
    """Classify a single ns x ns propagation matrix.

    Args:
        k: Propagation matrix

    Returns:
        DIAGONAL if all off-diagonal elements are zero, BLOCK if only the
        (0, 1) pair is non-zero, FULL otherwise
    """
    ns = k.shape[0]
    off = k - np.diag(np.diag(k))
    if not np.any(off):
        return ExtinctionCase.DIAGONAL
    off[0, 1] = off[1, 0] = 0.0
    if ns >= 2 and not np.any(off):
        return ExtinctionCase.BLOCK
    return ExtinctionCase.FULL


@jit(nopython=True, cache=True)
def _matmul4(x, y):
    out = np.zeros((4, 4))
    for i in range(4):
        for j in range(4):
            for k in range(4):
                out[i, j] += x[i, k] * y[k, j]
    return out


@jit(nopython=True, cache=True)
def _propagation_exp(k, r, out):
    """out = exp(-r k) for one ns x ns propagation matrix."""
    ns = k.shape[0]
    a = k[0, 0]
    ea = np.exp(-a * r)

    for i in range(ns):
        for j in range(ns):
            out[i, j] = 0.0
        out[i, i] = ea
    if ns == 1:
        return

    b = k[0, 1]
    c = 0.0
    d = 0.0
    u = 0.0
    v = 0.0
    w = 0.0
    if ns > 2:
        c = k[0, 2]
        u = k[1, 2]
    if ns > 3:
        d = k[0, 3]
        v = k[1, 3]
        w = k[2, 3]

    if b == 0.0 and c == 0.0 and d == 0.0 and u == 0.0 and v == 0.0 and w == 0.0:
        return

    if c == 0.0 and d == 0.0 and u == 0.0 and v == 0.0 and w == 0.0:
        # Only linear dichroism along the first axis
        br = b * r
        out[0, 0] = ea * np.cosh(br)
        out[1, 1] = out[0, 0]
        out[0, 1] = -ea * np.sinh(br)
        out[1, 0] = out[0, 1]
        return

    # Off-diagonal part of -r K, padded to 4 x 4
    m = np.zeros((4, 4))
    m[0, 1] = -r * b
    m[1, 0] = -r * b
    m[0, 2] = -r * c
    m[2, 0] = -r * c
    m[0, 3] = -r * d
    m[3, 0] = -r * d
    m[1, 2] = -r * u
    m[2, 1] = r * u
    m[1, 3] = -r * v
    m[3, 1] = r * v
    m[2, 3] = -r * w
    m[3, 2] = r * w

    bb = m[0, 1] * m[0, 1]
    cc = m[0, 2] * m[0, 2]
    dd = m[0, 3] * m[0, 3]
    uu = m[1, 2] * m[1, 2]
    vv = m[1, 3] * m[1, 3]
    ww = m[2, 3] * m[2, 3]

    p = bb + cc + dd - uu - vv - ww
    q = m[0, 1] * m[2, 3] - m[0, 2] * m[1, 3] + m[0, 3] * m[1, 2]
    q2 = q * q
    const1 = np.sqrt(p * p + 4.0 * q2)
    x = np.sqrt(max(0.5 * (p + const1), 0.0))
    y = np.sqrt(max(0.5 * (const1 - p), 0.0))
    x2 = x * x
    y2 = y * y
    x2y2 = x2 + y2

    if x2y2 < _SMALL_EIGENVALUE:
        c0 = 1.0
        c1 = 1.0
        c2 = 0.5
        c3 = 1.0 / 6.0
    else:
        cosh_x = np.cosh(x)
        cos_y = np.cos(y)
        sinh_x_x = np.sinh(x) / x if x > 0.0 else 1.0
        sin_y_y = np.sin(y) / y if y > 0.0 else 1.0
        inv = 1.0 / x2y2
        c0 = (y2 * cosh_x + x2 * cos_y) * inv
        c1 = (y2 * sinh_x_x + x2 * sin_y_y) * inv
        c2 = (cosh_x - cos_y) * inv
        c3 = (sinh_x_x - sin_y_y) * inv

    m2 = _matmul4(m, m)
    m3 = _matmul4(m2, m)
    for i in range(ns):
        for j in range(ns):
            val = c1 * m[i, j] + c2 * m2[i, j] + c3 * m3[i, j]
            if i == j:
                val += c0
            out[i, j] = ea * val


@jit(nopython=True, cache=True)
def _transmission_kernel(extinction, length, out):
    for f in range(extinction.shape[0]):
        _propagation_exp(extinction[f], length, out[f])


def layer_transmission(extinction: np.ndarray, length: float) -> np.ndarray:
    """Transmission matrices of a homogeneous layer.

    Args:
        extinction: Layer propagation matrices, shape (nf, ns, ns) [1/m]
        length: Layer length [m]

    Returns:
        Transmission matrices, shape (nf, ns, ns)
    """
    extinction = np.ascontiguousarray(extinction, dtype=np.float64)
    out = np.empty_like(extinction)
    _transmission_kernel(extinction, float(length), out)
    return out


def transmission_derivative(
    extinction: np.ndarray,
    d_extinction: np.ndarray,
    length: float,
    transmission: np.ndarray = None,
) -> np.ndarray:
    """Derivative of the layer transmission for a perturbed extinction.

    When the layer extinction and its perturbation commute (diagonal and
    block cases) the derivative is exactly ``-r dK T``. Otherwise the
    Frechet derivative of the matrix exponential,

        dT = ∫₀¹ exp(-s r K) (-r dK) exp(-(1-s) r K) ds,

    is integrated by Gauss-Legendre quadrature using the closed-form
    exponential.

    Args:
        extinction: Layer propagation matrices, shape (nf, ns, ns)
        d_extinction: Perturbation of the propagation matrices, same shape
        length: Layer length [m]
        transmission: Layer transmission if already computed

    Returns:
        dT, shape (nf, ns, ns)
    """
    extinction = np.ascontiguousarray(extinction, dtype=np.float64)
    d_extinction = np.asarray(d_extinction, dtype=np.float64)
    if transmission is None:
        transmission = layer_transmission(extinction, length)

    nodes, weights = np.polynomial.legendre.leggauss(_QUADRATURE_NODES)
    nodes = 0.5 * (nodes + 1.0)
    weights = 0.5 * weights

    out = np.empty_like(extinction)
    for f in range(extinction.shape[0]):
        e = -length * d_extinction[f]
        case = extinction_case(extinction[f])
        if case != ExtinctionCase.DIAGONAL:
            case = max(case, extinction_case(d_extinction[f]))
        if case != ExtinctionCase.FULL:
            out[f] = e @ transmission[f]
            continue

        acc = np.zeros_like(e)
        left = np.empty_like(e)
        right = np.empty_like(e)
        for s, wt in zip(nodes, weights):
            _propagation_exp(extinction[f], s * length, left)
            _propagation_exp(extinction[f], (1.0 - s) * length, right)
            acc += wt * (left @ e @ right)
        out[f] = acc
    return out
