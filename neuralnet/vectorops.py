"""
vectorops.py
~~~~~~~~~~~~

Dense vector and matrix operations used by the layers and the network.

Vectors are 1-D numpy arrays, matrices are 2-D row-major numpy arrays.
Every operation keeps the element type of its inputs, so a network built
on ``float32`` stays in ``float32`` all the way through.
"""

from typing import Callable, Sequence, Tuple, Union

import numpy as np

from neuralnet.exceptions import DimensionMismatch

ArrayLike = Union[np.ndarray, Sequence]
RandomSource = Union[None, int, np.random.Generator]


def _generator(rng: RandomSource) -> np.random.Generator:
    if isinstance(rng, np.random.Generator):
        return rng
    return np.random.default_rng(rng)


def as_vector(v: ArrayLike, dtype=None) -> np.ndarray:
    """
    Coerce a sequence or array into a 1-D numpy array.

    Raises:
        DimensionMismatch: If ``v`` is not one-dimensional
    """
    vector = np.asarray(v, dtype=dtype)
    if vector.ndim != 1:
        raise DimensionMismatch(
            f"Expected a vector, got an array with shape {vector.shape}"
        )
    return vector


def as_matrix(a: ArrayLike, dtype=None) -> np.ndarray:
    """
    Coerce nested sequences or an array into a 2-D numpy array.

    Ragged input (rows of unequal length) is rejected rather than being
    turned into an object array.

    Raises:
        DimensionMismatch: If ``a`` is ragged or not two-dimensional
    """
    if not isinstance(a, np.ndarray):
        rows = list(a)
        widths = {len(row) for row in rows if hasattr(row, '__len__')}
        if len(widths) > 1:
            raise DimensionMismatch(
                f"Matrix rows have inconsistent lengths: {sorted(widths)}"
            )
        a = rows
    matrix = np.asarray(a, dtype=dtype)
    if matrix.ndim != 2:
        raise DimensionMismatch(
            f"Expected a matrix, got an array with shape {matrix.shape}"
        )
    return matrix


def uniform_random_init(
    out: np.ndarray,
    shape: Tuple[int, int],
    low: float,
    high: float,
    rng: RandomSource = None
) -> np.ndarray:
    """
    Fill ``out`` in place with independent draws from U[low, high].

    Keep the bounds narrow (magnitude around 0.5). Wide bounds push sigmoid
    and tanh units straight into saturation, where the network stops
    learning.

    Args:
        out: Matrix to fill, must already have ``shape``
        shape: (rows, cols) of the matrix
        low: Lower bound of the distribution
        high: Upper bound of the distribution
        rng: numpy Generator or seed

    Returns:
        np.ndarray: ``out``, for chaining

    Raises:
        DimensionMismatch: If ``out`` does not have ``shape``
    """
    if out.shape != tuple(shape):
        raise DimensionMismatch(
            f"Cannot fill matrix of shape {out.shape} as {tuple(shape)}"
        )
    out[...] = _generator(rng).uniform(low, high, size=shape)
    return out


def unit_matrix_init(out: np.ndarray, shape: Tuple[int, int]) -> np.ndarray:
    """
    Fill ``out`` in place with the identity pattern.

    Ones on the diagonal and zeros elsewhere; non-square shapes get a
    partial diagonal.
    """
    if out.shape != tuple(shape):
        raise DimensionMismatch(
            f"Cannot fill matrix of shape {out.shape} as {tuple(shape)}"
        )
    out[...] = np.eye(shape[0], shape[1], dtype=out.dtype)
    return out


def matrix_vector_multiply(a: ArrayLike, v: ArrayLike) -> np.ndarray:
    """
    Dense matrix-vector product ``a · v``.

    Raises:
        DimensionMismatch: If ``a`` is empty or its column count differs
            from the length of ``v``
    """
    a = as_matrix(a)
    v = as_vector(v, dtype=a.dtype)
    if a.size == 0 or a.shape[1] != v.shape[0]:
        raise DimensionMismatch(
            f"Matrix of shape {a.shape} cannot multiply vector of "
            f"length {v.shape[0]}"
        )
    return a @ v


def transpose(a: ArrayLike) -> np.ndarray:
    """Return a new matrix with rows and columns swapped."""
    return np.ascontiguousarray(as_matrix(a).T)


def scalar_multiply(scalar: float, a: ArrayLike) -> np.ndarray:
    """Multiply every element of ``a`` by ``scalar``."""
    a = as_matrix(a)
    return a * a.dtype.type(scalar)


def matrix_add(a: ArrayLike, b: ArrayLike) -> np.ndarray:
    """
    Elementwise sum of two matrices.

    Raises:
        DimensionMismatch: If the shapes differ
    """
    a = as_matrix(a)
    b = as_matrix(b, dtype=a.dtype)
    if a.shape != b.shape:
        raise DimensionMismatch(
            f"Cannot add matrices of shape {a.shape} and {b.shape}"
        )
    return a + b


def subtract_vectors(a: ArrayLike, b: ArrayLike) -> np.ndarray:
    """
    Elementwise difference ``a - b``.

    Raises:
        DimensionMismatch: If the lengths differ
    """
    a = as_vector(a)
    b = as_vector(b, dtype=a.dtype)
    if a.shape != b.shape:
        raise DimensionMismatch(
            f"Cannot subtract vector of length {b.shape[0]} from "
            f"vector of length {a.shape[0]}"
        )
    return a - b


def apply_elementwise(
    v: np.ndarray,
    func: Callable[[np.ndarray], np.ndarray]
) -> np.ndarray:
    """
    Map ``func`` over every element of ``v`` in place.

    ``func`` is applied to the whole array, so it must be numpy-aware
    (every ``Activation`` is).
    """
    v[...] = func(v)
    return v
