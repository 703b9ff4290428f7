"""
exceptions.py
~~~~~~~~~~~~~

Error types raised by the network core and the model codec.
"""


class NetworkError(Exception):
    """Base class for all errors raised by the neuralnet package."""


class DimensionMismatch(NetworkError, ValueError):
    """Shapes of vectors, matrices or layers do not fit together."""


class InvalidConfiguration(NetworkError, ValueError):
    """
    A network or layer was described incorrectly.

    Raised for unknown activation names, fewer than two layers, an input
    layer whose activation is not ``"none"``, or a non-positive learning rate.
    """


class ModelFormatError(NetworkError, ValueError):
    """A persisted model text could not be parsed."""
