"""
neuralnet package
~~~~~~~~~~~~~~~~~

Fully-connected feedforward neural network trained by backpropagation.
Contains the dense vector operations, activation functions, layer and
network implementation, MNIST CSV loading, model persistence, and API server.
"""

from neuralnet.activations import Activation, UpdateRule
from neuralnet.exceptions import (
    DimensionMismatch,
    InvalidConfiguration,
    ModelFormatError,
    NetworkError,
)
from neuralnet.layer import Layer
from neuralnet.network import Network

__version__ = "1.0.0"

__all__ = [
    "Activation",
    "UpdateRule",
    "Layer",
    "Network",
    "NetworkError",
    "DimensionMismatch",
    "InvalidConfiguration",
    "ModelFormatError",
]
