"""
activations.py
~~~~~~~~~~~~~~

Activation functions and the weight-update derivative policy.

Each activation is a member of the closed ``Activation`` enum and is
looked up by the name used in network shapes and model files:
``"none"``, ``"sigmoid"``, ``"relu"`` and ``"tanh"``.
"""

from enum import Enum

import numpy as np

from neuralnet.exceptions import InvalidConfiguration


def identity(x):
    return np.asarray(x)


def sigmoid(x):
    """The sigmoid function 1 / (1 + e^-x)."""
    x = np.asarray(x)
    # exp overflows to inf for very negative x, which still gives 0
    with np.errstate(over='ignore'):
        return 1 / (1 + np.exp(-x))


def relu(x):
    """Rectified linear unit max(x, 0)."""
    x = np.asarray(x)
    return np.maximum(x, x.dtype.type(0))


def tanh(x):
    return np.tanh(x)


# Derivatives are written in terms of the activation's *output* y, which is
# what the training step has cached.

def identity_prime(y):
    return np.ones_like(y)


def sigmoid_prime(y):
    """Derivative of the sigmoid function: y * (1 - y)."""
    return y * (1 - y)


def relu_prime(y):
    y = np.asarray(y)
    return (y > 0).astype(y.dtype)


def tanh_prime(y):
    return 1 - y * y


class Activation(Enum):
    """Closed set of activation kinds a layer can be bound to."""

    IDENTITY = 'none'
    SIGMOID = 'sigmoid'
    RELU = 'relu'
    TANH = 'tanh'

    @classmethod
    def from_name(cls, name: str) -> 'Activation':
        """
        Resolve an activation from its name.

        Args:
            name: One of ``"none"``, ``"sigmoid"``, ``"relu"``, ``"tanh"``

        Returns:
            Activation: The matching member

        Raises:
            InvalidConfiguration: If the name is not recognised
        """
        if isinstance(name, cls):
            return name
        try:
            return cls(name)
        except ValueError:
            valid = ', '.join(repr(member.value) for member in cls)
            raise InvalidConfiguration(
                f"Invalid activation function {name!r}; expected one of {valid}"
            ) from None

    def evaluate(self, x):
        return _FUNCTIONS[self](x)

    def derivative_from_output(self, y):
        """Derivative of the activation, given its output ``y``."""
        return _DERIVATIVES[self](y)

    def __call__(self, x):
        return self.evaluate(x)


_FUNCTIONS = {
    Activation.IDENTITY: identity,
    Activation.SIGMOID: sigmoid,
    Activation.RELU: relu,
    Activation.TANH: tanh,
}

_DERIVATIVES = {
    Activation.IDENTITY: identity_prime,
    Activation.SIGMOID: sigmoid_prime,
    Activation.RELU: relu_prime,
    Activation.TANH: tanh_prime,
}


class UpdateRule(Enum):
    """
    Which derivative term the delta rule uses when updating weights.

    ``SIGMOID`` applies ``y * (1 - y)`` to every layer whatever its
    activation. This is the classic rule and the default; it is only
    correct for sigmoid layers. ``ACTIVATION`` uses each layer's own
    activation derivative instead.
    """

    SIGMOID = 'sigmoid'
    ACTIVATION = 'activation'

    @classmethod
    def from_name(cls, name) -> 'UpdateRule':
        if isinstance(name, cls):
            return name
        try:
            return cls(name)
        except ValueError:
            raise InvalidConfiguration(
                f"Invalid update rule {name!r}; expected 'sigmoid' or "
                f"'activation'"
            ) from None

    def derivative(self, activation: Activation, output):
        if self is UpdateRule.SIGMOID:
            return sigmoid_prime(output)
        return activation.derivative_from_output(output)
