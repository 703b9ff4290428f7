"""
layer.py
~~~~~~~~

A single fully-connected layer: one weight matrix plus one activation.
"""

from typing import Tuple

import numpy as np

from neuralnet import vectorops
from neuralnet.activations import Activation, UpdateRule
from neuralnet.exceptions import DimensionMismatch, InvalidConfiguration

# Initial weights are drawn from U[-INIT_BOUND, INIT_BOUND]. Larger bounds
# saturate sigmoid/tanh units and the network never learns.
INIT_BOUND = 0.5


class Layer:
    """
    One stage of the network.

    The weight matrix has shape ``(neuron_count, input_width)``: row ``k``
    holds the incoming weights of output unit ``k``.
    """

    def __init__(
        self,
        neuron_count: int,
        activation_name: str,
        shape: Tuple[int, int],
        random_init: bool = True,
        dtype=np.float64,
        rng=None
    ):
        """
        Create a layer and initialize its weights.

        Args:
            neuron_count: Number of output units
            activation_name: ``"none"``, ``"sigmoid"``, ``"relu"`` or ``"tanh"``
            shape: (rows, cols) of the weight matrix; rows must equal
                ``neuron_count``
            random_init: Uniform random weights if True, unit matrix if False
                (used for the input layer)
            dtype: Element type of the weights
            rng: numpy Generator or seed for the random initialization

        Raises:
            InvalidConfiguration: On an unknown activation name, a
                non-positive neuron count, or a shape that does not match
        """
        if not isinstance(neuron_count, (int, np.integer)) or neuron_count < 1:
            raise InvalidConfiguration(
                f"Neuron count must be a positive integer, got {neuron_count!r}"
            )
        rows, cols = shape
        if rows != neuron_count or cols < 1:
            raise InvalidConfiguration(
                f"Weight shape {tuple(shape)} does not fit a layer of "
                f"{neuron_count} neurons"
            )

        self._neurons = int(neuron_count)
        self._activation = Activation.from_name(activation_name)
        self._weights = np.empty((rows, cols), dtype=dtype)

        if random_init:
            vectorops.uniform_random_init(
                self._weights, (rows, cols), -INIT_BOUND, INIT_BOUND, rng
            )
        else:
            vectorops.unit_matrix_init(self._weights, (rows, cols))

    def __repr__(self) -> str:
        return (
            f"Layer(neurons={self._neurons}, "
            f"activation={self.activation_name!r}, "
            f"shape={self._weights.shape})"
        )

    @property
    def neuron_count(self) -> int:
        return self._neurons

    @property
    def activation(self) -> Activation:
        return self._activation

    @property
    def activation_name(self) -> str:
        return self._activation.value

    @property
    def activation_function(self):
        """The bound unary activation function."""
        return self._activation.evaluate

    @property
    def input_width(self) -> int:
        return self._weights.shape[1]

    @property
    def dtype(self):
        return self._weights.dtype

    @property
    def weights(self) -> np.ndarray:
        return self._weights

    @weights.setter
    def weights(self, weights) -> None:
        """Replace the weights; the shape must stay the same."""
        weights = vectorops.as_matrix(weights, dtype=self._weights.dtype)
        if weights.shape != self._weights.shape:
            raise DimensionMismatch(
                f"Weights of shape {weights.shape} do not fit layer with "
                f"shape {self._weights.shape}"
            )
        self._weights = np.ascontiguousarray(weights)

    def update_weights(
        self,
        error,
        output,
        previous_output,
        learning_rate: float,
        update_rule=UpdateRule.SIGMOID
    ) -> None:
        """
        Apply the delta rule to this layer's weights in place.

            dw[k][j] = lr * error[k] * d(output[k]) * previous_output[j]

        With ``UpdateRule.SIGMOID`` the derivative term is
        ``output * (1 - output)`` whatever the layer's activation is.

        Args:
            error: Error signal of this layer, length ``neuron_count``
            output: This layer's output from the forward pass
            previous_output: Output of the layer feeding this one
            learning_rate: Step size
            update_rule: Which derivative term to use, an ``UpdateRule``
                or its name

        Raises:
            DimensionMismatch: If any vector has the wrong length
        """
        dtype = self._weights.dtype
        error = vectorops.as_vector(error, dtype=dtype)
        output = vectorops.as_vector(output, dtype=dtype)
        previous_output = vectorops.as_vector(previous_output, dtype=dtype)

        if (error.shape[0] != self._neurons
                or output.shape[0] != self._neurons
                or previous_output.shape[0] != self.input_width):
            raise DimensionMismatch(
                f"Dimensions do not fit to update the weights: "
                f"error={error.shape[0]}, output={output.shape[0]}, "
                f"previous_output={previous_output.shape[0]}, "
                f"weights={self._weights.shape}"
            )

        update_rule = UpdateRule.from_name(update_rule)
        delta = error * update_rule.derivative(self._activation, output)
        self._weights += dtype.type(learning_rate) * np.outer(delta, previous_output)
