"""
network.py
~~~~~~~~~~

A fully-connected feedforward network trained online by backpropagation.

The first layer is always an identity pass-through that fixes the expected
input width; every following layer is trainable. Training works on one
example at a time: a forward pass, error propagation back through the
transposed weights, then a delta-rule update of every trainable layer.
"""

import logging
import numbers
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from neuralnet import vectorops
from neuralnet.activations import Activation, UpdateRule
from neuralnet.exceptions import DimensionMismatch, InvalidConfiguration
from neuralnet.layer import Layer

logger = logging.getLogger(__name__)

# How often fit() hands control back to the caller's yield function
YIELD_EVERY = 100


class Network:
    """
    Ordered stack of layers plus a learning rate.

    Example:
        >>> net = Network([(784, "none"), (100, "sigmoid"), (10, "sigmoid")], 0.3)
        >>> net.train(image, target)
        >>> digit = net.predict(image)
    """

    def __init__(
        self,
        shape: Sequence[Tuple[int, str]],
        learning_rate: float,
        dtype=np.float64,
        update_rule='sigmoid',
        rng=None
    ):
        """
        Build a network with randomly initialized trainable layers.

        Args:
            shape: ``(neuron_count, activation_name)`` per layer; the first
                entry is the input layer and must use ``"none"``
            learning_rate: Step size of the weight update, must be > 0
            dtype: ``np.float32`` or ``np.float64``
            update_rule: ``"sigmoid"`` (default) or ``"activation"``, see
                ``UpdateRule``
            rng: numpy Generator or seed for weight initialization

        Raises:
            InvalidConfiguration: If fewer than two layers are given, the
                input layer has an activation, an activation name is
                unknown, or the learning rate is not positive
        """
        shape = [tuple(entry) for entry in shape]
        if len(shape) < 2:
            raise InvalidConfiguration(
                f"At least two layers are needed, got {len(shape)}"
            )
        if Activation.from_name(shape[0][1]) is not Activation.IDENTITY:
            raise InvalidConfiguration(
                f"First layer must have no activation, got {shape[0][1]!r}"
            )

        generator = rng if isinstance(rng, np.random.Generator) \
            else np.random.default_rng(rng)

        input_neurons = shape[0][0]
        layers = [
            Layer(input_neurons, shape[0][1], (input_neurons, input_neurons),
                  random_init=False, dtype=dtype)
        ]
        for (neurons, activation), (previous, _) in zip(shape[1:], shape[:-1]):
            layers.append(
                Layer(neurons, activation, (neurons, previous),
                      random_init=True, dtype=dtype, rng=generator)
            )

        self._setup(layers, learning_rate, update_rule)
        logger.info(
            f"Created network {self.shape} with learning rate "
            f"{self._learning_rate}, dtype={self.dtype.name}, "
            f"update rule '{self._update_rule.value}'"
        )

    @classmethod
    def from_layers(
        cls,
        layers: Sequence[Layer],
        learning_rate: float,
        update_rule='sigmoid'
    ) -> 'Network':
        """
        Assemble a network from already-built layers.

        Used when restoring a persisted model, where every weight is known.

        Raises:
            InvalidConfiguration: On too few layers or a bad input layer
            DimensionMismatch: If consecutive layers do not chain
        """
        layers = list(layers)
        if len(layers) < 2:
            raise InvalidConfiguration(
                f"At least two layers are needed, got {len(layers)}"
            )
        if layers[0].activation is not Activation.IDENTITY:
            raise InvalidConfiguration(
                f"First layer must have no activation, got "
                f"{layers[0].activation_name!r}"
            )
        if layers[0].input_width != layers[0].neuron_count:
            raise DimensionMismatch(
                f"Input layer weights must be square, got "
                f"{layers[0].weights.shape}"
            )
        for index in range(1, len(layers)):
            if layers[index].input_width != layers[index - 1].neuron_count:
                raise DimensionMismatch(
                    f"Layer {index} expects {layers[index].input_width} "
                    f"inputs but layer {index - 1} has "
                    f"{layers[index - 1].neuron_count} neurons"
                )

        network = cls.__new__(cls)
        network._setup(layers, learning_rate, update_rule)
        return network

    def _setup(self, layers: List[Layer], learning_rate, update_rule) -> None:
        if not learning_rate > 0:
            raise InvalidConfiguration(
                f"Learning rate must be positive, got {learning_rate!r}"
            )
        self._layers = layers
        self._dtype = layers[0].dtype
        self._learning_rate = float(learning_rate)
        self._update_rule = UpdateRule.from_name(update_rule)

    def __repr__(self) -> str:
        return (
            f"Network(shape={self.shape}, "
            f"learning_rate={self._learning_rate})"
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def layers(self) -> Tuple[Layer, ...]:
        return tuple(self._layers)

    @property
    def shape(self) -> List[Tuple[int, str]]:
        """``(neuron_count, activation_name)`` for every layer."""
        return [(layer.neuron_count, layer.activation_name)
                for layer in self._layers]

    @property
    def sizes(self) -> List[int]:
        return [layer.neuron_count for layer in self._layers]

    @property
    def learning_rate(self) -> float:
        return self._learning_rate

    @property
    def dtype(self) -> np.dtype:
        return self._dtype

    @property
    def update_rule(self) -> UpdateRule:
        return self._update_rule

    # ------------------------------------------------------------------
    # Inference and training
    # ------------------------------------------------------------------

    def _check_input(self, input_vector) -> np.ndarray:
        input_vector = vectorops.as_vector(input_vector, dtype=self._dtype)
        expected = self._layers[0].neuron_count
        if input_vector.shape[0] != expected:
            raise DimensionMismatch(
                f"Input size {input_vector.shape[0]} does not match input "
                f"layer size {expected}"
            )
        return input_vector

    def query(self, input_vector) -> np.ndarray:
        """
        Run a forward pass and return the output of the last layer.

        Raises:
            DimensionMismatch: If the input length differs from the input
                layer's neuron count
        """
        output = self._check_input(input_vector)
        for layer in self._layers:
            output = vectorops.matrix_vector_multiply(layer.weights, output)
            vectorops.apply_elementwise(output, layer.activation_function)
        return output

    def predict(self, input_vector) -> int:
        """Index of the strongest output unit."""
        return int(np.argmax(self.query(input_vector)))

    def train(self, input_vector, target) -> np.ndarray:
        """
        Perform one online gradient step on a single example.

        Every error signal is computed before any weight changes, so a
        failing call leaves the network untouched.

        Args:
            input_vector: Input of length ``layers[0].neuron_count``
            target: Desired output of length ``layers[-1].neuron_count``

        Returns:
            np.ndarray: Output error ``target - output`` before the update

        Raises:
            DimensionMismatch: If input or target have the wrong length
        """
        input_vector = self._check_input(input_vector)
        target = vectorops.as_vector(target, dtype=self._dtype)
        expected = self._layers[-1].neuron_count
        if target.shape[0] != expected:
            raise DimensionMismatch(
                f"Target size {target.shape[0]} does not match output "
                f"layer size {expected}"
            )

        # The input layer is an identity pass-through, so start at layer 1
        outputs = []
        output = input_vector
        for layer in self._layers[1:]:
            output = vectorops.matrix_vector_multiply(layer.weights, output)
            vectorops.apply_elementwise(output, layer.activation_function)
            outputs.append(output)

        # Hidden errors are the next layer's error split back by its weights
        error = vectorops.subtract_vectors(target, outputs[-1])
        errors = [error]
        for index in range(len(self._layers) - 2, 0, -1):
            error = vectorops.matrix_vector_multiply(
                vectorops.transpose(self._layers[index + 1].weights), error
            )
            errors.append(error)
        errors.reverse()

        if len(outputs) != len(errors):
            raise DimensionMismatch(
                f"Got {len(outputs)} layer outputs but {len(errors)} errors"
            )

        for index in range(1, len(self._layers)):
            previous = input_vector if index == 1 else outputs[index - 2]
            self._layers[index].update_weights(
                errors[index - 1],
                outputs[index - 1],
                previous,
                self._learning_rate,
                self._update_rule
            )

        return errors[-1]

    def evaluate(self, test_data: Iterable[Tuple[Any, int]]) -> int:
        """
        Count the examples whose predicted index equals the label.

        Args:
            test_data: ``(input, label)`` pairs
        """
        return sum(
            int(self.predict(x) == int(label)) for x, label in test_data
        )

    def fit(
        self,
        training_data: Sequence[Tuple[Any, Any]],
        epochs: int = 1,
        test_data: Optional[Sequence[Tuple[Any, int]]] = None,
        callback: Optional[Callable[[Dict[str, Any]], None]] = None,
        yield_func: Optional[Callable[[], None]] = None
    ) -> None:
        """
        Train on every ``(input, target)`` pair in order, ``epochs`` times.

        Args:
            training_data: ``(input, target)`` pairs
            epochs: Number of passes over the data
            test_data: Optional ``(input, label)`` pairs evaluated after
                each epoch
            callback: Called after each epoch with a progress dictionary
            yield_func: Called every few examples so a cooperative
                scheduler can run other tasks
        """
        if (not isinstance(epochs, numbers.Integral) or isinstance(epochs, bool)
                or epochs < 1):
            raise InvalidConfiguration(
                f"epochs must be a positive integer, got {epochs!r}"
            )

        start = time.time()
        for epoch in range(1, epochs + 1):
            for count, (x, y) in enumerate(training_data, start=1):
                self.train(x, y)
                if yield_func is not None and count % YIELD_EVERY == 0:
                    yield_func()

            progress = {
                'epoch': epoch,
                'total_epochs': epochs,
                'elapsed_time': time.time() - start,
                'accuracy': None,
                'correct': None,
                'total': None
            }
            if test_data:
                correct = self.evaluate(test_data)
                progress.update(
                    correct=correct,
                    total=len(test_data),
                    accuracy=correct / len(test_data)
                )
                logger.info(
                    f"Epoch {epoch}/{epochs}: {correct} / {len(test_data)}"
                )
            else:
                logger.info(f"Epoch {epoch}/{epochs} complete")

            if callback is not None:
                callback(progress)
