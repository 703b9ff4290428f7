"""
test_activations.py
~~~~~~~~~~~~~~~~~~~

Unit tests for activation functions and the update rule policy.
"""

import math
import os
import sys

import numpy as np
import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from neuralnet.activations import Activation, UpdateRule
from neuralnet.exceptions import InvalidConfiguration


@pytest.mark.unit
class TestActivationLookup:
    """Test resolving activations by name."""

    @pytest.mark.parametrize("name, member", [
        ("none", Activation.IDENTITY),
        ("sigmoid", Activation.SIGMOID),
        ("relu", Activation.RELU),
        ("tanh", Activation.TANH),
    ])
    def test_known_names(self, name, member):
        """Test that each recognised name maps to its member."""
        assert Activation.from_name(name) is member

    @pytest.mark.parametrize("name", ["softmax", "Sigmoid", "", "identity"])
    def test_unknown_name(self, name):
        """Test that unrecognised names are a configuration error."""
        with pytest.raises(InvalidConfiguration):
            Activation.from_name(name)

    def test_member_passes_through(self):
        """Test that an Activation member is accepted as-is."""
        assert Activation.from_name(Activation.TANH) is Activation.TANH


@pytest.mark.unit
class TestActivationValues:
    """Test the scalar transforms."""

    def test_identity(self):
        """Test that identity returns its input."""
        assert np.array_equal(Activation.IDENTITY([-2.0, 3.5]), [-2.0, 3.5])

    def test_sigmoid_zero(self):
        """Test that sigmoid(0) is 0.5."""
        assert Activation.SIGMOID(0.0) == pytest.approx(0.5)

    def test_sigmoid_matches_formula(self):
        """Test sigmoid against 1 / (1 + e^-x)."""
        assert Activation.SIGMOID(1.3) == pytest.approx(1 / (1 + math.exp(-1.3)))

    def test_sigmoid_large_negative(self):
        """Test that very negative inputs give 0 rather than an error."""
        assert Activation.SIGMOID(np.array([-1000.0]))[0] == pytest.approx(0.0)

    def test_relu(self):
        """Test that relu clips negatives to zero."""
        assert np.array_equal(Activation.RELU(np.array([-1.0, 0.0, 2.5])),
                              [0.0, 0.0, 2.5])

    def test_tanh(self):
        """Test tanh against math.tanh."""
        assert Activation.TANH(0.7) == pytest.approx(math.tanh(0.7))

    def test_tanh_large_input(self):
        """Test that tanh saturates to 1 instead of overflowing."""
        assert Activation.TANH(np.array([800.0]))[0] == pytest.approx(1.0)

    def test_float32_preserved(self):
        """Test that float32 input gives float32 output."""
        x = np.array([0.1, -0.2], dtype=np.float32)
        for activation in Activation:
            assert activation(x).dtype == np.float32


@pytest.mark.unit
class TestDerivatives:
    """Test derivatives expressed in terms of the output."""

    def test_sigmoid_derivative(self):
        """Test y * (1 - y)."""
        assert Activation.SIGMOID.derivative_from_output(0.25) == pytest.approx(0.1875)

    def test_tanh_derivative(self):
        """Test 1 - y^2."""
        assert Activation.TANH.derivative_from_output(0.5) == pytest.approx(0.75)

    def test_relu_derivative(self):
        """Test that the relu derivative is 1 for active units only."""
        y = np.array([0.0, 3.0])
        assert np.array_equal(Activation.RELU.derivative_from_output(y), [0.0, 1.0])

    def test_identity_derivative(self):
        """Test that the identity derivative is 1."""
        y = np.array([5.0, -2.0])
        assert np.array_equal(Activation.IDENTITY.derivative_from_output(y), [1.0, 1.0])


@pytest.mark.unit
class TestUpdateRule:
    """Test the update rule policy."""

    def test_sigmoid_rule_ignores_activation(self):
        """Test that the sigmoid rule uses y(1 - y) for every activation."""
        y = np.array([0.5, 2.0])
        for activation in Activation:
            assert np.allclose(
                UpdateRule.SIGMOID.derivative(activation, y), [0.25, -2.0]
            )

    def test_activation_rule_uses_own_derivative(self):
        """Test that the activation rule defers to the activation."""
        y = np.array([0.5, 2.0])
        assert np.allclose(
            UpdateRule.ACTIVATION.derivative(Activation.RELU, y), [1.0, 1.0]
        )

    def test_from_name(self):
        """Test lookup of update rules by name."""
        assert UpdateRule.from_name("activation") is UpdateRule.ACTIVATION
        with pytest.raises(InvalidConfiguration):
            UpdateRule.from_name("adam")
