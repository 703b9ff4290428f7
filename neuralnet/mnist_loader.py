"""
mnist_loader.py
~~~~~~~~~~~~~~~

Load the MNIST digits from CSV files.

Each line of a CSV file is ``label,pixel_1,...,pixel_784`` with integer
pixel intensities in 0..255. Pixels are scaled into [0.01, 1.0] so that no
input is exactly zero, and labels are turned into target vectors holding
0.99 for the correct digit and 0.01 everywhere else.
"""

import logging
import os
from typing import List, Sequence, Tuple

import numpy as np

logger = logging.getLogger(__name__)

OUTPUT_NODES = 10
TARGET_ON = 0.99
TARGET_OFF = 0.01


def scale_data(value):
    """Scale a 0..255 pixel intensity into [0.01, 1.0]."""
    return (np.asarray(value, dtype=np.float64) / 255.0 * 0.98) + 0.01


def read_csv(filepath: str) -> np.ndarray:
    """
    Read a MNIST CSV file.

    The first column (the label) is left as is; every other column is
    scaled with ``scale_data``.

    Args:
        filepath: Path to the CSV file

    Returns:
        np.ndarray: One row per line of the file

    Raises:
        FileNotFoundError: If the file does not exist
    """
    if not os.path.exists(filepath):
        raise FileNotFoundError(f"csv file not found: {filepath}")

    logger.info(f"Reading MNIST data from '{filepath}'")
    data = np.loadtxt(filepath, delimiter=',', ndmin=2)
    data[:, 1:] = scale_data(data[:, 1:])
    logger.info(f"Read {data.shape[0]} rows with {data.shape[1] - 1} inputs")
    return data


def get_input(row: Sequence[float]) -> np.ndarray:
    """Return a CSV row without its leading label."""
    return np.asarray(row)[1:]


def get_targets(label, output_nodes: int = OUTPUT_NODES) -> np.ndarray:
    """
    Build the target vector for a label.

    Raises:
        ValueError: If the label is not a valid index into the outputs
    """
    index = int(label)
    if not 0 <= index < output_nodes:
        raise ValueError(
            f"Label {label} out of range for {output_nodes} output nodes"
        )
    targets = np.full(output_nodes, TARGET_OFF)
    targets[index] = TARGET_ON
    return targets


def get_index_of_target(output: Sequence[float]) -> int:
    """Index of the largest value, i.e. the predicted digit."""
    return int(np.argmax(output))


def load_data(filepath: str) -> List[Tuple[np.ndarray, int]]:
    """Read a CSV file into ``(input, label)`` pairs."""
    return [(get_input(row), int(row[0])) for row in read_csv(filepath)]


def load_data_wrapper(
    training_path: str,
    test_path: str,
    output_nodes: int = OUTPUT_NODES
) -> Tuple[List[Tuple[np.ndarray, np.ndarray]], List[Tuple[np.ndarray, int]]]:
    """
    Load training and test data in the shape the network consumes.

    Returns:
        tuple: (training_data, test_data). Training pairs are
        ``(input, target_vector)``; test pairs are ``(input, label)``.
    """
    training_data = [
        (x, get_targets(label, output_nodes))
        for x, label in load_data(training_path)
    ]
    test_data = load_data(test_path)
    return training_data, test_data
