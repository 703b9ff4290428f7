"""
model_persistence.py
~~~~~~~~~~~~~~~~~~~~

Persistence for neural network models.

Two layers of storage are provided:

- A plain text model format (``dump_model`` / ``parse_model`` and the file
  helpers ``save_model`` / ``load_model``)::

      <learning rate>
      <number of trainable layers>
      <neurons of input layer> none
      <neurons of layer 1> <activation>
      ...

      <weights of layer 1, one row per line>

      <weights of layer 2, one row per line>
      ...

- A SQLite store (``ModelDatabase``) keeping the model text together with
  queryable metadata, used by the API server.
"""

import io
import json
import logging
import os
import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, Generator, List, Optional, TextIO

import numpy as np

from neuralnet.exceptions import (
    DimensionMismatch,
    InvalidConfiguration,
    ModelFormatError,
)
from neuralnet.layer import Layer
from neuralnet.network import Network

# Configure module logger
logger = logging.getLogger(__name__)

DEFAULT_MODEL_DIR = os.getenv('MODEL_DIR', 'models')


# ============================================================================
# TEXT MODEL FORMAT
# ============================================================================

def _float_format(dtype) -> str:
    # Enough significant digits to read back the exact same value
    return '%.9g' if np.dtype(dtype).itemsize <= 4 else '%.17g'


def dump_model(network: Network, stream: TextIO) -> None:
    """
    Write a network to ``stream`` in the text model format.

    Args:
        network: Network to serialize
        stream: Writable text stream
    """
    fmt = _float_format(network.dtype)
    layers = network.layers

    stream.write(f"{network.learning_rate!r}\n")
    stream.write(f"{len(layers) - 1}\n")
    for layer in layers:
        stream.write(f"{layer.neuron_count} {layer.activation_name}\n")

    # The input layer is a fixed unit matrix and is not stored
    for layer in layers[1:]:
        stream.write("\n")
        for row in layer.weights:
            stream.write(" ".join(fmt % value for value in row))
            stream.write("\n")


def dumps_model(network: Network) -> str:
    """Serialize a network to a string in the text model format."""
    buffer = io.StringIO()
    dump_model(network, buffer)
    return buffer.getvalue()


def _next_token(tokens: List[str], position: int, what: str) -> str:
    if position >= len(tokens):
        raise ModelFormatError(f"Unexpected end of model data reading {what}")
    return tokens[position]


def _parse_int(token: str, what: str) -> int:
    try:
        value = int(token)
    except ValueError:
        raise ModelFormatError(f"Invalid {what}: {token!r}") from None
    if value < 1:
        raise ModelFormatError(f"Invalid {what}: {value} (must be positive)")
    return value


def parse_model(text: str, dtype=np.float64, update_rule='sigmoid') -> Network:
    """
    Rebuild a network from text in the model format.

    Each layer's input width is inferred from the previous layer's neuron
    count, then its weights are read row by row. Whitespace between
    values is not significant.

    Args:
        text: Model text
        dtype: Element type of the restored weights
        update_rule: Update rule for further training of the network

    Returns:
        Network: The restored network

    Raises:
        ModelFormatError: If the text is truncated, contains malformed
            numbers, or describes an invalid network
    """
    tokens = text.split()
    position = 0

    token = _next_token(tokens, position, 'learning rate')
    try:
        learning_rate = float(token)
    except ValueError:
        raise ModelFormatError(f"Invalid learning rate: {token!r}") from None
    position += 1

    trainable = _parse_int(
        _next_token(tokens, position, 'layer count'), 'layer count'
    )
    position += 1

    header = []
    for index in range(trainable + 1):
        neurons = _parse_int(
            _next_token(tokens, position, f'layer {index} size'),
            f'layer {index} size'
        )
        activation = _next_token(tokens, position + 1, f'layer {index} activation')
        header.append((neurons, activation))
        position += 2

    try:
        input_neurons, input_activation = header[0]
        layers = [
            Layer(input_neurons, input_activation,
                  (input_neurons, input_neurons), random_init=False,
                  dtype=dtype)
        ]
        for (neurons, activation), (previous, _) in zip(header[1:], header[:-1]):
            count = neurons * previous
            values = tokens[position:position + count]
            if len(values) != count:
                raise ModelFormatError(
                    f"Layer {len(layers)} needs {count} weights, "
                    f"found {len(values)}"
                )
            try:
                weights = np.array(values, dtype=dtype).reshape(neurons, previous)
            except ValueError as e:
                raise ModelFormatError(
                    f"Malformed weight in layer {len(layers)}: {e}"
                ) from e
            position += count

            layer = Layer(neurons, activation, (neurons, previous),
                          random_init=False, dtype=dtype)
            layer.weights = weights
            layers.append(layer)

        if position != len(tokens):
            raise ModelFormatError(
                f"Unexpected trailing data: {len(tokens) - position} "
                f"extra value(s)"
            )

        return Network.from_layers(layers, learning_rate, update_rule)

    except (InvalidConfiguration, DimensionMismatch) as e:
        raise ModelFormatError(f"Invalid model: {e}") from e


def save_model(network: Network, path: str) -> None:
    """
    Write a network to a text model file.

    Raises:
        OSError: If the file cannot be written
    """
    directory = os.path.dirname(path)
    try:
        if directory and not os.path.exists(directory):
            os.makedirs(directory)
        with open(path, 'w') as f:
            dump_model(network, f)
    except OSError as e:
        logger.error(f"Could not write model file '{path}': {e}")
        raise

    logger.info(f"Saved model {network.shape} to '{path}'")


def load_model(path: str, dtype=np.float64, update_rule='sigmoid') -> Network:
    """
    Read a network from a text model file.

    Raises:
        OSError: If the file cannot be opened
        ModelFormatError: If the content is malformed
    """
    try:
        with open(path) as f:
            text = f.read()
    except OSError as e:
        logger.error(f"Could not open model file '{path}': {e}")
        raise

    network = parse_model(text, dtype=dtype, update_rule=update_rule)
    logger.info(f"Loaded model {network.shape} from '{path}'")
    return network


# ============================================================================
# SQLITE MODEL STORE
# ============================================================================

class ModelDatabase:
    """
    Manages SQLite database for neural network model persistence.

    The database stores:
    - Network metadata (shape, learning rate, training status, accuracy)
    - The network itself in the text model format
    """

    def __init__(self, db_path: str = 'models/networks.db'):
        """
        Initialize the database connection.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = db_path
        self._ensure_directory()
        self._initialize_schema()

    def _ensure_directory(self) -> None:
        """Create the database directory if it doesn't exist."""
        db_dir = os.path.dirname(self.db_path)
        if db_dir and not os.path.exists(db_dir):
            os.makedirs(db_dir)

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Context manager for database connections.

        Yields:
            sqlite3.Connection: Database connection
        """
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row  # Enable column access by name
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _initialize_schema(self) -> None:
        """Create the database schema if it doesn't exist."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS networks (
                    network_id TEXT PRIMARY KEY,
                    architecture TEXT NOT NULL,
                    learning_rate REAL NOT NULL,
                    update_rule TEXT NOT NULL DEFAULT 'sigmoid',
                    dtype TEXT NOT NULL DEFAULT 'float64',
                    model_text TEXT NOT NULL,
                    trained INTEGER NOT NULL DEFAULT 0,
                    accuracy REAL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            ''')

            cursor.execute('''
                CREATE INDEX IF NOT EXISTS idx_created_at
                ON networks(created_at DESC)
            ''')

    @staticmethod
    def _metadata(row: sqlite3.Row) -> Dict[str, Any]:
        architecture = json.loads(row['architecture'])
        return {
            'network_id': row['network_id'],
            'architecture': architecture,
            'weights_shape': [
                [architecture[i][0], architecture[i - 1][0]]
                for i in range(1, len(architecture))
            ],
            'learning_rate': row['learning_rate'],
            'update_rule': row['update_rule'],
            'trained': bool(row['trained']),
            'accuracy': row['accuracy'],
            'created_at': row['created_at'],
            'updated_at': row['updated_at']
        }

    def save_network_to_db(
        self,
        network: Network,
        network_id: str,
        trained: bool = True,
        accuracy: Optional[float] = None
    ) -> bool:
        """
        Save a network to the database, replacing any with the same id.

        The creation time of an existing entry is kept.

        Args:
            network: Network object to save
            network_id: Unique identifier for the network
            trained: Whether the network has been trained
            accuracy: Test accuracy (0.0 to 1.0)

        Returns:
            bool: True if successful

        Raises:
            ValueError: If accuracy is out of valid range
        """
        if accuracy is not None and not 0.0 <= accuracy <= 1.0:
            raise ValueError(
                f"Accuracy must be between 0.0 and 1.0, got {accuracy}"
            )

        architecture_json = json.dumps([list(entry) for entry in network.shape])

        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT INTO networks
                (network_id, architecture, learning_rate, update_rule, dtype,
                 model_text, trained, accuracy)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(network_id) DO UPDATE SET
                    architecture = excluded.architecture,
                    learning_rate = excluded.learning_rate,
                    update_rule = excluded.update_rule,
                    dtype = excluded.dtype,
                    model_text = excluded.model_text,
                    trained = excluded.trained,
                    accuracy = excluded.accuracy,
                    updated_at = CURRENT_TIMESTAMP
            ''', (
                network_id,
                architecture_json,
                network.learning_rate,
                network.update_rule.value,
                network.dtype.name,
                dumps_model(network),
                1 if trained else 0,
                accuracy
            ))

        logger.info(
            f"Saved network '{network_id}' with architecture "
            f"{network.shape}, trained={trained}, accuracy={accuracy}"
        )
        return True

    def load_network_from_db(self, network_id: str) -> Optional[Network]:
        """
        Load a network from the database.

        Args:
            network_id: Unique identifier of the network

        Returns:
            Network object or None if not found
        """
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                'SELECT model_text, update_rule, dtype FROM networks '
                'WHERE network_id = ?',
                (network_id,)
            )
            row = cursor.fetchone()

        if row is None:
            logger.warning(f"Network '{network_id}' not found")
            return None

        network = parse_model(
            row['model_text'],
            dtype=np.dtype(row['dtype']),
            update_rule=row['update_rule']
        )
        logger.info(f"Loaded network '{network_id}'")
        return network

    def list_networks_from_db(self) -> List[Dict[str, Any]]:
        """
        List all networks with metadata.

        Returns:
            List of network metadata dictionaries, newest first
        """
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT network_id, architecture, learning_rate, update_rule,
                       trained, accuracy, created_at, updated_at
                FROM networks
                ORDER BY created_at DESC
            ''')
            networks = [self._metadata(row) for row in cursor.fetchall()]

        logger.debug(f"Listed {len(networks)} networks")
        return networks

    def delete_network_from_db(self, network_id: str) -> bool:
        """
        Delete a network from the database.

        Returns:
            bool: True if deleted, False if not found
        """
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                'DELETE FROM networks WHERE network_id = ?',
                (network_id,)
            )
            deleted = cursor.rowcount > 0

        if deleted:
            logger.info(f"Deleted network '{network_id}'")
        else:
            logger.warning(
                f"Could not delete network '{network_id}': not found"
            )
        return deleted

    def delete_old_networks_from_db(self, days: int = 2) -> int:
        """
        Delete networks created more than ``days`` days ago.

        Returns:
            int: Number of networks deleted

        Raises:
            ValueError: If days is negative
        """
        if days < 0:
            raise ValueError(f"days must be non-negative, got {days}")

        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "DELETE FROM networks WHERE created_at < datetime('now', ?)",
                (f'-{days} days',)
            )
            deleted = cursor.rowcount

        logger.info(f"Deleted {deleted} network(s) older than {days} day(s)")
        return deleted

    def get_network_metadata_from_db(
        self,
        network_id: str
    ) -> Optional[Dict[str, Any]]:
        """
        Get network metadata without parsing the model.

        Returns:
            Metadata dictionary or None if not found
        """
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT network_id, architecture, learning_rate, update_rule,
                       trained, accuracy, created_at, updated_at
                FROM networks
                WHERE network_id = ?
            ''', (network_id,))
            row = cursor.fetchone()

        if row is None:
            logger.warning(f"Metadata for network '{network_id}' not found")
            return None
        return self._metadata(row)


# Global database instance for the default model directory
_db = None


def _get_db(model_dir: str = DEFAULT_MODEL_DIR) -> ModelDatabase:
    """
    Get the database for ``model_dir``.

    The default directory shares one global instance; any other directory
    gets a fresh one.
    """
    global _db
    if model_dir != DEFAULT_MODEL_DIR:
        return ModelDatabase(db_path=os.path.join(model_dir, 'networks.db'))
    if _db is None:
        _db = ModelDatabase(db_path=os.path.join(model_dir, 'networks.db'))
    return _db


def _valid_id(network_id) -> bool:
    if not network_id or not isinstance(network_id, str):
        logger.error("Invalid network_id: must be a non-empty string")
        return False
    return True


def save_network(
    network: Network,
    network_id: str,
    model_dir: str = DEFAULT_MODEL_DIR,
    trained: bool = True,
    accuracy: Optional[float] = None
) -> bool:
    """
    Save a neural network to the SQLite database.

    Args:
        network: The network to save
        network_id: A unique identifier for the network
        model_dir: Directory for the database file
        trained: Whether the network has been trained
        accuracy: The accuracy of the trained network (0.0 to 1.0)

    Returns:
        bool: True if the save was successful, False otherwise

    Example:
        >>> net = Network([(784, "none"), (100, "sigmoid"), (10, "sigmoid")], 0.3)
        >>> save_network(net, "my_network", trained=False)
        True
    """
    if not _valid_id(network_id):
        return False

    try:
        return _get_db(model_dir).save_network_to_db(
            network, network_id, trained, accuracy
        )
    except ValueError as e:
        logger.error(f"Validation error saving network '{network_id}': {e}")
        return False
    except sqlite3.Error as e:
        logger.error(f"Database error saving network '{network_id}': {e}")
        return False
    except OSError as e:
        logger.error(f"Storage error saving network '{network_id}': {e}")
        return False


def load_network(
    network_id: str,
    model_dir: str = DEFAULT_MODEL_DIR
) -> Optional[Network]:
    """
    Load a neural network from the SQLite database.

    Returns:
        The loaded network or None if not found or unreadable
    """
    if not _valid_id(network_id):
        return None

    try:
        return _get_db(model_dir).load_network_from_db(network_id)
    except ModelFormatError as e:
        logger.error(f"Corrupt model data for network '{network_id}': {e}")
        return None
    except sqlite3.Error as e:
        logger.error(f"Database error loading network '{network_id}': {e}")
        return None


def list_saved_networks(
    model_dir: str = DEFAULT_MODEL_DIR
) -> List[Dict[str, Any]]:
    """
    List all saved networks with their metadata.

    Example:
        >>> for net in list_saved_networks():
        ...     print(f"{net['network_id']}: {net['architecture']}")
    """
    try:
        return _get_db(model_dir).list_networks_from_db()
    except sqlite3.Error as e:
        logger.error(f"Database error listing networks: {e}")
        return []
    except json.JSONDecodeError as e:
        logger.error(f"JSON decode error listing networks: {e}")
        return []


def delete_network(network_id: str, model_dir: str = DEFAULT_MODEL_DIR) -> bool:
    """
    Delete a saved network from the database.

    Returns:
        bool: True if deletion was successful, False otherwise
    """
    if not _valid_id(network_id):
        return False

    try:
        return _get_db(model_dir).delete_network_from_db(network_id)
    except sqlite3.Error as e:
        logger.error(f"Database error deleting network '{network_id}': {e}")
        return False


def delete_old_networks(
    days: int = 2,
    model_dir: str = DEFAULT_MODEL_DIR
) -> int:
    """
    Delete saved networks older than ``days`` days.

    Returns:
        int: Number of networks deleted, or -1 on a database error

    Raises:
        ValueError: If days is negative
    """
    if days < 0:
        raise ValueError(f"days must be non-negative, got {days}")

    try:
        return _get_db(model_dir).delete_old_networks_from_db(days)
    except sqlite3.Error as e:
        logger.error(f"Database error deleting old networks: {e}")
        return -1


def get_network_metadata(
    network_id: str,
    model_dir: str = DEFAULT_MODEL_DIR
) -> Optional[Dict[str, Any]]:
    """
    Get metadata for a specific network without loading the full network.

    Example:
        >>> metadata = get_network_metadata("my_network")
        >>> if metadata:
        ...     print(f"Accuracy: {metadata['accuracy']}")
    """
    if not _valid_id(network_id):
        return None

    try:
        return _get_db(model_dir).get_network_metadata_from_db(network_id)
    except sqlite3.Error as e:
        logger.error(
            f"Database error getting metadata for '{network_id}': {e}"
        )
        return None
    except json.JSONDecodeError as e:
        logger.error(
            f"JSON decode error getting metadata for '{network_id}': {e}"
        )
        return None
