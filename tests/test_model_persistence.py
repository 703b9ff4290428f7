"""
test_model_persistence.py
~~~~~~~~~~~~~~~~~~~~~~~~~

Unit tests for the text model format and SQLite-based model persistence.
"""

import os
import sqlite3
import sys

import numpy as np
import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from neuralnet.activations import UpdateRule
from neuralnet.exceptions import ModelFormatError
from neuralnet.model_persistence import (
    ModelDatabase,
    delete_network,
    delete_old_networks,
    dumps_model,
    get_network_metadata,
    list_saved_networks,
    load_model,
    load_network,
    parse_model,
    save_model,
    save_network,
)
from neuralnet.network import Network

SHAPE = [(3, "none"), (4, "sigmoid"), (2, "sigmoid")]


@pytest.fixture
def temp_db_dir(tmp_path):
    """Create a temporary directory for database storage."""
    db_dir = tmp_path / "test_models"
    db_dir.mkdir()
    return str(db_dir)


@pytest.fixture
def simple_network():
    """Create a simple 3-layer network for testing."""
    return Network(SHAPE, 0.3, rng=1)


@pytest.fixture
def trained_network(simple_network):
    """Create a simple network with some training applied."""
    rng = np.random.default_rng(0)
    for i in range(10):
        x = rng.uniform(0.01, 1.0, size=3)
        y = np.full(2, 0.01)
        y[i % 2] = 0.99
        simple_network.train(x, y)
    return simple_network


def age_network(db_path, network_id, modifier):
    """Move a network's creation time into the past."""
    conn = sqlite3.connect(db_path)
    cursor = conn.cursor()
    cursor.execute('''
        UPDATE networks
        SET created_at = datetime('now', ?)
        WHERE network_id = ?
    ''', (modifier, network_id))
    conn.commit()
    conn.close()


@pytest.mark.unit
class TestTextFormat:
    """Test writing and parsing the text model format."""

    def test_dump_layout(self):
        """Test the exact layout of a small model."""
        net = Network([(2, "none"), (1, "sigmoid")], 0.5)
        net.layers[1].weights = [[0.25, -0.5]]

        assert dumps_model(net) == "0.5\n1\n2 none\n1 sigmoid\n\n0.25 -0.5\n"

    def test_dump_one_block_per_layer(self, simple_network):
        """Test that each trainable layer gets its own block of rows."""
        text = dumps_model(simple_network)
        blocks = text.split("\n\n")

        assert blocks[0].splitlines() == ["0.3", "2", "3 none", "4 sigmoid", "2 sigmoid"]
        assert len(blocks[1].splitlines()) == 4
        assert len(blocks[2].splitlines()) == 2
        assert all(len(row.split()) == 3 for row in blocks[1].splitlines())

    def test_round_trip_restores_weights(self, trained_network):
        """Test that parsing a dump gives back identical weights."""
        restored = parse_model(dumps_model(trained_network))

        assert restored.shape == trained_network.shape
        assert restored.learning_rate == trained_network.learning_rate
        for original, loaded in zip(trained_network.layers, restored.layers):
            assert np.array_equal(original.weights, loaded.weights)

    def test_round_trip_reproduces_queries(self, trained_network):
        """Test that a restored network answers exactly like the original."""
        restored = parse_model(dumps_model(trained_network))
        x = [0.2, 0.5, 0.9]

        assert np.array_equal(restored.query(x), trained_network.query(x))

    def test_round_trip_float32(self):
        """Test that single precision weights survive a round trip."""
        net = Network(SHAPE, 0.3, dtype=np.float32, rng=4)
        restored = parse_model(dumps_model(net), dtype=np.float32)

        for original, loaded in zip(net.layers, restored.layers):
            assert loaded.weights.dtype == np.float32
            assert np.array_equal(original.weights, loaded.weights)

    def test_parse_ignores_whitespace_layout(self):
        """Test that values are read as whitespace separated tokens."""
        net = parse_model("0.1 1 2 none 2 tanh 0.5 0.25\n\n\n-0.5   1.0")

        assert net.shape == [(2, "none"), (2, "tanh")]
        assert np.array_equal(net.layers[1].weights, [[0.5, 0.25], [-0.5, 1.0]])

    def test_parse_sets_update_rule(self):
        """Test that the requested update rule is applied."""
        net = parse_model("0.1\n1\n1 none\n1 relu\n\n0.5\n",
                          update_rule="activation")
        assert net.update_rule is UpdateRule.ACTIVATION

    @pytest.mark.parametrize("text", [
        "",
        "abc\n1\n2 none\n1 sigmoid\n\n0.1 0.2\n",
        "0.3\nx\n2 none\n1 sigmoid\n\n0.1 0.2\n",
        "0.3\n0\n2 none\n",
        "0.3\n1\n2 none\n1 sigmoid\n\n0.1\n",
        "0.3\n1\n2 none\n1 sigmoid\n\n0.1 0.2 0.3\n",
        "0.3\n1\n2 none\n1 sigmoid\n\n0.1 oops\n",
        "0.3\n1\n2 none\n1 softmax\n\n0.1 0.2\n",
        "0.3\n1\n2 relu\n1 sigmoid\n\n0.1 0.2\n",
        "-0.3\n1\n2 none\n1 sigmoid\n\n0.1 0.2\n",
        "0.3\n1\n2 none\n",
    ])
    def test_malformed_model(self, text):
        """Test that malformed content is a parse error."""
        with pytest.raises(ModelFormatError):
            parse_model(text)

    def test_save_and_load_file(self, trained_network, tmp_path):
        """Test writing a model file and reading it back."""
        path = str(tmp_path / "nested" / "model.txt")

        save_model(trained_network, path)
        restored = load_model(path)

        x = [0.3, 0.6, 0.01]
        assert np.array_equal(restored.query(x), trained_network.query(x))

    def test_load_missing_file(self, tmp_path):
        """Test that an unreadable file raises an IO error."""
        with pytest.raises(IOError):
            load_model(str(tmp_path / "missing.txt"))


@pytest.mark.unit
class TestModelPersistence:
    """Test basic model persistence operations."""

    def test_save_network_creates_database(self, simple_network, temp_db_dir):
        """Test that saving a network creates the database file."""
        success = save_network(
            simple_network,
            "test_network_1",
            model_dir=temp_db_dir,
            trained=False
        )

        assert success is True
        assert os.path.exists(f"{temp_db_dir}/networks.db")

    def test_save_network_with_metadata(self, trained_network, temp_db_dir):
        """Test that network metadata is saved correctly."""
        network_id = "trained_network_1"

        save_network(
            trained_network,
            network_id,
            model_dir=temp_db_dir,
            trained=True,
            accuracy=0.85
        )

        metadata = get_network_metadata(network_id, temp_db_dir)
        assert metadata is not None
        assert metadata['network_id'] == network_id
        assert metadata['trained'] is True
        assert metadata['accuracy'] == 0.85
        assert metadata['learning_rate'] == 0.3
        assert metadata['update_rule'] == 'sigmoid'
        assert metadata['architecture'] == [[3, "none"], [4, "sigmoid"], [2, "sigmoid"]]
        assert metadata['weights_shape'] == [[4, 3], [2, 4]]

    def test_save_rejects_invalid_accuracy(self, simple_network, temp_db_dir):
        """Test that an out-of-range accuracy is refused."""
        assert save_network(
            simple_network, "bad", model_dir=temp_db_dir, accuracy=1.5
        ) is False
        assert get_network_metadata("bad", temp_db_dir) is None

    def test_save_rejects_empty_id(self, simple_network, temp_db_dir):
        """Test that an empty network id is refused."""
        assert save_network(simple_network, "", model_dir=temp_db_dir) is False

    def test_load_network_returns_network(self, simple_network, temp_db_dir):
        """Test that loading a network returns a valid Network object."""
        save_network(simple_network, "test_network_2", model_dir=temp_db_dir)
        loaded_network = load_network("test_network_2", temp_db_dir)

        assert isinstance(loaded_network, Network)
        assert loaded_network.shape == simple_network.shape

    def test_load_nonexistent_network(self, temp_db_dir):
        """Test that loading a non-existent network returns None."""
        assert load_network("nonexistent", temp_db_dir) is None

    def test_load_preserves_weights(self, trained_network, temp_db_dir):
        """Test that saved weights are preserved after loading."""
        save_network(trained_network, "test_network_3", model_dir=temp_db_dir)
        loaded_network = load_network("test_network_3", temp_db_dir)

        for original, loaded in zip(trained_network.layers, loaded_network.layers):
            assert np.array_equal(original.weights, loaded.weights)

    def test_load_preserves_update_rule_and_dtype(self, temp_db_dir):
        """Test that settings outside the text format are kept."""
        net = Network(SHAPE, 0.2, dtype=np.float32,
                      update_rule="activation", rng=2)
        save_network(net, "settings", model_dir=temp_db_dir)

        loaded = load_network("settings", temp_db_dir)
        assert loaded.update_rule is UpdateRule.ACTIVATION
        assert loaded.dtype == np.float32

    def test_list_saved_networks_empty(self, temp_db_dir):
        """Test listing networks when database is empty."""
        assert list_saved_networks(temp_db_dir) == []

    def test_list_saved_networks(self, simple_network, temp_db_dir):
        """Test that listing networks returns every saved network."""
        save_network(simple_network, "net1", model_dir=temp_db_dir,
                     trained=True, accuracy=0.9)
        save_network(simple_network, "net2", model_dir=temp_db_dir,
                     trained=False)

        networks = list_saved_networks(temp_db_dir)

        assert len(networks) == 2
        assert {net['network_id'] for net in networks} == {"net1", "net2"}
        assert all('created_at' in net and 'updated_at' in net
                   for net in networks)

    def test_delete_network_success(self, simple_network, temp_db_dir):
        """Test successful network deletion."""
        save_network(simple_network, "delete_test", model_dir=temp_db_dir)
        assert load_network("delete_test", temp_db_dir) is not None

        assert delete_network("delete_test", temp_db_dir) is True
        assert load_network("delete_test", temp_db_dir) is None

    def test_delete_nonexistent_network(self, temp_db_dir):
        """Test that deleting a non-existent network returns False."""
        ModelDatabase(db_path=f'{temp_db_dir}/networks.db')
        assert delete_network("nonexistent", temp_db_dir) is False

    def test_update_network(self, simple_network, temp_db_dir):
        """Test that saving a network with the same ID updates it."""
        network_id = "update_test"

        save_network(simple_network, network_id, model_dir=temp_db_dir,
                     trained=False)
        assert get_network_metadata(network_id, temp_db_dir)['trained'] is False

        save_network(simple_network, network_id, model_dir=temp_db_dir,
                     trained=True, accuracy=0.88)
        metadata = get_network_metadata(network_id, temp_db_dir)
        assert metadata['trained'] is True
        assert metadata['accuracy'] == 0.88

        assert len(list_saved_networks(temp_db_dir)) == 1

    def test_update_keeps_creation_time(self, simple_network, temp_db_dir):
        """Test that re-saving a network does not reset its age."""
        save_network(simple_network, "aged", model_dir=temp_db_dir)
        age_network(os.path.join(temp_db_dir, "networks.db"), "aged", "-3 days")

        save_network(simple_network, "aged", model_dir=temp_db_dir)

        assert delete_old_networks(days=2, model_dir=temp_db_dir) == 1


@pytest.mark.integration
class TestPersistenceIntegration:
    """Integration tests for model persistence."""

    def test_save_load_train_cycle(self, simple_network, temp_db_dir):
        """Test complete cycle: save, load, train, save again."""
        network_id = "cycle_test"
        save_network(simple_network, network_id, model_dir=temp_db_dir,
                     trained=False)

        loaded_network = load_network(network_id, temp_db_dir)
        for _ in range(5):
            loaded_network.train([0.1, 0.5, 0.9], [0.99, 0.01])

        save_network(loaded_network, network_id, model_dir=temp_db_dir,
                     trained=True, accuracy=0.85)

        final_network = load_network(network_id, temp_db_dir)
        metadata = get_network_metadata(network_id, temp_db_dir)

        assert metadata['trained'] is True
        assert metadata['accuracy'] == 0.85
        x = [0.4, 0.4, 0.4]
        assert np.array_equal(final_network.query(x), loaded_network.query(x))

    def test_multiple_networks_coexist(self, temp_db_dir):
        """Test that multiple networks can coexist in the database."""
        networks_to_create = [
            ([(784, "none"), (100, "sigmoid"), (10, "sigmoid")], "mnist_network"),
            ([(3, "none"), (4, "relu"), (2, "sigmoid")], "simple_network"),
            ([(10, "none"), (20, "tanh"), (20, "sigmoid"), (10, "sigmoid")],
             "deep_network"),
        ]

        for shape, network_id in networks_to_create:
            save_network(Network(shape, 0.3), network_id, model_dir=temp_db_dir)

        assert len(list_saved_networks(temp_db_dir)) == len(networks_to_create)

        for shape, network_id in networks_to_create:
            loaded = load_network(network_id, temp_db_dir)
            assert loaded is not None
            assert loaded.shape == shape


class TestDeleteOldNetworks:
    """Tests for automatic cleanup of old networks."""

    def test_delete_old_networks_basic(self, simple_network, temp_db_dir):
        """Test that a network older than the threshold is deleted."""
        save_network(simple_network, "old", model_dir=temp_db_dir)
        age_network(os.path.join(temp_db_dir, "networks.db"), "old", "-3 days")

        assert delete_old_networks(days=2, model_dir=temp_db_dir) == 1
        assert load_network("old", temp_db_dir) is None

    def test_delete_old_networks_preserves_recent(self, simple_network, temp_db_dir):
        """Test that recent networks are not deleted."""
        save_network(simple_network, "recent", model_dir=temp_db_dir)

        assert delete_old_networks(days=2, model_dir=temp_db_dir) == 0
        assert load_network("recent", temp_db_dir) is not None

    def test_delete_old_networks_mixed_ages(self, simple_network, temp_db_dir):
        """Test with a mix of old and recent networks."""
        old_ids = ["old_1", "old_2"]
        recent_ids = ["recent_1", "recent_2"]
        for network_id in old_ids + recent_ids:
            save_network(simple_network, network_id, model_dir=temp_db_dir)

        db_path = os.path.join(temp_db_dir, "networks.db")
        for network_id in old_ids:
            age_network(db_path, network_id, "-3 days")

        assert delete_old_networks(days=2, model_dir=temp_db_dir) == len(old_ids)
        for network_id in old_ids:
            assert load_network(network_id, temp_db_dir) is None
        for network_id in recent_ids:
            assert load_network(network_id, temp_db_dir) is not None

    def test_delete_old_networks_custom_days(self, simple_network, temp_db_dir):
        """Test delete_old_networks with different day thresholds."""
        save_network(simple_network, "test_network", model_dir=temp_db_dir)
        age_network(os.path.join(temp_db_dir, "networks.db"),
                    "test_network", "-5 days")

        assert delete_old_networks(days=7, model_dir=temp_db_dir) == 0
        assert delete_old_networks(days=3, model_dir=temp_db_dir) == 1

    def test_delete_old_networks_empty_db(self, temp_db_dir):
        """Test delete_old_networks on empty database."""
        assert delete_old_networks(days=2, model_dir=temp_db_dir) == 0

    def test_delete_old_networks_negative_days(self, temp_db_dir):
        """Test that negative days raises ValueError."""
        with pytest.raises(ValueError) as exc_info:
            delete_old_networks(days=-1, model_dir=temp_db_dir)
        assert "non-negative" in str(exc_info.value)

    def test_delete_old_networks_zero_days(self, simple_network, temp_db_dir):
        """Test that days=0 deletes anything created before now."""
        save_network(simple_network, "test_network", model_dir=temp_db_dir)
        age_network(os.path.join(temp_db_dir, "networks.db"),
                    "test_network", "-1 hour")

        assert delete_old_networks(days=0, model_dir=temp_db_dir) == 1

    def test_model_database_delete_old_networks_method(self, temp_db_dir):
        """Test ModelDatabase.delete_old_networks_from_db directly."""
        db = ModelDatabase(db_path=os.path.join(temp_db_dir, "networks.db"))
        db.save_network_to_db(Network(SHAPE, 0.3), "test_network", trained=False)
        age_network(db.db_path, "test_network", "-3 days")

        assert db.delete_old_networks_from_db(days=2) == 1
        assert db.load_network_from_db("test_network") is None
