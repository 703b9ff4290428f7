"""
api_server.py
~~~~~~~~~~~~~

Flask-based REST API server with WebSocket support for neural network training.

This module provides endpoints for:
- Creating networks from a layer shape, or importing them as model text
- Training networks on MNIST CSV data with real-time progress updates
- Querying networks with an input vector
- Exporting networks in the text model format
- Persisting networks to/from SQLite database

The server uses:
- Flask for REST API endpoints
- Flask-SocketIO for WebSocket communication
- Gevent for async background training tasks
- SQLite for network persistence

Run it directly (``python -m neuralnet.api_server``) or through gunicorn
with ``neuralnet.api_server:create_app()``.
"""

import base64
import logging
import os
import sys
import uuid
from io import BytesIO
from typing import Any, Dict, List, Optional

import gevent
import numpy as np
from flask import Flask, Response, jsonify, request, send_from_directory
from flask_cors import CORS
from flask_socketio import SocketIO

# Use non-GUI backend for matplotlib (required for server environments)
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

# Local imports
from neuralnet import mnist_loader
from neuralnet.exceptions import (
    DimensionMismatch,
    InvalidConfiguration,
    ModelFormatError,
)
from neuralnet.model_persistence import (
    DEFAULT_MODEL_DIR,
    delete_network,
    delete_old_networks,
    dumps_model,
    list_saved_networks,
    load_network,
    parse_model,
    save_network,
)
from neuralnet.network import Network

# ============================================================================
# LOGGING SETUP
# ============================================================================

def configure_logging() -> None:
    """
    Set up logging based on environment.

    - In production: Show fewer logs (less noise) but keep important logs
    - In development: Show more detailed logs for debugging
    """
    log_level_str = os.getenv('LOG_LEVEL', 'INFO').upper()
    log_level = getattr(logging, log_level_str, logging.INFO)
    is_production = os.getenv('FLASK_ENV') == 'production'

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # In production, silence noisy third-party logs but keep our logs visible
    if is_production:
        for logger_name in ['socketio', 'engineio', 'engineio.server',
                            'socketio.server', 'werkzeug']:
            logging.getLogger(logger_name).setLevel(logging.WARNING)
        logging.getLogger('neuralnet').setLevel(logging.INFO)
    else:
        logging.getLogger('socketio').setLevel(logging.INFO)
        logging.getLogger('engineio').setLevel(logging.INFO)


configure_logging()
logger = logging.getLogger(__name__)

# ============================================================================
# CONFIGURATION
# ============================================================================

MODEL_DIR = DEFAULT_MODEL_DIR
TRAIN_CSV = os.getenv('MNIST_TRAIN_CSV', 'data/mnist_train.csv')
TEST_CSV = os.getenv('MNIST_TEST_CSV', 'data/mnist_test.csv')

DEFAULT_LAYERS = [[784, 'none'], [100, 'sigmoid'], [10, 'sigmoid']]
DEFAULT_LEARNING_RATE = 0.3

# ============================================================================
# FLASK APP SETUP
# ============================================================================

app = Flask(__name__, static_folder='static')
CORS(app, resources={r"/*": {"origins": "*"}})  # Allow requests from any origin

is_production = os.getenv('FLASK_ENV') == 'production'

# SocketIO enables real-time communication (WebSockets) for training updates
socketio = SocketIO(
    app,
    cors_allowed_origins="*",
    async_mode='gevent',
    logger=not is_production,
    engineio_logger=not is_production,
    ping_timeout=60,
    ping_interval=25
)

# ============================================================================
# GLOBAL STATE
# ============================================================================

# Networks currently loaded in memory: {network_id: network_info}
active_networks: Dict[str, Dict[str, Any]] = {}

# Training jobs being tracked: {job_id: job_info}
training_jobs: Dict[str, Dict[str, Any]] = {}

# MNIST data, loaded once at startup.
# Training entries are (input, target_vector), test entries (input, label).
training_data: Optional[List] = None
test_data: Optional[List] = None


# ============================================================================
# DATA LOADING
# ============================================================================

def load_mnist_data() -> None:
    """
    Load the MNIST CSV files into global variables.

    Missing files are not fatal: the server still creates, imports and
    queries networks, it just cannot train them.
    """
    global training_data, test_data

    if not (os.path.exists(TRAIN_CSV) and os.path.exists(TEST_CSV)):
        logger.warning(
            f"MNIST data not found at '{TRAIN_CSV}' / '{TEST_CSV}'; "
            f"training is disabled"
        )
        return

    logger.info("Loading MNIST data...")
    try:
        training_data, test_data = mnist_loader.load_data_wrapper(
            TRAIN_CSV, TEST_CSV
        )
        logger.info(
            f"Data loaded: {len(training_data)} training, "
            f"{len(test_data)} test"
        )
    except Exception as e:
        logger.exception(f"Error loading MNIST data: {e}")
        raise


def _register(network_id: str, net: Network, trained: bool,
              accuracy: Optional[float]) -> Dict[str, Any]:
    info = {
        'network': net,
        'architecture': [list(entry) for entry in net.shape],
        'learning_rate': net.learning_rate,
        'update_rule': net.update_rule.value,
        'trained': trained,
        'accuracy': accuracy
    }
    active_networks[network_id] = info
    return info


def reload_saved_networks() -> None:
    """
    Reload all saved networks from the database into memory.

    Called at startup to restore networks that were saved before the
    application was restarted.
    """
    saved_networks = list_saved_networks(MODEL_DIR)

    if not saved_networks:
        logger.info("No saved networks to reload")
        return

    loaded_count = 0
    for net_info in saved_networks:
        network_id = net_info['network_id']
        net = load_network(network_id, MODEL_DIR)
        if net is None:
            logger.warning(f"Failed to load network {network_id}")
            continue
        _register(network_id, net, net_info['trained'], net_info['accuracy'])
        loaded_count += 1

    logger.info(f"Reloaded {loaded_count} network(s) from database")


# ============================================================================
# BACKGROUND TASKS
# ============================================================================

# Flag to ensure cleanup task only starts once
_cleanup_task_started = False


def cleanup_old_networks_task() -> None:
    """
    Background task that runs immediately, then every 24 hours to:
    - Delete networks older than 2 days from the database
    - Sync in-memory networks with the database
    - Remove completed/failed training jobs from memory
    """
    while True:
        try:
            logger.info("Starting automatic cleanup of old networks...")
            deleted_count = delete_old_networks(days=2, model_dir=MODEL_DIR)

            if deleted_count > 0:
                saved_ids = {
                    net['network_id'] for net in list_saved_networks(MODEL_DIR)
                }
                networks_to_remove = [
                    nid for nid in active_networks
                    if nid not in saved_ids and not _is_training(nid)
                ]
                for nid in networks_to_remove:
                    del active_networks[nid]
                    logger.info(
                        f"Removed network {nid} from memory "
                        f"(deleted from database)"
                    )
            elif deleted_count < 0:
                logger.error("Cleanup returned error code")

            cleanup_finished_training_jobs()

            logger.info("Next cleanup scheduled in 24 hours")
            gevent.sleep(86400)

        except Exception as e:
            logger.exception(f"Error during network cleanup: {e}")
            gevent.sleep(3600)


def cleanup_finished_training_jobs() -> None:
    """Remove completed or failed training jobs from memory."""
    finished_statuses = {'completed', 'failed'}
    jobs_to_remove = [
        job_id for job_id, job_info in training_jobs.items()
        if job_info.get('status') in finished_statuses
    ]

    for job_id in jobs_to_remove:
        del training_jobs[job_id]

    if jobs_to_remove:
        logger.info(f"Cleaned up {len(jobs_to_remove)} finished training job(s)")


def start_cleanup_task() -> None:
    """Start the background cleanup task (idempotent)."""
    global _cleanup_task_started

    if _cleanup_task_started:
        logger.debug("Cleanup task already started, skipping")
        return

    _cleanup_task_started = True
    logger.info("Starting cleanup task (runs immediately, then every 24 hours)")
    gevent.spawn(cleanup_old_networks_task)


def initialize() -> None:
    """Load data, restore saved networks and start background tasks."""
    load_mnist_data()
    reload_saved_networks()
    training_jobs.clear()
    start_cleanup_task()


def create_app() -> Flask:
    """Initialize the server state and return the Flask app."""
    initialize()
    return app


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _is_training(network_id: str) -> bool:
    return any(
        job['network_id'] == network_id
        and job.get('status') in ('pending', 'training')
        for job in training_jobs.values()
    )


def _network_not_found(network_id: str, action: str):
    logger.warning(f"{action} requested for non-existent network: {network_id}")
    return jsonify({'error': 'Network not found'}), 404


def array_to_float_list(array: np.ndarray) -> List[float]:
    """Convert a numpy array to a list of floats (for JSON serialization)."""
    return [float(val) for val in np.asarray(array).flatten()]


def create_digit_image(image_data: np.ndarray, predicted: int,
                       actual: int) -> Optional[str]:
    """
    Create a base64-encoded PNG image of a digit.

    Args:
        image_data: 784-element input vector of a 28x28 digit
        predicted: The digit the network predicted
        actual: The correct digit

    Returns:
        Base64-encoded PNG, or None if the input is not a 28x28 image
    """
    image_data = np.asarray(image_data)
    if image_data.size != 28 * 28:
        return None

    fig = plt.figure(figsize=(3, 3))
    try:
        plt.imshow(image_data.reshape(28, 28), cmap='gray')
        plt.title(f"Predicted: {predicted} | Actual: {actual}")
        plt.axis('off')

        buffer = BytesIO()
        plt.savefig(buffer, format='png', bbox_inches='tight')
    finally:
        plt.close(fig)

    return base64.b64encode(buffer.getvalue()).decode('utf-8')


# ============================================================================
# API ENDPOINTS
# ============================================================================

@app.route('/api/status', methods=['GET'])
def get_status():
    """Return server status and statistics."""
    active_training = sum(
        1 for job in training_jobs.values()
        if job.get('status') in ('pending', 'training')
    )

    return jsonify({
        'status': 'online',
        'active_networks': len(active_networks),
        'training_jobs': active_training,
        'data_loaded': training_data is not None
    }), 200


@app.route('/api/networks', methods=['POST'])
def create_network():
    """
    Create a new neural network.

    Request body (all optional):
        {
            'layers': [[784, 'none'], [100, 'sigmoid'], [10, 'sigmoid']],
            'learning_rate': 0.3,
            'update_rule': 'sigmoid'
        }

    Returns:
        JSON with network_id, architecture, and status
    """
    data = request.get_json(silent=True) or {}
    layers = data.get('layers', DEFAULT_LAYERS)
    learning_rate = data.get('learning_rate', DEFAULT_LEARNING_RATE)
    update_rule = data.get('update_rule', 'sigmoid')

    if not isinstance(layers, list) or not all(
        isinstance(entry, (list, tuple)) and len(entry) == 2
        and isinstance(entry[0], int) and isinstance(entry[1], str)
        for entry in layers
    ):
        logger.warning(f"Invalid architecture requested: {layers}")
        return jsonify({
            'error': 'layers must be a list of [neuron_count, activation] pairs'
        }), 400
    if not isinstance(learning_rate, (int, float)) or isinstance(learning_rate, bool):
        return jsonify({'error': 'learning_rate must be a number'}), 400

    try:
        net = Network(layers, learning_rate, update_rule=update_rule)
    except InvalidConfiguration as e:
        logger.warning(f"Invalid network configuration {layers}: {e}")
        return jsonify({'error': str(e)}), 400

    network_id = str(uuid.uuid4())
    info = _register(network_id, net, trained=False, accuracy=None)
    save_network(net, network_id, model_dir=MODEL_DIR, trained=False)

    logger.info(f"Created network {network_id} with architecture {net.shape}")

    return jsonify({
        'network_id': network_id,
        'architecture': info['architecture'],
        'learning_rate': net.learning_rate,
        'update_rule': net.update_rule.value,
        'status': 'created'
    }), 201


@app.route('/api/networks/import', methods=['POST'])
def import_network():
    """
    Create a network from model text sent as the raw request body.

    Query parameters:
        update_rule: 'sigmoid' (default) or 'activation'
    """
    text = request.get_data(as_text=True)
    update_rule = request.args.get('update_rule', 'sigmoid')

    try:
        net = parse_model(text, update_rule=update_rule)
    except (ModelFormatError, InvalidConfiguration) as e:
        logger.warning(f"Rejected model import: {e}")
        return jsonify({'error': str(e)}), 400

    network_id = str(uuid.uuid4())
    info = _register(network_id, net, trained=True, accuracy=None)
    save_network(net, network_id, model_dir=MODEL_DIR, trained=True)

    logger.info(f"Imported network {network_id} with architecture {net.shape}")

    return jsonify({
        'network_id': network_id,
        'architecture': info['architecture'],
        'learning_rate': net.learning_rate,
        'status': 'imported'
    }), 201


@app.route('/api/networks/<network_id>/model', methods=['GET'])
def export_network(network_id: str):
    """Return the network in the text model format."""
    if network_id not in active_networks:
        return _network_not_found(network_id, 'Export')

    net = active_networks[network_id]['network']
    return Response(dumps_model(net), mimetype='text/plain'), 200


@app.route('/api/networks/<network_id>/query', methods=['POST'])
def query_network(network_id: str):
    """
    Run an input vector through the network.

    Request body:
        {'input': [0.01, 0.5, ...]}

    Returns:
        JSON with the network output and the index of its largest value
    """
    if network_id not in active_networks:
        return _network_not_found(network_id, 'Query')

    data = request.get_json(silent=True) or {}
    input_vector = data.get('input')
    if not isinstance(input_vector, list):
        return jsonify({'error': 'input must be a list of numbers'}), 400

    net = active_networks[network_id]['network']
    try:
        output = net.query(input_vector)
    except DimensionMismatch as e:
        return jsonify({'error': str(e)}), 400
    except (TypeError, ValueError):
        return jsonify({'error': 'input must be a list of numbers'}), 400

    return jsonify({
        'network_id': network_id,
        'output': array_to_float_list(output),
        'predicted': mnist_loader.get_index_of_target(output)
    }), 200


@app.route('/api/networks/<network_id>/train', methods=['POST'])
def train_network(network_id: str):
    """
    Start training a network in the background.

    Request body (optional):
        {'epochs': 1}

    Returns:
        JSON with job_id, network_id, and status
    """
    if network_id not in active_networks:
        return _network_not_found(network_id, 'Training')

    if not training_data:
        logger.error("Training requested but training data is not loaded")
        return jsonify({'error': 'Training data not available'}), 503

    if _is_training(network_id):
        return jsonify({'error': 'Network is already training'}), 409

    net = active_networks[network_id]['network']
    sample_input, sample_target = training_data[0]
    if (net.sizes[0] != len(sample_input)
            or net.sizes[-1] != len(sample_target)):
        logger.warning(
            f"Network {network_id} with sizes {net.sizes} does not fit "
            f"training data of width {len(sample_input)} -> "
            f"{len(sample_target)}"
        )
        return jsonify({
            'error': f'Network shape {net.sizes} does not fit the training '
                     f'data ({len(sample_input)} inputs, '
                     f'{len(sample_target)} outputs)'
        }), 400

    data = request.get_json(silent=True) or {}
    epochs = data.get('epochs', 1)

    if not isinstance(epochs, int) or isinstance(epochs, bool) or epochs < 1:
        return jsonify({'error': 'epochs must be a positive integer'}), 400

    job_id = str(uuid.uuid4())

    training_jobs[job_id] = {
        'network_id': network_id,
        'status': 'pending',
        'progress': 0,
        'epochs': epochs
    }

    logger.info(
        f"Created training job {job_id} for network {network_id}: "
        f"epochs={epochs}"
    )

    # Run training in background so we can return immediately
    socketio.start_background_task(train_network_task, network_id, job_id, epochs)

    return jsonify({
        'job_id': job_id,
        'network_id': network_id,
        'status': 'training_started'
    }), 202


def train_network_task(network_id: str, job_id: str, epochs: int) -> None:
    """
    Background task that trains a neural network.

    Sends progress updates via WebSocket as training progresses.
    """
    net = active_networks[network_id]['network']

    def on_epoch_complete(data: Dict[str, Any]) -> None:
        """Called after each training epoch to send progress updates."""
        progress = (data['epoch'] / data['total_epochs']) * 100

        training_jobs[job_id]['status'] = 'training'
        training_jobs[job_id]['progress'] = progress

        socketio.emit('training_update', {
            'job_id': job_id,
            'network_id': network_id,
            'epoch': data['epoch'],
            'total_epochs': data['total_epochs'],
            'accuracy': data['accuracy'],
            'elapsed_time': data['elapsed_time'],
            'progress': progress,
            'correct': data['correct'],
            'total': data['total']
        })
        gevent.sleep(0)

    def yield_to_other_tasks() -> None:
        gevent.sleep(0)

    try:
        logger.info(f"Starting training for job {job_id}")
        training_jobs[job_id]['status'] = 'training'

        net.fit(
            training_data,
            epochs,
            test_data=test_data,
            callback=on_epoch_complete,
            yield_func=yield_to_other_tasks
        )

        accuracy = net.evaluate(test_data) / len(test_data) if test_data else None

        active_networks[network_id]['trained'] = True
        active_networks[network_id]['accuracy'] = accuracy

        training_jobs[job_id]['status'] = 'completed'
        training_jobs[job_id]['accuracy'] = accuracy
        training_jobs[job_id]['progress'] = 100

        save_network(net, network_id, model_dir=MODEL_DIR,
                     trained=True, accuracy=accuracy)

        logger.info(f"Training completed for job {job_id}: accuracy {accuracy}")

        socketio.emit('training_complete', {
            'job_id': job_id,
            'network_id': network_id,
            'status': 'completed',
            'accuracy': accuracy,
            'progress': 100
        })
        gevent.sleep(0)

    except Exception as e:
        logger.exception(f"Training failed for job {job_id}: {e}")

        training_jobs[job_id]['status'] = 'failed'
        training_jobs[job_id]['error'] = str(e)

        socketio.emit('training_error', {
            'job_id': job_id,
            'network_id': network_id,
            'status': 'failed',
            'error': str(e)
        })
        gevent.sleep(0)


@app.route('/api/training/<job_id>', methods=['GET'])
def get_training_status(job_id: str):
    """Get the current status of a training job."""
    if job_id in training_jobs:
        return jsonify(training_jobs[job_id]), 200

    logger.warning(f"Status requested for non-existent job: {job_id}")
    return jsonify({'error': 'Training job not found'}), 404


@app.route('/api/networks', methods=['GET'])
def list_networks():
    """List all available networks (both in-memory and saved to disk)."""
    in_memory = [
        {
            'network_id': nid,
            'architecture': info['architecture'],
            'learning_rate': info['learning_rate'],
            'trained': info['trained'],
            'accuracy': info['accuracy'],
            'status': 'in_memory'
        }
        for nid, info in active_networks.items()
    ]

    saved_only = []
    for net in list_saved_networks(MODEL_DIR):
        if net['network_id'] not in active_networks:
            net['status'] = 'saved'
            saved_only.append(net)

    logger.debug(
        f"Listing networks: {len(in_memory)} in memory, {len(saved_only)} saved"
    )

    return jsonify({'networks': in_memory + saved_only}), 200


@app.route('/api/networks/<network_id>', methods=['DELETE'])
def delete_network_endpoint(network_id: str):
    """Delete a network from both memory and disk."""
    if _is_training(network_id):
        return jsonify({'error': 'Network is training'}), 409

    deleted_from_memory = active_networks.pop(network_id, None) is not None
    deleted_from_disk = delete_network(network_id, MODEL_DIR)

    if not deleted_from_memory and not deleted_from_disk:
        return _network_not_found(network_id, 'Delete')

    logger.info(
        f"Deleted network {network_id}: memory={deleted_from_memory}, "
        f"disk={deleted_from_disk}"
    )

    return jsonify({
        'network_id': network_id,
        'deleted_from_memory': deleted_from_memory,
        'deleted_from_disk': deleted_from_disk
    }), 200


@app.route('/api/networks', methods=['DELETE'])
def delete_all_networks():
    """Delete all networks that are not training from memory and disk."""
    saved_ids = [net['network_id'] for net in list_saved_networks(MODEL_DIR)]
    all_network_ids = [
        nid for nid in set(active_networks) | set(saved_ids)
        if not _is_training(nid)
    ]

    deleted_from_memory_count = 0
    deleted_from_disk_count = 0

    for network_id in all_network_ids:
        if active_networks.pop(network_id, None) is not None:
            deleted_from_memory_count += 1
        if delete_network(network_id, MODEL_DIR):
            deleted_from_disk_count += 1

    logger.info(
        f"Deleted all networks: {len(all_network_ids)} total, "
        f"{deleted_from_memory_count} from memory, "
        f"{deleted_from_disk_count} from disk"
    )

    return jsonify({
        'deleted_count': len(all_network_ids),
        'deleted_from_memory': deleted_from_memory_count,
        'deleted_from_disk': deleted_from_disk_count
    }), 200


@app.route('/api/networks/cleanup', methods=['POST'])
def cleanup_old_networks_endpoint():
    """
    Manually trigger cleanup of networks older than specified days.

    Request body (optional):
        {'days': 2}
    """
    data = request.get_json(silent=True) or {}
    days = data.get('days', 2)

    if not isinstance(days, (int, float)) or isinstance(days, bool) or days < 0:
        return jsonify({'error': 'days must be a non-negative number'}), 400

    deleted_count = delete_old_networks(days=int(days), model_dir=MODEL_DIR)
    if deleted_count == -1:
        return jsonify({'error': 'Error occurred during cleanup'}), 500

    logger.info(
        f"Manual cleanup: deleted {deleted_count} network(s) older than "
        f"{days} day(s)"
    )

    return jsonify({
        'deleted_count': deleted_count,
        'days': days
    }), 200


# ============================================================================
# EXAMPLE ENDPOINTS
# ============================================================================

def _find_example(network_id: str, want_correct: bool, max_attempts: int):
    """Pick random test examples until one matches ``want_correct``."""
    if network_id not in active_networks:
        return _network_not_found(network_id, 'Example')

    if not test_data:
        logger.error("Test data not loaded")
        return jsonify({'error': 'Test data not available'}), 503

    net = active_networks[network_id]['network']

    for attempt in range(max_attempts):
        index = int(np.random.randint(0, len(test_data)))
        x, label = test_data[index]

        try:
            output = net.query(x)
        except DimensionMismatch as e:
            logger.warning(f"Network {network_id} does not fit test data: {e}")
            return jsonify({'error': str(e)}), 400
        predicted_digit = mnist_loader.get_index_of_target(output)
        actual_digit = int(label)

        if (predicted_digit == actual_digit) == want_correct:
            logger.debug(f"Found example on attempt {attempt + 1}")
            return jsonify({
                'network_id': network_id,
                'example_index': index,
                'predicted_digit': predicted_digit,
                'actual_digit': actual_digit,
                'image_data': create_digit_image(x, predicted_digit, actual_digit),
                'output_weights': net.layers[-1].weights.tolist(),
                'network_output': array_to_float_list(output)
            }), 200

    logger.warning(f"No matching example found after {max_attempts} attempts")
    return jsonify({
        'error': f'No matching example found after {max_attempts} attempts'
    }), 404


@app.route('/api/networks/<network_id>/successful_example', methods=['GET'])
def get_successful_example(network_id: str):
    """Return a random test example the network predicts correctly."""
    return _find_example(network_id, want_correct=True, max_attempts=100)


@app.route('/api/networks/<network_id>/unsuccessful_example', methods=['GET'])
def get_unsuccessful_example(network_id: str):
    """Return a random test example the network gets wrong."""
    return _find_example(network_id, want_correct=False, max_attempts=200)


# ============================================================================
# STATIC FILE SERVING
# ============================================================================

@app.route('/')
def index():
    """Serve the main frontend page."""
    return send_from_directory(app.static_folder, 'index.html')


@app.route('/<path:path>')
def serve_static(path: str):
    """Serve static files (CSS, JS, images, etc.)."""
    return send_from_directory(app.static_folder, path)


# ============================================================================
# SERVER STARTUP
# ============================================================================

if __name__ == '__main__':
    static_dir = os.path.join(os.path.dirname(__file__), 'static')
    if not os.path.exists(static_dir):
        os.makedirs(static_dir)
        logger.info(f"Created static directory: {static_dir}")

    is_cloud = bool(os.environ.get('PORT'))
    port = int(os.environ.get('PORT', 8000))

    if is_cloud:
        logger.info(f"Starting server in production mode on port {port}")
    else:
        logger.info(f"Starting server at http://localhost:{port}/")

    initialize()

    try:
        socketio.run(
            app,
            host='0.0.0.0',
            port=port,
            debug=not is_cloud,
            use_reloader=False,
            allow_unsafe_werkzeug=True
        )
    except OSError as e:
        if "Address already in use" in str(e):
            logger.error(f"Port {port} is already in use.")
            sys.exit(1)
        else:
            raise
