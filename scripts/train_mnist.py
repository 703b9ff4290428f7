#!/usr/bin/env python3
"""
Train a network on MNIST CSV files and report its test accuracy.

Usage:
    python scripts/train_mnist.py [--train data/mnist_train.csv]
                                  [--test data/mnist_test.csv]
                                  [--hidden 100] [--learning-rate 0.3]
                                  [--epochs 1] [--save models/mnist.txt]

The script will:
1. Read the training and test CSV files
2. Build a 784-hidden-10 sigmoid network
3. Train it one example at a time
4. Print every prediction and the final accuracy
5. Optionally save the model in the text model format
"""

import argparse
import logging
import os
import sys

import numpy as np

# Allow running from a source checkout without installing the package
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from neuralnet import mnist_loader
from neuralnet.exceptions import NetworkError
from neuralnet.model_persistence import load_model, save_model
from neuralnet.network import Network


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description='Train a feedforward network on MNIST CSV data'
    )
    parser.add_argument('--train',
                        default=os.getenv('MNIST_TRAIN_CSV', 'data/mnist_train.csv'),
                        help='training csv file')
    parser.add_argument('--test',
                        default=os.getenv('MNIST_TEST_CSV', 'data/mnist_test.csv'),
                        help='test csv file')
    parser.add_argument('--hidden', type=int, default=100,
                        help='neurons in the hidden layer (default: 100)')
    parser.add_argument('--activation', default='sigmoid',
                        choices=['sigmoid', 'relu', 'tanh'],
                        help='activation of the hidden layer (default: sigmoid)')
    parser.add_argument('--learning-rate', type=float, default=0.3,
                        help='learning rate (default: 0.3)')
    parser.add_argument('--epochs', type=int, default=1,
                        help='passes over the training data (default: 1)')
    parser.add_argument('--update-rule', default='sigmoid',
                        choices=['sigmoid', 'activation'],
                        help='derivative used by the weight update')
    parser.add_argument('--float32', action='store_true',
                        help='train in single precision')
    parser.add_argument('--seed', type=int, default=None,
                        help='seed for the weight initialization')
    parser.add_argument('--load', default=None,
                        help='start from a saved model instead of a new one')
    parser.add_argument('--save', default=None,
                        help='write the trained model to this file')
    parser.add_argument('--quiet', action='store_true',
                        help='do not print every prediction')
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main training function."""
    args = parse_args(argv)
    logging.basicConfig(
        level=os.getenv('LOG_LEVEL', 'INFO').upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    dtype = np.float32 if args.float32 else np.float64

    try:
        if args.load:
            net = load_model(args.load, dtype=dtype, update_rule=args.update_rule)
        else:
            net = Network(
                [(784, 'none'), (args.hidden, args.activation), (10, 'sigmoid')],
                args.learning_rate,
                dtype=dtype,
                update_rule=args.update_rule,
                rng=args.seed
            )

        print(f"📂 Loading data: {args.train}, {args.test}")
        training_data, test_data = mnist_loader.load_data_wrapper(
            args.train, args.test
        )

        print(f"🏋️  Training {net.shape} for {args.epochs} epoch(s) "
              f"on {len(training_data)} examples")
        net.fit(training_data, args.epochs)

        scoreboard = 0
        for x, label in test_data:
            prediction = net.predict(x)
            if not args.quiet:
                print(f"Prediction: {prediction} Target: {label}")
            if prediction == label:
                scoreboard += 1

        accuracy = scoreboard / len(test_data) * 100 if test_data else 0.0
        print(f"✅ Accuracy: {accuracy:.2f}%")

        if args.save:
            save_model(net, args.save)
            print(f"💾 Model saved to {args.save}")

    except (OSError, NetworkError, ValueError) as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
