"""Entrypoint for all seqlab commands."""

import argparse
import logging

from seqlab.commands import test, train
from seqlab.utils import logging as seqlab_logging

parser = argparse.ArgumentParser(description='Run a seqlab command.')
parser.add_argument('--quiet',
                    dest='log_level',
                    action='store_const',
                    const=logging.WARNING,
                    default=logging.INFO,
                    help='Only show warning or error messages.')
subparsers = parser.add_subparsers(dest='command')
subparsers.add_parser('train', parents=[train.parser()])
subparsers.add_parser('test', parents=[test.parser()])
options = parser.parse_args()

seqlab_logging.configure(level=options.log_level)

if options.command == 'train':
    train.run(options)
elif options.command == 'test':
    test.run(options)
else:
    raise ValueError(f'unknown command: {options.command}')
