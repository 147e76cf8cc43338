"""Defines the `seqlab test` command.

This command tags a CoNLL file with one head of a trained model, writes the
predictions in `<word> <gold> <pred>` format, and reports accuracy.
"""

import argparse
import logging
import pathlib

from seqlab import conll, learning
from seqlab.models import taggers

import torch


def parser() -> argparse.ArgumentParser:
    """Returns the argument parser for this command."""
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument('model_file',
                        type=pathlib.Path,
                        help='Model written by `seqlab train`.')
    parser.add_argument('task', help='Name of the task head to use.')
    parser.add_argument('data_file',
                        type=pathlib.Path,
                        help='CoNLL file with gold tags.')
    parser.add_argument('--tag-column',
                        type=int,
                        default=1,
                        help='Column of the gold tag in data file. '
                        'Default 1.')
    parser.add_argument('--output',
                        type=pathlib.Path,
                        help='Write predictions here. Default is the data file '
                        'with a .preds suffix.')
    return parser


def run(options: argparse.Namespace) -> None:
    """Tag the data with the given options.

    Args:
        options (argparse.Namespace): Parsed arguments. See parser() for list
            of flags.

    Raises:
        ValueError: If the model has no head for the task.

    """
    log = logging.getLogger(__name__)

    log.info('loading model from %s', options.model_file)
    model = torch.load(options.model_file, weights_only=False)
    assert isinstance(model, taggers.MultiTaskTagger), 'not a tagger?'
    if options.task not in model.heads:
        raise ValueError(f'unknown task: {options.task}; model has tasks: '
                         f'{", ".join(model.tasks)}')

    samples = conll.load(options.data_file, tag_column=options.tag_column)
    log.info('tagging %d sentences', len(samples))
    preds_file = options.output or options.data_file.with_suffix('.preds')
    with preds_file.open('w', encoding='utf-8') as output:
        accuracy = learning.evaluate(model, options.task, samples, output)
    log.info('wrote predictions to %s', preds_file)

    log.info('task %s accuracy %f', options.task, accuracy)
