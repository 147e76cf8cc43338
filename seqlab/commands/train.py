"""Defines the `seqlab train` command.

This command jointly trains one CRF head per configured task on top of a
shared BiLSTM encoder, then reports test accuracy for every task that has
test data. See `seqlab.config` for the configuration format.
"""

import argparse
import logging
import pathlib
from typing import Any, Dict, List

from seqlab import config as configs
from seqlab import conll, learning, vocab
from seqlab.models import taggers

import torch
import wandb


def parser() -> argparse.ArgumentParser:
    """Returns the argument parser for this command."""
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument('config',
                        type=pathlib.Path,
                        help='Path to YAML multi-task config.')
    parser.add_argument('--model-dir',
                        type=pathlib.Path,
                        default='/tmp/seqlab/models',
                        help='Directory to write finished model and test '
                        'predictions. Default /tmp/seqlab/models.')
    parser.add_argument('--tag-column',
                        type=int,
                        default=1,
                        help='Column of the gold tag in data files. '
                        'Default 1.')
    parser.add_argument('--wandb-mode',
                        choices=('online', 'offline', 'disabled'),
                        default='offline',
                        help='Weights and Biases mode. Default offline.')
    parser.add_argument('--wandb-group', help='Experiment group.')
    parser.add_argument('--wandb-name', help='Experiment name.')
    parser.add_argument('--wandb-dir',
                        type=pathlib.Path,
                        default='/tmp/seqlab/wandb',
                        help='Path to write Weights and Biases data.')
    return parser


def wandb_config(config: configs.Config) -> Dict[str, Any]:
    """Flatten the config into something wandb can record."""
    tasks: List[Dict[str, Any]] = [{
        'name': task.name,
        'train': str(task.train),
        'dev': str(task.dev) if task.dev else None,
        'test': str(task.test) if task.test else None,
        'inference': task.inference.value,
        'weight': task.weight,
    } for task in config.tasks]
    return {
        'embeddings': str(config.embeddings),
        'doc_frequencies':
            str(config.doc_frequencies) if config.doc_frequencies else None,
        'min_word_freq': config.min_word_freq,
        'tasks': tasks,
        'hyperparameters': {
            'shards_per_epoch': config.shards_per_epoch,
            'epochs': config.epochs,
            'char_embedding_dim': config.char_embedding_dim,
            'char_rnn_dim': config.char_rnn_dim,
            'hidden_dim': config.hidden_dim,
            'lr': config.learning_rate,
            'batch_size': config.batch_size,
            'patience': config.patience,
            'seed': config.seed,
        },
    }


def run(options: argparse.Namespace) -> None:
    """Run training with the given options.

    Args:
        options (argparse.Namespace): Parsed arguments. See parser() for list
            of flags.

    """
    log = logging.getLogger(__name__)

    config = configs.load(options.config)
    log.info('loaded config for tasks: %s',
             ', '.join(task.name for task in config.tasks))

    options.model_dir.mkdir(parents=True, exist_ok=True)
    options.wandb_dir.mkdir(parents=True, exist_ok=True)
    wandb.init(project='seqlab',
               mode=options.wandb_mode,
               name=options.wandb_name,
               group=options.wandb_group,
               config=wandb_config(config),
               dir=str(options.wandb_dir))

    learning.set_seed(config.seed)

    # Load the data.
    data = []
    for task in config.tasks:
        train = conll.load(task.train, tag_column=options.tag_column)
        dev = test = None
        if task.dev is not None:
            dev = conll.load(task.dev, tag_column=options.tag_column)
        if task.test is not None:
            test = conll.load(task.test, tag_column=options.tag_column)
        log.info('task %s has %d train sentences', task.name, len(train))
        data.append(learning.TaskData(task.name, train, dev, test,
                                      task.weight))

    words_to_use = vocab.load_words_to_use(config.doc_frequencies,
                                           config.min_word_freq)
    embeddings = vocab.load_embeddings(config.embeddings, words_to_use)
    chars = vocab.CharVocabulary(
        sample for task in data for sample in task.train)
    log.info('found %d unique characters', len(chars))

    tags = {
        task.name: vocab.TagDictionary.from_samples(task.train)
        for task in data
    }
    model = taggers.build(
        embeddings,
        chars,
        tags,
        {task.name: task.inference for task in config.tasks},
        char_embedding_dim=config.char_embedding_dim,
        char_rnn_dim=config.char_rnn_dim,
        hidden_dim=config.hidden_dim)

    # Start training!
    scheduler = learning.TrainingScheduler(
        model,
        data,
        shards_per_epoch=config.shards_per_epoch,
        batch_size=config.batch_size,
        lr=config.learning_rate,
        seed=config.seed,
        also_log_to_wandb=True)
    stopper = None
    if config.patience is not None:
        stopper = learning.EarlyStopping(patience=config.patience,
                                         decreasing=False)
    scheduler.train(epochs=config.epochs, stopper=stopper)

    model_file = options.model_dir / 'model.pth'
    log.info('saving model to %s', model_file)
    torch.save(model, model_file)
    wandb.save(str(model_file))

    for task in data:
        if not task.test:
            log.info('task %s has no test data, skipping', task.name)
            continue
        preds_file = options.model_dir / f'{task.name}.test.preds'
        with preds_file.open('w', encoding='utf-8') as output:
            accuracy = learning.evaluate(model, task.name, task.test, output)
        log.info('task %s test accuracy %f', task.name, accuracy)
        wandb.summary[f'{task.name} accuracy'] = accuracy
