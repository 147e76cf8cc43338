"""Defines functions for training and evaluating multi-task taggers."""

import copy
import logging
import math
import random
from typing import (Dict, Iterator, List, NamedTuple, Optional, Sequence,
                    TextIO, Tuple)

from seqlab import conll, metrics
from seqlab.models import taggers

import numpy as np
import torch
import wandb
from torch import optim


def set_seed(value: int) -> None:
    """Seed every random number generator used during training."""
    random.seed(value)
    np.random.seed(value % 2**32)
    torch.manual_seed(value)


class TaskData(NamedTuple):
    """Training and evaluation data for one task."""

    name: str
    train: Sequence[conll.Sample]
    dev: Optional[Sequence[conll.Sample]] = None
    test: Optional[Sequence[conll.Sample]] = None
    weight: float = 1.


def shard(samples: Sequence[conll.Sample],
          shards: int) -> List[List[conll.Sample]]:
    """Split samples into contiguous shards of (nearly) equal size.

    Args:
        samples (Sequence[conll.Sample]): Samples to split.
        shards (int): Number of shards. Trailing shards may be empty if
            there are few samples.

    Returns:
        List[List[conll.Sample]]: Exactly `shards` shards, in order.

    """
    if shards < 1:
        raise ValueError(f'need at least one shard, got {shards}')
    size = math.ceil(len(samples) / shards)
    starts = [index * size for index in range(shards)]
    return [list(samples[start:start + size]) for start in starts]


class EarlyStopping:
    """Observes a numerical value and determines when it has not improved."""

    def __init__(self, patience: int = 3, decreasing: bool = True):
        """Initialize the early stopping tracker.

        Args:
            patience (int): Allow tracked value to not improve over its
                best value this many times. Defaults to 3.
            decreasing (bool, optional): If True, the tracked value "improves"
                if it decreases. If False, it "improves" if it increases.
                Defaults to True.

        """
        self.patience = patience
        self.decreasing = decreasing
        self.best = float('inf') if decreasing else float('-inf')
        self.num_bad = 0

    def __call__(self, value: float) -> bool:
        """Considers the new tracked value and decides whether to stop.

        Args:
            value (float): The new tracked value.

        Returns:
            bool: True if patience has been exceeded.

        """
        improved = self.decreasing and value < self.best
        improved |= not self.decreasing and value > self.best
        if improved:
            self.best = value
            self.num_bad = 0
        else:
            self.num_bad += 1

        return self.num_bad > self.patience


def evaluate(model: taggers.MultiTaskTagger,
             task: str,
             samples: Sequence[conll.Sample],
             output: Optional[TextIO] = None) -> float:
    """Compute tagging accuracy of one task head.

    Args:
        model (taggers.MultiTaskTagger): The tagger.
        task (str): Name of the head to evaluate.
        samples (Sequence[conll.Sample]): Sentences with gold tags.
        output (Optional[TextIO], optional): If set, write predictions here
            in CoNLL format. By default, predictions are discarded.

    Raises:
        ValueError: If there are no tags to evaluate.

    Returns:
        float: Fraction of correctly predicted tags.

    """
    model.eval()
    total, correct = 0, 0
    for sample in samples:
        preds = model.tag(task, sample.words)
        count, right = metrics.accuracy(sample.tags, preds)
        total += count
        correct += right
        if output is not None:
            conll.print_conll_output(output, sample.words, sample.tags, preds)
    assert correct <= total, 'more correct than counted?'

    if not total:
        raise ValueError(f'no data to evaluate for task {task}')

    return correct / total


class TrainingScheduler:
    """Trains every task head against the shared encoder.

    Each epoch shuffles every task's training data, splits it into shards,
    and then visits shard 1 of every task, shard 2 of every task, and so on.
    This way the shared encoder sees every task in every epoch. Sentence
    losses are scaled by their task weight and summed over mini-batches
    before each optimizer step. The optimizer step is the only place where
    parameters change.
    """

    def __init__(self,
                 model: taggers.MultiTaskTagger,
                 tasks: Sequence[TaskData],
                 shards_per_epoch: int = 10,
                 batch_size: int = 1,
                 lr: float = 1e-3,
                 seed: int = 0,
                 also_log_to_wandb: bool = False):
        """Initialize the scheduler.

        Args:
            model (taggers.MultiTaskTagger): The tagger to train.
            tasks (Sequence[TaskData]): Data for each task. Every name must
                match one of the model's heads.
            shards_per_epoch (int, optional): Shards per task per epoch.
                Defaults to 10.
            batch_size (int, optional): Sentences per optimizer step.
                Defaults to 1.
            lr (float, optional): Learning rate for Adam optimization.
                Defaults to 1e-3.
            seed (int, optional): Seeds the shuffling order. Defaults to 0.
            also_log_to_wandb (bool, optional): Log losses and accuracies to
                wandb. Defaults to False.

        Raises:
            ValueError: If a task has no head or no training data, or if
                hyperparameters are invalid.

        """
        if not tasks:
            raise ValueError('need at least one task')
        for task in tasks:
            if task.name not in model.heads:
                raise ValueError(f'model has no head for task {task.name}')
            if not task.train:
                raise ValueError(f'no training data for task {task.name}')
        if shards_per_epoch < 1:
            raise ValueError(f'need at least one shard per epoch, '
                             f'got {shards_per_epoch}')
        if batch_size < 1:
            raise ValueError(f'batch size must be positive, got {batch_size}')

        self.model = model
        self.tasks = tuple(tasks)
        self.shards_per_epoch = shards_per_epoch
        self.batch_size = batch_size
        self.also_log_to_wandb = also_log_to_wandb

        self.optimizer = optim.Adam(model.parameters(), lr=lr)
        self.generator = np.random.RandomState(seed % 2**32)

    def schedule(self) -> Iterator[Tuple[TaskData, List[conll.Sample]]]:
        """Yield (task, batch) pairs for one epoch in training order."""
        sharded = []
        for task in self.tasks:
            order = self.generator.permutation(len(task.train))
            shuffled = [task.train[index] for index in order]
            sharded.append(shard(shuffled, self.shards_per_epoch))

        for index in range(self.shards_per_epoch):
            for task, shards in zip(self.tasks, sharded):
                samples = shards[index]
                for start in range(0, len(samples), self.batch_size):
                    yield task, samples[start:start + self.batch_size]

    def step(self, losses: Sequence[torch.Tensor]) -> float:
        """Apply one gradient update from the summed losses.

        Args:
            losses (Sequence[torch.Tensor]): Scalar losses, already weighted.

        Returns:
            float: The summed loss.

        """
        self.optimizer.zero_grad()
        total = torch.stack(list(losses)).sum()
        total.backward()
        self.optimizer.step()
        return total.item()

    def train_epoch(self, epoch: int = 0) -> Dict[str, float]:
        """Make one pass through every task's training data.

        Args:
            epoch (int, optional): Epoch number, used for logging.
                Defaults to 0.

        Returns:
            Dict[str, float]: Mean weighted loss per sentence for each task.

        """
        log = logging.getLogger(__name__)

        self.model.train()
        totals = {task.name: 0. for task in self.tasks}
        counts = {task.name: 0 for task in self.tasks}
        for iteration, (task, batch) in enumerate(self.schedule()):
            losses = [
                task.weight * self.model.loss(task.name, sample.words,
                                              sample.tags) for sample in batch
            ]
            loss = self.step(losses)
            totals[task.name] += loss
            counts[task.name] += len(batch)

            log.debug('epoch %d batch %d task %s train loss %f', epoch + 1,
                      iteration + 1, task.name, loss)
            if self.also_log_to_wandb:
                wandb.log({f'{task.name} train loss': loss})

        means = {}
        for name, total in totals.items():
            means[name] = total / counts[name] if counts[name] else 0.
            log.info('epoch %d task %s mean train loss %f', epoch + 1, name,
                     means[name])
        return means

    def evaluate(self, split: str = 'dev') -> Dict[str, float]:
        """Compute accuracy of every task that has data for the split.

        Args:
            split (str, optional): Either 'dev' or 'test'. Defaults to 'dev'.

        Returns:
            Dict[str, float]: Accuracy for each task with data.

        """
        log = logging.getLogger(__name__)
        accuracies = {}
        for task in self.tasks:
            samples = getattr(task, split)
            if not samples:
                log.info('task %s has no %s data, skipping', task.name, split)
                continue
            accuracies[task.name] = evaluate(self.model, task.name, samples)
            log.info('task %s %s accuracy %f', task.name, split,
                     accuracies[task.name])
        return accuracies

    def train(self,
              epochs: int = 10,
              stopper: Optional[EarlyStopping] = None) -> Optional[float]:
        """Train for the given number of epochs.

        If any task has dev data, the model is evaluated after every epoch
        and the parameters from the epoch with the best mean dev accuracy are
        restored at the end.

        Args:
            epochs (int, optional): Maximum number of epochs. Defaults to 10.
            stopper (Optional[EarlyStopping], optional): If set, track mean
                dev accuracy and stop when patience is exceeded. Should be
                constructed with decreasing=False. Defaults to None.

        Returns:
            Optional[float]: Best mean dev accuracy, or None if no task has
                dev data.

        """
        log = logging.getLogger(__name__)

        best_accuracy: Optional[float] = None
        best_state = None
        for epoch in range(epochs):
            self.train_epoch(epoch)

            accuracies = self.evaluate('dev')
            if not accuracies:
                continue

            accuracy = sum(accuracies.values()) / len(accuracies)
            log.info('epoch %d mean dev accuracy %f', epoch + 1, accuracy)
            if self.also_log_to_wandb:
                wandb.log({
                    f'{name} dev accuracy': value
                    for name, value in accuracies.items()
                })

            if best_accuracy is None or accuracy > best_accuracy:
                log.info('new best model at epoch %d', epoch + 1)
                best_accuracy = accuracy
                best_state = copy.deepcopy(self.model.state_dict())

            if stopper is not None and stopper(accuracy):
                log.info('patience on dev accuracy exceeded, '
                         'training is now over')
                break

        if best_state is not None:
            self.model.load_state_dict(best_state)

        return best_accuracy
