"""Defines tagging performance metrics."""

from typing import Sequence, Tuple


def accuracy(golds: Sequence[str], preds: Sequence[str]) -> Tuple[int, int]:
    """Count how many predicted tags match the gold tags.

    Args:
        golds (Sequence[str]): Gold tags.
        preds (Sequence[str]): Predicted tags, aligned with golds.

    Returns:
        Tuple[int, int]: Number of tags and number of correct predictions.

    """
    assert len(golds) == len(preds), f'{len(golds)} golds, {len(preds)} preds'
    correct = sum(1 for gold, pred in zip(golds, preds) if gold == pred)
    return len(golds), correct
