"""Unit tests for the metrics module."""

from seqlab import metrics

import pytest


def test_accuracy():
    """Test accuracy counts tags and correct predictions."""
    golds = ['B-PER', 'O', 'O', 'B-LOC']
    preds = ['B-PER', 'O', 'B-LOC', 'O']
    assert metrics.accuracy(golds, preds) == (4, 2)


def test_accuracy_empty():
    """Test accuracy handles empty sentences."""
    assert metrics.accuracy([], []) == (0, 0)


@pytest.mark.parametrize('golds,preds', (
    (['O'], []),
    (['O'], ['O', 'O']),
))
def test_accuracy_mismatched(golds, preds):
    """Test accuracy dies when golds and preds differ in length."""
    with pytest.raises(AssertionError):
        metrics.accuracy(golds, preds)
