"""Linear-chain conditional random field.

All scores live in log space. The transition matrix is indexed as
`transitions[to, from]`, so row i holds the scores of moving *into* tag i.
Emission scores have one row per token and one column per tag, START and STOP
included.
"""

import enum
from typing import List, Sequence, Tuple

from seqlab import vocab
from seqlab.utils.typing import Scores

import torch
from torch import nn

# Stands in for log(0). Must be finite so that sums never produce NaN.
LOG_MIN_VALUE = -10000.


class InferenceMode(enum.Enum):
    """How a CRF head turns emission scores into tags."""

    VITERBI = 'viterbi'
    GREEDY = 'greedy'


def _rows(scores: Scores) -> List[List[float]]:
    """Returns the scores as nested lists of python floats."""
    if isinstance(scores, torch.Tensor):
        return scores.detach().tolist()
    return [[float(score) for score in row] for row in scores]


def argmax(scores: Sequence[float]) -> int:
    """Returns index of the largest score. The first index wins ties."""
    best, index = float('-inf'), -1
    for current, score in enumerate(scores):
        if score > best:
            best, index = score, current
    assert index > -1, 'no maximum in scores?'
    return index


def viterbi(emission_scores: Scores, transition_matrix: Scores, start: int,
            stop: int) -> Tuple[List[int], float]:
    """Find the highest scoring tag sequence.

    Args:
        emission_scores (Scores): Shape (L, T) emission scores.
        transition_matrix (Scores): Shape (T, T) transition scores, indexed
            as [to, from].
        start (int): Index of the START tag.
        stop (int): Index of the STOP tag.

    Returns:
        Tuple[List[int], float]: The best path of length L, which excludes
            START and STOP, and its score.

    """
    emissions = _rows(emission_scores)
    transitions = _rows(transition_matrix)
    tag_count = len(transitions)

    # Best scores at time step -1, where only START is reachable.
    forward = [LOG_MIN_VALUE] * tag_count
    forward[start] = 0.

    backpointers = []
    for emission in emissions:
        assert len(emission) == tag_count, 'emissions/transitions misaligned?'
        scores, pointers = [], []
        for next_tag in range(tag_count):
            into = [
                previous + transition for previous, transition in zip(
                    forward, transitions[next_tag])
            ]
            best = argmax(into)
            pointers.append(best)
            scores.append(into[best])

        # Emission depends only on next tag, so add it after the max.
        forward = [score + emit for score, emit in zip(scores, emission)]
        backpointers.append(pointers)

    final = [
        previous + transition
        for previous, transition in zip(forward, transitions[stop])
    ]
    best = argmax(final)
    score = final[best]

    path = [best]
    for pointers in reversed(backpointers):
        best = pointers[best]
        path.append(best)
    assert path[-1] == start, 'backtrace did not end at START'

    path.pop()
    path.reverse()
    return path, score


def partition_score(emissions: torch.Tensor, transitions: torch.Tensor,
                    start: int, stop: int) -> torch.Tensor:
    """Compute log of the summed exp-scores of every tag sequence.

    This is the forward algorithm. It is differentiable with respect to both
    the emissions and the transitions.

    Args:
        emissions (torch.Tensor): Shape (L, T) emission scores.
        transitions (torch.Tensor): Shape (T, T) transition scores, indexed
            as [to, from].
        start (int): Index of the START tag.
        stop (int): Index of the STOP tag.

    Returns:
        torch.Tensor: Scalar log partition value.

    """
    tag_count = transitions.shape[0]
    forward = torch.full((tag_count,),
                         LOG_MIN_VALUE,
                         dtype=transitions.dtype,
                         device=transitions.device)
    forward[start] = 0.

    for emission in emissions:
        # scores[next, previous] = forward[previous] + T[next, previous] +
        # E[next], then sum out the previous tag.
        scores = forward.unsqueeze(0) + transitions + emission.unsqueeze(1)
        forward = torch.logsumexp(scores, dim=1)

    return torch.logsumexp(forward + transitions[stop], dim=0)


def sentence_score(emissions: torch.Tensor, transitions: torch.Tensor,
                   tags: Sequence[int], start: int,
                   stop: int) -> torch.Tensor:
    """Compute the score of one specific tag sequence.

    Args:
        emissions (torch.Tensor): Shape (L, T) emission scores.
        transitions (torch.Tensor): Shape (T, T) transition scores, indexed
            as [to, from].
        tags (Sequence[int]): Length L tag sequence, without START and STOP.
        start (int): Index of the START tag.
        stop (int): Index of the STOP tag.

    Returns:
        torch.Tensor: Scalar score of the sequence.

    """
    assert len(tags) > 0, 'cannot score empty sequence'
    assert len(tags) == len(emissions), 'tags/emissions misaligned?'
    device = emissions.device
    indices = torch.tensor(tags, dtype=torch.long, device=device)
    positions = torch.arange(len(indices), device=device)
    score = transitions[indices[0], start]
    score = score + transitions[indices[1:], indices[:-1]].sum()
    score = score + emissions[positions, indices].sum()
    return score + transitions[stop, indices[-1]]


def greedy_predict(lattice: Scores) -> List[int]:
    """Pick the best tag at each step independently.

    Transition scores are ignored entirely. The lowest index wins ties.

    Args:
        lattice (Scores): Shape (L, T) per-step tag scores.

    Returns:
        List[int]: Length L tag sequence.

    """
    return [argmax(scores) for scores in _rows(lattice)]


class CRF(nn.Module):
    """A task head: emission projection plus transition matrix."""

    def __init__(self,
                 in_features: int,
                 tags: vocab.TagDictionary,
                 inference: InferenceMode = InferenceMode.VITERBI):
        """Initialize the head.

        Args:
            in_features (int): Dimensionality of encoder hidden vectors.
            tags (vocab.TagDictionary): Tags for this task.
            inference (InferenceMode, optional): Decoding strategy used by
                `decode`. Defaults to Viterbi.

        """
        super().__init__()
        assert len(tags) >= 2, 'need at least START and STOP'
        self.in_features = in_features
        self.tags = tags
        self.inference = inference

        self.project = nn.Linear(in_features, len(tags))
        self.transitions = nn.Parameter(torch.empty(len(tags), len(tags)))
        nn.init.uniform_(self.transitions, -.1, .1)

    def forward(self, hidden: torch.Tensor) -> torch.Tensor:
        """Project encoder output to emission scores.

        Args:
            hidden (torch.Tensor): Shape (L, in_features) encoder output.

        Returns:
            torch.Tensor: Shape (L, len(tags)) emission scores.

        """
        return self.project(hidden)

    def loss(self, hidden: torch.Tensor, tags: Sequence[int]) -> torch.Tensor:
        """Negative conditional log likelihood of the gold tags.

        Args:
            hidden (torch.Tensor): Shape (L, in_features) encoder output.
            tags (Sequence[int]): Length L gold tag indices.

        Returns:
            torch.Tensor: Scalar loss.

        """
        emissions = self(hidden)
        start, stop = self.tags.start, self.tags.stop
        partition = partition_score(emissions, self.transitions, start, stop)
        gold = sentence_score(emissions, self.transitions, tags, start, stop)
        return partition - gold

    def decode(self, hidden: torch.Tensor) -> List[int]:
        """Predict tag indices using this head's inference mode.

        Args:
            hidden (torch.Tensor): Shape (L, in_features) encoder output.

        Returns:
            List[int]: Length L predicted tag indices.

        """
        with torch.no_grad():
            emissions = self(hidden)
        if self.inference is InferenceMode.GREEDY:
            return greedy_predict(emissions)
        path, _ = viterbi(emissions, self.transitions, self.tags.start,
                          self.tags.stop)
        return path
