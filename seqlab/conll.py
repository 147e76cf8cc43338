"""Utilities for reading and writing CoNLL-style tagging data."""

import pathlib
from typing import List, NamedTuple, Sequence, TextIO

from seqlab.utils.typing import PathLike


class Sample(NamedTuple):
    """A sample is a tokenized sentence and its gold tags.

    Only the word and gold tag columns are kept.
    """
    words: List[str]
    tags: List[str]


def load(path: PathLike, tag_column: int = 1) -> List[Sample]:
    """Loads the given CoNLL-style file.

    The file has one token per line with whitespace-separated columns. The
    word is always the first column. Sentences are terminated by blank lines.

    Args:
        path (PathLike): The path to the file.
        tag_column (int, optional): Column holding the gold tag.
            Defaults to 1.

    Raises:
        ValueError: If a non-blank line does not have the tag column.

    Returns:
        List[Sample]: Parsed samples from the file, one per sentence.

    """
    samples = []
    with pathlib.Path(path).open(encoding='utf-8') as file:
        words: List[str] = []
        tags: List[str] = []
        for number, line in enumerate(file, start=1):
            if line.strip():
                components = line.split()
                if len(components) <= tag_column:
                    raise ValueError(f'malformed line {number} in {path}: '
                                     f'{line.rstrip()!r}')
                words.append(components[0])
                tags.append(components[tag_column])
            elif words:
                samples.append(Sample(words, tags))
                words, tags = [], []
        if words:
            samples.append(Sample(words, tags))
    return samples


def print_conll_output(file: TextIO, words: Sequence[str],
                       golds: Sequence[str], preds: Sequence[str]) -> None:
    """Write one sentence of predictions in CoNLL format.

    Each token is written as `<word> <gold> <pred>` and the sentence is
    followed by a blank line, so the output can be scored like training data.

    Args:
        file (TextIO): Writable text handle.
        words (Sequence[str]): The words in the sentence.
        golds (Sequence[str]): Gold tags, one per word.
        preds (Sequence[str]): Predicted tags, one per word.

    """
    assert len(words) == len(golds) == len(preds), 'misaligned sentence?'
    for word, gold, pred in zip(words, golds, preds):
        file.write(f'{word} {gold} {pred}\n')
    file.write('\n')
