"""Word, character, and tag dictionaries.

Word vocabularies are built from a pretrained embedding file, optionally
restricted to words that are frequent enough according to a document frequency
file. Character vocabularies and tag dictionaries are built from training data.
"""

import logging
import pathlib
from typing import (Dict, Iterable, List, Mapping, NamedTuple, Optional,
                    Sequence, Set, cast)

from seqlab import conll
from seqlab.utils.typing import PathLike

import numpy as np
import torch

# Reserved symbols.
UNK_WORD = '<UNK>'
START_TAG = '<START>'
STOP_TAG = '<STOP>'


def load_words_to_use(path: Optional[PathLike],
                      min_doc_freq: int) -> Optional[Set[str]]:
    """Load the set of words that are frequent enough to keep.

    Args:
        path (Optional[PathLike]): Document frequency file, one
            `<word> <count>` pair per line. If None, no restriction applies.
        min_doc_freq (int): Words must appear in strictly more than this
            many documents to be kept.

    Raises:
        ValueError: If a line does not have exactly two fields or if the
            count is not an integer.

    Returns:
        Optional[Set[str]]: The words to keep, or None if no file was given.

    """
    if path is None:
        return None

    log = logging.getLogger(__name__)
    log.info('loading words to use from %s with min frequency %d', path,
             min_doc_freq)

    words, total = set(), 0
    with pathlib.Path(path).open(encoding='utf-8') as file:
        for number, line in enumerate(file, start=1):
            total += 1
            tokens = line.split()
            if len(tokens) != 2:
                raise ValueError(f'malformed line {number} in {path}: '
                                 f'expected 2 fields, got {len(tokens)}')
            word, count = tokens
            try:
                frequency = int(count)
            except ValueError:
                raise ValueError(f'malformed line {number} in {path}: '
                                 f'count is not an integer: {count!r}')
            if frequency > min_doc_freq:
                words.add(word)

    log.info('keeping %d of %d words', len(words), total)
    return words


class Vocabulary:
    """Maps words to indices. Index 0 is reserved for unknown words."""

    def __init__(self, words: Iterable[str] = ()):
        """Index the words in order.

        Args:
            words (Iterable[str], optional): Words to index. Duplicates are
                ignored. Defaults to no words.

        """
        self.indexer: Dict[str, int] = {UNK_WORD: 0}
        for word in words:
            if word not in self.indexer:
                self.indexer[word] = len(self.indexer)

    def __getitem__(self, word: str) -> int:
        """Returns index of the word, or 0 if it is unknown."""
        return self.indexer.get(word, 0)

    def __contains__(self, word: object) -> bool:
        """Returns True if the word is known."""
        return word != UNK_WORD and word in self.indexer

    def __len__(self) -> int:
        """Returns number of rows needed for an embedding table."""
        return len(self.indexer)


class Embeddings(NamedTuple):
    """Pretrained vectors paired with the vocabulary that indexes them."""

    vocabulary: Vocabulary
    vectors: torch.Tensor

    @property
    def dimension(self) -> int:
        """Returns the dimensionality of each vector."""
        return self.vectors.shape[-1]


def load_embeddings(path: PathLike,
                    words_to_use: Optional[Set[str]] = None) -> Embeddings:
    """Load pretrained embeddings from a text file.

    Each line has the form `<word> <d1> ... <dn>`. A word2vec style header
    line holding the word count and dimension is skipped.

    Args:
        path (PathLike): Path to the embeddings file.
        words_to_use (Optional[Set[str]], optional): If set, only keep words
            in this set. Matching is case-insensitive. By default, all words
            are kept.

    Raises:
        ValueError: If vectors differ in dimensionality, contain non-numeric
            values, or if no vectors were loaded.

    Returns:
        Embeddings: The vocabulary and a (len(vocabulary), n) tensor whose
            first row is the zero vector for unknown words.

    """
    log = logging.getLogger(__name__)
    log.info('loading embeddings from %s', path)

    keep = None
    if words_to_use is not None:
        keep = {word.lower() for word in words_to_use}

    words: List[str] = []
    vectors: List[np.ndarray] = []
    seen: Set[str] = set()

    def add(number: int, tokens: List[str]) -> None:
        """Keep the vector on this line if its word is wanted."""
        word = tokens[0]
        if keep is not None and word.lower() not in keep:
            return
        # Row 0 always belongs to unknown words.
        if word == UNK_WORD or word in seen:
            return

        try:
            vector = np.array(tokens[1:], dtype=np.float32)
        except ValueError:
            raise ValueError(f'non-numeric vector on line {number} '
                             f'in {path}')
        if vectors and len(vector) != len(vectors[0]):
            raise ValueError(f'line {number} in {path} has dimension '
                             f'{len(vector)}, expected {len(vectors[0])}')

        words.append(word)
        vectors.append(vector)
        seen.add(word)

    # A first line of two integers may be a word2vec header. It is only a
    # header if its second field matches the dimension of the next line.
    header: Optional[List[str]] = None
    with pathlib.Path(path).open(encoding='utf-8') as file:
        for number, line in enumerate(file, start=1):
            if not line.strip():
                continue
            tokens = line.split()
            if number == 1 and len(tokens) == 2 and all(
                    token.isdigit() for token in tokens):
                header = tokens
                continue
            if header is not None:
                if len(tokens) - 1 != int(header[1]):
                    add(1, header)
                header = None
            add(number, tokens)
    if header is not None:
        add(1, header)

    if not vectors:
        raise ValueError(f'no embeddings loaded from {path}')

    vocabulary = Vocabulary(words)
    assert len(vocabulary) == len(vectors) + 1, 'duplicate words?'

    unk = np.zeros_like(vectors[0])
    matrix = torch.from_numpy(np.stack([unk, *vectors]))
    log.info('loaded embeddings for %d words of dimension %d', len(words),
             matrix.shape[-1])
    return Embeddings(vocabulary, matrix)


class CharVocabulary:
    """Maps characters to indices. Unknown characters have no index."""

    def __init__(self, samples: Iterable[conll.Sample]):
        """Index every character seen in the samples.

        Args:
            samples (Iterable[conll.Sample]): Samples to draw characters from.

        """
        self.indexer: Dict[str, int] = {}
        for sample in samples:
            for word in sample.words:
                for char in word:
                    if char not in self.indexer:
                        self.indexer[char] = len(self.indexer)

    def __call__(self, word: str) -> List[int]:
        """Index the characters of the word, skipping unknown ones."""
        return [self.indexer[char] for char in word if char in self.indexer]

    def __len__(self) -> int:
        """Returns the number of known characters."""
        return len(self.indexer)


def from_index_to_string(mapping: Mapping[str, int]) -> List[str]:
    """Invert a dense string-to-index mapping.

    Args:
        mapping (Mapping[str, int]): Maps k strings to the indices 0..k-1.

    Returns:
        List[str]: Length k list whose i'th element maps to i.

    """
    assert len(mapping) > 1, 'need at least two entries'
    inverse: List[Optional[str]] = [None] * (max(mapping.values()) + 1)
    for string, index in mapping.items():
        inverse[index] = string
    assert all(string is not None for string in inverse), 'gap in indices?'
    return cast(List[str], inverse)


class TagDictionary:
    """Bidirectional map between tags and indices, plus START and STOP.

    Real tags are indexed in order of first appearance. START and STOP are
    always the last two indices.
    """

    def __init__(self, tags: Iterable[str]):
        """Index the tags.

        Args:
            tags (Iterable[str]): Tags to index, possibly with duplicates.

        Raises:
            ValueError: If a reserved tag appears among the tags.

        """
        indexer: Dict[str, int] = {}
        for tag in tags:
            if tag in (START_TAG, STOP_TAG):
                raise ValueError(f'reserved tag in data: {tag}')
            if tag not in indexer:
                indexer[tag] = len(indexer)
        indexer[START_TAG] = len(indexer)
        indexer[STOP_TAG] = len(indexer)

        self._indexer = indexer
        self._tags = tuple(from_index_to_string(indexer))

    @classmethod
    def from_samples(cls, samples: Iterable[conll.Sample]) -> 'TagDictionary':
        """Build a dictionary from every gold tag in the samples."""
        return cls(tag for sample in samples for tag in sample.tags)

    @property
    def start(self) -> int:
        """Returns the index of the START pseudo-tag."""
        return self._indexer[START_TAG]

    @property
    def stop(self) -> int:
        """Returns the index of the STOP pseudo-tag."""
        return self._indexer[STOP_TAG]

    @property
    def tags(self) -> Sequence[str]:
        """Returns all tags, START and STOP included, in index order."""
        return self._tags

    def tag_to_index(self, tag: str) -> int:
        """Returns the index of the tag.

        Raises:
            KeyError: If the tag was never indexed.

        """
        return self._indexer[tag]

    def index_to_tag(self, index: int) -> str:
        """Returns the tag with the given index."""
        return self._tags[index]

    def __contains__(self, tag: object) -> bool:
        """Returns True if the tag is indexed."""
        return tag in self._indexer

    def __len__(self) -> int:
        """Returns the tag count, START and STOP included."""
        return len(self._tags)


def to_tag_ids(tags: Sequence[str], dictionary: TagDictionary) -> List[int]:
    """Map each tag to its index in the dictionary."""
    return [dictionary.tag_to_index(tag) for tag in tags]
