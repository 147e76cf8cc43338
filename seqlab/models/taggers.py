"""Defines the multi-task tagger that owns every learned parameter."""

from typing import Dict, List, Mapping, Sequence

from seqlab import vocab
from seqlab.models import crf, embedders, encoders

import torch
from torch import nn


class MultiTaskTagger(nn.Module):
    """Several CRF heads on top of one shared encoder.

    Gradients from every head flow into the shared encoder and embedding
    tables. Parameters are only ever written by the optimizer that trains
    this module.
    """

    def __init__(self,
                 composer: embedders.EmbeddingComposer,
                 encoder: encoders.SequenceEncoder,
                 heads: Mapping[str, crf.CRF]):
        """Initialize the tagger.

        Args:
            composer (embedders.EmbeddingComposer): Embeds words.
            encoder (encoders.SequenceEncoder): Shared sentence encoder.
            heads (Mapping[str, crf.CRF]): One head per task, keyed by task
                name.

        Raises:
            ValueError: If there are no heads or if they do not match the
                encoder.

        """
        super().__init__()
        if not heads:
            raise ValueError('need at least one task head')
        if composer.dimension != encoder.in_features:
            raise ValueError(f'composer outputs {composer.dimension} '
                             f'features, encoder expects '
                             f'{encoder.in_features}')
        for name, head in heads.items():
            if head.in_features != encoder.out_features:
                raise ValueError(f'head {name} expects {head.in_features} '
                                 f'features, encoder outputs '
                                 f'{encoder.out_features}')

        self.composer = composer
        self.encoder = encoder
        self.heads = nn.ModuleDict(dict(heads))

    @property
    def tasks(self) -> List[str]:
        """Returns the task names in construction order."""
        return list(self.heads.keys())

    def encode(self, words: Sequence[str]) -> torch.Tensor:
        """Returns shape (len(words), encoder.out_features) hidden vectors."""
        return self.encoder(self.composer(words))

    def loss(self, task: str, words: Sequence[str],
             tags: Sequence[str]) -> torch.Tensor:
        """Compute the CRF loss of the gold tags for one sentence.

        Args:
            task (str): Name of the task head.
            words (Sequence[str]): The sentence.
            tags (Sequence[str]): Its gold tags.

        Returns:
            torch.Tensor: Scalar loss.

        """
        assert len(words) == len(tags), 'words/tags misaligned?'
        head = self.heads[task]
        return head.loss(self.encode(words), vocab.to_tag_ids(tags, head.tags))

    def predict(self, task: str, words: Sequence[str]) -> List[int]:
        """Returns predicted tag indices for the sentence."""
        with torch.no_grad():
            hidden = self.encode(words)
        return self.heads[task].decode(hidden)

    def tag(self, task: str, words: Sequence[str]) -> List[str]:
        """Returns predicted tags for the sentence."""
        head = self.heads[task]
        return [head.tags.index_to_tag(index)
                for index in self.predict(task, words)]


def build(embeddings: vocab.Embeddings,
          chars: vocab.CharVocabulary,
          tags: Mapping[str, vocab.TagDictionary],
          inference: Mapping[str, crf.InferenceMode],
          char_embedding_dim: int = 32,
          char_rnn_dim: int = 16,
          hidden_dim: int = 128) -> MultiTaskTagger:
    """Construct a tagger with freshly initialized parameters.

    Args:
        embeddings (vocab.Embeddings): Pretrained word vectors.
        chars (vocab.CharVocabulary): Known characters.
        tags (Mapping[str, vocab.TagDictionary]): Tags for each task.
        inference (Mapping[str, crf.InferenceMode]): Decoding strategy for
            each task. Must have the same keys as `tags`.
        char_embedding_dim (int, optional): See `EmbeddingComposer`.
            Defaults to 32.
        char_rnn_dim (int, optional): See `EmbeddingComposer`.
            Defaults to 16.
        hidden_dim (int, optional): See `SequenceEncoder`. Defaults to 128.

    Raises:
        ValueError: If `tags` and `inference` name different tasks.

    Returns:
        MultiTaskTagger: The tagger.

    """
    if set(tags) != set(inference):
        raise ValueError(f'tasks with tags {sorted(tags)} differ from tasks '
                         f'with inference modes {sorted(inference)}')
    composer = embedders.EmbeddingComposer(
        embeddings,
        chars,
        char_embedding_dim=char_embedding_dim,
        char_rnn_dim=char_rnn_dim)
    encoder = encoders.SequenceEncoder(composer.dimension,
                                       hidden_dim=hidden_dim)
    heads: Dict[str, crf.CRF] = {
        name: crf.CRF(encoder.out_features, tags[name], inference[name])
        for name in tags
    }
    return MultiTaskTagger(composer, encoder, heads)
