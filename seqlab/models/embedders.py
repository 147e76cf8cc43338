"""Turns raw words into fixed-size vectors."""

from typing import Sequence

from seqlab import vocab

import torch
from torch import nn


class EmbeddingComposer(nn.Module):
    """Concatenates a word embedding with a character-level encoding.

    The character encoding is the final state of a forward character LSTM
    concatenated with the final state of a backward character LSTM. Each word
    is encoded from a fresh recurrent state.
    """

    def __init__(self,
                 embeddings: vocab.Embeddings,
                 chars: vocab.CharVocabulary,
                 char_embedding_dim: int = 32,
                 char_rnn_dim: int = 16):
        """Initialize the embedding tables and character LSTMs.

        Args:
            embeddings (vocab.Embeddings): Pretrained word vectors. They are
                copied and fine-tuned during training.
            chars (vocab.CharVocabulary): Characters to embed.
            char_embedding_dim (int, optional): Dimensionality of character
                embeddings. Defaults to 32.
            char_rnn_dim (int, optional): Hidden size of each character LSTM.
                Defaults to 16.

        """
        super().__init__()
        self.vocabulary = embeddings.vocabulary
        self.chars = chars
        self.char_rnn_dim = char_rnn_dim

        self.word_embedding = nn.Embedding.from_pretrained(
            embeddings.vectors.clone(), freeze=False)
        self.char_embedding = nn.Embedding(max(len(chars), 1),
                                           char_embedding_dim)
        self.char_forward = nn.LSTM(char_embedding_dim, char_rnn_dim)
        self.char_backward = nn.LSTM(char_embedding_dim, char_rnn_dim)

    @property
    def dimension(self) -> int:
        """Returns the dimensionality of composed embeddings."""
        return self.word_embedding.embedding_dim + 2 * self.char_rnn_dim

    def compose(self, word: str) -> torch.Tensor:
        """Embed a single word.

        Args:
            word (str): The word. Unknown words use the reserved row 0, and
                unknown characters are skipped.

        Returns:
            torch.Tensor: Shape (dimension,) word embedding.

        """
        device = self.word_embedding.weight.device
        index = torch.tensor(self.vocabulary[word], device=device)
        word_vector = self.word_embedding(index)

        char_ids = self.chars(word)
        if char_ids:
            embedded = self.char_embedding(
                torch.tensor(char_ids, dtype=torch.long, device=device))
            forwards, _ = self.char_forward(embedded)
            backwards, _ = self.char_backward(embedded.flip(0))
            forward_state, backward_state = forwards[-1], backwards[-1]
        else:
            forward_state = word_vector.new_zeros(self.char_rnn_dim)
            backward_state = word_vector.new_zeros(self.char_rnn_dim)

        return torch.cat([word_vector, forward_state, backward_state])

    def forward(self, words: Sequence[str]) -> torch.Tensor:
        """Embed every word in the sentence.

        Args:
            words (Sequence[str]): The sentence.

        Returns:
            torch.Tensor: Shape (len(words), dimension) embeddings.

        """
        assert words, 'cannot embed empty sentence'
        return torch.stack([self.compose(word) for word in words])
