"""Defines the sentence encoder shared by all task heads."""

import torch
from torch import nn


class SequenceEncoder(nn.Module):
    """A bidirectional LSTM over composed word embeddings."""

    def __init__(self,
                 in_features: int,
                 hidden_dim: int = 128,
                 num_layers: int = 1):
        """Initialize the LSTM.

        Args:
            in_features (int): Dimensionality of input embeddings.
            hidden_dim (int, optional): Hidden size in each direction.
                Defaults to 128.
            num_layers (int, optional): Number of stacked layers.
                Defaults to 1.

        """
        super().__init__()
        self.in_features = in_features
        self.hidden_dim = hidden_dim
        self.lstm = nn.LSTM(in_features,
                            hidden_dim,
                            num_layers=num_layers,
                            bidirectional=True)

    @property
    def out_features(self) -> int:
        """Returns dimensionality of each output vector."""
        return 2 * self.hidden_dim

    def forward(self, inputs: torch.Tensor) -> torch.Tensor:
        """Encode one sentence.

        Args:
            inputs (torch.Tensor): Shape (L, in_features) embeddings.

        Raises:
            ValueError: If the input is misshapen.

        Returns:
            torch.Tensor: Shape (L, 2 * hidden_dim) tensor. Each row is the
                forward state concatenated with the backward state.

        """
        if len(inputs.shape) != 2:
            raise ValueError(f'expected 2D tensor, got {len(inputs.shape)}D')
        features = inputs.shape[-1]
        if features != self.in_features:
            raise ValueError(f'expected {self.in_features} input features, '
                             f'got {features}')
        outputs, _ = self.lstm(inputs)
        return outputs
