"""Some common type aliases."""
import pathlib
from typing import Sequence, Union

import torch

PathLike = Union[str, pathlib.Path]
Scores = Union[torch.Tensor, Sequence[Sequence[float]]]
