"""Loads multi-task training configurations from YAML files.

A configuration names the pretrained embeddings shared by all tasks, global
training hyperparameters, and a list of tasks. For example:

    embeddings: glove.840B.300d.txt
    doc_frequencies: docfreq.txt
    min_word_freq: 100
    shards_per_epoch: 10
    epochs: 10
    tasks:
      - name: ner
        train: ner/train.txt
        dev: ner/dev.txt
        test: ner/test.txt
        inference: viterbi
      - name: pos
        train: pos/train.txt
        inference: greedy
        weight: 0.5

Relative paths are resolved against the directory holding the file.
"""

import dataclasses
import pathlib
from typing import Any, Mapping, Optional, Tuple

from seqlab.models import crf
from seqlab.utils.typing import PathLike

import yaml

# Seeds parameter initialization and the order of training examples.
RANDOM_SEED = 2522620396


@dataclasses.dataclass(frozen=True)
class TaskConfig:
    """Configuration for a single tagging task."""

    name: str
    train: pathlib.Path
    dev: Optional[pathlib.Path] = None
    test: Optional[pathlib.Path] = None
    inference: crf.InferenceMode = crf.InferenceMode.VITERBI
    weight: float = 1.


@dataclasses.dataclass(frozen=True)
class Config:
    """Global configuration shared by all tasks."""

    embeddings: pathlib.Path
    tasks: Tuple[TaskConfig, ...]
    doc_frequencies: Optional[pathlib.Path] = None
    min_word_freq: int = 100
    shards_per_epoch: int = 10
    epochs: int = 10
    char_embedding_dim: int = 32
    char_rnn_dim: int = 16
    hidden_dim: int = 128
    learning_rate: float = 1e-3
    batch_size: int = 1
    patience: Optional[int] = None
    seed: int = RANDOM_SEED


def _path(value: Any, root: pathlib.Path) -> pathlib.Path:
    """Resolve the path against root unless it is absolute."""
    path = pathlib.Path(value).expanduser()
    return path if path.is_absolute() else root / path


def _check_keys(raw: Mapping[str, Any], required: Tuple[str, ...],
                optional: Tuple[str, ...], where: str) -> None:
    """Raise ValueError if keys are missing or unknown."""
    missing = [key for key in required if key not in raw]
    if missing:
        raise ValueError(f'{where} missing keys: {", ".join(missing)}')
    unknown = sorted(set(raw) - set(required) - set(optional))
    if unknown:
        raise ValueError(f'{where} has unknown keys: {", ".join(unknown)}')


def parse_task(raw: Mapping[str, Any], root: pathlib.Path) -> TaskConfig:
    """Parse one task entry.

    Args:
        raw (Mapping[str, Any]): The task section of the config.
        root (pathlib.Path): Directory to resolve relative paths against.

    Raises:
        ValueError: If keys are missing or unknown, or if the inference mode
            or weight is invalid.

    Returns:
        TaskConfig: The parsed task.

    """
    if not isinstance(raw, Mapping):
        raise ValueError(f'expected task mapping, got {raw!r}')
    where = f'task {raw.get("name", "?")}'
    _check_keys(raw, ('name', 'train'),
                ('dev', 'test', 'inference', 'weight'), where)

    inference = raw.get('inference', crf.InferenceMode.VITERBI.value)
    try:
        mode = crf.InferenceMode(inference)
    except ValueError:
        choices = ', '.join(mode.value for mode in crf.InferenceMode)
        raise ValueError(f'{where} has unknown inference mode {inference!r}; '
                         f'expected one of: {choices}')

    weight = float(raw.get('weight', 1.))
    if weight < 0:
        raise ValueError(f'{where} has negative weight: {weight}')

    return TaskConfig(
        name=str(raw['name']),
        train=_path(raw['train'], root),
        dev=_path(raw['dev'], root) if raw.get('dev') else None,
        test=_path(raw['test'], root) if raw.get('test') else None,
        inference=mode,
        weight=weight,
    )


def parse(raw: Mapping[str, Any], root: Optional[PathLike] = None) -> Config:
    """Parse a configuration mapping.

    Args:
        raw (Mapping[str, Any]): The deserialized configuration.
        root (Optional[PathLike], optional): Directory to resolve relative
            paths against. Defaults to the working directory.

    Raises:
        ValueError: If the configuration is malformed.

    Returns:
        Config: The parsed configuration.

    """
    if not isinstance(raw, Mapping):
        raise ValueError(f'expected config mapping, got {type(raw).__name__}')
    root = pathlib.Path(root) if root is not None else pathlib.Path()

    fields = {field.name: field for field in dataclasses.fields(Config)}
    optional = tuple(name for name in fields
                     if name not in ('embeddings', 'tasks'))
    _check_keys(raw, ('embeddings', 'tasks'), optional + ('number_of_tasks',),
                'config')

    if not isinstance(raw['tasks'], list) or not raw['tasks']:
        raise ValueError('config must list at least one task')
    tasks = tuple(parse_task(task, root) for task in raw['tasks'])

    names = [task.name for task in tasks]
    if len(set(names)) != len(names):
        raise ValueError(f'duplicate task names: {names}')

    expected = raw.get('number_of_tasks')
    if expected is not None and int(expected) != len(tasks):
        raise ValueError(f'number_of_tasks is {expected}, '
                         f'but {len(tasks)} tasks are listed')

    kwargs = {}
    for name in optional:
        if raw.get(name) is None:
            continue
        if name == 'doc_frequencies':
            kwargs[name] = _path(raw[name], root)
        elif name == 'learning_rate':
            kwargs[name] = float(raw[name])
        else:
            kwargs[name] = int(raw[name])

    config = Config(embeddings=_path(raw['embeddings'], root),
                    tasks=tasks,
                    **kwargs)
    for name in ('shards_per_epoch', 'batch_size'):
        if getattr(config, name) < 1:
            raise ValueError(f'{name} must be positive, '
                             f'got {getattr(config, name)}')
    if config.epochs < 0:
        raise ValueError(f'epochs must be nonnegative, got {config.epochs}')
    return config


def load(path: PathLike) -> Config:
    """Load and parse the YAML configuration file at the given path."""
    path = pathlib.Path(path)
    with path.open(encoding='utf-8') as file:
        raw = yaml.safe_load(file)
    return parse(raw, root=path.parent)
