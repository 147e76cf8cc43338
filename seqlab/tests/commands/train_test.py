"""Functional tests for the train and test commands."""

import pathlib
import tempfile

from seqlab.commands import test as tag_command
from seqlab.commands import train

import pytest
import torch

EMBEDDINGS = '''\
john 0.1 0.2 0.3
mary 0.3 0.2 0.1
lives -0.1 0.0 0.1
in 0.0 0.5 0.0
paris 0.9 0.1 0.4
'''

DOC_FREQUENCIES = '''\
john 10
mary 10
lives 10
in 10
paris 1
'''

NER = '''\
John B-PER
lives O
in O
Paris B-LOC

Mary B-PER
lives O

'''

POS = '''\
John NNP
lives VBZ

Mary NNP
lives VBZ
in IN
Paris NNP
'''

CONFIG = '''\
embeddings: embeddings.txt
doc_frequencies: docfreq.txt
min_word_freq: 5
shards_per_epoch: 2
number_of_tasks: 2
epochs: 2
char_embedding_dim: 4
char_rnn_dim: 3
hidden_dim: 5
patience: 1
tasks:
  - name: ner
    train: ner.txt
    dev: ner.txt
    test: ner.txt
    inference: viterbi
  - name: pos
    train: pos.txt
    inference: greedy
    weight: 0.5
'''


@pytest.fixture
def tempdir():
    """Yields a directory holding a config and all of its data."""
    with tempfile.TemporaryDirectory() as tempdir:
        root = pathlib.Path(tempdir)
        for name, contents in (('embeddings.txt', EMBEDDINGS),
                               ('docfreq.txt', DOC_FREQUENCIES),
                               ('ner.txt', NER), ('pos.txt', POS),
                               ('mtl.yaml', CONFIG)):
            (root / name).write_text(contents, encoding='utf-8')
        yield root


@pytest.fixture(autouse=True)
def wandb(mocker):
    """Keeps tests from talking to wandb."""
    mocker.patch('seqlab.learning.wandb')
    return mocker.patch('seqlab.commands.train.wandb')


def run_train(tempdir):
    """Run the train command on the fake config."""
    options = train.parser().parse_args([
        str(tempdir / 'mtl.yaml'),
        '--model-dir',
        str(tempdir / 'model'),
        '--wandb-mode',
        'disabled',
        '--wandb-dir',
        str(tempdir / 'wandb'),
    ])
    train.run(options)
    return tempdir / 'model'


def test_train_run(tempdir, wandb):
    """Test train.run writes a model and test predictions."""
    model_dir = run_train(tempdir)

    assert (model_dir / 'model.pth').exists()
    wandb.save.assert_called_once_with(str(model_dir / 'model.pth'))
    assert wandb.init.call_count == 1
    assert wandb.init.call_args.kwargs['mode'] == 'disabled'

    preds = (model_dir / 'ner.test.preds').read_text(encoding='utf-8')
    sentences = preds.strip().split('\n\n')
    assert len(sentences) == 2
    first = [line.split() for line in sentences[0].split('\n')]
    assert [line[:2] for line in first] == [
        ['John', 'B-PER'],
        ['lives', 'O'],
        ['in', 'O'],
        ['Paris', 'B-LOC'],
    ]
    assert all(len(line) == 3 for line in first)

    # The pos task has no test data.
    assert not (model_dir / 'pos.test.preds').exists()


def test_train_run_model_is_loadable(tempdir):
    """Test train.run saves a model that tags with every head."""
    model_dir = run_train(tempdir)
    model = torch.load(model_dir / 'model.pth', weights_only=False)
    assert model.tasks == ['ner', 'pos']
    assert len(model.tag('pos', ['Mary', 'sleeps'])) == 2

    # paris falls below the document frequency threshold.
    assert 'paris' not in model.composer.vocabulary
    assert 'john' in model.composer.vocabulary


def test_test_run(tempdir):
    """Test test.run writes predictions for the requested head."""
    model_dir = run_train(tempdir)
    output = tempdir / 'pos.preds'
    options = tag_command.parser().parse_args([
        str(model_dir / 'model.pth'),
        'pos',
        str(tempdir / 'pos.txt'),
        '--output',
        str(output),
    ])
    tag_command.run(options)

    lines = output.read_text(encoding='utf-8').split('\n')
    assert lines[0].split()[:2] == ['John', 'NNP']
    assert lines[2] == ''
    assert len([line for line in lines if line]) == 6


def test_test_run_default_output(tempdir):
    """Test test.run writes next to the data file by default."""
    model_dir = run_train(tempdir)
    options = tag_command.parser().parse_args(
        [str(model_dir / 'model.pth'), 'ner',
         str(tempdir / 'ner.txt')])
    tag_command.run(options)
    assert (tempdir / 'ner.preds').exists()


def test_test_run_unknown_task(tempdir):
    """Test test.run dies when the model has no such head."""
    model_dir = run_train(tempdir)
    options = tag_command.parser().parse_args(
        [str(model_dir / 'model.pth'), 'chunk',
         str(tempdir / 'ner.txt')])
    with pytest.raises(ValueError, match='unknown task: chunk.*'):
        tag_command.run(options)
