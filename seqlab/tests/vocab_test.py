"""Unit tests for the vocab module."""

import pathlib
import tempfile

from seqlab import conll, vocab

import pytest
import torch

EMBEDDINGS = '''\
the 0.1 0.2 0.3
Cat 1.0 2.0 3.0
sat -1 -2 -3
mat 4 5 6
'''

DOC_FREQUENCIES = '''\
the 1000
cat 50
sat 7
mat 6
'''

SAMPLES = (
    conll.Sample(['the', 'cat'], ['DT', 'NN']),
    conll.Sample(['a', 'dog'], ['DT', 'NN']),
    conll.Sample(['sat'], ['VBD']),
)


@pytest.fixture
def tempdir():
    """Yields a temporary directory."""
    with tempfile.TemporaryDirectory() as tempdir:
        yield pathlib.Path(tempdir)


@pytest.fixture
def embeddings_path(tempdir):
    """Returns path to a fake embeddings file."""
    path = tempdir / 'embeddings.txt'
    path.write_text(EMBEDDINGS, encoding='utf-8')
    return path


@pytest.fixture
def doc_frequencies_path(tempdir):
    """Returns path to a fake document frequency file."""
    path = tempdir / 'docfreq.txt'
    path.write_text(DOC_FREQUENCIES, encoding='utf-8')
    return path


def test_load_words_to_use(doc_frequencies_path):
    """Test load_words_to_use keeps words strictly above the threshold."""
    actual = vocab.load_words_to_use(doc_frequencies_path, 7)
    assert actual == {'the', 'cat'}


def test_load_words_to_use_no_file():
    """Test load_words_to_use returns None without a file."""
    assert vocab.load_words_to_use(None, 100) is None


@pytest.mark.parametrize('contents,match', (
    ('the 1000\ncat\n', '.*line 2.*expected 2 fields.*'),
    ('the 1000 extra\n', '.*line 1.*expected 2 fields.*'),
    ('the many\n', '.*not an integer.*'),
))
def test_load_words_to_use_malformed(tempdir, contents, match):
    """Test load_words_to_use dies on malformed lines."""
    path = tempdir / 'bad.txt'
    path.write_text(contents, encoding='utf-8')
    with pytest.raises(ValueError, match=match):
        vocab.load_words_to_use(path, 0)


def test_load_embeddings(embeddings_path):
    """Test load_embeddings reads every vector after the unknown row."""
    actual = vocab.load_embeddings(embeddings_path)
    assert actual.dimension == 3
    assert len(actual.vocabulary) == 5
    assert actual.vocabulary.indexer == {
        vocab.UNK_WORD: 0,
        'the': 1,
        'Cat': 2,
        'sat': 3,
        'mat': 4,
    }
    assert actual.vectors[0].equal(torch.zeros(3))
    assert actual.vectors[2].equal(torch.tensor([1., 2., 3.]))


def test_load_embeddings_restricted(embeddings_path, doc_frequencies_path):
    """Test load_embeddings keeps restricted words, ignoring case."""
    words = vocab.load_words_to_use(doc_frequencies_path, 7)
    actual = vocab.load_embeddings(embeddings_path, words)
    assert actual.vocabulary.indexer == {vocab.UNK_WORD: 0, 'the': 1, 'Cat': 2}
    assert actual.vectors.shape == (3, 3)


def test_load_embeddings_header(tempdir):
    """Test load_embeddings skips word2vec header."""
    path = tempdir / 'w2v.txt'
    path.write_text('2 3\n' + EMBEDDINGS, encoding='utf-8')
    actual = vocab.load_embeddings(path)
    assert '2' not in actual.vocabulary
    assert len(actual.vocabulary) == 5


def test_load_embeddings_numeric_first_line(tempdir):
    """Test load_embeddings keeps a numeric first line that is not a header."""
    path = tempdir / 'years.txt'
    path.write_text('2019 5\n2020 6\n', encoding='utf-8')
    actual = vocab.load_embeddings(path)
    assert actual.vocabulary.indexer == {
        vocab.UNK_WORD: 0,
        '2019': 1,
        '2020': 2,
    }
    assert actual.vectors[1].equal(torch.tensor([5.]))


def test_load_embeddings_only_numeric_line(tempdir):
    """Test load_embeddings keeps a lone numeric line."""
    path = tempdir / 'year.txt'
    path.write_text('2019 5\n', encoding='utf-8')
    actual = vocab.load_embeddings(path)
    assert '2019' in actual.vocabulary
    assert actual.dimension == 1


def test_load_embeddings_skips_unk(tempdir):
    """Test load_embeddings keeps row 0 for unknown words."""
    path = tempdir / 'unk.txt'
    path.write_text('the 0.1 0.2\n<UNK> 0.3 0.4\ncat 0.5 0.6\n',
                    encoding='utf-8')
    actual = vocab.load_embeddings(path)
    assert actual.vocabulary.indexer == {vocab.UNK_WORD: 0, 'the': 1, 'cat': 2}
    assert actual.vectors.shape == (3, 2)
    assert actual.vectors[0].equal(torch.zeros(2))


def test_load_embeddings_bad_dimension(tempdir):
    """Test load_embeddings dies when dimensions differ."""
    path = tempdir / 'bad.txt'
    path.write_text('the 1 2 3\ncat 1 2\n', encoding='utf-8')
    with pytest.raises(ValueError, match='.*line 2.*dimension 2.*'):
        vocab.load_embeddings(path)


def test_load_embeddings_empty(embeddings_path):
    """Test load_embeddings dies if nothing is kept."""
    with pytest.raises(ValueError, match='no embeddings.*'):
        vocab.load_embeddings(embeddings_path, {'dog'})


def test_vocabulary():
    """Test Vocabulary reserves index 0 for unknown words."""
    vocabulary = vocab.Vocabulary(('the', 'cat', 'the'))
    assert len(vocabulary) == 3
    assert vocabulary['the'] == 1
    assert vocabulary['cat'] == 2
    assert vocabulary['dog'] == 0
    assert 'cat' in vocabulary
    assert 'dog' not in vocabulary
    assert vocab.UNK_WORD not in vocabulary


def test_char_vocabulary():
    """Test CharVocabulary indexes characters in order of appearance."""
    chars = vocab.CharVocabulary(SAMPLES)
    assert chars.indexer == {
        't': 0,
        'h': 1,
        'e': 2,
        'c': 3,
        'a': 4,
        'd': 5,
        'o': 6,
        'g': 7,
        's': 8,
    }
    assert len(chars) == 9


def test_char_vocabulary_call():
    """Test CharVocabulary.__call__ skips unknown characters."""
    chars = vocab.CharVocabulary(SAMPLES)
    assert chars('cozy') == [3, 6]


def test_from_index_to_string():
    """Test from_index_to_string inverts mapping with no gaps."""
    actual = vocab.from_index_to_string({'b': 1, 'a': 0, 'c': 2})
    assert actual == ['a', 'b', 'c']


def test_from_index_to_string_gap():
    """Test from_index_to_string dies on gaps."""
    with pytest.raises(AssertionError, match='gap.*'):
        vocab.from_index_to_string({'a': 0, 'c': 2})


def test_tag_dictionary():
    """Test TagDictionary appends START and STOP after real tags."""
    tags = vocab.TagDictionary.from_samples(SAMPLES)
    assert tags.tags == ('DT', 'NN', 'VBD', vocab.START_TAG, vocab.STOP_TAG)
    assert len(tags) == 5
    assert tags.start == 3
    assert tags.stop == 4
    assert 'NN' in tags
    assert 'JJ' not in tags


def test_tag_dictionary_empty():
    """Test TagDictionary always has START and STOP."""
    tags = vocab.TagDictionary(())
    assert len(tags) == 2
    assert tags.start != tags.stop


def test_tag_dictionary_round_trip():
    """Test TagDictionary maps every tag to an index and back."""
    tags = vocab.TagDictionary.from_samples(SAMPLES)
    for tag in tags.tags:
        assert tags.index_to_tag(tags.tag_to_index(tag)) == tag
    mapping = {tag: tags.tag_to_index(tag) for tag in tags.tags}
    assert vocab.from_index_to_string(mapping) == list(tags.tags)


def test_tag_dictionary_reserved_tag():
    """Test TagDictionary dies when data uses a reserved tag."""
    with pytest.raises(ValueError, match='reserved tag.*'):
        vocab.TagDictionary(('DT', vocab.START_TAG))


def test_to_tag_ids():
    """Test to_tag_ids maps tags to indices."""
    tags = vocab.TagDictionary.from_samples(SAMPLES)
    assert vocab.to_tag_ids(['NN', 'DT', 'VBD'], tags) == [1, 0, 2]
