import numpy as np
import pytest

from decisionjungle.data import TrainingExample, TrainingSet, load_data_points, load_examples
from decisionjungle.exceptions import ConfigurationError, DataFormatError


def test_load_examples_skips_blank_lines(tmp_path) -> None:
    path = tmp_path / "train.csv"
    path.write_text("0,1.5,2.0\n\n2,-1,3e-1\n1,0,0\n")
    training_set = load_examples(path)

    assert len(training_set) == 3
    assert training_set.feature_dimension == 2
    assert training_set.class_count == 3
    np.testing.assert_array_equal(training_set.labels, [0, 2, 1])
    np.testing.assert_allclose(training_set.features[1], [-1.0, 0.3])


def test_load_data_points(tmp_path) -> None:
    path = tmp_path / "points.csv"
    path.write_text("1.0,2.0\n3.0,4.0\n")
    points = load_data_points(path)
    np.testing.assert_allclose(points, [[1.0, 2.0], [3.0, 4.0]])


@pytest.mark.parametrize(
    "content",
    [
        "1\n",
        "0,1.0\nx,2.0\n",
        "0,1.0\n1,abc\n",
        "0,1.0,2.0\n1,3.0\n",
    ],
)
def test_malformed_files_fail_whole_load(tmp_path, content) -> None:
    path = tmp_path / "bad.csv"
    path.write_text(content)
    with pytest.raises(DataFormatError):
        load_examples(path)


def test_missing_file_raises_os_error(tmp_path) -> None:
    with pytest.raises(OSError):
        load_examples(tmp_path / "missing.csv")


def test_training_set_iteration_and_examples() -> None:
    examples = [TrainingExample(np.array([0.0, 1.0]), 1), TrainingExample(np.array([2.0, 3.0]), 0)]
    training_set = TrainingSet.from_examples(examples)
    items = list(training_set)
    assert [item.class_label for item in items] == [1, 0]
    np.testing.assert_array_equal(items[1].data_point, [2.0, 3.0])


def test_examples_must_share_dimension() -> None:
    examples = [TrainingExample(np.array([0.0, 1.0]), 1), TrainingExample(np.array([2.0]), 0)]
    with pytest.raises(ConfigurationError):
        TrainingSet.from_examples(examples)


def test_non_finite_and_non_integer_labels_rejected() -> None:
    with pytest.raises(ConfigurationError):
        TrainingSet.from_arrays(np.array([[np.nan, 1.0]]), np.array([0]))
    with pytest.raises(ConfigurationError):
        TrainingSet.from_arrays(np.array([[0.0, 1.0]]), np.array([0.5]))


def test_examples_are_read_only_views() -> None:
    training_set = TrainingSet.from_arrays(np.array([[0.0, 1.0], [2.0, 3.0]]), np.array([0, 1]))
    example = training_set[1]
    assert not example.data_point.flags.writeable
    with pytest.raises(ValueError):
        example.data_point[0] = 9.0
    np.testing.assert_array_equal(training_set.features[1], [2.0, 3.0])
    assert training_set.features.flags.writeable
