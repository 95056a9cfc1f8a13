import pytest

from splitforest.config import OnlineTreeLearnerConfig, TreeLearnerConfig


def test_config_defaults():
    cfg = TreeLearnerConfig()
    assert cfg.num_features == -1
    assert cfg.max_depth == 100
    assert cfg.min_split_examples == 3
    assert cfg.min_child_split_examples == 1
    assert cfg.smoothing == 1.0
    assert cfg.use_bootstrap is False


def test_resolve_defaults_from_data():
    cfg = TreeLearnerConfig()
    assert cfg.resolve_num_features(16) == 4
    assert cfg.resolve_num_features(1) == 1
    assert cfg.resolve_num_bootstrap_examples(250) == 250
    explicit = TreeLearnerConfig(num_features=2, num_bootstrap_examples=10)
    assert explicit.resolve_num_features(16) == 2
    assert explicit.resolve_num_bootstrap_examples(250) == 10


def test_online_config_extends_batch_config():
    cfg = OnlineTreeLearnerConfig(num_thresholds=5, max_depth=4)
    assert isinstance(cfg, TreeLearnerConfig)
    assert cfg.num_thresholds == 5
    assert cfg.max_depth == 4
    assert cfg.bootstrap_lambda == 1.0


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_depth": -1},
        {"min_split_examples": -2},
        {"smoothing": -0.5},
        {"projection_sparsity": 0},
    ],
)
def test_invalid_batch_config_rejected(kwargs):
    with pytest.raises(ValueError):
        TreeLearnerConfig(**kwargs).validate()


@pytest.mark.parametrize("kwargs", [{"num_thresholds": 0}, {"bootstrap_lambda": -1.0}])
def test_invalid_online_config_rejected(kwargs):
    with pytest.raises(ValueError):
        OnlineTreeLearnerConfig(**kwargs).validate()
