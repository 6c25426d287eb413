"""
Tests for optimizer/learner.py and optimizer/config.py.
"""

import pytest

from domain import BlocksWorld
from optimizer.config import LearnerConfig
from optimizer.learner import CrossEntropyLearner
from optimizer.policy import Policy


@pytest.fixture
def config():
    return LearnerConfig(seed=1, min_population=4, selection_ratio=0.5)


@pytest.fixture
def env():
    return BlocksWorld(num_blocks=3, goal="onab", max_steps=10, seed=1)


@pytest.fixture
def learner(blocks, config):
    return CrossEntropyLearner(blocks, config)


class TestObserve:
    def test_first_state_creates_move_slot(self, learner, env):
        covered = learner.observe(env.start())
        assert len(learner.distribution) == 1
        slot = learner.distribution.slot_for("move")
        assert slot.seed_rule_id is not None
        assert learner.distribution.rule(slot.seed_rule_id) is covered["move"][0]

    def test_later_states_reuse_slot(self, learner, env):
        learner.observe(env.start())
        learner.observe(env.start())
        assert len(learner.distribution) == 1
        assert list(learner.covered_rules()) == ["move"]


class TestEpisodes:
    def test_episode_return_bounded_by_steps(self, learner, env):
        policy, total = learner.run_episode(env, max_steps=10)
        assert isinstance(policy, Policy)
        assert -10.0 <= total < 0.0
        assert learner.distribution.slot_for("move") is not None

    def test_frozen_learner_does_not_cover(self, learner, env):
        learner.freeze()
        learner.run_episode(env, Policy(), max_steps=5)
        assert len(learner.distribution) == 0
        assert learner.pregoals.get("move") is None

    def test_random_action_when_no_rule_fires(self, learner, env):
        obs    = env.start()
        action = learner.choose_action(Policy(), obs)
        assert action in obs.valid_actions["move"]


class TestIterations:
    """Elite archive, population heuristic and convergence check."""

    def test_population_and_elites(self, learner, env):
        assert learner.population() == 4
        learner.observe(env.start())
        assert learner.population() == 4
        assert learner.num_elites() == 2

    def test_end_iteration_selects_elites(self, learner, env):
        learner.observe(env.start())
        for value in (-1.0, -2.0, -3.0, -4.0):
            learner.record_sample(Policy([(0, 0)], {0}), value)
        assert learner.ready_for_update()

        report = learner.end_iteration()
        assert report.num_elites == 2
        assert [pv.value for pv in learner.elites] == [-1.0, -2.0]
        assert learner.samples == []
        assert learner.iteration == 1
        assert not learner.is_converged()

    def test_equal_elites_mean_convergence(self, learner, env):
        learner.observe(env.start())
        for _ in range(4):
            learner.record_sample(Policy([(0, 0)], {0}), -2.0)
        learner.end_iteration()
        assert learner.is_converged()

    def test_stale_elites_leave_archive(self, learner, env):
        learner.observe(env.start())
        learner.record_sample(Policy([(0, 0)], {0}), -1.0)
        learner.end_iteration()
        assert [pv.iteration for pv in learner.elites] == [0]

        for _ in range(learner.config.stale_limit):
            learner.record_sample(Policy([(0, 0)], {0}), -5.0)
            learner.end_iteration()
        assert all(pv.value == -5.0 for pv in learner.elites)

    def test_run_iteration(self, learner, env):
        report = learner.run_iteration(env, max_steps=10)
        assert report.num_elites >= 1
        assert learner.iteration == 1
        assert learner.distribution.is_normalised()

    def test_best_policy_restores_mode(self, learner, env):
        learner.observe(env.start())
        policy = learner.best_policy()
        assert policy.choices == [(0, learner.distribution.slot_for("move").seed_rule_id)]
        assert not learner.distribution.frozen


class TestLearnerConfig:
    def test_defaults(self):
        config = LearnerConfig()
        assert config.step_size == 0.6
        assert config.selection_ratio == 0.05
        assert config.pruning_iterations == 3
        assert config.stale_limit == 20

    @pytest.mark.parametrize("kwargs", [
        {"step_size": 0.0},
        {"step_size": 1.5},
        {"selection_ratio": 0.0},
        {"pruning_iterations": 0},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            LearnerConfig(**kwargs)

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("CERRLA_STEP_SIZE", "0.3")
        monkeypatch.setenv("CERRLA_SEED", "7")
        monkeypatch.setenv("CERRLA_ABSENT_CHOICE", "yes")
        config = LearnerConfig.from_env()
        assert config.step_size == 0.3
        assert config.seed == 7
        assert config.absent_choice
        assert config.min_population == 10

    def test_from_env_without_seed(self, monkeypatch):
        monkeypatch.delenv("CERRLA_SEED", raising=False)
        assert LearnerConfig.from_env().seed is None
