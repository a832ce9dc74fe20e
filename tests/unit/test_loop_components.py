"""Unit tests for the change notifier, replan scheduler and motion executor"""

import os
import sys

import numpy as np
import pytest
from unittest.mock import MagicMock

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from gridnav.environment.grid_world import CostGrid, GridWorld, Pose, CellChange
from gridnav.environment.grid_environment import GridEnvironment
from gridnav.planning.global_planner.planner_interface import InvalidationCapability
from gridnav.planning.integration.change_notifier import ChangeNotifier, InvalidationOutcome
from gridnav.planning.integration.replan_scheduler import ReplanScheduler, TimingHistogram
from gridnav.planning.integration.execution_monitor import MotionExecutor
from gridnav.utils.exceptions import UnsafeMoveError, DesynchronizationError


@pytest.fixture
def world_and_env():
    costs = np.zeros((5, 5), dtype=np.uint8)
    costs[2, 2] = 255
    world = GridWorld(CostGrid.from_array(costs, obstacle_threshold=1))
    env = GridEnvironment(world.belief, connectivity=8, start=(0, 0), goal=(4, 4))
    return world, env


def mock_planner(*capabilities):
    planner = MagicMock()
    planner.name = "mock"
    planner.supports.side_effect = lambda capability: capability in capabilities
    planner.set_start.return_value = True
    return planner


class TestChangeNotifier:
    """Tests for ChangeNotifier capability selection"""

    def test_empty_change_set_is_noop(self, world_and_env):
        world, env = world_and_env
        planner = mock_planner(InvalidationCapability.FULL, InvalidationCapability.TARGETED)
        notifier = ChangeNotifier(world, env, planner)

        assert notifier.notify([]) == InvalidationOutcome.NONE
        planner.invalidate_all.assert_not_called()
        planner.invalidate_predecessors_of.assert_not_called()
        assert notifier.get_statistics()['cells_updated'] == 0

    def test_targeted_preferred(self, world_and_env):
        world, env = world_and_env
        planner = mock_planner(InvalidationCapability.FULL, InvalidationCapability.TARGETED)
        notifier = ChangeNotifier(world, env, planner)

        outcome = notifier.notify([CellChange(2, 2, 255)])

        assert outcome == InvalidationOutcome.TARGETED
        planner.invalidate_all.assert_not_called()
        planner.invalidate_predecessors_of.assert_called_once_with(
            env.predecessors_of_changed_cells([(2, 2)])
        )
        assert world.believed_cost(2, 2) == 255
        assert notifier.get_statistics()['states_invalidated'] == 9

    def test_full_only(self, world_and_env):
        world, env = world_and_env
        planner = mock_planner(InvalidationCapability.FULL)
        notifier = ChangeNotifier(world, env, planner)

        assert notifier.notify([CellChange(2, 2, 255)]) == InvalidationOutcome.FULL
        planner.invalidate_all.assert_called_once_with()
        planner.invalidate_predecessors_of.assert_not_called()

    def test_no_capability_still_updates_belief(self, world_and_env):
        world, env = world_and_env
        planner = mock_planner()
        notifier = ChangeNotifier(world, env, planner)

        assert notifier.notify([CellChange(2, 2, 255)]) == InvalidationOutcome.UNSUPPORTED
        assert world.believed_cost(2, 2) == 255
        assert env.cost(2, 2) == 255
        planner.invalidate_all.assert_not_called()
        planner.invalidate_predecessors_of.assert_not_called()


class TestTimingHistogram:
    """Tests for TimingHistogram bucketing"""

    @pytest.mark.parametrize("elapsed,bucket", [
        (1.5, 'over_1s'),
        (1.0, 'over_0p5s'),
        (0.7, 'over_0p5s'),
        (0.5, 'over_0p1s'),
        (0.1, 'over_0p05s'),
        (0.05, 'below_0p05s'),
        (0.0, 'below_0p05s'),
    ])
    def test_exclusive_buckets(self, elapsed, bucket):
        histogram = TimingHistogram()
        histogram.record(elapsed)
        counts = histogram.as_dict()
        assert counts[bucket] == 1
        assert sum(counts.values()) == 1

    def test_summary_line(self):
        histogram = TimingHistogram()
        histogram.record(2.0)
        histogram.record(0.01)
        histogram.record(0.02)
        assert histogram.summary_line() == (
            "stats: plantimes over 1 secs=1; over 0.5 secs=0; over 0.1 secs=0; "
            "over 0.05 secs=0; below 0.05 secs=2"
        )


class TestReplanScheduler:
    """Tests for ReplanScheduler"""

    def test_success_records_timing_and_eps(self):
        planner = mock_planner()
        planner.replan.return_value = (True, [0, 6, 12])
        planner.get_solution_eps.return_value = 1.4
        scheduler = ReplanScheduler(planner)

        result = scheduler.replan_once()

        planner.replan.assert_called_once_with(0.2)
        assert result.success
        assert result.path == [0, 6, 12]
        assert result.solution_eps == 1.4
        assert result.elapsed_seconds >= 0.0
        assert scheduler.histogram.total == 1

    def test_failure_not_retried_or_bucketed(self):
        planner = mock_planner()
        planner.replan.return_value = (False, [])
        scheduler = ReplanScheduler(planner, {"time_budget": 0.05})

        result = scheduler.replan_once()

        assert not result.success
        assert planner.replan.call_count == 1
        planner.get_solution_eps.assert_not_called()
        assert scheduler.histogram.total == 0
        assert scheduler.get_statistics()['failed_replans'] == 1

    def test_budget_override(self):
        planner = mock_planner()
        planner.replan.return_value = (True, [0])
        planner.get_solution_eps.return_value = 1.0
        ReplanScheduler(planner).replan_once(time_budget=1.5)
        planner.replan.assert_called_once_with(1.5)

    def test_rejects_non_positive_budget(self):
        with pytest.raises(ValueError):
            ReplanScheduler(mock_planner(), {"time_budget": 0})


class TestMotionExecutor:
    """Tests for MotionExecutor"""

    def test_single_state_path_does_not_move(self, world_and_env):
        world, env = world_and_env
        planner = mock_planner()
        executor = MotionExecutor(world, env, planner)

        assert executor.execute_step([0]) is None
        assert executor.execute_step([]) is None
        assert executor.pose == Pose(0, 0)
        planner.set_start.assert_not_called()

    def test_step_syncs_environment_and_planner(self, world_and_env):
        world, env = world_and_env
        planner = mock_planner()
        executor = MotionExecutor(world, env, planner)

        pose = executor.execute_step([0, 6, 12])

        assert pose == Pose(1, 1)
        assert env.start_state_id == 6
        planner.set_start.assert_called_once_with(6)

    def test_unsafe_move_rejected(self, world_and_env):
        world, env = world_and_env
        planner = mock_planner()
        executor = MotionExecutor(world, env, planner, pose=Pose(1, 1))
        env.set_start(1, 1)

        with pytest.raises(UnsafeMoveError, match="move into an obstacle"):
            executor.execute_step([6, env.state_of_coord(2, 2)])

        assert executor.pose == Pose(1, 1)
        planner.set_start.assert_not_called()

    def test_planner_refusal_is_desynchronization(self, world_and_env):
        world, env = world_and_env
        planner = mock_planner()
        planner.set_start.return_value = False
        executor = MotionExecutor(world, env, planner)

        with pytest.raises(DesynchronizationError, match="failed to update robot pose"):
            executor.execute_step([0, 1])

    def test_path_not_starting_at_agent(self, world_and_env):
        world, env = world_and_env
        executor = MotionExecutor(world, env, mock_planner())
        with pytest.raises(DesynchronizationError):
            executor.execute_step([1, 2])

    def test_non_adjacent_step(self, world_and_env):
        world, env = world_and_env
        executor = MotionExecutor(world, env, mock_planner())
        with pytest.raises(DesynchronizationError):
            executor.execute_step([0, 2])
