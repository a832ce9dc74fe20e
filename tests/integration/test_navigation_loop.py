"""Integration tests for the sense-replan-move navigation loop"""

import os
import sys

import numpy as np
import pytest
from unittest.mock import MagicMock

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from gridnav.environment.grid_world import CostGrid, GridWorld, Pose
from gridnav.environment.grid_environment import GridEnvironment
from gridnav.environment.map_generator import MapGenerator
from gridnav.environment.world_builder import WorldBuilder
from gridnav.planning.global_planner.planner_interface import InvalidationCapability
from gridnav.planning.global_planner.anytime_planner import AnytimeRepairingPlanner
from gridnav.planning.global_planner.incremental_planner import IncrementalPlanner
from gridnav.planning.integration.navigation_loop import (
    NavigationLoop, NavigationConfig, build_planner, run_navigation
)
from gridnav.utils.data_recorder import SolutionTraceWriter, read_trace
from gridnav.utils.exceptions import (
    ConfigurationError, CycleBudgetExceeded, NoSolutionFound, PlannerRejectedState
)

CONFIG_DIR = os.path.join(os.path.dirname(__file__), "..", "..", "configs")
BUDGET = 2.0


def build_scenario(costs, start, goal, connectivity=8, threshold=1, known=False):
    truth = CostGrid.from_array(np.asarray(costs, dtype=np.uint8), obstacle_threshold=threshold)
    belief = truth.copy() if known else None
    world = GridWorld(truth, belief=belief)
    env = GridEnvironment(world.belief, connectivity=connectivity, start=start, goal=goal)
    return world, env


def single_obstacle_costs():
    costs = np.zeros((5, 5), dtype=np.uint8)
    costs[2, 2] = 255
    return costs


def track_sync(loop):
    """Record (pose, planner start, env start) after every step."""
    snapshots = []
    original = loop.executor.execute_step

    def execute_step(path):
        pose = original(path)
        if pose is not None:
            snapshots.append((loop.environment.state_of_coord(pose.x, pose.y),
                              loop.planner.start_state_id,
                              loop.environment.start_state_id))
        return pose

    loop.executor.execute_step = execute_step
    return snapshots


def path_cost(env, path):
    """Sum of belief edge costs along a path of state ids."""
    total = 0
    for state, successor in zip(path, path[1:]):
        total += dict(env.successors(state))[successor]
    return total


def assert_trajectory_valid(world, env, trajectory):
    for (ax, ay), (bx, by) in zip(trajectory, trajectory[1:]):
        assert env.are_adjacent(env.state_of_coord(ax, ay), env.state_of_coord(bx, by))
    for x, y in trajectory:
        assert world.true_cost(x, y) < world.obstacle_threshold


class TestSingleObstacleScenario:
    """5x5 grid, obstacle at (2, 2), start (0, 0), goal (4, 4)"""

    @pytest.mark.parametrize("planner_class", [AnytimeRepairingPlanner, IncrementalPlanner])
    def test_reaches_goal_around_obstacle(self, tmp_path, planner_class):
        world, env = build_scenario(single_obstacle_costs(), (0, 0), (4, 4))
        planner = planner_class(env)
        trace = SolutionTraceWriter({"trace_path": str(tmp_path / "sol.txt")})
        loop = NavigationLoop(world, env, planner, {"time_budget": BUDGET}, trace_writer=trace)

        result = loop.run()

        assert result.reached_goal
        assert result.final_pose == Pose(4, 4)
        assert (2, 2) not in result.trajectory
        assert world.believed_cost(2, 2) == 255
        assert_trajectory_valid(world, env, result.trajectory)
        assert planner.closed

        records = read_trace(tmp_path / "sol.txt")
        assert len(records) == result.cycles
        assert (records[0].x, records[0].y) == (0, 0)
        lines = (tmp_path / "sol.txt").read_text().splitlines()
        assert lines[-1].startswith("stats: plantimes over 1 secs=")

    def test_first_cycle_notifies_obstacle(self):
        world, env = build_scenario(single_obstacle_costs(), (0, 0), (4, 4))
        planner = AnytimeRepairingPlanner(env)
        loop = NavigationLoop(world, env, planner, {"time_budget": BUDGET})

        result = loop.run()

        notifier_stats = result.statistics['notifier']
        assert notifier_stats['full_invalidations'] == 1
        assert notifier_stats['cells_updated'] == 1
        assert result.histogram.total == result.cycles

    @pytest.mark.parametrize("planner_class", [AnytimeRepairingPlanner, IncrementalPlanner])
    def test_converged_path_cost_never_increases(self, planner_class):
        world, env = build_scenario(single_obstacle_costs(), (0, 0), (4, 4))
        loop = NavigationLoop(world, env, planner_class(env), {"time_budget": BUDGET})
        converged_costs = []
        original = loop.scheduler.replan_once

        def replan_once(time_budget=None):
            result = original(time_budget)
            if result.success and result.solution_eps == 1.0:
                converged_costs.append(path_cost(env, result.path))
            return result

        loop.scheduler.replan_once = replan_once
        result = loop.run()

        assert result.reached_goal
        assert converged_costs
        assert all(later <= earlier for earlier, later in zip(converged_costs, converged_costs[1:]))

    def test_start_and_planner_stay_in_sync(self):
        world, env = build_scenario(single_obstacle_costs(), (0, 0), (4, 4))
        loop = NavigationLoop(world, env, IncrementalPlanner(env), {"time_budget": BUDGET})
        snapshots = track_sync(loop)

        loop.run()

        assert snapshots
        for agent_state, planner_start, env_start in snapshots:
            assert agent_state == planner_start == env_start


class TestKnownMapScenario:
    """Belief equals ground truth from the start"""

    @pytest.mark.parametrize("planner_name", ["anytime", "incremental"])
    def test_no_invalidations(self, planner_name):
        costs = single_obstacle_costs()
        world, env = build_scenario(costs, (0, 0), (4, 4), known=True)
        planner = build_planner(planner_name, env)

        result = NavigationLoop(world, env, planner, {"time_budget": BUDGET}).run()

        assert result.reached_goal
        stats = result.statistics['notifier']
        assert stats['full_invalidations'] == 0
        assert stats['targeted_invalidations'] == 0
        assert stats['notifications'] == 0
        assert result.statistics['scheduler']['total_replans'] == result.cycles

    def test_start_at_goal_runs_no_cycles(self):
        world, env = build_scenario(np.zeros((3, 3)), (1, 1), (1, 1), known=True)
        planner = MagicMock()
        result = NavigationLoop(world, env, planner).run()

        assert result.cycles == 0
        planner.replan.assert_not_called()
        planner.close.assert_called_once_with()


class TestFailureScenarios:
    """Fatal conditions abort the loop and release the planner"""

    def test_replan_failure_aborts_before_moving(self, tmp_path):
        world, env = build_scenario(np.zeros((5, 5)), (0, 0), (4, 4))
        planner = MagicMock()
        planner.name = "failing"
        planner.supports.side_effect = lambda c: c == InvalidationCapability.FULL
        planner.replan.return_value = (False, [])
        trace_path = tmp_path / "sol.txt"
        loop = NavigationLoop(world, env, planner, {"time_budget": 0.05},
                              trace_writer=SolutionTraceWriter({"trace_path": str(trace_path)}))
        loop.executor.execute_step = MagicMock()

        with pytest.raises(NoSolutionFound):
            loop.run()

        loop.executor.execute_step.assert_not_called()
        planner.replan.assert_called_once_with(0.05)
        planner.close.assert_called_once_with()
        assert trace_path.read_text() == "0 0 \n"

    @pytest.mark.parametrize("planner_class", [AnytimeRepairingPlanner, IncrementalPlanner])
    def test_enclosed_goal_discovered(self, planner_class):
        costs = np.zeros((6, 6), dtype=np.uint8)
        for x, y in ((4, 4), (4, 5), (5, 4)):
            costs[y, x] = 255
        world, env = build_scenario(costs, (0, 0), (5, 5))
        planner = planner_class(env)
        loop = NavigationLoop(world, env, planner, {"time_budget": BUDGET})

        with pytest.raises(NoSolutionFound):
            loop.run()

        assert planner.closed
        assert_trajectory_valid(world, env, loop.trajectory)

    def test_cycle_budget(self, tmp_path):
        world, env = build_scenario(np.zeros((10, 10)), (0, 0), (9, 9))
        planner = IncrementalPlanner(env)
        trace_path = tmp_path / "sol.txt"
        loop = NavigationLoop(world, env, planner, {"time_budget": BUDGET, "max_cycles": 3},
                              trace_writer=SolutionTraceWriter({"trace_path": str(trace_path)}))

        with pytest.raises(CycleBudgetExceeded):
            loop.run()

        assert loop.cycles == 3
        assert planner.closed
        assert len(read_trace(trace_path)) == 3
        assert "stats:" not in trace_path.read_text()

    def test_goal_rejected(self):
        world, env = build_scenario(np.zeros((4, 4)), (0, 0), (3, 3))
        planner = MagicMock()
        planner.set_start.return_value = True
        planner.set_goal.return_value = False

        with pytest.raises(PlannerRejectedState) as excinfo:
            NavigationLoop(world, env, planner).run()

        assert excinfo.value.role == "goal"
        planner.close.assert_called_once_with()

    def test_unknown_planner_name(self):
        _, env = build_scenario(np.zeros((3, 3)), (0, 0), (2, 2))
        with pytest.raises(ConfigurationError):
            build_planner("rrt", env)


class TestRandomWorlds:
    """Seeded random worlds with both planners"""

    @pytest.mark.parametrize("seed", [1, 2, 3])
    @pytest.mark.parametrize("planner_name,connectivity", [
        ("anytime", 8), ("incremental", 8), ("incremental", 16), ("anytime", 4)
    ])
    def test_reaches_goal(self, seed, planner_name, connectivity):
        spec = MapGenerator({"width": 20, "height": 20, "seed": seed, "obstacle_density": 0.25,
                             "connectivity": connectivity}).generate()
        world, env, _ = WorldBuilder({"connectivity": connectivity}).build(spec)
        planner = build_planner(planner_name, env)
        loop = NavigationLoop(world, env, planner, {"time_budget": BUDGET})
        snapshots = track_sync(loop)

        result = loop.run()

        assert result.reached_goal
        assert result.final_pose.as_tuple() == spec.goal
        assert_trajectory_valid(world, env, result.trajectory)
        assert world.belief_matches_truth(mask=world.observed_mask)
        assert all(a == p == e for a, p, e in snapshots)
        assert result.cycles == len(result.trajectory) - 1

    def test_goal_threshold_stops_early(self):
        world, env = build_scenario(np.zeros((10, 10)), (0, 0), (9, 9))
        loop = NavigationLoop(world, env, IncrementalPlanner(env),
                              NavigationConfig(time_budget=BUDGET, goal_threshold=2))

        result = loop.run()

        assert result.final_pose == Pose(7, 7)
        assert result.cycles == 7


class TestRunNavigation:
    """End-to-end runs from configuration"""

    def test_from_dict(self, tmp_path):
        trace_path = tmp_path / "sol.txt"
        result = run_navigation({
            "world": {
                "costs": single_obstacle_costs().tolist(),
                "obstacle_threshold": 1,
                "start": [0, 0],
                "goal": [4, 4],
            },
            "navigation": {"planner": "incremental", "time_budget": BUDGET,
                           "trace_path": str(trace_path)},
        })

        assert result.reached_goal
        assert len(read_trace(trace_path)) == result.cycles

    def test_from_yaml_file(self, tmp_path, monkeypatch):
        trace_path = tmp_path / "sol.txt"
        monkeypatch.setenv("GRIDNAV_NAVIGATION__TRACE_PATH", str(trace_path))
        monkeypatch.setenv("GRIDNAV_NAVIGATION__TIME_BUDGET", str(BUDGET))

        result = run_navigation(os.path.join(CONFIG_DIR, "default.yaml"))

        assert result.reached_goal
        assert result.final_pose == Pose(9, 7)
        assert trace_path.exists()

    def test_invalid_config_rejected(self):
        with pytest.raises(ConfigurationError):
            run_navigation({"world": {}, "navigation": {"planner": "rrt"}})

    def test_with_logging_configured(self, tmp_path, restore_logging):
        result = run_navigation({
            "world": {"costs": np.zeros((4, 4)).tolist(), "start": [0, 0], "goal": [3, 3]},
            "navigation": {"time_budget": BUDGET, "trace_path": None},
            "logging": {"log_dir": str(tmp_path / "logs"), "file_logging": True,
                        "console_logging": False},
        }, configure_logging=True)

        assert result.cycles == 3
        log_text = (tmp_path / "logs" / "navigation.log").read_text()
        assert "performance_metrics" in log_text
