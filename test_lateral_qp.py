"""End-to-end tests for the lateral QP optimizer (requires CasADi with OSQP)."""

from dataclasses import replace

import numpy as np
import pytest

from planning import (
    LateralQPConfig,
    LateralQPOptimizer,
    SolverFailure,
    SolverStatus,
    StructuralError,
)
from planning.osqp_backend import classify_status, csc_to_casadi, iteration_count, osqp_session
from utils.sparse import dense_to_csc

TOL = 1e-3


class TestTrivialScenario:

    def test_zero_solution(self, unit_config):
        optimizer = LateralQPOptimizer(unit_config)
        result = optimizer.optimize((0.0, 0.0, 0.0), 1.0, [(-1.0, 1.0)] * 3)

        assert result.success
        np.testing.assert_allclose(result.d, np.zeros(3), atol=1e-4)
        np.testing.assert_allclose(result.d_prime, np.zeros(3), atol=1e-4)
        np.testing.assert_allclose(result.d_pprime, np.zeros(3), atol=1e-4)
        np.testing.assert_allclose(result.s, [0.0, 1.0, 2.0])

    def test_solution_state_is_stored(self, unit_config):
        optimizer = LateralQPOptimizer(unit_config)
        result = optimizer.optimize((0.0, 0.0, 0.0), 1.0, [(-1.0, 1.0)] * 3)
        assert optimizer.opt_d == pytest.approx(result.d.tolist())
        assert optimizer.opt_d_prime == pytest.approx(result.d_prime.tolist())
        assert optimizer.opt_d_pprime == pytest.approx(result.d_pprime.tolist())
        assert optimizer.delta_s == 1.0


class TestNudgeScenario:
    """Corridor with stations 10..15 forcing d >= 0.5."""

    D_STATE = (0.1, 0.01, 0.0)
    DELTA_S = 1.0

    @pytest.fixture
    def solved(self, nudge_config, nudge_bounds):
        optimizer = LateralQPOptimizer(nudge_config)
        result = optimizer.optimize(self.D_STATE, self.DELTA_S, nudge_bounds)
        return optimizer, result

    def test_initial_state_reproduced(self, solved):
        _, result = solved
        assert result.d[0] == pytest.approx(self.D_STATE[0], abs=1e-4)
        assert result.d_prime[0] == pytest.approx(self.D_STATE[1], abs=1e-4)
        assert result.d_pprime[0] == pytest.approx(self.D_STATE[2], abs=1e-4)

    def test_offset_bounds(self, solved, nudge_bounds):
        _, result = solved
        bounds = np.asarray(nudge_bounds)
        assert np.all(result.d >= bounds[:, 0] - TOL)
        assert np.all(result.d <= bounds[:, 1] + TOL)
        # The nudge is actually active
        assert result.d[12] >= 0.5 - TOL

    def test_continuity(self, solved):
        _, result = solved
        ds = self.DELTA_S
        d, dp, dpp = result.d, result.d_prime, result.d_pprime
        # The last gap involves the overridden terminal derivatives
        for i in range(len(d) - 2):
            trapezoid = dp[i + 1] - dp[i] - 0.5 * ds * (dpp[i] + dpp[i + 1])
            hermite = d[i + 1] - d[i] - ds * dp[i] - ds * ds / 3.0 * dpp[i] - ds * ds / 6.0 * dpp[i + 1]
            assert abs(trapezoid) < TOL
            assert abs(hermite) < TOL

    def test_jerk_bound(self, solved, nudge_config):
        _, result = solved
        jerk_step = np.abs(np.diff(result.d_pprime[:-1]))
        assert np.all(jerk_step <= nudge_config.jerk_max * self.DELTA_S + TOL)

    def test_derivative_box(self, solved, nudge_config):
        _, result = solved
        assert np.all(np.abs(result.d_prime) <= nudge_config.derivative_bound + TOL)
        assert np.all(np.abs(result.d_pprime) <= nudge_config.derivative_bound + TOL)

    def test_terminal_rest(self, solved):
        optimizer, result = solved
        assert result.d_prime[-1] == 0.0
        assert result.d_pprime[-1] == 0.0
        assert optimizer.opt_d_prime[-1] == 0.0
        assert optimizer.opt_d_pprime[-1] == 0.0

    def test_frenet_frame_path(self, solved):
        optimizer, result = solved
        path = optimizer.frenet_frame_path()
        assert len(path) == len(result.d)
        assert [p.s for p in path] == pytest.approx(np.arange(len(path)) * self.DELTA_S)
        assert [p.l for p in path] == pytest.approx(result.d.tolist())
        assert path[-1].dl == 0.0
        assert path[-1].ddl == 0.0

    def test_optimal_trajectory_matches_stations(self, solved):
        optimizer, result = solved
        trajectory = optimizer.optimal_trajectory()
        assert trajectory.num_segments == len(result.d) - 1
        assert trajectory.param_length == pytest.approx((len(result.d) - 1) * self.DELTA_S)
        for k in range(len(result.d) - 1):
            s = k * self.DELTA_S
            assert trajectory.evaluate(0, s) == pytest.approx(result.d[k], abs=TOL)
            assert trajectory.evaluate(2, s) == pytest.approx(result.d_pprime[k], abs=TOL)

    def test_independent_instances_agree(self, solved, nudge_config, nudge_bounds):
        _, first = solved
        second = LateralQPOptimizer(nudge_config).optimize(self.D_STATE, self.DELTA_S, nudge_bounds)
        np.testing.assert_allclose(second.d, first.d, atol=1e-9)
        np.testing.assert_allclose(second.d_prime, first.d_prime, atol=1e-9)
        np.testing.assert_allclose(second.d_pprime, first.d_pprime, atol=1e-9)

    def test_iteration_count_known_or_absent(self, solved):
        _, result = solved
        assert result.iterations is None or result.iterations > 0

    def test_repeated_calls_replace_state(self, solved, nudge_bounds):
        optimizer, first = solved
        optimizer.optimize((0.0, 0.0, 0.0), 0.5, [(-1.0, 1.0)] * 4)
        assert len(optimizer.opt_d) == 4
        assert optimizer.delta_s == 0.5


class TestObstacleCentering:

    def test_equal_weights_center_on_midpoint(self):
        config = LateralQPConfig(
            weight_offset=1.0,
            weight_obstacle_distance=1.0,
            weight_derivative=1e-3,
            weight_second_derivative=1e-3,
            jerk_max=1.0,
        )
        bounds = [(0.0, 1.0)] * 10
        result = LateralQPOptimizer(config).optimize((0.5, 0.0, 0.0), 1.0, bounds)
        # Per offset: 2 d^2 - 2 d (low + high), minimized at (low + high) / 2
        np.testing.assert_allclose(result.d, np.full(10, 0.5), atol=1e-2)


class TestFailures:

    def test_single_station_is_structural(self, unit_config):
        optimizer = LateralQPOptimizer(unit_config)
        with pytest.raises(StructuralError):
            optimizer.optimize((0.0, 0.0, 0.0), 1.0, [(-1.0, 1.0)])
        assert optimizer.opt_d == []

    def test_non_positive_step_is_structural(self, unit_config):
        with pytest.raises(StructuralError):
            LateralQPOptimizer(unit_config).optimize((0.0, 0.0, 0.0), 0.0, [(-1.0, 1.0)] * 3)

    def test_mismatched_bounds_are_structural(self, unit_config):
        with pytest.raises(StructuralError):
            LateralQPOptimizer(unit_config).optimize((0.0, 0.0, 0.0), 1.0, [(-1.0, 1.0, 2.0)] * 3)

    def test_infeasible_start(self, unit_config):
        optimizer = LateralQPOptimizer(unit_config)
        with pytest.raises(SolverFailure) as exc_info:
            optimizer.optimize((5.0, 0.0, 0.0), 1.0, [(-1.0, 1.0)] * 5)
        assert exc_info.value.status is SolverStatus.INFEASIBLE
        assert "infeasible" in exc_info.value.raw_status.lower()
        assert optimizer.opt_d == []

    def test_failure_keeps_previous_solution(self, unit_config):
        optimizer = LateralQPOptimizer(unit_config)
        optimizer.optimize((0.0, 0.0, 0.0), 1.0, [(-1.0, 1.0)] * 3)
        previous = list(optimizer.opt_d)

        with pytest.raises(SolverFailure):
            optimizer.optimize((5.0, 0.0, 0.0), 1.0, [(-1.0, 1.0)] * 5)
        assert optimizer.opt_d == previous
        assert optimizer.delta_s == 1.0

    def test_iteration_cap(self, nudge_config, nudge_bounds):
        config = replace(nudge_config, osqp=replace(nudge_config.osqp, max_iter=1, polish=False))
        with pytest.raises(SolverFailure) as exc_info:
            LateralQPOptimizer(config).optimize((0.1, 0.01, 0.0), 1.0, nudge_bounds)
        assert exc_info.value.status is SolverStatus.MAX_ITER_REACHED
        iterations = exc_info.value.iterations
        assert iterations is None or iterations > 0

    def test_accessors_need_a_solution(self, unit_config):
        optimizer = LateralQPOptimizer(unit_config)
        with pytest.raises(RuntimeError, match="optimize"):
            optimizer.frenet_frame_path()
        with pytest.raises(RuntimeError, match="optimize"):
            optimizer.optimal_trajectory()


class TestStatusClassification:

    @pytest.mark.parametrize("stats, expected", [
        ({"success": True, "return_status": "solved"}, SolverStatus.SOLVED),
        ({"success": False, "return_status": "primal infeasible"}, SolverStatus.INFEASIBLE),
        ({"success": False, "return_status": "OSQP_PRIMAL_INFEASIBLE"}, SolverStatus.INFEASIBLE),
        ({"success": False, "return_status": "dual infeasible"}, SolverStatus.UNBOUNDED),
        ({"success": False, "return_status": "OSQP_DUAL_INFEASIBLE"}, SolverStatus.UNBOUNDED),
        ({"success": False, "return_status": "maximum iterations reached"}, SolverStatus.MAX_ITER_REACHED),
        ({"success": False, "return_status": "OSQP_MAX_ITER_REACHED"}, SolverStatus.MAX_ITER_REACHED),
        ({"success": False, "return_status": "", "unified_return_status": "SOLVER_RET_LIMITED"},
         SolverStatus.MAX_ITER_REACHED),
        ({"success": False, "return_status": "solved inaccurate"}, SolverStatus.FAILED),
        ({}, SolverStatus.FAILED),
    ])
    def test_classify(self, stats, expected):
        assert classify_status(stats) is expected


class TestVerbose:

    def test_prints_summary(self, unit_config, capsys):
        config = replace(unit_config, debug_verbose=True)
        LateralQPOptimizer(config).optimize((0.0, 0.0, 0.0), 1.0, [(-1.0, 1.0)] * 3)
        out = capsys.readouterr().out
        assert "Lateral QP: N=3" in out
        assert "[QP]" in out
        assert "iterations=-1" not in out

    def test_quiet_by_default(self, unit_config, capsys):
        LateralQPOptimizer(unit_config).optimize((0.0, 0.0, 0.0), 1.0, [(-1.0, 1.0)] * 3)
        assert "Lateral QP" not in capsys.readouterr().out


class TestCasadiConversion:

    def test_keeps_values_and_pattern(self):
        dense = np.array([[2.0, 0.0, 0.0], [0.0, 0.0, -0.5], [1.0, 0.0, 3.0]])
        matrix = dense_to_csc(dense)
        dm = csc_to_casadi(matrix)
        assert dm.nnz() == matrix.nnz
        np.testing.assert_array_equal(dm.full(), dense)

    def test_empty_matrix(self):
        dm = csc_to_casadi(dense_to_csc(np.zeros((2, 3))))
        assert dm.shape == (2, 3)
        assert dm.nnz() == 0


class TestIterationCount:

    @pytest.mark.parametrize("stats, expected", [
        ({"iter_count": 42}, 42),
        ({"iter_count": -1}, None),
        ({"iter_count": 0}, None),
        ({}, None),
    ])
    def test_iteration_count(self, stats, expected):
        assert iteration_count(stats) == expected

    def test_failure_message_omits_unknown_iterations(self):
        failure = SolverFailure(SolverStatus.INFEASIBLE, raw_status="primal infeasible")
        assert failure.iterations is None
        assert "iterations" not in str(failure)
        assert "iterations=7" in str(SolverFailure(SolverStatus.FAILED, iterations=7))


class TestOsqpSession:

    def test_handle_closed_after_block(self, unit_config):
        P = dense_to_csc(np.eye(2))
        A = dense_to_csc(np.eye(2))
        with osqp_session(P, A, unit_config.osqp) as handle:
            assert not handle.closed
        assert handle.closed
        with pytest.raises(RuntimeError, match="closed"):
            handle.stats()

    def test_handle_closed_on_error(self, unit_config):
        P = dense_to_csc(np.eye(2))
        A = dense_to_csc(np.eye(2))
        with pytest.raises(KeyError):
            with osqp_session(P, A, unit_config.osqp) as handle:
                raise KeyError("boom")
        assert handle.closed
