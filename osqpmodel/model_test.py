import numpy as np
from absl.testing import absltest

from osqpmodel import engine
from osqpmodel import errors
from osqpmodel import model as model_lib
from osqpmodel.model import Model, SessionState
from osqpmodel.modeling import Variable, between
from osqpmodel.results import Status


class RecordingEngine(engine.OsqpEngine):
    """OsqpEngine that records the name of every engine call"""

    def __init__(self):
        super().__init__()
        self.calls = []
        self.settings_updates = []

    def setup(self, *args, **kwargs):
        self.calls.append('setup')
        return super().setup(*args, **kwargs)

    def solve(self, session):
        self.calls.append('solve')
        return super().solve(session)

    def update_data_vectors(self, session, **kwargs):
        self.calls.append('update_data_vectors')
        return super().update_data_vectors(session, **kwargs)

    def update_data_matrices(self, session, *args, **kwargs):
        self.calls.append('update_data_matrices')
        return super().update_data_matrices(session, *args, **kwargs)

    def warm_start(self, session, **kwargs):
        self.calls.append('warm_start')
        return super().warm_start(session, **kwargs)

    def update_settings(self, session, **fields):
        self.calls.append('update_settings')
        self.settings_updates.append(fields)
        return super().update_settings(session, **fields)

    def cleanup(self, session):
        if not session.released:
            self.calls.append('cleanup')
        return super().cleanup(session)


class FailingSolveEngine(engine.OsqpEngine):

    def solve(self, session):
        raise errors.SolveError(engine.ErrorCode.WORKSPACE_NOT_INIT, "workspace lost")


class FailingSetupEngine(engine.OsqpEngine):

    def setup(self, *args, **kwargs):
        raise errors.SetupError(engine.ErrorCode.NON_CONVEX, "P is not positive semidefinite")


def _model(engine_=None):
    m = Model(engine=engine_)
    m.settings.eps_abs = 1e-7
    m.settings.eps_rel = 1e-7
    return m


class StandardFormTest(absltest.TestCase):

    def test_diagonal_doubling(self) -> None:
        m = Model()
        x = m.add_variable()
        y = m.add_variable()
        m.set_objective(3 * x * x + 2 * y * x + y * y + x - 4 + 7)
        form = m.standard_form()
        np.testing.assert_array_equal(form.P.toarray(), [[6.0, 2.0], [0.0, 2.0]])
        np.testing.assert_array_equal(form.q, [1.0, 0.0])
        self.assertEqual(form.constant, 3.0)

    def test_constraint_rows_and_bounds(self) -> None:
        m = Model()
        x = m.add_variable()
        y = m.add_variable()
        m.add_constraint(x + y + 5 <= 10)
        m.add_constraint(2 * x - 1 >= 3)
        m.add_constraint(x == y)
        m.add_constraint(between(-1, y, 1))
        form = m.standard_form()
        np.testing.assert_array_equal(
            form.A.toarray(), [[1.0, 1.0], [2.0, 0.0], [1.0, -1.0], [0.0, 1.0]])
        np.testing.assert_array_equal(form.l, [-np.inf, 4.0, 0.0, -1.0])
        np.testing.assert_array_equal(form.u, [5.0, np.inf, 0.0, 1.0])

    def test_variable_bounds_become_one_constraint(self) -> None:
        m = Model()
        x = m.add_variable(name='x', lower_bound=0, upper_bound=2)
        m.add_variable(name='y')
        z = m.add_variable(lower_bound=-1)
        self.assertEqual(m.num_constraints, 2)
        first, second = m.constraints
        self.assertEqual(first.name, 'x_bound')
        self.assertEqual(first.expression.coefficients, {x.index: 1.0})
        self.assertEqual((first.lower_bound, first.upper_bound), (0.0, 2.0))
        self.assertEqual(second.expression.coefficients, {z.index: 1.0})
        self.assertEqual((second.lower_bound, second.upper_bound), (-1.0, np.inf))

    def test_add_variables(self) -> None:
        m = Model()
        m.add_variable()
        xs = m.add_variables(3, name_prefix='p')
        self.assertEqual([v.index for v in xs], [1, 2, 3])
        self.assertEqual([v.name for v in xs], ['p1', 'p2', 'p3'])
        self.assertEqual(m.num_variables, 4)

    def test_empty_model(self) -> None:
        with self.assertRaises(errors.ModelError):
            Model().standard_form()

    def test_foreign_variable(self) -> None:
        m = Model()
        x = m.add_variable()
        stranger = Variable(5)
        m.add_constraint(x + stranger <= 1)
        with self.assertRaisesRegex(errors.ModelError, "variable index 5"):
            m.standard_form()

    def test_objective_is_kept_by_reference(self) -> None:
        m = Model()
        x = m.add_variable()
        objective = x * x
        m.set_objective(objective)
        objective.add(3 * x)
        self.assertIs(m.objective, objective)
        np.testing.assert_array_equal(m.standard_form().q, [3.0])

    def test_set_objective_accepts_linear_and_numbers(self) -> None:
        m = Model()
        x = m.add_variable()
        m.set_objective(2 * x + 1)
        self.assertEqual(m.objective.linear.coefficients, {0: 2.0})
        m.set_objective(x)
        self.assertEqual(m.objective.linear.coefficients, {0: 1.0})
        m.set_objective(4)
        self.assertEqual(m.objective.constant, 4.0)
        with self.assertRaises(TypeError):
            m.set_objective("x")


class ModelSolveTest(absltest.TestCase):

    def test_replace_objective_reuses_session(self) -> None:
        recorder = RecordingEngine()
        with _model(recorder) as m:
            x = m.add_variable()
            m.add_constraint(x >= 0)

            m.set_objective(0.5 * x * x + 5 * x)
            result = m.solve()
            self.assertEqual(result.status, Status.SOLVED)
            self.assertAlmostEqual(result[x], 0.0, delta=1e-4)
            self.assertFalse(result.reused)
            self.assertEqual(m.session_state, SessionState.BUILT)

            m.set_objective(0.5 * x * x - 5 * x)
            result = m.solve()
            self.assertAlmostEqual(m.value(x), 5.0, delta=1e-4)
            self.assertTrue(result.reused)
            self.assertEqual(recorder.calls.count('setup'), 1)
            self.assertIn('update_data_vectors', recorder.calls)
        self.assertEqual(recorder.calls[-1], 'cleanup')
        self.assertEqual(m.session_state, SessionState.RELEASED)

    def test_new_constraint_rebuilds(self) -> None:
        recorder = RecordingEngine()
        with _model(recorder) as m:
            x = m.add_variable()
            m.set_objective(x * x - 20 * x + 100)
            result = m.solve()
            self.assertAlmostEqual(result[x], 10.0, delta=1e-4)
            self.assertAlmostEqual(result.objective_value, 0.0, delta=1e-4)

            m.add_constraint(x <= 5)
            result = m.solve()
            self.assertAlmostEqual(result[x], 5.0, delta=1e-4)
            self.assertAlmostEqual(m.objective_value, 25.0, delta=1e-3)
            self.assertFalse(result.reused)
            self.assertEqual(recorder.calls,
                             ['setup', 'solve', 'cleanup', 'setup', 'solve'])

    def test_new_quadratic_term_rebuilds(self) -> None:
        recorder = RecordingEngine()
        with _model(recorder) as m:
            x = m.add_variable()
            y = m.add_variable()
            m.add_constraint(x + y == 1)
            m.set_objective(x * x + y * y)
            m.solve()
            m.objective.add(x * y)
            result = m.solve()
            self.assertFalse(result.reused)
            self.assertEqual(recorder.calls.count('setup'), 2)
            self.assertAlmostEqual(result[x], 0.5, delta=1e-4)

    def test_objective_constant(self) -> None:
        with _model() as m:
            x = m.add_variable()
            m.set_objective(x * x + 10)
            m.add_constraint(x == 0)
            result = m.solve()
            self.assertAlmostEqual(result[x], 0.0, delta=1e-4)
            self.assertAlmostEqual(result.objective_value, 10.0, delta=1e-4)

    def test_two_variable_qp(self) -> None:
        # minimize 2x^2 + y^2 + xy + x + y  s.t.  x + y == 1, 0 <= x, y <= 0.7
        with _model() as m:
            x = m.add_variable(lower_bound=0, upper_bound=0.7)
            y = m.add_variable(lower_bound=0, upper_bound=0.7)
            m.add_constraint(x + y == 1)
            m.set_objective(2 * x * x + y * y + x * y + x + y)
            result = m.solve()
            self.assertAlmostEqual(result[x], 0.3, delta=1e-4)
            self.assertAlmostEqual(result[y], 0.7, delta=1e-4)
            self.assertAlmostEqual(result.objective_value, 1.88, delta=1e-4)

    def test_reuse_matches_cold_solve(self) -> None:
        def build(m, rhs):
            x = m.add_variable()
            y = m.add_variable()
            budget = m.add_constraint(x + 2 * y >= rhs)
            m.add_constraint(between(-3, x - y, 3))
            m.set_objective(x * x + 2 * y * y + x * y - x)
            return x, y, budget

        recorder = RecordingEngine()
        with _model(recorder) as warm, _model() as cold:
            x, y, budget = build(warm, 1.0)
            warm.solve()
            budget.lower_bound = 4.0
            warm.objective.add(2 * y)
            warm_result = warm.solve()
            self.assertTrue(warm_result.reused)
            self.assertEqual(warm_result.setup_time, 0.0)
            self.assertEqual(recorder.calls.count('setup'), 1)

            cx, cy, _ = build(cold, 4.0)
            cold.objective.add(2 * cy)
            cold_result = cold.solve()
            self.assertFalse(cold_result.reused)

            self.assertAlmostEqual(warm_result[x], cold_result[cx], delta=1e-4)
            self.assertAlmostEqual(warm_result[y], cold_result[cy], delta=1e-4)
            self.assertAlmostEqual(warm_result.objective_value, cold_result.objective_value,
                                   delta=1e-4)

    def test_changed_coefficient_updates_matrix_values(self) -> None:
        recorder = RecordingEngine()
        with _model(recorder) as m:
            x = m.add_variable()
            c = m.add_constraint(x >= 1)
            m.set_objective(x * x)
            m.solve()
            c.expression.scale(2.0)
            result = m.solve()
            self.assertTrue(result.reused)
            self.assertIn('update_data_matrices', recorder.calls)
            self.assertAlmostEqual(result[x], 0.5, delta=1e-4)

    def test_settings_pushed_on_update(self) -> None:
        recorder = RecordingEngine()
        with _model(recorder) as m:
            x = m.add_variable()
            m.add_constraint(x >= 1)
            m.set_objective(x * x)
            m.solve()
            m.settings.max_iter = 500
            m.settings.sigma = 1e-5
            m.solve()
            self.assertEqual(recorder.settings_updates, [{'max_iter': 500}])

    def test_warm_start(self) -> None:
        recorder = RecordingEngine()
        with _model(recorder) as m:
            x = m.add_variable()
            y = m.add_variable()
            m.add_constraint(x + y == 2)
            m.set_objective(x * x + y * y)
            m.warm_start(primal={x: 1.0, y: 1.0}, dual=[-2.0])
            result = m.solve()
            self.assertEqual(recorder.calls, ['setup', 'warm_start', 'solve'])
            self.assertAlmostEqual(result[x], 1.0, delta=1e-4)

            m.solve()
            self.assertEqual(recorder.calls.count('warm_start'), 1)

    def test_warm_start_dimensions(self) -> None:
        m = Model()
        x = m.add_variable()
        m.add_constraint(x >= 0)
        with self.assertRaises(errors.DimensionMismatchError):
            m.warm_start(primal=[1.0, 2.0])
        with self.assertRaises(errors.DimensionMismatchError):
            m.warm_start(dual=[])
        with self.assertRaises(errors.DimensionMismatchError):
            m.warm_start(primal={Variable(3): 1.0})

        m.warm_start(primal=[1.0])
        m.add_variable()
        with self.assertRaises(errors.DimensionMismatchError):
            m.solve()

    def test_dual_value(self) -> None:
        with _model() as m:
            x = m.add_variable()
            c = m.add_constraint(x <= 0.5)
            m.set_objective(x * x - 2 * x)
            m.solve()
            self.assertAlmostEqual(m.value(x), 0.5, delta=1e-4)
            self.assertAlmostEqual(m.dual_value(c), 1.0, delta=1e-3)
            with self.assertRaises(errors.ModelError):
                m.dual_value(x >= 0)

    def test_infeasible(self) -> None:
        with _model() as m:
            x = m.add_variable()
            m.add_constraint(x >= 1)
            m.add_constraint(x <= 0)
            m.set_objective(x * x)
            with self.assertLogs('osqpmodel.solver', level='WARNING'):
                result = m.solve()
            self.assertEqual(result.status, Status.PRIMAL_INFEASIBLE)
            self.assertFalse(result.is_feasible())
            self.assertTrue(np.all(np.isnan(result.x)))
            self.assertTrue(np.isnan(result[x]))
            self.assertTrue(np.isnan(m.value(x)))

    def test_debug_logging_of_path(self) -> None:
        with _model() as m:
            x = m.add_variable()
            m.set_objective(x * x)
            with self.assertLogs(model_lib.logger, level='DEBUG') as logs:
                m.solve()
            self.assertTrue(any('rebuild' in line for line in logs.output))


class ModelLifecycleTest(absltest.TestCase):

    def test_reads_before_solve(self) -> None:
        m = Model()
        x = m.add_variable()
        with self.assertRaises(errors.NotSolvedError):
            m.value(x)
        with self.assertRaises(errors.NotSolvedError):
            _ = m.objective_value
        with self.assertRaises(errors.NotSolvedError):
            _ = m.result
        self.assertEqual(m.session_state, SessionState.UNINITIALIZED)

    def test_failed_setup(self) -> None:
        m = Model(engine=FailingSetupEngine())
        x = m.add_variable()
        m.set_objective(x * x)
        with self.assertRaises(errors.SetupError) as cm:
            m.solve()
        self.assertEqual(cm.exception.code, engine.ErrorCode.NON_CONVEX)
        with self.assertRaises(errors.NotSolvedError):
            m.value(x)

    def test_non_convex_objective(self) -> None:
        m = _model()
        self.addCleanup(m.free)
        x = m.add_variable()
        m.add_constraint(between(-1, x, 1))
        m.set_objective(-1 * x * x)
        with self.assertRaises(errors.SetupError) as cm:
            m.solve()
        self.assertEqual(cm.exception.code, engine.ErrorCode.NON_CONVEX)
        self.assertIsNotNone(cm.exception.__cause__)
        with self.assertRaises(errors.NotSolvedError):
            m.value(x)

    def test_crossed_bounds(self) -> None:
        m = _model()
        self.addCleanup(m.free)
        x = m.add_variable()
        m.add_constraint(between(5, x, 1))
        m.set_objective(x * x)
        with self.assertRaises(errors.SetupError) as cm:
            m.solve()
        self.assertEqual(cm.exception.code, engine.ErrorCode.DATA_VALIDATION)
        self.assertEqual(m.session_state, SessionState.RELEASED)

    def test_settings_are_copied(self) -> None:
        m = Model()
        new = m.settings.copy()
        new.max_iter = 100
        m.settings = new
        new.max_iter = 7
        self.assertEqual(m.settings.max_iter, 100)
        self.assertIsNot(m.settings, new)

        with self.assertRaises(errors.NotSolvedError):
            m.value(x)

    def test_failed_solve_releases_session(self) -> None:
        m = Model(engine=FailingSolveEngine())
        x = m.add_variable()
        m.set_objective(x * x)
        with self.assertRaises(errors.SolveError):
            m.solve()
        self.assertEqual(m.session_state, SessionState.RELEASED)
        with self.assertRaises(errors.NotSolvedError):
            _ = m.objective_value
        self.assertTrue(m.is_valid())

    def test_failure_clears_previous_result(self) -> None:
        recorder = RecordingEngine()
        m = _model(recorder)
        self.addCleanup(m.free)
        x = m.add_variable()
        m.set_objective(x * x)
        m.solve()

        def fail(session):
            raise errors.SolveError(engine.ErrorCode.UNKNOWN, "interrupted")

        recorder.solve = fail
        with self.assertRaises(errors.SolveError):
            m.solve()
        with self.assertRaises(errors.NotSolvedError):
            m.value(x)
        self.assertEqual(recorder.calls[-1], 'cleanup')

        del recorder.solve
        result = m.solve()
        self.assertFalse(result.reused)
        self.assertEqual(recorder.calls.count('setup'), 2)

    def test_free(self) -> None:
        m = _model()
        x = m.add_variable()
        m.set_objective(x * x)
        m.solve()
        m.free()
        m.free()
        self.assertFalse(m.is_valid())
        self.assertEqual(m.session_state, SessionState.RELEASED)
        with self.assertRaises(errors.DisposedError):
            m.value(x)
        with self.assertRaises(errors.DisposedError):
            m.solve()
        with self.assertRaises(errors.DisposedError):
            m.add_variable()


if __name__ == "__main__":
    absltest.main()
