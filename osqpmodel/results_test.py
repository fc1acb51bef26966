import math

import numpy as np
from absl.testing import absltest
from absl.testing import parameterized

from osqpmodel import engine
from osqpmodel.results import Results, Status


class StatusTest(parameterized.TestCase):

    @parameterized.parameters(
        (1, Status.SOLVED),
        (2, Status.SOLVED_INACCURATE),
        (3, Status.PRIMAL_INFEASIBLE),
        (4, Status.PRIMAL_INFEASIBLE_INACCURATE),
        (5, Status.DUAL_INFEASIBLE),
        (6, Status.DUAL_INFEASIBLE_INACCURATE),
        (7, Status.MAX_ITER_REACHED),
        (8, Status.TIME_LIMIT_REACHED),
        (9, Status.NON_CONVEX),
        (10, Status.INTERRUPTED),
        (11, Status.UNSOLVED),
        (42, Status.UNSOLVED),
    )
    def test_from_code(self, code, status) -> None:
        self.assertEqual(Status.from_code(code), status)


class ResultsTest(absltest.TestCase):

    def _info(self, status=Status.SOLVED):
        return engine.SolveInfo(status=status, status_val=1, iterations=25, obj_val=1.5,
                                prim_res=1e-5, dual_res=2e-5, setup_time=0.1,
                                solve_time=0.2, run_time=0.3)

    def test_defaults(self) -> None:
        results = Results()
        self.assertEqual(results.status, Status.UNSOLVED)
        self.assertTrue(math.isnan(results.objective_value))
        self.assertFalse(results.is_solved())
        self.assertFalse(results.reused)
        self.assertEqual(results.solution, {})

    def test_from_info_adds_objective_constant(self) -> None:
        results = Results.from_info(self._info(), x=[1.0, 2.0], y=[0.5],
                                    objective_constant=10.0)
        self.assertEqual(results.objective_value, 11.5)
        self.assertEqual(results.iterations, 25)
        self.assertEqual(results.primal_residual, 1e-5)
        self.assertEqual(results.run_time, 0.3)
        np.testing.assert_array_equal(results.x, [1.0, 2.0])
        np.testing.assert_array_equal(results.y, [0.5])
        self.assertTrue(results.is_solved())

    def test_feasibility(self) -> None:
        inaccurate = Results.from_info(self._info(Status.SOLVED_INACCURATE))
        self.assertFalse(inaccurate.is_solved())
        self.assertTrue(inaccurate.is_feasible())
        infeasible = Results.from_info(self._info(Status.PRIMAL_INFEASIBLE))
        self.assertFalse(infeasible.is_feasible())

    def test_infeasible_primal_is_nan(self) -> None:
        # the engine reports a NaN placeholder that reads as a large float
        results = Results.from_info(self._info(Status.DUAL_INFEASIBLE),
                                    x=[2143289344.0, 2143289344.0], y=[0.0])
        self.assertLen(results.x, 2)
        self.assertTrue(all(math.isnan(v) for v in results.x))
        np.testing.assert_array_equal(results.y, [0.0])

        inaccurate = Results.from_info(self._info(Status.SOLVED_INACCURATE), x=[1.0])
        np.testing.assert_array_equal(inaccurate.x, [1.0])

    def test_to_dict_and_text(self) -> None:
        results = Results.from_info(self._info(), x=[1.0], y=[])
        d = results.to_dict()
        self.assertEqual(d['status'], 'solved')
        self.assertEqual(d['x'], [1.0])
        self.assertEqual(d['y'], [])
        self.assertIn("status='solved'", repr(results))
        self.assertIn("Status:          solved", str(results))


if __name__ == "__main__":
    absltest.main()
