# Overview: Pytest coverage for the saga runner.

import pytest

from stockledger.services.saga import SagaAborted, SagaStep, run_saga


class TestRunSaga:
    def test_results_flow_between_steps(self, db_session):
        results = run_saga("demo", [
            SagaStep("one", lambda r: 1),
            SagaStep("two", lambda r: r["one"] + 1),
        ])
        assert results == {"one": 1, "two": 2}

    def test_first_step_failure_is_reraised_untouched(self, db_session):
        def fail(_r):
            raise KeyError("first")

        with pytest.raises(KeyError):
            run_saga("demo", [SagaStep("one", fail), SagaStep("two", lambda r: None)])

    def test_later_failure_compensates_in_reverse_order(self, db_session):
        undone = []

        def fail(_r):
            raise RuntimeError("third step broke")

        with pytest.raises(SagaAborted) as exc:
            run_saga("demo", [
                SagaStep("one", lambda r: "a", lambda res: undone.append(("one", res))),
                SagaStep("keep", lambda r: "b"),
                SagaStep("two", lambda r: "c", lambda res: undone.append(("two", res))),
                SagaStep("boom", fail),
            ])

        assert undone == [("two", "c"), ("one", "a")]
        details = exc.value.details
        assert details["saga"] == "demo"
        assert details["failed_step"] == "boom"
        assert details["error"] == "third step broke"
        assert details["completed_steps"] == ["one", "keep", "two"]
        assert details["compensated_steps"] == ["two", "one"]
        assert details["left_committed"] == ["keep"]
        assert isinstance(exc.value.__cause__, RuntimeError)

    def test_failed_compensation_is_reported(self, db_session):
        def bad_undo(_res):
            raise RuntimeError("cannot undo")

        def fail(_r):
            raise RuntimeError("boom")

        with pytest.raises(SagaAborted) as exc:
            run_saga("demo", [SagaStep("one", lambda r: 1, bad_undo), SagaStep("two", fail)])

        assert exc.value.details["compensation_failures"] == ["one"]
        assert exc.value.details["left_committed"] == ["one"]
