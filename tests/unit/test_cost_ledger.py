from docquery.config import LedgerConfig
from docquery.obs.ledger import CharRatioEstimator, CostLedger, CostModel
from docquery.types import CostPhase


def test_char_ratio_estimator_rounds_up() -> None:
    estimator = CharRatioEstimator()

    assert estimator("") == 0
    assert estimator("abcd") == 1
    assert estimator("abcde") == 2


def test_cost_model_prices_per_thousand_tokens() -> None:
    model = CostModel()

    assert model.estimate_cost(1000, 1000) == 0.00125 + 0.005
    assert model.estimate_cost(0, 0) == 0.0


def test_total_cost_is_monotonic_and_equals_record_sum(clock) -> None:
    ledger = CostLedger(clock=clock)
    totals = []
    for tokens in (400, 0, 1200, 50):
        ledger.record("RelevanceSelector", CostPhase.SELECTION, tokens, tokens // 4)
        totals.append(ledger.total_cost())

    assert totals == sorted(totals)
    assert ledger.total_cost() == sum(record.cost for record in ledger.records())
    assert ledger.total_tokens() == (1650, 412)


def test_breakdowns_group_by_phase_and_operation(clock) -> None:
    ledger = CostLedger(clock=clock)
    ledger.record("HeuristicChunker", CostPhase.DIVISION, 0, 0)
    ledger.record("RelevanceSelector", CostPhase.SELECTION, 100, 10)
    ledger.record("QueryOrchestrator", CostPhase.FINAL_ANSWER, 800, 200)
    ledger.record("QueryOrchestrator", CostPhase.ERROR, 0, 0, "SELECTION: bad format")

    by_phase = ledger.breakdown_by_phase()
    by_operation = ledger.breakdown_by_operation()

    assert set(by_phase) == {"DIVISION", "SELECTION", "FINAL_ANSWER", "ERROR"}
    assert by_phase["FINAL_ANSWER"].input_tokens == 800
    assert by_operation["QueryOrchestrator"].operations == 2
    assert ledger.summary()["error_count"] == 1
    assert ledger.summary()["total_operations"] == 4


def test_recent_is_newest_first_and_bounded(clock) -> None:
    ledger = CostLedger(config=LedgerConfig(recent_limit=3), clock=clock)
    for index in range(5):
        clock.advance(1)
        ledger.record(f"op-{index}", CostPhase.SELECTION, 10, 1)

    assert [record.operation for record in ledger.recent()] == ["op-4", "op-3", "op-2"]
    assert [record.operation for record in ledger.recent(2)] == ["op-4", "op-3"]
    assert len(ledger) == 5


def test_budget_status_warns_then_exceeds(clock) -> None:
    ledger = CostLedger(
        cost_model=CostModel(input_per_1k=1.0, output_per_1k=0.0),
        config=LedgerConfig(budget=1.0, warning_threshold=0.5),
        clock=clock,
    )

    ledger.record("op", CostPhase.SELECTION, 250, 0)
    assert ledger.budget_status()["warning"] is False

    ledger.record("op", CostPhase.SELECTION, 500, 0)
    status = ledger.budget_status()
    assert status["warning"] is True
    assert status["exceeded"] is False

    ledger.record("op", CostPhase.SELECTION, 500, 0)
    assert ledger.budget_status()["exceeded"] is True
    assert ledger.budget_status()["remaining"] == 0.0


def test_reset_clears_records_and_restarts_session(clock) -> None:
    ledger = CostLedger(clock=clock)
    ledger.record("op", CostPhase.SELECTION, 100, 10)
    clock.advance(30)
    assert ledger.session_duration_seconds() == 30

    ledger.reset()

    assert len(ledger) == 0
    assert ledger.total_cost() == 0.0
    assert ledger.session_duration_seconds() == 0
