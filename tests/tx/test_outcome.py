"""
Tests for walking the receipt graph of a final execution outcome.
"""

import pytest

from near_client.runtime.errors import ReceiptFailure
from near_client.tx.outcome import DETACHED_DEPTH, Failure, OutcomeResolver, Success

from helpers import function_call_failure, mk_final_result, mk_outcome, success_value


def _result(root_children, receipts, status=None):
    """Raw result rooted at transaction ``T``."""
    root = mk_outcome("T", receipt_ids=root_children, status={"SuccessReceiptId": root_children[0]}
                      if root_children else success_value())
    return mk_final_result("T", receipts=receipts, status=status, transaction_outcome=root)


@pytest.fixture
def resolver():
    return OutcomeResolver()


class TestTraversal:
    """Visit order, depth and termination."""

    def test_depth_first_in_listed_order(self, resolver):
        raw = _result(["A", "B"], [
            mk_outcome("B", logs=["b"]),
            mk_outcome("A", logs=["a"], receipt_ids=["C"]),
            mk_outcome("C", logs=["c"]),
        ])
        outcome, _ = resolver.resolve(raw)

        assert outcome.traversal_order == ["T", "A", "C", "B"]
        assert [node.depth for node in outcome.traversal] == [0, 1, 2, 1]
        assert outcome.logs == ["a", "c", "b"]

    def test_cycle_terminates(self, resolver):
        raw = _result(["A"], [
            mk_outcome("A", receipt_ids=["B"]),
            mk_outcome("B", receipt_ids=["A", "T"]),
        ])
        outcome, verdict = resolver.resolve(raw)

        assert outcome.traversal_order == ["T", "A", "B"]
        assert verdict.is_success

    def test_duplicates_visited_once(self, resolver):
        raw = _result(["A", "A"], [
            mk_outcome("A", logs=["first"]),
            mk_outcome("A", logs=["second"]),
        ])
        outcome, _ = resolver.resolve(raw)

        assert outcome.traversal_order == ["T", "A"]
        assert outcome.logs == ["first"]
        assert len(outcome.receipts_outcome) == 2

    def test_unreported_child_ignored(self, resolver):
        outcome, _ = resolver.resolve(_result(["A", "missing"], [mk_outcome("A")]))
        assert outcome.traversal_order == ["T", "A"]

    def test_detached_receipts_visited_last(self, resolver):
        raw = _result(["A"], [mk_outcome("X", logs=["orphan"]), mk_outcome("A", logs=["a"])])
        outcome, _ = resolver.resolve(raw)

        assert outcome.traversal_order == ["T", "A", "X"]
        assert outcome.traversal[-1].depth == DETACHED_DEPTH
        assert outcome.logs == ["a", "orphan"]

    def test_transaction_hash(self, resolver):
        outcome, _ = resolver.resolve(mk_final_result("HASH"))
        assert outcome.transaction_hash == "HASH"


class TestVerdict:
    """Locating the first failure and the return value."""

    def test_function_call_error_with_logs(self, resolver):
        """Logs emitted before a panic are kept in order and the failure is located."""
        raw = _result(["R1"], [
            mk_outcome("R1", logs=["step 1", "step 2"], status={"Failure": function_call_failure("panic")}),
        ], status={"Failure": function_call_failure("panic")})

        outcome, verdict = resolver.resolve(raw)

        assert isinstance(verdict, Failure)
        assert verdict.error.kind == "FunctionCallError"
        assert verdict.error.receipt_id == "R1"
        assert verdict.error.depth == 1
        assert verdict.error.path == ("T", "R1")
        assert verdict.error.context.transaction_hash == "T"
        assert outcome.logs == ["step 1", "step 2"]
        assert outcome.failure is verdict.error

    def test_nested_failure_overrides_top_level_success(self, resolver):
        """A failing callback two levels down fails the transaction even if the top level says success."""
        raw = _result(["R1"], [
            mk_outcome("R1", receipt_ids=["R2", "R3"]),
            mk_outcome("R2", status={"Failure": function_call_failure("deep")}),
            mk_outcome("R3", status={"Failure": function_call_failure("later")}),
        ], status=success_value(b"ok"))

        _, verdict = resolver.resolve(raw)

        assert isinstance(verdict, Failure)
        assert verdict.error.receipt_id == "R2"
        assert verdict.error.depth == 2
        assert verdict.error.path == ("T", "R1", "R2")

    def test_detached_failure(self, resolver):
        raw = _result(["A"], [mk_outcome("A"), mk_outcome("X", status={"Failure": function_call_failure()})])
        _, verdict = resolver.resolve(raw)

        assert verdict.error.receipt_id == "X"
        assert verdict.error.depth == DETACHED_DEPTH

    def test_top_level_failure_without_failing_node(self, resolver):
        failure = {"InvalidTxError": {"NotEnoughBalance": {}}}
        _, verdict = resolver.resolve(_result(["A"], [mk_outcome("A")], status={"Failure": failure}))

        assert isinstance(verdict, Failure)
        assert verdict.error.kind == "NotEnoughBalance"
        assert verdict.error.receipt_id == "T"
        assert verdict.error.depth == 0

    def test_success_value(self, resolver):
        outcome, verdict = resolver.resolve(_result(["A"], [mk_outcome("A")], status=success_value(b'"hi"')))

        assert verdict == Success(b'"hi"')
        assert outcome.is_success
        assert outcome.json_value() == "hi"

    def test_success_value_falls_back_to_root(self, resolver):
        root = mk_outcome("T", status=success_value(b"raw"))
        raw = mk_final_result("T", status={"SuccessReceiptId": "A"}, transaction_outcome=root)

        outcome, verdict = resolver.resolve(raw)

        assert verdict.value == b"raw"
        assert outcome.json_value() == b"raw"

    def test_success_without_value(self, resolver):
        _, verdict = resolver.resolve(_result(["A"], [mk_outcome("A")], status={"SuccessReceiptId": "A"}))
        assert verdict == Success(None)

    def test_raise_for_status(self, resolver):
        failed, _ = resolver.resolve(_result(["A"], [
            mk_outcome("A", status={"Failure": function_call_failure()}),
        ]))
        ok, _ = resolver.resolve(mk_final_result("T"))

        with pytest.raises(ReceiptFailure):
            failed.raise_for_status()
        assert ok.raise_for_status() is ok
