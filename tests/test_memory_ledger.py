import unittest

from decision_ledger.errors import NotFound, PermanentError, TransientError
from decision_ledger.models import RecordKind
from decision_ledger.transport import (
    REJECT_ALREADY_EXECUTED,
    REJECT_KEY_REUSED,
    REJECT_NOT_FOUND,
    InMemoryLedger,
    LedgerOperation,
    LedgerTransport,
    OperationType,
)

PAYLOAD = {
    "tenant": "0xT",
    "landlord": "0xL",
    "amount_units": "1000000",
    "approved": True,
    "confidence_score": 80,
    "reasoning": "ok",
}


def _record_op(key="k1", payload=None):
    return LedgerOperation(OperationType.RECORD, RecordKind.PAYMENT_DECISION, key, dict(payload or PAYLOAD))


def _mark_op(record_id, ref, key=None):
    return LedgerOperation(
        OperationType.MARK_EXECUTED,
        RecordKind.PAYMENT_DECISION,
        key or f"mark:{record_id}:{ref}",
        {"execution_tx_ref": ref},
        record_id=record_id,
    )


class InMemoryLedgerTests(unittest.TestCase):
    def setUp(self):
        self.ledger = InMemoryLedger(clock=lambda: 1_740_830_400)

    def _include(self, op):
        receipt = self.ledger.submit(op)
        return self.ledger.await_confirmation(receipt)

    def test_satisfies_transport_protocol(self):
        self.assertIsInstance(self.ledger, LedgerTransport)

    def test_records_are_invisible_until_confirmed(self):
        ledger = InMemoryLedger(confirmation_polls=1)
        receipt = ledger.submit(_record_op())
        self.assertEqual(ledger.count(RecordKind.PAYMENT_DECISION), 0)

        self.assertTrue(ledger.await_confirmation(receipt).pending)
        result = ledger.await_confirmation(receipt)
        self.assertTrue(result.confirmed)
        self.assertEqual(ledger.count(RecordKind.PAYMENT_DECISION), 1)

        record = ledger.query(RecordKind.PAYMENT_DECISION, result.record_id)
        self.assertFalse(record["executed"])
        self.assertIsNone(record["execution_tx_ref"])

    def test_ledger_assigns_timestamp_and_id(self):
        result = self._include(_record_op())
        record = self.ledger.query(RecordKind.PAYMENT_DECISION, result.record_id)
        self.assertEqual(record["timestamp"], 1_740_830_400)
        self.assertTrue(result.record_id.startswith("0x"))
        self.assertEqual(result.block_number, 1)

    def test_duplicate_key_returns_original_receipt(self):
        first = self.ledger.submit(_record_op())
        second = self.ledger.submit(_record_op())
        self.assertEqual(first.tx_hash, second.tx_hash)
        self.assertFalse(first.duplicate)
        self.assertTrue(second.duplicate)

        self.assertEqual(
            self.ledger.await_confirmation(first).record_id,
            self.ledger.await_confirmation(second).record_id,
        )
        self.assertEqual(self.ledger.count(RecordKind.PAYMENT_DECISION), 1)

    def test_reused_key_with_different_payload_is_rejected(self):
        self._include(_record_op())
        receipt = self.ledger.submit(_record_op(payload={**PAYLOAD, "confidence_score": 10}))
        result = self.ledger.await_confirmation(receipt)
        self.assertTrue(result.rejected)
        self.assertEqual(result.reason, REJECT_KEY_REUSED)
        self.assertEqual(self.ledger.count(RecordKind.PAYMENT_DECISION), 1)

    def test_mark_executed_rules(self):
        record_id = self._include(_record_op()).record_id

        self.assertTrue(self._include(_mark_op(record_id, "tx-1")).confirmed)
        self.assertTrue(self._include(_mark_op(record_id, "tx-1", key="other-key")).confirmed)

        rejected = self._include(_mark_op(record_id, "tx-2"))
        self.assertEqual(rejected.reason, REJECT_ALREADY_EXECUTED)
        self.assertEqual(self.ledger.query(RecordKind.PAYMENT_DECISION, record_id)["execution_tx_ref"], "tx-1")

        missing = self._include(_mark_op("0xmissing", "tx-1"))
        self.assertEqual(missing.reason, REJECT_NOT_FOUND)

    def test_fault_injection(self):
        self.ledger.fail_next(1)
        with self.assertRaises(TransientError):
            self.ledger.submit(_record_op())
        self.assertEqual(len(self.ledger._by_key), 0)

        self.ledger.fail_next(1, lose_response=True)
        with self.assertRaises(TransientError):
            self.ledger.submit(_record_op())
        self.assertTrue(self.ledger.submit(_record_op()).duplicate)

    def test_unsupported_operations_are_permanent(self):
        with self.assertRaises(PermanentError):
            self.ledger.submit(LedgerOperation("delete", RecordKind.PAYMENT_DECISION, "k"))
        with self.assertRaises(PermanentError):
            self.ledger.submit(LedgerOperation(OperationType.RECORD, "lease", "k"))

    def test_queries(self):
        with self.assertRaises(NotFound):
            self.ledger.query(RecordKind.PAYMENT_DECISION, "0xnope")
        with self.assertRaises(NotFound):
            self.ledger.record_id_at(RecordKind.PAYMENT_DECISION, 0)

        record_id = self._include(_record_op()).record_id
        self.assertEqual(self.ledger.record_id_at(RecordKind.PAYMENT_DECISION, 0), record_id)
        self.assertEqual(self.ledger.count(RecordKind.VOICE_AUTHORIZATION), 0)


if __name__ == "__main__":
    unittest.main()
