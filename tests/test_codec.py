import unittest
from datetime import datetime, timezone
from decimal import Decimal

from decision_ledger.codec import MAX_UNITS, RecordCodec
from decision_ledger.errors import EncodingError
from decision_ledger.models import MaintenanceDecisionInput, PaymentDecisionInput, VoiceAuthorizationInput


def _payment_input(**overrides):
    data = dict(
        tenant="0xTenant",
        landlord="0xLandlord",
        amount=Decimal("1500.00"),
        approved=True,
        confidence_score=92,
        reasoning="On-time history",
    )
    data.update(overrides)
    return PaymentDecisionInput(**data)


class AmountScalingTests(unittest.TestCase):
    def setUp(self):
        self.codec = RecordCodec()

    def test_amounts_scale_to_six_decimals(self):
        self.assertEqual(self.codec.encode_amount(Decimal("1500.00")), 1_500_000_000)
        self.assertEqual(self.codec.encode_amount("0.000001"), 1)
        self.assertEqual(self.codec.encode_amount(42), 42_000_000)
        self.assertEqual(self.codec.encode_amount(12.5), 12_500_000)

    def test_fractional_residue_is_rejected_not_rounded(self):
        with self.assertRaises(EncodingError):
            self.codec.encode_amount("0.0000001")
        with self.assertRaises(EncodingError):
            self.codec.encode_amount("1500.0000005")

    def test_trailing_zeros_beyond_precision_are_exact(self):
        self.assertEqual(self.codec.encode_amount("1.50000000"), 1_500_000)

    def test_range_violations(self):
        for value in ("-1", "Infinity", "NaN", "abc", True, "1e1000000", Decimal("9e999999")):
            with self.subTest(value=value):
                with self.assertRaises(EncodingError):
                    self.codec.encode_amount(value)

    def test_residue_far_below_leading_digit_is_rejected(self):
        # 1e70 + 1e-40 carries more significant digits than the scaling context
        amount = "1" + "0" * 70 + "." + "0" * 39 + "1"
        with self.assertRaises(EncodingError):
            self.codec.encode_amount(amount)
        self.assertEqual(self.codec.encode_amount("1" + "0" * 70 + ".000001"), 10**76 + 1)

    def test_maximum_magnitude(self):
        def as_amount(units):
            return Decimal(f"{units // 10**6}.{units % 10**6:06d}")

        self.assertEqual(self.codec.encode_amount(as_amount(MAX_UNITS)), MAX_UNITS)
        with self.assertRaises(EncodingError):
            self.codec.encode_amount(as_amount(MAX_UNITS + 1))

    def test_decode_is_inverse_of_encode(self):
        for text in ("1500.00", "0.000001", "987654321.123456"):
            with self.subTest(amount=text):
                units = self.codec.encode_amount(text)
                self.assertEqual(self.codec.decode_amount(str(units)), Decimal(text))

    def test_decode_rejects_garbage_units(self):
        with self.assertRaises(EncodingError):
            self.codec.decode_amount("12.5")
        with self.assertRaises(EncodingError):
            self.codec.decode_amount(-1)

    def test_custom_precision(self):
        codec = RecordCodec(amount_decimals=2)
        self.assertEqual(codec.encode_amount("19.99"), 1999)
        with self.assertRaises(EncodingError):
            codec.encode_amount("19.999")


class TimestampTests(unittest.TestCase):
    def test_epoch_and_iso_forms_normalize_to_utc(self):
        expected = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
        epoch = int(expected.timestamp())
        self.assertEqual(RecordCodec.decode_timestamp(epoch), expected)
        self.assertEqual(RecordCodec.decode_timestamp(str(epoch)), expected)
        self.assertEqual(RecordCodec.decode_timestamp("2025-03-01T12:00:00Z"), expected)
        self.assertEqual(RecordCodec.decode_timestamp("2025-03-01T14:00:00+02:00"), expected)
        self.assertEqual(RecordCodec.decode_timestamp("2025-03-01T12:00:00"), expected)

    def test_invalid_timestamps(self):
        for raw in ("yesterday", "", None, True):
            with self.subTest(raw=raw):
                with self.assertRaises(EncodingError):
                    RecordCodec.decode_timestamp(raw)


class RecordEncodingTests(unittest.TestCase):
    def setUp(self):
        self.codec = RecordCodec(max_text_bytes=64)

    def test_payment_decision_encoding(self):
        encoded = self.codec.encode_payment_decision(_payment_input())
        self.assertEqual(
            encoded,
            {
                "tenant": "0xTenant",
                "landlord": "0xLandlord",
                "amount_units": "1500000000",
                "approved": True,
                "confidence_score": 92,
                "reasoning": "On-time history",
            },
        )

    def test_payment_decision_decoding(self):
        raw = self.codec.encode_payment_decision(_payment_input())
        raw.update({"timestamp": 1740830400, "executed": True, "execution_tx_ref": "tx-abc"})

        decision = self.codec.decode_payment_decision("0xabc", raw)
        self.assertEqual(decision.decision_id, "0xabc")
        self.assertEqual(decision.amount, Decimal("1500"))
        self.assertTrue(decision.executed)
        self.assertEqual(decision.execution_tx_ref, "tx-abc")
        self.assertEqual(decision.timestamp.tzinfo, timezone.utc)

    def test_unexecuted_record_drops_stray_reference(self):
        raw = self.codec.encode_payment_decision(_payment_input())
        raw.update({"timestamp": 1740830400, "executed": False, "execution_tx_ref": "0x00"})
        self.assertIsNone(self.codec.decode_payment_decision("0xabc", raw).execution_tx_ref)

    def test_flags_must_be_booleans(self):
        raw = self.codec.encode_payment_decision(_payment_input())
        raw.update({"timestamp": 1740830400, "approved": "false"})
        with self.assertRaises(EncodingError):
            self.codec.decode_payment_decision("0xabc", raw)

        raw.update({"approved": False, "executed": "true", "execution_tx_ref": "tx-abc"})
        with self.assertRaises(EncodingError):
            self.codec.decode_payment_decision("0xabc", raw)

        raw.update({"executed": None, "execution_tx_ref": None})
        self.assertFalse(self.codec.decode_payment_decision("0xabc", raw).executed)

        auth = VoiceAuthorizationInput(user="0xU", command_type="pay_rent", command="pay", authorized=True)
        raw = self.codec.encode_voice_authorization(auth)
        raw.update({"timestamp": 1740830400, "authorized": 0})
        with self.assertRaises(EncodingError):
            self.codec.decode_voice_authorization("0xauth", raw)

    def test_partial_records_are_rejected(self):
        raw = self.codec.encode_payment_decision(_payment_input())
        del raw["reasoning"]
        raw["timestamp"] = 1740830400
        with self.assertRaises(EncodingError):
            self.codec.decode_payment_decision("0xabc", raw)

        raw = self.codec.encode_payment_decision(_payment_input())
        raw.update({"timestamp": 1740830400, "executed": True})
        with self.assertRaises(EncodingError):
            self.codec.decode_payment_decision("0xabc", raw)

    def test_text_byte_limit(self):
        with self.assertRaises(EncodingError):
            self.codec.encode_payment_decision(_payment_input(reasoning="ü" * 33))
        self.codec.encode_payment_decision(_payment_input(reasoning="ü" * 32))

    def test_execution_reference_limit(self):
        self.assertEqual(self.codec.encode_tx_ref("0x" + "a" * 64), "0x" + "a" * 64)
        with self.assertRaises(EncodingError):
            self.codec.encode_tx_ref("r" * 129)

    def test_voice_authorization_round_trip(self):
        auth = VoiceAuthorizationInput(user="0xUser", command_type="pay_rent", command="pay rent", authorized=False)
        raw = self.codec.encode_voice_authorization(auth)
        raw["timestamp"] = "2025-03-01T12:00:00Z"

        decoded = self.codec.decode_voice_authorization("0xauth", raw)
        self.assertEqual(decoded.auth_id, "0xauth")
        self.assertEqual(decoded.command, "pay rent")
        self.assertFalse(decoded.authorized)

    def test_maintenance_decision_round_trip(self):
        decision = MaintenanceDecisionInput(
            request_id=9,
            category="electrical",
            priority="urgent",
            estimated_cost_min="75.25",
            estimated_cost_max="300",
            reasoning="Sparking outlet",
            urgency_score=10,
        )
        raw = self.codec.encode_maintenance_decision(decision)
        self.assertEqual(raw["estimated_cost_min_units"], "75250000")
        raw["timestamp"] = 1740830400

        decoded = self.codec.decode_maintenance_decision("0xm", raw)
        self.assertEqual(decoded.estimated_cost_min, Decimal("75.25"))
        self.assertEqual(decoded.estimated_cost_max, Decimal("300"))
        self.assertEqual(decoded.urgency_score, 10)


if __name__ == "__main__":
    unittest.main()
