from __future__ import annotations

import math

import pytest

from ordrun.bitcoin.fees import (
    commit_vbytes,
    estimate_change,
    estimate_reveal_value,
    measure_reveal_vsize,
    reveal_value_for_vsize,
)
from ordrun.bitcoin.inscription import (
    InscriptionRequest,
    OutPoint,
    build_reveal_transaction,
    plan_reveals,
)
from ordrun.bitcoin.transaction import DUST_FLOOR, OutputType
from ordrun.errors import InsufficientBalanceError


class TestRevealValue:
    def test_covers_fee_and_dust(self, internal_key, hello_request):
        vsize = measure_reveal_vsize(internal_key, hello_request)
        value = estimate_reveal_value(internal_key, hello_request, 5)
        assert value == math.ceil(vsize * 5) + DUST_FLOOR
        assert value >= DUST_FLOOR

    def test_zero_fee_rate_is_dust_floor(self):
        assert reveal_value_for_vsize(150, 0) == DUST_FLOOR

    def test_monotonic_in_fee_rate(self, internal_key, hello_request):
        values = [estimate_reveal_value(internal_key, hello_request, rate) for rate in (1, 2, 10, 50)]
        assert values == sorted(values)
        assert len(set(values)) == len(values)

    def test_larger_content_costs_more(self, internal_key, recipient_address):
        small = InscriptionRequest("text/plain", b"x" * 10, recipient_address)
        large = InscriptionRequest("text/plain", b"x" * 2000, recipient_address)
        assert estimate_reveal_value(internal_key, large, 5) > estimate_reveal_value(internal_key, small, 5)

    def test_placeholder_matches_real_reveal(self, make_config, internal_key, hello_request):
        config = make_config([hello_request])
        plan = plan_reveals(config, internal_key)[0].with_commit_output(OutPoint("9c" * 32, 2))
        reveal = build_reveal_transaction(config, 0, internal_key, plan)
        assert measure_reveal_vsize(internal_key, hello_request) == reveal.get_vsize()

    def test_vsize_is_stable(self, internal_key, hello_request):
        assert measure_reveal_vsize(internal_key, hello_request) == measure_reveal_vsize(internal_key, hello_request)


class TestCommitSize:
    def test_p2wpkh(self):
        assert commit_vbytes(OutputType.P2WPKH, 1, 1) == 10 + 67 + 43
        assert commit_vbytes(OutputType.P2WPKH, 1, 1, with_change=True) == 10 + 67 + 43 + 31

    def test_p2tr(self):
        assert commit_vbytes(OutputType.P2TR, 2, 3) == 10 + 2 * 57 + 3 * 43
        assert commit_vbytes(OutputType.P2TR, 2, 3, with_change=True) == 10 + 2 * 57 + 3 * 43 + 43


class TestEstimateChange:
    def test_change_kept(self):
        # size 120 vB, 151 vB with change
        assert estimate_change(OutputType.P2WPKH, 1, 1, 100_000, 1_080, 5) == 100_000 - 1_080 - 151 * 5

    def test_change_at_dust_floor_dropped(self):
        spend = 1_000
        total = spend + 151 * 5 + DUST_FLOOR
        assert estimate_change(OutputType.P2WPKH, 1, 1, total, spend, 5) == 0

    def test_change_above_dust_floor_kept(self):
        spend = 1_000
        total = spend + 151 * 5 + DUST_FLOOR + 1
        assert estimate_change(OutputType.P2WPKH, 1, 1, total, spend, 5) == DUST_FLOOR + 1

    def test_feasible_without_change(self):
        # exactly enough for the change-less commit at the target rate
        assert estimate_change(OutputType.P2WPKH, 1, 1, 1_000 + 600, 1_000, 5) == 0

    def test_insufficient(self):
        with pytest.raises(InsufficientBalanceError) as exc_info:
            estimate_change(OutputType.P2WPKH, 1, 1, 1_599, 1_000, 5)
        assert exc_info.value.needed == 1_000 + 120 * 5
        assert exc_info.value.available == 1_599

    def test_spend_exceeds_total(self):
        with pytest.raises(InsufficientBalanceError):
            estimate_change(OutputType.P2TR, 1, 1, 500, 1_000, 1)

    def test_fee_grows_with_rate(self):
        changes = [estimate_change(OutputType.P2TR, 1, 2, 50_000, 2_000, rate) for rate in (1, 5, 20, 80)]
        assert changes == sorted(changes, reverse=True)

    def test_unsupported_sender(self):
        from ordrun.errors import ClassificationError

        with pytest.raises(ClassificationError):
            estimate_change(OutputType.UNSUPPORTED, 1, 1, 100_000, 1_000, 5)
