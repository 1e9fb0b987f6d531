"""Unit tests for the challenge evaluation state machine (pure functions)."""

from datetime import UTC, datetime, timedelta

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from src.pt_challenge.domain import evaluator
from src.pt_challenge.domain.models import ChallengeAccount, ChallengeTemplate
from src.pt_common.enums import ChallengeStatus, FailReason
from src.pt_common.errors import InvalidAmountError, InvalidStateError

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)
FUND = 1_000_000  # $10,000.00


def _template(**overrides: object) -> ChallengeTemplate:
    fields: dict[str, object] = {
        "id": "tpl-10k",
        "name": "$10,000 Two-Step",
        "fund_size": FUND,
        "fee": 9_900,
        "steps_count": 2,
        "max_daily_drawdown_bps": 500,
        "max_overall_drawdown_bps": 1_000,
        "profit_target_bps": [800, 500],
        "min_trading_days": 0,
        "expiry_days": 30,
    }
    fields.update(overrides)
    return ChallengeTemplate(**fields)  # type: ignore[arg-type]


def _account(template: ChallengeTemplate) -> ChallengeAccount:
    return ChallengeAccount.open("ch-1", "user-1", template, NOW)


class TestTemplateValidation:
    def test_targets_must_match_steps(self) -> None:
        with pytest.raises(ValueError, match="profit targets"):
            _template(steps_count=2, profit_target_bps=[800])

    def test_zero_steps_rejected(self) -> None:
        with pytest.raises(ValueError):
            _template(steps_count=0, profit_target_bps=[])

    def test_negative_fee_rejected(self) -> None:
        with pytest.raises(ValueError):
            _template(fee=-1)


class TestDrawdown:
    def test_daily_drawdown_fails_and_blocks_further_trades(self) -> None:
        template = _template()
        account = _account(template)

        evaluation = evaluator.on_equity_snapshot(account, template, 940_000, NOW)

        failed = evaluation.account
        assert failed.status == ChallengeStatus.FAILED
        assert failed.fail_reason == FailReason.DAILY_DRAWDOWN
        assert evaluator.drawdown_snapshot(failed).daily_drawdown_bps == 600
        with pytest.raises(InvalidStateError):
            evaluator.on_trade_close(failed, template, 50_000, NOW)

    def test_exactly_at_limit_survives(self) -> None:
        template = _template()
        evaluation = evaluator.on_equity_snapshot(_account(template), template, 950_000, NOW)
        assert evaluation.account.status == ChallengeStatus.ACTIVE
        assert not evaluation.changed_state

    def test_fraction_of_a_bps_over_limit_fails(self) -> None:
        template = _template()
        evaluation = evaluator.on_equity_snapshot(_account(template), template, 949_999, NOW)
        assert evaluation.account.status == ChallengeStatus.FAILED

    def test_overall_drawdown_measured_from_high_water_mark(self) -> None:
        template = _template(max_daily_drawdown_bps=2_000, min_trading_days=5)
        account = evaluator.on_trade_close(_account(template), template, 100_000, NOW).account
        assert account.high_water_mark == 1_100_000

        # 1,100,000 -> 985,000 is 10.45% off the peak but only 1.5% under the fund size
        evaluation = evaluator.on_equity_snapshot(
            account, template, 985_000, NOW + timedelta(days=1)
        )
        assert evaluation.account.status == ChallengeStatus.FAILED
        assert evaluation.account.fail_reason == FailReason.OVERALL_DRAWDOWN

    def test_day_rollover_resets_daily_baseline(self) -> None:
        template = _template()
        account = evaluator.on_equity_snapshot(_account(template), template, 960_000, NOW).account
        rolled = evaluator.on_day_rollover(account, template, NOW + timedelta(days=1)).account
        assert rolled.daily_start_equity == 960_000
        assert rolled.daily_start_date == (NOW + timedelta(days=1)).date()

        # 4% under yesterday's close is within the 5% daily limit
        later = evaluator.on_equity_snapshot(rolled, template, 921_600, NOW + timedelta(days=1))
        assert later.account.status == ChallengeStatus.ACTIVE

    def test_negative_equity_rejected(self) -> None:
        template = _template()
        with pytest.raises(InvalidAmountError):
            evaluator.on_equity_snapshot(_account(template), template, -1, NOW)

    def test_loss_clamped_at_zero(self) -> None:
        template = _template()
        evaluation = evaluator.on_trade_close(_account(template), template, -2_000_000, NOW)
        assert evaluation.account.current_balance == 0
        assert evaluation.account.current_equity == 0
        assert evaluation.account.status == ChallengeStatus.FAILED


class TestProfitTarget:
    def test_trading_days_counted_once_per_day(self) -> None:
        template = _template(min_trading_days=5)
        account = _account(template)
        account = evaluator.on_trade_close(account, template, 1_000, NOW).account
        account = evaluator.on_trade_close(account, template, 1_000, NOW + timedelta(hours=2)).account
        assert account.trading_days == 1
        account = evaluator.on_trade_close(account, template, 1_000, NOW + timedelta(days=1)).account
        assert account.trading_days == 2

    def test_target_waits_for_min_trading_days(self) -> None:
        template = _template(min_trading_days=2)
        account = evaluator.on_trade_close(_account(template), template, 90_000, NOW).account
        assert account.status == ChallengeStatus.ACTIVE
        assert account.current_step == 1

        evaluation = evaluator.on_trade_close(account, template, 1, NOW + timedelta(days=1))
        advanced = evaluation.account
        assert advanced.state_label == "ACTIVE(2)"
        assert evaluation.transitions == [("ACTIVE(1)", "ACTIVE(2)")]
        # Next step measures from the equity at which the previous one passed
        assert advanced.starting_balance == 1_090_001
        assert advanced.high_water_mark == 1_090_001
        assert advanced.trading_days == 0

    def test_last_step_passes(self) -> None:
        template = _template(steps_count=1, profit_target_bps=[800])
        evaluation = evaluator.on_trade_close(_account(template), template, 80_000, NOW)
        assert evaluation.account.status == ChallengeStatus.PASSED
        assert evaluation.transitions == [("ACTIVE(1)", "PASSED")]

    def test_passed_accepts_no_events(self) -> None:
        template = _template(steps_count=1, profit_target_bps=[800])
        passed = evaluator.on_trade_close(_account(template), template, 80_000, NOW).account
        with pytest.raises(InvalidStateError):
            evaluator.on_equity_snapshot(passed, template, 1_000_000, NOW)

    def test_drawdown_checked_before_target(self) -> None:
        template = _template(min_trading_days=2)
        account = evaluator.on_trade_close(_account(template), template, 200_000, NOW).account
        # Day two: 10% over the step start, yet 8.3% under the day's opening equity
        evaluation = evaluator.on_trade_close(
            account, template, -100_000, NOW + timedelta(days=1)
        )
        assert evaluation.account.status == ChallengeStatus.FAILED
        assert evaluation.account.fail_reason == FailReason.DAILY_DRAWDOWN


class TestExpiry:
    def test_event_after_expiry_fails_account(self) -> None:
        template = _template(expiry_days=30)
        evaluation = evaluator.on_trade_close(
            _account(template), template, 90_000, NOW + timedelta(days=31)
        )
        assert evaluation.expired
        assert evaluation.account.status == ChallengeStatus.FAILED
        assert evaluation.account.fail_reason == FailReason.EXPIRED
        # The rejected trade is not applied
        assert evaluation.account.current_balance == FUND

    def test_funded_accounts_do_not_expire(self) -> None:
        template = _template(steps_count=1, profit_target_bps=[800])
        passed = evaluator.on_trade_close(_account(template), template, 80_000, NOW).account
        funded = evaluator.promote_to_funded(passed).account
        evaluation = evaluator.on_day_rollover(funded, template, NOW + timedelta(days=90))
        assert not evaluation.expired
        assert evaluation.account.status == ChallengeStatus.FUNDED


class TestAdminTransitions:
    def test_promote_requires_passed(self) -> None:
        with pytest.raises(InvalidStateError):
            evaluator.promote_to_funded(_account(_template()))

    def test_funded_restarts_from_current_equity(self) -> None:
        template = _template(steps_count=1, profit_target_bps=[800])
        passed = evaluator.on_trade_close(_account(template), template, 80_000, NOW).account
        funded = evaluator.promote_to_funded(passed).account
        assert funded.status == ChallengeStatus.FUNDED
        assert funded.starting_balance == 1_080_000
        assert funded.daily_start_equity == 1_080_000
        assert funded.high_water_mark == 1_080_000

    def test_funded_ignores_target_but_fails_on_drawdown(self) -> None:
        template = _template(steps_count=1, profit_target_bps=[800])
        passed = evaluator.on_trade_close(_account(template), template, 80_000, NOW).account
        funded = evaluator.promote_to_funded(passed).account
        richer = evaluator.on_trade_close(funded, template, 200_000, NOW).account
        assert richer.status == ChallengeStatus.FUNDED
        failed = evaluator.on_equity_snapshot(richer, template, 1_000_000, NOW).account
        assert failed.status == ChallengeStatus.FAILED

    def test_archive_from_failed(self) -> None:
        template = _template()
        failed = evaluator.on_equity_snapshot(_account(template), template, 0, NOW).account
        archived = evaluator.archive(failed).account
        assert archived.status == ChallengeStatus.ARCHIVED
        with pytest.raises(InvalidStateError):
            evaluator.archive(archived)

    def test_input_account_not_mutated(self) -> None:
        template = _template()
        account = _account(template)
        evaluator.on_equity_snapshot(account, template, 0, NOW)
        assert account.status == ChallengeStatus.ACTIVE
        assert account.current_equity == FUND


# ---------------------------------------------------------------------------
# Properties over random event sequences
# ---------------------------------------------------------------------------

_events = st.lists(
    st.tuples(
        st.sampled_from(["trade", "snapshot", "rollover"]),
        st.integers(min_value=-150_000, max_value=150_000),
        st.integers(min_value=0, max_value=2),
    ),
    max_size=40,
)


@settings(max_examples=200, deadline=None)
@given(_events)
def test_state_machine_properties(events: list[tuple[str, int, int]]) -> None:
    template = _template(min_trading_days=2)
    account = _account(template)
    now = NOW
    for kind, value, days in events:
        now += timedelta(days=days)
        if account.status not in (ChallengeStatus.ACTIVE, ChallengeStatus.FUNDED):
            with pytest.raises(InvalidStateError):
                evaluator.on_day_rollover(account, template, now)
            break
        if kind == "trade":
            evaluation = evaluator.on_trade_close(account, template, value, now)
        elif kind == "snapshot":
            equity = max(0, account.current_equity + value)
            evaluation = evaluator.on_equity_snapshot(account, template, equity, now)
        else:
            evaluation = evaluator.on_day_rollover(account, template, now)
        after = evaluation.account

        # Only legal edges are taken
        assert after.status == account.status or evaluator.can_transition(
            account.status, after.status
        )
        # Steps only move forward
        assert after.current_step >= account.current_step
        # High-water mark never falls while the step is unchanged
        if after.current_step == account.current_step and not evaluation.expired:
            assert after.high_water_mark >= account.high_water_mark
            assert after.high_water_mark >= after.current_equity
        assert after.current_balance >= 0
        assert after.current_equity >= 0
        account = after
