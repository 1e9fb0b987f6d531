"""Challenge evaluation state machine.

Pure functions over (ChallengeAccount, ChallengeTemplate): no I/O, no clock
reads. The caller passes `now` and persists the returned account.

States and legal transitions:

    ACTIVE(n) -> ACTIVE(n+1) | PASSED | FAILED | ARCHIVED
    PASSED    -> FUNDED | ARCHIVED
    FUNDED    -> FAILED | ARCHIVED
    FAILED    -> ARCHIVED

Per event, in order:
  1. expiry        (ACTIVE only)  -> FAILED/EXPIRED, event rejected
  2. day rollover  when the event falls on a later UTC day
  3. apply the event to balance / equity, raise the high-water mark
  4. drawdown      daily then overall -> FAILED
  5. profit target (ACTIVE only)  -> next step or PASSED

Overall drawdown is measured from the high-water mark. Thresholds compare
exact ratios; basis-point figures are floored for display only.
"""

import logging
from datetime import datetime, timedelta

from src.pt_challenge.domain.models import (
    ChallengeAccount,
    ChallengeTemplate,
    DrawdownSnapshot,
    Evaluation,
)
from src.pt_common.cents import exceeds_bps, ratio_bps, reaches_bps
from src.pt_common.datetime_utils import ensure_utc, trading_day
from src.pt_common.enums import ChallengeStatus, FailReason
from src.pt_common.errors import InvalidAmountError, InvalidStateError

logger = logging.getLogger(__name__)

TRANSITIONS: dict[ChallengeStatus, frozenset[ChallengeStatus]] = {
    ChallengeStatus.ACTIVE: frozenset(
        {ChallengeStatus.ACTIVE, ChallengeStatus.PASSED, ChallengeStatus.FAILED, ChallengeStatus.ARCHIVED}
    ),
    ChallengeStatus.PASSED: frozenset({ChallengeStatus.FUNDED, ChallengeStatus.ARCHIVED}),
    ChallengeStatus.FUNDED: frozenset({ChallengeStatus.FAILED, ChallengeStatus.ARCHIVED}),
    ChallengeStatus.FAILED: frozenset({ChallengeStatus.ARCHIVED}),
    ChallengeStatus.ARCHIVED: frozenset(),
}

# States that still accept trading events
_EVALUATED = (ChallengeStatus.ACTIVE, ChallengeStatus.FUNDED)


def can_transition(current: str, target: str) -> bool:
    return ChallengeStatus(target) in TRANSITIONS[ChallengeStatus(current)]


def transition(evaluation: Evaluation, target: ChallengeStatus) -> None:
    """Move evaluation.account to `target`, recording the edge."""
    account = evaluation.account
    if not can_transition(account.status, target):
        raise InvalidStateError(f"challenge account {account.id}: {account.status} -> {target.value}")
    before = account.state_label
    account.status = target.value
    evaluation.transitions.append((before, account.state_label))


def drawdown_snapshot(account: ChallengeAccount) -> DrawdownSnapshot:
    equity = account.current_equity
    return DrawdownSnapshot(
        daily_drawdown_bps=max(0, ratio_bps(account.daily_start_equity - equity, account.daily_start_equity)),
        overall_drawdown_bps=max(0, ratio_bps(account.high_water_mark - equity, account.high_water_mark)),
        profit_bps=ratio_bps(equity - account.starting_balance, account.starting_balance),
    )


def is_expired(account: ChallengeAccount, template: ChallengeTemplate, now: datetime) -> bool:
    return ensure_utc(now) - ensure_utc(account.started_at) > timedelta(days=template.expiry_days)


# ---------------------------------------------------------------------------
# Evaluation steps
# ---------------------------------------------------------------------------


def _require_evaluated(account: ChallengeAccount) -> None:
    if account.status not in _EVALUATED:
        raise InvalidStateError(
            f"challenge account {account.id} is {account.status} and accepts no events"
        )


def _check_expiry(evaluation: Evaluation, template: ChallengeTemplate, now: datetime) -> bool:
    account = evaluation.account
    if account.status != ChallengeStatus.ACTIVE or not is_expired(account, template, now):
        return False
    transition(evaluation, ChallengeStatus.FAILED)
    account.fail_reason = FailReason.EXPIRED.value
    evaluation.expired = True
    return True


def _roll_day(account: ChallengeAccount, now: datetime) -> None:
    today = trading_day(now)
    if today > account.daily_start_date:
        account.daily_start_equity = account.current_equity
        account.daily_start_date = today


def _check_drawdown(evaluation: Evaluation, template: ChallengeTemplate) -> bool:
    account = evaluation.account
    equity = account.current_equity
    reason: FailReason | None = None
    if account.daily_start_equity > 0 and exceeds_bps(
        account.daily_start_equity - equity, account.daily_start_equity, template.max_daily_drawdown_bps
    ):
        reason = FailReason.DAILY_DRAWDOWN
    elif account.high_water_mark > 0 and exceeds_bps(
        account.high_water_mark - equity, account.high_water_mark, template.max_overall_drawdown_bps
    ):
        reason = FailReason.OVERALL_DRAWDOWN
    if reason is None:
        return False
    transition(evaluation, ChallengeStatus.FAILED)
    account.fail_reason = reason.value
    return True


def _check_target(evaluation: Evaluation, template: ChallengeTemplate) -> None:
    account = evaluation.account
    if account.status != ChallengeStatus.ACTIVE:
        return
    if account.trading_days < template.min_trading_days:
        return
    gain = account.current_equity - account.starting_balance
    if gain <= 0 or not reaches_bps(gain, account.starting_balance, template.target_for_step(account.current_step)):
        return
    if account.current_step >= template.steps_count:
        transition(evaluation, ChallengeStatus.PASSED)
        return
    before = account.state_label
    account.current_step += 1
    account.starting_balance = account.current_equity
    account.high_water_mark = account.current_equity
    account.trading_days = 0
    evaluation.transitions.append((before, account.state_label))


def _evaluate(
    account: ChallengeAccount,
    template: ChallengeTemplate,
    now: datetime,
    apply_event,
) -> Evaluation:
    _require_evaluated(account)
    evaluation = Evaluation(account=account.copy())
    if _check_expiry(evaluation, template, now):
        return evaluation
    _roll_day(evaluation.account, now)
    apply_event(evaluation.account)
    evaluation.account.high_water_mark = max(
        evaluation.account.high_water_mark, evaluation.account.current_equity
    )
    if not _check_drawdown(evaluation, template):
        _check_target(evaluation, template)
    for before, after in evaluation.transitions:
        logger.info("Challenge account %s: %s -> %s", account.id, before, after)
    return evaluation


# ---------------------------------------------------------------------------
# Public inputs
# ---------------------------------------------------------------------------


def on_trade_close(
    account: ChallengeAccount, template: ChallengeTemplate, pnl: int, now: datetime
) -> Evaluation:
    """A closed trade realises `pnl` cents and counts a trading day."""

    def apply(acc: ChallengeAccount) -> None:
        acc.current_balance = max(0, acc.current_balance + pnl)
        acc.current_equity = max(0, acc.current_equity + pnl)
        today = trading_day(now)
        if acc.last_trade_date != today:
            acc.trading_days += 1
            acc.last_trade_date = today

    return _evaluate(account, template, now, apply)


def on_equity_snapshot(
    account: ChallengeAccount, template: ChallengeTemplate, equity: int, now: datetime
) -> Evaluation:
    """Floating equity reported by the trade server."""
    if equity < 0:
        raise InvalidAmountError(f"equity must be non-negative, got {equity}")

    def apply(acc: ChallengeAccount) -> None:
        acc.current_equity = equity

    return _evaluate(account, template, now, apply)


def on_day_rollover(
    account: ChallengeAccount, template: ChallengeTemplate, now: datetime
) -> Evaluation:
    """Start a new trading day; also where idle accounts expire."""
    return _evaluate(account, template, now, lambda acc: None)


def archive(account: ChallengeAccount) -> Evaluation:
    evaluation = Evaluation(account=account.copy())
    transition(evaluation, ChallengeStatus.ARCHIVED)
    return evaluation


def promote_to_funded(account: ChallengeAccount) -> Evaluation:
    """PASSED -> FUNDED; the funded phase starts from the current equity."""
    evaluation = Evaluation(account=account.copy())
    transition(evaluation, ChallengeStatus.FUNDED)
    funded = evaluation.account
    funded.starting_balance = funded.current_equity
    funded.daily_start_equity = funded.current_equity
    return evaluation
