import pytest

from dealroom_credit.analysis.lender_returns import (
    LenderReturnsInput,
    calculate_lender_returns,
    cash_flow_df,
    irr_by_hold_period,
)


def _par_loan(**overrides):
    kwargs = dict(principal_amount=100.0, oid=0.0, upfront_fee=0.0, spread=500.0,
                  base_rate=5.0, hold_period=3, prepayment_premiums=[],
                  mandatory_amort_percent=0.0)
    kwargs.update(overrides)
    return LenderReturnsInput(**kwargs)


def test_par_loan_yields_coupon():
    res = calculate_lender_returns(_par_loan())
    assert res.initial_investment == pytest.approx(100.0)
    assert [cf.total_cash for cf in res.cash_flows] == pytest.approx([10.0, 10.0, 110.0])
    assert res.irr == pytest.approx(10.0)
    assert res.moic == pytest.approx(1.3)
    assert res.average_yield == pytest.approx(10.0)
    assert res.total_fees == 0.0


def test_discount_lifts_irr_above_coupon():
    res = calculate_lender_returns(_par_loan(oid=2.0, upfront_fee=1.0))
    assert res.initial_investment == pytest.approx(97.0)
    assert res.irr > 10.0
    assert res.total_fees == pytest.approx(3.0)


def test_call_premium_paid_on_exit():
    res = calculate_lender_returns(_par_loan(hold_period=1, prepayment_premiums=[102.0]))
    flow = res.cash_flows[0]
    assert flow.prepayment == pytest.approx(100.0)
    assert flow.prepayment_premium == pytest.approx(2.0)
    assert res.irr == pytest.approx(12.0)
    assert res.total_fees == pytest.approx(2.0)


def test_amortization_then_prepayment():
    res = calculate_lender_returns(_par_loan(mandatory_amort_percent=5.0))
    assert [cf.amortization for cf in res.cash_flows] == pytest.approx([5.0, 5.0, 5.0])
    assert [cf.prepayment for cf in res.cash_flows] == pytest.approx([0.0, 0.0, 85.0])
    assert res.cash_flows[-1].ending_principal == pytest.approx(0.0)
    assert res.total_principal == pytest.approx(100.0)
    assert res.cash_flows[1].interest == pytest.approx(9.5)


def test_irr_by_hold_period():
    inp = LenderReturnsInput()
    df = irr_by_hold_period(inp, max_years=5)
    assert list(df.index) == [1, 2, 3, 4, 5]
    # Call protection front-loads returns
    assert df.loc[1, "IRR %"] > df.loc[5, "IRR %"]
    assert df.loc[1, "Call Price"] == 102.0
    assert inp.hold_period == 3


def test_cash_flow_df():
    df = cash_flow_df(calculate_lender_returns(_par_loan()))
    assert list(df.index) == [1, 2, 3]
    assert df["Cumulative Cash"].iloc[-1] == pytest.approx(130.0)
