import pytest

from dealroom_credit.model.assumptions import default_deal, single_tranche_deal


def scenario_a_deal(**overrides):
    """Reference single-tranche deal ($M)."""
    kwargs = dict(
        ltm_revenue        = 500.0,
        ltm_ebitda         = 125.0,
        revenue_growth     = [5.0, 6.0, 7.0, 5.0, 4.0],
        ebitda_margins     = [25.0, 26.0, 27.0, 27.0, 28.0],
        capex_percent      = [3.0, 3.0, 3.0, 2.5, 2.5],
        senior_amount      = 400.0,
        interest_rate      = 9.5,
        amort_rate         = 1.0,
        tax_rate           = 25.0,
        da_percent         = 4.0,
        cash_sweep_percent = 50.0,
    )
    kwargs.update(overrides)
    return single_tranche_deal(**kwargs)


@pytest.fixture
def scenario_a():
    return scenario_a_deal()


@pytest.fixture
def sandbox_deal():
    return default_deal()
