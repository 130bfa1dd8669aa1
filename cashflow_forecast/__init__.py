"""Top-level package for the cash-flow forecasting engine.

The primary modules are:

* ``engine`` – budget generation, rolling forecast and variance entry points
* ``storage`` – per-account JSON persistence
* ``service`` – account-scoped façade combining the two
* ``visualization`` – Plotly figures for forecasts and variance
* ``dashboard`` – a Streamlit app that ties everything together

To run the dashboard from the command line you can execute:

```bash
streamlit run cashflow_forecast/dashboard.py
```
"""

from .engine import compute_rolling_forecast, compute_variance, generate_budget, load_budget  # noqa: F401
from .service import ForecastService  # noqa: F401
from .storage import AccountStore  # noqa: F401

__all__ = [
    "AccountStore",
    "ForecastService",
    "compute_rolling_forecast",
    "compute_variance",
    "generate_budget",
    "load_budget",
]
