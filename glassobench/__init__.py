__version__ = '0.1dev'

from glassobench.covariance import (  # noqa F401
    GraphicalLasso, graphical_lasso_path, empirical_covariance,
)
from glassobench.metrics import (  # noqa F401
    edge_counts, null_recovery_rates, connectivity_indicator, is_connected,
)
from .experiment import (  # noqa F401
    GlassoRecoveryExperiment, run_trial, summarize_trials,
)
