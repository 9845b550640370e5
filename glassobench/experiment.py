import warnings
from collections import namedtuple

import numpy as np
from joblib import Parallel, delayed
from sklearn.base import BaseEstimator
from sklearn.utils import check_random_state

from glassobench.covariance import empirical_covariance, graphical_lasso_path
from glassobench.metrics import connectivity_indicator, null_recovery_rates
from glassobench.utils.data import (
    make_chain_precision, make_sparse_precision, sample_gaussian)
from glassobench.utils.validation import (
    check_alphas, check_density, check_positive_int, check_threshold)


GRAPHS = ("random", "chain")
SOLVERS = ("bcd", "sklearn")

TrialResult = namedtuple(
    "TrialResult", ["alphas", "tpr", "fpr", "connected", "precisions"])
TrialResult.__doc__ = """Outcome of one Monte Carlo repetition.

alphas : ndarray, shape (n_alphas,)
tpr, fpr : ndarray, shape (n_alphas,)
connected : ndarray of {1, 2}, shape (n_alphas,), or None
precisions : list of ndarray, or None
"""


def _check_graph(graph):
    if graph not in GRAPHS:
        raise ValueError(f"Unsupported graph {graph!r}, expected one of {GRAPHS}.")


def run_trial(n_features, n_samples, alphas, graph="random", density=0.25,
              threshold=1e-6, connectivity_threshold=1e-6, solver="bcd",
              solver_params=None, keep_precisions=False, random_state=None):
    """Run one generate, sample, estimate, score cycle.

    Parameters
    ----------
    n_features : int
        Number of nodes of the graph.

    n_samples : int
        Number of Gaussian observations drawn.

    alphas : float | array-like, shape (n_alphas,)
        Regularization path.

    graph : {'random', 'chain'}, default 'random'
        Ground truth: a random sparse graph (see
        :func:`~glassobench.utils.data.make_sparse_precision`) or a Markov
        chain (see :func:`~glassobench.utils.data.make_chain_precision`).

    density : float in ]0, 1], default 0.25
        Edge probability of the random graph. Ignored for the chain.

    threshold : float, default 1e-6
        Null threshold used to score the estimates.

    connectivity_threshold : float, default 1e-6
        Edge threshold used to test connectivity of the estimates. Only
        used for the chain graph.

    solver : {'bcd', 'sklearn'}, default 'bcd'
        Graphical lasso solver, see
        :func:`~glassobench.covariance.graphical_lasso_path`.

    solver_params : dict | None
        Extra solver keyword arguments.

    keep_precisions : bool, default False
        Whether to return the estimated precision matrices.

    random_state : int | RandomState instance | None (default)
        Determines random number generation.

    Returns
    -------
    result : TrialResult
    """
    _check_graph(graph)
    check_positive_int(n_samples, name="n_samples")
    alphas = check_alphas(alphas)
    rng = check_random_state(random_state)

    if graph == "random":
        Theta, Sigma = make_sparse_precision(
            n_features, density, random_state=rng)
    else:
        Theta, Sigma = make_chain_precision(n_features)

    X = sample_gaussian(np.zeros(Theta.shape[0]), Sigma, n_samples,
                        random_state=rng)
    S = empirical_covariance(X)
    alphas, precisions = graphical_lasso_path(
        S, alphas, solver=solver, **(solver_params or {}))

    rates = np.array([null_recovery_rates(Theta, precision, threshold)
                      for precision in precisions])
    connected = None
    if graph == "chain":
        connected = np.array([
            connectivity_indicator(precision, connectivity_threshold)
            for precision in precisions])

    return TrialResult(
        alphas=alphas,
        tpr=rates[:, 0],
        fpr=rates[:, 1],
        connected=connected,
        precisions=precisions if keep_precisions else None,
    )


def summarize_trials(trials, quantiles=(0.1, 0.9)):
    """Aggregate repetitions into per-alpha statistics.

    Parameters
    ----------
    trials : sequence of TrialResult
        Repetitions sharing the same regularization path.

    quantiles : tuple of float, default (0.1, 0.9)
        Quantiles reported besides the mean.

    Returns
    -------
    summary : dict
        ``alphas`` plus, for ``name`` in (``tpr``, ``fpr``), the arrays
        ``{name}_mean`` and ``{name}_q{100 * q:g}`` for every quantile ``q``,
        each of shape (n_alphas,), e.g. ``tpr_q10`` or ``fpr_q2.5``. When
        connectivity was recorded, ``connected_mean`` holds the fraction of
        connected estimates.
    """
    trials = list(trials)
    if not trials:
        raise ValueError("Cannot summarize an empty list of trials.")
    alphas = trials[0].alphas
    for trial in trials[1:]:
        if not np.array_equal(trial.alphas, alphas):
            raise ValueError("All trials should share the same alphas.")

    keys = [f"q{100 * q:g}" for q in quantiles]
    if len(set(keys)) != len(keys):
        raise ValueError(f"quantiles should be distinct, got {quantiles}.")

    summary = {"alphas": alphas}
    for name in ("tpr", "fpr"):
        values = np.array([getattr(trial, name) for trial in trials])
        summary[f"{name}_mean"] = values.mean(axis=0)
        for key, q_values in zip(keys, np.quantile(values, quantiles, axis=0)):
            summary[f"{name}_{key}"] = q_values

    if all(trial.connected is not None for trial in trials):
        connected = np.array([trial.connected for trial in trials])
        summary["connected_mean"] = np.mean(connected == 1, axis=0)
    return summary


class GlassoRecoveryExperiment(BaseEstimator):
    """Monte Carlo evaluation of graphical lasso support recovery.

    Each repetition draws a ground truth precision matrix, samples Gaussian
    observations from it, runs the graphical lasso along ``alphas`` on the
    empirical covariance and scores every estimate with
    :func:`~glassobench.metrics.null_recovery_rates`.

    Parameters
    ----------
    n_features : int, default 5
        Number of nodes of the graph.
    n_samples : int, default 1000
        Number of observations per repetition.
    alphas : array-like | None, default None
        Regularization path. If None, ``np.geomspace(0.01, 1, 10)``.
    n_repeats : int, default 100
        Number of Monte Carlo repetitions.
    graph : {'random', 'chain'}, default 'random'
        Ground truth graph.
    density : float in ]0, 1], default 0.25
        Edge probability of the random graph.
    threshold : float, default 1e-6
        Null threshold of the scorer.
    connectivity_threshold : float, default 1e-6
        Edge threshold of the connectivity check (chain graph).
    solver : {'bcd', 'sklearn'}, default 'bcd'
        Graphical lasso solver.
    solver_params : dict | None, default None
        Extra solver keyword arguments.
    n_jobs : int, default 1
        Number of repetitions run in parallel.
    on_error : {'raise', 'skip'}, default 'raise'
        Whether a numerical failure aborts the run or only drops the
        repetition with a warning.
    random_state : int | RandomState instance | None (default)
        Seeds the repetitions. Results do not depend on ``n_jobs``.
    verbose : bool, default False
        Print progress.

    Attributes
    ----------
    alphas_ : ndarray, shape (n_alphas,)
        Increasing regularization path used.
    trials_ : list of TrialResult
        Successful repetitions, in order.
    summary_ : dict
        Output of :func:`summarize_trials` on ``trials_``.
    n_failed_ : int
        Number of repetitions dropped with ``on_error='skip'``.
    precisions_ : list of ndarray
        Estimates of the last successful repetition (chain graph only).
    """

    def __init__(self, n_features=5, n_samples=1000, alphas=None,
                 n_repeats=100, graph="random", density=0.25, threshold=1e-6,
                 connectivity_threshold=1e-6, solver="bcd",
                 solver_params=None, n_jobs=1, on_error="raise",
                 random_state=None, verbose=False):
        self.n_features = n_features
        self.n_samples = n_samples
        self.alphas = alphas
        self.n_repeats = n_repeats
        self.graph = graph
        self.density = density
        self.threshold = threshold
        self.connectivity_threshold = connectivity_threshold
        self.solver = solver
        self.solver_params = solver_params
        self.n_jobs = n_jobs
        self.on_error = on_error
        self.random_state = random_state
        self.verbose = verbose

    def _check_params(self):
        check_positive_int(self.n_features, name="n_features")
        check_positive_int(self.n_samples, name="n_samples")
        check_positive_int(self.n_repeats, name="n_repeats")
        _check_graph(self.graph)
        if self.graph == "random":
            check_density(self.density)
        check_threshold(self.threshold, name="threshold")
        check_threshold(self.connectivity_threshold,
                        name="connectivity_threshold")
        if self.solver not in SOLVERS:
            raise ValueError(
                f"Unsupported solver {self.solver!r}, expected one of {SOLVERS}.")
        if self.on_error not in ("raise", "skip"):
            raise ValueError(
                f"on_error should be 'raise' or 'skip', got {self.on_error!r}.")
        alphas = np.geomspace(0.01, 1, 10) if self.alphas is None else self.alphas
        return check_alphas(alphas)

    def _run_one(self, seed, alphas):
        try:
            trial = run_trial(
                self.n_features, self.n_samples, alphas, graph=self.graph,
                density=self.density, threshold=self.threshold,
                connectivity_threshold=self.connectivity_threshold,
                solver=self.solver, solver_params=self.solver_params,
                keep_precisions=self.graph == "chain", random_state=seed)
        except (FloatingPointError, np.linalg.LinAlgError) as error:
            if self.on_error == "raise":
                raise
            return None, error
        return trial, None

    def run(self):
        """Run all repetitions.

        Returns
        -------
        self : object
            Experiment with fitted attributes.
        """
        alphas = self._check_params()
        rng = check_random_state(self.random_state)
        seeds = rng.randint(np.iinfo(np.int32).max, size=self.n_repeats)

        results = Parallel(self.n_jobs)(
            delayed(self._run_one)(seed, alphas) for seed in seeds)

        trials = []
        n_failed = 0
        for idx, (trial, error) in enumerate(results):
            if error is not None:
                n_failed += 1
                warnings.warn(
                    f"Repetition {idx + 1}/{self.n_repeats} failed and is "
                    f"skipped: {error!r}", UserWarning)
                continue
            trials.append(trial)
            if self.verbose:
                print(f"Repetition {idx + 1}/{self.n_repeats}: "
                      f"mean tpr {trial.tpr.mean():.3f}, "
                      f"mean fpr {trial.fpr.mean():.3f}")

        if not trials:
            raise RuntimeError(
                f"All {self.n_repeats} repetitions failed.")

        self.alphas_ = alphas
        self.trials_ = trials
        self.n_failed_ = n_failed
        self.summary_ = summarize_trials(trials)
        if self.graph == "chain":
            self.precisions_ = trials[-1].precisions
        return self
