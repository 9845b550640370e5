import numpy as np
import pytest

from sklearn.covariance import GraphicalLasso as GraphicalLasso_sklearn
from sklearn.exceptions import ConvergenceWarning

from glassobench.covariance import (
    GraphicalLasso, graphical_lasso_path, empirical_covariance)
from glassobench.utils.data import make_sparse_precision, sample_gaussian


def _covariance_data(n_samples, n_features, random_state=0):
    Theta_true, Sigma = make_sparse_precision(
        n_features, density=0.1, random_state=random_state)
    X = sample_gaussian(np.zeros(n_features), Sigma, n_samples,
                        random_state=random_state)
    S = empirical_covariance(X)
    alpha_max = np.max(np.abs(S - np.diag(np.diag(S))))
    return S, X, Theta_true, alpha_max


def test_empirical_covariance():
    X = np.random.RandomState(0).randn(30, 4)
    S = empirical_covariance(X)
    np.testing.assert_allclose(S, np.cov(X.T, bias=True))
    with pytest.raises(ValueError, match="2D"):
        empirical_covariance(np.ones(3))


@pytest.mark.filterwarnings("ignore::sklearn.exceptions.ConvergenceWarning")
def test_glasso_equivalence_sklearn():
    S, X, Theta_true, alpha_max = _covariance_data(200, 30)
    alpha = alpha_max / 5

    model_sk = GraphicalLasso_sklearn(
        alpha=alpha, tol=1e-10, enet_tol=1e-10, max_iter=1000)
    model_sk.fit(X)

    for algo in ("primal", "dual"):
        model = GraphicalLasso(
            alpha=alpha,
            warm_start=False,
            max_iter=1000,
            tol=1e-12,
            inner_tol=1e-10,
            algo=algo,
        ).fit(X)

        np.testing.assert_allclose(
            model.precision_, model_sk.precision_, atol=1e-4)
        np.testing.assert_allclose(
            model.covariance_, model_sk.covariance_, atol=1e-4)

    # check that we did not mess up alpha:
    np.testing.assert_array_less(X.shape[1] + 1, (model.precision_ != 0).sum())


def test_glasso_warm_start():
    S, X, Theta_true, alpha_max = _covariance_data(200, 30)

    model = GraphicalLasso(
        alpha=alpha_max / 5,
        warm_start=True,
        max_iter=1000,
        tol=1e-10,
        inner_tol=1e-10,
        algo="primal",
    ).fit(X)
    np.testing.assert_array_less(1, model.n_iter_)

    model.fit(X)
    np.testing.assert_equal(model.n_iter_, 1)

    model.algo = "dual"
    with pytest.raises(ValueError, match="does not support"):
        model.fit(X)


@pytest.mark.filterwarnings("ignore::sklearn.exceptions.ConvergenceWarning")
def test_glasso_weights():
    S, X, Theta_true, alpha_max = _covariance_data(200, 30)

    model = GraphicalLasso(
        alpha=alpha_max / 10,
        max_iter=2000,
        tol=1e-16,
        inner_tol=1e-10,
        algo="primal",
    ).fit(S, mode='precomputed')
    prec = model.precision_.copy()

    scal = 2.
    model.weights = np.full(S.shape, scal)
    model.alpha /= scal
    model.fit(S, mode='precomputed')
    np.testing.assert_allclose(prec, model.precision_)

    mask = np.random.RandomState(0).randn(*S.shape) > 0
    mask = mask + mask.T
    mask.flat[::S.shape[0] + 1] = 0
    model.weights = mask.astype(float)
    model.fit(S, mode='precomputed')
    # unpenalized entries stay in the support
    np.testing.assert_array_less(1e-10, np.abs(model.precision_[~mask]))

    with pytest.raises(ValueError, match="symmetric"):
        model.weights = np.triu(np.ones(S.shape))
        model.fit(S, mode='precomputed')


def test_glasso_convergence_warning():
    S, X, Theta_true, alpha_max = _covariance_data(100, 20)
    model = GraphicalLasso(alpha=alpha_max / 10, max_iter=1, tol=1e-14)
    with pytest.warns(ConvergenceWarning, match="did not converge"):
        model.fit(S, mode='precomputed')
    assert model.n_iter_ == 1


def test_glasso_invalid_options():
    S = np.eye(3)
    with pytest.raises(ValueError, match="Unsupported algo"):
        GraphicalLasso(algo="newton").fit(S, mode='precomputed')
    with pytest.raises(ValueError, match="Unsupported mode"):
        GraphicalLasso().fit(S, mode='covariance')
    with pytest.raises(ValueError, match="square"):
        GraphicalLasso().fit(np.ones((2, 3)), mode='precomputed')


def test_glasso_single_feature():
    model = GraphicalLasso(alpha=0.1).fit(np.array([[2.]]), mode='precomputed')
    np.testing.assert_allclose(model.precision_, [[0.5]])


def test_glasso_large_alpha_is_diagonal():
    S, X, Theta_true, alpha_max = _covariance_data(100, 15)
    for algo in ("dual", "primal"):
        model = GraphicalLasso(alpha=10 * alpha_max, algo=algo).fit(
            S, mode='precomputed')
        off_diag = ~np.eye(15, dtype=bool)
        np.testing.assert_array_equal(model.precision_[off_diag], 0.)
        np.testing.assert_allclose(np.diag(model.precision_), 1 / np.diag(S))


@pytest.mark.parametrize("solver", ["bcd", "sklearn"])
def test_path_order_and_length(solver):
    S, X, Theta_true, alpha_max = _covariance_data(200, 10)
    alphas, precisions = graphical_lasso_path(
        S, alpha_max * np.array([0.5, 0.05, 0.5, 0.2]), solver=solver)

    np.testing.assert_allclose(alphas, alpha_max * np.array([0.05, 0.2, 0.5]))
    assert isinstance(precisions, list)
    assert len(precisions) == 3
    n_edges = [np.sum(precision != 0) for precision in precisions]
    # sparser estimates as alpha grows
    assert n_edges[0] >= n_edges[1] >= n_edges[2]
    for precision in precisions:
        np.testing.assert_allclose(precision, precision.T, atol=1e-10)


@pytest.mark.filterwarnings("ignore::sklearn.exceptions.ConvergenceWarning")
def test_path_solvers_agree():
    S, X, Theta_true, alpha_max = _covariance_data(300, 10)
    alphas = alpha_max * np.geomspace(0.05, 0.8, 4)
    _, precisions_bcd = graphical_lasso_path(
        S, alphas, tol=1e-12, inner_tol=1e-10, max_iter=1000)
    _, precisions_sk = graphical_lasso_path(
        S, alphas, solver="sklearn", tol=1e-10, enet_tol=1e-10, max_iter=1000)

    for prec_bcd, prec_sk in zip(precisions_bcd, precisions_sk):
        np.testing.assert_allclose(prec_bcd, prec_sk, atol=1e-4)


def test_path_errors():
    with pytest.raises(ValueError, match="empty"):
        graphical_lasso_path(np.eye(3), [])
    with pytest.raises(ValueError, match="Unsupported solver"):
        graphical_lasso_path(np.eye(3), [0.1], solver="admm")


@pytest.mark.parametrize("algo", ["dual", "primal"])
def test_path_alphas_solved_independently(algo):
    S, X, Theta_true, alpha_max = _covariance_data(200, 10)
    alphas = alpha_max * np.array([0.05, 0.2, 0.5])
    _, precisions = graphical_lasso_path(S, alphas, algo=algo)
    _, precisions_warm = graphical_lasso_path(
        S, alphas, algo=algo, warm_start=True)

    for precision, precision_warm in zip(precisions, precisions_warm):
        np.testing.assert_allclose(precision, precision_warm)
    # each estimate matches a standalone fit at the same alpha
    model = GraphicalLasso(alpha=alphas[-1], algo=algo).fit(
        S, mode='precomputed')
    np.testing.assert_allclose(precisions[-1], model.precision_)


@pytest.mark.parametrize("solver", ["bcd", "sklearn"])
def test_path_single_feature(solver):
    alphas, precisions = graphical_lasso_path(
        np.array([[2.]]), [1., 0.1], solver=solver)
    np.testing.assert_allclose(alphas, [0.1, 1.])
    assert len(precisions) == 2
    for precision in precisions:
        np.testing.assert_allclose(precision, [[0.5]])
