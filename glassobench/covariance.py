# License: BSD 3 clause

import warnings

import numpy as np
from numba import njit
from scipy.linalg import pinvh
from sklearn.base import BaseEstimator
from sklearn.covariance import graphical_lasso
from sklearn.exceptions import ConvergenceWarning

from glassobench.utils.validation import check_alphas, check_square_matrix


@njit
def _soft_threshold(x, u):
    if x > u:
        return x - u
    elif x < -u:
        return x + u
    else:
        return 0.


@njit
def barebones_cd_gram(H, q, x, alpha, weights, max_iter=100, tol=1e-4):
    """Solve min .5 * x.T H x + q.T @ x + alpha * norm(weights * x, 1).

    with *H* symmetric positive definite. ``x`` is updated inplace.
    """
    dim = H.shape[0]
    lc = np.zeros(dim)
    for j in range(dim):
        lc[j] = H[j, j]
    Hx = np.dot(H, x)

    for _ in range(max_iter):
        max_delta = 0.  # max coeff change
        for j in range(dim):
            x_j_prev = x[j]
            x[j] = _soft_threshold(x[j] - (Hx[j] + q[j]) / lc[j],
                                   alpha * weights[j] / lc[j])
            max_delta = max(max_delta, np.abs(x_j_prev - x[j]))
            if x_j_prev != x[j]:
                Hx += (x[j] - x_j_prev) * H[j]
        if max_delta <= tol:
            break

    return x


def empirical_covariance(X):
    """Maximum likelihood covariance of a sample matrix.

    Parameters
    ----------
    X : array-like, shape (n_samples, n_features)
        Observations.

    Returns
    -------
    S : ndarray, shape (n_features, n_features)
        Empirical covariance, normalized by ``n_samples``.
    """
    X = np.asarray(X, dtype=float)
    if X.ndim != 2:
        raise ValueError("Input must be a 2D array.")
    return np.atleast_2d(np.cov(X, bias=True, rowvar=False))


class GraphicalLasso(BaseEstimator):
    r"""Block Coordinate Descent (BCD) solver for the Graphical Lasso (GLasso).

    Implements the sparse inverse covariance estimation algorithm of Friedman
    et al. (2008) ("dual") and the primal variant of Mazumder et al. (2012).

    The problem is defined as:

    .. math::

        \Theta^* = \underset{\Theta \succ 0}{\arg\min}\ -\log\det(\Theta)
        + \langle S, \Theta \rangle + \alpha \sum_{i \ne j} w_{ij} |\Theta_{ij}|

    where :math:`S` is the empirical covariance matrix and :math:`w_{ij}`
    optional positive weights (uniform when ``weights=None``). The diagonal
    is not penalized.

    Parameters
    ----------
    alpha : float, default=1.0
        Regularization strength.
    weights : ndarray or None, default=None
        Symmetric matrix of penalty weights, or None for uniform weights.
    algo : {'dual', 'primal'}, default='dual'
        Algorithm variant to use.
    max_iter : int, default=100
        Maximum number of block coordinate descent epochs. Also bounds the
        number of epochs of the inner coordinate descent.
    tol : float, default=1e-6
        Convergence tolerance on the Frobenius norm of the change of the
        precision matrix between two epochs.
    warm_start : bool, default=False
        Use previous solution as initialization (primal only).
    inner_tol : float, default=1e-4
        Tolerance for inner solver.
    verbose : bool, default=False
        Print convergence info.

    Attributes
    ----------
    precision_ : ndarray
        Estimated precision (inverse covariance) matrix.
    covariance_ : ndarray
        Estimated covariance matrix.
    n_iter_ : int
        Number of epochs run.

    References
    ----------
    .. [1] Friedman et al., Biostatistics, 2008.
           https://doi.org/10.1093/biostatistics/kxm045
    .. [2] Mazumder et al., Electron. J. Statist., 2012.
           https://doi.org/10.1214/12-EJS740
    """

    def __init__(self,
                 alpha=1.,
                 weights=None,
                 algo="dual",
                 max_iter=100,
                 tol=1e-6,
                 warm_start=False,
                 inner_tol=1e-4,
                 verbose=False,
                 ):
        self.alpha = alpha
        self.weights = weights
        self.algo = algo
        self.max_iter = max_iter
        self.tol = tol
        self.warm_start = warm_start
        self.inner_tol = inner_tol
        self.verbose = verbose

    def fit(self, X, y=None, mode='empirical'):
        """Fit the GraphicalLasso model.

        Parameters
        ----------
        X : ndarray
            Data matrix (n_samples, n_features) if mode='empirical', or
            covariance matrix (n_features, n_features) if mode='precomputed'.
        y : Ignored
            Not used, present for API consistency by convention.
        mode : {'empirical', 'precomputed'}, default='empirical'
            If 'empirical', the empirical covariance of X is computed.
            If 'precomputed', X is treated as a covariance matrix.

        Returns
        -------
        self : object
            Fitted estimator.

        Raises
        ------
        FloatingPointError
            If the iterates become non-finite, which happens when the
            problem is too ill-conditioned for the given ``alpha``.
        """
        if self.algo not in ("dual", "primal"):
            raise ValueError(f"Unsupported algo {self.algo}")
        if mode == 'precomputed':
            S = check_square_matrix(X, name="S")
        elif mode == 'empirical':
            S = empirical_covariance(X)
        else:
            raise ValueError(f"Unsupported mode {mode}")
        p = S.shape[-1]
        indices = np.arange(p)

        if self.weights is None:
            Weights = np.ones((p, p))
        else:
            Weights = np.asarray(self.weights, dtype=float)
            if Weights.shape != (p, p):
                raise ValueError(
                    f"Weights should have shape {(p, p)}, got {Weights.shape}.")
            if not np.allclose(Weights, Weights.T):
                raise ValueError("Weights should be symmetric.")

        if self.warm_start and hasattr(self, "precision_"):
            if self.algo == "dual":
                raise ValueError(
                    "dual does not support warm start for now.")
            Theta = self.precision_
            W = self.covariance_
        else:
            # shift S so that W starts positive definite
            min_eig = np.linalg.eigvalsh(S)[0]
            eps = max(self.tol, np.finfo(float).eps)
            ridge = max(0.0, -min_eig + eps)
            W = S + ridge * np.eye(p)

            Theta = pinvh(W)

        if p == 1:
            self.precision_, self.covariance_ = Theta, W
            self.n_iter_ = 0
            return self

        W_11 = np.copy(W[1:, 1:], order="C")
        eps = np.finfo(np.float64).eps
        it = 0
        delta = np.inf
        Theta_old = Theta.copy()

        for it in range(self.max_iter):
            Theta_old = Theta.copy()

            for col in range(p):
                if self.algo == "primal":
                    indices_minus_col = np.concatenate(
                        [indices[:col], indices[col + 1:]])
                    _11 = indices_minus_col[:, None], indices_minus_col[None]
                    _12 = indices_minus_col, col
                    _22 = col, col
                else:
                    if col > 0:
                        di = col - 1
                        W_11[di] = W[di][indices != col]
                        W_11[:, di] = W[:, di][indices != col]
                    else:
                        W_11[:] = W[1:, 1:]

                s_12 = S[col, indices != col]

                if self.algo == "dual":
                    beta_init = (Theta[indices != col, col] /
                                 (Theta[col, col] + 1000 * eps))
                    Q = W_11
                else:
                    inv_Theta_11 = (W[_11] -
                                    np.outer(W[_12], W[_12]) / W[_22])
                    Q = inv_Theta_11
                    beta_init = Theta[indices != col, col] * S[col, col]

                beta = barebones_cd_gram(
                    Q,
                    s_12,
                    x=beta_init,
                    alpha=self.alpha,
                    weights=Weights[indices != col, col],
                    tol=self.inner_tol,
                    max_iter=self.max_iter,
                )

                if self.algo == "dual":
                    w_12 = -np.dot(W_11, beta)
                    W[col, indices != col] = w_12
                    W[indices != col, col] = w_12

                    Theta[col, col] = 1 / (W[col, col] + np.dot(beta, w_12))
                    Theta[indices != col, col] = beta * Theta[col, col]
                    Theta[col, indices != col] = beta * Theta[col, col]

                else:
                    s_22 = S[col, col]

                    theta_12 = beta / s_22
                    Theta[indices != col, col] = theta_12
                    Theta[col, indices != col] = theta_12
                    Theta[col, col] = (1 / s_22 +
                                       theta_12 @ inv_Theta_11 @ theta_12)
                    theta_22 = Theta[col, col]

                    W[col, col] = (1 / (theta_22 -
                                        theta_12 @ inv_Theta_11 @ theta_12))
                    w_22 = W[col, col]

                    w_12 = -w_22 * inv_Theta_11 @ theta_12
                    W[indices != col, col] = w_12
                    W[col, indices != col] = w_12

                    W[_11] = inv_Theta_11 + np.outer(w_12, w_12) / w_22

            if not np.all(np.isfinite(Theta)):
                raise FloatingPointError(
                    f"Non-finite precision matrix at epoch {it + 1} for "
                    f"alpha={self.alpha:.3e}. The system is too "
                    "ill-conditioned for this solver.")

            delta = np.linalg.norm(Theta - Theta_old)
            if delta < self.tol:
                if self.verbose:
                    print(f"Glasso converged at epoch {it + 1}")
                break
        else:
            warnings.warn(
                f"Graphical lasso did not converge after {it + 1} epochs "
                f"(diff={delta:.2e}, tol={self.tol:.2e}) for "
                f"alpha={self.alpha:.3e}.", ConvergenceWarning)

        self.precision_, self.covariance_ = Theta, W
        self.n_iter_ = it + 1

        return self


def graphical_lasso_path(S, alphas, solver="bcd", **params):
    """Compute graphical lasso estimates along a regularization path.

    Every strength is solved independently from the same covariance.

    Parameters
    ----------
    S : array-like, shape (n_features, n_features)
        Empirical covariance matrix.

    alphas : float | array-like, shape (n_alphas,)
        Regularization strengths, sorted and deduplicated before solving.

    solver : {'bcd', 'sklearn'}, default 'bcd'
        ``'bcd'`` uses :class:`GraphicalLasso`, ``'sklearn'`` uses
        :func:`sklearn.covariance.graphical_lasso`.

    **params
        Extra keyword arguments passed to the selected solver.

    Returns
    -------
    alphas : ndarray, shape (n_alphas,)
        Increasing regularization path actually used.

    precisions : list of ndarray, shape (n_features, n_features)
        ``precisions[k]`` is the estimate for ``alphas[k]``.
    """
    S = check_square_matrix(S, name="S")
    alphas = check_alphas(alphas)
    if solver not in ("bcd", "sklearn"):
        raise ValueError(
            f"Unsupported solver {solver!r}, expected 'bcd' or 'sklearn'.")

    if S.shape[0] == 1:
        # no off-diagonal entry to penalize
        return alphas, [pinvh(S) for _ in alphas]

    precisions = []
    for alpha in alphas:
        if solver == "bcd":
            model = GraphicalLasso(alpha=alpha, **params)
            precision = model.fit(S, mode='precomputed').precision_
        else:
            _, precision = graphical_lasso(S, alpha, **params)
        precisions.append(precision)
    return alphas, precisions
