import numpy as np
from scipy.linalg import pinvh
from sklearn.utils import check_random_state

from glassobench.utils.validation import (
    check_positive_int, check_density, check_psd, check_square_matrix)


def make_sparse_precision(n_features, density=0.25, random_state=None):
    r"""Generate a random sparse positive definite precision matrix.

    The off-diagonal pattern is drawn from independent Bernoulli variables
    with parameter ``density`` and the nonzero values from a uniform
    distribution on :math:`[0, 1[`. Writing :math:`A` for this matrix, the
    precision is

    .. math ::
        \Theta = A + A^\top + \mathrm{diag}(r) + 0.5 I

    where :math:`r_i` is the absolute sum of the off-diagonal entries of row
    :math:`i` of :math:`A + A^\top`. :math:`\Theta` is symmetric, diagonally
    dominant, and its smallest eigenvalue is at least 0.5.

    Parameters
    ----------
    n_features : int
        Number of nodes of the graph.

    density : float in ]0, 1]
        Probability that an entry of :math:`A` is nonzero.

    random_state : int | RandomState instance | None (default)
        Determines random number generation. Use an int to make the
        matrix deterministic.

    Returns
    -------
    Theta : ndarray, shape (n_features, n_features)
        Precision matrix.

    Sigma : ndarray, shape (n_features, n_features)
        Covariance matrix, the pseudo-inverse of ``Theta``.
    """
    n_features = check_positive_int(n_features)
    density = check_density(density)
    rng = check_random_state(random_state)

    support = rng.binomial(n=1, p=density, size=(n_features, n_features))
    A = support * rng.uniform(size=(n_features, n_features))
    Theta = A + A.T

    off_diag = np.abs(Theta).sum(axis=1) - np.abs(np.diag(Theta))
    Theta[np.diag_indices(n_features)] += off_diag + 0.5

    Sigma = pinvh(Theta)
    return Theta, Sigma


def make_chain_precision(n_features):
    """Generate the tridiagonal precision matrix of a Markov chain.

    Node ``i`` is only connected to nodes ``i - 1`` and ``i + 1``, with
    partial correlation weight 0.5, and the diagonal is 1.

    Parameters
    ----------
    n_features : int
        Length of the chain.

    Returns
    -------
    Theta : ndarray, shape (n_features, n_features)
        Precision matrix.

    Sigma : ndarray, shape (n_features, n_features)
        Covariance matrix, the inverse of ``Theta``.
    """
    n_features = check_positive_int(n_features)
    off = np.full(n_features - 1, 0.5)
    Theta = np.eye(n_features) + np.diag(off, k=1) + np.diag(off, k=-1)
    Sigma = np.linalg.inv(Theta)
    return Theta, Sigma


def sample_gaussian(mean, covariance, n_samples, random_state=None, tol=1e-10):
    """Draw i.i.d. samples from a multivariate normal distribution.

    Parameters
    ----------
    mean : array-like, shape (n_features,)
        Mean vector.

    covariance : array-like, shape (n_features, n_features)
        Symmetric positive semi-definite covariance matrix.

    n_samples : int
        Number of observations.

    random_state : int | RandomState instance | None (default)
        Determines random number generation.

    tol : float, default 1e-10
        Relative tolerance used to decide positive semi-definiteness.

    Returns
    -------
    X : ndarray, shape (n_samples, n_features)
        Sample matrix.

    Raises
    ------
    FloatingPointError
        If ``covariance`` is not positive semi-definite within ``tol``.
    """
    n_samples = check_positive_int(n_samples, name="n_samples")
    mean = np.asarray(mean, dtype=float)
    covariance = check_square_matrix(covariance, name="covariance")
    if mean.ndim != 1 or mean.shape[0] != covariance.shape[0]:
        raise ValueError(
            f"mean of shape {mean.shape} is incompatible with covariance "
            f"of shape {covariance.shape}.")
    if not np.allclose(covariance, covariance.T, equal_nan=True):
        raise ValueError("covariance should be symmetric.")
    check_psd(covariance, tol=tol)

    rng = check_random_state(random_state)
    # eigenvalue check above replaces numpy's SVD based validity check
    return rng.multivariate_normal(mean, covariance, size=n_samples,
                                   check_valid="ignore")
