import numbers

import numpy as np


def check_positive_int(value, name="n_features"):
    """Check that ``value`` is a positive integer and return it as int."""
    if (not isinstance(value, numbers.Integral)
            or isinstance(value, bool) or value <= 0):
        raise ValueError(f"{name} should be a positive integer, got {value!r}.")
    return int(value)


def check_density(density):
    """Check that ``density`` lies in ]0, 1]."""
    if not isinstance(density, numbers.Real) or not 0 < density <= 1:
        raise ValueError(
            f"The density should be chosen in ]0, 1], got {density!r}.")
    return float(density)


def check_alphas(alphas):
    """Validate a regularization path.

    Parameters
    ----------
    alphas : float | array-like, shape (n_alphas,)
        Regularization strengths. Duplicates are removed and the values
        are sorted in increasing order.

    Returns
    -------
    alphas : ndarray, shape (n_alphas,)
        Strictly increasing array of positive floats.

    Raises
    ------
    ValueError
        If the path is empty, not one-dimensional, or holds non-finite or
        non-positive values.
    """
    alphas = np.atleast_1d(np.asarray(alphas, dtype=float))
    if alphas.ndim != 1:
        raise ValueError(
            f"alphas should be one-dimensional, got shape {alphas.shape}.")
    if alphas.size == 0:
        raise ValueError("The regularization path is empty.")
    if not np.all(np.isfinite(alphas)) or np.any(alphas <= 0):
        raise ValueError(
            "Regularization strengths should be finite and positive, "
            f"got {alphas}.")
    return np.unique(alphas)


def check_square_matrix(M, name="M"):
    """Return ``M`` as a 2D float array, raising if it is not square."""
    M = np.asarray(M, dtype=float)
    if M.ndim != 2 or M.shape[0] != M.shape[1]:
        raise ValueError(
            f"{name} should be a square 2D array, got shape {M.shape}.")
    return M


def check_threshold(threshold, name="threshold"):
    if not isinstance(threshold, numbers.Real) or not threshold >= 0:
        raise ValueError(f"{name} should be non-negative, got {threshold!r}.")
    return float(threshold)


def check_psd(M, tol=1e-10, name="covariance"):
    """Check that a symmetric matrix is positive semi-definite.

    Parameters
    ----------
    M : ndarray, shape (p, p)
        Symmetric matrix.

    tol : float, default 1e-10
        Relative tolerance on the smallest eigenvalue. ``M`` is accepted
        when ``min(eig) >= -tol * max(1, max(|eig|))``.

    name : str, default "covariance"
        Name used in error messages.

    Raises
    ------
    FloatingPointError
        If ``M`` holds non-finite values or has an eigenvalue below the
        tolerance.
    """
    if not np.all(np.isfinite(M)):
        raise FloatingPointError(f"The {name} matrix has non-finite entries.")
    eigvals = np.linalg.eigvalsh(M)
    scale = max(1., np.max(np.abs(eigvals)))
    if eigvals[0] < -tol * scale:
        raise FloatingPointError(
            f"The {name} matrix is not positive semi-definite: smallest "
            f"eigenvalue {eigvals[0]:.3e}.")
