from collections import namedtuple

import numpy as np
from scipy.linalg import expm
from scipy.sparse import csr_matrix
from scipy.sparse.csgraph import breadth_first_order

from glassobench.utils.validation import check_square_matrix, check_threshold


EdgeCounts = namedtuple("EdgeCounts", ["tp", "fp", "n_null", "n_nonnull"])
EdgeCounts.__doc__ = """Entry counts comparing an estimate to a ground truth.

tp : entries null in both the estimate and the ground truth.
fp : entries null in the estimate but non-null in the ground truth.
n_null : null off-diagonal entries of the ground truth.
n_nonnull : non-null off-diagonal entries of the ground truth.
"""


def null_pattern(M, threshold):
    """Boolean mask of the entries of ``M`` whose magnitude is below threshold."""
    return np.abs(M) < threshold


def edge_counts(Theta_true, Theta_est, threshold=1e-6):
    """Count agreements between the null patterns of two precision matrices.

    An entry is *null* (absent edge) when its magnitude is strictly below
    ``threshold``. Absent edges are the positive class: a true positive is
    an entry null in both matrices, a false positive an entry null in
    ``Theta_est`` while present in ``Theta_true``. Only off-diagonal
    entries are compared, both triangles are counted.

    Parameters
    ----------
    Theta_true : array-like, shape (n_features, n_features)
        Ground truth precision matrix.

    Theta_est : array-like, shape (n_features, n_features)
        Estimated precision matrix.

    threshold : float, default 1e-6
        Magnitude under which an entry is considered null.

    Returns
    -------
    counts : EdgeCounts
        Named tuple ``(tp, fp, n_null, n_nonnull)``.
    """
    Theta_true = check_square_matrix(Theta_true, name="Theta_true")
    Theta_est = check_square_matrix(Theta_est, name="Theta_est")
    if Theta_true.shape != Theta_est.shape:
        raise ValueError(
            f"Shape mismatch: Theta_true {Theta_true.shape} vs "
            f"Theta_est {Theta_est.shape}.")
    threshold = check_threshold(threshold)

    off_diag = ~np.eye(Theta_true.shape[0], dtype=bool)
    null_true = null_pattern(Theta_true, threshold) & off_diag
    nonnull_true = ~null_pattern(Theta_true, threshold) & off_diag
    null_est = null_pattern(Theta_est, threshold) & off_diag

    return EdgeCounts(
        tp=int(np.sum(null_est & null_true)),
        fp=int(np.sum(null_est & nonnull_true)),
        n_null=int(np.sum(null_true)),
        n_nonnull=int(np.sum(nonnull_true)),
    )


def null_recovery_rates(Theta_true, Theta_est, threshold=1e-6):
    """True and false positive rates of absent edge recovery.

    ``tpr = tp / max(1, n_null)`` and ``fpr = fp / max(1, n_nonnull)``,
    see :func:`edge_counts`. The ``max`` guard handles fully dense and
    fully sparse ground truths.

    Returns
    -------
    tpr : float
        Fraction of absent edges that the estimate also leaves out.

    fpr : float
        Fraction of present edges that the estimate wrongly leaves out.
    """
    counts = edge_counts(Theta_true, Theta_est, threshold)
    tpr = counts.tp / max(1, counts.n_null)
    fpr = counts.fp / max(1, counts.n_nonnull)
    return tpr, fpr


def adjacency_matrix(M, threshold=1e-6):
    """Unweighted undirected adjacency, ``A[i, j] = 1`` iff ``|M[i, j]| > threshold``."""
    M = check_square_matrix(M)
    threshold = check_threshold(threshold)
    A = np.abs(M) > threshold
    return (A | A.T).astype(float)


def is_connected(M, threshold=1e-6, method="bfs"):
    """Whether the graph implied by the support of ``M`` is connected.

    Parameters
    ----------
    M : array-like, shape (n_features, n_features)
        Precision matrix; the edge (i, j) exists iff ``|M[i, j]| > threshold``.

    threshold : float, default 1e-6
        Magnitude above which an entry is an edge.

    method : {'bfs', 'expm'}, default 'bfs'
        ``'bfs'`` runs a breadth first search from node 0.
        ``'expm'`` thresholds the matrix exponential of the adjacency
        matrix, whose entry (i, j) is positive iff j is reachable from i.
        The exponential of the scaled reachability matrix is recomputed
        until its support stops growing, so long paths do not underflow.

    Returns
    -------
    connected : bool
    """
    A = adjacency_matrix(M, threshold)
    n_nodes = A.shape[0]
    if method == "bfs":
        reached = breadth_first_order(
            csr_matrix(A), 0, directed=False, return_predecessors=False)
        return len(reached) == n_nodes
    elif method == "expm":
        reach = A > 0
        while True:
            # each pass at least doubles the covered path length
            new_reach = expm(reach / n_nodes) > 0
            if np.array_equal(new_reach, reach):
                break
            reach = new_reach
        return int(np.sum(reach[0])) == n_nodes
    raise ValueError(
        f"Unsupported method {method!r}, expected 'bfs' or 'expm'.")


def connectivity_indicator(M, threshold=1e-6, method="bfs"):
    """Connectivity of the graph of ``M`` encoded as 1 (connected) or 2 (not)."""
    return 1 if is_connected(M, threshold, method) else 2
