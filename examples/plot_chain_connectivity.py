"""
====================================================
Connectivity of Graphical Lasso estimates of a chain
====================================================
The ground truth is a Markov chain: each variable is only connected to its
two neighbours. As the regularization grows, the Graphical Lasso removes
edges until the estimated graph breaks into several components. This example
plots the fraction of repetitions whose estimate is still connected, and
dumps the estimates of the last repetition to a CSV file.
"""

import numpy as np
import matplotlib.pyplot as plt

from glassobench import GlassoRecoveryExperiment

# %%
# Run the repetitions
# ===================

p = 10
n = 100
alphas = np.geomspace(0.01, 1, 20)

exp = GlassoRecoveryExperiment(
    n_features=p, n_samples=n, alphas=alphas, n_repeats=50, graph="chain",
    connectivity_threshold=1e-6, random_state=0).run()
summary = exp.summary_

# %%
# Connectivity along the path
# ===========================

fig, axarr = plt.subplots(2, 1, sharex=True, figsize=(6, 5),
                          layout="constrained")
axarr[0].semilogx(summary["alphas"], summary["connected_mean"], marker='o')
axarr[0].set_ylabel("connected fraction", fontsize=12)

axarr[1].semilogx(summary["alphas"], summary["tpr_mean"], label="tpr")
axarr[1].semilogx(summary["alphas"], summary["fpr_mean"], label="fpr")
axarr[1].fill_between(summary["alphas"], summary["fpr_q10"],
                      summary["fpr_q90"], alpha=0.3)
axarr[1].set_xlabel(r"$\rho$", fontsize=12)
axarr[1].legend()
for ax in axarr:
    ax.grid(which='both', alpha=0.5)
axarr[0].set_title(f"chain, {p=}, {n=}", fontsize=14)
plt.show()

# %%
# Export the last estimates
# =========================
# One block of ``p`` columns per regularization value.

estimates = np.hstack(exp.precisions_)
header = ",".join(f"rho={alpha:.4g}_{j}"
                  for alpha in exp.alphas_ for j in range(p))
np.savetxt("chain_precisions.csv", estimates, delimiter=",", header=header,
           comments="")
