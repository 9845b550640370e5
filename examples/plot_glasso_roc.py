"""
================================================================
Recovery of absent edges by the Graphical Lasso on random graphs
================================================================
This example estimates, by Monte Carlo, how often the Graphical Lasso leaves
out the edges that are truly absent from a random sparse Gaussian graphical
model (true positive rate), and how often it wrongly leaves out present edges
(false positive rate), along a regularization path.

Error bars span the 10th to 90th percentiles over the repetitions.
"""

import numpy as np
import matplotlib.pyplot as plt

from glassobench import GlassoRecoveryExperiment

# %%
# Run the repetitions
# ===================

p = 5
n = 1000
alphas = np.array([0.1, 0.2, 0.5, 1., 2., 5., 10.]) / p

exp = GlassoRecoveryExperiment(
    n_features=p, n_samples=n, alphas=alphas, n_repeats=100, density=0.25,
    threshold=1e-6, random_state=0, verbose=False).run()
summary = exp.summary_

for alpha, tpr, fpr in zip(summary["alphas"], summary["tpr_mean"],
                           summary["fpr_mean"]):
    print(f"alpha={alpha:.3f}  tpr={tpr:.3f}  fpr={fpr:.3f}")

# %%
# ROC plot
# ========

fig, ax = plt.subplots(figsize=(5, 5), layout="constrained")
xerr = [summary["fpr_mean"] - summary["fpr_q10"],
        summary["fpr_q90"] - summary["fpr_mean"]]
yerr = [summary["tpr_mean"] - summary["tpr_q10"],
        summary["tpr_q90"] - summary["tpr_mean"]]
ax.errorbar(summary["fpr_mean"], summary["tpr_mean"], xerr=xerr, yerr=yerr,
            fmt='o', capsize=3)
for alpha, x, y in zip(summary["alphas"], summary["fpr_mean"],
                       summary["tpr_mean"]):
    ax.annotate(f"{alpha:.2f}", (x, y), textcoords="offset points",
                xytext=(5, 5), fontsize=8)

ax.set_xlim(-0.05, 1.05)
ax.set_ylim(-0.05, 1.05)
ax.set_xlabel("False positive rate", fontsize=14)
ax.set_ylabel("True positive rate", fontsize=14)
ax.set_title(f"{p=}, {n=}, {exp.n_repeats} repetitions", fontsize=14)
ax.grid(alpha=0.5)
plt.show()
