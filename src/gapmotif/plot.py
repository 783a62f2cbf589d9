import numpy as np

'''
Plots work on the scan log of a run: the number of matches
reported for each total mismatch count (left + right anchor).
'''


def mismatch_totals(counts):
    """
    counts: mapping of total mismatch -> number of matches
    returns a dense numpy array indexed by mismatch count
    """
    if not counts:
        return np.zeros(0, dtype=np.int64)
    mismatches = np.array(list(counts.keys()), dtype=np.int64)
    weights = np.array(list(counts.values()), dtype=np.int64)
    return np.bincount(mismatches, weights=weights).astype(np.int64)


def plot_mismatch_totals(counts, ax, normed=False, color='k', alpha=0.7):
    """
    counts: mapping of total mismatch -> number of matches
    ax: matplotlib Axes object
    normed: plot fractions of all matches instead of raw counts
    """
    totals = mismatch_totals(counts)
    values = totals.astype(float)
    if normed:
        values = values / max(1, totals.sum())

    ax.bar(np.arange(len(values)), values, color=color, alpha=alpha)
    ax.set_xlabel('total mismatches')
    ax.set_ylabel('fraction of matches' if normed else 'matches')
    ax.set_xticks(np.arange(len(values)))
    return values
