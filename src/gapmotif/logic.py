"""
Low-level sequence logic for gapmotif.

Includes the IUPAC ambiguity table, the ambiguity-aware hamming distance,
the left-anchor scan and the right-anchor search over a gap window.

These functions are stateless and pure.
"""

from typing import Callable, Optional, Tuple

import numpy as np


# IUPAC codes as 4-bit masks over {A, C, G, T}
A, C, G, T = 1, 2, 4, 8
IUPAC_CODES = {
    'A': A, 'C': C, 'G': G, 'T': T, 'U': T,
    'R': A | G, 'Y': C | T, 'S': C | G, 'W': A | T,
    'K': G | T, 'M': A | C,
    'B': C | G | T, 'D': A | G | T, 'H': A | C | T, 'V': A | C | G,
    'N': A | C | G | T,
}

IUPAC_MASKS = np.zeros(256, dtype=np.uint8)
for _symbol, _mask in IUPAC_CODES.items():
    IUPAC_MASKS[ord(_symbol)] = _mask
    IUPAC_MASKS[ord(_symbol.lower())] = _mask
IUPAC_MASKS.setflags(write=False)

# bytes.translate table: byte value -> mask
_TRANSLATE = IUPAC_MASKS.tobytes()


def encode_masks(seq: str) -> np.ndarray:
    """
    Converts a nucleotide sequence into an array of IUPAC bitmasks.

    Args:
        seq (str): Nucleotide symbols, any case.

    Returns:
        np.ndarray: uint8 array, one mask per symbol. Unrecognized symbols
        (including non-ASCII characters) map to 0.
    """
    raw = seq.encode("latin-1", errors="replace")
    return np.frombuffer(raw.translate(_TRANSLATE), dtype=np.uint8)


def symbols_match(a: str, b: str) -> bool:
    """True iff the two symbols share at least one base."""
    return bool(IUPAC_CODES.get(a.upper(), 0) & IUPAC_CODES.get(b.upper(), 0))


def count_mismatches(pattern_masks: np.ndarray, target_masks: np.ndarray) -> int:
    """
    Computes the ambiguity-aware hamming distance between two mask arrays.

    Args:
        pattern_masks (np.ndarray): Masks of the pattern.
        target_masks (np.ndarray): Masks of an equal-length target window.

    Returns:
        int: Number of positions whose masks share no base.
    """
    return int(np.count_nonzero((pattern_masks & target_masks) == 0))


def hamming_iupac(pattern: str, target: str) -> int:
    """
    Computes the hamming distance between two equal-length strings,
    treating IUPAC ambiguity codes as sets of bases.

    Args:
        pattern (str): Pattern string.
        target (str): Target window.

    Returns:
        int: Number of mismatched positions.
    """
    if len(pattern) != len(target):
        raise ValueError(
            f"Pattern and target differ in length ({len(pattern)} != {len(target)})")
    return count_mismatches(encode_masks(pattern), encode_masks(target))


def mismatch_profile(pattern_masks: np.ndarray, seq_masks: np.ndarray) -> np.ndarray:
    """
    Mismatch count of the pattern at every offset of the sequence.

    Returns:
        np.ndarray: int32 array of length n - m + 1 (empty when n < m).
    """
    m = len(pattern_masks)
    n = len(seq_masks)
    if n < m:
        return np.zeros(0, dtype=np.int32)
    width = n - m + 1
    counts = np.zeros(width, dtype=np.int32)
    for k in range(m):
        counts += (seq_masks[k:k + width] & pattern_masks[k]) == 0
    return counts


def scan_left(seq_masks: np.ndarray, left_masks: np.ndarray, max_mismatch: int) -> np.ndarray:
    """
    Finds every offset where the left anchor matches within the mismatch budget.

    Every offset in [0, n - m] is tested; none are skipped.

    Args:
        seq_masks (np.ndarray): Masks of the record.
        left_masks (np.ndarray): Masks of the left anchor.
        max_mismatch (int): Maximum allowable mismatches.

    Returns:
        np.ndarray: Ascending offsets (empty if the record is shorter than the anchor).
    """
    profile = mismatch_profile(left_masks, seq_masks)
    return np.flatnonzero(profile <= max_mismatch)


def search_right(
    seq_masks: np.ndarray,
    hit: int,
    left_len: int,
    right_masks: np.ndarray,
    gap_min: int,
    gap_max: int,
    max_mismatch: int,
    mismatch_func: Callable[[np.ndarray, np.ndarray], int] = count_mismatches
) -> Optional[Tuple[int, int]]:
    """
    Searches the gap window after a left-anchor hit for the best right anchor.

    Gaps are tried from gap_min upward. The search stops at the first gap whose
    window runs past the end of the record, or as soon as a perfect match is found.
    Ties keep the smallest gap.

    Args:
        seq_masks (np.ndarray): Masks of the record.
        hit (int): Offset of the left-anchor hit.
        left_len (int): Length of the left anchor.
        right_masks (np.ndarray): Masks of the right anchor.
        gap_min (int): Smallest gap (inclusive).
        gap_max (int): Largest gap (inclusive).
        max_mismatch (int): Maximum allowable mismatches for the right anchor.
        mismatch_func (Callable): Mismatch counter over mask arrays.

    Returns:
        (end, mismatch) of the best right anchor (end is a 0-based inclusive
        offset), or None if nothing matched.
    """
    n = len(seq_masks)
    right_len = len(right_masks)
    best_end, best_mismatch = -1, None
    for gap in range(gap_min, gap_max + 1):
        start = hit + left_len + gap
        end = start + right_len - 1
        if end >= n:
            break
        mismatch = mismatch_func(right_masks, seq_masks[start:end + 1])
        if mismatch <= max_mismatch and (best_mismatch is None or mismatch < best_mismatch):
            best_end, best_mismatch = end, mismatch
            if mismatch == 0:
                break
    if best_end == -1:
        return None
    return best_end, best_mismatch
