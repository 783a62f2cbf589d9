"""Gapped IUPAC motif search over streamed FASTA records."""

from gapmotif.finder import Match, MotifFinder, emit_match, find_and_write
from gapmotif.io import FastaReader, MotifWriter, RecordAccumulator
from gapmotif.logic import hamming_iupac, scan_left, search_right

__version__ = "0.1.0"
