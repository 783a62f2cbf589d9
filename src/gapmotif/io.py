from typing import Iterator, List, Optional, Tuple
import gzip
import io
import logging
import sys

logger = logging.getLogger(__name__)

STREAM_TOKEN = "-"
# one character per byte; bytes outside the IUPAC alphabet become mask-0 symbols
ENCODING = "latin-1"
HEADER = ("seq_id", "start", "end", "mismatch", "motif")

Record = Tuple[str, str]


class FastaReadError(RuntimeError):
    """Raised when a FASTA source fails while it is being read."""


def _wrap_stream(stream):
    """Byte-transparent text view of a standard stream; returns (handle, wrapped)."""
    buffer = getattr(stream, "buffer", None)
    if buffer is None:
        return stream, False
    return io.TextIOWrapper(buffer, encoding=ENCODING), True


def parse_header(line: str, marker: str = ">") -> str:
    """
    Returns the record identifier from a header line.

    The identifier is the first whitespace-delimited token after the marker;
    leading whitespace after the marker is skipped.
    """
    fields = line[len(marker):].split(None, 1)
    return fields[0] if fields else ""


class RecordAccumulator:
    """
    Assembles FASTA records from a stream of raw lines.

    The accumulator is idle until a header is seen, then accumulating. A record
    is completed when the next header arrives or when `finish` is called at the
    end of the source.

    Attributes:
        seq_id (str | None): Identifier of the open record, None when idle.
        dropped_lines (int): Sequence lines seen while idle (discarded).
    """

    IDLE = "idle"
    ACCUMULATING = "accumulating"

    def __init__(self, marker: str = ">") -> None:
        self.marker = marker
        self.seq_id: Optional[str] = None
        self.dropped_lines = 0
        self._chunks: List[str] = []
        self._length = 0

    @property
    def state(self) -> str:
        return self.IDLE if self.seq_id is None else self.ACCUMULATING

    def feed(self, line: str) -> Optional[Record]:
        """
        Consumes one raw line.

        Returns:
            The completed previous record when `line` is a header that closes
            one, otherwise None.
        """
        if line.startswith(self.marker):
            record = self._complete() if self.seq_id is not None else None
            self.seq_id = parse_header(line, self.marker)
            return record
        if self.seq_id is None:
            self.dropped_lines += 1
            return None
        chunk = line.rstrip("\r\n")
        self._chunks.append(chunk)
        self._length += len(chunk)
        return None

    def finish(self) -> Optional[Record]:
        """Closes the source; returns the final record if it holds any sequence."""
        if self.seq_id is None:
            return None
        if not self._length:
            self._reset()
            return None
        return self._complete()

    def _complete(self) -> Record:
        record = (self.seq_id, "".join(self._chunks))
        self._reset()
        return record

    def _reset(self) -> None:
        self.seq_id = None
        self._chunks = []
        self._length = 0


class FastaReader:
    """
    Iterator over the records of one FASTA source.

    The source may be a plain text file, a gzipped file ending in '.gz',
    or '-' for standard input.

    Yields:
        Tuple[str, str]: (seq_id, sequence)
    """

    def __init__(self, path: str, *, marker: str = ">") -> None:
        """
        Opens the source.

        Args:
            path (str): Path to the FASTA file, or '-' for stdin.
            marker (str): Character that starts a header line.

        Raises:
            OSError: If the source cannot be opened.
        """
        self.path = str(path)
        self.accumulator = RecordAccumulator(marker)
        self._exhausted = False
        self._owns_handle = self.path != STREAM_TOKEN
        self._wrapped = False
        if not self._owns_handle:
            self.handle, self._wrapped = _wrap_stream(sys.stdin)
        elif self.path.endswith(".gz"):
            self.handle = gzip.open(self.path, 'rt', encoding=ENCODING)
        else:
            self.handle = open(self.path, 'r', encoding=ENCODING)

    @property
    def dropped_lines(self) -> int:
        return self.accumulator.dropped_lines

    def __iter__(self) -> Iterator[Record]:
        return self

    def __next__(self) -> Record:
        """
        Reads the next complete record.

        Raises:
            StopIteration: At the end of the source.
            FastaReadError: If reading the source fails.
        """
        if self._exhausted:
            raise StopIteration
        try:
            for line in self.handle:
                record = self.accumulator.feed(line)
                if record is not None:
                    return record
            record = self.accumulator.finish()
        except (OSError, EOFError) as e:
            self.close()
            raise FastaReadError(f"Error reading FASTA records from {self.path}") from e
        if record is None:
            self.close()
            raise StopIteration
        return record

    def close(self) -> None:
        """Closes the input file (standard input is left open)."""
        self._exhausted = True
        if self._owns_handle:
            self.handle.close()
        elif self._wrapped:
            self.handle.detach()
        if self.accumulator.dropped_lines:
            logger.debug("%s: dropped %d sequence line(s) before the first header",
                         self.path, self.accumulator.dropped_lines)

    def __enter__(self):
        """Support for context manager."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Close the file when exiting context."""
        if not self._exhausted:
            self.close()


class MotifWriter:
    """
    Writes matches as tab-separated rows under a fixed header.

    Attributes:
        path (str): Output path ('-' for standard output).
    """

    def __init__(self, path: str) -> None:
        """
        Opens the output and writes the header line.

        Args:
            path (str): Output file, or '-' for stdout.

        Raises:
            OSError: If the output cannot be opened.
        """
        self.path = str(path)
        self._owns_file = self.path != STREAM_TOKEN
        self._wrapped = False
        if self._owns_file:
            self.out_file = open(self.path, "w", encoding=ENCODING)
        else:
            sys.stdout.flush()
            self.out_file, self._wrapped = _wrap_stream(sys.stdout)
        self.out_file.write("\t".join(HEADER) + "\n")

    def write(self, match) -> None:
        """
        Writes a single match.

        Args:
            match: A Match (seq_id, start, end, mismatch, motif).
        """
        self.out_file.write(
            f"{match.seq_id}\t{match.start}\t{match.end}\t{match.mismatch}\t{match.motif}\n")

    def close(self) -> None:
        """Closes the output file (standard output is flushed and left open)."""
        if self._owns_file:
            self.out_file.close()
        elif self._wrapped:
            self.out_file.detach()
        else:
            self.out_file.flush()

    def __enter__(self):
        """Support for context manager."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Close the file when exiting context."""
        self.close()
