# gapmotif/finder.py

import ast
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Dict, Iterable, Iterator, Optional

import yaml
from jinja2 import Environment, StrictUndefined

from gapmotif.io import FastaReadError, FastaReader, MotifWriter
from gapmotif.logic import count_mismatches, encode_masks, scan_left, search_right

logger = logging.getLogger(__name__)

ENV = Environment(undefined=StrictUndefined)   # module-level – create once

MOTIF_KEYS = ("left", "right", "gap_min", "gap_max", "err_left", "err_right", "after")


@lru_cache(maxsize=None)        # key = literal template string
def _compile(template: str):
    return ENV.from_string(template)


@dataclass(frozen=True)
class Match:
    """One reported motif occurrence."""
    seq_id: str
    start: int
    end: int
    mismatch: int
    motif: str


def emit_match(seq_id: str, seq: str, hit: int, left_mismatch: int,
               right_end: int, right_mismatch: int, after: int) -> Match:
    """
    Builds the output record for a left-anchor hit and its best right anchor.

    The motif runs from the hit through right_end + after, clipped to the
    record. The reported end is (clipped end + 1 - after), so it falls short
    of the right-anchor end whenever clipping occurred.
    """
    ext_end = right_end + after
    if ext_end >= len(seq):
        ext_end = len(seq) - 1
    return Match(
        seq_id=seq_id,
        start=hit + 1,
        end=ext_end + 1 - after,
        mismatch=left_mismatch + right_mismatch,
        motif=seq[hit:ext_end + 1],
    )


class MotifFinder:
    """
    Scans sequence records for a gapped motif: a left anchor, a gap of
    gap_min..gap_max bases, then a right anchor.

    Motif fields may be Jinja templates over a globals namespace
    (e.g. gap_max: "{{ params.GAP + 4 }}"), rendered once at construction.
    """

    def __init__(self, motif_cfg: Dict[str, Any], globals_cfg: Optional[Dict[str, Any]] = None,
                 globals_namespace: str = "params"):
        # Namespace for accessing globals in templates (default: "params")
        self.globals_namespace = globals_namespace
        self.globals = globals_cfg.copy() if globals_cfg else {}
        self._resolve_globals()

        self.left = str(self._get_param(motif_cfg, "left"))
        self.right = str(self._get_param(motif_cfg, "right"))
        self.gap_min = self._get_param(motif_cfg, "gap_min", convert_type=int)
        self.gap_max = self._get_param(motif_cfg, "gap_max", convert_type=int)
        self.err_left = self._get_param(motif_cfg, "err_left", default=0, convert_type=int)
        self.err_right = self._get_param(motif_cfg, "err_right", default=0, convert_type=int)
        self.after = self._get_param(motif_cfg, "after", default=0, convert_type=int)

        # Patterns are fixed for the run
        self.left_masks = encode_masks(self.left)
        self.right_masks = encode_masks(self.right)

        self.reset_scan_log()

    @classmethod
    def from_yaml(cls, text: str, overrides: Optional[Dict[str, Any]] = None) -> "MotifFinder":
        """
        Build a finder from a YAML document with optional 'params' and 'motif'
        sections. Non-None values in `overrides` replace those from the file.
        """
        cfg = yaml.safe_load(text) or {}
        if not isinstance(cfg, dict):
            raise ValueError("Configuration must be a YAML mapping")
        motif_cfg = cfg.get("motif") or {}
        params = cfg.get("params") or {}
        if not isinstance(motif_cfg, dict) or not isinstance(params, dict):
            raise ValueError("'motif' and 'params' must be YAML mappings")
        motif_cfg = dict(motif_cfg)
        if overrides:
            motif_cfg.update({k: v for k, v in overrides.items() if v is not None})
        return cls(motif_cfg, params)

    def reset_scan_log(self) -> None:
        """Resets the scan log statistics."""
        self.scan_log = {
            "total_records": 0,
            "records_with_matches": 0,
            "total_matches": 0,
            "skipped_sources": 0,
            "dropped_lines": 0,
            "matches_by_mismatch": {},
        }

    def get_scan_log(self) -> Dict[str, Any]:
        """Returns the current scan log with statistics."""
        log = dict(self.scan_log)
        log["matches_by_mismatch"] = dict(self.scan_log["matches_by_mismatch"])
        if log["total_records"] > 0:
            log["match_rate"] = round((log["records_with_matches"] / log["total_records"]) * 100, 2)
        return log

    def _resolve_globals(self) -> None:
        """
        Evaluate any Jinja templates that appear inside the globals dict
        (e.g. HANDLE_LEN: "{{ params.HANDLE | length }}").
        Runs until a pass makes no further changes, handling simple
        dependencies without trying to detect cycles.
        """
        changed = True
        while changed:
            changed = False
            for key, val in list(self.globals.items()):
                rendered = self._render(val, {self.globals_namespace: self.globals})
                if rendered != val:
                    self.globals[key] = rendered
                    changed = True

    def _render(self, template_like: Any, ctx: Dict[str, Any]) -> Any:
        """
        • non-strings      → return as-is
        • plain strings    → return as-is
        • Jinja templates  → compile once (LRU), render
        • result           → literal-eval if it looks like a Python literal,
                            otherwise return the rendered string verbatim.
        """
        if not (isinstance(template_like, str) and "{{" in template_like):
            return template_like

        rendered = _compile(template_like).render(**ctx)
        try:
            return ast.literal_eval(rendered)
        except (ValueError, SyntaxError):
            return rendered

    def _get_param(self, cfg: Dict[str, Any], param_name: str, default: Any = None,
                   convert_type: Optional[Callable] = None) -> Any:
        """
        Motif parameter retrieval with template rendering and type conversion.

        Args:
            cfg: The motif configuration dictionary
            param_name: Name of the parameter to retrieve
            default: Default value if parameter is not found (None = required)
            convert_type: Optional function to convert the result (e.g., int, str)

        Returns:
            The rendered and converted parameter value
        """
        if param_name not in cfg and default is None:
            raise KeyError(f"Required motif parameter '{param_name}' not found")

        value = cfg.get(param_name, default)
        rendered_value = self._render(value, {self.globals_namespace: self.globals})
        if rendered_value is None:
            raise ValueError(f"Motif parameter '{param_name}' is empty")

        if convert_type is not None:
            try:
                return convert_type(rendered_value)
            except (ValueError, TypeError) as e:
                raise ValueError(f"Failed to convert '{param_name}' to {convert_type.__name__}: {e}")

        return rendered_value

    def as_dict(self) -> Dict[str, Any]:
        return {key: getattr(self, key) for key in MOTIF_KEYS}

    def __str__(self) -> str:
        return (f"MotifFinder: {self.left} [gap {self.gap_min}..{self.gap_max}] {self.right} "
                f"(err left {self.err_left}, err right {self.err_right}, after {self.after})")

    def to_yaml(self) -> str:
        return yaml.dump({"motif": self.as_dict()}, sort_keys=False)

    def find(self, seq_id: str, seq: str) -> Iterator[Match]:
        """
        Yield every motif match in one record, in order of left-anchor offset.
        Each left-anchor hit yields at most one match.
        """
        self.scan_log["total_records"] += 1
        seq_masks = encode_masks(seq)
        left_len = len(self.left_masks)
        found = False

        for hit in scan_left(seq_masks, self.left_masks, self.err_left):
            hit = int(hit)
            best = search_right(seq_masks, hit, left_len, self.right_masks,
                                self.gap_min, self.gap_max, self.err_right)
            if best is None:
                continue
            right_end, right_mismatch = best
            left_mismatch = count_mismatches(self.left_masks, seq_masks[hit:hit + left_len])
            match = emit_match(seq_id, seq, hit, left_mismatch,
                               right_end, right_mismatch, self.after)
            self.scan_log["total_matches"] += 1
            if not found:
                self.scan_log["records_with_matches"] += 1
                found = True
            by_mismatch = self.scan_log["matches_by_mismatch"]
            by_mismatch[match.mismatch] = by_mismatch.get(match.mismatch, 0) + 1
            yield match


def find_and_write(
    paths: Iterable[str],
    finder: MotifFinder,
    writer: MotifWriter,
    *,
    marker: str = ">"
) -> None:
    """
    Stream every record of every source through `finder` and write the matches.

    Sources are processed one after another. A source that cannot be opened,
    or fails while being read, is logged and skipped; the rest still run.
    """
    for path in paths:
        try:
            reader = FastaReader(path, marker=marker)
        except OSError as e:
            logger.error("Skipping %s: %s", path, e)
            finder.scan_log["skipped_sources"] += 1
            continue

        try:
            with reader:
                for seq_id, seq in reader:
                    for match in finder.find(seq_id, seq):
                        writer.write(match)
        except FastaReadError as e:
            logger.error("Skipping rest of %s: %s", path, e.__cause__ or e)
            finder.scan_log["skipped_sources"] += 1
        finally:
            finder.scan_log["dropped_lines"] += reader.dropped_lines
