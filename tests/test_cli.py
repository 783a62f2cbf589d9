import io
import sys

import pytest

from gapmotif.cli import main

SEQ = "ACGTACGTTTACGT"
HEADER = "seq_id\tstart\tend\tmismatch\tmotif\n"
EXPECTED = HEADER + "s1\t1\t8\t0\tACGTACGTTT\ns1\t5\t12\t0\tACGTTTACGT\n"
MOTIF_ARGS = ["--left", "ACGT", "--right", "ACGT", "--gap-min", "0", "--gap-max", "3", "-a", "2"]


@pytest.fixture
def fasta(tmp_path):
    fa = tmp_path / "in.fa"
    fa.write_text(">s1 test record\n" + SEQ[:7] + "\n" + SEQ[7:] + "\n")
    return fa


def test_cli_end_to_end(tmp_path, fasta):
    out = tmp_path / "out.tsv"
    main(["-i", str(fasta), "-o", str(out)] + MOTIF_ARGS)
    assert out.read_text() == EXPECTED


def test_cli_multiple_inputs_with_missing_source(tmp_path, fasta):
    second = tmp_path / "second.fa"
    second.write_text(">s2\nTTACGTGGACGTAA\n")
    out = tmp_path / "out.tsv"
    main(["-i", str(fasta), str(tmp_path / "missing.fa"), str(second), "-o", str(out)] + MOTIF_ARGS)
    assert out.read_text() == EXPECTED + "s2\t3\t12\t0\tACGTGGACGTAA\n"


def test_cli_stdin_to_stdout(monkeypatch, capsys):
    monkeypatch.setattr(sys, "stdin", io.StringIO(">s1\n" + SEQ + "\n"))
    main(["-i", "-", "-o", "-"] + MOTIF_ARGS)
    assert capsys.readouterr().out == EXPECTED


def test_cli_unwritable_output_is_fatal(tmp_path, fasta):
    with pytest.raises(SystemExit) as excinfo:
        main(["-i", str(fasta), "-o", str(tmp_path / "no_dir" / "out.tsv")] + MOTIF_ARGS)
    assert excinfo.value.code != 0


def test_cli_rejects_bad_gap_range(tmp_path, fasta):
    args = ["-i", str(fasta), "-o", str(tmp_path / "out.tsv"),
            "--left", "ACGT", "--right", "ACGT", "--gap-min", "5", "--gap-max", "3"]
    with pytest.raises(SystemExit):
        main(args)
    assert not (tmp_path / "out.tsv").exists()


def test_cli_requires_anchors(tmp_path, fasta):
    with pytest.raises(SystemExit):
        main(["-i", str(fasta), "-o", str(tmp_path / "out.tsv"), "--gap-min", "0", "--gap-max", "3"])


def test_cli_config_file_with_override(tmp_path, fasta):
    config = tmp_path / "motif.yaml"
    config.write_text(
        "params:\n"
        "  HANDLE: ACGT\n"
        "motif:\n"
        "  left: '{{ params.HANDLE }}'\n"
        "  right: GGGG\n"
        "  gap_min: 0\n"
        "  gap_max: 3\n"
        "  after: 2\n"
    )
    out = tmp_path / "out.tsv"
    main(["-i", str(fasta), "-o", str(out), "--config", str(config)])
    assert out.read_text() == HEADER

    main(["-i", str(fasta), "-o", str(out), "--config", str(config), "--right", "ACGT"])
    assert out.read_text() == EXPECTED


def test_cli_missing_config(tmp_path, fasta):
    with pytest.raises(SystemExit):
        main(["-i", str(fasta), "-o", str(tmp_path / "out.tsv"),
              "--config", str(tmp_path / "nope.yaml")])


def test_cli_plot(tmp_path, fasta):
    out = tmp_path / "out.tsv"
    png = tmp_path / "mismatch.png"
    main(["-i", str(fasta), "-o", str(out), "--plot", str(png)] + MOTIF_ARGS)
    assert png.exists()
    assert png.stat().st_size > 0


@pytest.mark.parametrize("text", [
    "motif: [unclosed\n",
    "motif:\n  left: '{{ params.MISSING }}'\n  right: ACGT\n  gap_min: 0\n  gap_max: 3\n",
    "- ACGT\n- ACGT\n",
    "motif:\n  left: ACGT\n  right: ACGT\n  gap_min:\n  gap_max: 3\n",
    "motif:\n  left:\n  right: ACGT\n  gap_min: 0\n  gap_max: 3\n",
])
def test_cli_bad_config_exits_with_message(tmp_path, fasta, text):
    config = tmp_path / "motif.yaml"
    config.write_text(text)
    out = tmp_path / "out.tsv"
    with pytest.raises(SystemExit) as excinfo:
        main(["-i", str(fasta), "-o", str(out), "--config", str(config)])
    assert str(excinfo.value.code).startswith("Error loading configuration")
    assert not out.exists()


def test_cli_non_utf8_input(tmp_path):
    fa = tmp_path / "in.fa"
    fa.write_bytes(b">s1\nACGT\xffACGT\n")
    out = tmp_path / "out.tsv"
    main(["-i", str(fa), "-o", str(out), "--left", "ACGT", "--right", "ACGT",
          "--gap-min", "0", "--gap-max", "3"])
    assert out.read_bytes() == HEADER.encode() + b"s1\t1\t9\t0\tACGT\xffACGT\n"
