# File: backend/tests/test_mutagenesis_cli.py
# Version: v0.1.0
"""
CLI smoke tests: literal sequence and FASTA input, outputs, and the exit code on bad input.
"""

import json

import pytest
from Bio import SeqIO

from backend.app.cli.mutagenesis_cli import main


def test_cli_sequence_writes_outputs(tmp_path, capsys, gfp):
    main(["--sequence", gfp, "--mutation", "A11G", "--outdir", str(tmp_path)])
    out = capsys.readouterr().out
    assert out.startswith("[OK]")

    meta = json.loads((tmp_path / "mutagenesis.json").read_text(encoding="utf-8"))
    assert meta["mutation"] == "A11G"
    assert meta["params_source"] == "defaults"
    assert meta["result"]["mutatedSequence"][10] == "G"

    records = list(SeqIO.parse(str(tmp_path / "primers.fasta"), "fasta"))
    assert [r.id for r in records] == ["sequence_Forward_Primer", "sequence_Reverse_Primer"]
    assert str(records[0].seq) == meta["result"]["best"]["forward"]["sequence"]


def test_cli_fasta_with_params(tmp_path, gfp):
    fasta = tmp_path / "gfp.fasta"
    fasta.write_text(f">gfp\n{gfp}\n", encoding="utf-8")
    params = tmp_path / "p.json"
    params.write_text('{"minTm": 56}', encoding="utf-8")
    outdir = tmp_path / "out"

    main([
        "--fasta", str(fasta), "--mutation", "K27R", "--outdir", str(outdir),
        "--params-json", str(params), "--strategy", "overlapping", "--linear",
    ])
    meta = json.loads((outdir / "mutagenesis.json").read_text(encoding="utf-8"))
    assert meta["sequence_name"] == "gfp"
    assert meta["result"]["strategy"] == "overlapping"
    assert meta["result"]["newCodon"] == "AGA"
    assert not meta["result"]["circularWrapped"]


def test_cli_bad_mutation_exits_2(tmp_path, capsys, gfp):
    with pytest.raises(SystemExit) as exc:
        main(["--sequence", gfp, "--mutation", "T11G", "--outdir", str(tmp_path)])
    assert exc.value.code == 2
    assert "[ERROR]" in capsys.readouterr().err


def test_cli_multi_record_fasta_exits_2(tmp_path, gfp):
    fasta = tmp_path / "two.fasta"
    fasta.write_text(f">a\n{gfp}\n>b\n{gfp}\n", encoding="utf-8")
    with pytest.raises(SystemExit) as exc:
        main(["--fasta", str(fasta), "--mutation", "A11G", "--outdir", str(tmp_path)])
    assert exc.value.code == 2
