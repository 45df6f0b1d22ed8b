# File: backend/app/cli/mutagenesis_cli.py
# Version: v0.1.0
"""
CLI for site-directed mutagenesis primer design.

- Template from a single-record FASTA (--fasta) or a literal sequence (--sequence).
- Mutation in notation form: A123G, K45R, del100-110, ins100_ACGT, sub100-102_GGC.
- Parameters: optional JSON (camelCase, partial) merged over the defaults;
  --strategy / --linear override the JSON.
- Writes mutagenesis.json (full result) and primers.fasta (best pair).

Usage:
    python -m backend.app.cli.mutagenesis_cli \
        --fasta backend/data/input/plasmid.fasta \
        --mutation K45R \
        --outdir backend/data/out/mutagenesis \
        [--params-json backend/app/config/mutagenesis_param.json] \
        [--strategy overlapping] [--linear] [--log-level DEBUG]
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from Bio import SeqIO
from Bio.Seq import Seq
from Bio.SeqRecord import SeqRecord

from backend.app.config.config_mutagenesis import load_default_params
from backend.app.core.mutagenesis.designer import design_mutagenesis_primers
from backend.app.core.mutagenesis.mutations import parse_mutation_notation
from backend.app.core.mutagenesis.parameters import merge_parameters
from backend.app.core.mutagenesis.schemas import MutagenesisDesignResponse

log = logging.getLogger("mutagenesis_cli")


# ---------- IO helpers ----------

def read_single_fasta(path: Path) -> Tuple[str, str]:
    """Return (name, sequence). Enforces exactly one FASTA record."""
    records = list(SeqIO.parse(str(path), "fasta"))
    if not records:
        raise ValueError(f"No FASTA record found in {path}.")
    if len(records) > 1:
        raise ValueError(f"Multiple FASTA records found in {path}. Provide a single-sequence FASTA.")
    rec = records[0]
    return rec.id or "sequence", str(rec.seq).upper()


def write_primer_fasta(out: Path, response: MutagenesisDesignResponse, name: str) -> None:
    best = response.best
    records = [
        SeqRecord(
            Seq(p.sequence),
            id=f"{name}_{label}",
            description=f"tm={p.tm:.0f} gc={p.gc:.1f} len={p.length} tier={best.qualityTier}",
        )
        for label, p in (("Forward_Primer", best.forward), ("Reverse_Primer", best.reverse))
    ]
    SeqIO.write(records, str(out), "fasta")


# ---------- Main ----------

def main(argv: Optional[List[str]] = None) -> None:
    p = argparse.ArgumentParser(description="Site-directed mutagenesis primer design")
    src = p.add_mutually_exclusive_group(required=True)
    src.add_argument("--fasta", type=Path, help="Single-record FASTA with the template")
    src.add_argument("--sequence", help="Template sequence given literally")
    p.add_argument("--mutation", required=True, help="Mutation notation (1-based), e.g. A123G or K45R")
    p.add_argument("--outdir", required=True, type=Path)
    p.add_argument("--params-json", type=Path, help="Partial MutagenesisParameters JSON (camelCase)")
    p.add_argument("--strategy", choices=["back-to-back", "overlapping"], help="Override the design strategy")
    p.add_argument("--linear", action="store_true", help="Treat the template as linear (no origin wrapping)")
    p.add_argument("--log-level", dest="log_level", default="INFO",
                   choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                   help="Logging level (default: INFO)")
    args = p.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level))

    try:
        if args.fasta:
            name, seq = read_single_fasta(args.fasta)
        else:
            name, seq = "sequence", args.sequence.upper()

        overrides = json.loads(args.params_json.read_text(encoding="utf-8")) if args.params_json else {}
        if args.strategy:
            overrides["strategy"] = args.strategy
        if args.linear:
            overrides["circular"] = False
        params = merge_parameters(load_default_params(), overrides)

        log.info("Template %s (%d bp) | mutation=%s | strategy=%s", name, len(seq), args.mutation, params.strategy)
        mutation = parse_mutation_notation(args.mutation)
        result = design_mutagenesis_primers(seq, mutation, params)
        response = MutagenesisDesignResponse.from_result(result)

        args.outdir.mkdir(parents=True, exist_ok=True)
        out_json = args.outdir / "mutagenesis.json"
        meta = {
            "sequence_name": name,
            "mutation": args.mutation,
            "params_source": str(args.params_json) if args.params_json else "defaults",
            "result": response.model_dump(),
        }
        out_json.write_text(json.dumps(meta, indent=2), encoding="utf-8")
        out_fa = args.outdir / "primers.fasta"
        write_primer_fasta(out_fa, response, name)

        for w in result.warnings:
            log.warning("[%s] %s", w.severity, w.message)
        print(
            f"[OK] Wrote {out_fa} ({response.strategy}, tier={response.best.qualityTier}, "
            f"Ta={response.annealingTemp:.0f}°C)"
        )

    except Exception as ex:
        print(f"[ERROR] {ex}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
