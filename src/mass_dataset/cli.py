# cli.py

import json
import logging
from pathlib import Path
from typing import Annotated, Optional

import pandas as pd
import typer

from . import __version__
from .checking import ALL_GOOD, check_mass_dataset
from .config import Ms2MatchConfig, load_config
from .dataset import create_mass_dataset
from .mutate import mutate_ms2

app = typer.Typer(help="Build, check and annotate untargeted metabolomics datasets.")


def load_table(file_path: Path, index_col: Optional[int] = None) -> pd.DataFrame:
    """Loads a CSV or TSV file into a pandas DataFrame."""
    if file_path.suffix == ".csv":
        return pd.read_csv(file_path, index_col=index_col)
    elif file_path.suffix == ".tsv":
        return pd.read_csv(file_path, sep="\t", index_col=index_col)
    else:
        raise typer.BadParameter(f"Unsupported file type for {file_path}. Please provide a .csv or .tsv file.")


def _load_tables(expression_path: Path, sample_info_path: Path, variable_info_path: Path):
    expression_data = load_table(expression_path, index_col=0)
    expression_data.index = expression_data.index.astype(str)
    sample_info = load_table(sample_info_path)
    variable_info = load_table(variable_info_path)
    return expression_data, sample_info, variable_info


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug messages.")] = False,
):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def check(
    expression_path: Annotated[Path, typer.Argument(help="Expression matrix (.csv/.tsv), first column = variable_id.")],
    sample_info_path: Annotated[Path, typer.Argument(help="Sample table with sample_id and class.")],
    variable_info_path: Annotated[Path, typer.Argument(help="Variable table with variable_id, mz, rt.")],
    sample_note: Annotated[Optional[Path], typer.Option(help="Sample column notes (name, meaning).")] = None,
    variable_note: Annotated[Optional[Path], typer.Option(help="Variable column notes (name, meaning).")] = None,
):
    """
    Checks that the tables form a consistent mass dataset.
    """
    expression_data, sample_info, variable_info = _load_tables(expression_path, sample_info_path, variable_info_path)
    result = check_mass_dataset(
        expression_data,
        sample_info,
        variable_info,
        load_table(sample_note) if sample_note else None,
        load_table(variable_note) if variable_note else None,
    )
    typer.echo(result)
    if result != ALL_GOOD:
        raise typer.Exit(code=1)


@app.command("match-ms2")
def match_ms2(
    expression_path: Annotated[Path, typer.Argument(help="Expression matrix (.csv/.tsv), first column = variable_id.")],
    sample_info_path: Annotated[Path, typer.Argument(help="Sample table with sample_id and class.")],
    variable_info_path: Annotated[Path, typer.Argument(help="Variable table with variable_id, mz, rt.")],
    ms2_path: Annotated[
        Optional[Path], typer.Option(help="Directory searched recursively for mgf/mzML/mzXML files (default: config path, else the working directory).")
    ] = None,
    config: Annotated[Optional[Path], typer.Option(help="YAML/JSON file with matching settings.")] = None,
    column: Annotated[Optional[str], typer.Option(help="Column type: rp or hilic.")] = None,
    polarity: Annotated[Optional[str], typer.Option(help="Polarity: positive or negative.")] = None,
    mz_tol: Annotated[Optional[float], typer.Option(help="m/z tolerance (ppm unless the config says da).")] = None,
    rt_tol: Annotated[Optional[float], typer.Option(help="RT tolerance in seconds.")] = None,
    out: Annotated[Path, typer.Option(help="Output CSV with one row per matched variable.")] = Path("ms2_matches.csv"),
):
    """
    Matches MS2 spectra to the dataset's variables and writes the matches.
    """
    cfg = load_config(config) if config else Ms2MatchConfig()
    overrides = {
        "column": column,
        "polarity": polarity,
        "mz_tol": mz_tol,
        "rt_tol": rt_tol,
        "path": str(ms2_path) if ms2_path is not None else None,
    }
    cfg = Ms2MatchConfig(**{**cfg.to_dict(), **{k: v for k, v in overrides.items() if v is not None}}).validate()

    dataset = create_mass_dataset(*_load_tables(expression_path, sample_info_path, variable_info_path))
    dataset = mutate_ms2(
        dataset,
        column=cfg.column,
        polarity=cfg.polarity,
        mz_tol=cfg.mz_tol,
        rt_tol=cfg.rt_tol,
        path=cfg.path,
        mz_tol_unit=cfg.mz_tol_unit,
        n_jobs=cfg.n_jobs,
    )

    matches = dataset.extract_ms2_data()
    matches.to_csv(out, index=False)
    typer.echo(f"wrote {out} with {len(matches)} matched variables")

    manifest = {
        "command": "match-ms2",
        "mass_dataset_version": __version__,
        "n_variables": int(dataset.shape[0]),
        "n_samples": int(dataset.shape[1]),
        "n_ms2_batches": len(dataset.ms2_data),
        "n_matched_variables": int(len(matches)),
        "parameters": cfg.to_dict(),
    }
    manifest_path = out.with_suffix(".run_manifest.json")
    manifest_path.write_text(json.dumps(manifest, indent=2), encoding="utf-8")


if __name__ == "__main__":
    app()
