"""Data manager for caching harmonized survey tables and exporting results.

Recoding the raw CPS and SCF files is the slow part of a run, so the
harmonized tables are persisted to disk and reused by later runs.  The cache
files include a version tag to make it easy to invalidate caches when the
recoding rules change.  Aggregation and reconciliation are cheap and always
recomputed from the (possibly cached) harmonized tables.
"""

import hashlib
import os
import shutil
import tempfile
import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from functools import lru_cache

import pandas as pd

from . import pipeline
from .config import PipelineConfig

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Cache setup
# ---------------------------------------------------------------------------
# Bump this value whenever the harmonization rules change in a way that
# invalidates existing caches.
CACHE_VERSION: str = "v1"

CACHE_ENV_VAR: str = "HOMEOWNERSHIP_CACHE_DIR"


def resolve_cache_dir(preferred: Optional[Path] = None) -> Path:
    """Select a writable directory for caching.

    The lookup order is:

    1. ``preferred`` (usually ``PipelineConfig.cache_dir``), if given.
    2. The ``HOMEOWNERSHIP_CACHE_DIR`` environment variable, if set.
    3. A ``data/cache`` folder at the repository root.
    4. A temporary directory in ``/tmp``.

    Each candidate path is tested for writability by attempting to
    create and delete a sentinel file.  The first path that succeeds
    is returned.
    """
    candidates: list[Path] = []
    if preferred is not None:
        candidates.append(Path(preferred).expanduser().resolve())
    env = os.getenv(CACHE_ENV_VAR)
    if env:
        candidates.append(Path(env).expanduser().resolve())

    # Repo root /data/cache (two levels up from this file)
    candidates.append(Path(__file__).resolve().parent.parent / "data" / "cache")
    candidates.append(Path(tempfile.gettempdir()) / "homeownership_cache")

    for path in candidates:
        try:
            path.mkdir(parents=True, exist_ok=True)
            test_file = path / ".write_test"
            test_file.write_text("ok", encoding="utf-8")
            test_file.unlink()
            return path
        except OSError as exc:
            logger.debug("Cache directory %s not writable: %s", path, exc)
            continue

    # Final fallback: ensure the last candidate exists
    fallback = candidates[-1]
    fallback.mkdir(parents=True, exist_ok=True)
    return fallback


def config_fingerprint(config: PipelineConfig) -> str:
    """Short hash of the configuration fields that determine the harmonized tables."""
    parts = [
        ",".join(str(year) for year in config.years),
        str(Path(config.cps_dir).expanduser().resolve()),
        config.cps_pattern,
        str(Path(config.scf_dir).expanduser().resolve()),
        config.scf_pattern,
    ]
    return hashlib.sha1("|".join(parts).encode("utf-8")).hexdigest()[:12]


def cache_paths(cache_dir: Path, config: PipelineConfig) -> Tuple[Path, Path]:
    """Versioned cache files for the harmonized CPS and SCF tables.

    File names carry ``CACHE_VERSION`` and :func:`config_fingerprint`, so a
    run with different years or inputs never reuses another run's tables.
    """
    tag = f"{CACHE_VERSION}_{config_fingerprint(config)}"
    return (
        cache_dir / f"cps_harmonized_{tag}.csv",
        cache_dir / f"scf_harmonized_{tag}.csv",
    )


def _atomic_to_csv(df: pd.DataFrame, path: Path) -> None:
    """Write a DataFrame to CSV atomically.

    The CSV is first written to a temporary file in the same directory
    and then renamed to the final location.  This avoids leaving a
    partially written file if the process is interrupted mid‑write.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    df.to_csv(tmp_path, index=False)
    tmp_path.replace(path)


@lru_cache(maxsize=1)
def _compute_harmonized(config: PipelineConfig) -> Dict[str, pd.DataFrame]:
    """Runs the recoding step for both surveys."""
    return pipeline.harmonize_inputs(config)


def load_harmonized(
    config: PipelineConfig, force_recompute: bool = False
) -> Dict[str, pd.DataFrame]:
    """
    Load harmonized tables from disk cache if available, otherwise compute and save.

    Parameters
    ----------
    config : PipelineConfig
        Run configuration; ``config.cache_dir`` selects the cache location.
    force_recompute : bool, optional
        If ``True``, recompute the tables even if cache files exist.

    Returns
    -------
    Dict[str, pd.DataFrame]
        A dictionary with keys ``"cps"`` and ``"scf"``.
    """
    cache_dir = resolve_cache_dir(config.cache_dir)
    cps_cache, scf_cache = cache_paths(cache_dir, config)

    if not force_recompute and cps_cache.exists() and scf_cache.exists():
        logger.info("Loading harmonized tables from cache directory %s", cache_dir)
        try:
            return {"cps": pd.read_csv(cps_cache), "scf": pd.read_csv(scf_cache)}
        except (OSError, ValueError) as exc:
            # If reading the cache fails, fall back to recomputing
            logger.warning(
                "Error reading cache files %s and %s: %s; falling back to recompute",
                cps_cache,
                scf_cache,
                exc,
            )

    if force_recompute:
        _compute_harmonized.cache_clear()

    logger.info("Harmonizing CPS and SCF inputs – this may take a while…")
    harmonized = _compute_harmonized(config)

    # Persist to disk atomically
    try:
        _atomic_to_csv(harmonized["cps"], cps_cache)
        _atomic_to_csv(harmonized["scf"], scf_cache)
        logger.info("Cache updated: cps=%s, scf=%s", cps_cache.name, scf_cache.name)
    except OSError as exc:
        logger.warning("Could not write cache files: %s", exc)

    return harmonized


def load_payload(
    config: PipelineConfig, force_recompute: bool = False
) -> Dict[str, pd.DataFrame]:
    """Result tables for ``config``, reusing cached harmonized inputs."""
    harmonized = load_harmonized(config, force_recompute=force_recompute)
    return pipeline.build_tables(harmonized["cps"], harmonized["scf"], config)


def export_results(payload: Dict[str, pd.DataFrame], output_dir: Path) -> List[Path]:
    """Write one CSV per result table; returns the written paths.

    All tables are first written to a staging directory next to
    ``output_dir`` and only moved into place once every write succeeded,
    so a failed export leaves no new files behind.
    """
    output_dir = Path(output_dir)
    output_dir.parent.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(prefix=".export_", dir=output_dir.parent))
    written: List[Path] = []
    try:
        for name, table in sorted(payload.items()):
            table.to_csv(staging / f"{name}.csv", index=False)
        output_dir.mkdir(parents=True, exist_ok=True)
        for staged in sorted(staging.iterdir()):
            target = output_dir / staged.name
            staged.replace(target)
            written.append(target)
    finally:
        shutil.rmtree(staging, ignore_errors=True)
    logger.info("Wrote %s result tables to %s", len(written), output_dir)
    return written
