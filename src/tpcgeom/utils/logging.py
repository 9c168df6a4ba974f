from __future__ import annotations

import logging
import os
from typing import Iterable, Iterator, Optional

_TRUE = ("1", "true", "yes", "on")


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging; ``TPCGEOM_LOG_LEVEL`` wins over the argument."""
    name = os.environ.get("TPCGEOM_LOG_LEVEL") or level or "INFO"
    logging.basicConfig(level=getattr(logging, name.upper(), logging.INFO), format="%(asctime)s | %(levelname)s | %(message)s")


def log_jax_env() -> None:
    try:
        import jax
        logging.info("JAX backend: %s (x64=%s)", jax.default_backend(), jax.config.jax_enable_x64)
        logging.info("Devices: %s", jax.devices())
    except Exception:  # pragma: no cover
        logging.info("JAX not available for logging")


def log_calibration(calibration) -> None:
    """One INFO line per calibration table that drives the pad/time conversions."""
    from ..core.geometry.base import Category

    pp = calibration.get(Category.PAD_PLANES)
    el = calibration.get(Category.ELECTRONICS)
    dv = calibration.get(Category.DRIFT_VELOCITY)
    logging.info(
        "Pad planes: %d rows (%d inner), pitch %.3f/%.3f cm, plane z %.2f cm",
        pp.pad_rows, pp.inner_pad_rows, pp.inner_sector_pad_pitch, pp.outer_sector_pad_pitch,
        pp.outer_sector_pad_plane_z,
    )
    logging.info("Sampling %.0f Hz (time bucket %.5f us), t0 %.4f us", el.sampling_frequency, el.timebin_width, el.t_zero)
    logging.info("Drift velocity west %.4f / east %.4f cm/us", dv.west, dv.east)


def _progress_enabled() -> bool:
    return os.environ.get("TPCGEOM_PROGRESS", "0").lower() in _TRUE


def progress_iter(iterable: Iterable, *, total: Optional[int] = None, desc: str = "") -> Iterator:
    """Iterate with a tqdm bar when ``TPCGEOM_PROGRESS=1`` (CLI: ``--progress``).

    Without tqdm installed the steps are logged at DEBUG instead.
    """
    if not _progress_enabled():
        yield from iterable
        return
    try:
        from tqdm import tqdm  # type: ignore
    except ImportError:
        tqdm = None
    if tqdm is not None:
        yield from tqdm(iterable, total=total, desc=desc, dynamic_ncols=True, leave=False)
        return
    step = max(1, (total or 10) // 10)
    for i, x in enumerate(iterable, 1):
        if i == 1 or i == total or i % step == 0:
            logging.debug("%s %d/%s", desc, i, total if total is not None else "?")
        yield x
