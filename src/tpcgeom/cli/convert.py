from __future__ import annotations

import argparse
import json
import logging
import os

from ..core.coords import PadCoordinate
from ..core.transform import CoordTransform
from ..data.calibration import Calibration, nominal_calibration
from ..utils.config import load_config, save_config
from ..utils.logging import log_calibration, log_jax_env, setup_logging


def main(argv=None) -> None:
    p = argparse.ArgumentParser(description="Convert a raw pad hit into local-sector, local or global coordinates")
    p.add_argument("--sector", type=int, required=True)
    p.add_argument("--row", type=int, required=True)
    p.add_argument("--pad", type=float, required=True)
    p.add_argument("--time-bucket", type=float, required=True)
    p.add_argument(
        "--calibration",
        default=None,
        help="JSON/YAML calibration file (sections keyed by category). Defaults to nominal geometry.",
    )
    p.add_argument("--save-calibration", default=None, help="Write the calibration in use to this JSON/YAML file")
    p.add_argument("--frame", choices=["local_sector", "local", "global"], default="global")
    p.add_argument("--log-level", default="WARNING")
    p.add_argument("--progress", action="store_true", help="Show progress bars if tqdm is available")
    args = p.parse_args(argv)

    setup_logging(args.log_level)
    log_jax_env()
    if args.progress:
        os.environ["TPCGEOM_PROGRESS"] = "1"
    if not 1 <= args.sector <= 24:
        raise SystemExit(f"--sector must be in 1..24, got: {args.sector}")

    if args.calibration:
        cal = Calibration.from_dict(load_config(args.calibration))
        logging.info("Loaded calibration: %s", args.calibration)
    else:
        cal = nominal_calibration()
    log_calibration(cal)
    if args.save_calibration:
        save_config(cal, args.save_calibration)
        logging.info("Saved calibration: %s", args.save_calibration)
    ct = CoordTransform(cal)

    hit = PadCoordinate(args.sector, args.row, args.pad, args.time_bucket)
    local_sector = ct.hardware_to_local_sector(hit)
    if args.frame == "local_sector":
        pos = local_sector.position
    else:
        local = ct.local_sector_to_local(local_sector)
        pos = local.position if args.frame == "local" else ct.local_to_global(local).position
    print(json.dumps({"frame": args.frame, "sector": hit.sector, "row": hit.row, "x": pos.x, "y": pos.y, "z": pos.z}))


if __name__ == "__main__":  # pragma: no cover
    main()
