"""tpcgeom main package.

Pad/sector/TPC/global coordinate transforms for a 24-sector TPC and the helix
track model. Install from the repo root and use via `tpcgeom.*` and
`python -m tpcgeom.cli.convert`.
"""

__all__ = [
    "__version__",
]

__version__ = "0.1.0"
