"""Drive vsphere-provisioner from Python instead of the CLI.

Reports drift against the state file, optionally adopts an override that
already exists in vCenter, then plans and (with ``--apply``) converges.
"""

from __future__ import annotations

import argparse
import json
import sys

from vsphere_provisioner import config as vp
from vsphere_provisioner.engine.types import Action, ResourceChange


def _report(change: ResourceChange, event: str) -> None:
    marker = ">>" if event == "start" else "ok"
    print(f"{marker} {change.action.value} {change.address}")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("config", nargs="?", default="vsphere-provisioner.yaml")
    parser.add_argument("--apply", action="store_true", help="converge after planning")
    parser.add_argument(
        "--adopt",
        nargs=3,
        metavar=("ADDRESS", "CLUSTER_PATH", "VM_PATH"),
        help="import an existing override before planning",
    )
    opts = parser.parse_args(argv)

    cfg = vp.load(opts.config)

    for drifted in vp.drift(cfg):
        print(f"drift: {drifted.address} ({', '.join(drifted.diff or {}) or 'removed'})")

    if opts.adopt:
        address, cluster, vm = opts.adopt
        spec = {"compute_cluster_path": cluster, "virtual_machine_path": vm}
        print(f"adopted {address} as {vp.import_resource(cfg, address, json.dumps(spec)).id}")

    pending = vp.plan(cfg)
    todo = [c for c in pending.changes if c.action != Action.NOOP]
    if not todo:
        print("nothing to do")
        return 0
    for change in todo:
        print(f"{change.action.value:>7} {change.address}")

    if opts.apply:
        done = vp.apply(pending, cfg, progress=_report)
        print(json.dumps(done.summary()))
    return 0


if __name__ == "__main__":
    sys.exit(main())
