#!/usr/bin/env python3
"""
Fileset Demo

A minimal example: allocate a store for an HM450-style probe list, fill two
samples, reopen the store and slice a few cells.
"""

import sys
import os
import tempfile
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import numpy as np

from methylset import (
    Platform, ProbeReference, allocate_for_platform, configure_logging, get_profiler, open_store,
)

configure_logging(level="INFO")

# A toy reference; real probe catalogs come from the array manifests
probes = [f"cg{i:08d}" for i in range(1000)]
reference = ProbeReference({Platform.HM450: probes})

work_dir = tempfile.mkdtemp(prefix="methylset_demo_")
store_path = os.path.join(work_dir, "betas.bin")

handle = allocate_for_platform(store_path, "HM450", ["TCGA-01", "TCGA-02", "TCGA-03"], reference)
print(f"Allocated: {handle}")

rng = np.random.default_rng(0)
for sample in ["TCGA-01", "TCGA-03"]:
    handle.fill(sample, dict(zip(probes, rng.random(len(probes)))))

reopened = open_store(store_path)
result = reopened.slice(["TCGA-03", "TCGA-02", "TCGA-01"], ["cg00000042", "cg00000007", "cg99999999"])

print(f"\nRequested 3 probes, {len(result.probes)} resolved: {result.probes}")
print(result.values)
print(f"\nUnfilled sample TCGA-02 holds NaN: {np.isnan(result.get('cg00000042', 'TCGA-02'))}")
print(f"TCGA-03 column: {result.column('TCGA-03')}")

get_profiler().log_summary()
