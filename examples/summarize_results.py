#!/usr/bin/env python3
"""
结果工件摘要
读取 test-results.json，打印每个阶段 mongo 相对 postgres 的耗时比
"""
import sys

from dbbench.data_models import CANONICAL_OPERATIONS
from dbbench.reporting import ResultExporter


def main(path: str = "test-results.json"):
    report = ResultExporter(path).load()

    print(f"📊 结果生成于 {report.generated_at:%Y-%m-%d %H:%M:%S}")
    for scale in sorted(report.scales):
        print(f"\n规模 {scale}")
        print("-" * 30)
        for phase, backends in report.scales[scale].phases.items():
            if "postgres" not in backends or "mongo" not in backends:
                continue
            postgres = backends["postgres"].as_row()
            mongo = backends["mongo"].as_row()
            print(f"  {phase}:")
            for op in CANONICAL_OPERATIONS:
                base = postgres[op.value]
                ratio = mongo[op.value] / base if base else float("inf")
                status = "🟢" if ratio < 1 else "🔴"
                print(f"    {status} {op.label}: mongo/postgres = {ratio:.2f}x")


if __name__ == "__main__":
    main(*sys.argv[1:])
