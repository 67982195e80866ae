#!/usr/bin/env python3
"""
基准测试命令行入口
连接两个后端，按规模运行全部阶段，打印对比表并写出结果工件
"""
import argparse
import sys
from typing import List, Optional

from .adapters import (
    BackendAdapter, BenchmarkError, FlatDocumentAdapter, IndexedDocumentAdapter,
    JoinDocumentAdapter, MongoStore, RelationalAdapter,
)
from .config.settings import Settings
from .data_models.records import BENCHMARK_SCALES
from .generation.dataset import DatasetGenerator
from .reporting import Reporter, ReportFormatter, ResultExporter
from .runner import BenchmarkRunner


def build_adapters(settings: Settings, mongo_client=None, engine=None) -> List[BackendAdapter]:
    """关系型适配器一个，文档型三个变体共享同一连接"""
    db = settings.database
    top_n = settings.benchmark.top_n
    store = MongoStore(
        db.mongodb_url,
        db.mongodb_db,
        client=mongo_client,
        connect_timeout_ms=db.connect_timeout_ms,
    )
    return [
        RelationalAdapter(db.postgres_url, top_n=top_n, engine=engine,
                          connect_timeout_ms=db.connect_timeout_ms),
        FlatDocumentAdapter(store, top_n=top_n),
        JoinDocumentAdapter(store, top_n=top_n),
        IndexedDocumentAdapter(store, top_n=top_n),
    ]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dbbench",
        description="Benchmark equivalent workloads against a relational and a document store",
    )
    parser.add_argument("--scale", type=int, action="append", choices=BENCHMARK_SCALES,
                        help="Scale to run (repeatable, default: all configured scales)")
    parser.add_argument("--output", help="Path of the JSON results artifact")
    parser.add_argument("--sqlalchemy-url", help="Relational backend URL")
    parser.add_argument("--mongodb-url", help="Document backend URL")
    parser.add_argument("--aggregation-scale", type=int, choices=BENCHMARK_SCALES,
                        help="Scale used for the aggregation pass")
    parser.add_argument("--skip-aggregation", action="store_true",
                        help="Do not run the aggregation pass")
    parser.add_argument("--quiet", action="store_true", help="Only print timings")
    return parser


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    if args.scale:
        settings.benchmark.scales = list(dict.fromkeys(args.scale))
    if args.output:
        settings.benchmark.output_path = args.output
    if args.aggregation_scale:
        settings.benchmark.aggregation_scale = args.aggregation_scale
    if args.sqlalchemy_url:
        settings.database.sqlalchemy_url = args.sqlalchemy_url
    if args.mongodb_url:
        settings.database.mongodb_url_override = args.mongodb_url
    return settings


def main(argv: Optional[List[str]] = None, settings: Optional[Settings] = None,
         stream=None) -> int:
    args = build_parser().parse_args(argv)
    settings = apply_overrides(settings or Settings(), args)
    reporter = Reporter(stream=stream, verbose=not args.quiet)

    runner = BenchmarkRunner(
        build_adapters(settings),
        generator=DatasetGenerator(like_density=settings.benchmark.like_density),
        reporter=reporter,
        aggregation_scale=None if args.skip_aggregation else settings.benchmark.aggregation_scale,
    )

    try:
        report = runner.run(settings.benchmark.scales)
    except BenchmarkError as e:
        print(f"[ERROR] {e.error_code}: {e.message}", file=sys.stderr)
        return 1

    reporter.emit()
    reporter.emit(ReportFormatter().render(report))
    path = ResultExporter(settings.benchmark.output_path).write(report)
    reporter.artifact_written(str(path))
    return 0


if __name__ == "__main__":
    sys.exit(main())
