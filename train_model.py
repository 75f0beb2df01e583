"""
Train a Model from a CSV File

Creates a model of the given type, trains it on the CSV's columns and prints
the resulting metrics.

Usage:
    python train_model.py data.csv --type TYPE [--features COL ...] [--target COL]

Examples:
    python train_model.py sales.csv --type REGRESSION --features ad_spend --target revenue
    python train_model.py churn.csv --type CLASSIFICATION --features tenure usage --target churned --epochs 50
    python train_model.py demand.csv --type TIME_SERIES --target units --window-size 14
    python train_model.py customers.csv --type CLUSTERING --features spend visits --clusters 4
"""
import argparse
import asyncio
import sys
from pathlib import Path

import pandas as pd

from ml_pipeline.ai.errors import MLPipelineError
from ml_pipeline.ai.model_store import ModelStore
from ml_pipeline.ai.schemas import ModelType, TrainingConfig, TrainingData
from ml_pipeline.ai.training_service import TrainingService
from ml_pipeline.config import settings
from ml_pipeline.database import Database
from ml_pipeline.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Create and train a model from a CSV dataset"
    )
    parser.add_argument("csv_path", type=Path, help="Path to the CSV dataset")
    parser.add_argument(
        "--type",
        dest="model_type",
        required=True,
        choices=[t.value for t in ModelType],
        help="Model type"
    )
    parser.add_argument(
        "--features",
        nargs="*",
        default=[],
        help="Feature column names (not needed for TIME_SERIES)"
    )
    parser.add_argument("--target", default=None, help="Target column name")
    parser.add_argument("--name", default=None, help="Model name (default: CSV file name)")
    parser.add_argument("--epochs", type=int, default=None, help="Training epochs (CLASSIFICATION)")
    parser.add_argument("--window-size", type=int, default=None, help="Moving-average window (TIME_SERIES)")
    parser.add_argument("--clusters", type=int, default=None, help="Number of clusters (CLUSTERING)")
    parser.add_argument(
        "--database-url",
        default=None,
        help=f"Database URL (default: {settings.database_url})"
    )
    parser.add_argument("--tenant", default=settings.default_tenant_id, help="Tenant identifier")
    return parser


def config_params_from_args(args) -> dict:
    """Per-type params set on the command line."""
    params = {}
    if args.window_size is not None:
        params["window_size"] = args.window_size
    if args.clusters is not None:
        params["clusters"] = args.clusters
    return params


async def train_from_csv(args) -> int:
    df = pd.read_csv(args.csv_path)
    logger.info(f"Loaded {len(df)} rows, {len(df.columns)} columns from {args.csv_path}")
    data = TrainingData.from_dataframe(df, args.features, args.target)

    config = TrainingConfig(epochs=args.epochs) if args.epochs is not None else TrainingConfig()

    database = Database(args.database_url)
    await database.connect()
    service = TrainingService(ModelStore(database, args.tenant))
    try:
        model = await service.create_model(
            name=args.name or args.csv_path.stem,
            model_type=args.model_type,
            feature_columns=args.features,
            target_column=args.target,
            config_params=config_params_from_args(args),
        )
        job = await service.train_model(model.id, data, config)
        job = await service.wait_for_job(job.id)
        metrics = await service.get_model_metrics(model.id)
    finally:
        await service.shutdown()
        await database.disconnect()

    print("\n" + "=" * 60)
    print("TRAINING SUCCESSFUL!")
    print("=" * 60)
    print(f"Model: {model.name} ({model.id})")
    print(f"Type: {model.type}")
    print(f"Samples: {job.dataset_size:,}")
    print(f"Duration: {job.duration:.3f}s")
    for name, value in metrics.model_dump(exclude_none=True).items():
        print(f"{name}: {value:.4f}")
    print("=" * 60 + "\n")
    return 0


def main(argv=None) -> int:
    """Train a model from a CSV file."""
    args = build_parser().parse_args(argv)
    setup_logging(settings.log_level)

    print("\n" + "=" * 60)
    print("STARTING MODEL TRAINING")
    print("=" * 60)
    print(f"Dataset: {args.csv_path}")
    print(f"Type: {args.model_type}")
    print(f"Features: {', '.join(args.features) or '-'}")
    print(f"Target: {args.target or '-'}")
    print("=" * 60 + "\n")

    try:
        return asyncio.run(train_from_csv(args))
    except (MLPipelineError, FileNotFoundError, pd.errors.ParserError) as e:
        print("\n" + "=" * 60)
        print("TRAINING FAILED")
        print("=" * 60)
        print(f"Error: {str(e)}")
        print("=" * 60 + "\n")
        logger.error(f"Training failed: {str(e)}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
