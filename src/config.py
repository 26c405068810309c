"""Typed view of `config.yaml`."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from .similarity.metrics import Metric


@dataclass(frozen=True)
class DatasetConfig:
    raw_dir: str = "data/raw"
    ratings_file: str = "ratings.csv"
    item_id_dtype: str = "int64"


@dataclass(frozen=True)
class KNNConfig:
    k: int = 20
    metric: str = "pearson"
    grade: int | None = None
    chunk_size: int = 500
    min_common_rated: int = 0

    def __post_init__(self) -> None:
        if int(self.k) <= 0:
            raise ValueError(f"knn.k must be positive, got {self.k}")
        if int(self.chunk_size) <= 0:
            raise ValueError(f"knn.chunk_size must be positive, got {self.chunk_size}")
        if int(self.min_common_rated) < 0:
            raise ValueError(f"knn.min_common_rated must be >= 0, got {self.min_common_rated}")
        # Fail on a bad metric name/grade at load time rather than on first query.
        self.build_metric()

    def build_metric(self) -> Metric:
        grade = self.grade if self.metric.strip().lower() == "minkowski" else None
        return Metric.parse(self.metric, grade=grade)


@dataclass(frozen=True)
class RecommendConfig:
    top_n: int = 10
    normalize: bool = False


@dataclass(frozen=True)
class ItemCFConfig:
    top_n: int = 10
    k: int = 20


@dataclass(frozen=True)
class CFConfig:
    dataset: DatasetConfig = field(default_factory=DatasetConfig)
    knn: KNNConfig = field(default_factory=KNNConfig)
    recommend: RecommendConfig = field(default_factory=RecommendConfig)
    item_cf: ItemCFConfig = field(default_factory=ItemCFConfig)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "CFConfig":
        def _section(name: str) -> dict[str, Any]:
            value = raw.get(name, {})
            return value if isinstance(value, dict) else {}

        ds = _section("dataset")
        knn = _section("knn")
        rec = _section("recommend")
        item = _section("item_cf")

        grade_raw = knn.get("grade")
        return cls(
            dataset=DatasetConfig(
                raw_dir=str(ds.get("raw_dir", "data/raw")),
                ratings_file=str(ds.get("ratings_file", "ratings.csv")),
                item_id_dtype=str(ds.get("item_id_dtype", "int64")),
            ),
            knn=KNNConfig(
                k=int(knn.get("k", 20)),
                metric=str(knn.get("metric", "pearson")),
                grade=(None if grade_raw is None else int(grade_raw)),
                chunk_size=int(knn.get("chunk_size", 500)),
                min_common_rated=int(knn.get("min_common_rated", 0)),
            ),
            recommend=RecommendConfig(
                top_n=int(rec.get("top_n", 10)),
                normalize=bool(rec.get("normalize", False)),
            ),
            item_cf=ItemCFConfig(
                top_n=int(item.get("top_n", 10)),
                k=int(item.get("k", 20)),
            ),
        )

    def with_knn(self, **overrides: Any) -> "CFConfig":
        """Copy with some knn fields replaced; None values are ignored."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        if not changes:
            return self
        return replace(self, knn=replace(self.knn, **changes))


def load_config(path: Path) -> CFConfig:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")
    obj = yaml.safe_load(path.read_text())
    if obj is None:
        obj = {}
    if not isinstance(obj, dict):
        raise ValueError(f"Expected YAML mapping at {path}, got {type(obj)}")
    return CFConfig.from_dict(obj)
