"""
K-Means Clustering Model

Wraps scikit-learn's KMeans. Assignments are taken as the nearest centroid
of every point after fitting, so the stored clusters always agree with the
stored centroids.
"""
from typing import Optional

import numpy as np
from sklearn.cluster import KMeans
from sklearn.metrics import pairwise_distances_argmin

from ml_pipeline.ai import metrics
from ml_pipeline.ai.ai_config import ai_config
from ml_pipeline.ai.errors import ValidationError
from ml_pipeline.ai.models.base import ModelAlgorithm, TrainingOutcome
from ml_pipeline.ai.schemas import (
    ClusteringArtifact,
    ClusteringParams,
    ModelPerformance,
    ModelType,
    TrainingConfig,
    TrainingData,
)
from ml_pipeline.utils.logging import get_logger

logger = get_logger(__name__)


class ClusteringModel(ModelAlgorithm):
    """K-means trainer and nearest-centroid predictor."""

    model_type = ModelType.CLUSTERING
    algorithm_name = "kmeans"

    def validate(self, data: TrainingData, params: ClusteringParams) -> None:
        super().validate(data, params)
        if len(data.features) < params.clusters:
            raise ValidationError(
                f"Clustering with k={params.clusters} requires at least {params.clusters} samples "
                f"(got {len(data.features)})"
            )

    def train(self, data: TrainingData, config: TrainingConfig, params: ClusteringParams) -> TrainingOutcome:
        X = self._feature_matrix(data.features)
        k = params.clusters

        kmeans = KMeans(n_clusters=k, n_init=params.n_init, random_state=config.random_state)
        kmeans.fit(X)
        centroids = kmeans.cluster_centers_
        assignments = pairwise_distances_argmin(X, centroids)

        score = metrics.separation_score(X, assignments, centroids)
        logger.info(
            f"K-means (k={k}) over {len(X)} samples: "
            f"inertia={kmeans.inertia_:.4f}, separation={score:.4f}"
        )

        artifact = ClusteringArtifact(
            k=k,
            centroids=centroids.tolist(),
            clusters=[int(c) for c in assignments],
        )
        return TrainingOutcome(artifact=artifact, metrics=ModelPerformance(accuracy=score))

    def predict(self, artifact: ClusteringArtifact, input_data: np.ndarray, accuracy: Optional[float]):
        centroids = np.asarray(artifact.centroids, dtype=float)
        row = input_data[:1]
        if row.shape[1] != centroids.shape[1]:
            raise ValidationError(
                f"Clustering model expects {centroids.shape[1]} feature(s), got {row.shape[1]}"
            )
        distances = np.linalg.norm(centroids - row, axis=1)
        return int(np.argmin(distances)), ai_config.clustering_confidence
