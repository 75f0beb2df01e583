"""
Binary Classification Network

Feed-forward network input -> dense(64, relu) -> dense(32, relu) -> dense(1, sigmoid)
trained with adam on binary cross-entropy. scikit-learn's MLPClassifier does
the optimization, one partial_fit pass per epoch so that validation loss and
accuracy can be recorded after every epoch. Inference runs directly against
the stored weights; the fitted estimator itself is never persisted.
"""
from numbers import Real
from typing import Optional, Tuple

import numpy as np
from sklearn.metrics import accuracy_score, log_loss
from sklearn.model_selection import train_test_split
from sklearn.neural_network import MLPClassifier
from sklearn.preprocessing import StandardScaler

from ml_pipeline.ai import metrics
from ml_pipeline.ai.errors import ValidationError
from ml_pipeline.ai.models.base import ModelAlgorithm, TrainingOutcome
from ml_pipeline.ai.schemas import (
    ClassificationArtifact,
    ClassificationParams,
    ModelPerformance,
    ModelType,
    NetworkArchitecture,
    TrainingConfig,
    TrainingData,
)
from ml_pipeline.utils.logging import get_logger

logger = get_logger(__name__)

CLASSES = np.array([0, 1])

# L2 penalty per unit of dropout rate; MLPClassifier has no dropout layer
DROPOUT_TO_L2 = 5e-2


def _binary_labels(data: TrainingData) -> np.ndarray:
    target = data.target
    if not target:
        raise ValidationError("Classification requires binary target values (0/1)")
    labels = []
    for value in target:
        if isinstance(value, bool):
            labels.append(int(value))
        elif isinstance(value, Real) and value in (0, 1):
            labels.append(int(value))
        else:
            raise ValidationError(
                f"Classification requires binary target values (0/1), got {value!r}"
            )
    return np.asarray(labels, dtype=int)


def _split(X: np.ndarray, y: np.ndarray, config: TrainingConfig) -> Tuple[np.ndarray, ...]:
    """
    Hold out ``validation_split`` of the rows, stratified when possible.

    Returns:
        (X_train, X_val, y_train, y_val); both halves are the full dataset
        when no hold-out can be made
    """
    if config.validation_split > 0 and len(X) >= 2:
        for stratify in (y, None):
            try:
                return train_test_split(
                    X, y,
                    test_size=config.validation_split,
                    random_state=config.random_state,
                    stratify=stratify,
                )
            except ValueError:
                continue
    return X, X, y, y


def forward(artifact: ClassificationArtifact, X: np.ndarray) -> np.ndarray:
    """
    Positive-class probabilities of every row of ``X``.

    Args:
        artifact: Trained classification artifact
        X: Raw (unscaled) input matrix

    Returns:
        1-D array of probabilities in [0, 1]
    """
    activation = (X - np.asarray(artifact.scaler_mean)) / np.asarray(artifact.scaler_scale)
    layers = [(np.asarray(w), np.asarray(b)) for w, b in zip(artifact.weights, artifact.biases)]

    for weights, bias in layers[:-1]:
        activation = np.maximum(activation @ weights + bias, 0.0)

    weights, bias = layers[-1]
    logits = np.clip(activation @ weights + bias, -500.0, 500.0)
    return (1.0 / (1.0 + np.exp(-logits))).ravel()


class ClassificationModel(ModelAlgorithm):
    """Neural binary classifier."""

    model_type = ModelType.CLASSIFICATION
    algorithm_name = "neural_network"

    def validate(self, data: TrainingData, params: ClassificationParams) -> None:
        super().validate(data, params)
        _binary_labels(data)

    def train(self, data: TrainingData, config: TrainingConfig, params: ClassificationParams) -> TrainingOutcome:
        X = self._feature_matrix(data.features)
        y = _binary_labels(data)

        X_train, X_val, y_train, y_val = _split(X, y, config)

        scaler = StandardScaler()
        X_train_s = scaler.fit_transform(X_train)
        X_val_s = scaler.transform(X_val)

        l2_penalty = params.dropout * DROPOUT_TO_L2
        network = MLPClassifier(
            hidden_layer_sizes=tuple(params.hidden_layers),
            activation="relu",
            solver="adam",
            alpha=l2_penalty,
            batch_size=min(config.batch_size, len(X_train_s)),
            learning_rate_init=config.learning_rate,
            random_state=config.random_state,
        )

        history = {"val_loss": [], "val_accuracy": []}
        for epoch in range(config.epochs):
            network.partial_fit(X_train_s, y_train, classes=CLASSES)
            val_proba = network.predict_proba(X_val_s)[:, 1]
            val_loss = float(log_loss(y_val, val_proba, labels=CLASSES))
            val_accuracy = float(accuracy_score(y_val, (val_proba > params.threshold).astype(int)))
            history["val_loss"].append(val_loss)
            history["val_accuracy"].append(val_accuracy)
            if (epoch + 1) % 10 == 0:
                logger.debug(
                    f"Epoch {epoch + 1}/{config.epochs}: "
                    f"val_loss={val_loss:.4f}, val_accuracy={val_accuracy:.4f}"
                )

        artifact = ClassificationArtifact(
            architecture=NetworkArchitecture(
                input_dim=X.shape[1],
                hidden_layers=list(params.hidden_layers),
                dropout=params.dropout,
                l2_penalty=l2_penalty,
            ),
            weights=[w.tolist() for w in network.coefs_],
            biases=[b.tolist() for b in network.intercepts_],
            scaler_mean=scaler.mean_.tolist(),
            scaler_scale=scaler.scale_.tolist(),
            threshold=params.threshold,
            history=history,
        )

        # Precision/recall/F1 over every row, from the stored weights
        full_proba = forward(artifact, X)
        scores = metrics.classification_metrics(y, full_proba, params.threshold)

        performance = ModelPerformance(
            accuracy=history["val_accuracy"][-1],
            log_loss=history["val_loss"][-1],
            **scores,
        )
        logger.info(
            f"Classifier trained for {config.epochs} epoch(s) on {len(X_train)} rows "
            f"({len(X_val)} validation): accuracy={performance.accuracy:.4f}, "
            f"f1={scores['f1_score']:.4f}"
        )
        return TrainingOutcome(artifact=artifact, metrics=performance)

    def predict(self, artifact: ClassificationArtifact, input_data: np.ndarray, accuracy: Optional[float]):
        if input_data.shape[1] != artifact.architecture.input_dim:
            raise ValidationError(
                f"Classification model expects {artifact.architecture.input_dim} feature(s), "
                f"got {input_data.shape[1]}"
            )
        probabilities = forward(artifact, input_data)
        labels = (probabilities > artifact.threshold).astype(int)
        confidence = float(np.mean(np.maximum(probabilities, 1.0 - probabilities)))

        if len(labels) == 1:
            return int(labels[0]), confidence
        return [int(label) for label in labels], confidence
