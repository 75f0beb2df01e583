"""
Exceptions raised by the model lifecycle services.

Validation and lookup errors are raised before any training job exists.
Failures inside a running job are recorded on the job and re-raised as
TrainingFailure to whoever awaits it.
"""
from typing import Optional


class MLPipelineError(Exception):
    """Base class for every error raised by the ML pipeline."""


class ValidationError(MLPipelineError, ValueError):
    """Malformed training data, input matrix, params or artifact."""


class ModelNotFoundError(MLPipelineError, LookupError):
    """Operation references a model id that does not exist for the tenant."""

    def __init__(self, model_id: str):
        self.model_id = model_id
        super().__init__(f"Model not found: {model_id}")


class TrainingJobNotFoundError(MLPipelineError, LookupError):
    """Operation references a training job id that does not exist."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Training job not found: {job_id}")


class ModelNotTrainedError(MLPipelineError):
    """Prediction requested against a model without a persisted artifact."""


class UnsupportedModelTypeError(MLPipelineError):
    """Model type has no matching algorithm."""


class InvalidStateError(MLPipelineError):
    """Lifecycle transition not allowed from the model's current status."""


class TrainingInProgressError(InvalidStateError):
    """Another training job for the same model is still running."""


class TrainingFailure(MLPipelineError, RuntimeError):
    """A training run failed; the job has been finalized as FAILED."""

    def __init__(self, message: str, job_id: Optional[str] = None):
        self.job_id = job_id
        super().__init__(message)


class TenantLimitError(MLPipelineError):
    """Every tenant slot holds a service with training in progress."""
