"""Exception hierarchy shared by the model, pipeline and storage layers."""

from __future__ import annotations


class DermaLensError(Exception):
    """Base class for all DermaLens errors."""


class ModelLoadError(DermaLensError):
    """The classifier could not be acquired; fatal at startup."""


class InferenceError(DermaLensError):
    """Base class for request-scoped inference failures."""


class UnsupportedMediaType(InferenceError):
    """The uploaded file is not a JPEG or PNG image."""


class ModelUnavailable(InferenceError):
    """No classifier handle has been loaded yet."""


class PreprocessError(InferenceError):
    """The image bytes could not be decoded into a model input tensor."""


class PredictionError(InferenceError):
    """The forward pass failed or produced an unusable output."""


class StoreError(DermaLensError):
    """A reference or history store operation failed."""


class HistoryWriteError(StoreError):
    """A prediction record could not be appended to the history log."""


class UploadTooLarge(DermaLensError):
    """An upload exceeded the configured maximum file size."""
