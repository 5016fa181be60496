"""
Error taxonomy for the face detection post-processing engine.

Every failure raised by this package derives from FaceDetectionError.
The concrete classes also derive from the matching built-in exception
so callers that already catch ValueError / KeyError / RuntimeError keep
working.

Non-goals:
    - No retry policy. The pipeline is a pure function of its inputs;
      a failure repeats identically on the same inputs.
"""


class FaceDetectionError(Exception):
    """Base class for all errors raised by retinaface_post."""


class ConfigurationError(FaceDetectionError, ValueError):
    """Invalid resolution, stride, base sizes, threshold, or a tensor
    row count that does not match the generated prior count."""


class MalformedOutputError(FaceDetectionError, ValueError):
    """A network output tensor has the wrong shape, dtype or layout."""


class MissingModelOutputsError(FaceDetectionError, KeyError):
    """The model did not produce one of the expected named outputs."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable.
        return str(self.args[0]) if self.args else "Missing expected model outputs"


class ImageResizingError(FaceDetectionError, RuntimeError):
    """The input image could not be resized to the network input size."""
