"""Exceptions raised by the training and inference pipeline."""


class PipelineError(Exception):
    pass


class ConfigurationError(PipelineError):
    """Invalid setup: empty candidate list, bad window size, too few rows."""


class TrainingBusyError(ConfigurationError):
    """Another training run already owns the output directory."""


class CorpusReadError(PipelineError):
    """A source directory is missing or cannot be listed."""


class RowParseError(PipelineError):
    def __init__(self, path, line_number, message):
        super().__init__(f"{path}:{line_number}: {message}")
        self.path = path
        self.line_number = line_number


class TrainingFailure(PipelineError):
    """Every candidate classifier failed to train."""


class ArtifactMismatchError(PipelineError):
    """Model and normalization parameters do not belong together."""
