class PipelineError(Exception):
    """Base for every failure reported to the caller as a JSON error body."""

    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {"error": self.message}


class ValidationError(PipelineError):
    status_code = 400


class MissingInputError(ValidationError):
    def __init__(self, slot, message=None):
        super().__init__(message or f"No {slot} image provided")
        self.slot = slot


class InvalidInputError(ValidationError):
    pass


class ConfigurationError(PipelineError):
    status_code = 500


class UpstreamDeclinedError(PipelineError):
    """The model answered with text only, usually explaining a refusal."""

    status_code = 422

    def __init__(self, text):
        super().__init__("Model returned text instead of image")
        self.text = text

    def to_dict(self):
        return {"success": False, "error": self.message, "text": self.text}


class UpstreamEmptyError(PipelineError):
    status_code = 500

    def __init__(self, message="No image data in response"):
        super().__init__(message)


class UpstreamTransportError(PipelineError):
    status_code = 500

    def __init__(self, cause):
        super().__init__(f"Failed to process image: {cause}")
