class MetalbillError(Exception):
    """
    base class of every error that should terminate a run
    with a message and a non-zero exit status.
    """


class ConfigError(MetalbillError):
    pass


class InvalidTimeFormat(MetalbillError):
    pass


class InvalidDateFormat(MetalbillError):
    pass


class UpstreamError(MetalbillError):
    """
    raised on transport failures, non-200 responses and
    malformed bodies from the billing API.
    """

    def __init__(
        self,
        message: "str",
        project_id: "str | None" = None,
        status_code: "int | None" = None,
        body: "str | None" = None,
    ) -> "None":
        self.project_id = project_id
        self.status_code = status_code
        self.body = body

        parts = [message]
        if project_id is not None:
            parts.append(f"project: {project_id}")
        if status_code is not None:
            parts.append(f"status code: {status_code}")
        if body is not None:
            parts.append(f"response body: {body}")
        super().__init__("\n".join(parts))


class SinkError(MetalbillError):
    def __init__(
        self,
        message: "str",
        project: "str | None" = None,
        errors: "list | None" = None,
    ) -> "None":
        self.project = project
        self.errors = errors or []

        text = message
        if project is not None:
            text += f" (project: {project})"
        if self.errors:
            text += f": {self.errors}"
        super().__init__(text)
