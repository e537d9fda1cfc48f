class CostReportError(Exception):
    """
    base class for every error raised while building or
    writing a cost report.
    """


class ConfigParseError(CostReportError):
    """
    the YAML config could not be read or does not have the
    expected shape.
    """


class TimeParseError(CostReportError):
    """
    a start timestamp or duration string is malformed.
    """


class CollaboratorError(CostReportError):
    """
    the billing source failed to return usage records.
    """


class CollaboratorTimeoutError(CollaboratorError):
    """
    the billing source did not answer before the deadline.
    """


class SerializationError(CostReportError):
    pass


class OutputWriteError(CostReportError):
    pass
