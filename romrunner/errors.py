"""
Error taxonomy for the ROM runner.

Fatal errors abort the invocation with exit code 1 before anything is
launched. Non-fatal errors only disable the feature that raised them.
"""


class RomRunnerError(Exception):
    fatal = True


class MissingRequiredTool(RomRunnerError):
    """The archive tool is not installed"""


class EntryNotFound(RomRunnerError):
    """No matching file or folder inside the archive"""


class ExtractionFailure(RomRunnerError):
    """The archive tool could not list or extract"""


class RequiredSiblingMissing(RomRunnerError):
    """A structurally required sibling (the archive behind a bundle) is absent"""


class MountFailure(RomRunnerError):
    fatal = False


class ConversionFailure(RomRunnerError):
    fatal = False


class OptionalToolUnavailable(RomRunnerError):
    fatal = False


class ConfigMergeFailure(RomRunnerError):
    fatal = False
