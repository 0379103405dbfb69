class DocChatError(Exception):
    """Base class for failures surfaced to the API layer."""


class UnsupportedFormatError(DocChatError, ValueError):
    pass


class DownloadError(DocChatError):
    pass


class ExtractionError(DocChatError):
    """Raised when a document yields too little usable text to chunk."""


class InsertError(DocChatError):
    """Raised when a chunk batch cannot be written. Earlier batches stay written."""


class DocumentLimitError(DocChatError):
    pass


class DocumentNotFoundError(DocChatError):
    pass
