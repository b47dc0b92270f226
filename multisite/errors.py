"""
Exceptions raised by the multisite data-access layer
"""


class MultisiteError(Exception):
    """Base class for every error raised by the multisite package"""


class NotMultisiteError(MultisiteError):
    def __init__(self, message: str = "This is not a multisite install."):
        super().__init__(message)


class SiteNotFoundError(MultisiteError):
    def __init__(self, message: str = "Site not found."):
        super().__init__(message)


class NetworkNotFoundError(MultisiteError):
    def __init__(self, network_id):
        self.network_id = network_id
        super().__init__(f"Network with id {network_id} does not exist.")


class ReservedNameError(MultisiteError):
    def __init__(self, reserved_names):
        self.reserved_names = list(reserved_names)
        super().__init__(
            "The following words are reserved and cannot be used as blog names: "
            + ", ".join(self.reserved_names)
        )


class UserCreationError(MultisiteError):
    def __init__(self, message: str = "Can't create user."):
        super().__init__(message)


class BlogCreationError(MultisiteError):
    pass


class PostInsertError(MultisiteError):
    pass


class CommentInsertError(MultisiteError):
    pass


class SideloadError(MultisiteError):
    """Raised when an attachment's resource cannot be re-hosted"""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Could not sideload {url}: {reason}")
