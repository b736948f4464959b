class MalformedContainer(Exception):
    """
    The bytes of a file do not parse as a valid hierarchical container. Fatal
    for that file.
    """
    def __init__(self, message: str, *, locator=None):
        super().__init__(message)
        self.locator = locator
