class IObjectStorage:
    """Blob store for assignment and submission files."""

    def upload(self, data: bytes, path: str, content_type: str) -> str:
        """Store ``data`` under ``path`` and return a public download URL."""
        ...

    def delete(self, path: str) -> None:
        ...
