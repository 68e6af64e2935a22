from __future__ import annotations

import io
import uuid
import zipfile
from enum import Enum


class Archive:
    # In-memory deployable package; export() produces the zip byte stream pushed to the server.
    extension = ".jar"

    def __init__(self, name: str | None = None) -> None:
        if name is None:
            name = f"{uuid.uuid4()}{self.extension}"
        if not name:
            raise ValueError("Archive.name must be a non-empty string")
        self.name = name
        self._entries: dict[str, bytes] = {}

    def add(self, path: str, content: bytes | str) -> Archive:
        normalized = path.strip("/")
        if not normalized:
            raise ValueError("Archive entry path must be a non-empty string")
        if isinstance(content, str):
            content = content.encode("utf-8")
        self._entries[normalized] = content
        return self

    def add_archive(self, archive: Archive, directory: str = "") -> Archive:
        prefix = directory.strip("/")
        path = f"{prefix}/{archive.name}" if prefix else archive.name
        return self.add(path, archive.export())

    def entries(self) -> dict[str, bytes]:
        return dict(self._entries)

    def contains(self, path: str) -> bool:
        return path.strip("/") in self._entries

    def export(self) -> bytes:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for path in sorted(self._entries):
                archive.writestr(path, self._entries[path])
        return buffer.getvalue()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, entries={len(self._entries)})"


class JavaArchive(Archive):
    extension = ".jar"


class WebArchive(Archive):
    extension = ".war"

    def add_class_resource(self, path: str, content: bytes | str) -> WebArchive:
        self.add(f"WEB-INF/classes/{path.strip('/')}", content)
        return self

    def add_library(self, archive: Archive) -> WebArchive:
        self.add_archive(archive, "WEB-INF/lib")
        return self


class EnterpriseArchive(Archive):
    extension = ".ear"

    def add_module(self, archive: Archive) -> EnterpriseArchive:
        self.add_archive(archive)
        return self

    def add_library(self, archive: Archive) -> EnterpriseArchive:
        self.add_archive(archive, "lib")
        return self


class ResourceAdapterArchive(Archive):
    extension = ".rar"


class ArchiveKind(Enum):
    # Kinds a generated deployment can take; INFER reads it from the parameter annotation.
    WEB = (WebArchive, ".war")
    ENTERPRISE = (EnterpriseArchive, ".ear")
    SIMPLE = (JavaArchive, ".jar")
    ADAPTER = (ResourceAdapterArchive, ".rar")
    INFER = (None, None)

    def __init__(self, archive_type: type[Archive] | None, extension: str | None) -> None:
        self.archive_type = archive_type
        self.extension = extension

    @classmethod
    def infer(cls, parameter_type: object) -> ArchiveKind | None:
        for kind in cls:
            if kind is not cls.INFER and kind.archive_type is parameter_type:
                return kind
        return None
