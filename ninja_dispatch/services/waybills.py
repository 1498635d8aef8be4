from pathlib import Path
from typing import Optional, Protocol, Union


class WaybillStore(Protocol):
    def get(self, name: str) -> Optional[bytes]:
        ...

    def put(self, name: str, content: bytes) -> Optional[str]:
        ...


class FileWaybillStore:
    """
    Keeps carrier waybills on disk. The waybill endpoint is rate limited, so a
    PDF is fetched once per tracking number and read back from here afterwards.
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def path_for(self, name: str) -> Path:
        return self.directory / f"{name}.pdf"

    def get(self, name: str) -> Optional[bytes]:
        path = self.path_for(name)
        if not path.exists():
            return None
        return path.read_bytes()

    def put(self, name: str, content: bytes) -> Optional[str]:
        if not content:
            return None
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.path_for(name)
        path.write_bytes(content)
        return str(path)
