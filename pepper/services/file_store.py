"""
Almacén de ficheros: un case.json por caso bajo un directorio por usuario.

Layout:
    <cases_dir>/<user>/<CASE_ID>/case.json
    <cases_dir>/<user>/<CASE_ID>/mcd.json   (espejo del MCD, opcional)
"""
import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from pepper.core.exceptions import FileStoreException

CASE_FILE = "case.json"
MCD_MIRROR_FILE = "mcd.json"

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


def sanitize_segment(value: str) -> str:
    """Convierte un identificador en un nombre de carpeta seguro."""
    return _UNSAFE_CHARS.sub("_", str(value).strip())


class CaseFileStore:
    """Lectura/escritura de case.json por (usuario, caso)."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def user_dir(self, user_id: str) -> Path:
        return self.root / sanitize_segment(user_id)

    def case_dir(self, user_id: str, case_id: str) -> Path:
        return self.user_dir(user_id) / sanitize_segment(case_id.upper())

    def case_path(self, user_id: str, case_id: str) -> Path:
        return self.case_dir(user_id, case_id) / CASE_FILE

    def relative_path(self, user_id: str, case_id: str) -> str:
        """Ruta relativa que se devuelve al cliente en fileLocation."""
        return (
            f"cases/{sanitize_segment(user_id)}/"
            f"{sanitize_segment(case_id.upper())}/{CASE_FILE}"
        )

    def exists(self, user_id: str, case_id: str) -> bool:
        return self.case_path(user_id, case_id).is_file()

    def read(self, user_id: str, case_id: str) -> Optional[Dict[str, Any]]:
        """
        Lee case.json.

        Returns:
            El dict del caso, o None si no existe

        Raises:
            FileStoreException: si el fichero existe pero no es JSON válido
        """
        path = self.case_path(user_id, case_id)
        if not path.is_file():
            return None
        try:
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise FileStoreException(
                f"Cannot read case file for {case_id}", path=str(path), original_error=e
            )
        if not isinstance(data, dict):
            raise FileStoreException(f"Case file for {case_id} is not an object", path=str(path))
        return data

    def write(self, user_id: str, case_id: str, data: Dict[str, Any]) -> Path:
        """Escribe case.json de forma atómica (fichero temporal + replace)."""
        return self._write_json(self.case_path(user_id, case_id), data)

    def write_mcd_mirror(self, user_id: str, case_id: str, mcd: Dict[str, Any]) -> Path:
        """Copia legible del MCD junto a case.json."""
        return self._write_json(self.case_dir(user_id, case_id) / MCD_MIRROR_FILE, mcd)

    def list_case_ids(self, user_id: str) -> List[str]:
        """Carpetas de caso del usuario que contienen case.json (sin filtrar lápidas)."""
        user_dir = self.user_dir(user_id)
        if not user_dir.is_dir():
            return []
        return sorted(
            entry.name
            for entry in user_dir.iterdir()
            if entry.is_dir() and (entry / CASE_FILE).is_file()
        )

    def _write_json(self, path: Path, data: Dict[str, Any]) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".tmp-", suffix=".json", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2, default=str)
            os.replace(tmp_name, path)
        except OSError as e:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise FileStoreException(
                f"Cannot write {path.name}", path=str(path), original_error=e
            )
        return path
