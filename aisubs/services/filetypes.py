from enum import Enum
from pathlib import Path
from typing import Dict, Union

MKV_MAGIC = b"\x1a\x45\xdf\xa3"


class FileType(str, Enum):
    UNKNOWN = "Unknown"
    MKV = "MKV Video"
    MP4 = "MP4 Video"
    AVI = "AVI Video"
    SRT = "SRT Subtitle"
    SSA = "SSA Subtitle"
    ASS = "ASS Subtitle"
    VTT = "WebVTT Subtitle"

    @property
    def is_video(self) -> bool:
        return self in (FileType.MKV, FileType.MP4, FileType.AVI)

    @property
    def is_subtitle(self) -> bool:
        return self in (FileType.SRT, FileType.SSA, FileType.ASS, FileType.VTT)


EXTENSION_TYPES: Dict[str, FileType] = {
    ".mkv": FileType.MKV,
    ".mp4": FileType.MP4,
    ".m4v": FileType.MP4,
    ".avi": FileType.AVI,
    ".srt": FileType.SRT,
    ".ssa": FileType.SSA,
    ".ass": FileType.ASS,
    ".vtt": FileType.VTT,
}


def detect_file_type(path: Union[str, Path]) -> FileType:
    """Detect a media file type from its extension, falling back to its header.

    Raises ``OSError`` when the extension is unknown and the file cannot be read.
    """
    file_path = Path(path)
    by_extension = EXTENSION_TYPES.get(file_path.suffix.lower())
    if by_extension is not None:
        return by_extension

    with file_path.open("rb") as handle:
        header = handle.read(4096)

    if header[:4] == MKV_MAGIC:
        return FileType.MKV
    if header[4:8] == b"ftyp":
        return FileType.MP4
    if header[:4] == b"RIFF" and header[8:12] == b"AVI ":
        return FileType.AVI

    text = header.decode("utf-8", errors="ignore").lstrip("\ufeff")
    lines = text.splitlines()[:10]
    if lines and lines[0].strip().isdigit():
        return FileType.SRT
    if lines and lines[0].strip().startswith("WEBVTT"):
        return FileType.VTT
    for line in lines:
        if "[Script Info]" in line:
            if "v4.00" in text and "v4.00+" not in text:
                return FileType.SSA
            return FileType.ASS

    return FileType.UNKNOWN
