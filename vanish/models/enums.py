from enum import Enum


class ShareType(str, Enum):
    LINK = "link"
    PASTE = "paste"
    IMAGE = "image"
    NOTE = "note"
    CODE = "code"
    JSON = "json"
    CSV = "csv"
