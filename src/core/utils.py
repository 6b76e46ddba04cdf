import math
import os
import re
import uuid


def new_id() -> str:
    return uuid.uuid4().hex


def format_time(seconds: float | None) -> str:
    """
    Format a position or duration as M:SS.
    Unknown values (None, NaN, 0) render as 0:00.
    """
    if not seconds or math.isnan(seconds) or seconds < 0:
        return "0:00"
    total = int(seconds)
    return f"{total // 60}:{total % 60:02d}"


def collapse(s: str) -> str:
    """
    Combine runs of whitespace into one space and trim both ends.
    """
    return re.sub(r"\s+", " ", s).strip()


def title_from_filename(name: str) -> str:
    # "Some Song.final.mp3" -> "Some Song.final"
    base = os.path.basename(name)
    stem, _ = os.path.splitext(base)
    return collapse(stem) or base
