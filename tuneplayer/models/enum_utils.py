# tuneplayer/models/enum_utils.py
from typing import Optional
from tuneplayer.models.enums import PlaybackSource, RepeatMode, FailureReason

def normalize_source(value) -> Optional[PlaybackSource]:
    """Return the PlaybackSource for value, or None when it isn't one."""
    if isinstance(value, PlaybackSource):
        return value
    if not isinstance(value, str):
        return None
    v = value.strip().lower()
    if v in {"all", "all_tracks", "tracks"}:
        return PlaybackSource.ALL
    if v in {"liked", "liked_songs", "liked-songs"}:
        return PlaybackSource.LIKED
    return None

def normalize_repeat(value) -> RepeatMode:
    if isinstance(value, RepeatMode):
        return value
    if isinstance(value, bool):
        # older snapshots stored repeat as an on/off flag
        return RepeatMode.ALL if value else RepeatMode.NONE
    if not isinstance(value, str):
        return RepeatMode.NONE
    v = value.strip().lower()
    if v in {"none", "one", "all"}:
        return RepeatMode(v)
    return RepeatMode.NONE

def normalize_failure(value) -> Optional[FailureReason]:
    if isinstance(value, FailureReason):
        return value
    if not isinstance(value, str):
        return None
    v = value.strip().lower().replace("_", "-")
    for reason in FailureReason:
        if reason.value == v:
            return reason
    # Names as reported by browser media errors / DOMExceptions
    aliases = {
        "aborterror": FailureReason.ABORTED,
        "notallowederror": FailureReason.AUTOPLAY_BLOCKED,
        "notsupportederror": FailureReason.UNSUPPORTED,
        "media-err-network": FailureReason.NETWORK,
        "media-err-decode": FailureReason.DECODE,
        "media-err-src-not-supported": FailureReason.UNSUPPORTED,
        "media-err-aborted": FailureReason.ABORTED,
    }
    return aliases.get(v)
