"""
Track Name Sanitizer
Turns the raw track identifier reported by the host into a stable key that is
safe to use both as a dictionary key and as a file name
"""

import re

UNKNOWN_TRACK = "UnknownTrack"
KUNOS_PREFIX = "ks_"

_SEPARATORS = re.compile(r'[/\\]')
_DISALLOWED = re.compile(r'[^\w\-]')


def _track_segments(raw: str) -> list:
    """Pick the path segments that name the track.

    Only segments after the last '.'/'..' count. Of those, a 'ks_' segment
    starts the track name and keeps its layout; without one the last
    segment is the name.
    """
    segments = [segment.strip() for segment in _SEPARATORS.split(raw)]
    traversal = [i for i, segment in enumerate(segments) if segment in ('.', '..')]
    if traversal:
        segments = segments[traversal[-1] + 1:]
    segments = [segment for segment in segments if segment]
    if not segments:
        return []

    kunos = [i for i, segment in enumerate(segments) if segment.lower().startswith(KUNOS_PREFIX)]
    if kunos:
        return segments[kunos[-1]:]
    return segments[-1:]


def sanitize_track_name(raw: str) -> str:
    """Normalize a raw track identifier into a filesystem-safe key.

    Examples:
        'ks_monza'              -> 'monza'
        'ks_monza/layout'       -> 'monza_layout'
        'csp/3749/../ks_monza'  -> 'monza'
        'content/tracks/ks_spa' -> 'spa'
        '../../etc'             -> 'etc'
        ''                      -> 'UnknownTrack'
    """
    if raw is None or not str(raw).strip():
        return UNKNOWN_TRACK

    parts = []
    for segment in _track_segments(str(raw).strip()):
        if segment.lower().startswith(KUNOS_PREFIX):
            segment = segment[len(KUNOS_PREFIX):]
        if segment:
            parts.append(segment)

    key = _DISALLOWED.sub('_', '_'.join(parts))
    key = key.replace('..', '')

    if not key.strip():
        return UNKNOWN_TRACK

    return key
