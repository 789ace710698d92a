"""
Lap Message Formatting
Builds the text announced in-session (plain) and posted to Discord (decorated)
"""

from typing import List

from lap_store import LapEntry

MAX_CHAT_LINE_LENGTH = 200


def format_lap_time(lap_time_ms: int) -> str:
    """Format milliseconds as mm:ss.fff (minutes are not wrapped into hours)"""
    minutes, remainder = divmod(int(lap_time_ms), 60000)
    seconds, millis = divmod(remainder, 1000)
    return f"{minutes:02d}:{seconds:02d}.{millis:03d}"


def build_lap_message(lap: LapEntry, track_key: str, include_emojis: bool = False) -> str:
    """Single-lap announcement"""
    lap_time = format_lap_time(lap.lap_time_ms)

    if not include_emojis:
        clean_status = "Clean Lap" if lap.is_clean else f"{lap.cuts} Cuts"
        return f"{lap.driver_name} on {track_key} in {lap.car_name} {lap_time} {clean_status}"

    clean_status = "✅ Clean Lap" if lap.is_clean else f"⚠️ **{lap.cuts} Cuts**"
    return f"🏁 **{lap.driver_name}** on **{track_key}** in **{lap.car_name}** `{lap_time}` {clean_status}"


def build_leaderboard_message(track_key: str, top_laps: List[LapEntry], limit: int,
                              include_emojis: bool = False) -> str:
    """Leaderboard announcement, one line per ranked driver"""
    if include_emojis:
        lines = [f"🏁🏁🏁 **Track: {track_key}** - Top {limit} Lap Times 👑"]
    else:
        lines = [f"Track: {track_key} - Top {limit} Lap Times"]

    if not top_laps:
        lines.append(f"No clean laps recorded on {track_key} yet.")
        return '\n'.join(lines)

    for position, lap in enumerate(top_laps, 1):
        lap_time = format_lap_time(lap.lap_time_ms)
        if include_emojis:
            lines.append(f"{position}) **{lap.driver_name}** in **{lap.car_name}** — `{lap_time}`")
        else:
            lines.append(f"{position}) {lap.driver_name} in {lap.car_name} — {lap_time}")

    return '\n'.join(lines)


def build_driver_laps_message(track_key: str, driver_laps: List[LapEntry]) -> str:
    """Reply to /laptimes: the requester's fastest clean laps"""
    if not driver_laps:
        return f"You have no clean laps on {track_key} yet."

    lines = [f"Your top {len(driver_laps)} clean laps on {track_key}:"]
    for position, lap in enumerate(driver_laps, 1):
        lines.append(f"{position}) {format_lap_time(lap.lap_time_ms)} in {lap.car_name}")
    return '\n'.join(lines)


def truncate_line(line: str, max_length: int = MAX_CHAT_LINE_LENGTH) -> str:
    if len(line) <= max_length:
        return line
    return line[:max_length - 3] + '...'


def split_message_lines(message: str, max_length: int = MAX_CHAT_LINE_LENGTH) -> List[str]:
    """Non-empty lines of a message, each cut to the chat limit"""
    return [truncate_line(line, max_length) for line in message.splitlines() if line.strip()]


def escape_json_string(text: str) -> str:
    """Minimal escape for embedding text inside a JSON string literal"""
    return (
        text.replace('\\', '\\\\')
        .replace('"', '\\"')
        .replace('\n', '\\n')
        .replace('\r', '\\r')
    )


def build_webhook_payload(message: str) -> str:
    """Discord webhook body: {"content": "<message>"}"""
    return f'{{"content":"{escape_json_string(message)}"}}'
