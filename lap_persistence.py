import json
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

from lap_store import LapEntry, TrackLaps


class LapDataStorage:
    """
    Persists lap data as one JSON file per track key (LapData/<track_key>.json).
    The layout is the one used by existing LapData folders, so they
    load unchanged:

        {"<driver guid>": [{"DriverGuid": ..., "DriverName": ..., "CarName": ...,
                            "LapTimeMs": ..., "Cuts": ...}, ...]}
    """
    def __init__(self, data_folder='LapData'):
        self.data_folder = Path(data_folder)
        self.logger = logging.getLogger(__name__)

    def track_file_path(self, track_key: str) -> Path:
        """Get the JSON file path for a track"""
        safe_track = track_key.replace(' ', '_')
        return self.data_folder / f'{safe_track}.json'

    def load_all(self) -> Dict[str, TrackLaps]:
        """Load every track file in the data folder"""
        tracks = {}
        if not self.data_folder.is_dir():
            self.logger.info(f"No lap data folder at {self.data_folder}, starting empty")
            return tracks

        try:
            for file_path in sorted(self.data_folder.glob('*.json')):
                track_key = file_path.stem
                tracks[track_key] = self.load_track(track_key)
                self.logger.info(f"Loaded lap data for track: {track_key}")
        except OSError as e:
            self.logger.error(f"Failed to load lap data from {self.data_folder}: {e}")

        return tracks

    def load_track(self, track_key: str) -> TrackLaps:
        """Load one track; a missing or unreadable file gives an empty ledger"""
        file_path = self.track_file_path(track_key)
        if not file_path.exists():
            return {}

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
            return self._decode(raw)
        except Exception as e:
            self.logger.error(f"Failed to load lap data for track {track_key}: {e}")
            self._move_aside(file_path)
            return {}

    def save_track(self, track_key: str, track_laps: TrackLaps) -> bool:
        """Write a track ledger, replacing the previous file atomically"""
        file_path = self.track_file_path(track_key)
        temp_path = file_path.with_suffix(file_path.suffix + '.tmp')

        try:
            self.data_folder.mkdir(parents=True, exist_ok=True)
            with open(temp_path, 'w', encoding='utf-8') as f:
                json.dump(self._encode(track_laps), f, indent=2, ensure_ascii=False)
            os.replace(temp_path, file_path)
            self.logger.debug(f"Saved lap data for track: {track_key}")
            return True
        except Exception as e:
            self.logger.error(f"Failed to save lap data for track {track_key}: {e}")
            return False

    def _move_aside(self, file_path: Path) -> Optional[Path]:
        """Keep a corrupt file out of the way so the next save does not destroy it"""
        backup = file_path.with_suffix(file_path.suffix + '.corrupt')
        try:
            os.replace(file_path, backup)
            self.logger.warning(f"Moved unreadable lap file to {backup}")
            return backup
        except OSError as e:
            self.logger.error(f"Could not move unreadable lap file {file_path}: {e}")
            return None

    @staticmethod
    def _encode(track_laps: TrackLaps) -> Dict[str, List[Dict]]:
        return {
            str(guid): [
                {
                    'DriverGuid': lap.driver_guid,
                    'DriverName': lap.driver_name,
                    'CarName': lap.car_name,
                    'LapTimeMs': lap.lap_time_ms,
                    'Cuts': lap.cuts,
                }
                for lap in laps
            ]
            for guid, laps in track_laps.items()
        }

    @staticmethod
    def _decode(raw) -> TrackLaps:
        if not isinstance(raw, dict):
            raise ValueError(f"expected an object of driver histories, got {type(raw).__name__}")

        track_laps = {}
        for guid_str, laps in raw.items():
            guid = int(guid_str)
            track_laps[guid] = [
                LapEntry(
                    driver_guid=int(lap.get('DriverGuid', guid)),
                    driver_name=lap.get('DriverName', ''),
                    car_name=lap.get('CarName', ''),
                    lap_time_ms=int(lap['LapTimeMs']),
                    cuts=int(lap.get('Cuts', 0)),
                )
                for lap in laps or []
            ]
        return track_laps
