import logging
import logging.handlers
import traceback
from datetime import datetime

from flask import Flask, jsonify, request
from flask_cors import CORS
from flask_socketio import SocketIO, emit, join_room, leave_room

from lap_times_config import load_config
from lap_times_plugin import LapTimesPlugin, lap_to_dict
from track_names import sanitize_track_name

# Initialize Flask app
app = Flask(__name__)
CORS(app,
     origins=["http://localhost:3000"],
     supports_credentials=True,
     allow_headers=["Content-Type", "Authorization"],
     methods=["GET", "POST", "OPTIONS"])

socketio = SocketIO(
    app,
    cors_allowed_origins="*",
    async_mode='threading',
    logger=False,
    engineio_logger=False,
    ping_interval=25,
    ping_timeout=60
)

SESSION_ROOM = 'session'

logger = logging.getLogger(__name__)

# sid -> driver GUID of the connected game clients
connected_drivers = {}


def setup_logging(level=logging.INFO):
    """Setup logging configuration"""
    file_handler = logging.handlers.RotatingFileHandler(
        'lap_times.log',
        maxBytes=10*1024*1024,  # 10MB
        backupCount=3
    )
    console_handler = logging.StreamHandler()

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[file_handler, console_handler]
    )


def driver_room(driver_guid) -> str:
    return f'driver_{driver_guid}'


class SocketIOChatTransport:
    """In-session chat over Socket.IO rooms"""

    def __init__(self, socketio_server):
        self.socketio = socketio_server

    def _payload(self, text: str) -> dict:
        return {'message': text, 'timestamp': datetime.now().isoformat()}

    def broadcast(self, text: str) -> None:
        self.socketio.emit('chat', self._payload(text), room=SESSION_ROOM)

    def send_to(self, driver_guid: int, text: str) -> None:
        self.socketio.emit('chat', self._payload(text), room=driver_room(driver_guid))


config = load_config()
plugin = LapTimesPlugin(config, SocketIOChatTransport(socketio))


def parse_lap_payload(data):
    """Validate an incoming lap; returns (lap_kwargs, error_message)"""
    if not isinstance(data, dict):
        return None, 'JSON object required'

    try:
        driver_guid = int(data['driver_id'])
        lap_time_ms = int(data['lap_time_ms'])
        cuts = int(data.get('cuts', 0))
    except (KeyError, TypeError, ValueError):
        return None, 'driver_id and lap_time_ms must be integers'

    if driver_guid < 0:
        return None, 'driver_id must not be negative'
    if lap_time_ms <= 0:
        return None, 'lap_time_ms must be positive'
    if cuts < 0:
        return None, 'cuts must not be negative'

    return {
        'driver_guid': driver_guid,
        'driver_name': str(data.get('driver_name') or 'UnknownDriver'),
        'car_name': str(data.get('car') or 'UnknownCar'),
        'lap_time_ms': lap_time_ms,
        'cuts': cuts,
    }, None


# WebSocket connection handlers
@socketio.on('join_session')
def handle_join_session(data):
    """Handle a game client announcing which driver it is"""
    try:
        driver_guid = int(data.get('driver_id'))
    except (AttributeError, TypeError, ValueError):
        emit('lap_error', {'error': 'driver_id is required', 'timestamp': datetime.now().isoformat()})
        return

    connected_drivers[request.sid] = driver_guid
    join_room(SESSION_ROOM)
    join_room(driver_room(driver_guid))
    logger.info(f"Driver {driver_guid} ({data.get('driver_name', '?')}) joined session")

    emit('session_joined', {
        'driver_id': driver_guid,
        'track_key': plugin.current_track_key(),
        'timestamp': datetime.now().isoformat()
    })


@socketio.on('disconnect')
def handle_disconnect():
    """Handle client disconnection"""
    driver_guid = connected_drivers.pop(request.sid, None)
    if driver_guid is not None:
        leave_room(driver_room(driver_guid))
        leave_room(SESSION_ROOM)
        logger.info(f"Driver {driver_guid} left session")


@socketio.on('lap_completed')
def handle_lap_completed(data):
    """Handle a lap reported by the game server bridge"""
    lap, error = parse_lap_payload(data)
    if error:
        logger.warning(f"Ignoring lap event: {error}")
        emit('lap_error', {'error': error, 'timestamp': datetime.now().isoformat()})
        return

    try:
        plugin.on_lap_completed(config.track, **lap)
    except Exception as e:
        logger.error(f"Error recording lap: {e}")
        logger.error(traceback.format_exc())
        emit('lap_error', {'error': f'Failed to record lap: {str(e)}', 'timestamp': datetime.now().isoformat()})


@socketio.on('chat_message')
def handle_chat_message(data):
    """Handle chat typed by a driver; only commands are answered"""
    if not isinstance(data, dict):
        return

    driver_guid = connected_drivers.get(request.sid)
    if driver_guid is None:
        try:
            driver_guid = int(data.get('driver_id'))
        except (TypeError, ValueError):
            return

    plugin.on_chat_message(config.track, driver_guid, str(data.get('message', '')))


@app.route('/api/session', methods=['GET'])
def get_session():
    return jsonify({
        'track': config.track,
        'track_key': plugin.current_track_key(),
        'enabled': config.enabled,
        'max_top_times': config.max_top_times,
        'connected_drivers': len(connected_drivers)
    })


@app.route('/api/session/track', methods=['POST'])
def set_session_track():
    """Switch the active track"""
    data = request.get_json(silent=True) or {}
    track = data.get('track')
    if not isinstance(track, str) or not track.strip():
        return jsonify({'status': 'error', 'message': 'track is required'}), 400

    config.track = track
    track_key = plugin.current_track_key()
    logger.info(f"Active track set to {track} ({track_key})")
    return jsonify({'status': 'success', 'track': track, 'track_key': track_key})


@app.route('/api/laps', methods=['POST'])
def post_lap():
    """HTTP variant of the lap_completed event"""
    lap, error = parse_lap_payload(request.get_json(silent=True))
    if error:
        return jsonify({'status': 'error', 'message': error}), 400

    try:
        result = plugin.on_lap_completed(config.track, **lap)
    except Exception as e:
        logger.error(f"Error recording lap: {e}")
        logger.error(traceback.format_exc())
        return jsonify({'status': 'error', 'message': f'Failed to record lap: {str(e)}'}), 500

    if result is None:
        return jsonify({'status': 'ignored', 'accepted': False, 'qualified': False})

    return jsonify({'status': 'success', **result.to_dict()})


@app.route('/api/tracks', methods=['GET'])
def get_tracks():
    return jsonify({'tracks': plugin.store.track_keys()})


@app.route('/api/tracks/<track_key>/leaderboard', methods=['GET'])
def get_track_leaderboard(track_key):
    limit = request.args.get('limit', default=config.max_top_times, type=int)
    if limit is None or not 1 <= limit <= 100:
        return jsonify({'status': 'error', 'message': 'limit must be between 1 and 100'}), 400

    track_key = sanitize_track_name(track_key)
    entries = [
        {'position': position, **lap_to_dict(lap)}
        for position, lap in enumerate(plugin.leaderboard_for(track_key, limit), 1)
    ]
    return jsonify({'track_key': track_key, 'limit': limit, 'entries': entries})


@app.route('/api/tracks/<track_key>/drivers/<int:driver_id>/laps', methods=['GET'])
def get_driver_laps(track_key, driver_id):
    track_key = sanitize_track_name(track_key)
    laps = [lap_to_dict(lap) for lap in plugin.driver_laps_for(track_key, driver_id)]
    return jsonify({'track_key': track_key, 'driver_id': driver_id, 'laps': laps})


if __name__ == '__main__':
    setup_logging()
    try:
        print("Starting lap times server on port 5000...")
        socketio.run(app, host='127.0.0.1', port=5000, debug=False, allow_unsafe_werkzeug=True)
    except Exception as e:
        print(f"Error starting server: {e}")
        print(traceback.format_exc())
