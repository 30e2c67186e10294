import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Static game rules (skills, situations, scoring matrix, parameters)
    RULES_PATH = os.environ.get('RULES_PATH') or os.path.join(BASE_DIR, 'skilltrail', 'data', 'rules.json')
    # Overrides the rules' seconds_per_round when set (seconds)
    ROUND_DURATION_SEC = int(os.environ['ROUND_DURATION_SEC']) if os.environ.get('ROUND_DURATION_SEC') else None
    # Pause between a round's results and the next round (seconds)
    INTER_ROUND_PAUSE_SEC = float(os.environ.get('INTER_ROUND_PAUSE_SEC', '7'))
    # How long an emptied, finished room stays around for result viewing
    FINISHED_ROOM_LINGER_SEC = float(os.environ.get('FINISHED_ROOM_LINGER_SEC', '60'))
    # Room composition
    MIN_PLAYERS_TEAM = int(os.environ.get('MIN_PLAYERS_TEAM', '2'))
    MAX_TEAMS = int(os.environ.get('MAX_TEAMS', '5'))
    MAX_TEAM_SIZE = int(os.environ.get('MAX_TEAM_SIZE', '6'))
    # Chat
    CHAT_CAPACITY = int(os.environ.get('CHAT_CAPACITY', '100'))
    MAX_MESSAGE_LENGTH = int(os.environ.get('MAX_MESSAGE_LENGTH', '500'))
    # Socket.IO payload cap, large enough for a data-url avatar
    MAX_AVATAR_BYTES = int(os.environ.get('MAX_AVATAR_BYTES', str(2 * 1000 * 1000)))
    SOCKETIO_NAMESPACE = '/ws'
    CORS_ORIGINS = [
        origin.strip()
        for origin in (os.environ.get('CORS_ORIGINS') or 'http://localhost:5173,http://127.0.0.1:5173').split(',')
        if origin.strip()
    ]
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
