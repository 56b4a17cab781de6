import logging
import os
from logging.handlers import RotatingFileHandler

ROOT_NAME = 'flow_engine'

# Por defecto bajo la raíz (donde se ejecuta el main); FLOW_ENGINE_LOG_DIR lo sobreescribe
LOG_DIR = os.path.abspath(
    os.getenv('FLOW_ENGINE_LOG_DIR') or os.path.join(os.getcwd(), 'var', 'logs')
)
LOG_LEVELS = {
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'warning': logging.WARNING,
    'error': logging.ERROR,
}
LOG_FILE_BYTES = 5 * 1024 * 1024  # 5MB por archivo
LOG_FORMAT = '[%(asctime)s] %(levelname)s %(name)s: %(message)s'


class LevelFilter(logging.Filter):
    """Deja pasar solo un nivel exacto (un fichero por nivel)."""
    def __init__(self, level):
        super().__init__()
        self.level = level

    def filter(self, record):
        return record.levelno == self.level


def _root_logger() -> logging.Logger:
    root = logging.getLogger(ROOT_NAME)
    if getattr(root, '_custom_handlers', False):
        return root

    os.makedirs(LOG_DIR, exist_ok=True)
    min_level = LOG_LEVELS.get(os.getenv('FLOW_ENGINE_LOG_LEVEL', 'debug').lower(), logging.DEBUG)
    root.setLevel(min_level)
    root.propagate = False
    formatter = logging.Formatter(LOG_FORMAT)
    for level_name, level in LOG_LEVELS.items():
        if level < min_level:
            continue
        handler = RotatingFileHandler(
            os.path.join(LOG_DIR, f'{level_name}.log'),
            maxBytes=LOG_FILE_BYTES,
            backupCount=3,
            encoding='utf-8',
        )
        handler.setLevel(level)
        handler.addFilter(LevelFilter(level))
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root._custom_handlers = True
    return root


def get_logger(name: str = ROOT_NAME) -> logging.Logger:
    """
    Logger hijo de 'flow_engine'. Los handlers por nivel se montan una sola
    vez en la raíz y los hijos propagan hacia ella.
    """
    _root_logger()
    if name != ROOT_NAME and not name.startswith(ROOT_NAME + '.'):
        name = f'{ROOT_NAME}.{name}'
    return logging.getLogger(name)
