from .config import LOG_LEVELS, Config, EditorSettings, UIState, load_config, save_config
from .notices import Confirmer, Notifier, Severity
