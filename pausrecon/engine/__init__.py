from .worker import DataProcWorker, EngineConfig
from .thread import EngineThread
