from cascade.server.config import AppConfig
from cascade.server.application import Application, Cascade
from cascade.server.writer import respond

__all__ = ["AppConfig", "Application", "Cascade", "respond"]
